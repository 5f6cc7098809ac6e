import uvicorn  # type: ignore

from personalsystem.core import config
from personalsystem.utils import get_logger

log = get_logger(__name__)

if __name__ == "__main__":
    log.info("Running LSPD Personalsystem on %s:%d", config.HOST, config.PORT)
    uvicorn.run("personalsystem.main:app", reload=config.RELOAD, host=config.HOST, port=config.PORT)
