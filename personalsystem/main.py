from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from personalsystem.core import config
from personalsystem.core.database.engine import init_db
from personalsystem.core.limiter import limiter
from personalsystem.features.applications.routes import router as application_router
from personalsystem.features.blacklist.routes import router as blacklist_router
from personalsystem.features.bonus.routes import router as bonus_router
from personalsystem.features.cases.routes import router as case_router
from personalsystem.features.civilian_service.routes import router as civilian_service_router
from personalsystem.features.employees.routes import router as employee_router
from personalsystem.features.live.routes import router as live_router, ws_router
from personalsystem.features.permissions.audit import audit_middleware
from personalsystem.features.permissions.routes import router as admin_router
from personalsystem.features.robbery.routes import router as robbery_router
from personalsystem.features.uprank_locks.routes import router as uprank_lock_router
from personalsystem.features.users.routes import auth_router, router as user_router
from personalsystem.jobs import create_scheduler
from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="LSPD Personalsystem",
    description="Personnel management API with Discord login and role-based permissions",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter
scheduler = create_scheduler()


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.personalsystem.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))
app.middleware("http")(audit_middleware)

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database and background jobs on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")
    if config.ENABLE_SCHEDULER:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    await scheduler.stop()


@app.get("/")
async def root():
    """Service info."""
    return {
        "message": "LSPD Personalsystem API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Log in through /api/auth/discord; the session token is sent as the token cookie or a Bearer header",
            "public_endpoints": ["/", "/api/health", "/api/auth/discord", "/api/auth/discord/callback"],
        },
        "websocket": "/ws",
    }


@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "timestamp": utcnow().isoformat()}


# Include routers
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(user_router, prefix="/api/users", tags=["users"])
app.include_router(admin_router, prefix="/api/admin", tags=["admin"])

# Roster
app.include_router(employee_router, prefix="/api/employees", tags=["employees"])
app.include_router(uprank_lock_router, prefix="/api/uprank-locks", tags=["uprank-locks"])

# HR
app.include_router(application_router, prefix="/api/applications", tags=["applications"])
app.include_router(blacklist_router, prefix="/api/blacklist", tags=["blacklist"])

# Detectives
app.include_router(case_router, prefix="/api/cases", tags=["cases"])
app.include_router(civilian_service_router, prefix="/api/civilian-service", tags=["civilian-service"])

# Bonus and robbery log
app.include_router(bonus_router, prefix="/api/bonus", tags=["bonus"])
app.include_router(robbery_router, prefix="/api/robbery", tags=["robbery"])

# Live updates
app.include_router(live_router, prefix="/api/live", tags=["live"])
app.include_router(ws_router)
