"""
Image uploads stored on disk under UPLOAD_DIR/<area>/.

Only the generated file name is stored in the database.
"""
import os
import random
import time
from pathlib import Path
from fastapi import HTTPException, UploadFile

from personalsystem.core import config
from personalsystem.utils import get_logger


log = get_logger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def upload_dir(area: str) -> Path:
    path = Path(config.UPLOAD_DIR) / area
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(filename: str) -> str:
    """Reject anything that is not a bare file name."""
    if not filename or filename != os.path.basename(filename) or filename in (".", "..") or "\\" in filename:
        raise HTTPException(status_code=400, detail="Invalid file name")
    return filename


async def save_image(file: UploadFile, area: str, prefix: str = "") -> str:
    """
    Validate and store an uploaded image, returning the stored file name.

    Raises:
        HTTPException: 400 for non-images, 413 above MAX_UPLOAD_BYTES
    """
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="Only images are allowed (JPEG, PNG, GIF, WebP)")

    content = await file.read()
    if len(content) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    extension = Path(file.filename or "").suffix.lower() or ALLOWED_IMAGE_TYPES[file.content_type]
    if extension not in ALLOWED_IMAGE_TYPES.values() and extension != ".jpeg":
        extension = ALLOWED_IMAGE_TYPES[file.content_type]
    filename = f"{prefix}{int(time.time() * 1000)}-{random.randint(0, 10**9)}{extension}"

    (upload_dir(area) / filename).write_bytes(content)
    log.debug("Stored upload %s/%s (%d bytes)", area, filename, len(content))
    return filename


def resolve_upload(area: str, filename: str) -> Path:
    """Path of a stored file, 404 if it does not exist."""
    path = upload_dir(area) / safe_filename(filename)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return path


def remove_upload(area: str, filename: str | None) -> None:
    if not filename:
        return
    try:
        (upload_dir(area) / os.path.basename(filename)).unlink(missing_ok=True)
    except OSError:
        log.exception("Could not delete upload %s/%s", area, filename)
