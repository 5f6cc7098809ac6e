import logging
import os
from datetime import datetime, timezone

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(), format=_LOG_FORMAT)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger sharing the application's format and level."""
    return logging.getLogger(name)


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit > 0 else 0


def to_naive_utc(value: datetime) -> datetime:
    """Normalize client-supplied datetimes to naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
