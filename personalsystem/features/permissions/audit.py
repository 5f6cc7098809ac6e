"""
HTTP middleware writing an AuditLog row for every successful mutation.
"""
import json
from typing import Any
from starlette.requests import Request

from personalsystem.core import config
from personalsystem.core.database.engine import AsyncSessionLocal
from personalsystem.features.permissions.models import AuditLog
from personalsystem.features.users.auth import user_id_from_token
from personalsystem.utils import get_logger


log = get_logger(__name__)

AUDITED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
SENSITIVE_KEYS = ("password", "token", "secret", "authorization")
REDACTED = "[REDACTED]"

# Replaced in tests to point at the test database
session_factory = AsyncSessionLocal


def redact(value: Any) -> Any:
    """Recursively mask values whose key looks like a credential."""
    if isinstance(value, dict):
        return {
            key: REDACTED if any(s in str(key).lower() for s in SENSITIVE_KEYS) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


def should_audit(method: str, path: str) -> bool:
    if method not in AUDITED_METHODS or not path.startswith("/api/"):
        return False
    if path == "/api/health" or path.startswith("/api/auth/"):
        return False
    return True


def entity_from_path(path: str) -> tuple[str, str | None]:
    """``/api/employees/01H.../uprank`` -> ("employees", "01H...")."""
    segments = [segment for segment in path.split("/") if segment][1:]
    entity = segments[0] if segments else "unknown"
    entity_id = segments[1] if len(segments) > 1 else None
    return entity, entity_id


async def write_audit_log(**values: Any) -> None:
    try:
        async with session_factory() as session:
            session.add(AuditLog(**values))
            await session.commit()
    except Exception:
        log.exception("Failed to write audit log for %s", values.get("action"))


async def audit_middleware(request: Request, call_next):
    method = request.method
    path = request.url.path
    if not should_audit(method, path):
        return await call_next(request)

    body = None
    if request.headers.get("content-type", "").startswith("application/json"):
        raw = await request.body()
        if raw:
            try:
                body = redact(json.loads(raw))
            except ValueError:
                body = None

    response = await call_next(request)

    if response.status_code < 400:
        entity, entity_id = entity_from_path(path)
        token = request.cookies.get(config.COOKIE_NAME)
        authorization = request.headers.get("authorization", "")
        if not token and authorization.lower().startswith("bearer "):
            token = authorization[7:]
        await write_audit_log(
            user_id=user_id_from_token(token),
            action=f"{method} {path}",
            entity=entity,
            entity_id=entity_id,
            details={
                "method": method,
                "path": path,
                "query": dict(request.query_params),
                "body": body,
            },
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )

    return response
