"""Shared fixtures: in-memory database, API client and user factories.

Every test gets a fresh in-memory SQLite database. The app's get_db
dependency and the module-level session factories used outside requests
(audit middleware, WebSocket auth) all point at it.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["ENABLE_SCHEDULER"] = "0"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from personalsystem.core import config
from personalsystem.core.database.base import Base
from personalsystem.core.database.engine import get_db, import_models
from personalsystem.core.limiter import limiter
from personalsystem.features.employees.models import Employee
from personalsystem.features.employees.ranks import rank_for_level
from personalsystem.features.live import routes as live_routes
from personalsystem.features.permissions import audit
from personalsystem.features.permissions.models import Permission, Role
from personalsystem.features.robbery.service import invalidate_employee_cache
from personalsystem.features.users.auth import create_access_token
from personalsystem.features.users.dependencies import invalidate_user_cache
from personalsystem.features.users.models import User
from personalsystem.main import app


@pytest.fixture
async def test_engine():
    import_models()
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Reset process-wide caches and keep uploads inside the test's tmp dir."""
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    invalidate_user_cache()
    invalidate_employee_cache()
    limiter.reset()
    yield
    invalidate_user_cache()
    invalidate_employee_cache()


@pytest.fixture
async def client(test_session_factory, monkeypatch):
    """FastAPI test client with every database entry point on the test DB."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(audit, "session_factory", test_session_factory)
    monkeypatch.setattr(live_routes, "session_factory", test_session_factory)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def fetch(test_session_factory):
    """Load a row through a fresh session, bypassing any identity map."""
    async def _fetch(model, **filters):
        async with test_session_factory() as session:
            result = await session.execute(select(model).filter_by(**filters))
            return result.scalars().first()

    return _fetch


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.discord_id)}"}


@pytest.fixture
def auth_headers():
    return bearer


@pytest.fixture
def make_user(test_db):
    """Create a user whose single role grants ``permissions``."""
    counter = {"n": 0}

    async def _make_user(*permissions: str, username: str | None = None, level: int = 10, is_active: bool = True):
        counter["n"] += 1
        n = counter["n"]
        granted = []
        for name in permissions:
            result = await test_db.execute(select(Permission).where(Permission.name == name))
            permission = result.scalar_one_or_none()
            if permission is None:
                permission = Permission(name=name, category=name.split(".")[0])
                test_db.add(permission)
            granted.append(permission)

        role = Role(name=f"role-{n}", display_name=f"Role {n}", level=level, permissions=granted)
        user = User(
            discord_id=f"10000000000000{n:04d}",
            username=username or f"user{n}",
            display_name=username or f"User {n}",
            is_active=is_active,
            roles=[role],
        )
        test_db.add(user)
        await test_db.commit()
        return user

    return _make_user


@pytest.fixture
async def admin(make_user):
    return await make_user("admin.full", username="admin", level=100)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def make_employee(test_db, make_user):
    """Create an employee (and its user unless one is given)."""
    async def _make_employee(
        user: User | None = None,
        rank_level: int = 1,
        badge_number: str | None = None,
        department: str = "Patrol",
        status: str = "ACTIVE",
    ):
        if user is None:
            user = await make_user()
        employee = Employee(
            user_id=user.id,
            rank=rank_for_level(rank_level),
            rank_level=rank_level,
            badge_number=badge_number,
            department=department,
            status=status,
        )
        test_db.add(employee)
        await test_db.commit()
        return employee

    return _make_employee
