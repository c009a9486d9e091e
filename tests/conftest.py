"""
Test Configuration and Fixtures

Shared fixtures for the school management API tests.
Provides an isolated in-memory database, an HTTP client bound to it, tenants
and one account per role.
"""

import os

# Must be set before the application modules read their configuration
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["JWT_SECRET"] = "test-secret"

from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database.base import Base
from app.core.database.engine import get_db, import_models
from app.features.permissions.defaults import DEFAULT_PERMISSION_TABLE
from app.features.roles.hierarchy import DEFAULT_HIERARCHY, Role
from app.features.tenants.models import Tenant
from app.features.users.auth import create_access_token, hash_password
from app.features.users.models import User
from app.main import app


PASSWORD = "Correct-Horse-9"


# ==================== Database Fixtures ====================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async SQLite engine for testing."""
    import_models()
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async_session = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# ==================== Application Fixtures ====================


@pytest_asyncio.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with get_db bound to the test session."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth_headers() -> Callable[[User], dict]:
    """Build the bearer header for an account."""
    def _headers(user: User) -> dict:
        token = create_access_token(user.id, user.tenant_id, user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ==================== Tenant Fixtures ====================


async def _create_tenant(db: AsyncSession, name: str, subdomain: str) -> Tenant:
    tenant = Tenant(name=name, subdomain=subdomain)
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


@pytest_asyncio.fixture(scope="function")
async def tenant(db_session) -> Tenant:
    return await _create_tenant(db_session, "Greenfield High", "greenfield")


@pytest_asyncio.fixture(scope="function")
async def other_tenant(db_session) -> Tenant:
    return await _create_tenant(db_session, "Riverside Academy", "riverside")


# ==================== User Fixtures ====================


@pytest.fixture(scope="function")
def make_user(db_session) -> Callable:
    """
    Factory creating an account with the role's level, scope and grants.

    Usage:
        teacher = await make_user(Role.TEACHER, tenant.id, email="t@greenfield.edu")
    """
    counter = {"n": 0}

    async def _make_user(
        role: Role,
        tenant_id: str,
        email: Optional[str] = None,
        created_by: Optional[User] = None,
        managed_tenants: Optional[list[str]] = None,
        password: str = PASSWORD,
        **extra,
    ) -> User:
        counter["n"] += 1
        user = User(
            tenant_id=tenant_id,
            first_name=role.value.replace("_", " ").title(),
            last_name=f"Number{counter['n']}",
            email=email or f"{role.value}{counter['n']}@greenfield.edu",
            password_hash=hash_password(password),
            role=role,
            role_level=DEFAULT_HIERARCHY.level(role),
            role_scope=DEFAULT_HIERARCHY.resolve_scope(role),
            permissions=DEFAULT_PERMISSION_TABLE.defaults_for(role),
            managed_tenants=managed_tenants or [],
            created_by_id=created_by.id if created_by else None,
            **extra,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture(scope="function")
async def super_admin(make_user, tenant) -> User:
    return await make_user(Role.SUPER_ADMIN, tenant.id, email="root@greenfield.edu")


@pytest_asyncio.fixture(scope="function")
async def manager(make_user, tenant, super_admin) -> User:
    return await make_user(
        Role.MANAGER, tenant.id, email="manager@greenfield.edu",
        created_by=super_admin, managed_tenants=[tenant.id],
    )


@pytest_asyncio.fixture(scope="function")
async def tenant_admin(make_user, tenant, super_admin) -> User:
    return await make_user(Role.TENANT_ADMIN, tenant.id, email="principal@greenfield.edu", created_by=super_admin)


@pytest_asyncio.fixture(scope="function")
async def admin(make_user, tenant, tenant_admin) -> User:
    return await make_user(Role.ADMIN, tenant.id, email="office@greenfield.edu", created_by=tenant_admin)


@pytest_asyncio.fixture(scope="function")
async def teacher(make_user, tenant, admin) -> User:
    return await make_user(Role.TEACHER, tenant.id, email="teacher@greenfield.edu", created_by=admin)


@pytest_asyncio.fixture(scope="function")
async def student(make_user, tenant, admin) -> User:
    return await make_user(Role.STUDENT, tenant.id, email="student@greenfield.edu", created_by=admin)


@pytest_asyncio.fixture(scope="function")
async def other_admin(make_user, other_tenant, super_admin) -> User:
    return await make_user(Role.ADMIN, other_tenant.id, email="office@riverside.edu", created_by=super_admin)
