"""
Pytest configuration and fixtures for BizSuite tests.

Provides fixtures for:
- Database session
- Test client
- Two tenants with admin and member users
- JWT tokens and authorization headers
"""

import os
from typing import AsyncGenerator, Dict, List, Tuple

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import selectinload
from sqlalchemy.pool import NullPool

from bizsuite.database import get_db
from bizsuite.main import app
from bizsuite.models import Organization, Permission, Role, User, UserRole
from bizsuite.models.base import Base
from bizsuite.security import create_access_token, create_refresh_token, hash_password

# Test database URL (use file-based SQLite for tests to ensure table persistence)
TEST_DATABASE_FILE = "test_db.sqlite"
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DATABASE_FILE}"

MEMBER_PERMISSIONS: List[Tuple[str, str]] = [
    ("crm", "read"),
    ("crm", "create"),
    ("crm", "update"),
    ("hr", "read"),
    ("finance", "read"),
    ("projects", "read"),
]

# HR clerk: maintains HR records but cannot approve leave
CLERK_PERMISSIONS: List[Tuple[str, str]] = [
    ("hr", "read"),
    ("hr", "create"),
    ("hr", "update"),
]


@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine."""
    # Remove old test database if exists
    if os.path.exists(TEST_DATABASE_FILE):
        os.remove(TEST_DATABASE_FILE)

    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    # Clean up test database file
    if os.path.exists(TEST_DATABASE_FILE):
        os.remove(TEST_DATABASE_FILE)


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session


async def create_organization(db: AsyncSession, name: str, slug: str) -> Organization:
    org = Organization(
        name=name,
        slug=slug,
        plan="professional",
        contact_email=f"admin@{slug}.com",
        contact_name="Test Admin",
        max_users=50,
        is_active=True,
    )
    db.add(org)
    await db.commit()
    await db.refresh(org)
    return org


async def create_role(
    db: AsyncSession, organization: Organization, slug: str, grants: List[Tuple[str, str]]
) -> Role:
    role = Role(
        organization_id=organization.id,
        name=slug.capitalize(),
        slug=slug,
        description=f"{slug.capitalize()} role",
        is_system_role=True,
    )
    db.add(role)
    await db.flush()

    for resource, action in grants:
        db.add(Permission(role_id=role.id, resource=resource, action=action))

    await db.commit()
    await db.refresh(role)
    return role


async def create_user(
    db: AsyncSession,
    organization: Organization,
    email: str,
    password: str,
    role: Role = None,
    is_active: bool = True,
) -> User:
    user = User(
        organization_id=organization.id,
        email=email,
        full_name=email.split("@")[0].capitalize() + " User",
        hashed_password=hash_password(password),
        is_active=is_active,
        is_verified=True,
    )
    db.add(user)
    await db.flush()

    if role is not None:
        db.add(UserRole(user_id=user.id, role_id=role.id))

    await db.commit()

    # Re-fetch user with eager loading of relationships
    stmt = (
        select(User)
        .options(
            selectinload(User.organization),
            selectinload(User.roles).selectinload(UserRole.role).selectinload(Role.permissions),
        )
        .where(User.id == user.id)
    )
    result = await db.execute(stmt)
    return result.scalar_one()


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(
        user_id=user.id, organization_id=user.organization_id, email=user.email
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_organization(test_db: AsyncSession) -> Organization:
    """Create test organization."""
    return await create_organization(test_db, "Test Organization", "test-org")


@pytest_asyncio.fixture
async def other_organization(test_db: AsyncSession) -> Organization:
    """Second tenant, for isolation tests."""
    return await create_organization(test_db, "Other Organization", "other-org")


@pytest_asyncio.fixture
async def test_role_admin(test_db: AsyncSession, test_organization: Organization) -> Role:
    """Create admin role with all permissions."""
    return await create_role(test_db, test_organization, "admin", [("*", "*")])


@pytest_asyncio.fixture
async def test_role_member(test_db: AsyncSession, test_organization: Organization) -> Role:
    """Create member role with limited permissions."""
    return await create_role(test_db, test_organization, "member", MEMBER_PERMISSIONS)


@pytest_asyncio.fixture
async def other_role_admin(test_db: AsyncSession, other_organization: Organization) -> Role:
    return await create_role(test_db, other_organization, "admin", [("*", "*")])


@pytest_asyncio.fixture
async def test_user_admin(
    test_db: AsyncSession, test_organization: Organization, test_role_admin: Role
) -> User:
    """Create test admin user."""
    return await create_user(test_db, test_organization, "admin@testorg.com", "admin12345", test_role_admin)


@pytest_asyncio.fixture
async def test_user_member(
    test_db: AsyncSession, test_organization: Organization, test_role_member: Role
) -> User:
    """Create test member user."""
    return await create_user(test_db, test_organization, "member@testorg.com", "member12345", test_role_member)


@pytest_asyncio.fixture
async def test_user_inactive(test_db: AsyncSession, test_organization: Organization) -> User:
    """Create inactive test user."""
    return await create_user(
        test_db, test_organization, "inactive@testorg.com", "inactive12345", is_active=False
    )


@pytest_asyncio.fixture
async def other_user_admin(
    test_db: AsyncSession, other_organization: Organization, other_role_admin: Role
) -> User:
    """Admin of the second tenant."""
    return await create_user(test_db, other_organization, "admin@otherorg.com", "other12345", other_role_admin)


@pytest_asyncio.fixture
async def admin_access_token(test_user_admin: User) -> str:
    """Create access token for admin user."""
    return create_access_token(
        user_id=test_user_admin.id,
        organization_id=test_user_admin.organization_id,
        email=test_user_admin.email,
    )


@pytest_asyncio.fixture
async def admin_refresh_token(test_user_admin: User) -> str:
    """Create refresh token for admin user."""
    return create_refresh_token(user_id=test_user_admin.id)


@pytest_asyncio.fixture
async def admin_headers(admin_access_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {admin_access_token}"}


@pytest_asyncio.fixture
async def member_headers(test_user_member: User) -> Dict[str, str]:
    return auth_headers(test_user_member)


@pytest_asyncio.fixture
async def other_headers(other_user_admin: User) -> Dict[str, str]:
    return auth_headers(other_user_admin)


@pytest_asyncio.fixture
async def clerk_headers(test_db: AsyncSession, test_organization: Organization) -> Dict[str, str]:
    role = await create_role(test_db, test_organization, "clerk", CLERK_PERMISSIONS)
    clerk = await create_user(test_db, test_organization, "clerk@testorg.com", "clerk12345", role)
    return auth_headers(clerk)


@pytest_asyncio.fixture
async def client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database session override."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
