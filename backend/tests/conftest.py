"""Test fixtures — in-memory SQLite database, services and FastAPI test client."""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wattwatch.database import get_db
from wattwatch.main import create_app
from wattwatch.models.base import Base
from wattwatch.models.user import User
from wattwatch.services import (
    get_auth_service,
    get_device_service,
    get_home_service,
    init_services,
    shutdown_services,
)
from wattwatch.utils.hashing import hash_password

TEST_PASSWORD = "secret-pass"

DEFAULT_SLABS = [
    {"min_units": 0, "max_units": 100, "rate": 3.00},
    {"min_units": 101, "max_units": 300, "rate": 5.50},
    {"min_units": 301, "max_units": 500, "rate": 7.00},
    {"min_units": 501, "max_units": None, "rate": 8.50},
]


@pytest_asyncio.fixture
async def db_session():
    """Provide an async in-memory SQLite session for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def services(db_session: AsyncSession):
    """Wire the service registry without the background scheduler."""
    await init_services(db_session, start_scheduler=False)
    yield
    await shutdown_services()


@pytest_asyncio.fixture
async def app(db_session: AsyncSession, services):
    app = create_app()

    async def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    return app


@pytest_asyncio.fixture
async def client(app):
    """Provide an async test client with overridden DB dependency."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def make_user(db: AsyncSession, email: str, role: str = "user") -> User:
    user = User(
        id=str(uuid.uuid4()),
        name=email.split("@")[0].title(),
        email=email,
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
        is_active=1,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def user(db_session, services) -> User:
    return await make_user(db_session, "alice@example.com")


@pytest_asyncio.fixture
async def other_user(db_session, services) -> User:
    return await make_user(db_session, "bob@example.com")


@pytest_asyncio.fixture
async def admin_user(db_session, services) -> User:
    return await make_user(db_session, "root@example.com", role="admin")


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {get_auth_service().create_token(user)}"}


@pytest.fixture
def auth_headers(user) -> dict:
    return headers_for(user)


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def flat_home(db_session, user) -> dict:
    """Home billed at a flat 6/kWh with no fixed charges or tax."""
    return await get_home_service().create_home(db_session, user, {
        "name": "Flat Home",
        "zip_code": "560001",
        "tariff_structure": "flat",
        "electricity_rate": 6.0,
        "fixed_charges": 0.0,
        "sanctioned_load_kw": 0.0,
        "per_kw_charge": 0.0,
        "tax_percentage": 0.0,
    })


@pytest_asyncio.fixture
async def slab_home(db_session, user) -> dict:
    return await get_home_service().create_home(db_session, user, {
        "name": "Slab Home",
        "zip_code": "560002",
        "tariff_structure": "slab",
        "tariff_slabs": DEFAULT_SLABS,
    })


@pytest_asyncio.fixture
async def lamp(db_session, user, flat_home) -> dict:
    """A 100 W device in the flat-rate home (starts off)."""
    return await get_device_service().create_device(db_session, user, {
        "home_id": flat_home["id"],
        "name": "Desk Lamp",
        "type": "lighting",
        "wattage": 100,
    })
