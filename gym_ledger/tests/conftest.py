"""
Centralized Test Configuration.
"""

import pytest
from datetime import date
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from gym_ledger.app.main import app
from gym_ledger.app.db.session import get_db, Base
from gym_ledger.app.core.jwt import create_access_token
from gym_ledger.app.models.member import Member
from gym_ledger.app.models.staff import Staff
from gym_ledger.app.models.membership_type import MembershipType
from gym_ledger.app.models.pt_package import PTPackage

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Apply overrides once for the session."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    """Session handed to the services under test."""
    async with TestingSessionLocal() as session:
        yield session


async def _persist(obj):
    # Fixture rows live in their own session so a service rollback never expires them
    async with TestingSessionLocal() as session:
        session.add(obj)
        await session.commit()
        await session.refresh(obj)
    return obj


@pytest.fixture
def make_member():
    counter = {"n": 0}

    async def factory(name: str = None, phone: str = None, **kwargs) -> Member:
        counter["n"] += 1
        n = counter["n"]
        return await _persist(Member(
            member_number=kwargs.pop("member_number", f"M-{n:04d}"),
            name=name or f"Member {n}",
            phone=phone or f"010-0000-{n:04d}",
            join_date=date(2024, 1, 1),
            **kwargs
        ))

    return factory


@pytest.fixture
def make_staff():
    counter = {"n": 0}

    async def factory(name: str = None, can_manage_payments: bool = True, **kwargs) -> Staff:
        counter["n"] += 1
        n = counter["n"]
        return await _persist(Staff(
            staff_number=kwargs.pop("staff_number", f"S-{n:03d}"),
            name=name or f"Staff {n}",
            hire_date=date(2023, 1, 1),
            can_manage_payments=can_manage_payments,
            **kwargs
        ))

    return factory


@pytest.fixture
def make_membership_type():
    async def factory(name: str = "1 Month", duration_months: int = 1, price: float = 120000.0, **kwargs) -> MembershipType:
        return await _persist(MembershipType(name=name, duration_months=duration_months, price=price, **kwargs))

    return factory


@pytest.fixture
def make_pt_package():
    async def factory(name: str = "PT 10", session_count: int = 10, price: float = 500000.0,
                      validity_days: int = 60, **kwargs) -> PTPackage:
        return await _persist(PTPackage(
            name=name, session_count=session_count, price=price, validity_days=validity_days, **kwargs
        ))

    return factory


@pytest.fixture
async def member(make_member):
    return await make_member(name="Kim Minsu", phone="010-1234-5678")


@pytest.fixture
async def cashier(make_staff):
    """Active staff member allowed to manage payments."""
    return await make_staff(name="Lee Cashier")


@pytest.fixture
async def membership_plan(make_membership_type):
    return await make_membership_type()


@pytest.fixture
async def pt_plan(make_pt_package):
    return await make_pt_package()


@pytest.fixture
def auth_headers():
    """Bearer header builder for a staff member."""
    def build(staff: Staff) -> dict:
        token = create_access_token(data={"sub": staff.staff_number, "staff_id": staff.id})
        return {"Authorization": f"Bearer {token}"}

    return build
