"""
Pytest configuration and fixtures.
"""

import uuid
from decimal import Decimal
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from omnigo.api.deps import get_pi_service, get_task_scheduler
from omnigo.database import Base, get_db
import omnigo.models  # noqa: F401  (register tables)
from omnigo.fsm.states import PaymentStatus, StoreType, OrderStatus
from omnigo.main import app
from omnigo.models.order import Order
from omnigo.models.payment import PiPayment
from omnigo.models.store import Store, Product
from omnigo.models.user import User, UserProfile
from omnigo.redis import get_redis
from omnigo.services.payout_scheduler import ScheduledPayout
from omnigo.services.pi_network_service import PiNetworkService

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for a test."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


class RecordingScheduler:
    """PayoutScheduler that only records what was asked of it."""

    def __init__(self):
        self.scheduled: List[ScheduledPayout] = []

    def schedule_payout(self, store_id, order_id, amount, delay_seconds=0):
        self.scheduled.append(ScheduledPayout(store_id, order_id, Decimal(amount), delay_seconds))


class FakeRedis:
    """Enough of redis.asyncio.Redis for completion claims."""

    def __init__(self):
        self.store = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def delete(self, key):
        self.store.pop(key, None)
        return 1


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def api_client(db, scheduler, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """App client wired to the test session, mock-mode Pi and a recording scheduler."""
    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_pi_service] = lambda: PiNetworkService(api_key="")
    app.dependency_overrides[get_task_scheduler] = lambda: scheduler
    app.dependency_overrides[get_redis] = lambda: fake_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Create a user with a profile."""
    async def _make(roles=None, pi_uid=None, first_name=None, token=None) -> User:
        user = User(token_identifier=token or f"token-{uuid.uuid4()}")
        db.add(user)
        await db.flush()
        db.add(UserProfile(
            user_id=user.id,
            roles=roles or [],
            pi_uid=pi_uid,
            first_name=first_name,
        ))
        await db.flush()
        return user
    return _make


@pytest.fixture
def make_store(db):
    async def _make(owner: User, store_type=StoreType.GROCERY, pi_uid="owner-pi-uid", name="Corner Shop") -> Store:
        store = Store(
            owner_id=owner.id,
            name=name,
            store_type=store_type.value,
            pi_uid=pi_uid,
            delivery_time="20-30 min",
        )
        db.add(store)
        await db.flush()
        return store
    return _make


@pytest.fixture
def make_product(db):
    async def _make(store: Store, quantity=10, options=None, price="5", name="Widget") -> Product:
        product = Product(
            store_id=store.id,
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            quantity=quantity,
            options=options,
        )
        db.add(product)
        await db.flush()
        return product
    return _make


@pytest.fixture
def make_payment(db):
    """Create an APPROVED payment record and commit it."""
    async def _make(user: User, metadata: dict, amount="10", payment_id=None) -> PiPayment:
        record = PiPayment(
            payment_id=payment_id or f"pay-{uuid.uuid4().hex[:12]}",
            user_id=user.id,
            amount=Decimal(amount),
            memo="Order payment",
            payment_metadata=metadata,
            status=PaymentStatus.APPROVED.value,
        )
        db.add(record)
        await db.commit()
        return record
    return _make


@pytest.fixture
def make_order(db):
    async def _make(
        customer: User,
        store: Store,
        status=OrderStatus.CONFIRMED,
        total="10",
        driver_id=None,
        pi_payment_id=None,
    ) -> Order:
        order = Order(
            user_id=customer.id,
            store_id=store.id,
            store_name=store.name,
            items=[],
            total_amount=Decimal(total),
            status=status.value,
            driver_id=driver_id,
            pi_payment_id=pi_payment_id or f"pay-{uuid.uuid4().hex[:12]}",
        )
        db.add(order)
        await db.flush()
        return order
    return _make
