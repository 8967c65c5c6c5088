"""
Pytest configuration and fixtures for NexusMart tests.

Service and route tests run against an in-memory SQLite database through
aiosqlite; each test gets a fresh schema.
"""
import os
import pytest
import pytest_asyncio
from typing import AsyncGenerator, List

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ALERT_CLEANUP_ENABLED"] = "false"
os.environ["NOTIFICATION_PROVIDER"] = "log"

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db, enable_sqlite_foreign_keys
from app.core.security import create_access_token
from app.models import User, Product, StockAlert
from app.services.notification_sender import NotificationSender, RestockNotice, SendResult


class RecordingSender(NotificationSender):
    """Sender double that keeps every notice it is handed."""

    name = "recording"

    def __init__(self, result: SendResult = None, error: Exception = None):
        self.batches: List[List[RestockNotice]] = []
        self.result = result
        self.error = error
        self.closed = False

    async def send_restock_notices(self, notices):
        self.batches.append(list(notices))
        if self.error is not None:
            raise self.error
        return self.result or SendResult(success=True, sent_count=len(notices))

    async def close(self):
        self.closed = True

    @property
    def notices(self) -> List[RestockNotice]:
        return [n for batch in self.batches for n in batch]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


async def make_user(db: AsyncSession, email: str, name: str = "Shopper", is_admin: bool = False) -> User:
    user = User(email=email, name=name, is_admin=is_admin, is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_product(db: AsyncSession, sku: str = "NX-1", **overrides) -> Product:
    data = {
        "sku": sku,
        "name": f"Product {sku}",
        "category": "gadgets",
        "price": 19.99,
        "stock": 0,
        "status": "out_of_stock",
    }
    data.update(overrides)
    product = Product(**data)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@pytest_asyncio.fixture
async def user(db) -> User:
    return await make_user(db, "ana@example.com", name="Ana")


@pytest_asyncio.fixture
async def other_user(db) -> User:
    return await make_user(db, "ben@example.com", name="Ben")


@pytest_asyncio.fixture
async def admin(db) -> User:
    return await make_user(db, "admin@nexusmart.com", name="Admin", is_admin=True)


@pytest_asyncio.fixture
async def product(db) -> Product:
    """Out-of-stock product, the usual subscription target."""
    return await make_product(db, "NX-100", name="Nexus Headphones")


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


async def count_alerts(db: AsyncSession, product_id: int) -> int:
    return await db.scalar(
        select(func.count(StockAlert.id)).where(StockAlert.product_id == product_id)
    )
