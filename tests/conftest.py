"""
Pytest configuration and shared fixtures.

This module provides common test fixtures for database sessions, test
clients, users, promos, reservations and a QR codec with a fixed secret.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promohub.core.auth import create_access_token
from promohub.core.database import Base, build_engine, get_db
from promohub.main import app
from promohub.models import (
    Promo,
    PromoStatus,
    Reservation,
    ReservationStatus,
    User,
    UserRole,
    Wallet,
)
from promohub.qr.token import QrTokenCodec
from promohub.services.redemption_service import get_qr_codec

# Test database URL (in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_QR_SECRET = "test-qr-secret"
TEST_QR_TTL_MINUTES = 10


@pytest.fixture(scope="function")
async def async_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def codec() -> QrTokenCodec:
    """QR codec with a fixed test secret."""
    return QrTokenCodec(TEST_QR_SECRET, TEST_QR_TTL_MINUTES)


@pytest.fixture(scope="function")
async def client(db_session, codec) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client bound to the test session and codec."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_qr_codec] = lambda: codec

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, email: str, name: str, role: UserRole) -> User:
    user = User(email=email, name=name, role=role)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def customer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "alice@example.com", "Alice", UserRole.USER)


@pytest.fixture
async def merchant(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "pizza@example.com", "Pizza Place", UserRole.MERCHANT)


@pytest.fixture
async def other_merchant(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "burger@example.com", "Burger Barn", UserRole.MERCHANT)


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@example.com", "Admin", UserRole.ADMIN)


@pytest.fixture
async def wallet(db_session: AsyncSession, customer: User) -> Wallet:
    wallet = Wallet(user_id=customer.id, balance=100.0)
    db_session.add(wallet)
    await db_session.commit()
    await db_session.refresh(wallet)
    return wallet


@pytest.fixture
async def promo(db_session: AsyncSession, merchant: User) -> Promo:
    promo = Promo(
        merchant_id=merchant.id,
        title="Half-price pizza",
        description="Any large pizza",
        original_price=40.0,
        discounted_price=20.0,
        cashback_percent=10.0,
        total_slots=5,
        available_slots=4,
        status=PromoStatus.ACTIVE,
        activated_at=datetime.utcnow(),
        expires_at=datetime.utcnow() + timedelta(days=30),
    )
    db_session.add(promo)
    await db_session.commit()
    await db_session.refresh(promo)
    return promo


@pytest.fixture
async def reservation(db_session: AsyncSession, customer: User, promo: Promo) -> Reservation:
    reservation = Reservation(
        user_id=customer.id,
        promo_id=promo.id,
        status=ReservationStatus.ACTIVE,
        expires_at=datetime.utcnow() + timedelta(days=15),
    )
    db_session.add(reservation)
    await db_session.commit()
    await db_session.refresh(reservation)
    return reservation


def bearer_headers(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id), "user_id": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user."""
    return bearer_headers
