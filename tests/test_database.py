"""
Tests for engine construction and the request session dependency.
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import NullPool, StaticPool

from promohub.core.database import build_engine, get_db
from promohub.models import Reservation, ReservationStatus


@pytest.mark.asyncio
class TestBuildEngine:
    """Test per-backend engine settings."""

    async def test_in_memory_sqlite_shares_one_connection(self):
        engine = build_engine("sqlite+aiosqlite:///:memory:")
        try:
            assert isinstance(engine.pool, StaticPool)
        finally:
            await engine.dispose()

    async def test_file_sqlite_uses_fresh_connections(self, tmp_path):
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'promohub.db'}")
        try:
            assert isinstance(engine.pool, NullPool)
            async with engine.connect() as conn:
                assert (await conn.execute(text("PRAGMA foreign_keys"))).scalar() == 1
        finally:
            await engine.dispose()

    async def test_sqlite_enforces_foreign_keys(self, async_engine):
        async with async_engine.connect() as conn:
            assert (await conn.execute(text("PRAGMA foreign_keys"))).scalar() == 1

    async def test_reservation_for_unknown_user_is_refused(self, db_session, promo):
        db_session.add(
            Reservation(
                user_id=uuid4(),
                promo_id=promo.id,
                status=ReservationStatus.ACTIVE,
                expires_at=datetime.utcnow() + timedelta(days=1),
            )
        )

        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()


@pytest.mark.asyncio
async def test_get_db_rolls_back_on_error(monkeypatch):
    rolled_back = []

    class FakeSession:
        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc_info):
            return False

        async def rollback(self):
            rolled_back.append(True)

    monkeypatch.setattr("promohub.core.database.async_session_maker", FakeSession)

    dependency = get_db()
    session = await dependency.__anext__()
    assert isinstance(session, FakeSession)

    with pytest.raises(RuntimeError):
        await dependency.athrow(RuntimeError("request failed"))
    assert rolled_back == [True]
