"""
Tests for reserving promo slots and expiring stale reservations.
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from promohub.core.errors import ReservationError
from promohub.models import AuditLog, Promo, PromoStatus, Reservation, ReservationStatus, User, UserRole
from promohub.services.audit_service import RESERVATION_CREATED, RESERVATIONS_EXPIRED
from promohub.services.reservation_service import ReservationService


async def reload(db, model, obj_id):
    result = await db.execute(
        select(model).where(model.id == obj_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.fixture
def service(db_session) -> ReservationService:
    return ReservationService(db_session)


@pytest.fixture
async def bob(db_session) -> User:
    user = User(email="bob@example.com", name="Bob", role=UserRole.USER)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.mark.asyncio
class TestReservePromo:
    """Test slot reservation."""

    async def test_reserve(self, service, db_session, bob, promo):
        now = datetime(2026, 10, 1, 12, 0, 0)
        promo.expires_at = now + timedelta(days=30)
        await db_session.commit()

        reservation = await service.reserve_promo(bob.id, promo.id, now=now)

        assert reservation.user_id == bob.id
        assert reservation.promo_id == promo.id
        assert reservation.status == ReservationStatus.ACTIVE
        assert reservation.expires_at == now + timedelta(days=15)

        promo = await reload(db_session, Promo, promo.id)
        assert promo.available_slots == 3

        result = await db_session.execute(select(AuditLog).where(AuditLog.action == RESERVATION_CREATED))
        log = result.scalar_one()
        assert log.entity_id == str(reservation.id)
        assert log.user_id == bob.id
        assert log.extra_data["promo_id"] == str(promo.id)

    async def test_custom_ttl(self, service, bob, promo):
        now = datetime.utcnow()
        reservation = await service.reserve_promo(bob.id, promo.id, ttl_days=2, now=now)
        assert reservation.expires_at == now + timedelta(days=2)

    async def test_unknown_promo(self, service, bob):
        with pytest.raises(ReservationError) as exc_info:
            await service.reserve_promo(bob.id, uuid4())
        assert exc_info.value.reason == "promo_not_found"
        assert exc_info.value.status_code == 404

    @pytest.mark.parametrize("status", [PromoStatus.DRAFT, PromoStatus.DISABLED, PromoStatus.EXPIRED])
    async def test_inactive_promo(self, service, db_session, bob, promo, status):
        promo.status = status
        await db_session.commit()

        with pytest.raises(ReservationError) as exc_info:
            await service.reserve_promo(bob.id, promo.id)
        assert exc_info.value.reason == "promo_not_active"
        assert exc_info.value.status_code == 400

    async def test_promo_past_expiry(self, service, db_session, bob, promo):
        promo.expires_at = datetime.utcnow() - timedelta(minutes=1)
        await db_session.commit()

        with pytest.raises(ReservationError) as exc_info:
            await service.reserve_promo(bob.id, promo.id)
        assert exc_info.value.reason == "promo_not_active"

    async def test_already_reserved(self, service, customer, reservation, promo):
        with pytest.raises(ReservationError) as exc_info:
            await service.reserve_promo(customer.id, promo.id)
        assert exc_info.value.reason == "already_reserved"
        assert exc_info.value.status_code == 409

    async def test_sold_out(self, service, db_session, bob, promo):
        promo.available_slots = 0
        await db_session.commit()

        with pytest.raises(ReservationError) as exc_info:
            await service.reserve_promo(bob.id, promo.id)
        assert exc_info.value.reason == "sold_out"
        assert exc_info.value.status_code == 409

    async def test_last_slot(self, service, db_session, bob, customer, promo):
        promo.available_slots = 1
        await db_session.commit()

        await service.reserve_promo(bob.id, promo.id)

        with pytest.raises(ReservationError) as exc_info:
            await service.reserve_promo(customer.id, promo.id)
        assert exc_info.value.reason == "sold_out"

        promo = await reload(db_session, Promo, promo.id)
        assert promo.available_slots == 0


@pytest.mark.asyncio
class TestExpireReservations:
    """Test the expiry sweep."""

    async def test_expires_and_releases_slot(self, service, db_session, reservation, promo):
        now = reservation.expires_at + timedelta(seconds=1)

        expired = await service.expire_old_reservations(now=now)

        assert expired == 1
        reservation = await reload(db_session, Reservation, reservation.id)
        assert reservation.status == ReservationStatus.EXPIRED
        promo = await reload(db_session, Promo, promo.id)
        assert promo.available_slots == 5

        result = await db_session.execute(select(AuditLog).where(AuditLog.action == RESERVATIONS_EXPIRED))
        log = result.scalar_one()
        assert log.extra_data["count"] == 1
        assert log.extra_data["reservation_ids"] == [str(reservation.id)]

    async def test_leaves_unexpired_reservations(self, service, db_session, reservation):
        expired = await service.expire_old_reservations(now=reservation.expires_at - timedelta(seconds=1))

        assert expired == 0
        reservation = await reload(db_session, Reservation, reservation.id)
        assert reservation.status == ReservationStatus.ACTIVE

        result = await db_session.execute(select(AuditLog).where(AuditLog.action == RESERVATIONS_EXPIRED))
        assert result.scalar_one_or_none() is None

    async def test_skips_redeemed_reservations(self, service, db_session, reservation, promo):
        reservation.status = ReservationStatus.REDEEMED
        await db_session.commit()

        expired = await service.expire_old_reservations(now=reservation.expires_at + timedelta(days=1))

        assert expired == 0
        promo = await reload(db_session, Promo, promo.id)
        assert promo.available_slots == 4

    async def test_slots_never_exceed_total(self, service, db_session, reservation, promo):
        promo.available_slots = promo.total_slots
        await db_session.commit()

        expired = await service.expire_old_reservations(now=reservation.expires_at + timedelta(seconds=1))

        assert expired == 1
        promo = await reload(db_session, Promo, promo.id)
        assert promo.available_slots == promo.total_slots

    async def test_expired_reservation_can_be_reserved_again(self, service, db_session, customer, reservation, promo):
        await service.expire_old_reservations(now=reservation.expires_at + timedelta(seconds=1))

        renewed = await service.reserve_promo(customer.id, promo.id)

        assert renewed.id != reservation.id
        assert renewed.status == ReservationStatus.ACTIVE


@pytest.mark.asyncio
async def test_list_user_reservations(service, customer, bob, reservation, promo):
    await service.reserve_promo(bob.id, promo.id)

    mine = await service.list_user_reservations(customer.id)

    assert [r.id for r in mine] == [reservation.id]
