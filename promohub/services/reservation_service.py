"""
Reservation service.

Users hold a promo slot by reserving it; the reservation is the prerequisite
for minting a QR redemption token. Slots are taken with a conditional
decrement so a promo can never be oversold, and reservations that run past
their expiry give their slot back.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.config import settings
from promohub.core.errors import ReservationError
from promohub.models.enums import PromoStatus, ReservationStatus
from promohub.models.promos import Promo, Reservation
from promohub.services.audit_service import (
    RESERVATION_CREATED,
    RESERVATIONS_EXPIRED,
    AuditService,
)

logger = logging.getLogger(__name__)


class ReservationService:
    """Service for reserving promo slots and expiring stale holds."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def reserve_promo(
        self,
        user_id: UUID,
        promo_id: UUID,
        ttl_days: int | None = None,
        now: datetime | None = None,
    ) -> Reservation:
        """
        Reserve one slot of a promo for a user.

        Args:
            user_id: User taking the slot
            promo_id: Promo to reserve
            ttl_days: Reservation lifetime (defaults to settings)
            now: Current time, naive UTC

        Returns:
            The new ACTIVE reservation

        Raises:
            ReservationError: promo_not_found, promo_not_active,
                already_reserved or sold_out
        """
        now = now or datetime.utcnow()
        ttl_days = ttl_days or settings.reservation_ttl_days

        result = await self.db.execute(select(Promo).where(Promo.id == promo_id))
        promo = result.scalar_one_or_none()
        if not promo:
            raise ReservationError("Promo not found", reason="promo_not_found", status_code=404)
        if promo.status != PromoStatus.ACTIVE or promo.expires_at <= now:
            raise ReservationError("Promo is not active", reason="promo_not_active")

        result = await self.db.execute(
            select(Reservation.id).where(
                Reservation.user_id == user_id,
                Reservation.promo_id == promo_id,
                Reservation.status == ReservationStatus.ACTIVE,
            )
        )
        if result.first() is not None:
            raise ReservationError(
                "Promo already reserved", reason="already_reserved", status_code=409
            )

        result = await self.db.execute(
            update(Promo)
            .where(
                Promo.id == promo_id,
                Promo.status == PromoStatus.ACTIVE,
                Promo.available_slots > 0,
            )
            .values(available_slots=Promo.available_slots - 1)
        )
        if result.rowcount == 0:
            raise ReservationError("Promo is sold out", reason="sold_out", status_code=409)

        reservation = Reservation(
            user_id=user_id,
            promo_id=promo_id,
            status=ReservationStatus.ACTIVE,
            expires_at=now + timedelta(days=ttl_days),
        )
        self.db.add(reservation)

        try:
            await self.db.commit()
            await self.db.refresh(reservation)
        except Exception as e:
            logger.error(f"Failed to reserve promo {promo_id}: {e}")
            await self.db.rollback()
            raise

        logger.info(f"User {user_id} reserved promo {promo_id} as {reservation.id}")

        await self.audit.log(
            RESERVATION_CREATED,
            "reservation",
            reservation.id,
            user_id=user_id,
            metadata={"promo_id": str(promo_id), "expires_at": reservation.expires_at.isoformat()},
        )
        return reservation

    async def expire_old_reservations(self, now: datetime | None = None) -> int:
        """
        Expire ACTIVE reservations past their ``expires_at`` and release their slots.

        Returns:
            Number of reservations expired
        """
        now = now or datetime.utcnow()

        result = await self.db.execute(
            select(Reservation.id, Reservation.promo_id).where(
                Reservation.status == ReservationStatus.ACTIVE,
                Reservation.expires_at <= now,
            )
        )
        stale = result.all()

        expired_ids = []
        try:
            for reservation_id, promo_id in stale:
                # Conditional so a concurrent redeem wins over expiry
                result = await self.db.execute(
                    update(Reservation)
                    .where(
                        Reservation.id == reservation_id,
                        Reservation.status == ReservationStatus.ACTIVE,
                    )
                    .values(status=ReservationStatus.EXPIRED)
                )
                if result.rowcount == 0:
                    continue

                await self.db.execute(
                    update(Promo)
                    .where(Promo.id == promo_id, Promo.available_slots < Promo.total_slots)
                    .values(available_slots=Promo.available_slots + 1)
                )
                expired_ids.append(str(reservation_id))

            await self.db.commit()
        except Exception as e:
            logger.error(f"Failed to expire reservations: {e}")
            await self.db.rollback()
            raise

        if expired_ids:
            logger.info(f"Expired {len(expired_ids)} reservations")
            await self.audit.log(
                RESERVATIONS_EXPIRED,
                "system",
                "reservation_expiry",
                metadata={"count": len(expired_ids), "reservation_ids": expired_ids},
            )
        return len(expired_ids)

    async def list_user_reservations(self, user_id: UUID) -> list[Reservation]:
        """List a user's reservations, newest first."""
        result = await self.db.execute(
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.created_at.desc())
        )
        return list(result.scalars().all())
