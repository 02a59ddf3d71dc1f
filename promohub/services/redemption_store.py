"""
Transactional store for reservations and redemptions.

Holds the two atomic operations the redemption flow depends on:

- ``create_redemption`` inserts a PENDING row guarded by the unique
  ``redemptions.reservation_id`` constraint, so at most one row can ever
  exist per reservation.
- ``confirm_redemption`` moves PENDING to CONFIRMED with a conditional
  update and applies the reservation, wallet and cashback changes in the
  same transaction.

Any failure rolls the session back, which expires every loaded ORM object.
Callers must re-query rather than touch previously loaded instances.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.constants import REDEMPTION_LIST_DEFAULT_LIMIT
from promohub.core.errors import (
    InsufficientWalletBalanceError,
    PromoHubError,
    RedemptionExistsError,
    RedemptionNotPendingError,
    StoreError,
)
from promohub.models.enums import PaymentType, RedemptionStatus, ReservationStatus
from promohub.models.promos import Promo, Reservation
from promohub.models.redemptions import Redemption
from promohub.models.users import User, Wallet

logger = logging.getLogger(__name__)


def as_uuid(value: UUID | str | None) -> UUID | None:
    """Parse an identifier, returning None when it is not a UUID."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class RedemptionStore:
    """Data access and atomic state transitions for redemptions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_reservation(self, reservation_id: UUID | str) -> Reservation | None:
        key = as_uuid(reservation_id)
        if key is None:
            return None
        result = await self.db.execute(select(Reservation).where(Reservation.id == key))
        return result.scalar_one_or_none()

    async def get_promo(self, promo_id: UUID | str) -> Promo | None:
        key = as_uuid(promo_id)
        if key is None:
            return None
        result = await self.db.execute(select(Promo).where(Promo.id == key))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: UUID | str) -> User | None:
        key = as_uuid(user_id)
        if key is None:
            return None
        result = await self.db.execute(select(User).where(User.id == key))
        return result.scalar_one_or_none()

    async def get_wallet(self, user_id: UUID) -> Wallet | None:
        result = await self.db.execute(select(Wallet).where(Wallet.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_redemption(self, redemption_id: UUID) -> Redemption | None:
        result = await self.db.execute(select(Redemption).where(Redemption.id == redemption_id))
        return result.scalar_one_or_none()

    async def find_redemption_by_token_hash(self, token_hash: str) -> Redemption | None:
        """Find the redemption that consumed a token, by the token's SHA-256 hex."""
        result = await self.db.execute(
            select(Redemption).where(Redemption.qr_token == token_hash)
        )
        return result.scalar_one_or_none()

    async def find_redemption_by_reservation(self, reservation_id: UUID) -> Redemption | None:
        result = await self.db.execute(
            select(Redemption).where(Redemption.reservation_id == reservation_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def calculate_cashback(promo_amount: float, wallet_used: float, cashback_percent: float) -> float:
        """
        Cashback earned on a redemption.

        Accrues only on the portion not paid from the wallet.
        """
        return round((promo_amount - wallet_used) * cashback_percent / 100, 2)

    async def create_redemption(
        self,
        reservation_id: UUID,
        merchant_id: UUID,
        payment_type: PaymentType,
        wallet_used: float,
        idempotency_key: str | None = None,
    ) -> UUID:
        """
        Create the PENDING redemption for a reservation.

        Args:
            reservation_id: Reservation being redeemed
            merchant_id: Merchant confirming the redemption
            payment_type: Payment method from the token
            wallet_used: Resolved wallet amount
            idempotency_key: Client retry key, stored on the new row

        Returns:
            ID of the new redemption

        Raises:
            RedemptionExistsError: A redemption already exists for the reservation
            InsufficientWalletBalanceError: The wallet cannot cover ``wallet_used``
            StoreError: The reservation or promo is not redeemable by this merchant
        """
        existing = await self.find_redemption_by_reservation(reservation_id)
        if existing:
            raise RedemptionExistsError(
                f"Redemption already exists for reservation {reservation_id}",
                {"redemption_id": str(existing.id), "status": existing.status.value},
            )

        reservation = await self.get_reservation(reservation_id)
        if not reservation or reservation.status != ReservationStatus.ACTIVE:
            raise StoreError(f"Reservation {reservation_id} is not active")

        promo = await self.get_promo(reservation.promo_id)
        if not promo or promo.merchant_id != merchant_id:
            raise StoreError(f"Promo for reservation {reservation_id} does not belong to merchant")

        if wallet_used > 0:
            wallet = await self.get_wallet(reservation.user_id)
            if not wallet or wallet.balance < wallet_used:
                raise InsufficientWalletBalanceError(
                    "Insufficient wallet balance",
                    {"required": wallet_used, "available": wallet.balance if wallet else 0.0},
                )

        promo_amount = promo.discounted_price
        redemption = Redemption(
            reservation_id=reservation.id,
            user_id=reservation.user_id,
            promo_id=promo.id,
            merchant_id=merchant_id,
            payment_type=PaymentType(payment_type),
            promo_amount=promo_amount,
            wallet_used=wallet_used,
            cash_paid=round(promo_amount - wallet_used, 2),
            cashback_percent=promo.cashback_percent,
            cashback_amount=self.calculate_cashback(
                promo_amount, wallet_used, promo.cashback_percent
            ),
            status=RedemptionStatus.PENDING,
            idempotency_key=idempotency_key,
        )

        self.db.add(redemption)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            # Only the unique reservation_id means another request won the insert
            winner = await self.find_redemption_by_reservation(reservation_id)
            if winner is not None:
                raise RedemptionExistsError(
                    f"Redemption already exists for reservation {reservation_id}",
                    {"redemption_id": str(winner.id), "status": winner.status.value},
                ) from e
            logger.error(f"Redemption insert for reservation {reservation_id} violated a constraint: {e.orig}")
            raise StoreError(f"Failed to create redemption: {e.orig}") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Failed to create redemption: {e}") from e

        logger.info(f"Created redemption {redemption.id} for reservation {reservation_id}")
        return redemption.id

    async def attach_qr_audit(
        self,
        redemption_id: UUID,
        token_hash: str,
        generated_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Record which token produced a redemption."""
        try:
            await self.db.execute(
                update(Redemption)
                .where(Redemption.id == redemption_id)
                .values(
                    qr_token=token_hash,
                    qr_generated_at=generated_at,
                    qr_expires_at=expires_at,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Failed to attach QR audit fields: {e}") from e

    async def confirm_redemption(self, redemption_id: UUID) -> Redemption:
        """
        Confirm a PENDING redemption.

        In one transaction: PENDING -> CONFIRMED, reservation -> REDEEMED,
        wallet debit of ``wallet_used`` and cashback credit. Either all of
        it applies or none of it does.

        Raises:
            RedemptionNotPendingError: Another request already moved it out of PENDING
            InsufficientWalletBalanceError: The wallet no longer covers the debit
            StoreError: Any other failure
        """
        now = datetime.utcnow()
        try:
            result = await self.db.execute(
                update(Redemption)
                .where(
                    Redemption.id == redemption_id,
                    Redemption.status == RedemptionStatus.PENDING,
                )
                .values(status=RedemptionStatus.CONFIRMED, confirmed_at=now)
            )
            if result.rowcount == 0:
                raise RedemptionNotPendingError(f"Redemption {redemption_id} is not pending")

            redemption = await self.get_redemption(redemption_id)

            result = await self.db.execute(
                update(Reservation)
                .where(
                    Reservation.id == redemption.reservation_id,
                    Reservation.status == ReservationStatus.ACTIVE,
                )
                .values(status=ReservationStatus.REDEEMED, redeemed_at=now)
            )
            if result.rowcount == 0:
                raise StoreError(f"Reservation {redemption.reservation_id} is no longer active")

            if redemption.wallet_used > 0:
                result = await self.db.execute(
                    update(Wallet)
                    .where(
                        Wallet.user_id == redemption.user_id,
                        Wallet.balance >= redemption.wallet_used,
                    )
                    .values(balance=Wallet.balance - redemption.wallet_used)
                )
                if result.rowcount == 0:
                    raise InsufficientWalletBalanceError(
                        "Insufficient wallet balance",
                        {"required": redemption.wallet_used},
                    )

            if redemption.cashback_amount > 0:
                result = await self.db.execute(
                    update(Wallet)
                    .where(Wallet.user_id == redemption.user_id)
                    .values(balance=Wallet.balance + redemption.cashback_amount)
                )
                if result.rowcount == 0:
                    self.db.add(
                        Wallet(user_id=redemption.user_id, balance=redemption.cashback_amount)
                    )

            await self.db.commit()

        except PromoHubError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Failed to confirm redemption: {e}") from e

        logger.info(f"Confirmed redemption {redemption_id}")
        return await self.get_redemption(redemption_id)

    async def list_redemptions(
        self,
        merchant_id: UUID | None = None,
        status: RedemptionStatus | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = REDEMPTION_LIST_DEFAULT_LIMIT,
    ) -> list[Redemption]:
        """List redemptions, newest first."""
        query = select(Redemption)

        if merchant_id:
            query = query.where(Redemption.merchant_id == merchant_id)
        if status:
            query = query.where(Redemption.status == status)
        if start:
            query = query.where(Redemption.created_at >= start)
        if end:
            query = query.where(Redemption.created_at <= end)

        query = query.order_by(Redemption.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
