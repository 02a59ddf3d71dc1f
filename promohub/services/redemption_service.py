"""
QR redemption service.

Drives a reservation through token generation, merchant scan (validate) and
merchant confirm. Validate and confirm share one set of checks so a token
that validates cleanly cannot then be refused by confirm for a different
reason.

Confirm converges to exactly one CONFIRMED redemption per reservation no
matter how often it is retried:

- the redemption insert is keyed uniquely by reservation, and a losing
  request falls back to re-reading the winner's row;
- the PENDING -> CONFIRMED step is a conditional update, and a losing
  request again re-reads the row.

Every terminal outcome of validate and confirm writes exactly one audit row
carrying the token hash and a machine-readable reason.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, NoReturn
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.config import settings
from promohub.core.errors import (
    InsufficientWalletBalanceError,
    RedemptionError,
    RedemptionExistsError,
    RedemptionNotPendingError,
    StoreError,
)
from promohub.models.enums import PaymentType, PromoStatus, RedemptionStatus, ReservationStatus
from promohub.models.users import User
from promohub.qr.token import (
    GeneratedToken,
    QrPayload,
    QrTokenCodec,
    TokenFailureReason,
    hash_token,
    ms_to_datetime,
)
from promohub.services.alerting_service import alert_refusal
from promohub.services.audit_service import (
    QR_GENERATED,
    QR_SCAN_ATTEMPT,
    REDEMPTION_CONFIRM_ATTEMPT,
    AuditService,
)
from promohub.services.redemption_store import RedemptionStore

logger = logging.getLogger(__name__)


REASON_MESSAGES = {
    TokenFailureReason.MISSING_TOKEN.value: "Missing token",
    TokenFailureReason.INVALID_FORMAT.value: "Invalid token format",
    TokenFailureReason.INVALID_SIGNATURE.value: "Invalid token signature",
    TokenFailureReason.INVALID_PAYLOAD.value: "Invalid token payload",
    TokenFailureReason.MISSING_FIELDS.value: "Token is missing required fields",
    TokenFailureReason.EXPIRED.value: "Token expired",
}


@dataclass(frozen=True)
class ScanContext:
    """
    Plain values gathered by the shared scan checks.

    Held instead of ORM instances because a store rollback expires every
    loaded instance in the session.
    """

    token_hash: str
    payload: QrPayload
    expires_at: int
    reservation_id: UUID
    reservation_user_id: UUID
    promo_id: UUID
    promo_title: str
    discounted_price: float
    cashback_percent: float
    # Set when the token already produced a CONFIRMED redemption and the
    # request carries that redemption's idempotency key
    retried_redemption_id: UUID | None = None

    @property
    def payment_type(self) -> PaymentType:
        return self.payload.payment_type


@dataclass(frozen=True)
class ValidationResult:
    """Read-only preview of a scanned token."""

    expires_at: int
    reservation_id: UUID
    promo_id: UUID
    promo_title: str
    discounted_price: float
    cashback_percent: float
    payment_type: PaymentType
    user: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConfirmResult:
    """Outcome of a successful confirm."""

    redemption_id: UUID
    already_confirmed: bool = False
    status: str = RedemptionStatus.CONFIRMED.value


def resolve_wallet_amount(
    payment_type: PaymentType, discounted_price: float, wallet_used: float | None
) -> float:
    """
    Decide how much of the promo price is paid from the wallet.

    - FULL_WALLET always uses the full discounted price; a client value is ignored.
    - PARTIAL_WALLET must use the wallet: a missing or zero amount is refused.
    - IN_STORE uses the client value if given, otherwise nothing.

    NaN and infinities are out of range like any other bad amount.

    Raises:
        RedemptionError: wallet_required or invalid_wallet_amount
    """
    if payment_type == PaymentType.FULL_WALLET:
        return discounted_price

    if payment_type == PaymentType.PARTIAL_WALLET:
        if not wallet_used:
            raise RedemptionError(
                "walletUsed is required for partial wallet payments",
                reason="wallet_required",
            )
        amount = wallet_used
    else:
        amount = wallet_used if wallet_used is not None else 0.0

    if not math.isfinite(amount) or amount < 0 or amount > discounted_price:
        raise RedemptionError("Invalid wallet amount", reason="invalid_wallet_amount")
    return amount


class RedemptionService:
    """Service for QR token generation, validation and confirmation."""

    def __init__(self, db: AsyncSession, codec: QrTokenCodec):
        """
        Initialize the redemption service.

        Args:
            db: Database session
            codec: QR token codec carrying the signing secret and TTL
        """
        self.db = db
        self.codec = codec
        self.store = RedemptionStore(db)
        self.audit = AuditService(db)

    async def generate_token(
        self, user: User, reservation_id: str, payment_type: PaymentType
    ) -> GeneratedToken:
        """
        Mint a QR token for one of the caller's reservations.

        Raises:
            RedemptionError: reservation_not_found, reservation_expired or promo_not_active
        """
        user_id = user.id

        reservation = await self.store.get_reservation(reservation_id)
        if not reservation or reservation.user_id != user_id:
            raise RedemptionError(
                "Reservation not found", reason="reservation_not_found", status_code=404
            )
        if (
            reservation.status != ReservationStatus.ACTIVE
            or reservation.expires_at <= datetime.utcnow()
        ):
            raise RedemptionError("Reservation has expired", reason="reservation_expired")

        promo = await self.store.get_promo(reservation.promo_id)
        if not promo or promo.status != PromoStatus.ACTIVE:
            raise RedemptionError("Promo is not active", reason="promo_not_active")

        generated = self.codec.generate(str(promo.id), str(reservation.id), payment_type)
        token_hash = hash_token(generated.token)

        await self.audit.log(
            QR_GENERATED,
            "reservation",
            reservation.id,
            user_id=user_id,
            metadata={
                "status": "generated",
                "token_hash": token_hash,
                "payment_type": generated.payload.payment_type.value,
                "expires_at": ms_to_datetime(generated.expires_at).isoformat(),
            },
        )
        logger.info(f"Generated QR token {token_hash[:12]} for reservation {reservation.id}")
        return generated

    async def validate_token(self, merchant: User, token: str | None) -> ValidationResult:
        """
        Preview a scanned token without creating or changing any redemption.

        Raises:
            RedemptionError: Any reason produced by the shared scan checks
        """
        merchant_id = merchant.id
        ctx = await self._run_scan_checks(merchant_id, token, QR_SCAN_ATTEMPT)

        owner = await self.store.get_user(ctx.reservation_user_id)
        user_summary = (
            {"id": str(owner.id), "name": owner.name, "email": owner.email} if owner else {}
        )

        await self._record(
            QR_SCAN_ATTEMPT, "valid", None, merchant_id, ctx.token_hash, ctx.reservation_id
        )
        return ValidationResult(
            expires_at=ctx.expires_at,
            reservation_id=ctx.reservation_id,
            promo_id=ctx.promo_id,
            promo_title=ctx.promo_title,
            discounted_price=ctx.discounted_price,
            cashback_percent=ctx.cashback_percent,
            payment_type=ctx.payment_type,
            user=user_summary,
        )

    async def confirm_token(
        self,
        merchant: User,
        token: str | None,
        wallet_used: float | None = None,
        idempotency_key: str | None = None,
    ) -> ConfirmResult:
        """
        Redeem a token, exactly once.

        Args:
            merchant: Authenticated merchant scanning the token
            token: Raw token string
            wallet_used: Client-declared wallet amount (partial/in-store payments)
            idempotency_key: Client retry key for this confirm

        Returns:
            ConfirmResult; ``already_confirmed`` is set when this request
            converged on a redemption another request confirmed

        Raises:
            RedemptionError: Any scan check reason, or a wallet, conflict or store reason
        """
        action = REDEMPTION_CONFIRM_ATTEMPT
        merchant_id = merchant.id
        ctx = await self._run_scan_checks(merchant_id, token, action, idempotency_key)

        if ctx.retried_redemption_id:
            return await self._already_confirmed(merchant_id, ctx, ctx.retried_redemption_id)

        try:
            amount = resolve_wallet_amount(ctx.payment_type, ctx.discounted_price, wallet_used)
        except RedemptionError as e:
            await self._record(action, "invalid", e.reason, merchant_id, ctx.token_hash, ctx.reservation_id)
            raise

        try:
            redemption_id = await self.store.create_redemption(
                ctx.reservation_id, merchant_id, ctx.payment_type, amount, idempotency_key
            )
        except RedemptionExistsError:
            existing = await self.store.find_redemption_by_reservation(ctx.reservation_id)
            if existing is None:
                logger.error(
                    f"Redemption for reservation {ctx.reservation_id} reported as existing but not found"
                )
                await self._reject(
                    action, merchant_id, ctx, "redemption_failed",
                    "Failed to create redemption", 500,
                )
            if existing.status == RedemptionStatus.CONFIRMED:
                return await self._already_confirmed(merchant_id, ctx, existing.id)
            if existing.status != RedemptionStatus.PENDING:
                await self._reject(
                    action, merchant_id, ctx, "redemption_not_eligible",
                    "Redemption is not eligible for confirmation", 409,
                    extra={"redemptionId": str(existing.id)},
                )
            redemption_id = existing.id
        except InsufficientWalletBalanceError:
            await self._reject(
                action, merchant_id, ctx, "insufficient_wallet_balance",
                "Insufficient wallet balance", 400,
            )
        except StoreError as e:
            logger.error(f"Redemption create failed for reservation {ctx.reservation_id}: {e}")
            await self._reject(
                action, merchant_id, ctx, "redemption_failed",
                "Failed to create redemption", 500,
            )
        else:
            try:
                await self.store.attach_qr_audit(
                    redemption_id,
                    ctx.token_hash,
                    ms_to_datetime(ctx.payload.ts),
                    ms_to_datetime(ctx.expires_at),
                )
            except StoreError as e:
                logger.error(f"Failed to attach QR audit to redemption {redemption_id}: {e}")
                await self._reject(
                    action, merchant_id, ctx, "redemption_failed",
                    "Failed to create redemption", 500,
                )

        return await self._confirm(merchant_id, ctx, redemption_id)

    async def _confirm(self, merchant_id: UUID, ctx: ScanContext, redemption_id: UUID) -> ConfirmResult:
        action = REDEMPTION_CONFIRM_ATTEMPT
        try:
            await self.store.confirm_redemption(redemption_id)
        except RedemptionNotPendingError:
            current = await self.store.get_redemption(redemption_id)
            if current and current.status == RedemptionStatus.CONFIRMED:
                return await self._already_confirmed(merchant_id, ctx, redemption_id)
            await self._reject(
                action, merchant_id, ctx, "redemption_not_eligible",
                "Redemption is not eligible for confirmation", 409,
                extra={"redemptionId": str(redemption_id)},
            )
        except InsufficientWalletBalanceError:
            await self._reject(
                action, merchant_id, ctx, "insufficient_wallet_balance",
                "Insufficient wallet balance", 400,
            )
        except StoreError as e:
            logger.error(f"Redemption confirm failed for {redemption_id}: {e}")
            await self._reject(
                action, merchant_id, ctx, "confirm_failed",
                "Failed to confirm redemption", 500,
            )

        await self._record(
            action, "confirmed", None, merchant_id, ctx.token_hash, ctx.reservation_id,
            extra={"redemption_id": str(redemption_id)},
        )
        return ConfirmResult(redemption_id=redemption_id)

    async def _already_confirmed(
        self, merchant_id: UUID, ctx: ScanContext, redemption_id: UUID
    ) -> ConfirmResult:
        await self._record(
            REDEMPTION_CONFIRM_ATTEMPT, "already_confirmed", None, merchant_id,
            ctx.token_hash, ctx.reservation_id,
            extra={"redemption_id": str(redemption_id)},
        )
        logger.info(f"Redemption {redemption_id} was already confirmed")
        return ConfirmResult(redemption_id=redemption_id, already_confirmed=True)

    async def _run_scan_checks(
        self,
        merchant_id: UUID,
        token: str | None,
        action: str,
        idempotency_key: str | None = None,
    ) -> ScanContext:
        """
        Checks shared by validate and confirm, in order:

        1. token verification (codec reason)
        2. reservation exists (reservation_not_found)
        3. token promo matches the reservation (promo_mismatch)
        4. promo is active and belongs to the merchant (promo_not_authorized)
        5. token not already consumed (token_used), unless this is a retry
           carrying the consuming request's idempotency key
        6. reservation still active and unexpired (reservation_expired)

        Reuse is checked before reservation state because a consumed token's
        reservation is always REDEEMED.
        """
        token_hash = hash_token(token) if token else None

        verification = self.codec.verify(token)
        if not verification.valid:
            reason = verification.reason.value
            await self._record(action, "invalid", reason, merchant_id, token_hash)
            alert_refusal(reason, merchant_id, token_hash)
            raise RedemptionError(REASON_MESSAGES[reason], reason=reason)

        payload = verification.payload

        reservation = await self.store.get_reservation(payload.reservation_id)
        if not reservation:
            await self._fail_scan(
                action, merchant_id, token_hash, None, "reservation_not_found",
                "Reservation not found", 404,
            )

        reservation_id = reservation.id
        if str(reservation.promo_id) != payload.promo_id:
            await self._fail_scan(
                action, merchant_id, token_hash, reservation_id, "promo_mismatch",
                "Token does not match reservation", 400,
            )

        promo = await self.store.get_promo(reservation.promo_id)
        if not promo or promo.status != PromoStatus.ACTIVE or promo.merchant_id != merchant_id:
            await self._fail_scan(
                action, merchant_id, token_hash, reservation_id, "promo_not_authorized",
                "Not authorized for this promo", 403,
            )

        ctx = ScanContext(
            token_hash=token_hash,
            payload=payload,
            expires_at=verification.expires_at,
            reservation_id=reservation_id,
            reservation_user_id=reservation.user_id,
            promo_id=promo.id,
            promo_title=promo.title,
            discounted_price=promo.discounted_price,
            cashback_percent=promo.cashback_percent,
        )
        reservation_active = (
            reservation.status == ReservationStatus.ACTIVE
            and reservation.expires_at > datetime.utcnow()
        )

        existing = await self.store.find_redemption_by_token_hash(token_hash)
        if existing:
            if (
                idempotency_key
                and existing.idempotency_key == idempotency_key
                and existing.status == RedemptionStatus.CONFIRMED
            ):
                return replace(ctx, retried_redemption_id=existing.id)
            await self._fail_scan(
                action, merchant_id, token_hash, reservation_id, "token_used",
                "Token already used", 409,
                extra={"redemptionId": str(existing.id)},
            )

        if not reservation_active:
            await self._fail_scan(
                action, merchant_id, token_hash, reservation_id, "reservation_expired",
                "Reservation is not active or has expired", 400,
            )

        return ctx

    async def _fail_scan(
        self,
        action: str,
        merchant_id: UUID,
        token_hash: str,
        reservation_id: UUID | None,
        reason: str,
        message: str,
        status_code: int,
        extra: dict[str, Any] | None = None,
    ) -> NoReturn:
        await self._record(action, "invalid", reason, merchant_id, token_hash, reservation_id, extra)
        alert_refusal(reason, merchant_id, token_hash, reservation_id)
        raise RedemptionError(message, reason=reason, status_code=status_code, extra=extra)

    async def _reject(
        self,
        action: str,
        merchant_id: UUID,
        ctx: ScanContext,
        reason: str,
        message: str,
        status_code: int,
        extra: dict[str, Any] | None = None,
    ) -> NoReturn:
        status = "failed" if status_code >= 500 else "invalid"
        await self._record(
            action, status, reason, merchant_id, ctx.token_hash, ctx.reservation_id, extra
        )
        alert_refusal(reason, merchant_id, ctx.token_hash, ctx.reservation_id)
        raise RedemptionError(message, reason=reason, status_code=status_code, extra=extra)

    async def _record(
        self,
        action: str,
        status: str,
        reason: str | None,
        merchant_id: UUID,
        token_hash: str | None,
        reservation_id: UUID | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Write the single audit row for an outcome."""
        metadata = {"status": status, "reason": reason, "token_hash": token_hash}
        metadata.update(extra or {})

        if reservation_id:
            await self.audit.log(action, "reservation", reservation_id, merchant_id, metadata)
        else:
            await self.audit.log(action, "merchant", merchant_id, merchant_id, metadata)


def get_qr_codec() -> QrTokenCodec:
    """Dependency providing a codec built from the configured secret and TTL."""
    return QrTokenCodec(settings.qr_token_secret, settings.qr_token_ttl_minutes)
