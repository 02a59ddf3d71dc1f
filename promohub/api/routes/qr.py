"""
QR redemption API routes.

Users mint a token for one of their reservations; merchants preview it with
validate and redeem it with confirm. Refusals are raised as RedemptionError
and rendered as ``{"error", "reason"}`` by the application error handler.
"""

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.auth import MerchantUser, RegularUser
from promohub.core.database import get_db
from promohub.qr.token import QrTokenCodec
from promohub.schemas.qr import (
    ConfirmRequest,
    ConfirmResponse,
    GenerateRequest,
    GenerateResponse,
    ScanSummary,
    ValidateRequest,
    ValidateResponse,
)
from promohub.services.redemption_service import RedemptionService, get_qr_codec

router = APIRouter()


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Generate QR token",
    description="Mint a signed, time-boxed QR token for an active reservation.",
)
async def generate_qr(
    request: GenerateRequest,
    user: RegularUser,
    db: AsyncSession = Depends(get_db),
    codec: QrTokenCodec = Depends(get_qr_codec),
) -> GenerateResponse:
    service = RedemptionService(db, codec)
    generated = await service.generate_token(user, request.reservation_id, request.payment_type)

    return GenerateResponse(
        token=generated.token,
        expires_at=generated.expires_at,
        payload=generated.payload,
    )


@router.post(
    "/validate",
    response_model=ValidateResponse,
    summary="Validate QR token",
    description="Preview a scanned token without redeeming it.",
)
async def validate_qr(
    request: ValidateRequest,
    merchant: MerchantUser,
    db: AsyncSession = Depends(get_db),
    codec: QrTokenCodec = Depends(get_qr_codec),
) -> ValidateResponse:
    service = RedemptionService(db, codec)
    result = await service.validate_token(merchant, request.token)

    return ValidateResponse(
        valid=True,
        expires_at=result.expires_at,
        summary=ScanSummary(
            reservation_id=str(result.reservation_id),
            promo_id=str(result.promo_id),
            promo_title=result.promo_title,
            discounted_price=result.discounted_price,
            cashback_percent=result.cashback_percent,
            payment_type=result.payment_type,
            user=result.user,
        ),
    )


@router.post(
    "/confirm",
    response_model=ConfirmResponse,
    response_model_exclude_none=True,
    summary="Confirm QR token",
    description=(
        "Redeem a scanned token. Safe to retry: repeated requests converge on "
        "one CONFIRMED redemption. Send the same Idempotency-Key to retry a "
        "request whose response was lost."
    ),
)
async def confirm_qr(
    request: ConfirmRequest,
    merchant: MerchantUser,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=255),
    db: AsyncSession = Depends(get_db),
    codec: QrTokenCodec = Depends(get_qr_codec),
) -> ConfirmResponse:
    service = RedemptionService(db, codec)
    result = await service.confirm_token(
        merchant,
        request.token,
        wallet_used=request.wallet_used,
        idempotency_key=idempotency_key,
    )

    return ConfirmResponse(
        status=result.status,
        redemption_id=str(result.redemption_id),
        already_confirmed=True if result.already_confirmed else None,
    )
