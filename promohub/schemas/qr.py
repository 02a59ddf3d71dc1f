"""
QR redemption schemas.

This module defines the request and response bodies of the generate,
validate and confirm endpoints.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from promohub.models.enums import PaymentType
from promohub.qr.token import QrPayload


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase field names."""
    model_config = ConfigDict(populate_by_name=True)


class GenerateRequest(CamelModel):
    """Schema for minting a QR token."""
    reservation_id: str = Field(..., alias="reservationId", description="Reservation to redeem")
    payment_type: PaymentType = Field(..., alias="paymentType", description="How the customer will pay")


class GenerateResponse(CamelModel):
    """Schema for a freshly minted QR token."""
    token: str = Field(..., description="Bearer token to encode in the QR code")
    expires_at: int = Field(..., alias="expiresAt", description="Expiry in epoch milliseconds")
    payload: QrPayload = Field(..., description="Payload embedded in the token")


class ValidateRequest(CamelModel):
    """Schema for previewing a scanned token."""
    token: str | None = Field(None, description="Raw token as scanned")


class ScanSummary(CamelModel):
    """What the merchant sees before confirming."""
    reservation_id: str = Field(..., alias="reservationId")
    promo_id: str = Field(..., alias="promoId")
    promo_title: str = Field(..., alias="promoTitle")
    discounted_price: float = Field(..., alias="discountedPrice")
    cashback_percent: float = Field(..., alias="cashbackPercent")
    payment_type: PaymentType = Field(..., alias="paymentType")
    user: dict[str, Any] = Field(default_factory=dict, description="Public profile of the reservation owner")


class ValidateResponse(CamelModel):
    """Schema for a successful scan preview."""
    valid: bool = True
    expires_at: int = Field(..., alias="expiresAt", description="Token expiry in epoch milliseconds")
    summary: ScanSummary


class ConfirmRequest(CamelModel):
    """Schema for confirming a scanned token."""
    token: str | None = Field(None, description="Raw token as scanned")
    wallet_used: float | None = Field(
        None, alias="walletUsed", description="Wallet amount for partial wallet or in-store payments"
    )


class ConfirmResponse(CamelModel):
    """Schema for a confirmed redemption."""
    status: str = Field(..., description="Always CONFIRMED")
    redemption_id: str = Field(..., alias="redemptionId")
    already_confirmed: bool | None = Field(
        None, alias="alreadyConfirmed", description="Present when a previous request confirmed it"
    )
