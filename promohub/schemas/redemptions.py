"""
Redemption listing schemas.

Used by the admin listing endpoint; the raw QR token is never part of a
redemption record, only its hash.
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from promohub.models.enums import PaymentType, RedemptionStatus


class RedemptionInfo(BaseModel):
    """Information about a redemption."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    reservation_id: UUID = Field(..., alias="reservationId")
    user_id: UUID = Field(..., alias="userId")
    promo_id: UUID = Field(..., alias="promoId")
    merchant_id: UUID = Field(..., alias="merchantId")
    payment_type: PaymentType = Field(..., alias="paymentType")
    promo_amount: float = Field(..., alias="promoAmount")
    wallet_used: float = Field(..., alias="walletUsed")
    cash_paid: float = Field(..., alias="cashPaid")
    cashback_amount: float = Field(..., alias="cashbackAmount")
    status: RedemptionStatus
    qr_token: str | None = Field(None, alias="qrTokenHash", description="SHA-256 of the redeeming token")
    qr_generated_at: datetime | None = Field(None, alias="qrGeneratedAt")
    qr_expires_at: datetime | None = Field(None, alias="qrExpiresAt")
    confirmed_at: datetime | None = Field(None, alias="confirmedAt")
    created_at: datetime | None = Field(None, alias="createdAt")


class RedemptionListResponse(BaseModel):
    """Response for listing redemptions."""
    redemptions: list[RedemptionInfo]
    total: int
