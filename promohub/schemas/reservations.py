"""
Reservation schemas.
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from promohub.models.enums import ReservationStatus


class ReserveRequest(BaseModel):
    """Schema for reserving a promo slot."""
    model_config = ConfigDict(populate_by_name=True)

    promo_id: UUID = Field(..., alias="promoId", description="Promo to reserve")


class ReserveResponse(BaseModel):
    """Schema for a new reservation."""
    model_config = ConfigDict(populate_by_name=True)

    reservation_id: UUID = Field(..., alias="reservationId")
    user_id: UUID = Field(..., alias="userId")
    expires_at: datetime = Field(..., alias="expiresAt")


class ReservationInfo(BaseModel):
    """Information about a reservation."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    promo_id: UUID = Field(..., alias="promoId")
    status: ReservationStatus
    expires_at: datetime = Field(..., alias="expiresAt")
    redeemed_at: datetime | None = Field(None, alias="redeemedAt")
    created_at: datetime | None = Field(None, alias="createdAt")


class ReservationListResponse(BaseModel):
    """Response for listing reservations."""
    reservations: list[ReservationInfo]
    total: int


class ExpireReservationsResponse(BaseModel):
    """Response after an expiry sweep."""
    expired: int = Field(..., description="Number of reservations expired")
