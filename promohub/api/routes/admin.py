"""
Admin API routes.

This module provides the redemption listing used for reconciliation and a
manual trigger for the reservation expiry sweep.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.auth import AdminUser
from promohub.core.constants import REDEMPTION_LIST_DEFAULT_LIMIT, REDEMPTION_LIST_MAX_LIMIT
from promohub.core.database import get_db
from promohub.models.enums import RedemptionStatus
from promohub.schemas.redemptions import RedemptionInfo, RedemptionListResponse
from promohub.schemas.reservations import ExpireReservationsResponse
from promohub.services.redemption_store import RedemptionStore
from promohub.services.reservation_service import ReservationService

router = APIRouter()


@router.get(
    "/redemptions",
    response_model=RedemptionListResponse,
    summary="List redemptions",
    description="List redemptions with optional merchant, status and date filters.",
)
async def list_redemptions(
    admin: AdminUser,
    merchant_id: UUID | None = Query(default=None, alias="merchantId"),
    redemption_status: RedemptionStatus | None = Query(default=None, alias="status"),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    limit: int = Query(default=REDEMPTION_LIST_DEFAULT_LIMIT, ge=1, le=REDEMPTION_LIST_MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
) -> RedemptionListResponse:
    store = RedemptionStore(db)
    redemptions = await store.list_redemptions(
        merchant_id=merchant_id,
        status=redemption_status,
        start=start,
        end=end,
        limit=limit,
    )

    items = [RedemptionInfo.model_validate(r) for r in redemptions]
    return RedemptionListResponse(redemptions=items, total=len(items))


@router.post(
    "/reservations/expire",
    response_model=ExpireReservationsResponse,
    summary="Expire reservations",
    description="Expire overdue ACTIVE reservations and release their slots.",
)
async def expire_reservations(
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
) -> ExpireReservationsResponse:
    service = ReservationService(db)
    expired = await service.expire_old_reservations()
    return ExpireReservationsResponse(expired=expired)
