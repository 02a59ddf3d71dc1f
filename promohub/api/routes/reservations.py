"""
Reservation API routes.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.auth import RegularUser
from promohub.core.database import get_db
from promohub.schemas.reservations import (
    ReservationInfo,
    ReservationListResponse,
    ReserveRequest,
    ReserveResponse,
)
from promohub.services.reservation_service import ReservationService

router = APIRouter()


@router.post(
    "",
    response_model=ReserveResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve promo",
    description="Hold one slot of an active promo for the caller.",
)
async def reserve_promo(
    request: ReserveRequest,
    user: RegularUser,
    db: AsyncSession = Depends(get_db),
) -> ReserveResponse:
    service = ReservationService(db)
    reservation = await service.reserve_promo(user.id, request.promo_id)

    return ReserveResponse(
        reservation_id=reservation.id,
        user_id=reservation.user_id,
        expires_at=reservation.expires_at,
    )


@router.get(
    "",
    response_model=ReservationListResponse,
    summary="List reservations",
    description="List the caller's reservations, newest first.",
)
async def list_reservations(
    user: RegularUser,
    db: AsyncSession = Depends(get_db),
) -> ReservationListResponse:
    service = ReservationService(db)
    reservations = await service.list_user_reservations(user.id)

    items = [ReservationInfo.model_validate(r) for r in reservations]
    return ReservationListResponse(reservations=items, total=len(items))
