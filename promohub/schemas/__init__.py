"""
Pydantic schemas package.

Request and response bodies use camelCase on the wire.
"""

from promohub.schemas.qr import (
    ConfirmRequest,
    ConfirmResponse,
    GenerateRequest,
    GenerateResponse,
    ScanSummary,
    ValidateRequest,
    ValidateResponse,
)
from promohub.schemas.redemptions import RedemptionInfo, RedemptionListResponse
from promohub.schemas.reservations import (
    ExpireReservationsResponse,
    ReservationInfo,
    ReservationListResponse,
    ReserveRequest,
    ReserveResponse,
)

__all__ = [
    "GenerateRequest",
    "GenerateResponse",
    "ValidateRequest",
    "ValidateResponse",
    "ScanSummary",
    "ConfirmRequest",
    "ConfirmResponse",
    "ReserveRequest",
    "ReserveResponse",
    "ReservationInfo",
    "ReservationListResponse",
    "ExpireReservationsResponse",
    "RedemptionInfo",
    "RedemptionListResponse",
]
