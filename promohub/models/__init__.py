"""
Database models package.

This package contains SQLAlchemy ORM models for the PromoHub application.
"""

from promohub.core.database import Base
from promohub.models.enums import (
    PaymentType,
    PromoStatus,
    RedemptionStatus,
    ReservationStatus,
    UserRole,
)
from promohub.models.promos import Promo, Reservation
from promohub.models.redemptions import AuditLog, Redemption
from promohub.models.users import User, Wallet

__all__ = [
    "Base",
    "User",
    "Wallet",
    "Promo",
    "Reservation",
    "Redemption",
    "AuditLog",
    "UserRole",
    "PromoStatus",
    "ReservationStatus",
    "RedemptionStatus",
    "PaymentType",
]
