"""
Domain enumerations shared by models, schemas and services.
"""

from enum import Enum


class UserRole(str, Enum):
    """Roles a user account can hold."""
    USER = "USER"
    MERCHANT = "MERCHANT"
    AGENT = "AGENT"
    ADMIN = "ADMIN"


class PromoStatus(str, Enum):
    """Lifecycle of a merchant promo."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    EXPIRED = "EXPIRED"


class ReservationStatus(str, Enum):
    """Lifecycle of a user's hold on a promo slot."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REDEEMED = "REDEEMED"
    CANCELLED = "CANCELLED"


class RedemptionStatus(str, Enum):
    """Lifecycle of a redemption record."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentType(str, Enum):
    """How the user settles a redeemed promo."""
    FULL_WALLET = "FULL_WALLET"
    PARTIAL_WALLET = "PARTIAL_WALLET"
    IN_STORE = "IN_STORE"
