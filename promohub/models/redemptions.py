"""
Redemption models.

This module defines the authoritative redemption record and the audit log.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from promohub.core.database import Base
from promohub.models.enums import PaymentType, RedemptionStatus


class Redemption(Base):
    """Redemption of a reservation, at most one per reservation."""

    __tablename__ = "redemptions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=lambda: uuid4())
    # Unique: concurrent confirms for one reservation cannot both insert
    reservation_id: Mapped[UUID] = mapped_column(
        ForeignKey("reservations.id"), unique=True, nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    promo_id: Mapped[UUID] = mapped_column(ForeignKey("promos.id"), nullable=False)
    merchant_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType, native_enum=False, length=20), nullable=False
    )
    promo_amount: Mapped[float] = mapped_column(Float, nullable=False)
    wallet_used: Mapped[float] = mapped_column(Float, default=0.0)
    cash_paid: Mapped[float] = mapped_column(Float, nullable=False)
    cashback_amount: Mapped[float] = mapped_column(Float, default=0.0)
    cashback_percent: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[RedemptionStatus] = mapped_column(
        Enum(RedemptionStatus, native_enum=False, length=20), default=RedemptionStatus.PENDING
    )
    # SHA-256 hex of the raw QR token, never the token itself
    qr_token: Mapped[str | None] = mapped_column(String(64), unique=True)
    qr_generated_at: Mapped[datetime | None] = mapped_column(DateTime)
    qr_expires_at: Mapped[datetime | None] = mapped_column(DateTime)
    idempotency_key: Mapped[str | None] = mapped_column(String(255), index=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Redemption(id={self.id}, reservation={self.reservation_id}, status='{self.status}')>"


class AuditLog(Base):
    """Append-only audit record of a security-relevant action."""

    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=lambda: uuid4())
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)  # QR_GENERATED, QR_SCAN_ATTEMPT, ...
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)  # reservation, redemption, merchant
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[UUID | None] = mapped_column()
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, name="metadata")  # Renamed to avoid SQLAlchemy conflict
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action='{self.action}', entity='{self.entity_type}:{self.entity_id}')>"
