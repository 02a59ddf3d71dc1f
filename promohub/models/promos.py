"""
Promo and reservation models.

This module defines the SQLAlchemy models for merchant promos and the
time-boxed reservations users hold on their slots.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from promohub.core.database import Base
from promohub.models.enums import PromoStatus, ReservationStatus


class Promo(Base):
    """Merchant promo with a fixed number of reservable slots."""

    __tablename__ = "promos"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=lambda: uuid4())
    merchant_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    original_price: Mapped[float] = mapped_column(Float, nullable=False)
    discounted_price: Mapped[float] = mapped_column(Float, nullable=False)
    cashback_percent: Mapped[float] = mapped_column(Float, default=0.0)
    total_slots: Mapped[int] = mapped_column(Integer, nullable=False)
    available_slots: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PromoStatus] = mapped_column(
        Enum(PromoStatus, native_enum=False, length=20), default=PromoStatus.DRAFT
    )
    activated_at: Mapped[datetime | None] = mapped_column(DateTime)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Promo(id={self.id}, title='{self.title}', status='{self.status}')>"


class Reservation(Base):
    """A user's hold on one promo slot, prerequisite for a QR token."""

    __tablename__ = "reservations"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=lambda: uuid4())
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    promo_id: Mapped[UUID] = mapped_column(ForeignKey("promos.id"), nullable=False, index=True)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, native_enum=False, length=20), default=ReservationStatus.ACTIVE
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Reservation(id={self.id}, promo={self.promo_id}, status='{self.status}')>"
