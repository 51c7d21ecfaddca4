"""Booking models."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import JSONB_TYPE, TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.catalog import Addon, Offering, Product
    from app.models.provider import Provider, Staff
    from app.models.user import User


class BookingStatus(str, enum.Enum):
    """Lifecycle states for bookings."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class LocationType(str, enum.Enum):
    """Where the appointment takes place."""

    AT_SALON = "at_salon"
    AT_HOME = "at_home"


class PaymentMethod(str, enum.Enum):
    """Customer's chosen way to settle the booking."""

    CARD = "card"
    CASH = "cash"
    GIFT_CARD = "gift_card"


class PaymentStatus(str, enum.Enum):
    """Settlement state of a booking."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


# Statuses whose services no longer occupy the calendar.
NON_BLOCKING_STATUSES = (BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


class Booking(TimestampMixin, Base):
    """A confirmed checkout with every money component of its quote."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_provider_scheduled", "provider_id", "scheduled_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    booking_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    location_type: Mapped[LocationType] = mapped_column(
        Enum(LocationType), nullable=False
    )
    location_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("provider_locations.id", ondelete="SET NULL"), nullable=True
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    package_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("service_packages.id", ondelete="SET NULL"), nullable=True
    )

    address_line1: Mapped[str | None] = mapped_column(String(255))
    address_line2: Mapped[str | None] = mapped_column(String(255))
    address_city: Mapped[str | None] = mapped_column(String(120))
    address_postal_code: Mapped[str | None] = mapped_column(String(20))
    address_country: Mapped[str | None] = mapped_column(String(2))
    address_latitude: Mapped[float | None] = mapped_column(Float)
    address_longitude: Mapped[float | None] = mapped_column(Float)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    travel_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    package_discount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    discount_code: Mapped[str | None] = mapped_column(String(64))
    promotion_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("promotions.id", ondelete="SET NULL"), nullable=True
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    gift_card_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("gift_cards.id", ondelete="SET NULL"), nullable=True
    )
    gift_card_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    loyalty_discount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    membership_plan_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("membership_plans.id", ondelete="SET NULL"), nullable=True
    )
    membership_discount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    service_fee_config_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("platform_fee_configs.id", ondelete="SET NULL"), nullable=True
    )
    service_fee_percentage: Mapped[Decimal | None] = mapped_column(Numeric(6, 3))
    service_fee_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), default=Decimal("0"), nullable=False
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    tip_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ZAR", nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod), default=PaymentMethod.CARD, nullable=False
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )
    loyalty_points_earned: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    loyalty_points_redeemed: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    special_requests: Mapped[str | None] = mapped_column(Text)
    is_group_booking: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    customer: Mapped["User"] = relationship("User")
    provider: Mapped["Provider"] = relationship("Provider")
    services: Mapped[list["BookingService"]] = relationship(
        "BookingService",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingService.scheduled_start_at",
    )
    addons: Mapped[list["BookingAddon"]] = relationship(
        "BookingAddon", back_populates="booking", cascade="all, delete-orphan"
    )
    products: Mapped[list["BookingProduct"]] = relationship(
        "BookingProduct", back_populates="booking", cascade="all, delete-orphan"
    )
    participants: Mapped[list["GroupParticipant"]] = relationship(
        "GroupParticipant", back_populates="booking", cascade="all, delete-orphan"
    )


class BookingService(TimestampMixin, Base):
    """One offering performed by a staff member within a booking."""

    __tablename__ = "booking_services"
    __table_args__ = (
        Index("ix_booking_services_staff_start", "staff_id", "scheduled_start_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    offering_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("offerings.id", ondelete="RESTRICT"), nullable=False
    )
    staff_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("provider_staff.id", ondelete="SET NULL"), nullable=True
    )
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    buffer_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    scheduled_start_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    scheduled_end_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="services")
    offering: Mapped["Offering"] = relationship("Offering")
    staff: Mapped["Staff | None"] = relationship("Staff")


class BookingAddon(TimestampMixin, Base):
    """Add-on selected for a booking, with its price at checkout."""

    __tablename__ = "booking_addons"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    addon_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("service_addons.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="addons")
    addon: Mapped["Addon"] = relationship("Addon")


class BookingProduct(TimestampMixin, Base):
    """Retail product purchased with a booking."""

    __tablename__ = "booking_products"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="products")
    product: Mapped["Product"] = relationship("Product")


class GroupParticipant(TimestampMixin, Base):
    """Additional guest on a group booking."""

    __tablename__ = "booking_group_participants"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320))
    phone: Mapped[str | None] = mapped_column(String(32))
    is_primary_contact: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    offering_ids: Mapped[list[Any] | None] = mapped_column(JSONB_TYPE)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="participants")
