"""Provider (salon / freelancer) models: locations and staff."""

from __future__ import annotations

import enum
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Enum, Float, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import JSONB_TYPE, TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.account import Account
    from app.models.catalog import Addon, Offering, Product, ServicePackage
    from app.models.fees import PlatformFeeConfig


class ProviderStatus(str, enum.Enum):
    """Marketplace listing states for a provider."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class LocationKind(str, enum.Enum):
    """Whether a location accepts in-salon bookings or is a travel origin only."""

    SALON = "salon"
    BASE = "base"


class Provider(TimestampMixin, Base):
    """A bookable beauty provider listed on the marketplace."""

    __tablename__ = "providers"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ProviderStatus] = mapped_column(
        Enum(ProviderStatus), default=ProviderStatus.ACTIVE, nullable=False
    )
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    currency: Mapped[str | None] = mapped_column(String(3))
    tax_rate_percent: Mapped[Decimal | None] = mapped_column(Numeric(6, 3))
    tips_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    customer_fee_config_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("platform_fee_configs.id", ondelete="SET NULL"), nullable=True
    )
    minimum_mobile_booking_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2)
    )
    base_latitude: Mapped[float | None] = mapped_column(Float)
    base_longitude: Mapped[float | None] = mapped_column(Float)
    travel_buffer_minutes: Mapped[int] = mapped_column(
        Integer, default=30, nullable=False
    )
    travel_fee_rules: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE)

    account: Mapped["Account"] = relationship("Account", back_populates="providers")
    customer_fee_config: Mapped["PlatformFeeConfig | None"] = relationship(
        "PlatformFeeConfig"
    )
    locations: Mapped[list["ProviderLocation"]] = relationship(
        "ProviderLocation", back_populates="provider", cascade="all, delete-orphan"
    )
    staff: Mapped[list["Staff"]] = relationship(
        "Staff", back_populates="provider", cascade="all, delete-orphan"
    )
    offerings: Mapped[list["Offering"]] = relationship(
        "Offering", back_populates="provider", cascade="all, delete-orphan"
    )
    addons: Mapped[list["Addon"]] = relationship(
        "Addon", back_populates="provider", cascade="all, delete-orphan"
    )
    products: Mapped[list["Product"]] = relationship(
        "Product", back_populates="provider", cascade="all, delete-orphan"
    )
    packages: Mapped[list["ServicePackage"]] = relationship(
        "ServicePackage", back_populates="provider", cascade="all, delete-orphan"
    )

    @property
    def has_base_coordinates(self) -> bool:
        return self.base_latitude is not None and self.base_longitude is not None


class ProviderLocation(TimestampMixin, Base):
    """Physical salon (or travel base) belonging to a provider."""

    __tablename__ = "provider_locations"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[LocationKind] = mapped_column(
        Enum(LocationKind), default=LocationKind.SALON, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    working_hours: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE)

    provider: Mapped["Provider"] = relationship("Provider", back_populates="locations")


class Staff(TimestampMixin, Base):
    """Team member who performs services."""

    __tablename__ = "provider_staff"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    working_hours: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE)

    provider: Mapped["Provider"] = relationship("Provider", back_populates="staff")
