"""Bookable catalog: offerings, add-ons, retail products and packages."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.provider import Provider


package_offerings = Table(
    "package_offerings",
    Base.metadata,
    Column(
        "package_id",
        ForeignKey("service_packages.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "offering_id",
        ForeignKey("offerings.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Offering(TimestampMixin, Base):
    """A service on a provider's menu."""

    __tablename__ = "offerings"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    buffer_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ZAR", nullable=False)
    supports_at_home: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    at_home_price_adjustment: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    provider: Mapped["Provider"] = relationship("Provider", back_populates="offerings")


class Addon(TimestampMixin, Base):
    """Optional extra attached to a booking."""

    __tablename__ = "service_addons"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    provider: Mapped["Provider"] = relationship("Provider", back_populates="addons")


class Product(TimestampMixin, Base):
    """Retail product sold alongside a booking."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    retail_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    track_stock_quantity: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    provider: Mapped["Provider"] = relationship("Provider", back_populates="products")


class ServicePackage(TimestampMixin, Base):
    """Bundle of offerings sold at a flat price or a percentage off."""

    __tablename__ = "service_packages"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    discount_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    provider: Mapped["Provider"] = relationship("Provider", back_populates="packages")
    offerings: Mapped[list["Offering"]] = relationship(
        "Offering", secondary=package_offerings
    )
