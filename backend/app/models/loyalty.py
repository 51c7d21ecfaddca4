"""Loyalty points and membership plan models."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from app.models.user import User


class MembershipStatus(str, enum.Enum):
    """Lifecycle states for a customer membership."""

    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class LoyaltyRule(TimestampMixin, Base):
    """Earn and redemption parameters for a currency."""

    __tablename__ = "loyalty_rules"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    points_per_currency_unit: Mapped[Decimal] = mapped_column(
        Numeric(8, 4), default=Decimal("1"), nullable=False
    )
    redemption_rate: Mapped[Decimal] = mapped_column(
        Numeric(8, 4), default=Decimal("10"), nullable=False
    )
    min_redemption_points: Mapped[int] = mapped_column(
        Integer, default=50, nullable=False
    )
    max_redemption_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("50"), nullable=False
    )
    effective_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class LoyaltyAccount(TimestampMixin, Base):
    """Running points balance for a customer."""

    __tablename__ = "loyalty_accounts"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    points_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user: Mapped["User"] = relationship("User")


class MembershipPlan(TimestampMixin, Base):
    """Provider membership tier granting a standing discount."""

    __tablename__ = "membership_plans"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("0"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class UserMembership(TimestampMixin, Base):
    """A customer's membership with a specific provider."""

    __tablename__ = "user_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "provider_id", name="uq_membership_user_provider"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("membership_plans.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[MembershipStatus] = mapped_column(
        Enum(MembershipStatus), default=MembershipStatus.ACTIVE, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    plan: Mapped["MembershipPlan"] = relationship("MembershipPlan")
