"""Platform service fee configuration."""

from __future__ import annotations

import enum
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Enum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import JSONB_TYPE, TimestampMixin


class FeeType(str, enum.Enum):
    """How the customer-facing service fee is derived."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    TIERED = "tiered"


class PlatformFeeConfig(TimestampMixin, Base):
    """Service fee charged to customers on top of the booking subtotal."""

    __tablename__ = "platform_fee_configs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    fee_type: Mapped[FeeType] = mapped_column(Enum(FeeType), nullable=False)
    fee_percentage: Mapped[Decimal | None] = mapped_column(Numeric(6, 3))
    fee_fixed_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    tiers: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONB_TYPE)
    min_booking_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    max_fee_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
