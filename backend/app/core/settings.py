"""Specialized settings adapters for the booking flow."""

from __future__ import annotations

from datetime import time
from decimal import Decimal

from pydantic import BaseModel

from app.core.config import get_settings


class BookingSettings(BaseModel):
    """Slim view of booking and fee related configuration."""

    default_currency: str = "ZAR"
    platform_default_tax_rate: Decimal = Decimal("0")
    platform_service_fee_type: str = "percentage"
    platform_service_fee_percentage: Decimal = Decimal("0")
    platform_service_fee_fixed: Decimal = Decimal("0")
    slot_interval_minutes: int = 15
    default_open_time: time = time(9, 0)
    default_close_time: time = time(18, 0)
    max_advance_days: int = 365


def get_booking_settings() -> BookingSettings:
    """Return booking-specific configuration."""

    settings = get_settings()
    return BookingSettings(
        default_currency=settings.default_currency,
        platform_default_tax_rate=settings.platform_default_tax_rate,
        platform_service_fee_type=settings.platform_service_fee_type,
        platform_service_fee_percentage=settings.platform_service_fee_percentage,
        platform_service_fee_fixed=settings.platform_service_fee_fixed,
        slot_interval_minutes=settings.slot_interval_minutes,
        default_open_time=time.fromisoformat(settings.default_open_time),
        default_close_time=time.fromisoformat(settings.default_close_time),
        max_advance_days=settings.max_advance_days,
    )
