"""Service layer exports."""
from app.services import (
    auth_service,
    availability_service,
    fee_settings_service,
    promotion_service,
    quote_service,
    travel_fee_service,
    user_service,
)

__all__ = [
    "auth_service",
    "availability_service",
    "fee_settings_service",
    "promotion_service",
    "quote_service",
    "travel_fee_service",
    "user_service",
]
