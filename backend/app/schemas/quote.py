"""Quote schema definitions."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class QuoteLineRead(BaseModel):
    """Individual line item within a quote."""

    description: str
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class QuoteRead(BaseModel):
    """Full price breakdown for a booking draft."""

    currency: str
    items: list[QuoteLineRead]
    services_subtotal: Decimal
    package_discount: Decimal
    addons_subtotal: Decimal
    products_subtotal: Decimal
    travel_fee: Decimal
    subtotal: Decimal
    coupon_discount: Decimal
    gift_card_amount: Decimal
    loyalty_discount: Decimal
    membership_discount: Decimal
    discount_total: Decimal
    discounted_subtotal: Decimal
    service_fee: Decimal
    tax_rate_percent: Decimal
    tax_amount: Decimal
    tip_amount: Decimal
    total: Decimal
    loyalty_points_redeemed: int
    loyalty_points_earned: int
    suggested_tips: dict[int, Decimal]
    warnings: list[str]

    model_config = ConfigDict(from_attributes=True)
