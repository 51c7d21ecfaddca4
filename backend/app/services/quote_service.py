"""Booking quote composer.

Folds a selection (services, add-ons, products, package, travel fee), the
validated discounts and a fee snapshot into one price breakdown. The
composer is a pure function: the same inputs always yield the same quote,
so the wizard and the booking endpoint can both derive totals from it.

Every discount is computed against the same pre-discount subtotal and the
sum is clamped to that subtotal, so the order in which a customer applies
coupon, gift card, loyalty points and membership never changes the total.
When the clamp bites, the excess comes off stored value first (gift card,
then loyalty points), then the membership and coupon discounts, so the
components always add up to the discount actually applied.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from app.models.fees import FeeType
from app.models.promotion import PromotionKind

MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
SUGGESTED_TIP_PERCENTAGES = (10, 15, 20)


@dataclass(slots=True)
class QuoteLine:
    """Individual component contributing to a booking quote."""

    description: str
    amount: Decimal


@dataclass(slots=True)
class ServiceItem:
    offering_id: UUID | None
    title: str
    price: Decimal
    duration_minutes: int = 0
    buffer_minutes: int = 0
    staff_id: UUID | None = None
    # guest name for services booked on behalf of a group participant
    participant: str | None = None


@dataclass(slots=True)
class AddonItem:
    addon_id: UUID | None
    name: str
    price: Decimal
    quantity: int = 1


@dataclass(slots=True)
class ProductItem:
    """Retail product line; ``stock`` is ``None`` when stock is not tracked."""

    product_id: UUID | None
    name: str
    unit_price: Decimal
    quantity: int = 1
    stock: int | None = None


@dataclass(slots=True)
class PackageOverride:
    """Package pricing that replaces the summed price of its services."""

    name: str
    price: Decimal | None = None
    discount_percentage: Decimal | None = None


@dataclass(slots=True)
class QuoteSelection:
    services: list[ServiceItem] = field(default_factory=list)
    addons: list[AddonItem] = field(default_factory=list)
    products: list[ProductItem] = field(default_factory=list)
    package: PackageOverride | None = None
    travel_fee: Decimal = ZERO
    currency: str = "ZAR"


@dataclass(slots=True)
class CouponDiscount:
    code: str
    kind: PromotionKind
    value: Decimal
    min_purchase_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None


@dataclass(slots=True)
class GiftCardDiscount:
    code: str
    balance: Decimal


@dataclass(slots=True)
class LoyaltyRedemption:
    """Points the customer wants to redeem plus the rule governing them."""

    points: int
    balance: int
    redemption_rate: Decimal = Decimal("10")
    min_redemption_points: int = 50
    max_redemption_percentage: Decimal = Decimal("50")


@dataclass(slots=True)
class MembershipDiscount:
    plan_name: str
    discount_percent: Decimal


@dataclass(slots=True)
class DiscountInputs:
    coupon: CouponDiscount | None = None
    gift_card: GiftCardDiscount | None = None
    loyalty: LoyaltyRedemption | None = None
    membership: MembershipDiscount | None = None


@dataclass(slots=True)
class FeeTier:
    min_amount: Decimal
    max_amount: Decimal | None = None
    fee_percentage: Decimal | None = None
    fee_fixed_amount: Decimal | None = None


@dataclass(slots=True)
class ServiceFeeRule:
    """Platform service fee definition (percentage, fixed or tiered)."""

    fee_type: FeeType
    percentage: Decimal | None = None
    fixed_amount: Decimal | None = None
    tiers: list[FeeTier] = field(default_factory=list)
    min_booking_amount: Decimal | None = None
    max_fee_amount: Decimal | None = None
    config_id: UUID | None = None


@dataclass(slots=True)
class FeeInputs:
    service_fee: ServiceFeeRule | None = None
    tax_rate_percent: Decimal = ZERO
    tips_enabled: bool = True
    tip_amount: Decimal | None = None
    tip_percentage: Decimal | None = None
    points_per_currency_unit: Decimal = ZERO


@dataclass(slots=True)
class QuoteBreakdown:
    """Aggregate pricing output for a booking draft."""

    currency: str
    items: list[QuoteLine]
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
    loyalty_points_redeemed: int = 0
    loyalty_points_earned: int = 0
    suggested_tips: dict[int, Decimal] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the quote to plain types for responses."""

        def _serialize(line: QuoteLine) -> dict[str, str]:
            return {
                "description": line.description,
                "amount": _to_str(line.amount),
            }

        money_fields = (
            "services_subtotal",
            "package_discount",
            "addons_subtotal",
            "products_subtotal",
            "travel_fee",
            "subtotal",
            "coupon_discount",
            "gift_card_amount",
            "loyalty_discount",
            "membership_discount",
            "discount_total",
            "discounted_subtotal",
            "service_fee",
            "tax_amount",
            "tip_amount",
            "total",
        )
        payload: dict[str, Any] = {
            name: _to_str(getattr(self, name)) for name in money_fields
        }
        payload.update(
            {
                "currency": self.currency,
                "items": [_serialize(line) for line in self.items],
                "tax_rate_percent": str(self.tax_rate_percent),
                "loyalty_points_redeemed": self.loyalty_points_redeemed,
                "loyalty_points_earned": self.loyalty_points_earned,
                "suggested_tips": [
                    {"percentage": percent, "amount": _to_str(amount)}
                    for percent, amount in self.suggested_tips.items()
                ],
                "warnings": list(self.warnings),
            }
        )
        return payload


def _to_money(value: Decimal | float | int | str) -> Decimal:
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _to_str(value: Decimal) -> str:
    return f"{value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP):.2f}"


def _percent_of(amount: Decimal, percent: Decimal | int | str) -> Decimal:
    return _to_money(amount * Decimal(percent) / HUNDRED)


def _percent_label(value: Decimal) -> str:
    return format(Decimal(value).normalize(), "f")


def compose_quote(
    selection: QuoteSelection,
    discounts: DiscountInputs | None = None,
    fees: FeeInputs | None = None,
) -> QuoteBreakdown:
    """Compose the full price breakdown for a booking selection."""

    discounts = discounts or DiscountInputs()
    fees = fees or FeeInputs()
    currency = selection.currency
    warnings: list[str] = []
    items: list[QuoteLine] = []

    services_subtotal = _to_money(
        sum((item.price for item in selection.services), ZERO)
    )
    package_discount = _package_savings(
        selection.package,
        _to_money(
            sum(
                (item.price for item in selection.services if item.participant is None),
                ZERO,
            )
        ),
    )
    addons_subtotal = _to_money(
        sum((item.price * item.quantity for item in selection.addons), ZERO)
    )
    products_subtotal = _products_subtotal(selection.products)
    travel_fee = _to_money(max(Decimal(selection.travel_fee), ZERO))

    for service in selection.services:
        label = (
            service.title
            if service.participant is None
            else f"{service.title} ({service.participant})"
        )
        items.append(QuoteLine(label, _to_money(service.price)))
    if package_discount:
        assert selection.package is not None
        items.append(
            QuoteLine(f"Package {selection.package.name}", -package_discount)
        )
    for addon in selection.addons:
        label = addon.name if addon.quantity == 1 else f"{addon.name} x{addon.quantity}"
        items.append(QuoteLine(label, _to_money(addon.price * addon.quantity)))
    for product in selection.products:
        label = (
            product.name
            if product.quantity == 1
            else f"{product.name} x{product.quantity}"
        )
        items.append(
            QuoteLine(label, _to_money(product.unit_price * product.quantity))
        )
    if travel_fee:
        items.append(QuoteLine("Travel fee", travel_fee))

    subtotal = (
        services_subtotal
        - package_discount
        + addons_subtotal
        + products_subtotal
        + travel_fee
    )

    coupon_discount = coupon_amount(discounts.coupon, subtotal, currency, warnings)
    gift_card_amount = ZERO
    if discounts.gift_card is not None:
        gift_card_amount = _to_money(
            min(max(Decimal(discounts.gift_card.balance), ZERO), subtotal)
        )
    loyalty_discount, points_redeemed = loyalty_amount(
        discounts.loyalty, subtotal, warnings
    )
    membership_discount = ZERO
    if discounts.membership is not None and discounts.membership.discount_percent > 0:
        membership_discount = _percent_of(
            subtotal, discounts.membership.discount_percent
        )

    requested_discount = (
        coupon_discount + gift_card_amount + loyalty_discount + membership_discount
    )
    if requested_discount > subtotal:
        warnings.append("Discounts capped at the booking subtotal")
        excess = requested_discount - subtotal
        gift_card_amount, excess = _trim(gift_card_amount, excess)
        trimmed_loyalty, excess = _trim(loyalty_discount, excess)
        membership_discount, excess = _trim(membership_discount, excess)
        coupon_discount, excess = _trim(coupon_discount, excess)
        if trimmed_loyalty != loyalty_discount:
            assert discounts.loyalty is not None
            rate = Decimal(discounts.loyalty.redemption_rate)
            points_redeemed = math.floor(trimmed_loyalty * rate)
            trimmed_loyalty = _to_money(Decimal(points_redeemed) / rate)
        loyalty_discount = trimmed_loyalty
    discount_total = (
        coupon_discount + gift_card_amount + loyalty_discount + membership_discount
    )
    discounted_subtotal = max(subtotal - discount_total, ZERO)

    if coupon_discount:
        assert discounts.coupon is not None
        items.append(QuoteLine(f"Coupon {discounts.coupon.code}", -coupon_discount))
    if gift_card_amount:
        items.append(QuoteLine("Gift card", -gift_card_amount))
    if loyalty_discount:
        items.append(
            QuoteLine(f"Loyalty points ({points_redeemed})", -loyalty_discount)
        )
    if membership_discount:
        assert discounts.membership is not None
        items.append(
            QuoteLine(
                f"Membership {discounts.membership.plan_name}", -membership_discount
            )
        )

    service_fee = _service_fee(fees.service_fee, discounted_subtotal)
    if service_fee:
        items.append(QuoteLine("Service fee", service_fee))

    tax_rate = Decimal(fees.tax_rate_percent or 0)
    tax_amount = _percent_of(discounted_subtotal, tax_rate) if tax_rate > 0 else ZERO
    if tax_amount:
        items.append(QuoteLine(f"Tax ({_percent_label(tax_rate)}%)", tax_amount))

    tip_amount = ZERO
    suggested_tips: dict[int, Decimal] = {}
    if fees.tips_enabled:
        suggested_tips = {
            percent: _percent_of(discounted_subtotal, percent)
            for percent in SUGGESTED_TIP_PERCENTAGES
        }
        if fees.tip_amount is not None:
            tip_amount = _to_money(max(Decimal(fees.tip_amount), ZERO))
        elif fees.tip_percentage is not None and fees.tip_percentage > 0:
            tip_amount = _percent_of(discounted_subtotal, fees.tip_percentage)
    elif fees.tip_amount or fees.tip_percentage:
        warnings.append("Tips are not enabled for this provider")
    if tip_amount:
        items.append(QuoteLine("Tip", tip_amount))

    total = _to_money(discounted_subtotal + service_fee + tax_amount + tip_amount)
    points_earned = 0
    if fees.points_per_currency_unit and fees.points_per_currency_unit > 0:
        points_earned = math.floor(total * Decimal(fees.points_per_currency_unit))

    return QuoteBreakdown(
        currency=currency,
        items=items,
        services_subtotal=services_subtotal,
        package_discount=package_discount,
        addons_subtotal=addons_subtotal,
        products_subtotal=products_subtotal,
        travel_fee=travel_fee,
        subtotal=_to_money(subtotal),
        coupon_discount=coupon_discount,
        gift_card_amount=gift_card_amount,
        loyalty_discount=loyalty_discount,
        membership_discount=membership_discount,
        discount_total=_to_money(discount_total),
        discounted_subtotal=_to_money(discounted_subtotal),
        service_fee=service_fee,
        tax_rate_percent=tax_rate,
        tax_amount=tax_amount,
        tip_amount=tip_amount,
        total=total,
        loyalty_points_redeemed=points_redeemed,
        loyalty_points_earned=points_earned,
        suggested_tips=suggested_tips,
        warnings=warnings,
    )


def _trim(amount: Decimal, excess: Decimal) -> tuple[Decimal, Decimal]:
    """Take up to ``excess`` off ``amount``; return the new amount and what is left over."""
    cut = min(amount, excess)
    return amount - cut, excess - cut


def _package_savings(package: PackageOverride | None, services_subtotal: Decimal) -> Decimal:
    if package is None:
        return ZERO
    if package.price is not None:
        return _to_money(max(services_subtotal - Decimal(package.price), ZERO))
    if package.discount_percentage:
        return _to_money(
            max(_percent_of(services_subtotal, package.discount_percentage), ZERO)
        )
    return ZERO


def _products_subtotal(products: list[ProductItem]) -> Decimal:
    total = ZERO
    for product in products:
        if product.quantity < 1:
            raise ValueError(f"Invalid quantity for {product.name}")
        if product.stock is not None and product.quantity > product.stock:
            raise ValueError(
                f"Insufficient stock for {product.name}: "
                f"{product.stock} available, {product.quantity} requested"
            )
        total += Decimal(product.unit_price) * product.quantity
    return _to_money(total)


def coupon_amount(
    coupon: CouponDiscount | None,
    subtotal: Decimal,
    currency: str,
    warnings: list[str],
) -> Decimal:
    if coupon is None:
        return ZERO
    if coupon.min_purchase_amount and subtotal < coupon.min_purchase_amount:
        warnings.append(
            f"Promo requires minimum booking of {currency} "
            f"{_to_str(Decimal(coupon.min_purchase_amount))}"
        )
        return ZERO
    if coupon.kind is PromotionKind.PERCENTAGE:
        amount = _percent_of(subtotal, coupon.value)
    else:
        amount = _to_money(coupon.value)
    if coupon.max_discount_amount is not None:
        amount = min(amount, _to_money(coupon.max_discount_amount))
    return max(min(amount, subtotal), ZERO)


def loyalty_amount(
    loyalty: LoyaltyRedemption | None,
    subtotal: Decimal,
    warnings: list[str],
) -> tuple[Decimal, int]:
    if loyalty is None or loyalty.points <= 0:
        return ZERO, 0
    min_points = loyalty.min_redemption_points or 50
    max_percentage = Decimal(loyalty.max_redemption_percentage or 50)
    if loyalty.points < min_points:
        warnings.append(f"Minimum {min_points} points required for redemption")
        return ZERO, 0
    if loyalty.points > loyalty.balance:
        warnings.append("Insufficient points balance")
        return ZERO, 0
    rate = Decimal(loyalty.redemption_rate)
    if rate <= 0:
        raise ValueError("Loyalty redemption rate must be positive")

    amount = _to_money(Decimal(loyalty.points) / rate)
    ceiling = _percent_of(subtotal, max_percentage)
    if amount > ceiling:
        warnings.append(
            f"Points capped at {_percent_label(max_percentage)}% of subtotal"
        )
        return ceiling, math.floor(ceiling * rate)
    return amount, loyalty.points


def _service_fee(rule: ServiceFeeRule | None, base: Decimal) -> Decimal:
    if rule is None:
        return ZERO
    if rule.min_booking_amount and base < rule.min_booking_amount:
        return ZERO

    fee = ZERO
    if rule.fee_type is FeeType.PERCENTAGE and rule.percentage:
        fee = _percent_of(base, rule.percentage)
    elif rule.fee_type is FeeType.FIXED_AMOUNT and rule.fixed_amount:
        fee = _to_money(rule.fixed_amount)
    elif rule.fee_type is FeeType.TIERED:
        tier = next(
            (
                tier
                for tier in rule.tiers
                if base >= tier.min_amount
                and (tier.max_amount is None or base <= tier.max_amount)
            ),
            None,
        )
        if tier is not None:
            if tier.fee_percentage:
                fee = _percent_of(base, tier.fee_percentage)
            elif tier.fee_fixed_amount:
                fee = _to_money(tier.fee_fixed_amount)

    if rule.max_fee_amount is not None:
        fee = min(fee, _to_money(rule.max_fee_amount))
    return fee


def tiers_from_config(raw_tiers: list[dict[str, Any]] | None) -> list[FeeTier]:
    """Convert stored JSON tier definitions into ``FeeTier`` objects."""

    tiers: list[FeeTier] = []
    for raw in raw_tiers or []:
        tiers.append(
            FeeTier(
                min_amount=Decimal(str(raw.get("min_amount", 0))),
                max_amount=_optional_decimal(raw.get("max_amount")),
                fee_percentage=_optional_decimal(raw.get("fee_percentage")),
                fee_fixed_amount=_optional_decimal(raw.get("fee_fixed_amount")),
            )
        )
    return tiers


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))
