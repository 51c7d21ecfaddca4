"""Tests for the pure quote composer."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from app.models import FeeType, PromotionKind
from app.services.quote_service import (
    AddonItem,
    CouponDiscount,
    DiscountInputs,
    FeeInputs,
    FeeTier,
    GiftCardDiscount,
    LoyaltyRedemption,
    MembershipDiscount,
    PackageOverride,
    ProductItem,
    QuoteSelection,
    ServiceFeeRule,
    ServiceItem,
    compose_quote,
)


def _service(title: str, price: str, minutes: int = 60) -> ServiceItem:
    return ServiceItem(
        offering_id=uuid.uuid4(),
        title=title,
        price=Decimal(price),
        duration_minutes=minutes,
        buffer_minutes=0,
    )


def _selection(*prices: str, **kwargs) -> QuoteSelection:
    services = [_service(f"Service {index}", price) for index, price in enumerate(prices)]
    return QuoteSelection(services=services, **kwargs)


def test_subtotal_sums_services_addons_products_and_travel() -> None:
    selection = _selection(
        "300.00",
        addons=[AddonItem(uuid.uuid4(), "Nail Art", Decimal("80.00"), quantity=2)],
        products=[ProductItem(uuid.uuid4(), "Cuticle Oil", Decimal("120.00"), 1, stock=3)],
        travel_fee=Decimal("50"),
    )

    quote = compose_quote(selection)

    assert quote.services_subtotal == Decimal("300.00")
    assert quote.addons_subtotal == Decimal("160.00")
    assert quote.products_subtotal == Decimal("120.00")
    assert quote.travel_fee == Decimal("50.00")
    assert quote.subtotal == Decimal("630.00")
    assert quote.total == Decimal("630.00")
    descriptions = [item["description"] for item in quote.to_dict()["items"]]
    assert descriptions == ["Service 0", "Nail Art x2", "Cuticle Oil", "Travel fee"]


def test_package_price_replaces_services_subtotal() -> None:
    selection = _selection(
        "300.00",
        "250.00",
        package=PackageOverride(name="Pamper Day", price=Decimal("450.00")),
    )

    quote = compose_quote(selection)

    assert quote.package_discount == Decimal("100.00")
    assert quote.subtotal == Decimal("450.00")
    assert any(
        item["description"] == "Package Pamper Day" and item["amount"] == "-100.00"
        for item in quote.to_dict()["items"]
    )


def test_package_percentage_discount() -> None:
    selection = _selection(
        "300.00",
        "200.00",
        package=PackageOverride(name="Duo", discount_percentage=Decimal("20")),
    )

    assert compose_quote(selection).subtotal == Decimal("400.00")


def test_all_discounts_use_the_same_subtotal() -> None:
    discounts = DiscountInputs(
        coupon=CouponDiscount("WELCOME10", PromotionKind.PERCENTAGE, Decimal("10")),
        gift_card=GiftCardDiscount("GIFT-100", Decimal("100")),
        loyalty=LoyaltyRedemption(points=200, balance=500),
        membership=MembershipDiscount("Gold", Decimal("5")),
    )

    quote = compose_quote(_selection("500.00"), discounts)

    assert quote.coupon_discount == Decimal("50.00")
    assert quote.gift_card_amount == Decimal("100.00")
    assert quote.loyalty_discount == Decimal("20.00")
    assert quote.loyalty_points_redeemed == 200
    assert quote.membership_discount == Decimal("25.00")
    assert quote.discount_total == Decimal("195.00")
    assert quote.discounted_subtotal == Decimal("305.00")
    assert quote.total == Decimal("305.00")


def test_discounts_are_capped_at_subtotal() -> None:
    discounts = DiscountInputs(
        coupon=CouponDiscount("FLAT100", PromotionKind.FIXED, Decimal("100")),
        gift_card=GiftCardDiscount("BIGCARD", Decimal("1000")),
    )

    quote = compose_quote(_selection("300.00"), discounts)

    assert quote.discount_total == Decimal("300.00")
    assert quote.discounted_subtotal == Decimal("0.00")
    assert quote.total == Decimal("0.00")
    assert "Discounts capped at the booking subtotal" in quote.warnings
    assert quote.coupon_discount == Decimal("100.00")
    assert quote.gift_card_amount == Decimal("200.00")


def test_capped_discounts_draw_stored_value_first() -> None:
    discounts = DiscountInputs(
        coupon=CouponDiscount("FLAT100", PromotionKind.FIXED, Decimal("100")),
        gift_card=GiftCardDiscount("GIFT-50", Decimal("50")),
        membership=MembershipDiscount("Gold", Decimal("5")),
    )

    quote = compose_quote(_selection("100.00"), discounts)

    assert quote.coupon_discount == Decimal("100.00")
    assert quote.gift_card_amount == Decimal("0.00")
    assert quote.membership_discount == Decimal("0.00")
    assert quote.discount_total == Decimal("100.00")
    assert quote.total == Decimal("0.00")
    descriptions = [item["description"] for item in quote.to_dict()["items"]]
    assert descriptions == ["Service 0", "Coupon FLAT100"]


def test_capped_loyalty_redeems_only_the_points_used() -> None:
    discounts = DiscountInputs(
        coupon=CouponDiscount("FLAT80", PromotionKind.FIXED, Decimal("80")),
        loyalty=LoyaltyRedemption(points=300, balance=500),
    )

    quote = compose_quote(_selection("100.00"), discounts)

    assert quote.loyalty_discount == Decimal("20.00")
    assert quote.loyalty_points_redeemed == 200
    assert (
        quote.coupon_discount
        + quote.gift_card_amount
        + quote.loyalty_discount
        + quote.membership_discount
        == quote.discount_total
        == Decimal("100.00")
    )


def test_coupon_minimum_purchase_not_met() -> None:
    discounts = DiscountInputs(
        coupon=CouponDiscount(
            "BIGSPEND",
            PromotionKind.FIXED,
            Decimal("50"),
            min_purchase_amount=Decimal("500"),
        )
    )

    quote = compose_quote(_selection("300.00"), discounts)

    assert quote.coupon_discount == Decimal("0.00")
    assert quote.warnings == ["Promo requires minimum booking of ZAR 500.00"]


def test_percentage_coupon_respects_max_discount() -> None:
    discounts = DiscountInputs(
        coupon=CouponDiscount(
            "HALF",
            PromotionKind.PERCENTAGE,
            Decimal("50"),
            max_discount_amount=Decimal("75"),
        )
    )

    assert compose_quote(_selection("400.00"), discounts).coupon_discount == Decimal(
        "75.00"
    )


def test_loyalty_points_capped_at_share_of_subtotal() -> None:
    discounts = DiscountInputs(loyalty=LoyaltyRedemption(points=5000, balance=5000))

    quote = compose_quote(_selection("300.00"), discounts)

    assert quote.loyalty_discount == Decimal("150.00")
    assert quote.loyalty_points_redeemed == 1500
    assert "Points capped at 50% of subtotal" in quote.warnings


@pytest.mark.parametrize(
    ("points", "balance", "warning"),
    [
        (20, 500, "Minimum 50 points required for redemption"),
        (200, 100, "Insufficient points balance"),
    ],
)
def test_loyalty_rejections_leave_no_discount(
    points: int, balance: int, warning: str
) -> None:
    discounts = DiscountInputs(loyalty=LoyaltyRedemption(points=points, balance=balance))

    quote = compose_quote(_selection("300.00"), discounts)

    assert quote.loyalty_discount == Decimal("0.00")
    assert quote.loyalty_points_redeemed == 0
    assert quote.warnings == [warning]


def test_tiered_service_fee_tax_and_tip_percentage() -> None:
    fees = FeeInputs(
        service_fee=ServiceFeeRule(
            fee_type=FeeType.TIERED,
            tiers=[
                FeeTier(Decimal("0"), Decimal("500"), fee_percentage=Decimal("10")),
                FeeTier(Decimal("500.01"), None, fee_fixed_amount=Decimal("40")),
            ],
        ),
        tax_rate_percent=Decimal("15"),
        tip_percentage=Decimal("10"),
        points_per_currency_unit=Decimal("1"),
    )

    quote = compose_quote(_selection("1000.00"), fees=fees)

    assert quote.service_fee == Decimal("40.00")
    assert quote.tax_amount == Decimal("150.00")
    assert quote.tip_amount == Decimal("100.00")
    assert quote.total == Decimal("1290.00")
    assert quote.loyalty_points_earned == 1290
    assert quote.suggested_tips == {
        10: Decimal("100.00"),
        15: Decimal("150.00"),
        20: Decimal("200.00"),
    }
    assert any(item.description == "Tax (15%)" for item in quote.items)


def test_percentage_service_fee_is_capped_and_skipped_below_minimum() -> None:
    rule = ServiceFeeRule(
        fee_type=FeeType.PERCENTAGE,
        percentage=Decimal("10"),
        min_booking_amount=Decimal("100"),
        max_fee_amount=Decimal("60"),
    )

    assert compose_quote(
        _selection("1000.00"), fees=FeeInputs(service_fee=rule)
    ).service_fee == Decimal("60.00")
    assert compose_quote(
        _selection("80.00"), fees=FeeInputs(service_fee=rule)
    ).service_fee == Decimal("0.00")


def test_tip_ignored_when_tips_disabled() -> None:
    fees = FeeInputs(tips_enabled=False, tip_amount=Decimal("30"))

    quote = compose_quote(_selection("300.00"), fees=fees)

    assert quote.tip_amount == Decimal("0.00")
    assert quote.suggested_tips == {}
    assert quote.warnings == ["Tips are not enabled for this provider"]


def test_product_stock_is_enforced() -> None:
    selection = _selection(
        "300.00",
        products=[ProductItem(uuid.uuid4(), "Cuticle Oil", Decimal("120"), 4, stock=3)],
    )

    with pytest.raises(ValueError, match="Insufficient stock for Cuticle Oil"):
        compose_quote(selection)


def test_compose_is_deterministic() -> None:
    selection = _selection("199.99", travel_fee=Decimal("33.335"))
    fees = FeeInputs(tax_rate_percent=Decimal("15"))

    first = compose_quote(selection, fees=fees).to_dict()
    second = compose_quote(selection, fees=fees).to_dict()

    assert first == second
    assert first["travel_fee"] == "33.34"
    assert first["total"] == "268.33"
