"""Tests for coupon, gift card, loyalty and membership validation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from app.db.session import get_sessionmaker
from app.models import (
    GiftCard,
    LocationType,
    MembershipPlan,
    MembershipStatus,
    Promotion,
    PromotionKind,
    Provider,
    UserMembership,
)
from app.services import promotion_service

pytestmark = pytest.mark.asyncio

NOW = datetime(2030, 6, 1, 8, 0, tzinfo=UTC)


async def _coupon(session, seeded, code: str, subtotal: str = "380", **kwargs):
    return await promotion_service.validate_coupon(
        session,
        code=code,
        provider_id=seeded["provider_id"],
        location_type=kwargs.pop("location_type", LocationType.AT_SALON),
        location_id=kwargs.pop("location_id", seeded["salon_id"]),
        subtotal=Decimal(subtotal),
        now=NOW,
    )


async def test_valid_coupon_is_case_insensitive(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        verdict = await _coupon(session, seeded, "  welcome10 ")

    assert verdict.valid
    assert verdict.code == "WELCOME10"
    assert verdict.discount == Decimal("38.00")
    assert verdict.message == "Coupon applied!"
    discount = verdict.as_discount()
    assert discount is not None
    assert discount.kind is PromotionKind.PERCENTAGE


async def test_unknown_coupon(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        verdict = await _coupon(session, seeded, "NOPE")

    assert not verdict.valid
    assert verdict.message == "Invalid coupon code"
    assert verdict.as_discount() is None


async def test_coupon_rejections(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        other = Provider(
            account_id=seeded["account_id"], slug="other-studio", name="Other Studio"
        )
        session.add(other)
        await session.flush()
        session.add_all(
            [
                Promotion(
                    account_id=seeded["account_id"],
                    code="OLD",
                    kind=PromotionKind.FIXED,
                    value=Decimal("20"),
                    valid_until=NOW - timedelta(days=1),
                ),
                Promotion(
                    account_id=seeded["account_id"],
                    code="SOON",
                    kind=PromotionKind.FIXED,
                    value=Decimal("20"),
                    valid_from=NOW + timedelta(days=1),
                ),
                Promotion(
                    account_id=seeded["account_id"],
                    code="USEDUP",
                    kind=PromotionKind.FIXED,
                    value=Decimal("20"),
                    usage_limit=1,
                    usage_count=1,
                ),
                Promotion(
                    account_id=seeded["account_id"],
                    provider_id=other.id,
                    code="ELSEWHERE",
                    kind=PromotionKind.FIXED,
                    value=Decimal("20"),
                ),
                Promotion(
                    account_id=seeded["account_id"],
                    code="OFF",
                    kind=PromotionKind.FIXED,
                    value=Decimal("20"),
                    active=False,
                ),
                Promotion(
                    account_id=seeded["account_id"],
                    code="SALONONLY",
                    kind=PromotionKind.FIXED,
                    value=Decimal("20"),
                    location_id=seeded["salon_id"],
                ),
                Promotion(
                    account_id=seeded["account_id"],
                    code="BIGSPEND",
                    kind=PromotionKind.FIXED,
                    value=Decimal("20"),
                    min_purchase_amount=Decimal("500"),
                ),
            ]
        )
        await session.commit()

        messages = {
            code: (await _coupon(session, seeded, code)).message
            for code in ("OLD", "SOON", "USEDUP", "ELSEWHERE", "OFF", "BIGSPEND")
        }
        at_home = await _coupon(
            session,
            seeded,
            "SALONONLY",
            location_type=LocationType.AT_HOME,
            location_id=None,
        )
        at_salon = await _coupon(session, seeded, "SALONONLY")

    assert messages == {
        "OLD": "This coupon has expired",
        "SOON": "This coupon is not yet valid",
        "USEDUP": "This coupon has reached its usage limit",
        "ELSEWHERE": "This coupon is not valid for this provider",
        "OFF": "This coupon is no longer active",
        "BIGSPEND": "Minimum purchase of ZAR 500.00 required",
    }
    assert at_home.message == "This coupon is only valid at a specific location"
    assert at_salon.valid
    assert at_salon.discount == Decimal("20.00")


async def test_gift_card_covers_up_to_balance(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        partial = await promotion_service.validate_gift_card(
            session,
            code="gift-100",
            provider_id=seeded["provider_id"],
            subtotal=Decimal("60"),
            now=NOW,
        )
        whole = await promotion_service.validate_gift_card(
            session, code="GIFT-100", provider_id=seeded["provider_id"], now=NOW
        )

    assert partial.valid
    assert (partial.amount, partial.balance) == (Decimal("60"), Decimal("100.00"))
    assert whole.amount == Decimal("100.00")


async def test_gift_card_rejections(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        session.add_all(
            [
                GiftCard(
                    account_id=seeded["account_id"],
                    code="EMPTY",
                    original_value=Decimal("50"),
                    remaining_value=Decimal("0"),
                ),
                GiftCard(
                    account_id=seeded["account_id"],
                    code="LAPSED",
                    original_value=Decimal("50"),
                    remaining_value=Decimal("50"),
                    expires_at=NOW - timedelta(days=1),
                ),
            ]
        )
        await session.commit()

        messages = [
            (
                await promotion_service.validate_gift_card(
                    session, code=code, provider_id=seeded["provider_id"], now=NOW
                )
            ).message
            for code in ("EMPTY", "LAPSED", "MISSING")
        ]

    assert messages == [
        "This gift card has no remaining balance",
        "This gift card has expired",
        "Invalid gift card code",
    ]


async def test_loyalty_redemption_against_balance(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        applied = await promotion_service.validate_loyalty(
            session,
            customer_id=seeded["customer_id"],
            points=200,
            subtotal=Decimal("380"),
            currency="ZAR",
        )
        too_many = await promotion_service.validate_loyalty(
            session,
            customer_id=seeded["customer_id"],
            points=900,
            subtotal=Decimal("380"),
            currency="ZAR",
        )
        no_rule = await promotion_service.validate_loyalty(
            session,
            customer_id=seeded["customer_id"],
            points=200,
            subtotal=Decimal("380"),
            currency="USD",
        )

    assert applied.valid
    assert (applied.points, applied.balance) == (200, 500)
    assert applied.discount == Decimal("20.00")
    assert not too_many.valid
    assert too_many.message == "Insufficient points balance"
    assert not no_rule.valid
    assert no_rule.message == "Loyalty points are not available"


async def test_membership_lookup(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        missing = await promotion_service.resolve_membership(
            session,
            customer_id=seeded["customer_id"],
            provider_id=seeded["provider_id"],
            now=NOW,
        )
        plan = MembershipPlan(
            provider_id=seeded["provider_id"],
            name="Gold",
            discount_percent=Decimal("10"),
        )
        session.add(plan)
        await session.flush()
        membership = UserMembership(
            user_id=seeded["customer_id"],
            provider_id=seeded["provider_id"],
            plan_id=plan.id,
        )
        session.add(membership)
        await session.commit()

        active = await promotion_service.resolve_membership(
            session,
            customer_id=seeded["customer_id"],
            provider_id=seeded["provider_id"],
            now=NOW,
        )

        membership.status = MembershipStatus.PAUSED
        await session.commit()
        paused = await promotion_service.resolve_membership(
            session,
            customer_id=seeded["customer_id"],
            provider_id=seeded["provider_id"],
            now=NOW,
        )

    assert not missing.active
    assert missing.message == "No membership with this provider"
    assert active.active
    assert active.plan_name == "Gold"
    assert active.as_discount() is not None
    assert not paused.active
    assert paused.as_discount() is None
