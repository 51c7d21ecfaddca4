"""Validation of coupons, gift cards, loyalty points and memberships."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import (
    GiftCard,
    LocationType,
    LoyaltyAccount,
    LoyaltyRule,
    MembershipPlan,
    MembershipStatus,
    Promotion,
    Provider,
    UserMembership,
)
from app.services.quote_service import (
    CouponDiscount,
    LoyaltyRedemption,
    MembershipDiscount,
    coupon_amount,
    loyalty_amount,
)

ZERO = Decimal("0.00")


@dataclass(slots=True)
class CouponVerdict:
    valid: bool
    message: str
    code: str
    discount: Decimal = ZERO
    promotion: Promotion | None = field(default=None, repr=False)

    def as_discount(self) -> CouponDiscount | None:
        if not self.valid or self.promotion is None:
            return None
        return coupon_from_promotion(self.promotion)


@dataclass(slots=True)
class GiftCardVerdict:
    valid: bool
    message: str
    code: str
    amount: Decimal = ZERO
    balance: Decimal = ZERO
    gift_card: GiftCard | None = field(default=None, repr=False)


@dataclass(slots=True)
class LoyaltyVerdict:
    valid: bool
    message: str
    points: int = 0
    balance: int = 0
    discount: Decimal = ZERO
    rule: LoyaltyRule | None = field(default=None, repr=False)

    def as_redemption(self) -> LoyaltyRedemption | None:
        if not self.valid or self.rule is None:
            return None
        return redemption_from_rule(self.rule, points=self.points, balance=self.balance)


@dataclass(slots=True)
class MembershipVerdict:
    active: bool
    message: str
    plan_name: str | None = None
    discount_percent: Decimal = ZERO
    membership: UserMembership | None = field(default=None, repr=False)

    def as_discount(self) -> MembershipDiscount | None:
        if not self.active or self.plan_name is None:
            return None
        return MembershipDiscount(
            plan_name=self.plan_name, discount_percent=self.discount_percent
        )


def normalize_code(code: str) -> str:
    return code.strip().upper()


def _normalize_datetime(candidate: datetime) -> datetime:
    if candidate.tzinfo is None:
        return candidate.replace(tzinfo=UTC)
    return candidate.astimezone(UTC)


def coupon_from_promotion(promotion: Promotion) -> CouponDiscount:
    return CouponDiscount(
        code=promotion.code,
        kind=promotion.kind,
        value=Decimal(promotion.value),
        min_purchase_amount=promotion.min_purchase_amount,
        max_discount_amount=promotion.max_discount_amount,
    )


def redemption_from_rule(
    rule: LoyaltyRule, *, points: int, balance: int
) -> LoyaltyRedemption:
    return LoyaltyRedemption(
        points=points,
        balance=balance,
        redemption_rate=Decimal(rule.redemption_rate),
        min_redemption_points=rule.min_redemption_points,
        max_redemption_percentage=Decimal(rule.max_redemption_percentage),
    )


async def _get_provider(session: AsyncSession, provider_id: uuid.UUID) -> Provider:
    provider = await session.get(Provider, provider_id)
    if provider is None:
        raise LookupError("Provider not found")
    return provider


async def validate_coupon(
    session: AsyncSession,
    *,
    code: str,
    provider_id: uuid.UUID,
    location_type: LocationType,
    location_id: uuid.UUID | None,
    subtotal: Decimal,
    now: datetime | None = None,
) -> CouponVerdict:
    """Check a coupon code against a provider, location and subtotal."""

    now = _normalize_datetime(now or datetime.now(UTC))
    normalized = normalize_code(code)
    provider = await _get_provider(session, provider_id)

    stmt: Select[tuple[Promotion]] = select(Promotion).where(
        Promotion.code == normalized, Promotion.account_id == provider.account_id
    )
    promotion = (await session.execute(stmt)).scalars().one_or_none()
    if promotion is None:
        return CouponVerdict(False, "Invalid coupon code", normalized)
    if not promotion.active:
        return CouponVerdict(False, "This coupon is no longer active", normalized)
    if promotion.valid_from and now < _normalize_datetime(promotion.valid_from):
        return CouponVerdict(False, "This coupon is not yet valid", normalized)
    if promotion.valid_until and now > _normalize_datetime(promotion.valid_until):
        return CouponVerdict(False, "This coupon has expired", normalized)
    if (
        promotion.usage_limit is not None
        and promotion.usage_count >= promotion.usage_limit
    ):
        return CouponVerdict(
            False, "This coupon has reached its usage limit", normalized
        )
    if promotion.provider_id is not None and promotion.provider_id != provider.id:
        return CouponVerdict(
            False, "This coupon is not valid for this provider", normalized
        )
    if promotion.location_id is not None and (
        location_type is not LocationType.AT_SALON
        or location_id != promotion.location_id
    ):
        return CouponVerdict(
            False, "This coupon is only valid at a specific location", normalized
        )
    if promotion.min_purchase_amount and subtotal < promotion.min_purchase_amount:
        currency = provider.currency or "ZAR"
        return CouponVerdict(
            False,
            f"Minimum purchase of {currency} {promotion.min_purchase_amount:.2f} "
            "required",
            normalized,
        )

    discount = coupon_amount(
        coupon_from_promotion(promotion), subtotal, provider.currency or "ZAR", []
    )
    return CouponVerdict(
        True, "Coupon applied!", normalized, discount=discount, promotion=promotion
    )


async def validate_gift_card(
    session: AsyncSession,
    *,
    code: str,
    provider_id: uuid.UUID,
    subtotal: Decimal | None = None,
    now: datetime | None = None,
) -> GiftCardVerdict:
    """Check a gift card's status and the amount it can cover."""

    now = _normalize_datetime(now or datetime.now(UTC))
    normalized = normalize_code(code)
    provider = await _get_provider(session, provider_id)

    stmt: Select[tuple[GiftCard]] = select(GiftCard).where(
        GiftCard.code == normalized, GiftCard.account_id == provider.account_id
    )
    gift_card = (await session.execute(stmt)).scalars().one_or_none()
    if gift_card is None:
        return GiftCardVerdict(False, "Invalid gift card code", normalized)
    if not gift_card.active:
        return GiftCardVerdict(False, "This gift card is no longer active", normalized)
    if gift_card.expires_at and now > _normalize_datetime(gift_card.expires_at):
        return GiftCardVerdict(False, "This gift card has expired", normalized)
    if gift_card.provider_id is not None and gift_card.provider_id != provider.id:
        return GiftCardVerdict(
            False, "This gift card is not valid for this provider", normalized
        )
    balance = Decimal(gift_card.remaining_value)
    if balance <= 0:
        return GiftCardVerdict(
            False, "This gift card has no remaining balance", normalized
        )

    amount = balance if subtotal is None else min(balance, max(subtotal, ZERO))
    return GiftCardVerdict(
        True,
        "Gift card applied!",
        normalized,
        amount=amount,
        balance=balance,
        gift_card=gift_card,
    )


async def get_active_loyalty_rule(
    session: AsyncSession, *, currency: str, now: datetime | None = None
) -> LoyaltyRule | None:
    now = _normalize_datetime(now or datetime.now(UTC))
    stmt: Select[tuple[LoyaltyRule]] = (
        select(LoyaltyRule)
        .where(
            LoyaltyRule.currency == currency,
            LoyaltyRule.is_active.is_(True),
            or_(LoyaltyRule.effective_from.is_(None), LoyaltyRule.effective_from <= now),
        )
        .order_by(LoyaltyRule.effective_from.desc().nulls_last())
        .limit(1)
    )
    return (await session.execute(stmt)).scalars().first()


async def get_points_balance(session: AsyncSession, customer_id: uuid.UUID) -> int:
    stmt: Select[tuple[LoyaltyAccount]] = select(LoyaltyAccount).where(
        LoyaltyAccount.user_id == customer_id
    )
    account = (await session.execute(stmt)).scalars().one_or_none()
    return account.points_balance if account is not None else 0


async def validate_loyalty(
    session: AsyncSession,
    *,
    customer_id: uuid.UUID,
    points: int,
    subtotal: Decimal,
    currency: str,
    now: datetime | None = None,
) -> LoyaltyVerdict:
    """Check a points redemption against the balance and the active rule."""

    rule = await get_active_loyalty_rule(session, currency=currency, now=now)
    balance = await get_points_balance(session, customer_id)
    if rule is None:
        return LoyaltyVerdict(
            False, "Loyalty points are not available", balance=balance
        )
    if points <= 0:
        return LoyaltyVerdict(
            False, "Enter the number of points to redeem", balance=balance
        )

    warnings: list[str] = []
    discount, redeemed = loyalty_amount(
        redemption_from_rule(rule, points=points, balance=balance),
        subtotal,
        warnings,
    )
    if redeemed <= 0:
        message = warnings[0] if warnings else "No points can be redeemed"
        return LoyaltyVerdict(False, message, balance=balance, rule=rule)
    return LoyaltyVerdict(
        True,
        warnings[0] if warnings else "Points applied!",
        points=redeemed,
        balance=balance,
        discount=discount,
        rule=rule,
    )


async def resolve_membership(
    session: AsyncSession,
    *,
    customer_id: uuid.UUID,
    provider_id: uuid.UUID,
    now: datetime | None = None,
) -> MembershipVerdict:
    """Return the customer's usable membership with a provider, if any."""

    now = _normalize_datetime(now or datetime.now(UTC))
    stmt: Select[tuple[UserMembership]] = (
        select(UserMembership)
        .options(selectinload(UserMembership.plan))
        .join(MembershipPlan, MembershipPlan.id == UserMembership.plan_id)
        .where(
            UserMembership.user_id == customer_id,
            UserMembership.provider_id == provider_id,
        )
    )
    membership = (await session.execute(stmt)).scalars().one_or_none()
    if membership is None:
        return MembershipVerdict(False, "No membership with this provider")
    if membership.status is not MembershipStatus.ACTIVE:
        return MembershipVerdict(False, "Membership is not active")
    if membership.expires_at and now > _normalize_datetime(membership.expires_at):
        return MembershipVerdict(False, "Membership has expired")
    if not membership.plan.is_active:
        return MembershipVerdict(False, "Membership plan is no longer offered")
    return MembershipVerdict(
        True,
        "Membership discount applied",
        plan_name=membership.plan.name,
        discount_percent=Decimal(membership.plan.discount_percent),
        membership=membership,
    )
