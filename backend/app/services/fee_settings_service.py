"""Effective fee snapshot for a provider (service fee, tax, tips, loyalty)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import get_booking_settings
from app.models import FeeType, LoyaltyRule, PlatformFeeConfig, Provider
from app.services.promotion_service import get_active_loyalty_rule
from app.services.quote_service import FeeInputs, ServiceFeeRule, tiers_from_config


@dataclass(slots=True)
class FeeSettings:
    currency: str
    tax_rate_percent: Decimal
    tips_enabled: bool
    service_fee: ServiceFeeRule | None
    service_fee_source: Literal["provider", "platform", "none"]
    minimum_mobile_booking_amount: Decimal | None
    loyalty_rule: LoyaltyRule | None = None

    @property
    def points_per_currency_unit(self) -> Decimal:
        if self.loyalty_rule is None:
            return Decimal("0")
        return Decimal(self.loyalty_rule.points_per_currency_unit)

    def fee_inputs(
        self,
        *,
        tip_amount: Decimal | None = None,
        tip_percentage: Decimal | None = None,
    ) -> FeeInputs:
        """Build composer fee inputs from this snapshot and the customer's tip."""
        return FeeInputs(
            service_fee=self.service_fee,
            tax_rate_percent=self.tax_rate_percent,
            tips_enabled=self.tips_enabled,
            tip_amount=tip_amount,
            tip_percentage=tip_percentage,
            points_per_currency_unit=self.points_per_currency_unit,
        )

    def to_dict(self) -> dict[str, Any]:
        fee = self.service_fee
        loyalty = self.loyalty_rule
        return {
            "currency": self.currency,
            "tax_rate_percent": str(self.tax_rate_percent),
            "tips_enabled": self.tips_enabled,
            "service_fee": (
                None
                if fee is None
                else {
                    "source": self.service_fee_source,
                    "fee_type": fee.fee_type.value,
                    "percentage": _optional_str(fee.percentage),
                    "fixed_amount": _optional_str(fee.fixed_amount),
                    "min_booking_amount": _optional_str(fee.min_booking_amount),
                    "max_fee_amount": _optional_str(fee.max_fee_amount),
                    "tiers": [
                        {
                            "min_amount": str(tier.min_amount),
                            "max_amount": _optional_str(tier.max_amount),
                            "fee_percentage": _optional_str(tier.fee_percentage),
                            "fee_fixed_amount": _optional_str(tier.fee_fixed_amount),
                        }
                        for tier in fee.tiers
                    ],
                }
            ),
            "minimum_mobile_booking_amount": _optional_str(
                self.minimum_mobile_booking_amount
            ),
            "loyalty": (
                None
                if loyalty is None
                else {
                    "points_per_currency_unit": str(loyalty.points_per_currency_unit),
                    "redemption_rate": str(loyalty.redemption_rate),
                    "min_redemption_points": loyalty.min_redemption_points,
                    "max_redemption_percentage": str(
                        loyalty.max_redemption_percentage
                    ),
                }
            ),
        }


def _optional_str(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def rule_from_config(config: PlatformFeeConfig) -> ServiceFeeRule:
    return ServiceFeeRule(
        fee_type=config.fee_type,
        percentage=config.fee_percentage,
        fixed_amount=config.fee_fixed_amount,
        tiers=tiers_from_config(config.tiers),
        min_booking_amount=config.min_booking_amount,
        max_fee_amount=config.max_fee_amount,
        config_id=config.id,
    )


def platform_default_rule() -> ServiceFeeRule | None:
    """Service fee from platform settings; ``None`` when it would be zero."""
    settings = get_booking_settings()
    if settings.platform_service_fee_type == FeeType.FIXED_AMOUNT.value:
        if settings.platform_service_fee_fixed <= 0:
            return None
        return ServiceFeeRule(
            fee_type=FeeType.FIXED_AMOUNT,
            fixed_amount=settings.platform_service_fee_fixed,
        )
    if settings.platform_service_fee_percentage <= 0:
        return None
    return ServiceFeeRule(
        fee_type=FeeType.PERCENTAGE,
        percentage=settings.platform_service_fee_percentage,
    )


async def get_fee_settings(
    session: AsyncSession,
    provider: Provider,
    *,
    now: datetime | None = None,
) -> FeeSettings:
    """Resolve the fee snapshot used to quote and book with a provider."""

    settings = get_booking_settings()
    currency = provider.currency or settings.default_currency

    service_fee: ServiceFeeRule | None = None
    source: Literal["provider", "platform", "none"] = "none"
    if provider.customer_fee_config_id is not None:
        config = await session.get(PlatformFeeConfig, provider.customer_fee_config_id)
        if config is not None and config.is_active:
            service_fee = rule_from_config(config)
            source = "provider"
    if service_fee is None:
        service_fee = platform_default_rule()
        if service_fee is not None:
            source = "platform"

    tax_rate = (
        Decimal(provider.tax_rate_percent)
        if provider.tax_rate_percent is not None
        else settings.platform_default_tax_rate
    )
    loyalty_rule = await get_active_loyalty_rule(session, currency=currency, now=now)
    return FeeSettings(
        currency=currency,
        tax_rate_percent=tax_rate,
        tips_enabled=provider.tips_enabled,
        service_fee=service_fee,
        service_fee_source=source,
        minimum_mobile_booking_amount=provider.minimum_mobile_booking_amount,
        loyalty_rule=loyalty_rule,
    )
