"""Tests for the provider fee snapshot."""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.core.config import get_settings
from app.db.session import get_sessionmaker
from app.models import FeeType, PlatformFeeConfig, Provider
from app.services import fee_settings_service

pytestmark = pytest.mark.asyncio


async def test_provider_fee_config_wins(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        provider = await session.get(Provider, seeded["provider_id"])
        fees = await fee_settings_service.get_fee_settings(session, provider)

    assert fees.service_fee_source == "provider"
    assert fees.service_fee is not None
    assert fees.service_fee.config_id == seeded["fee_config_id"]
    assert fees.tax_rate_percent == Decimal("15")
    assert fees.points_per_currency_unit == Decimal("1")

    payload = fees.to_dict()
    assert payload["currency"] == "ZAR"
    assert payload["service_fee"]["fee_type"] == "percentage"
    assert payload["service_fee"]["max_fee_amount"] == "100.00"
    assert payload["minimum_mobile_booking_amount"] == "200.00"
    assert payload["loyalty"]["min_redemption_points"] == 50


async def test_inactive_config_falls_back_to_platform(
    seeded, db_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PLATFORM_SERVICE_FEE_PERCENTAGE", "7.5")
    monkeypatch.setenv("PLATFORM_DEFAULT_TAX_RATE", "10")
    get_settings.cache_clear()
    try:
        async with get_sessionmaker(db_url)() as session:
            config = await session.get(PlatformFeeConfig, seeded["fee_config_id"])
            config.is_active = False
            provider = await session.get(Provider, seeded["provider_id"])
            provider.tax_rate_percent = None
            await session.commit()

            fees = await fee_settings_service.get_fee_settings(session, provider)
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()

    assert fees.service_fee_source == "platform"
    assert fees.service_fee is not None
    assert fees.service_fee.fee_type is FeeType.PERCENTAGE
    assert fees.service_fee.percentage == Decimal("7.5")
    assert fees.tax_rate_percent == Decimal("10")


async def test_no_service_fee_when_nothing_configured(seeded, db_url: str) -> None:
    async with get_sessionmaker(db_url)() as session:
        provider = await session.get(Provider, seeded["provider_id"])
        provider.customer_fee_config_id = None
        await session.commit()

        fees = await fee_settings_service.get_fee_settings(session, provider)

    assert fees.service_fee is None
    assert fees.service_fee_source == "none"
    assert fees.to_dict()["service_fee"] is None
    inputs = fees.fee_inputs(tip_percentage=Decimal("10"))
    assert inputs.tips_enabled
    assert inputs.tip_percentage == Decimal("10")
