"""Booking wizard client tests against the in-process API."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
from httpx import ASGITransport

from app.clients import BookingApiClient, BookingApiError
from app.main import app
from app.schemas.booking import AddressPayload, BookingDraft, WizardStep

pytestmark = pytest.mark.asyncio


def _client() -> BookingApiClient:
    return BookingApiClient(base_url="http://test", transport=ASGITransport(app=app))


def _draft(context: dict[str, Any], start: datetime) -> BookingDraft:
    return BookingDraft(
        provider_slug=context["provider_slug"],
        scheduled_at=start,
        services=[
            {"offering_id": context["manicure_id"], "staff_id": context["alex_id"]}
        ],
        step=WizardStep.REVIEW,
    )


async def test_wizard_flow_books_a_free_slot(
    seeded: dict[str, Any], booking_day: datetime
) -> None:
    async with _client() as client:
        availability = await client.get_availability(
            seeded["provider_slug"],
            booking_day.date(),
            staff_id=str(seeded["alex_id"]),
            service_id=str(seeded["manicure_id"]),
        )
        slot = next(item for item in availability.slots if item.available)
        fees = await client.get_fee_settings(seeded["provider_slug"])
        coupon = await client.validate_coupon(
            seeded["provider_slug"], "WELCOME10", Decimal("300")
        )
        gift = await client.validate_gift_card(seeded["provider_slug"], "GIFT-100")

        draft = _draft(seeded, slot.start)
        quote = await client.quote(draft)

        await client.login(seeded["customer_email"], seeded["customer_password"])
        result = await client.submit_draft(draft)

    assert fees["currency"] == "ZAR"
    assert coupon.discount == Decimal("30.00")
    assert gift.balance == Decimal("100.00")
    assert quote.total == Decimal("360.00")
    assert not result.conflict
    assert result.booking is not None
    assert result.booking.total_amount == quote.total
    assert draft.step is WizardStep.CONFIRMATION


async def test_conflict_returns_wizard_to_slot_selection(
    seeded: dict[str, Any], booking_day: datetime, book_service
) -> None:
    start = booking_day + timedelta(hours=10)
    await book_service(start, seeded["alex_id"])
    draft = _draft(seeded, start)

    async with _client() as client:
        await client.login(seeded["customer_email"], seeded["customer_password"])
        result = await client.submit_draft(draft)

    assert result.conflict
    assert result.booking is None
    assert result.message == (
        "This time slot is no longer available. Please select another time."
    )
    assert draft.scheduled_at is None
    assert draft.step is WizardStep.SLOT


async def test_travel_fee_lookup(seeded: dict[str, Any]) -> None:
    address = AddressPayload(line1="12 Kloof Street", latitude=-33.9968, longitude=18.4241)

    async with _client() as client:
        travel = await client.get_travel_fee(seeded["provider_slug"], address)

    assert travel.fee == Decimal("50.00")
    assert travel.within_service_area


async def test_errors_surface_as_booking_api_error(seeded: dict[str, Any]) -> None:
    async with _client() as client:
        with pytest.raises(BookingApiError) as excinfo:
            await client.login(seeded["customer_email"], "wrong")
        with pytest.raises(BookingApiError) as unauthenticated:
            await client.submit_draft(
                _draft(seeded, datetime.now().astimezone() + timedelta(days=3))
            )

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Incorrect email or password"
    assert unauthenticated.value.status_code == 401
