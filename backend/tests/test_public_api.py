"""Public availability, fee, quote and discount endpoint tests."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

NEARBY = {"line1": "12 Kloof Street", "latitude": -33.9968, "longitude": 18.4241}


def _base(context: dict[str, Any]) -> str:
    return f"/api/v1/public/providers/{context['provider_slug']}"


def _draft(context: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    draft: dict[str, Any] = {
        "provider_slug": context["provider_slug"],
        "services": [{"offering_id": str(context["manicure_id"])}],
    }
    draft.update(overrides)
    return draft


async def test_availability_any_staff_skips_booked_member(
    app_context: dict[str, Any], booking_day: datetime, book_service
) -> None:
    client: AsyncClient = app_context["client"]
    ten = booking_day + timedelta(hours=10)
    await book_service(ten, app_context["alex_id"])

    response = await client.get(
        f"{_base(app_context)}/availability",
        params={
            "date": booking_day.date().isoformat(),
            "staff_id": "any",
            "service_id": str(app_context["manicure_id"]),
        },
    )

    assert response.status_code == 200
    slots = response.json()["slots"]
    by_start = {datetime.fromisoformat(slot["start"]): slot for slot in slots}
    assert by_start[ten]["available"] is True
    assert by_start[ten]["staff_id"] == str(app_context["jordan_id"])


async def test_availability_for_staff_marks_conflicts(
    app_context: dict[str, Any], booking_day: datetime, book_service
) -> None:
    client: AsyncClient = app_context["client"]
    ten = booking_day + timedelta(hours=10)
    await book_service(ten, app_context["alex_id"])

    response = await client.get(
        f"{_base(app_context)}/availability",
        params={
            "date": booking_day.date().isoformat(),
            "staff_id": str(app_context["alex_id"]),
            "duration_minutes": 60,
        },
    )

    assert response.status_code == 200
    slot = next(
        item
        for item in response.json()["slots"]
        if datetime.fromisoformat(item["start"]) == ten
    )
    assert slot["available"] is False
    assert slot["reason"] == "Conflicts with existing booking"


async def test_availability_rejects_bad_input(
    app_context: dict[str, Any], booking_day: datetime
) -> None:
    client: AsyncClient = app_context["client"]
    day = booking_day.date().isoformat()

    bad_staff = await client.get(
        f"{_base(app_context)}/availability",
        params={"date": day, "staff_id": "someone"},
    )
    unknown_provider = await client.get(
        "/api/v1/public/providers/missing/availability", params={"date": day}
    )
    salon_only = await client.get(
        f"{_base(app_context)}/availability",
        params={
            "date": day,
            "service_id": str(app_context["blow_dry_id"]),
            "location_type": "at_home",
        },
    )

    assert bad_staff.status_code == 400
    assert unknown_provider.status_code == 404
    assert salon_only.status_code == 400


async def test_fee_settings(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]

    response = await client.get(f"{_base(app_context)}/fee-settings")

    assert response.status_code == 200
    body = response.json()
    assert body["currency"] == "ZAR"
    assert body["tips_enabled"] is True
    assert body["service_fee"]["source"] == "provider"
    assert body["loyalty"]["redemption_rate"]


async def test_travel_fee(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]

    nearby = await client.post(
        f"{_base(app_context)}/travel-fee", json={"address": NEARBY}
    )
    far_away = await client.post(
        f"{_base(app_context)}/travel-fee",
        json={"address": {**NEARBY, "latitude": -34.6}},
    )

    assert nearby.status_code == 200
    assert nearby.json()["fee"] == "50.00"
    assert nearby.json()["within_service_area"] is True
    assert far_away.json()["within_service_area"] is False
    assert far_away.json()["outside_reason"].startswith("Address is")


async def test_anonymous_quote(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]

    response = await client.post(
        "/api/v1/public/quotes",
        json=_draft(
            app_context,
            addons=[{"addon_id": str(app_context["nail_art_id"])}],
            promotions={"coupon_code": "WELCOME10", "loyalty_points": 100},
        ),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["subtotal"] == "380.00"
    assert body["coupon_discount"] == "38.00"
    assert body["total"] == "410.40"
    assert body["loyalty_discount"] == "0.00"
    assert body["warnings"] == ["Sign in to redeem loyalty points"]


async def test_signed_in_quote_redeems_points(
    app_context: dict[str, Any], customer_headers: dict[str, str]
) -> None:
    client: AsyncClient = app_context["client"]

    response = await client.post(
        "/api/v1/public/quotes",
        json=_draft(app_context, promotions={"loyalty_points": 100}),
        headers=customer_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["loyalty_discount"] == "10.00"
    assert body["loyalty_points_redeemed"] == 100


async def test_quote_validation_errors(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]

    unknown = await client.post(
        "/api/v1/public/quotes", json={**_draft(app_context), "provider_slug": "nope"}
    )
    empty = await client.post(
        "/api/v1/public/quotes", json=_draft(app_context, services=[])
    )
    no_address = await client.post(
        "/api/v1/public/quotes", json=_draft(app_context, location_type="at_home")
    )

    assert unknown.status_code == 404
    assert empty.status_code == 422
    assert no_address.status_code == 422


async def test_package_quote(app_context: dict[str, Any], add_package) -> None:
    client: AsyncClient = app_context["client"]
    package_id = await add_package()
    retired_id = await add_package(is_active=False)

    quoted = await client.post(
        "/api/v1/public/quotes",
        json=_draft(app_context, services=[], package_id=str(package_id)),
    )
    missing = await client.post(
        "/api/v1/public/quotes",
        json=_draft(app_context, services=[], package_id=str(uuid.uuid4())),
    )
    retired = await client.post(
        "/api/v1/public/quotes",
        json=_draft(app_context, services=[], package_id=str(retired_id)),
    )

    assert quoted.status_code == 200, quoted.text
    body = quoted.json()
    assert body["services_subtotal"] == "550.00"
    assert body["package_discount"] == "100.00"
    assert body["subtotal"] == "450.00"
    assert missing.status_code == 404
    assert retired.status_code == 400
    assert retired.json()["detail"] == "Package Pamper Day is no longer available"


async def test_validate_coupon_and_gift_card(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]

    coupon = await client.post(
        "/api/v1/public/promotions/validate",
        json={
            "code": "welcome10",
            "provider_slug": app_context["provider_slug"],
            "subtotal": "380",
        },
    )
    bad_coupon = await client.post(
        "/api/v1/public/promotions/validate",
        json={
            "code": "NOPE",
            "provider_slug": app_context["provider_slug"],
            "subtotal": "380",
        },
    )
    gift = await client.post(
        "/api/v1/public/gift-cards/validate",
        json={"code": "GIFT-100", "provider_slug": app_context["provider_slug"]},
    )

    assert coupon.status_code == 200
    assert coupon.json() == {
        "valid": True,
        "message": "Coupon applied!",
        "code": "WELCOME10",
        "discount": "38.00",
    }
    assert bad_coupon.json()["valid"] is False
    assert gift.json()["valid"] is True
    assert gift.json()["balance"] == "100.00"
