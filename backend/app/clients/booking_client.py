"""Async client that drives the booking wizard against the public API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

import httpx

from app.core.config import get_settings
from app.schemas.availability import AvailabilityResponse, TravelFeeRead
from app.schemas.booking import AddressPayload, BookingDraft, BookingRead, WizardStep
from app.schemas.promotions import CouponVerdictRead, GiftCardVerdictRead
from app.schemas.quote import QuoteRead

logger = logging.getLogger(__name__)


class BookingApiError(RuntimeError):
    """Raised when the booking API answers with an unexpected error."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


@dataclass(slots=True)
class SubmissionResult:
    """Outcome of submitting a draft; ``booking`` is set on success."""

    booking: BookingRead | None = None
    conflict: bool = False
    message: str | None = None


def _detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, str):
        return detail
    return str(detail or payload)


class BookingApiClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the customer booking flow."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._prefix = settings.api_v1_prefix
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.booking_api_base_url,
            timeout=timeout or settings.booking_api_timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "BookingApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def _request(
        self, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        response = await self._client.request(method, f"{self._prefix}{path}", **kwargs)
        if response.is_error:
            detail = _detail(response)
            logger.warning(
                "Booking API %s %s failed with %s: %s",
                method,
                path,
                response.status_code,
                detail,
            )
            raise BookingApiError(response.status_code, detail)
        return response

    async def login(self, email: str, password: str) -> str:
        response = await self._request(
            "POST", "/auth/token", data={"username": email, "password": password}
        )
        token = response.json()["access_token"]
        self.set_token(token)
        return token

    async def get_availability(
        self,
        provider_slug: str,
        on_date: date,
        *,
        staff_id: str | None = None,
        duration_minutes: int | None = None,
        service_id: str | None = None,
        location_type: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> AvailabilityResponse:
        params: dict[str, Any] = {"date": on_date.isoformat()}
        optional = {
            "staff_id": staff_id,
            "duration_minutes": duration_minutes,
            "service_id": service_id,
            "location_type": location_type,
            "lat": latitude,
            "lng": longitude,
        }
        params.update({key: value for key, value in optional.items() if value is not None})
        response = await self._request(
            "GET", f"/public/providers/{provider_slug}/availability", params=params
        )
        return AvailabilityResponse.model_validate(response.json())

    async def get_fee_settings(self, provider_slug: str) -> dict[str, Any]:
        response = await self._request(
            "GET", f"/public/providers/{provider_slug}/fee-settings"
        )
        return response.json()

    async def get_travel_fee(
        self, provider_slug: str, address: AddressPayload
    ) -> TravelFeeRead:
        response = await self._request(
            "POST",
            f"/public/providers/{provider_slug}/travel-fee",
            json={"address": address.model_dump(mode="json")},
        )
        return TravelFeeRead.model_validate(response.json())

    async def validate_coupon(
        self, provider_slug: str, code: str, subtotal: Decimal
    ) -> CouponVerdictRead:
        response = await self._request(
            "POST",
            "/public/promotions/validate",
            json={
                "code": code,
                "provider_slug": provider_slug,
                "subtotal": str(subtotal),
            },
        )
        return CouponVerdictRead.model_validate(response.json())

    async def validate_gift_card(
        self, provider_slug: str, code: str, subtotal: Decimal | None = None
    ) -> GiftCardVerdictRead:
        body: dict[str, Any] = {"code": code, "provider_slug": provider_slug}
        if subtotal is not None:
            body["subtotal"] = str(subtotal)
        response = await self._request("POST", "/public/gift-cards/validate", json=body)
        return GiftCardVerdictRead.model_validate(response.json())

    async def quote(self, draft: BookingDraft) -> QuoteRead:
        response = await self._request(
            "POST", "/public/quotes", json=draft.model_dump(mode="json")
        )
        return QuoteRead.model_validate(response.json())

    async def submit_draft(self, draft: BookingDraft) -> SubmissionResult:
        """Submit the draft; a taken slot sends the wizard back to slot selection.

        On a 409 the draft's ``scheduled_at`` is cleared and ``step`` is moved to
        ``WizardStep.SLOT`` in place, and the server's message is returned.
        """
        try:
            response = await self._request(
                "POST", "/public/bookings", json=draft.model_dump(mode="json")
            )
        except BookingApiError as exc:
            if exc.status_code != httpx.codes.CONFLICT:
                raise
            draft.scheduled_at = None
            draft.step = WizardStep.SLOT
            logger.info("Slot for %s was taken; returning to slot selection", draft.provider_slug)
            return SubmissionResult(conflict=True, message=exc.detail)
        draft.step = WizardStep.CONFIRMATION
        return SubmissionResult(booking=BookingRead.model_validate(response.json()))
