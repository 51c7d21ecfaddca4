"""Public provider endpoints: availability, fee settings and travel fees."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.rate_limits import DEFAULT_RATE_DEP
from app.models.booking import LocationType
from app.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySlotRead,
    TravelFeeRead,
    TravelFeeRequest,
)
from app.services import availability_service, booking_service, fee_settings_service
from app.services.travel_fee_service import Coordinates, ServiceAddress

router = APIRouter(
    prefix="/public/providers", tags=["public"], dependencies=[DEFAULT_RATE_DEP]
)


def _parse_staff(value: str | None) -> uuid.UUID | str | None:
    if value is None or value == "any":
        return value
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="staff_id must be a UUID or 'any'",
        ) from exc


@router.get(
    "/{slug}/availability",
    response_model=AvailabilityResponse,
    summary="List bookable slots for a day",
)
async def get_availability(
    slug: str,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    on_date: Annotated[date, Query(alias="date")],
    staff_id: str | None = None,
    location_id: uuid.UUID | None = None,
    location_type: LocationType = LocationType.AT_SALON,
    duration_minutes: Annotated[int | None, Query(ge=1, le=1440)] = None,
    service_id: uuid.UUID | None = None,
    min_notice_minutes: Annotated[int, Query(ge=0)] = 0,
    max_advance_days: Annotated[int | None, Query(ge=0)] = None,
    lat: Annotated[float | None, Query(ge=-90, le=90)] = None,
    lng: Annotated[float | None, Query(ge=-180, le=180)] = None,
) -> AvailabilityResponse:
    address = None
    if lat is not None and lng is not None:
        address = ServiceAddress(
            line1="", coordinates=Coordinates(latitude=lat, longitude=lng)
        )
    try:
        slots = await availability_service.list_availability(
            session,
            provider_slug=slug,
            on_date=on_date,
            staff_id=_parse_staff(staff_id),
            location_id=location_id,
            location_type=location_type,
            duration_minutes=duration_minutes,
            offering_id=service_id,
            address=address,
            min_notice_minutes=min_notice_minutes,
            max_advance_days=max_advance_days,
        )
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return AvailabilityResponse(
        slots=[AvailabilitySlotRead.model_validate(slot) for slot in slots]
    )


@router.get("/{slug}/fee-settings", summary="Fee settings applied to bookings")
async def get_fee_settings(
    slug: str,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> dict[str, Any]:
    try:
        provider = await availability_service.get_active_provider(session, slug)
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    fee_settings = await fee_settings_service.get_fee_settings(session, provider)
    return fee_settings.to_dict()


@router.post(
    "/{slug}/travel-fee",
    response_model=TravelFeeRead,
    summary="Travel fee for a house-call address",
)
async def quote_travel_fee(
    slug: str,
    payload: TravelFeeRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> TravelFeeRead:
    try:
        provider = await availability_service.get_active_provider(session, slug)
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    result = booking_service.travel_fee_for(
        provider, payload.address.to_service_address()
    )
    return TravelFeeRead.model_validate(result.to_dict())
