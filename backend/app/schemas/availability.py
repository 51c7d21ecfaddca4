"""Availability and travel fee schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.booking import AddressPayload


class AvailabilitySlotRead(BaseModel):
    start: datetime
    end: datetime
    staff_id: uuid.UUID | None
    location_id: uuid.UUID | None
    available: bool
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityResponse(BaseModel):
    slots: list[AvailabilitySlotRead]


class TravelFeeRequest(BaseModel):
    address: AddressPayload


class TravelFeeLine(BaseModel):
    label: str
    amount: Decimal


class TravelFeeRead(BaseModel):
    """Travel fee verdict for an address."""

    fee: Decimal
    travel_time_minutes: int
    total_travel_time_minutes: int
    within_service_area: bool
    outside_reason: str | None = None
    distance_km: float | None = None
    zone_name: str | None = None
    tier_index: int | None = None
    breakdown: list[TravelFeeLine] = Field(default_factory=list)
