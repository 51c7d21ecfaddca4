"""Request and verdict schemas for discount validation."""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.models.booking import LocationType


class CouponValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    provider_slug: str
    location_type: LocationType = LocationType.AT_SALON
    location_id: uuid.UUID | None = None
    subtotal: Decimal = Field(ge=Decimal("0"))


class CouponVerdictRead(BaseModel):
    valid: bool
    message: str
    code: str
    discount: Decimal

    model_config = ConfigDict(from_attributes=True)


class GiftCardValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    provider_slug: str
    subtotal: Decimal | None = Field(default=None, ge=Decimal("0"))


class GiftCardVerdictRead(BaseModel):
    valid: bool
    message: str
    code: str
    amount: Decimal
    balance: Decimal

    model_config = ConfigDict(from_attributes=True)


class LoyaltyValidateRequest(BaseModel):
    points: int = Field(ge=0)
    subtotal: Decimal = Field(ge=Decimal("0"))
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class LoyaltyVerdictRead(BaseModel):
    valid: bool
    message: str
    points: int
    balance: int
    discount: Decimal

    model_config = ConfigDict(from_attributes=True)


class MembershipRead(BaseModel):
    active: bool
    message: str
    plan_name: str | None
    discount_percent: Decimal

    model_config = ConfigDict(from_attributes=True)
