"""Booking draft and booking response schemas."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from app.models.booking import (
    BookingStatus,
    LocationType,
    PaymentMethod,
    PaymentStatus,
)
from app.services.travel_fee_service import Coordinates, ServiceAddress


class WizardStep(str, enum.Enum):
    """Steps of the customer booking wizard."""

    SERVICES = "services"
    STAFF = "staff"
    SLOT = "slot"
    LOCATION = "location"
    PROMOTIONS = "promotions"
    REVIEW = "review"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


class DraftService(BaseModel):
    """Selected offering; ``staff_id`` of ``None`` means any available staff."""

    offering_id: uuid.UUID
    staff_id: uuid.UUID | None = None


class DraftAddon(BaseModel):
    addon_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)


class DraftProduct(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)


class AddressPayload(BaseModel):
    line1: str = Field(min_length=1)
    line2: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = Field(default=None, max_length=2)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    def to_service_address(self) -> ServiceAddress:
        coordinates = None
        if self.latitude is not None and self.longitude is not None:
            coordinates = Coordinates(latitude=self.latitude, longitude=self.longitude)
        return ServiceAddress(
            line1=self.line1,
            line2=self.line2,
            city=self.city,
            postal_code=self.postal_code,
            country=self.country,
            coordinates=coordinates,
        )


class DraftPromotions(BaseModel):
    coupon_code: str | None = None
    gift_card_code: str | None = None
    loyalty_points: int = Field(default=0, ge=0)
    use_membership: bool = True


class GroupParticipantPayload(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    is_primary_contact: bool = False
    offering_ids: list[uuid.UUID] = Field(default_factory=list)


class BookingDraft(BaseModel):
    """Client-held booking selection submitted for a quote or a booking."""

    provider_slug: str
    location_type: LocationType = LocationType.AT_SALON
    location_id: uuid.UUID | None = None
    scheduled_at: datetime | None = None
    services: list[DraftService] = Field(default_factory=list)
    addons: list[DraftAddon] = Field(default_factory=list)
    products: list[DraftProduct] = Field(default_factory=list)
    package_id: uuid.UUID | None = None
    address: AddressPayload | None = None
    promotions: DraftPromotions = Field(default_factory=DraftPromotions)
    tip_amount: Decimal | None = Field(default=None, ge=Decimal("0"))
    tip_percentage: Decimal | None = Field(
        default=None, ge=Decimal("0"), le=Decimal("100")
    )
    payment_method: PaymentMethod = PaymentMethod.CARD
    special_requests: str | None = Field(default=None, max_length=2000)
    participants: list[GroupParticipantPayload] = Field(default_factory=list)
    step: WizardStep = WizardStep.SERVICES

    @model_validator(mode="after")
    def _check_selection(self) -> "BookingDraft":
        if not self.services and self.package_id is None:
            raise ValueError("Select at least one service or a package")
        if self.location_type is LocationType.AT_HOME and self.address is None:
            raise ValueError("An address is required for house calls")
        return self


class BookingServiceRead(BaseModel):
    id: uuid.UUID
    offering_id: uuid.UUID
    staff_id: uuid.UUID | None
    duration_minutes: int
    buffer_minutes: int
    price: Decimal
    scheduled_start_at: datetime
    scheduled_end_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingRead(BaseModel):
    """Serialized booking with its stored price breakdown."""

    id: uuid.UUID
    booking_number: str
    provider_id: uuid.UUID
    customer_id: uuid.UUID
    status: BookingStatus
    location_type: LocationType
    location_id: uuid.UUID | None
    scheduled_at: datetime
    package_id: uuid.UUID | None
    subtotal: Decimal
    travel_fee: Decimal
    package_discount: Decimal
    discount_code: str | None
    discount_amount: Decimal
    gift_card_amount: Decimal
    loyalty_discount: Decimal
    membership_discount: Decimal
    service_fee_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    tip_amount: Decimal
    total_amount: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    loyalty_points_earned: int
    loyalty_points_redeemed: int
    is_group_booking: bool
    services: list[BookingServiceRead]

    model_config = ConfigDict(from_attributes=True)
