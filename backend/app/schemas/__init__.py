"""Schema exports."""

from app.schemas.auth import Token
from app.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySlotRead,
    TravelFeeRead,
    TravelFeeRequest,
)
from app.schemas.booking import (
    AddressPayload,
    BookingDraft,
    BookingRead,
    BookingServiceRead,
    DraftAddon,
    DraftProduct,
    DraftPromotions,
    DraftService,
    GroupParticipantPayload,
    WizardStep,
)
from app.schemas.promotions import (
    CouponValidateRequest,
    CouponVerdictRead,
    GiftCardValidateRequest,
    GiftCardVerdictRead,
    LoyaltyValidateRequest,
    LoyaltyVerdictRead,
    MembershipRead,
)
from app.schemas.quote import QuoteLineRead, QuoteRead

__all__ = [
    "Token",
    "AvailabilityResponse",
    "AvailabilitySlotRead",
    "TravelFeeRead",
    "TravelFeeRequest",
    "AddressPayload",
    "BookingDraft",
    "BookingRead",
    "BookingServiceRead",
    "DraftAddon",
    "DraftProduct",
    "DraftPromotions",
    "DraftService",
    "GroupParticipantPayload",
    "WizardStep",
    "CouponValidateRequest",
    "CouponVerdictRead",
    "GiftCardValidateRequest",
    "GiftCardVerdictRead",
    "LoyaltyValidateRequest",
    "LoyaltyVerdictRead",
    "MembershipRead",
    "QuoteLineRead",
    "QuoteRead",
]
