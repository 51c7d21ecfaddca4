"""ORM models package export."""

from app.models.account import Account
from app.models.availability import AvailabilityBlock
from app.models.booking import (
    Booking,
    BookingAddon,
    BookingProduct,
    BookingService,
    BookingStatus,
    GroupParticipant,
    LocationType,
    PaymentMethod,
    PaymentStatus,
)
from app.models.catalog import Addon, Offering, Product, ServicePackage
from app.models.fees import FeeType, PlatformFeeConfig
from app.models.loyalty import (
    LoyaltyAccount,
    LoyaltyRule,
    MembershipPlan,
    MembershipStatus,
    UserMembership,
)
from app.models.promotion import GiftCard, Promotion, PromotionKind
from app.models.provider import (
    LocationKind,
    Provider,
    ProviderLocation,
    ProviderStatus,
    Staff,
)
from app.models.user import User, UserRole, UserStatus

__all__ = [
    "Account",
    "Addon",
    "AvailabilityBlock",
    "Booking",
    "BookingAddon",
    "BookingProduct",
    "BookingService",
    "BookingStatus",
    "FeeType",
    "GiftCard",
    "GroupParticipant",
    "LocationKind",
    "LocationType",
    "LoyaltyAccount",
    "LoyaltyRule",
    "MembershipPlan",
    "MembershipStatus",
    "Offering",
    "PaymentMethod",
    "PaymentStatus",
    "PlatformFeeConfig",
    "Product",
    "Promotion",
    "PromotionKind",
    "Provider",
    "ProviderLocation",
    "ProviderStatus",
    "ServicePackage",
    "Staff",
    "User",
    "UserMembership",
    "UserRole",
    "UserStatus",
]
