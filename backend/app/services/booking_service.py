"""Draft pricing, booking creation and cancellation."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import (
    Addon,
    Booking,
    BookingAddon,
    BookingProduct,
    BookingService,
    BookingStatus,
    GroupParticipant,
    LocationKind,
    LocationType,
    LoyaltyAccount,
    Offering,
    PaymentMethod,
    Product,
    Provider,
    ProviderLocation,
    ServicePackage,
    Staff,
    User,
)
from app.schemas.booking import BookingDraft
from app.services import availability_service, travel_fee_service
from app.services.availability_service import BusyInterval, overlaps
from app.services.fee_settings_service import FeeSettings, get_fee_settings
from app.services.promotion_service import (
    CouponVerdict,
    GiftCardVerdict,
    LoyaltyVerdict,
    MembershipVerdict,
    resolve_membership,
    validate_coupon,
    validate_gift_card,
    validate_loyalty,
)
from app.services.quote_service import (
    AddonItem,
    DiscountInputs,
    GiftCardDiscount,
    PackageOverride,
    ProductItem,
    QuoteBreakdown,
    QuoteSelection,
    ServiceItem,
    compose_quote,
)
from app.services.travel_fee_service import (
    Coordinates,
    ServiceAddress,
    TravelFeeResult,
)

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = (
    "This time slot is no longer available. Please select another time."
)
_CANCELLABLE = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
_NO_STAFF = object()


class SlotConflictError(ValueError):
    """Raised when the requested slot was taken before the booking landed."""

    def __init__(self, message: str = SLOT_TAKEN_MESSAGE) -> None:
        super().__init__(message)


@dataclass(slots=True)
class PricedDraft:
    """Everything resolved while pricing a draft, reused when persisting it."""

    provider: Provider
    location: ProviderLocation | None
    offerings: list[Offering]
    addons: dict[uuid.UUID, Addon]
    products: dict[uuid.UUID, Product]
    package: ServicePackage | None
    fee_settings: FeeSettings
    quote: QuoteBreakdown
    travel: TravelFeeResult | None = None
    coupon: CouponVerdict | None = None
    gift_card: GiftCardVerdict | None = None
    loyalty: LoyaltyVerdict | None = None
    membership: MembershipVerdict | None = None
    staff_choices: list[uuid.UUID | None] = field(default_factory=list)
    participant_offerings: list[list[Offering]] = field(default_factory=list)


@dataclass(slots=True)
class _PlannedService:
    offering: Offering
    price: Decimal
    staff_id: uuid.UUID | None
    start_at: datetime
    end_at: datetime
    blocked_until: datetime


def _normalize_datetime(candidate: datetime) -> datetime:
    if candidate.tzinfo is None:
        return candidate.replace(tzinfo=UTC)
    return candidate.astimezone(UTC)


async def _resolve_location(
    session: AsyncSession, provider: Provider, draft: BookingDraft
) -> ProviderLocation | None:
    if draft.location_type is LocationType.AT_HOME:
        return None
    if draft.location_id is not None:
        location = await session.get(ProviderLocation, draft.location_id)
        if location is None or location.provider_id != provider.id:
            raise LookupError("Location not found")
    else:
        stmt: Select[tuple[ProviderLocation]] = (
            select(ProviderLocation)
            .where(
                ProviderLocation.provider_id == provider.id,
                ProviderLocation.is_active.is_(True),
                ProviderLocation.kind == LocationKind.SALON,
            )
            .order_by(
                ProviderLocation.is_primary.desc(), ProviderLocation.created_at.asc()
            )
            .limit(1)
        )
        location = (await session.execute(stmt)).scalars().first()
        if location is None:
            raise ValueError("This provider does not accept salon bookings")
    if not location.is_active or location.kind is not LocationKind.SALON:
        raise ValueError("Selected location does not accept salon bookings")
    return location


async def _load_package(
    session: AsyncSession, provider: Provider, package_id: uuid.UUID | None
) -> ServicePackage | None:
    if package_id is None:
        return None
    stmt: Select[tuple[ServicePackage]] = (
        select(ServicePackage)
        .options(selectinload(ServicePackage.offerings))
        .where(ServicePackage.id == package_id)
    )
    package = (await session.execute(stmt)).scalars().one_or_none()
    if package is None or package.provider_id != provider.id:
        raise LookupError("Package not found")
    if not package.is_active:
        raise ValueError(f"Package {package.name} is no longer available")
    return package


async def _load_offerings(
    session: AsyncSession,
    provider: Provider,
    offering_ids: Sequence[uuid.UUID],
    location_type: LocationType,
) -> list[Offering]:
    if not offering_ids:
        raise ValueError("Select at least one service")
    stmt: Select[tuple[Offering]] = select(Offering).where(
        Offering.id.in_(set(offering_ids)), Offering.provider_id == provider.id
    )
    found = {item.id: item for item in (await session.execute(stmt)).scalars().all()}
    offerings: list[Offering] = []
    for offering_id in offering_ids:
        offering = found.get(offering_id)
        if offering is None or not offering.is_active:
            raise ValueError("One or more services are unavailable for this provider")
        if location_type is LocationType.AT_HOME and not offering.supports_at_home:
            raise ValueError(f"{offering.title} is not available for house calls")
        offerings.append(offering)
    return offerings


async def _load_catalog_items(
    session: AsyncSession,
    model: type[Addon] | type[Product],
    provider: Provider,
    ids: Sequence[uuid.UUID],
    label: str,
) -> dict[uuid.UUID, Addon | Product]:
    if not ids:
        return {}
    stmt = select(model).where(
        model.id.in_(set(ids)),
        model.provider_id == provider.id,
        model.is_active.is_(True),
    )
    items = {item.id: item for item in (await session.execute(stmt)).scalars().all()}
    if len(items) != len(set(ids)):
        raise ValueError(f"One or more {label} are unavailable for this provider")
    return items


def _service_price(offering: Offering, location_type: LocationType) -> Decimal:
    price = Decimal(offering.price)
    if location_type is LocationType.AT_HOME:
        price += Decimal(offering.at_home_price_adjustment or 0)
    return price


def travel_fee_for(provider: Provider, address: ServiceAddress) -> TravelFeeResult:
    """Price a house call from the provider's base using its stored rules."""
    base = None
    if provider.has_base_coordinates:
        base = Coordinates(
            latitude=provider.base_latitude, longitude=provider.base_longitude
        )
    rules = travel_fee_service.load_rules(provider.travel_fee_rules)
    return travel_fee_service.compute_travel_fee(base, address, rules)


def _travel_for(provider: Provider, draft: BookingDraft) -> TravelFeeResult | None:
    if draft.location_type is not LocationType.AT_HOME or draft.address is None:
        return None
    result = travel_fee_for(provider, draft.address.to_service_address())
    if not result.within_service_area:
        raise ValueError(result.outside_reason or "Address is outside the service area")
    return result


async def price_draft(
    session: AsyncSession,
    *,
    draft: BookingDraft,
    customer: User | None = None,
    strict: bool = False,
    now: datetime | None = None,
) -> PricedDraft:
    """Validate a draft's selections and derive its quote from stored prices.

    With ``strict`` set, a rejected coupon, gift card or loyalty redemption
    raises ``ValueError``; otherwise the rejection becomes a quote warning.
    """

    now = _normalize_datetime(now or datetime.now(UTC))
    provider = await availability_service.get_active_provider(
        session, draft.provider_slug
    )
    location = await _resolve_location(session, provider, draft)
    package = await _load_package(session, provider, draft.package_id)

    if draft.services:
        offering_ids = [item.offering_id for item in draft.services]
        staff_choices = [item.staff_id for item in draft.services]
    else:
        assert package is not None
        offering_ids = [offering.id for offering in package.offerings]
        staff_choices = [None] * len(offering_ids)
    offerings = await _load_offerings(
        session, provider, offering_ids, draft.location_type
    )
    participant_offerings = [
        (
            await _load_offerings(
                session, provider, participant.offering_ids, draft.location_type
            )
            if participant.offering_ids
            else []
        )
        for participant in draft.participants
    ]
    addons = await _load_catalog_items(
        session, Addon, provider, [a.addon_id for a in draft.addons], "add-ons"
    )
    products = await _load_catalog_items(
        session, Product, provider, [p.product_id for p in draft.products], "products"
    )
    travel = _travel_for(provider, draft)
    fee_settings = await get_fee_settings(session, provider, now=now)

    selection = QuoteSelection(
        services=[
            ServiceItem(
                offering_id=offering.id,
                title=offering.title,
                price=_service_price(offering, draft.location_type),
                duration_minutes=offering.duration_minutes,
                buffer_minutes=offering.buffer_minutes,
                staff_id=staff_id,
            )
            for offering, staff_id in zip(offerings, staff_choices, strict=True)
        ]
        + [
            ServiceItem(
                offering_id=offering.id,
                title=offering.title,
                price=_service_price(offering, draft.location_type),
                duration_minutes=offering.duration_minutes,
                buffer_minutes=offering.buffer_minutes,
                participant=participant.name,
            )
            for participant, group in zip(
                draft.participants, participant_offerings, strict=True
            )
            for offering in group
        ],
        addons=[
            AddonItem(
                addon_id=item.addon_id,
                name=addons[item.addon_id].name,
                price=Decimal(addons[item.addon_id].price),
                quantity=item.quantity,
            )
            for item in draft.addons
        ],
        products=[
            ProductItem(
                product_id=item.product_id,
                name=products[item.product_id].name,
                unit_price=Decimal(products[item.product_id].retail_price),
                quantity=item.quantity,
                stock=(
                    products[item.product_id].quantity
                    if products[item.product_id].track_stock_quantity
                    else None
                ),
            )
            for item in draft.products
        ],
        package=(
            PackageOverride(
                name=package.name,
                price=package.price,
                discount_percentage=package.discount_percentage,
            )
            if package is not None
            else None
        ),
        travel_fee=travel.fee if travel is not None else Decimal("0"),
        currency=fee_settings.currency,
    )
    subtotal = compose_quote(selection).subtotal

    rejections: list[str] = []
    promotions = draft.promotions
    coupon = None
    if promotions.coupon_code:
        coupon = await validate_coupon(
            session,
            code=promotions.coupon_code,
            provider_id=provider.id,
            location_type=draft.location_type,
            location_id=location.id if location is not None else None,
            subtotal=subtotal,
            now=now,
        )
        if not coupon.valid:
            rejections.append(coupon.message)
    gift_card = None
    if promotions.gift_card_code:
        gift_card = await validate_gift_card(
            session,
            code=promotions.gift_card_code,
            provider_id=provider.id,
            subtotal=subtotal,
            now=now,
        )
        if not gift_card.valid:
            rejections.append(gift_card.message)
    loyalty = None
    if promotions.loyalty_points:
        if customer is None:
            rejections.append("Sign in to redeem loyalty points")
        else:
            loyalty = await validate_loyalty(
                session,
                customer_id=customer.id,
                points=promotions.loyalty_points,
                subtotal=subtotal,
                currency=fee_settings.currency,
                now=now,
            )
            if not loyalty.valid:
                rejections.append(loyalty.message)
    membership = None
    if promotions.use_membership and customer is not None:
        membership = await resolve_membership(
            session, customer_id=customer.id, provider_id=provider.id, now=now
        )

    if strict and rejections:
        raise ValueError(rejections[0])

    discounts = DiscountInputs(
        coupon=coupon.as_discount() if coupon is not None else None,
        gift_card=(
            GiftCardDiscount(code=gift_card.code, balance=gift_card.balance)
            if gift_card is not None and gift_card.valid
            else None
        ),
        loyalty=loyalty.as_redemption() if loyalty is not None else None,
        membership=membership.as_discount() if membership is not None else None,
    )
    quote = compose_quote(
        selection,
        discounts,
        fee_settings.fee_inputs(
            tip_amount=draft.tip_amount, tip_percentage=draft.tip_percentage
        ),
    )
    quote.warnings[:0] = rejections

    # the house-call minimum applies after the coupon, before other discounts
    minimum = fee_settings.minimum_mobile_booking_amount
    if (
        draft.location_type is LocationType.AT_HOME
        and minimum is not None
        and quote.subtotal - quote.coupon_discount < minimum
    ):
        message = (
            f"Minimum order amount for house calls is "
            f"{fee_settings.currency} {Decimal(minimum):.2f}"
        )
        if strict:
            raise ValueError(message)
        quote.warnings.append(message)

    return PricedDraft(
        provider=provider,
        location=location,
        offerings=offerings,
        addons=addons,
        products=products,
        package=package,
        fee_settings=fee_settings,
        quote=quote,
        travel=travel,
        coupon=coupon,
        gift_card=gift_card,
        loyalty=loyalty,
        membership=membership,
        staff_choices=staff_choices,
        participant_offerings=participant_offerings,
    )


def _travel_padding(priced: PricedDraft, draft: BookingDraft) -> int:
    if draft.location_type is not LocationType.AT_HOME:
        return 0
    address = draft.address.to_service_address() if draft.address else None
    return availability_service.travel_padding_minutes(priced.provider, address)


def _is_free(
    busy: Sequence[BusyInterval],
    *,
    staff_id: uuid.UUID | None,
    location_id: uuid.UUID | None,
    start: datetime,
    end: datetime,
) -> bool:
    for interval in busy:
        if staff_id is not None and interval.staff_id not in (None, staff_id):
            continue
        if location_id is not None and interval.location_id not in (None, location_id):
            continue
        if overlaps(start, end, interval.start, interval.end):
            return False
    return True


async def _plan_services(
    session: AsyncSession,
    priced: PricedDraft,
    draft: BookingDraft,
    scheduled_at: datetime,
) -> list[_PlannedService]:
    """Lay services out back to back and assign a free staff member to each."""

    provider = priced.provider
    stmt: Select[tuple[Staff]] = (
        select(Staff)
        .where(Staff.provider_id == provider.id, Staff.is_active.is_(True))
        .order_by(Staff.created_at.asc(), Staff.name.asc())
        .with_for_update()
    )
    staff_members = list((await session.execute(stmt)).scalars().all())
    staff_ids = {member.id for member in staff_members}

    # group participants are served after the primary guest on the same timeline
    sequence: list[tuple[Offering, uuid.UUID | None]] = list(
        zip(priced.offerings, priced.staff_choices, strict=True)
    ) + [
        (offering, None)
        for group in priced.participant_offerings
        for offering in group
    ]

    padding = _travel_padding(priced, draft)
    total_minutes = sum(
        offering.duration_minutes + offering.buffer_minutes
        for offering, _ in sequence
    )
    busy = await availability_service.load_busy_intervals(
        session,
        provider_id=provider.id,
        range_start=scheduled_at - timedelta(days=1),
        range_end=scheduled_at + timedelta(minutes=total_minutes + padding + 1440),
    )
    location_id = priced.location.id if priced.location is not None else None

    planned: list[_PlannedService] = []
    cursor = scheduled_at
    last_index = len(sequence) - 1
    for index, (offering, requested) in enumerate(sequence):
        end_at = cursor + timedelta(minutes=offering.duration_minutes)
        blocked_until = end_at + timedelta(minutes=offering.buffer_minutes)
        if index == last_index:
            blocked_until += timedelta(minutes=padding)

        if requested is not None and requested not in staff_ids:
            raise LookupError("Staff member not found")
        candidates: list[uuid.UUID | None]
        if requested is not None:
            candidates = [requested]
        elif staff_members:
            candidates = [member.id for member in staff_members]
        else:
            candidates = [None]

        window_busy = busy + [
            BusyInterval(
                start=item.start_at,
                end=item.blocked_until,
                staff_id=item.staff_id,
                location_id=None,
                reason=availability_service.BOOKING_CONFLICT_REASON,
            )
            for item in planned
        ]
        assigned = next(
            (
                candidate
                for candidate in candidates
                if _is_free(
                    window_busy,
                    staff_id=candidate,
                    location_id=location_id,
                    start=cursor,
                    end=blocked_until,
                )
            ),
            _NO_STAFF,
        )
        if assigned is _NO_STAFF:
            raise SlotConflictError()
        planned.append(
            _PlannedService(
                offering=offering,
                price=_service_price(offering, draft.location_type),
                staff_id=assigned,
                start_at=cursor,
                end_at=end_at,
                blocked_until=blocked_until,
            )
        )
        cursor = end_at + timedelta(minutes=offering.buffer_minutes)
    return planned


def _booking_number(now: datetime) -> str:
    return f"BK-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


async def _apply_balances(
    session: AsyncSession, priced: PricedDraft, draft: BookingDraft, customer: User
) -> None:
    quote = priced.quote
    for item in draft.products:
        product = priced.products[item.product_id]
        if product.track_stock_quantity:
            if product.quantity < item.quantity:
                raise ValueError(f"Insufficient stock for {product.name}")
            product.quantity -= item.quantity

    if priced.gift_card is not None and priced.gift_card.gift_card is not None:
        card = priced.gift_card.gift_card
        card.remaining_value = Decimal(card.remaining_value) - quote.gift_card_amount

    if quote.coupon_discount and priced.coupon is not None:
        promotion = priced.coupon.promotion
        if promotion is not None:
            promotion.usage_count += 1

    if quote.loyalty_points_redeemed or quote.loyalty_points_earned:
        stmt: Select[tuple[LoyaltyAccount]] = select(LoyaltyAccount).where(
            LoyaltyAccount.user_id == customer.id
        )
        account = (await session.execute(stmt)).scalars().one_or_none()
        if account is None:
            account = LoyaltyAccount(user_id=customer.id, points_balance=0)
            session.add(account)
        if quote.loyalty_points_redeemed > account.points_balance:
            raise ValueError("Insufficient points balance")
        account.points_balance = (
            account.points_balance
            - quote.loyalty_points_redeemed
            + quote.loyalty_points_earned
        )


async def create_booking(
    session: AsyncSession,
    *,
    customer: User,
    draft: BookingDraft,
    now: datetime | None = None,
) -> Booking:
    """Persist a booking from a draft after re-pricing and conflict checks."""

    now = _normalize_datetime(now or datetime.now(UTC))
    if draft.scheduled_at is None:
        raise ValueError("Select a time slot before booking")
    scheduled_at = _normalize_datetime(draft.scheduled_at)
    if scheduled_at < now:
        raise ValueError("The selected time slot is in the past")

    priced = await price_draft(
        session, draft=draft, customer=customer, strict=True, now=now
    )
    quote = priced.quote
    planned = await _plan_services(session, priced, draft, scheduled_at)

    address = draft.address
    fee_rule = priced.fee_settings.service_fee
    booking = Booking(
        booking_number=_booking_number(now),
        customer_id=customer.id,
        provider_id=priced.provider.id,
        location_type=draft.location_type,
        location_id=priced.location.id if priced.location is not None else None,
        scheduled_at=scheduled_at,
        status=(
            BookingStatus.CONFIRMED
            if draft.payment_method is PaymentMethod.CASH or quote.total == 0
            else BookingStatus.PENDING
        ),
        package_id=priced.package.id if priced.package is not None else None,
        address_line1=address.line1 if address else None,
        address_line2=address.line2 if address else None,
        address_city=address.city if address else None,
        address_postal_code=address.postal_code if address else None,
        address_country=address.country if address else None,
        address_latitude=address.latitude if address else None,
        address_longitude=address.longitude if address else None,
        subtotal=quote.subtotal,
        travel_fee=quote.travel_fee,
        package_discount=quote.package_discount,
        discount_code=priced.coupon.code if quote.coupon_discount and priced.coupon else None,
        promotion_id=(
            priced.coupon.promotion.id
            if quote.coupon_discount and priced.coupon and priced.coupon.promotion
            else None
        ),
        discount_amount=quote.coupon_discount,
        gift_card_id=(
            priced.gift_card.gift_card.id
            if quote.gift_card_amount
            and priced.gift_card
            and priced.gift_card.gift_card
            else None
        ),
        gift_card_amount=quote.gift_card_amount,
        loyalty_discount=quote.loyalty_discount,
        membership_plan_id=(
            priced.membership.membership.plan_id
            if quote.membership_discount
            and priced.membership
            and priced.membership.membership
            else None
        ),
        membership_discount=quote.membership_discount,
        service_fee_config_id=fee_rule.config_id if fee_rule else None,
        service_fee_percentage=fee_rule.percentage if fee_rule else None,
        service_fee_amount=quote.service_fee,
        tax_rate=quote.tax_rate_percent,
        tax_amount=quote.tax_amount,
        tip_amount=quote.tip_amount,
        total_amount=quote.total,
        currency=quote.currency,
        payment_method=draft.payment_method,
        loyalty_points_earned=quote.loyalty_points_earned,
        loyalty_points_redeemed=quote.loyalty_points_redeemed,
        special_requests=draft.special_requests,
        is_group_booking=bool(draft.participants),
    )
    booking.services = [
        BookingService(
            offering_id=item.offering.id,
            staff_id=item.staff_id,
            duration_minutes=item.offering.duration_minutes,
            buffer_minutes=item.offering.buffer_minutes,
            price=item.price,
            scheduled_start_at=item.start_at,
            scheduled_end_at=item.end_at,
        )
        for item in planned
    ]
    booking.addons = [
        BookingAddon(
            addon_id=item.addon_id,
            quantity=item.quantity,
            unit_price=Decimal(priced.addons[item.addon_id].price),
            total_price=Decimal(priced.addons[item.addon_id].price) * item.quantity,
        )
        for item in draft.addons
    ]
    booking.products = [
        BookingProduct(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=Decimal(priced.products[item.product_id].retail_price),
            total_price=Decimal(priced.products[item.product_id].retail_price)
            * item.quantity,
        )
        for item in draft.products
    ]
    booking.participants = [
        GroupParticipant(
            name=participant.name,
            email=participant.email,
            phone=participant.phone,
            is_primary_contact=participant.is_primary_contact,
            offering_ids=[str(offering_id) for offering_id in participant.offering_ids],
        )
        for participant in draft.participants
    ]
    session.add(booking)
    await _apply_balances(session, priced, draft, customer)
    await session.commit()
    logger.info(
        "Booking %s created for provider %s at %s (total %s %s)",
        booking.booking_number,
        priced.provider.slug,
        scheduled_at.isoformat(),
        quote.currency,
        quote.total,
    )
    return await get_booking(session, booking_id=booking.id)


async def get_booking(session: AsyncSession, *, booking_id: uuid.UUID) -> Booking:
    stmt: Select[tuple[Booking]] = (
        select(Booking)
        .options(selectinload(Booking.services))
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = (await session.execute(stmt)).scalars().one_or_none()
    if booking is None:
        raise LookupError("Booking not found")
    return booking


async def cancel_booking(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    customer_id: uuid.UUID,
    now: datetime | None = None,
) -> Booking:
    """Cancel a customer's booking so its slot becomes available again."""

    booking = await get_booking(session, booking_id=booking_id)
    if booking.customer_id != customer_id:
        raise LookupError("Booking not found")
    if booking.status not in _CANCELLABLE:
        raise ValueError(f"Booking cannot be cancelled from status {booking.status.value}")
    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = _normalize_datetime(now or datetime.now(UTC))
    await session.commit()
    logger.info("Booking %s cancelled by customer", booking.booking_number)
    return await get_booking(session, booking_id=booking.id)
