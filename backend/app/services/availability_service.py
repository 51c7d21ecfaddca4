"""Availability slot lookup for the booking wizard."""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import BookingSettings, get_booking_settings
from app.models import (
    AvailabilityBlock,
    Booking,
    BookingService,
    LocationType,
    Offering,
    Provider,
    ProviderLocation,
    ProviderStatus,
    Staff,
)
from app.models.booking import NON_BLOCKING_STATUSES
from app.services import travel_fee_service
from app.services.travel_fee_service import Coordinates, ServiceAddress

DAY_KEYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
DEFAULT_DURATION_MINUTES = 60
BOOKING_CONFLICT_REASON = "Conflicts with existing booking"
TIME_BLOCK_REASON = "Time block"

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(slots=True, frozen=True)
class WorkingDay:
    """Opening window for one weekday, with breaks."""

    is_open: bool
    open_time: time
    close_time: time
    breaks: tuple[tuple[time, time], ...] = ()


@dataclass(slots=True, frozen=True)
class BusyInterval:
    start: datetime
    end: datetime
    staff_id: uuid.UUID | None
    location_id: uuid.UUID | None
    reason: str


@dataclass(slots=True)
class AvailabilitySlot:
    """Candidate start time with its availability verdict."""

    start: datetime
    end: datetime
    staff_id: uuid.UUID | None
    location_id: uuid.UUID | None
    available: bool
    reason: str | None = None


def _normalize_datetime(candidate: datetime) -> datetime:
    if candidate.tzinfo is None:
        return candidate.replace(tzinfo=UTC)
    return candidate.astimezone(UTC)


def overlaps(
    start: datetime, end: datetime, other_start: datetime, other_end: datetime
) -> bool:
    """Half-open interval overlap; touching intervals do not conflict."""
    return not (end <= other_start or start >= other_end)


def parse_time(value: str | None) -> time | None:
    if not value:
        return None
    match = _TIME_PATTERN.match(value.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return time(hour, minute)


def parse_working_day(raw: dict[str, Any] | None) -> WorkingDay | None:
    """Parse one weekday entry of the stored working-hours JSON."""
    if not raw:
        return None
    open_time = parse_time(raw.get("open_time")) or time(9, 0)
    close_time = parse_time(raw.get("close_time")) or time(18, 0)
    breaks: list[tuple[time, time]] = []
    for entry in raw.get("breaks") or []:
        start = parse_time(entry.get("start"))
        end = parse_time(entry.get("end"))
        if start is not None and end is not None and end > start:
            breaks.append((start, end))
    return WorkingDay(
        is_open=raw.get("is_open", True) is not False,
        open_time=open_time,
        close_time=close_time,
        breaks=tuple(breaks),
    )


def working_day_for(
    weekly_hours: dict[str, Any] | None, on_date: date
) -> WorkingDay | None:
    if not weekly_hours:
        return None
    return parse_working_day(weekly_hours.get(DAY_KEYS[on_date.weekday()]))


def resolve_hours(
    staff_day: WorkingDay | None,
    location_day: WorkingDay | None,
    settings: BookingSettings,
) -> WorkingDay:
    """Staff hours win over location hours, which win over the platform default."""
    if staff_day is not None:
        return staff_day
    if location_day is not None:
        return location_day
    return WorkingDay(
        is_open=True,
        open_time=settings.default_open_time,
        close_time=settings.default_close_time,
    )


def build_slots(
    on_date: date,
    hours: WorkingDay,
    *,
    tz: ZoneInfo,
    duration_minutes: int,
    padding_minutes: int,
    busy: Iterable[BusyInterval],
    staff_id: uuid.UUID | None,
    location_id: uuid.UUID | None,
    interval_minutes: int = 15,
) -> list[AvailabilitySlot]:
    """Walk the working day in fixed steps and flag each candidate slot.

    ``padding_minutes`` (buffer plus travel) extends the blocked span past the
    visible slot end; that span must still end by closing time.
    """
    if not hours.is_open or hours.close_time <= hours.open_time:
        return []
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")

    day_open = datetime.combine(on_date, hours.open_time, tzinfo=tz)
    day_close = datetime.combine(on_date, hours.close_time, tzinfo=tz)
    breaks = [
        (
            datetime.combine(on_date, start, tzinfo=tz),
            datetime.combine(on_date, end, tzinfo=tz),
        )
        for start, end in hours.breaks
    ]
    relevant = [
        interval
        for interval in busy
        if interval.staff_id in (None, staff_id) or staff_id is None
        if interval.location_id in (None, location_id) or location_id is None
    ]

    duration = timedelta(minutes=duration_minutes)
    span = timedelta(minutes=duration_minutes + max(padding_minutes, 0))
    step = timedelta(minutes=interval_minutes)

    slots: list[AvailabilitySlot] = []
    cursor = day_open
    while cursor + duration <= day_close:
        slot_end = cursor + duration
        blocked_end = cursor + span
        if blocked_end > day_close:
            break
        if any(overlaps(cursor, slot_end, b_start, b_end) for b_start, b_end in breaks):
            cursor += step
            continue
        start_utc = cursor.astimezone(UTC)
        blocked_end_utc = blocked_end.astimezone(UTC)
        reason = next(
            (
                interval.reason
                for interval in relevant
                if overlaps(start_utc, blocked_end_utc, interval.start, interval.end)
            ),
            None,
        )
        slots.append(
            AvailabilitySlot(
                start=start_utc,
                end=slot_end.astimezone(UTC),
                staff_id=staff_id,
                location_id=location_id,
                available=reason is None,
                reason=reason,
            )
        )
        cursor += step
    return slots


def merge_any_staff(
    per_staff: Sequence[tuple[uuid.UUID, list[AvailabilitySlot]]],
) -> list[AvailabilitySlot]:
    """Collapse per-staff slots; each start is assigned the first free staff."""
    merged: dict[datetime, AvailabilitySlot] = {}
    for staff_id, slots in per_staff:
        for slot in slots:
            current = merged.get(slot.start)
            if current is None:
                merged[slot.start] = AvailabilitySlot(
                    start=slot.start,
                    end=slot.end,
                    staff_id=staff_id if slot.available else None,
                    location_id=slot.location_id,
                    available=slot.available,
                    reason=slot.reason,
                )
            elif not current.available and slot.available:
                current.available = True
                current.staff_id = staff_id
                current.reason = None
    return [merged[start] for start in sorted(merged)]


def provider_timezone(provider: Provider) -> ZoneInfo:
    try:
        return ZoneInfo(provider.timezone or "UTC")
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown provider timezone {provider.timezone!r}") from exc


def travel_padding_minutes(
    provider: Provider, address: ServiceAddress | None
) -> int:
    """Travel minutes added around a house call."""
    if (
        provider.has_base_coordinates
        and address is not None
        and address.coordinates is not None
    ):
        base = Coordinates(
            latitude=provider.base_latitude, longitude=provider.base_longitude
        )
        rules = travel_fee_service.load_rules(provider.travel_fee_rules)
        return travel_fee_service.compute_travel_time(base, address, rules)
    return provider.travel_buffer_minutes


async def get_active_provider(session: AsyncSession, slug: str) -> Provider:
    stmt: Select[tuple[Provider]] = select(Provider).where(
        Provider.slug == slug, Provider.status == ProviderStatus.ACTIVE
    )
    result = await session.execute(stmt)
    provider = result.scalars().one_or_none()
    if provider is None:
        raise LookupError("Provider not found")
    return provider


async def _load_location(
    session: AsyncSession,
    *,
    provider_id: uuid.UUID,
    location_id: uuid.UUID | None,
) -> ProviderLocation | None:
    if location_id is not None:
        location = await session.get(ProviderLocation, location_id)
        if (
            location is None
            or location.provider_id != provider_id
            or not location.is_active
        ):
            raise LookupError("Location not found")
        return location
    stmt: Select[tuple[ProviderLocation]] = (
        select(ProviderLocation)
        .where(
            ProviderLocation.provider_id == provider_id,
            ProviderLocation.is_active.is_(True),
        )
        .order_by(
            ProviderLocation.is_primary.desc(), ProviderLocation.created_at.asc()
        )
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def load_active_staff(
    session: AsyncSession,
    *,
    provider_id: uuid.UUID,
    staff_id: uuid.UUID | None = None,
) -> list[Staff]:
    stmt: Select[tuple[Staff]] = (
        select(Staff)
        .where(Staff.provider_id == provider_id, Staff.is_active.is_(True))
        .order_by(Staff.created_at.asc(), Staff.name.asc())
    )
    if staff_id is not None:
        stmt = stmt.where(Staff.id == staff_id)
    result = await session.execute(stmt)
    staff = list(result.scalars().all())
    if staff_id is not None and not staff:
        raise LookupError("Staff member not found")
    return staff


async def load_busy_intervals(
    session: AsyncSession,
    *,
    provider_id: uuid.UUID,
    range_start: datetime,
    range_end: datetime,
) -> list[BusyInterval]:
    """Booked services and time blocks overlapping the range."""

    booked_stmt: Select[tuple[BookingService]] = (
        select(BookingService)
        .join(Booking, Booking.id == BookingService.booking_id)
        .where(
            Booking.provider_id == provider_id,
            Booking.status.not_in(NON_BLOCKING_STATUSES),
            BookingService.scheduled_end_at > range_start,
            BookingService.scheduled_start_at < range_end,
        )
    )
    busy: list[BusyInterval] = []
    for booked in (await session.execute(booked_stmt)).scalars().all():
        busy.append(
            BusyInterval(
                start=_normalize_datetime(booked.scheduled_start_at),
                end=_normalize_datetime(booked.scheduled_end_at),
                staff_id=booked.staff_id,
                location_id=None,
                reason=BOOKING_CONFLICT_REASON,
            )
        )

    block_stmt: Select[tuple[AvailabilityBlock]] = select(AvailabilityBlock).where(
        AvailabilityBlock.provider_id == provider_id,
        AvailabilityBlock.end_at > range_start,
        AvailabilityBlock.start_at < range_end,
    )
    for block in (await session.execute(block_stmt)).scalars().all():
        busy.append(
            BusyInterval(
                start=_normalize_datetime(block.start_at),
                end=_normalize_datetime(block.end_at),
                staff_id=block.staff_id,
                location_id=block.location_id,
                reason=TIME_BLOCK_REASON,
            )
        )
    return busy


async def list_availability(
    session: AsyncSession,
    *,
    provider_slug: str,
    on_date: date,
    staff_id: uuid.UUID | Literal["any"] | None = None,
    location_id: uuid.UUID | None = None,
    location_type: LocationType = LocationType.AT_SALON,
    duration_minutes: int | None = None,
    offering_id: uuid.UUID | None = None,
    address: ServiceAddress | None = None,
    min_notice_minutes: int = 0,
    max_advance_days: int | None = None,
    now: datetime | None = None,
) -> list[AvailabilitySlot]:
    """Return the day's candidate slots with an availability verdict each."""

    settings = get_booking_settings()
    provider = await get_active_provider(session, provider_slug)
    tz = provider_timezone(provider)
    now = _normalize_datetime(now or datetime.now(UTC))

    duration = duration_minutes if duration_minutes and duration_minutes > 0 else (
        DEFAULT_DURATION_MINUTES
    )
    buffer_minutes = 0
    if offering_id is not None:
        offering = await session.get(Offering, offering_id)
        if (
            offering is None
            or offering.provider_id != provider.id
            or not offering.is_active
        ):
            raise LookupError("Service not found")
        if location_type is LocationType.AT_HOME and not offering.supports_at_home:
            raise ValueError(f"{offering.title} is not available for house calls")
        duration = offering.duration_minutes or duration
        buffer_minutes = offering.buffer_minutes or 0

    advance_limit = (
        settings.max_advance_days if max_advance_days is None else max_advance_days
    )
    days_ahead = (on_date - now.astimezone(tz).date()).days
    if days_ahead < 0 or days_ahead > advance_limit:
        return []

    padding = buffer_minutes
    if location_type is LocationType.AT_HOME:
        padding += travel_padding_minutes(provider, address)

    location = await _load_location(
        session, provider_id=provider.id, location_id=location_id
    )
    location_day = working_day_for(location.working_hours if location else None, on_date)
    slot_location_id = location_id

    range_start = datetime.combine(on_date, time.min, tzinfo=tz).astimezone(UTC)
    range_end = range_start + timedelta(days=1)
    busy = await load_busy_intervals(
        session, provider_id=provider.id, range_start=range_start, range_end=range_end
    )

    def _slots_for(
        staff_hours: dict[str, Any] | None, sid: uuid.UUID | None
    ) -> list[AvailabilitySlot]:
        hours = resolve_hours(
            working_day_for(staff_hours, on_date), location_day, settings
        )
        return build_slots(
            on_date,
            hours,
            tz=tz,
            duration_minutes=duration,
            padding_minutes=padding,
            busy=busy,
            staff_id=sid,
            location_id=slot_location_id,
            interval_minutes=settings.slot_interval_minutes,
        )

    slots: list[AvailabilitySlot]
    if staff_id == "any":
        staff_members = await load_active_staff(session, provider_id=provider.id)
        if staff_members:
            slots = merge_any_staff(
                [
                    (member.id, _slots_for(member.working_hours, member.id))
                    for member in staff_members
                ]
            )
        else:
            slots = _slots_for(None, None)
    elif staff_id is not None:
        (member,) = await load_active_staff(
            session, provider_id=provider.id, staff_id=staff_id
        )
        slots = _slots_for(member.working_hours, member.id)
    else:
        slots = _slots_for(None, None)

    cutoff = now + timedelta(minutes=max(min_notice_minutes, 0))
    return [slot for slot in slots if slot.start >= cutoff]
