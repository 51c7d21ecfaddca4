"""Test fixtures for the booking marketplace backend."""
from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from app.core.config import get_settings
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import dispose_engine, get_sessionmaker
from app.main import app
from app.models import (
    Account,
    Addon,
    Booking,
    BookingService,
    BookingStatus,
    FeeType,
    GiftCard,
    LocationKind,
    LocationType,
    LoyaltyAccount,
    LoyaltyRule,
    Offering,
    PlatformFeeConfig,
    Product,
    Promotion,
    PromotionKind,
    Provider,
    ProviderLocation,
    ServicePackage,
    Staff,
    User,
    UserRole,
    UserStatus,
)

CUSTOMER_PASSWORD = "Passw0rd!"
PROVIDER_SLUG = "glow-studio"


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


async def seed_marketplace(session: AsyncSession) -> dict[str, Any]:
    """Seed one provider with a salon, two staff and a small catalog."""
    account = Account(name="Glow Collective", slug=f"glow-{uuid.uuid4().hex[:8]}")
    session.add(account)
    await session.flush()

    fee_config = PlatformFeeConfig(
        name="Standard",
        fee_type=FeeType.PERCENTAGE,
        fee_percentage=Decimal("5"),
        max_fee_amount=Decimal("100"),
    )
    session.add(fee_config)
    await session.flush()

    provider = Provider(
        account_id=account.id,
        slug=PROVIDER_SLUG,
        name="Glow Studio",
        timezone="UTC",
        currency="ZAR",
        tax_rate_percent=Decimal("15"),
        tips_enabled=True,
        customer_fee_config_id=fee_config.id,
        minimum_mobile_booking_amount=Decimal("200"),
        base_latitude=-33.9249,
        base_longitude=18.4241,
        travel_buffer_minutes=30,
    )
    session.add(provider)
    await session.flush()

    salon = ProviderLocation(
        provider_id=provider.id,
        name="Gardens",
        kind=LocationKind.SALON,
        is_primary=True,
    )
    session.add(salon)
    alex = Staff(provider_id=provider.id, name="Alex")
    session.add(alex)
    await session.flush()
    jordan = Staff(provider_id=provider.id, name="Jordan")
    session.add(jordan)

    manicure = Offering(
        provider_id=provider.id,
        title="Gel Manicure",
        duration_minutes=60,
        buffer_minutes=15,
        price=Decimal("300.00"),
        supports_at_home=True,
        at_home_price_adjustment=Decimal("50.00"),
    )
    blow_dry = Offering(
        provider_id=provider.id,
        title="Blow Dry",
        duration_minutes=45,
        buffer_minutes=0,
        price=Decimal("250.00"),
        supports_at_home=False,
    )
    nail_art = Addon(provider_id=provider.id, name="Nail Art", price=Decimal("80.00"))
    cuticle_oil = Product(
        provider_id=provider.id,
        name="Cuticle Oil",
        retail_price=Decimal("120.00"),
        track_stock_quantity=True,
        quantity=3,
    )
    session.add_all([manicure, blow_dry, nail_art, cuticle_oil])

    customer = User(
        account_id=account.id,
        email="thandi@example.com",
        hashed_password=get_password_hash(CUSTOMER_PASSWORD),
        first_name="Thandi",
        last_name="Customer",
        role=UserRole.CUSTOMER,
        status=UserStatus.ACTIVE,
    )
    other_customer = User(
        account_id=account.id,
        email="lerato@example.com",
        hashed_password=get_password_hash(CUSTOMER_PASSWORD),
        first_name="Lerato",
        last_name="Customer",
        role=UserRole.CUSTOMER,
        status=UserStatus.ACTIVE,
    )
    session.add_all([customer, other_customer])
    await session.flush()

    session.add_all(
        [
            LoyaltyRule(
                currency="ZAR",
                points_per_currency_unit=Decimal("1"),
                redemption_rate=Decimal("10"),
                min_redemption_points=50,
                max_redemption_percentage=Decimal("50"),
            ),
            LoyaltyAccount(user_id=customer.id, points_balance=500),
            Promotion(
                account_id=account.id,
                provider_id=provider.id,
                code="WELCOME10",
                kind=PromotionKind.PERCENTAGE,
                value=Decimal("10"),
            ),
            GiftCard(
                account_id=account.id,
                code="GIFT-100",
                original_value=Decimal("100.00"),
                remaining_value=Decimal("100.00"),
            ),
        ]
    )
    await session.commit()

    return {
        "account_id": account.id,
        "provider_id": provider.id,
        "provider_slug": provider.slug,
        "salon_id": salon.id,
        "alex_id": alex.id,
        "jordan_id": jordan.id,
        "manicure_id": manicure.id,
        "blow_dry_id": blow_dry.id,
        "nail_art_id": nail_art.id,
        "cuticle_oil_id": cuticle_oil.id,
        "customer_id": customer.id,
        "customer_email": customer.email,
        "other_customer_id": other_customer.id,
        "other_customer_email": other_customer.email,
        "customer_password": CUSTOMER_PASSWORD,
        "fee_config_id": fee_config.id,
    }


async def _add_booked_service(
    session: AsyncSession,
    seed: dict[str, Any],
    *,
    start_at: datetime,
    staff_id: uuid.UUID | None,
    minutes: int = 60,
    status: BookingStatus = BookingStatus.CONFIRMED,
) -> Booking:
    """Insert an existing booking occupying ``minutes`` from ``start_at``."""
    booking = Booking(
        booking_number=f"BK-SEED-{uuid.uuid4().hex[:6].upper()}",
        customer_id=seed["other_customer_id"],
        provider_id=seed["provider_id"],
        location_type=LocationType.AT_SALON,
        location_id=seed["salon_id"],
        scheduled_at=start_at,
        status=status,
        subtotal=Decimal("300.00"),
        total_amount=Decimal("300.00"),
    )
    booking.services = [
        BookingService(
            offering_id=seed["manicure_id"],
            staff_id=staff_id,
            duration_minutes=minutes,
            buffer_minutes=0,
            price=Decimal("300.00"),
            scheduled_start_at=start_at,
            scheduled_end_at=start_at + timedelta(minutes=minutes),
        )
    ]
    session.add(booking)
    await session.commit()
    return booking


@pytest.fixture()
def booking_day() -> datetime:
    """Midnight UTC a week from now; always inside the booking window."""
    today = datetime.now(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
    return today + timedelta(days=7)


@pytest_asyncio.fixture()
async def seeded(reset_database: None, db_url: str) -> dict[str, Any]:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        return await seed_marketplace(session)


@pytest_asyncio.fixture()
async def app_context(
    seeded: dict[str, Any],
) -> AsyncIterator[dict[str, Any]]:
    """Yield an async client alongside the seeded marketplace data."""
    context = dict(seeded)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        context["client"] = client
        yield context


async def _login(client: AsyncClient, email: str, password: str) -> dict[str, str]:
    response = await client.post(
        "/api/v1/auth/token", data={"username": email, "password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def book_service(db_url: str, seeded: dict[str, Any]):
    """Return a coroutine that stores an existing booking for the seeded provider."""

    async def _book(
        start_at: datetime,
        staff_id: uuid.UUID | None,
        *,
        minutes: int = 60,
        status: BookingStatus = BookingStatus.CONFIRMED,
    ) -> Booking:
        async with get_sessionmaker(db_url)() as session:
            return await _add_booked_service(
                session,
                seeded,
                start_at=start_at,
                staff_id=staff_id,
                minutes=minutes,
                status=status,
            )

    return _book


@pytest_asyncio.fixture()
async def customer_headers(app_context: dict[str, Any]) -> dict[str, str]:
    return await _login(
        app_context["client"],
        app_context["customer_email"],
        app_context["customer_password"],
    )


@pytest.fixture()
def add_package(db_url: str, seeded: dict[str, Any]):
    """Return a coroutine that bundles the seeded manicure and blow dry."""

    async def _add(*, price: str = "450.00", is_active: bool = True) -> uuid.UUID:
        async with get_sessionmaker(db_url)() as session:
            package = ServicePackage(
                provider_id=seeded["provider_id"],
                name="Pamper Day",
                price=Decimal(price),
                is_active=is_active,
            )
            package.offerings = [
                await session.get(Offering, seeded["manicure_id"]),
                await session.get(Offering, seeded["blow_dry_id"]),
            ]
            session.add(package)
            await session.commit()
            return package.id

    return _add
