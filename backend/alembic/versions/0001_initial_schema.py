"""Initial marketplace booking schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")

# Enum columns persist member names.
user_role = sa.Enum(
    "ADMIN", "PROVIDER_OWNER", "PROVIDER_STAFF", "CUSTOMER", name="userrole"
)
user_status = sa.Enum("INVITED", "ACTIVE", "SUSPENDED", name="userstatus")
provider_status = sa.Enum("PENDING", "ACTIVE", "SUSPENDED", name="providerstatus")
location_kind = sa.Enum("SALON", "BASE", name="locationkind")
fee_type = sa.Enum("PERCENTAGE", "FIXED_AMOUNT", "TIERED", name="feetype")
promotion_kind = sa.Enum("PERCENTAGE", "FIXED", name="promotionkind")
membership_status = sa.Enum("ACTIVE", "PAUSED", "CANCELLED", name="membershipstatus")
booking_status = sa.Enum(
    "PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW", name="bookingstatus"
)
location_type = sa.Enum("AT_SALON", "AT_HOME", name="locationtype")
payment_method = sa.Enum("CARD", "CASH", "GIFT_CARD", name="paymentmethod")
payment_status = sa.Enum("PENDING", "PAID", "REFUNDED", name="paymentstatus")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True)


def _fk(name: str, target: str, *, ondelete: str, nullable: bool) -> sa.Column:
    return sa.Column(
        name,
        sa.Uuid(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _money(name: str, *, nullable: bool = False, default: str | None = "0") -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(12, 2),
        nullable=nullable,
        server_default=default if not nullable else None,
    )


def upgrade() -> None:
    op.create_table(
        "accounts",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "platform_fee_configs",
        _id(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("fee_type", fee_type, nullable=False),
        sa.Column("fee_percentage", sa.Numeric(6, 3)),
        _money("fee_fixed_amount", nullable=True),
        sa.Column("tiers", JSON_TYPE),
        _money("min_booking_amount", nullable=True),
        _money("max_fee_amount", nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "users",
        _id(),
        _fk("account_id", "accounts.id", ondelete="CASCADE", nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("phone_number", sa.String(length=32)),
        sa.Column("role", user_role, nullable=False),
        sa.Column("status", user_status, nullable=False, server_default="INVITED"),
        *_timestamps(),
    )

    op.create_table(
        "providers",
        _id(),
        _fk("account_id", "accounts.id", ondelete="CASCADE", nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", provider_status, nullable=False, server_default="ACTIVE"),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("currency", sa.String(length=3)),
        sa.Column("tax_rate_percent", sa.Numeric(6, 3)),
        sa.Column(
            "tips_enabled", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        _fk(
            "customer_fee_config_id",
            "platform_fee_configs.id",
            ondelete="SET NULL",
            nullable=True,
        ),
        _money("minimum_mobile_booking_amount", nullable=True),
        sa.Column("base_latitude", sa.Float()),
        sa.Column("base_longitude", sa.Float()),
        sa.Column(
            "travel_buffer_minutes", sa.Integer(), nullable=False, server_default="30"
        ),
        sa.Column("travel_fee_rules", JSON_TYPE),
        *_timestamps(),
    )

    op.create_table(
        "provider_locations",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("kind", location_kind, nullable=False, server_default="SALON"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "is_primary", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("working_hours", JSON_TYPE),
        *_timestamps(),
    )

    op.create_table(
        "provider_staff",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("working_hours", JSON_TYPE),
        *_timestamps(),
    )

    op.create_table(
        "offerings",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        _money("price", default=None),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="ZAR"),
        sa.Column(
            "supports_at_home", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        _money("at_home_price_adjustment"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "service_addons",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        _money("price", default=None),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "products",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        _money("retail_price", default=None),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "track_stock_quantity",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "service_packages",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        _money("price", nullable=True),
        sa.Column("discount_percentage", sa.Numeric(5, 2)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "package_offerings",
        sa.Column(
            "package_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("service_packages.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "offering_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("offerings.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "promotions",
        _id(),
        _fk("account_id", "accounts.id", ondelete="CASCADE", nullable=False),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=True),
        _fk("location_id", "provider_locations.id", ondelete="CASCADE", nullable=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("kind", promotion_kind, nullable=False),
        _money("value", default=None),
        _money("min_purchase_amount", nullable=True),
        _money("max_discount_amount", nullable=True),
        sa.Column("valid_from", sa.DateTime(timezone=True)),
        sa.Column("valid_until", sa.DateTime(timezone=True)),
        sa.Column("usage_limit", sa.Integer()),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "gift_cards",
        _id(),
        _fk("account_id", "accounts.id", ondelete="CASCADE", nullable=False),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        _money("original_value", default=None),
        _money("remaining_value", default=None),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="ZAR"),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "loyalty_rules",
        _id(),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column(
            "points_per_currency_unit",
            sa.Numeric(8, 4),
            nullable=False,
            server_default="1",
        ),
        sa.Column(
            "redemption_rate", sa.Numeric(8, 4), nullable=False, server_default="10"
        ),
        sa.Column(
            "min_redemption_points", sa.Integer(), nullable=False, server_default="50"
        ),
        sa.Column(
            "max_redemption_percentage",
            sa.Numeric(5, 2),
            nullable=False,
            server_default="50",
        ),
        sa.Column("effective_from", sa.DateTime(timezone=True)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "loyalty_accounts",
        _id(),
        sa.Column(
            "user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("points_balance", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "membership_plans",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "discount_percent", sa.Numeric(5, 2), nullable=False, server_default="0"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "user_memberships",
        _id(),
        _fk("user_id", "users.id", ondelete="CASCADE", nullable=False),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        _fk("plan_id", "membership_plans.id", ondelete="CASCADE", nullable=False),
        sa.Column("status", membership_status, nullable=False, server_default="ACTIVE"),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "provider_id", name="uq_membership_user_provider"
        ),
    )

    op.create_table(
        "availability_blocks",
        _id(),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        _fk("staff_id", "provider_staff.id", ondelete="CASCADE", nullable=True),
        _fk("location_id", "provider_locations.id", ondelete="CASCADE", nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.String(length=255)),
        *_timestamps(),
    )
    op.create_index(
        "ix_availability_blocks_provider_range",
        "availability_blocks",
        ["provider_id", "start_at"],
    )

    op.create_table(
        "bookings",
        _id(),
        sa.Column("booking_number", sa.String(length=32), nullable=False, unique=True),
        _fk("customer_id", "users.id", ondelete="CASCADE", nullable=False),
        _fk("provider_id", "providers.id", ondelete="CASCADE", nullable=False),
        sa.Column("location_type", location_type, nullable=False),
        _fk("location_id", "provider_locations.id", ondelete="SET NULL", nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", booking_status, nullable=False, server_default="PENDING"),
        _fk("package_id", "service_packages.id", ondelete="SET NULL", nullable=True),
        sa.Column("address_line1", sa.String(length=255)),
        sa.Column("address_line2", sa.String(length=255)),
        sa.Column("address_city", sa.String(length=120)),
        sa.Column("address_postal_code", sa.String(length=20)),
        sa.Column("address_country", sa.String(length=2)),
        sa.Column("address_latitude", sa.Float()),
        sa.Column("address_longitude", sa.Float()),
        _money("subtotal", default=None),
        _money("travel_fee"),
        _money("package_discount"),
        sa.Column("discount_code", sa.String(length=64)),
        _fk("promotion_id", "promotions.id", ondelete="SET NULL", nullable=True),
        _money("discount_amount"),
        _fk("gift_card_id", "gift_cards.id", ondelete="SET NULL", nullable=True),
        _money("gift_card_amount"),
        _money("loyalty_discount"),
        _fk(
            "membership_plan_id",
            "membership_plans.id",
            ondelete="SET NULL",
            nullable=True,
        ),
        _money("membership_discount"),
        _fk(
            "service_fee_config_id",
            "platform_fee_configs.id",
            ondelete="SET NULL",
            nullable=True,
        ),
        sa.Column("service_fee_percentage", sa.Numeric(6, 3)),
        _money("service_fee_amount"),
        sa.Column("tax_rate", sa.Numeric(6, 3), nullable=False, server_default="0"),
        _money("tax_amount"),
        _money("tip_amount"),
        _money("total_amount", default=None),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="ZAR"),
        sa.Column("payment_method", payment_method, nullable=False, server_default="CARD"),
        sa.Column(
            "payment_status", payment_status, nullable=False, server_default="PENDING"
        ),
        sa.Column(
            "loyalty_points_earned", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "loyalty_points_redeemed", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("special_requests", sa.Text()),
        sa.Column(
            "is_group_booking", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index(
        "ix_bookings_provider_scheduled", "bookings", ["provider_id", "scheduled_at"]
    )

    op.create_table(
        "booking_services",
        _id(),
        _fk("booking_id", "bookings.id", ondelete="CASCADE", nullable=False),
        _fk("offering_id", "offerings.id", ondelete="RESTRICT", nullable=False),
        _fk("staff_id", "provider_staff.id", ondelete="SET NULL", nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        _money("price", default=None),
        sa.Column("scheduled_start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_end_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_booking_services_staff_start",
        "booking_services",
        ["staff_id", "scheduled_start_at"],
    )

    op.create_table(
        "booking_addons",
        _id(),
        _fk("booking_id", "bookings.id", ondelete="CASCADE", nullable=False),
        _fk("addon_id", "service_addons.id", ondelete="RESTRICT", nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        _money("unit_price", default=None),
        _money("total_price", default=None),
        *_timestamps(),
    )

    op.create_table(
        "booking_products",
        _id(),
        _fk("booking_id", "bookings.id", ondelete="CASCADE", nullable=False),
        _fk("product_id", "products.id", ondelete="RESTRICT", nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        _money("unit_price", default=None),
        _money("total_price", default=None),
        *_timestamps(),
    )

    op.create_table(
        "booking_group_participants",
        _id(),
        _fk("booking_id", "bookings.id", ondelete="CASCADE", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320)),
        sa.Column("phone", sa.String(length=32)),
        sa.Column(
            "is_primary_contact",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("offering_ids", JSON_TYPE),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("booking_group_participants")
    op.drop_table("booking_products")
    op.drop_table("booking_addons")
    op.drop_index("ix_booking_services_staff_start", table_name="booking_services")
    op.drop_table("booking_services")
    op.drop_index("ix_bookings_provider_scheduled", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index(
        "ix_availability_blocks_provider_range", table_name="availability_blocks"
    )
    op.drop_table("availability_blocks")
    op.drop_table("user_memberships")
    op.drop_table("membership_plans")
    op.drop_table("loyalty_accounts")
    op.drop_table("loyalty_rules")
    op.drop_table("gift_cards")
    op.drop_table("promotions")
    op.drop_table("package_offerings")
    op.drop_table("service_packages")
    op.drop_table("products")
    op.drop_table("service_addons")
    op.drop_table("offerings")
    op.drop_table("provider_staff")
    op.drop_table("provider_locations")
    op.drop_table("providers")
    op.drop_table("users")
    op.drop_table("platform_fee_configs")
    op.drop_table("accounts")

    bind = op.get_bind()
    for enum_type in (
        payment_status,
        payment_method,
        location_type,
        booking_status,
        membership_status,
        promotion_kind,
        fee_type,
        location_kind,
        provider_status,
        user_status,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
