"""Initial booking, ledger, earnings, rewards and coupon tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)
TS = sa.DateTime(timezone=True)
OPEN_KIND = sa.text("kind IN ('owner_accepted', 'guest_payment') AND status <> 'cancelled'")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", TS, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", TS, server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "member_status_tiers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tier_name", sa.String(50), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("min_points", sa.Integer, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("reference", sa.String(20), nullable=False, unique=True),
        sa.Column("property_id", sa.Integer, nullable=False, index=True),
        sa.Column("guest_id", sa.Integer, nullable=False, index=True),
        sa.Column("owner_id", sa.Integer, nullable=False, index=True),
        sa.Column("check_in_date", sa.Date, nullable=False),
        sa.Column("check_out_date", sa.Date, nullable=False),
        sa.Column("guest_count", sa.Integer, nullable=False),
        sa.Column("nights", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("accepted_at", TS, nullable=True),
        sa.Column("payment_deadline", TS, nullable=True, index=True),
        sa.Column("subtotal", MONEY, nullable=False),
        sa.Column("service_fee", MONEY, nullable=False),
        sa.Column("tax_amount", MONEY, nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("coupon_code", sa.String(50), nullable=True),
        sa.Column("coupon_id", sa.Integer, nullable=True),
        sa.Column("commission_rate", MONEY, nullable=False),
        sa.Column("commission_amount", MONEY, nullable=False),
        sa.Column("owner_earnings", MONEY, nullable=False),
        sa.Column("points_redeemed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("points_discount", MONEY, nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("paid_at", TS, nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("cancelled_at", TS, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("check_out_date > check_in_date", name="ck_bookings_date_range"),
        sa.CheckConstraint(
            "(accepted_at IS NULL) = (payment_deadline IS NULL)",
            name="ck_bookings_acceptance_deadline",
        ),
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "booking_id",
            sa.Integer,
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("dr_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("cr_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reference", sa.String(64), nullable=False, unique=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "uq_ledger_entries_open_kind",
        "ledger_entries",
        ["booking_id", "kind"],
        unique=True,
        postgresql_where=OPEN_KIND,
        sqlite_where=OPEN_KIND,
    )

    op.create_table(
        "admin_earnings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "booking_id",
            sa.Integer,
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("property_id", sa.Integer, nullable=False),
        sa.Column("owner_id", sa.Integer, nullable=False, index=True),
        sa.Column("booking_total", MONEY, nullable=False),
        sa.Column("commission_rate", MONEY, nullable=False),
        sa.Column("commission_amount", MONEY, nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("paid_at", TS, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "rewards_accounts",
        sa.Column("user_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("current_balance", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_earned", sa.Integer, nullable=False, server_default="0"),
        sa.Column("lifetime_spent", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "member_tier_id", sa.Integer, sa.ForeignKey("member_status_tiers.id"), nullable=True
        ),
        *_timestamps(),
    )

    op.create_table(
        "rewards_transactions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("rewards_accounts.user_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("balance_after", sa.Integer, nullable=False),
        sa.Column("booking_id", sa.Integer, nullable=True, index=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", TS, server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "rewards_point_slots",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("min_amount", MONEY, nullable=False),
        sa.Column("max_amount", MONEY, nullable=True),
        sa.Column("points_per_thousand", sa.Integer, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "rewards_point_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("points_per_taka", sa.Integer, nullable=False, server_default="1"),
        sa.Column("min_points_to_redeem", sa.Integer, nullable=False, server_default="100"),
        sa.Column("max_points_per_booking", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("discount_type", sa.String(20), nullable=False),
        sa.Column("discount_value", MONEY, nullable=False),
        sa.Column("maximum_discount", MONEY, nullable=True),
        sa.Column("minimum_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("valid_from", sa.Date, nullable=True),
        sa.Column("valid_until", sa.Date, nullable=True),
        sa.Column("usage_limit", sa.Integer, nullable=True),
        sa.Column("used_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "coupon_usage",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("coupon_id", sa.Integer, sa.ForeignKey("coupons.id"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer, nullable=False),
        sa.Column(
            "booking_id",
            sa.Integer,
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("discount_amount", MONEY, nullable=False),
        sa.Column("used_at", TS, server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "property_calendars",
        sa.Column("property_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("created_at", TS, server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("property_calendars")
    op.drop_table("coupon_usage")
    op.drop_table("coupons")
    op.drop_table("rewards_point_settings")
    op.drop_table("rewards_point_slots")
    op.drop_table("rewards_transactions")
    op.drop_table("rewards_accounts")
    op.drop_table("admin_earnings")
    op.drop_index("uq_ledger_entries_open_kind", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_table("bookings")
    op.drop_table("member_status_tiers")
