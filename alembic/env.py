from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context  # type: ignore[attr-defined]
from booking_core.config import DATABASE_URL
from booking_core.models.base import Base
from booking_core.models.bookings import Booking  # noqa: F401
from booking_core.models.calendars import PropertyCalendar  # noqa: F401
from booking_core.models.coupons import Coupon, CouponUsage  # noqa: F401
from booking_core.models.earnings import AdminEarnings  # noqa: F401
from booking_core.models.ledger import LedgerEntry  # noqa: F401
from booking_core.models.rewards import (  # noqa: F401
    MemberStatusTier,
    RewardsAccount,
    RewardsPointSettings,
    RewardsPointSlot,
    RewardsTransaction,
)

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", str(DATABASE_URL))


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL and not an Engine, so no
    DBAPI is needed. Calls to context.execute() emit the given string to
    the script output.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
