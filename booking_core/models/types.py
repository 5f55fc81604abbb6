"""
Column types shared by the booking tables.

Money is stored as ``NUMERIC(12, 2)`` and always handled as ``Decimal`` in
Python. Timestamps are timezone-aware UTC on every backend, including SQLite,
which has no native timezone support.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import DateTime, Numeric
from sqlalchemy import Enum as SAEnum
from sqlalchemy.types import TypeDecorator

from booking_core.utils.datetime import ensure_utc

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Any) -> Decimal:
    """Quantize a number to two decimal places, rounding half up."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def Money() -> Numeric:
    return Numeric(12, 2, asdecimal=True)


class UTCDateTime(TypeDecorator):
    """DateTime column that only accepts and returns UTC-aware datetimes."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        value = ensure_utc(value)
        if dialect.name == "sqlite":
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)


def StringEnum(enum_cls: type) -> SAEnum:
    """Store a Python enum by value in a plain VARCHAR column."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )
