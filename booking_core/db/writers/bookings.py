from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from booking_core.models.bookings import Booking
from booking_core.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

bookings = Booking.__table__


def insert_booking(conn: Connection, values: dict[str, Any]) -> int:
    """
    Insert a new booking row.

    Args:
        conn: Active database connection (within transaction)
        values: Column values; ``created_at``/``updated_at`` default to now

    Returns:
        int: The new booking ID
    """
    now = values.get("created_at") or utc_now()
    row = {**values, "created_at": now, "updated_at": now}
    result = conn.execute(insert(bookings).values(**row))
    booking_id = int(result.inserted_primary_key[0])
    logger.debug("booking_inserted", booking_id=booking_id, reference=values.get("reference"))
    return booking_id


def update_booking(conn: Connection, booking_id: int, **changes: Any) -> None:
    """Apply column changes to one booking and bump ``updated_at``."""
    changes.setdefault("updated_at", utc_now())
    conn.execute(update(bookings).where(bookings.c.id == booking_id).values(**changes))
