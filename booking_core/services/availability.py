"""
Conflict checking for property calendars.

A property may hold at most one active booking for any night. Active means
accepted, confirmed or checked in, a request still inside the owner's response
window, or a legacy accepted-but-pending row whose payment window is still
open. Stays are half-open ``[check_in, check_out)`` intervals, so a stay
checking out on the day another checks in does not conflict.

Callers that go on to write (create, accept) must first take the property's
calendar lock with :func:`lock_property_calendar` inside the same transaction.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.engine import Connection

from booking_core.db.writers._insert import insert_ignore
from booking_core.errors import ConflictError
from booking_core.metrics import booking_conflicts
from booking_core.models.bookings import Booking
from booking_core.models.calendars import PropertyCalendar
from booking_core.models.enums import BookingStatus

logger = structlog.get_logger(__name__)

bookings = Booking.__table__

HOLDING_STATUSES = (BookingStatus.ACCEPTED, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
DEFAULT_RESPONSE_WINDOW = timedelta(hours=24)


def _active_clause(now: datetime, response_window: timedelta) -> Any:
    # Unanswered requests and accepted pending rows hold only while their window is open.
    return or_(
        bookings.c.status.in_(HOLDING_STATUSES),
        and_(
            bookings.c.status == BookingStatus.PENDING,
            bookings.c.accepted_at.is_(None),
            bookings.c.created_at > now - response_window,
        ),
        and_(
            bookings.c.status == BookingStatus.PENDING,
            bookings.c.accepted_at.is_not(None),
            bookings.c.payment_deadline > now,
        ),
    )


def find_conflicts(
    conn: Connection,
    property_id: int,
    check_in: date,
    check_out: date,
    now: datetime,
    exclude_booking_id: Optional[int] = None,
    response_window: timedelta = DEFAULT_RESPONSE_WINDOW,
) -> list[dict[str, Any]]:
    """
    Return the active bookings of ``property_id`` that overlap the given stay.

    Args:
        conn: Active database connection
        property_id: Property whose calendar is checked
        check_in: First night of the requested stay
        check_out: Departure day (exclusive)
        now: Reference time for open payment windows
        exclude_booking_id: Booking to ignore (used when re-checking on accept)
        response_window: How long an unanswered request holds its dates

    Returns:
        list[dict[str, Any]]: ``id``, ``reference``, ``check_in_date``,
        ``check_out_date`` and ``status`` of each conflicting booking
    """
    stmt = select(
        bookings.c.id,
        bookings.c.reference,
        bookings.c.check_in_date,
        bookings.c.check_out_date,
        bookings.c.status,
    ).where(
        bookings.c.property_id == property_id,
        bookings.c.check_in_date < check_out,
        bookings.c.check_out_date > check_in,
        _active_clause(now, response_window),
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(bookings.c.id != exclude_booking_id)
    stmt = stmt.order_by(bookings.c.check_in_date, bookings.c.id)
    return [dict(row) for row in conn.execute(stmt).mappings()]


def is_available(
    conn: Connection,
    property_id: int,
    check_in: date,
    check_out: date,
    now: datetime,
    exclude_booking_id: Optional[int] = None,
    response_window: timedelta = DEFAULT_RESPONSE_WINDOW,
) -> bool:
    """True if no active booking of the property overlaps ``[check_in, check_out)``."""
    return not find_conflicts(
        conn, property_id, check_in, check_out, now, exclude_booking_id, response_window
    )


def assert_available(
    conn: Connection,
    property_id: int,
    check_in: date,
    check_out: date,
    now: datetime,
    exclude_booking_id: Optional[int] = None,
    stage: str = "create",
    response_window: timedelta = DEFAULT_RESPONSE_WINDOW,
) -> None:
    """
    Raise ConflictError if the stay overlaps an active booking.

    Raises:
        ConflictError: With the IDs of the conflicting bookings in its context
    """
    conflicts = find_conflicts(
        conn, property_id, check_in, check_out, now, exclude_booking_id, response_window
    )
    if conflicts:
        booking_conflicts.labels(stage=stage).inc()
        conflict_ids = [c["id"] for c in conflicts]
        logger.info(
            "booking_conflict",
            property_id=property_id,
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
            conflicting_booking_ids=conflict_ids,
            stage=stage,
        )
        raise ConflictError(conflicting_booking_ids=conflict_ids)


def lock_property_calendar(conn: Connection, property_id: int) -> None:
    """
    Serialize calendar mutations of one property for the rest of the transaction.

    The lock row is created on first use. On PostgreSQL the ``FOR UPDATE``
    blocks concurrent creators and acceptors of the same property until this
    transaction commits or rolls back; SQLite serializes writers on its own.
    """
    insert_ignore(conn, PropertyCalendar, {"property_id": property_id}, ["property_id"])
    calendars = PropertyCalendar.__table__
    conn.execute(
        select(calendars.c.property_id)
        .where(calendars.c.property_id == property_id)
        .with_for_update()
    ).one()
