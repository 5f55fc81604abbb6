from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.engine import Connection

from booking_core.models.bookings import Booking
from booking_core.models.enums import BookingStatus, LedgerEntryKind, LedgerEntryStatus
from booking_core.models.ledger import LedgerEntry

bookings = Booking.__table__


def get_booking(
    conn: Connection, booking_id: int, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch one booking row.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        booking_id (int): Booking ID.
        for_update (bool): Take a row lock (``SELECT ... FOR UPDATE``) held
            until the surrounding transaction ends.

    Returns:
        Optional[dict[str, Any]]: Booking columns, or None if not found.
    """
    stmt = select(bookings).where(bookings.c.id == booking_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def reference_exists(conn: Connection, reference: str) -> bool:
    result = conn.execute(select(bookings.c.id).where(bookings.c.reference == reference))
    return result.first() is not None


def find_overdue_booking_ids(conn: Connection, now: datetime) -> list[int]:
    """
    Return IDs of accepted bookings whose payment deadline has passed unpaid.

    Legacy rows that were accepted while keeping status ``pending`` are
    included. A booking with a completed guest payment entry is never overdue.
    """
    paid = exists().where(
        and_(
            LedgerEntry.__table__.c.booking_id == bookings.c.id,
            LedgerEntry.__table__.c.kind == LedgerEntryKind.GUEST_PAYMENT,
            LedgerEntry.__table__.c.status == LedgerEntryStatus.COMPLETED,
        )
    )
    stmt = (
        select(bookings.c.id)
        .where(
            or_(
                bookings.c.status == BookingStatus.ACCEPTED,
                and_(
                    bookings.c.status == BookingStatus.PENDING,
                    bookings.c.accepted_at.is_not(None),
                ),
            ),
            bookings.c.payment_deadline.is_not(None),
            bookings.c.payment_deadline < now,
            ~paid,
        )
        .order_by(bookings.c.payment_deadline, bookings.c.id)
    )
    return [row[0] for row in conn.execute(stmt)]


def find_stale_request_ids(
    conn: Connection, now: datetime, response_window: timedelta, today: date
) -> list[int]:
    """
    Return IDs of requests the owner never answered.

    A request is stale once ``response_window`` has passed since it was made,
    or once its check-in date has arrived.
    """
    stmt = (
        select(bookings.c.id)
        .where(
            bookings.c.status == BookingStatus.PENDING,
            bookings.c.accepted_at.is_(None),
            or_(
                bookings.c.created_at <= now - response_window,
                bookings.c.check_in_date <= today,
            ),
        )
        .order_by(bookings.c.created_at, bookings.c.id)
    )
    return [row[0] for row in conn.execute(stmt)]
