from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from booking_core.models.earnings import AdminEarnings
from booking_core.models.enums import EarningsPaymentStatus, EarningsStatus

earnings = AdminEarnings.__table__


def create_admin_earnings(conn: Connection, booking: dict[str, Any], now: datetime) -> None:
    """Record the platform commission of a booking at acceptance."""
    conn.execute(
        insert(earnings).values(
            booking_id=booking["id"],
            property_id=booking["property_id"],
            owner_id=booking["owner_id"],
            booking_total=booking["total_amount"],
            commission_rate=booking["commission_rate"],
            commission_amount=booking["commission_amount"],
            payment_status=EarningsPaymentStatus.PENDING,
            status=EarningsStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
    )


def mark_earnings_paid(conn: Connection, booking_id: int, now: datetime) -> None:
    conn.execute(
        update(earnings)
        .where(earnings.c.booking_id == booking_id)
        .values(payment_status=EarningsPaymentStatus.PAID, paid_at=now, updated_at=now)
    )


def set_earnings_status(
    conn: Connection, booking_id: int, status: EarningsStatus, now: datetime
) -> None:
    conn.execute(
        update(earnings)
        .where(earnings.c.booking_id == booking_id)
        .values(status=status, updated_at=now)
    )
