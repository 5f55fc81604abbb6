"""
Per-booking DR/CR ledger.

The ledger is append-only: entries are inserted, and only ``pending`` entries
ever change status afterwards. The outstanding receivable of a booking is the
fold of its non-cancelled entries in creation order, ``balance += dr`` then
``balance -= cr``. Refund entries return money to the guest and fold as a
negative credit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from booking_core.errors import PaymentMismatchError
from booking_core.metrics import ledger_postings, payment_mismatches
from booking_core.models.enums import LedgerEntryKind, LedgerEntryStatus
from booking_core.models.ledger import LedgerEntry
from booking_core.models.types import ZERO, money
from booking_core.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

entries_table = LedgerEntry.__table__

DEBIT_KINDS = frozenset({LedgerEntryKind.OWNER_ACCEPTED})
CREDIT_KINDS = frozenset({LedgerEntryKind.GUEST_PAYMENT, LedgerEntryKind.POINTS_DISCOUNT})


class SettlementState(str, Enum):
    OPEN = "open"
    SETTLED = "settled"
    VOID = "void"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class Totals:
    debits: Decimal
    credits: Decimal

    @property
    def balance(self) -> Decimal:
        return self.debits - self.credits


def _signed(entry: dict[str, Any]) -> Decimal:
    """Effect of one entry on the outstanding balance."""
    if entry["kind"] == LedgerEntryKind.REFUND:
        return money(entry["cr_amount"])
    return money(entry["dr_amount"]) - money(entry["cr_amount"])


def _entries(
    conn: Connection, booking_id: int, include_cancelled: bool = False
) -> list[dict[str, Any]]:
    stmt = select(entries_table).where(entries_table.c.booking_id == booking_id)
    if not include_cancelled:
        stmt = stmt.where(entries_table.c.status != LedgerEntryStatus.CANCELLED)
    stmt = stmt.order_by(entries_table.c.created_at, entries_table.c.id)
    return [dict(row) for row in conn.execute(stmt).mappings()]


def _totals(entries: Iterable[dict[str, Any]]) -> Totals:
    debits = credits = ZERO
    for entry in entries:
        if entry["kind"] == LedgerEntryKind.REFUND:
            credits -= money(entry["cr_amount"])
        else:
            debits += money(entry["dr_amount"])
            credits += money(entry["cr_amount"])
    return Totals(debits=debits, credits=credits)


def _insert_entry(
    conn: Connection,
    booking_id: int,
    kind: LedgerEntryKind,
    reference: str,
    status: LedgerEntryStatus,
    dr_amount: Decimal = ZERO,
    cr_amount: Decimal = ZERO,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    now = now or utc_now()
    result = conn.execute(
        insert(entries_table).values(
            booking_id=booking_id,
            kind=kind,
            dr_amount=dr_amount,
            cr_amount=cr_amount,
            status=status,
            reference=reference,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
    )
    ledger_postings.labels(kind=kind.value).inc()
    entry_id = int(result.inserted_primary_key[0])
    logger.info(
        "ledger_entry_posted",
        booking_id=booking_id,
        entry_id=entry_id,
        kind=kind.value,
        dr_amount=str(dr_amount),
        cr_amount=str(cr_amount),
        status=status.value,
    )
    return entry_id


def post_debit(
    conn: Connection,
    booking_id: int,
    amount: Decimal,
    reference: str,
    kind: LedgerEntryKind = LedgerEntryKind.OWNER_ACCEPTED,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Post a pending receivable against a booking.

    Args:
        conn: Active database connection (within transaction)
        booking_id: Booking the receivable belongs to
        amount: Amount owed, must not be negative
        reference: Unique entry reference
        kind: Debit kind (``owner_accepted``)
        notes: Free-text description
        now: Entry timestamp

    Returns:
        int: The new entry ID
    """
    if kind not in DEBIT_KINDS:
        raise ValueError(f"{kind.value} is not a debit entry kind")
    amount = money(amount)
    if amount < ZERO:
        raise ValueError("Debit amount must not be negative")
    return _insert_entry(
        conn, booking_id, kind, reference, LedgerEntryStatus.PENDING,
        dr_amount=amount, notes=notes, now=now,
    )


def post_credit(
    conn: Connection,
    booking_id: int,
    amount: Decimal,
    reference: str,
    kind: LedgerEntryKind = LedgerEntryKind.GUEST_PAYMENT,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Post a completed credit against a booking.

    Raises:
        PaymentMismatchError: If the credit would make total credits exceed
            total debits for the booking
    """
    if kind not in CREDIT_KINDS:
        raise ValueError(f"{kind.value} is not a credit entry kind")
    amount = money(amount)
    if amount < ZERO:
        raise ValueError("Credit amount must not be negative")

    totals = _totals(_entries(conn, booking_id))
    if totals.credits + amount > totals.debits:
        payment_mismatches.inc()
        logger.error(
            "ledger_credit_exceeds_debits",
            booking_id=booking_id,
            kind=kind.value,
            amount=str(amount),
            debits=str(totals.debits),
            credits=str(totals.credits),
        )
        raise PaymentMismatchError(
            "Credit would exceed the booking's debits",
            booking_id=booking_id,
            amount=str(amount),
            debits=str(totals.debits),
            credits=str(totals.credits),
        )

    return _insert_entry(
        conn, booking_id, kind, reference, LedgerEntryStatus.COMPLETED,
        cr_amount=amount, notes=notes, now=now,
    )


def post_refund(
    conn: Connection,
    booking_id: int,
    amount: Decimal,
    reference: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Record money returned to the guest.

    Raises:
        PaymentMismatchError: If more would be refunded than the guest paid
    """
    amount = money(amount)
    if amount <= ZERO:
        raise ValueError("Refund amount must be positive")

    received = ZERO
    for entry in _entries(conn, booking_id):
        if entry["kind"] == LedgerEntryKind.GUEST_PAYMENT:
            received += money(entry["cr_amount"])
        elif entry["kind"] == LedgerEntryKind.REFUND:
            received -= money(entry["cr_amount"])

    if amount > received:
        payment_mismatches.inc()
        logger.error(
            "ledger_refund_exceeds_payments",
            booking_id=booking_id,
            amount=str(amount),
            received=str(received),
        )
        raise PaymentMismatchError(
            "Refund exceeds the amount paid", booking_id=booking_id, amount=str(amount)
        )

    return _insert_entry(
        conn, booking_id, LedgerEntryKind.REFUND, reference, LedgerEntryStatus.COMPLETED,
        cr_amount=amount, notes=notes, now=now,
    )


def running_balance(conn: Connection, booking_id: int) -> Decimal:
    """Outstanding receivable: fold of non-cancelled entries in creation order."""
    balance = ZERO
    for entry in _entries(conn, booking_id):
        balance += _signed(entry)
    return balance


def complete_debits(conn: Connection, booking_id: int, now: Optional[datetime] = None) -> int:
    """Mark the booking's pending debits completed once they are balanced. Returns the count."""
    result = conn.execute(
        update(entries_table)
        .where(
            entries_table.c.booking_id == booking_id,
            entries_table.c.kind.in_(DEBIT_KINDS),
            entries_table.c.status == LedgerEntryStatus.PENDING,
        )
        .values(status=LedgerEntryStatus.COMPLETED, updated_at=now or utc_now())
    )
    return result.rowcount


def cancel_open_entries(conn: Connection, booking_id: int, now: Optional[datetime] = None) -> int:
    """
    Mark every pending entry of the booking cancelled.

    Completed entries are left untouched. Calling this again cancels nothing
    further and returns 0.

    Returns:
        int: Number of entries cancelled
    """
    result = conn.execute(
        update(entries_table)
        .where(
            entries_table.c.booking_id == booking_id,
            entries_table.c.status == LedgerEntryStatus.PENDING,
        )
        .values(status=LedgerEntryStatus.CANCELLED, updated_at=now or utc_now())
    )
    if result.rowcount:
        logger.info("ledger_entries_cancelled", booking_id=booking_id, count=result.rowcount)
    return result.rowcount


def has_completed_payment(conn: Connection, booking_id: int) -> bool:
    stmt = select(entries_table.c.id).where(
        entries_table.c.booking_id == booking_id,
        entries_table.c.kind == LedgerEntryKind.GUEST_PAYMENT,
        entries_table.c.status == LedgerEntryStatus.COMPLETED,
    )
    return conn.execute(stmt).first() is not None


def statement(conn: Connection, booking_id: int) -> list[dict[str, Any]]:
    """
    All entries of a booking, cancelled ones included, with a running balance.

    Cancelled entries carry the balance of the entry before them, since they
    no longer affect what is owed.
    """
    balance = ZERO
    rows = []
    for entry in _entries(conn, booking_id, include_cancelled=True):
        if entry["status"] != LedgerEntryStatus.CANCELLED:
            balance += _signed(entry)
        rows.append({**entry, "balance": balance})
    return rows


def settlement_state(entries: list[dict[str, Any]]) -> SettlementState:
    """
    Summarize a booking's ledger.

    ``void`` when every entry was cancelled, ``refunded`` once a refund is
    recorded, ``settled`` when debits are fully credited and ``open`` otherwise.
    """
    live = [e for e in entries if e["status"] != LedgerEntryStatus.CANCELLED]
    if entries and not live:
        return SettlementState.VOID
    if any(e["kind"] == LedgerEntryKind.REFUND for e in live):
        return SettlementState.REFUNDED
    totals = _totals(live)
    if totals.debits > ZERO and totals.balance == ZERO:
        return SettlementState.SETTLED
    return SettlementState.OPEN
