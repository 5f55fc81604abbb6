"""
Unit tests for ledger postings, balance fold and settlement state.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import CHECK_IN, CHECK_OUT, GUEST_ID, NOW, OWNER_ID, PROPERTY_ID
from sqlalchemy.engine import Engine

from booking_core.db.writers.bookings import insert_booking
from booking_core.errors import PaymentMismatchError
from booking_core.models.enums import BookingStatus, LedgerEntryKind, LedgerEntryStatus
from booking_core.services import ledger
from booking_core.services.ledger import SettlementState


def make_booking(engine: Engine, reference: str = "KH000001AAA") -> int:
    with engine.begin() as conn:
        return insert_booking(
            conn,
            {
                "reference": reference,
                "property_id": PROPERTY_ID,
                "guest_id": GUEST_ID,
                "owner_id": OWNER_ID,
                "check_in_date": CHECK_IN,
                "check_out_date": CHECK_OUT,
                "guest_count": 1,
                "nights": 2,
                "status": BookingStatus.PENDING,
                "subtotal": Decimal("2200"),
                "service_fee": Decimal("200"),
                "tax_amount": Decimal("300"),
                "total_amount": Decimal("2700"),
                "commission_rate": Decimal("10"),
                "commission_amount": Decimal("270"),
                "owner_earnings": Decimal("2430"),
                "created_at": NOW,
            },
        )


@pytest.mark.unit
def test_debit_is_pending_and_opens_balance(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        ledger.post_debit(conn, booking_id, Decimal("2700"), "KH000001AAA-DR", now=NOW)
        rows = ledger.statement(conn, booking_id)

        assert ledger.running_balance(conn, booking_id) == Decimal("2700.00")

    assert len(rows) == 1
    assert rows[0]["status"] == LedgerEntryStatus.PENDING
    assert rows[0]["kind"] == LedgerEntryKind.OWNER_ACCEPTED
    assert ledger.settlement_state(rows) == SettlementState.OPEN


@pytest.mark.unit
def test_credits_settle_balance(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        ledger.post_debit(conn, booking_id, Decimal("2700"), "R-DR", now=NOW)
        ledger.post_credit(
            conn, booking_id, Decimal("50"), "R-PTS", kind=LedgerEntryKind.POINTS_DISCOUNT, now=NOW
        )
        ledger.post_credit(conn, booking_id, Decimal("2650"), "R-CR", now=NOW)
        assert ledger.complete_debits(conn, booking_id, now=NOW) == 1

        assert ledger.running_balance(conn, booking_id) == Decimal("0.00")
        assert ledger.has_completed_payment(conn, booking_id)
        rows = ledger.statement(conn, booking_id)

    assert [r["balance"] for r in rows] == [Decimal("2700.00"), Decimal("2650.00"), Decimal("0.00")]
    assert all(r["status"] == LedgerEntryStatus.COMPLETED for r in rows)
    assert ledger.settlement_state(rows) == SettlementState.SETTLED


@pytest.mark.unit
def test_credit_exceeding_debits_is_rejected(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        ledger.post_debit(conn, booking_id, Decimal("100"), "R-DR", now=NOW)

        with pytest.raises(PaymentMismatchError):
            ledger.post_credit(conn, booking_id, Decimal("100.01"), "R-CR", now=NOW)

        assert ledger.running_balance(conn, booking_id) == Decimal("100.00")


@pytest.mark.unit
def test_credit_without_debit_is_rejected(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        with pytest.raises(PaymentMismatchError):
            ledger.post_credit(conn, booking_id, Decimal("1"), "R-CR", now=NOW)


@pytest.mark.unit
def test_wrong_kind_for_direction_raises(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        with pytest.raises(ValueError):
            ledger.post_debit(
                conn, booking_id, Decimal("1"), "X", kind=LedgerEntryKind.GUEST_PAYMENT
            )
        with pytest.raises(ValueError):
            ledger.post_credit(
                conn, booking_id, Decimal("1"), "Y", kind=LedgerEntryKind.OWNER_ACCEPTED
            )


@pytest.mark.unit
def test_cancel_open_entries_voids_only_pending(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        ledger.post_debit(conn, booking_id, Decimal("2700"), "R-DR", now=NOW)
        assert ledger.cancel_open_entries(conn, booking_id, now=NOW) == 1
        assert ledger.cancel_open_entries(conn, booking_id, now=NOW) == 0

        assert ledger.running_balance(conn, booking_id) == Decimal("0.00")
        rows = ledger.statement(conn, booking_id)

    assert rows[0]["status"] == LedgerEntryStatus.CANCELLED
    assert rows[0]["balance"] == Decimal("0.00")
    assert ledger.settlement_state(rows) == SettlementState.VOID


@pytest.mark.unit
def test_refund_reopens_balance_and_is_capped(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        ledger.post_debit(conn, booking_id, Decimal("2700"), "R-DR", now=NOW)
        ledger.post_credit(conn, booking_id, Decimal("2700"), "R-CR", now=NOW)
        ledger.complete_debits(conn, booking_id, now=NOW)

        ledger.post_refund(conn, booking_id, Decimal("1000"), "RF-1", now=NOW)
        assert ledger.running_balance(conn, booking_id) == Decimal("1000.00")

        with pytest.raises(PaymentMismatchError):
            ledger.post_refund(conn, booking_id, Decimal("1700.01"), "RF-2", now=NOW)

        rows = ledger.statement(conn, booking_id)

    assert rows[-1]["kind"] == LedgerEntryKind.REFUND
    assert ledger.settlement_state(rows) == SettlementState.REFUNDED


@pytest.mark.unit
def test_refund_amount_must_be_positive(engine: Engine) -> None:
    booking_id = make_booking(engine)

    with engine.begin() as conn:
        with pytest.raises(ValueError):
            ledger.post_refund(conn, booking_id, Decimal("0"), "RF-0", now=NOW)


@pytest.mark.unit
def test_settlement_state_of_empty_ledger_is_open() -> None:
    assert ledger.settlement_state([]) == SettlementState.OPEN
