"""
Unit tests for the payment-deadline sweeper.
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any
from unittest.mock import patch

import pytest
from conftest import CHECK_IN, CHECK_OUT, GUEST_ID, NOW, OTHER_GUEST_ID, OWNER_ID, PROPERTY_ID
from prometheus_client import REGISTRY

from booking_core.errors import DeadlineExpiredError
from booking_core.models.enums import BookingStatus, LedgerEntryStatus, PaymentStatus
from booking_core.services.bookings import REQUEST_EXPIRY_REASON, BookingService
from booking_core.services.sweeper import ExpirationSweeper


@pytest.mark.unit
def test_sweep_cancels_overdue_booking(
    service: BookingService, accepted_booking: dict[str, Any]
) -> None:
    """Accepted at NOW with a 15 minute window, swept at NOW + 16 minutes."""
    sweeper = ExpirationSweeper(service)

    result = sweeper.run_once(now=NOW + timedelta(minutes=16))

    assert result.cancelled == [accepted_booking["id"]]
    assert result.failed == []
    assert not result.skipped

    booking = service.get_booking(accepted_booking["id"])
    assert booking["status"] == BookingStatus.CANCELLED
    assert booking["payment_status"] == PaymentStatus.UNPAID
    entries = service.ledger_statement(booking["id"])["entries"]
    assert [e["status"] for e in entries] == [LedgerEntryStatus.CANCELLED]


@pytest.mark.unit
def test_sweep_leaves_open_windows_and_paid_bookings(
    service: BookingService, confirmed_booking: dict[str, Any]
) -> None:
    other, _ = service.create_booking(
        OTHER_GUEST_ID, PROPERTY_ID, CHECK_OUT, CHECK_OUT + timedelta(days=2), 1, now=NOW
    )
    service.accept_booking(other["id"], actor_id=OWNER_ID, now=NOW + timedelta(minutes=10))

    result = ExpirationSweeper(service).run_once(now=NOW + timedelta(minutes=20))

    assert result.cancelled == []
    assert service.get_booking(confirmed_booking["id"])["status"] == BookingStatus.CONFIRMED
    assert service.get_booking(other["id"])["status"] == BookingStatus.ACCEPTED


@pytest.mark.unit
def test_sweep_then_late_payment_is_rejected(
    service: BookingService, accepted_booking: dict[str, Any]
) -> None:
    ExpirationSweeper(service).run_once(now=NOW + timedelta(minutes=16))

    with pytest.raises(DeadlineExpiredError):
        service.record_payment(
            accepted_booking["id"], method="card", now=NOW + timedelta(minutes=17)
        )


@pytest.mark.unit
def test_sweep_frees_the_calendar(
    service: BookingService, accepted_booking: dict[str, Any]
) -> None:
    ExpirationSweeper(service).run_once(now=NOW + timedelta(minutes=16))

    booking, _ = service.create_booking(
        OTHER_GUEST_ID, PROPERTY_ID, CHECK_IN, CHECK_OUT, 1, now=NOW + timedelta(minutes=17)
    )
    assert booking["status"] == BookingStatus.PENDING


@pytest.mark.unit
def test_failure_on_one_booking_does_not_stop_the_pass(
    service: BookingService, accepted_booking: dict[str, Any]
) -> None:
    second, _ = service.create_booking(
        OTHER_GUEST_ID, PROPERTY_ID, CHECK_OUT, CHECK_OUT + timedelta(days=1), 1, now=NOW
    )
    service.accept_booking(second["id"], actor_id=OWNER_ID, now=NOW)

    original = service.expire_booking

    def flaky(booking_id: int, now: Any = None) -> Any:
        if booking_id == accepted_booking["id"]:
            raise RuntimeError("database hiccup")
        return original(booking_id, now=now)

    failures_before = REGISTRY.get_sample_value("booking_sweeper_failures_total") or 0

    with patch.object(service, "expire_booking", side_effect=flaky):
        result = ExpirationSweeper(service).run_once(now=NOW + timedelta(minutes=16))

    assert result.failed == [accepted_booking["id"]]
    assert result.cancelled == [second["id"]]
    assert REGISTRY.get_sample_value("booking_sweeper_failures_total") == failures_before + 1


@pytest.mark.unit
def test_overlapping_pass_is_skipped(service: BookingService) -> None:
    sweeper = ExpirationSweeper(service)
    sweeper._run_lock.acquire()
    try:
        result = sweeper.run_once(now=NOW)
    finally:
        sweeper._run_lock.release()

    assert result.skipped
    assert result.cancelled == []


@pytest.mark.unit
def test_start_and_stop_background_thread(service: BookingService) -> None:
    sweeper = ExpirationSweeper(service, interval_seconds=0.01)

    with patch.object(sweeper, "run_once") as mock_run:
        sweeper.start()
        sweeper.start()
        assert sweeper.running

        deadline = time.monotonic() + 2
        while mock_run.call_count < 2 and time.monotonic() < deadline:
            time.sleep(0.01)

        sweeper.stop(timeout=2)

    assert mock_run.call_count >= 2
    assert not sweeper.running


@pytest.mark.unit
def test_loop_survives_failed_pass(service: BookingService) -> None:
    sweeper = ExpirationSweeper(service, interval_seconds=0.01)

    with patch.object(sweeper, "run_once", side_effect=RuntimeError("boom")) as mock_run:
        sweeper.start()
        deadline = time.monotonic() + 2
        while mock_run.call_count < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        sweeper.stop(timeout=2)

    assert mock_run.call_count >= 2


@pytest.mark.unit
def test_sweep_expires_unanswered_request(
    service: BookingService, pending_booking: dict[str, Any]
) -> None:
    sweeper = ExpirationSweeper(service)

    assert sweeper.run_once(now=NOW + timedelta(hours=1)).cancelled == []

    result = sweeper.run_once(now=NOW + timedelta(hours=25))

    assert result.cancelled == [pending_booking["id"]]
    booking = service.get_booking(pending_booking["id"])
    assert booking["status"] == BookingStatus.CANCELLED
    assert booking["cancellation_reason"] == REQUEST_EXPIRY_REASON

    rebooked, _ = service.create_booking(
        OTHER_GUEST_ID, PROPERTY_ID, CHECK_IN, CHECK_OUT, 1, now=NOW + timedelta(hours=26)
    )
    assert rebooked["status"] == BookingStatus.PENDING


@pytest.mark.unit
def test_sweep_closes_request_left_pending_past_its_stay(
    service: BookingService, pending_booking: dict[str, Any]
) -> None:
    result = ExpirationSweeper(service).run_once(now=NOW + timedelta(days=40))

    assert result.cancelled == [pending_booking["id"]]
    booking = service.get_booking(pending_booking["id"], actor_id=GUEST_ID)
    assert booking["status"] == BookingStatus.CANCELLED
    assert booking["payment_status"] == PaymentStatus.UNPAID
