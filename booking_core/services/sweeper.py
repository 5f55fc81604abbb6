"""
Expiration sweeper: cancels accepted bookings whose payment window passed and
requests the owner never answered.

``run_once()`` is a single pass and is safe to call from a cron job, a test
or the background thread started by ``start()``. Passes never overlap within
a process; across processes the booking row lock taken by
``BookingService.expire_booking`` makes a double cancellation a no-op.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from booking_core.db.readers.bookings import find_overdue_booking_ids, find_stale_request_ids
from booking_core.metrics import sweeper_duration, sweeper_failures, sweeper_runs
from booking_core.services.bookings import BookingService
from booking_core.utils.datetime import utc_now, utc_today

logger = structlog.get_logger(__name__)


@dataclass
class SweepResult:
    cancelled: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    skipped: bool = False


class ExpirationSweeper:
    """
    Periodic payment-deadline enforcement.

    Example:
        >>> sweeper = ExpirationSweeper(service, interval_seconds=60)
        >>> sweeper.start()
        >>> ...
        >>> sweeper.stop()
    """

    def __init__(self, service: BookingService, interval_seconds: float = 60) -> None:
        self.service = service
        self.interval_seconds = interval_seconds
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Expire every overdue booking and stale request once.

        Returns:
            SweepResult: IDs cancelled and IDs that failed; ``skipped`` is True
            if another pass was already running
        """
        if not self._run_lock.acquire(blocking=False):
            sweeper_runs.labels(status="skipped").inc()
            logger.info("sweep_skipped", reason="already_running")
            return SweepResult(skipped=True)

        result = SweepResult()
        started = time.perf_counter()
        try:
            now = now or utc_now()
            with self.service.engine.connect() as conn:
                overdue = find_overdue_booking_ids(conn, now)
                stale = find_stale_request_ids(
                    conn, now, self.service.response_window, utc_today(now)
                )

            self._expire_each(overdue, self.service.expire_booking, now, result)
            self._expire_each(stale, self.service.expire_request, now, result)
        finally:
            self._run_lock.release()
            sweeper_duration.observe(time.perf_counter() - started)

        sweeper_runs.labels(status="completed").inc()
        logger.info(
            "sweep_completed",
            overdue=len(overdue),
            stale=len(stale),
            cancelled=len(result.cancelled),
            failed=len(result.failed),
        )
        return result

    def _expire_each(
        self,
        booking_ids: list[int],
        expire: Callable[..., Optional[dict[str, Any]]],
        now: datetime,
        result: SweepResult,
    ) -> None:
        for booking_id in booking_ids:
            try:
                if expire(booking_id, now=now) is not None:
                    result.cancelled.append(booking_id)
            except Exception:
                sweeper_failures.inc()
                result.failed.append(booking_id)
                logger.exception("sweep_booking_failed", booking_id=booking_id)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("sweep_failed")
            self._stop_event.wait(self.interval_seconds)

    def start(self) -> None:
        """Run passes every ``interval_seconds`` on a daemon thread until ``stop()``."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="expiration-sweeper", daemon=True)
        self._thread.start()
        logger.info("sweeper_started", interval_seconds=self.interval_seconds)

    def stop(self, timeout: Optional[float] = 10) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("sweeper_stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
