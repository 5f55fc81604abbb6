"""
Shared fixtures: an in-memory SQLite database built from the models, a
BookingService wired to fake collaborators, and bookings in common states.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

from datetime import date, datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Generator, Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from booking_core.db.engine import create_db_engine  # noqa: E402
from booking_core.models import (  # noqa: E402, F401
    bookings,
    calendars,
    coupons,
    earnings,
    ledger,
    rewards,
)
from booking_core.models.base import Base  # noqa: E402
from booking_core.models.enums import RewardsTransactionType  # noqa: E402
from booking_core.models.rewards import (  # noqa: E402
    RewardsAccount,
    RewardsPointSettings,
    RewardsPointSlot,
    RewardsTransaction,
)
from booking_core.services.bookings import BookingService  # noqa: E402
from booking_core.services.pricing import PropertyInfo  # noqa: E402

GUEST_ID = 10
OTHER_GUEST_ID = 11
OWNER_ID = 20
STRANGER_ID = 99
PROPERTY_ID = 1

NOW = datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc)
CHECK_IN = date(2026, 12, 1)
CHECK_OUT = date(2026, 12, 3)

PROPERTY = PropertyInfo(
    property_id=PROPERTY_ID,
    owner_id=OWNER_ID,
    base_price=Decimal("1000"),
    cleaning_fee=Decimal("200"),
    max_guests=4,
    minimum_stay=1,
)


class FakePropertyLookup:
    def __init__(self, *properties: PropertyInfo) -> None:
        self.properties = {p.property_id: p for p in properties}

    def get_property(self, property_id: int) -> Optional[PropertyInfo]:
        return self.properties.get(property_id)


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[int, str]] = []

    def notify(self, user_id: int, message: str) -> None:
        if self.fail:
            raise RuntimeError("notification service unavailable")
        self.sent.append((user_id, message))


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database per test."""
    engine = create_db_engine("sqlite+pysqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(engine: Engine, notifier: RecordingNotifier) -> BookingService:
    return BookingService(
        engine,
        properties=FakePropertyLookup(PROPERTY),
        notifier=notifier,
        payment_deadline_minutes=15,
        default_commission_rate=10,
    )


@pytest.fixture
def pending_booking(service: BookingService) -> dict[str, Any]:
    booking, _ = service.create_booking(
        GUEST_ID, PROPERTY_ID, CHECK_IN, CHECK_OUT, guest_count=1, now=NOW
    )
    return booking


@pytest.fixture
def accepted_booking(service: BookingService, pending_booking: dict[str, Any]) -> dict[str, Any]:
    return service.accept_booking(pending_booking["id"], actor_id=OWNER_ID, now=NOW)


@pytest.fixture
def confirmed_booking(service: BookingService, accepted_booking: dict[str, Any]) -> dict[str, Any]:
    return service.record_payment(
        accepted_booking["id"], method="card", actor_id=GUEST_ID, now=NOW + timedelta(minutes=5)
    )


def grant_points(engine: Engine, user_id: int, points: int) -> None:
    """Open a wallet holding ``points``, with the matching earned transaction."""
    with engine.begin() as conn:
        conn.execute(
            insert(RewardsAccount.__table__).values(
                user_id=user_id, current_balance=points, total_earned=points, lifetime_spent=0
            )
        )
        conn.execute(
            insert(RewardsTransaction.__table__).values(
                user_id=user_id,
                type=RewardsTransactionType.EARNED,
                points=points,
                balance_after=points,
                booking_id=None,
                description="Opening balance",
                created_at=NOW - timedelta(days=30),
            )
        )


def configure_points(
    engine: Engine,
    points_per_taka: int = 10,
    min_points_to_redeem: int = 100,
    max_points_per_booking: Optional[int] = None,
    points_per_thousand: int = 10,
) -> None:
    with engine.begin() as conn:
        conn.execute(
            insert(RewardsPointSettings.__table__).values(
                points_per_taka=points_per_taka,
                min_points_to_redeem=min_points_to_redeem,
                max_points_per_booking=max_points_per_booking,
                is_active=True,
            )
        )
        conn.execute(
            insert(RewardsPointSlot.__table__).values(
                min_amount=Decimal("0"),
                max_amount=None,
                points_per_thousand=points_per_thousand,
                is_active=True,
            )
        )
