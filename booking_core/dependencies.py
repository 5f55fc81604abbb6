"""
FastAPI dependency injection providers.

Dependencies can be overridden in tests using app.dependency_overrides, so
route tests run against an in-memory engine and fake collaborators.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.engine import Engine

from booking_core.db.engine import get_engine
from booking_core.services.bookings import BookingService


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
    """
    yield get_engine()


@lru_cache(maxsize=1)
def build_booking_service(engine: Engine) -> BookingService:
    from booking_core.config import (
        ADMIN_COMMISSION_RATE,
        NOTIFICATION_SERVICE_URL,
        OWNER_RESPONSE_MINUTES,
        PAYMENT_DEADLINE_MINUTES,
        PROPERTY_SERVICE_URL,
    )
    from booking_core.network.client import HttpNotifier, HttpPropertyLookup

    return BookingService(
        engine,
        properties=HttpPropertyLookup(PROPERTY_SERVICE_URL),
        notifier=HttpNotifier(NOTIFICATION_SERVICE_URL),
        payment_deadline_minutes=PAYMENT_DEADLINE_MINUTES,
        default_commission_rate=ADMIN_COMMISSION_RATE,
        owner_response_minutes=OWNER_RESPONSE_MINUTES,
    )


def get_booking_service(engine: Engine = Depends(get_db_engine)) -> BookingService:
    """
    Provide the booking service wired to the HTTP collaborator adapters.

    Returns:
        BookingService: Service bound to ``engine``
    """
    return build_booking_service(engine)
