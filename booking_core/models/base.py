from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every table of the booking core (bookings, ledger, earnings, rewards,
    coupons and calendar locks) is declared on this base so one metadata
    object describes the whole schema for Alembic and for test fixtures.
    """

    pass
