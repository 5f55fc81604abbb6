# models/earnings.py

from sqlalchemy import Column, ForeignKey, Integer

from booking_core.models.base import Base
from booking_core.models.enums import EarningsPaymentStatus, EarningsStatus
from booking_core.models.types import Money, StringEnum, UTCDateTime
from booking_core.utils.datetime import utc_now


class AdminEarnings(Base):
    """Platform commission record for one accepted booking."""

    __tablename__ = "admin_earnings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    property_id = Column(Integer, nullable=False)
    owner_id = Column(Integer, nullable=False, index=True)
    booking_total = Column(Money(), nullable=False)
    commission_rate = Column(Money(), nullable=False)
    commission_amount = Column(Money(), nullable=False)
    payment_status = Column(
        StringEnum(EarningsPaymentStatus), nullable=False, default=EarningsPaymentStatus.PENDING
    )
    paid_at = Column(UTCDateTime, nullable=True)
    status = Column(StringEnum(EarningsStatus), nullable=False, default=EarningsStatus.ACTIVE)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)
