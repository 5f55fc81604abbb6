# models/bookings.py

from sqlalchemy import CheckConstraint, Column, Date, Integer, String, Text

from booking_core.models.base import Base
from booking_core.models.enums import BookingStatus, PaymentStatus
from booking_core.models.types import Money, StringEnum, UTCDateTime
from booking_core.utils.datetime import utc_now


class Booking(Base):
    """
    A guest's reservation of one property for a half-open date range.

    Pricing columns hold the breakdown computed at creation; ``total_amount``
    is the amount the guest owes and is reduced when loyalty points are
    redeemed at payment time. ``accepted_at`` and ``payment_deadline`` are
    set together when the owner accepts.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="ck_bookings_date_range"),
        CheckConstraint(
            "(accepted_at IS NULL) = (payment_deadline IS NULL)",
            name="ck_bookings_acceptance_deadline",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference = Column(String(20), nullable=False, unique=True)
    property_id = Column(Integer, nullable=False, index=True)
    guest_id = Column(Integer, nullable=False, index=True)
    owner_id = Column(Integer, nullable=False, index=True)

    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    guest_count = Column(Integer, nullable=False)
    nights = Column(Integer, nullable=False)

    status = Column(StringEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
    payment_status = Column(StringEnum(PaymentStatus), nullable=False, default=PaymentStatus.UNPAID)
    accepted_at = Column(UTCDateTime, nullable=True)
    payment_deadline = Column(UTCDateTime, nullable=True, index=True)

    subtotal = Column(Money(), nullable=False)
    service_fee = Column(Money(), nullable=False)
    tax_amount = Column(Money(), nullable=False)
    discount_amount = Column(Money(), nullable=False, default=0)
    total_amount = Column(Money(), nullable=False)
    coupon_code = Column(String(50), nullable=True)
    coupon_id = Column(Integer, nullable=True)

    commission_rate = Column(Money(), nullable=False)
    commission_amount = Column(Money(), nullable=False)
    owner_earnings = Column(Money(), nullable=False)

    points_redeemed = Column(Integer, nullable=False, default=0)
    points_discount = Column(Money(), nullable=False, default=0)

    payment_method = Column(String(50), nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)
