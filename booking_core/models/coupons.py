# models/coupons.py

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String

from booking_core.models.base import Base
from booking_core.models.enums import DiscountType
from booking_core.models.types import Money, StringEnum, UTCDateTime
from booking_core.utils.datetime import utc_now


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    discount_type = Column(StringEnum(DiscountType), nullable=False)
    discount_value = Column(Money(), nullable=False)
    maximum_discount = Column(Money(), nullable=True)
    minimum_amount = Column(Money(), nullable=False, default=0)
    valid_from = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class CouponUsage(Base):
    """One row per accepted booking that applied a coupon."""

    __tablename__ = "coupon_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    discount_amount = Column(Money(), nullable=False)
    used_at = Column(UTCDateTime, nullable=False, default=utc_now)
