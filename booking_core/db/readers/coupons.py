from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from booking_core.models.coupons import Coupon
from booking_core.models.types import money
from booking_core.services.pricing import CouponInfo

coupons = Coupon.__table__


def get_coupon_by_code(conn: Connection, code: str) -> Optional[CouponInfo]:
    """
    Look up a coupon by code, case-insensitively.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        code (str): Coupon code as typed by the guest.

    Returns:
        Optional[CouponInfo]: The coupon, active or not, or None if no coupon has this code.
    """
    row = (
        conn.execute(select(coupons).where(func.upper(coupons.c.code) == code.strip().upper()))
        .mappings()
        .first()
    )
    if row is None:
        return None
    maximum = row["maximum_discount"]
    return CouponInfo(
        id=row["id"],
        code=row["code"],
        discount_type=row["discount_type"],
        discount_value=money(row["discount_value"]),
        maximum_discount=money(maximum) if maximum is not None else None,
        minimum_amount=money(row["minimum_amount"]),
        valid_from=row["valid_from"],
        valid_until=row["valid_until"],
        usage_limit=row["usage_limit"],
        used_count=row["used_count"],
        is_active=row["is_active"],
    )
