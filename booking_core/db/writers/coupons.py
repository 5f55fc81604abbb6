from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import insert, or_, update
from sqlalchemy.engine import Connection

from booking_core.models.coupons import Coupon, CouponUsage

logger = structlog.get_logger(__name__)

coupons = Coupon.__table__


def record_coupon_usage(
    conn: Connection,
    coupon_id: int,
    user_id: int,
    booking_id: int,
    discount_amount: Decimal,
    now: datetime,
) -> bool:
    """
    Count one use of a coupon for an accepted booking.

    The counter only advances while it is under ``usage_limit``; the usage
    row is recorded either way so the discount the booking kept is audited.

    Returns:
        bool: False if the coupon had already reached its usage limit
    """
    result = conn.execute(
        update(coupons)
        .where(
            coupons.c.id == coupon_id,
            or_(coupons.c.usage_limit.is_(None), coupons.c.used_count < coupons.c.usage_limit),
        )
        .values(used_count=coupons.c.used_count + 1)
    )
    conn.execute(
        insert(CouponUsage.__table__).values(
            coupon_id=coupon_id,
            user_id=user_id,
            booking_id=booking_id,
            discount_amount=discount_amount,
            used_at=now,
        )
    )
    if result.rowcount == 0:
        logger.warning("coupon_usage_limit_reached", coupon_id=coupon_id, booking_id=booking_id)
        return False
    return True
