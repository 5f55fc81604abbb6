"""
Booking price, coupon discount and commission split.

Everything here is a pure function of its arguments: no database access and
no side effects. Coupon usage counters are advanced elsewhere, only once a
booking is accepted.

Example:
    >>> prop = PropertyInfo(property_id=1, owner_id=2, base_price=Decimal("1000"),
    ...                     cleaning_fee=Decimal("200"))
    >>> price_booking(prop, nights=2, guest_count=1).total
    Decimal('2700.00')
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from booking_core.models.enums import DiscountType
from booking_core.models.types import ZERO, money
from booking_core.utils.datetime import utc_today

SERVICE_FEE_RATE = Decimal("0.10")
TAX_RATE = Decimal("0.15")


@dataclass(frozen=True)
class PropertyInfo:
    """Property data consumed from the property service."""

    property_id: int
    owner_id: int
    base_price: Decimal
    cleaning_fee: Decimal = ZERO
    security_deposit: Decimal = ZERO
    extra_guest_fee: Decimal = ZERO
    max_guests: int = 1
    minimum_stay: int = 1
    commission_rate: Optional[Decimal] = None


@dataclass(frozen=True)
class CouponInfo:
    id: int
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    maximum_discount: Optional[Decimal] = None
    minimum_amount: Decimal = ZERO
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class PricingBreakdown:
    """
    Price of one stay.

    ``total`` is the pre-discount amount; ``final_total`` is what the guest
    owes once the coupon discount is applied.
    """

    nights: int
    subtotal: Decimal
    service_fee: Decimal
    tax_amount: Decimal
    total: Decimal
    discount_amount: Decimal
    final_total: Decimal
    coupon_id: Optional[int] = None
    coupon_code: Optional[str] = None

    def as_dict(self) -> dict[str, object]:
        return {
            "nights": self.nights,
            "subtotal": self.subtotal,
            "service_fee": self.service_fee,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "discount_amount": self.discount_amount,
            "final_total": self.final_total,
            "coupon_code": self.coupon_code,
        }


def count_nights(check_in: date, check_out: date) -> int:
    """Number of nights in the half-open stay ``[check_in, check_out)``."""
    return (check_out - check_in).days


def coupon_is_valid(coupon: CouponInfo, total: Decimal, today: date) -> bool:
    if not coupon.is_active:
        return False
    if coupon.valid_from is not None and today < coupon.valid_from:
        return False
    if coupon.valid_until is not None and today > coupon.valid_until:
        return False
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return False
    return total >= coupon.minimum_amount


def coupon_discount(
    coupon: Optional[CouponInfo], total: Decimal, today: Optional[date] = None
) -> Decimal:
    """
    Discount a coupon grants on a pre-discount ``total``.

    Returns zero for a missing or currently invalid coupon. Percentage coupons
    are capped by ``maximum_discount``; no discount exceeds the total.
    """
    if coupon is None or not coupon_is_valid(coupon, total, today or utc_today()):
        return ZERO

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = total * coupon.discount_value / Decimal(100)
        if coupon.maximum_discount is not None:
            discount = min(discount, coupon.maximum_discount)
    else:
        discount = coupon.discount_value

    return money(min(discount, total))


def price_booking(
    prop: PropertyInfo,
    nights: int,
    guest_count: int,
    coupon: Optional[CouponInfo] = None,
    today: Optional[date] = None,
) -> PricingBreakdown:
    """
    Price a stay of ``nights`` nights for ``guest_count`` guests.

    Args:
        prop: Property pricing data
        nights: Length of stay
        guest_count: Number of guests; each guest beyond the first pays the extra guest fee
        coupon: Optional coupon to apply
        today: Date used for the coupon validity window (defaults to today in UTC)

    Returns:
        PricingBreakdown: Amounts quantized to two decimal places
    """
    nightly_total = prop.base_price * nights
    extra_guests = max(0, guest_count - 1)

    subtotal = money(
        nightly_total
        + prop.cleaning_fee
        + prop.security_deposit
        + prop.extra_guest_fee * extra_guests
    )
    service_fee = money(nightly_total * SERVICE_FEE_RATE)
    tax_amount = money(nightly_total * TAX_RATE)
    total = subtotal + service_fee + tax_amount

    discount = coupon_discount(coupon, total, today)
    applied = coupon if discount > ZERO else None

    return PricingBreakdown(
        nights=nights,
        subtotal=subtotal,
        service_fee=service_fee,
        tax_amount=tax_amount,
        total=total,
        discount_amount=discount,
        final_total=max(ZERO, total - discount),
        coupon_id=applied.id if applied else None,
        coupon_code=applied.code if applied else None,
    )


def split_commission(final_total: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
    """
    Split a booking total between the platform and the owner.

    Returns:
        tuple[Decimal, Decimal]: ``(commission_amount, owner_earnings)``
    """
    commission = money(final_total * rate / Decimal(100))
    return commission, money(final_total - commission)
