"""
Unit tests for booking pricing, coupon discounts and commission split.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from booking_core.models.enums import DiscountType
from booking_core.services.pricing import (
    CouponInfo,
    PropertyInfo,
    count_nights,
    coupon_discount,
    price_booking,
    split_commission,
)

TODAY = date(2026, 11, 1)

PROPERTY = PropertyInfo(
    property_id=1,
    owner_id=2,
    base_price=Decimal("1000"),
    cleaning_fee=Decimal("200"),
    max_guests=4,
)


def make_coupon(**overrides: object) -> CouponInfo:
    values: dict[str, object] = {
        "id": 7,
        "code": "WELCOME10",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
        "maximum_discount": Decimal("100"),
        "minimum_amount": Decimal("0"),
    }
    values.update(overrides)
    return CouponInfo(**values)  # type: ignore[arg-type]


@pytest.mark.unit
def test_two_night_stay_breakdown() -> None:
    """Base price 1000, cleaning fee 200, two nights."""
    pricing = price_booking(PROPERTY, nights=2, guest_count=1, today=TODAY)

    assert pricing.subtotal == Decimal("2200.00")
    assert pricing.service_fee == Decimal("200.00")
    assert pricing.tax_amount == Decimal("300.00")
    assert pricing.total == Decimal("2700.00")
    assert pricing.discount_amount == Decimal("0.00")
    assert pricing.final_total == Decimal("2700.00")


@pytest.mark.unit
def test_extra_guest_fee_applies_beyond_first_guest() -> None:
    prop = PropertyInfo(
        property_id=1,
        owner_id=2,
        base_price=Decimal("500"),
        extra_guest_fee=Decimal("50"),
        max_guests=4,
    )

    pricing = price_booking(prop, nights=1, guest_count=3, today=TODAY)

    # 500 + 2 * 50
    assert pricing.subtotal == Decimal("600.00")
    # Fees and tax are on base price only
    assert pricing.service_fee == Decimal("50.00")
    assert pricing.tax_amount == Decimal("75.00")


@pytest.mark.unit
def test_security_deposit_is_part_of_subtotal() -> None:
    prop = PropertyInfo(
        property_id=1, owner_id=2, base_price=Decimal("1000"), security_deposit=Decimal("300")
    )

    assert price_booking(prop, nights=1, guest_count=1, today=TODAY).subtotal == Decimal("1300.00")


@pytest.mark.unit
def test_percentage_coupon_is_capped() -> None:
    pricing = price_booking(PROPERTY, nights=2, guest_count=1, coupon=make_coupon(), today=TODAY)

    # 10% of 2700 is 270, capped at 100
    assert pricing.discount_amount == Decimal("100.00")
    assert pricing.final_total == Decimal("2600.00")
    assert pricing.coupon_id == 7
    assert pricing.coupon_code == "WELCOME10"


@pytest.mark.unit
def test_percentage_coupon_without_cap() -> None:
    coupon = make_coupon(maximum_discount=None)

    assert coupon_discount(coupon, Decimal("2700.00"), TODAY) == Decimal("270.00")


@pytest.mark.unit
def test_fixed_coupon_never_exceeds_total() -> None:
    coupon = make_coupon(discount_type=DiscountType.FIXED, discount_value=Decimal("5000"))

    pricing = price_booking(PROPERTY, nights=2, guest_count=1, coupon=coupon, today=TODAY)

    assert pricing.discount_amount == Decimal("2700.00")
    assert pricing.final_total == Decimal("0.00")


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"is_active": False},
        {"valid_from": date(2026, 11, 2)},
        {"valid_until": date(2026, 10, 31)},
        {"usage_limit": 5, "used_count": 5},
        {"minimum_amount": Decimal("3000")},
    ],
    ids=["inactive", "not-yet-valid", "expired", "used-up", "below-minimum"],
)
def test_invalid_coupon_gives_no_discount(overrides: dict[str, object]) -> None:
    pricing = price_booking(
        PROPERTY, nights=2, guest_count=1, coupon=make_coupon(**overrides), today=TODAY
    )

    assert pricing.discount_amount == Decimal("0.00")
    assert pricing.final_total == Decimal("2700.00")
    assert pricing.coupon_id is None


@pytest.mark.unit
def test_coupon_valid_on_boundary_dates() -> None:
    coupon = make_coupon(valid_from=TODAY, valid_until=TODAY)

    assert coupon_discount(coupon, Decimal("2700"), TODAY) == Decimal("100.00")


@pytest.mark.unit
def test_split_commission() -> None:
    commission, owner_earnings = split_commission(Decimal("2700.00"), Decimal("10"))

    assert commission == Decimal("270.00")
    assert owner_earnings == Decimal("2430.00")


@pytest.mark.unit
def test_split_commission_rounds_half_up() -> None:
    commission, owner_earnings = split_commission(Decimal("100.05"), Decimal("10"))

    assert commission == Decimal("10.01")
    assert owner_earnings == Decimal("90.04")


@pytest.mark.unit
def test_count_nights_is_half_open() -> None:
    assert count_nights(date(2026, 12, 1), date(2026, 12, 3)) == 2
    assert count_nights(date(2026, 12, 31), date(2027, 1, 1)) == 1
