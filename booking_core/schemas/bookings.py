from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RowModel(BaseModel):
    """Response model built from a database row; enum members become their values."""

    @model_validator(mode="before")
    @classmethod
    def _enum_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: getattr(v, "value", v) for k, v in data.items()}
        return data


class BookingCreatePayload(BaseModel):
    """
    Schema for a guest's booking request. Accepts snake_case or camelCase keys.
    """

    model_config = ConfigDict(populate_by_name=True)

    property_id: int = Field(..., alias="propertyId", description="Property to book")
    check_in: date = Field(..., alias="checkIn", description="First night of the stay")
    check_out: date = Field(..., alias="checkOut", description="Departure day (exclusive)")
    guest_count: int = Field(1, alias="guestCount", ge=1, description="Number of guests")
    coupon_code: Optional[str] = Field(None, alias="couponCode", description="Coupon to apply")


class PaymentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    method: str = Field(..., min_length=1, description="Payment method, e.g. bkash or card")
    points_to_redeem: int = Field(0, alias="pointsToRedeem", ge=0)
    amount: Optional[Decimal] = Field(None, description="Amount charged; must match the amount due")


class CancelPayload(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingOut(RowModel):
    """Booking as returned to guests and owners."""

    id: int
    reference: str
    property_id: int
    guest_id: int
    owner_id: int
    check_in_date: date
    check_out_date: date
    guest_count: int
    nights: int
    status: str
    payment_status: str
    accepted_at: Optional[datetime] = None
    payment_deadline: Optional[datetime] = None
    subtotal: Decimal
    service_fee: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    coupon_code: Optional[str] = None
    commission_rate: Decimal
    commission_amount: Decimal
    owner_earnings: Decimal
    points_redeemed: int
    points_discount: Decimal
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime


class PricingOut(BaseModel):
    nights: int
    subtotal: Decimal
    service_fee: Decimal
    tax_amount: Decimal
    total: Decimal
    discount_amount: Decimal
    final_total: Decimal
    coupon_code: Optional[str] = None


class BookingResponse(BaseModel):
    booking: BookingOut
    pricing: Optional[PricingOut] = None


class ConflictOut(RowModel):
    id: int
    reference: str
    check_in_date: date
    check_out_date: date
    status: str


class AvailabilityResponse(BaseModel):
    property_id: int
    check_in: date
    check_out: date
    is_available: bool
    conflicts: list[ConflictOut]


class LedgerEntryOut(RowModel):
    id: int
    kind: str
    dr_amount: Decimal
    cr_amount: Decimal
    status: str
    reference: str
    notes: Optional[str] = None
    created_at: datetime
    balance: Decimal


class LedgerResponse(BaseModel):
    booking_id: int
    entries: list[LedgerEntryOut]
    balance: Decimal
    settlement_state: str


class ChargeResultPayload(BaseModel):
    """
    Payment processor callback. ``status`` is one of succeeded, failed or refunded.
    """

    model_config = ConfigDict(populate_by_name=True)

    booking_id: int = Field(..., alias="bookingId")
    status: str
    method: str = "processor"
    amount: Optional[Decimal] = None
    points_to_redeem: int = Field(0, alias="pointsToRedeem", ge=0)
    transaction_id: Optional[str] = Field(None, alias="transactionId")
