"""Closed value sets stored as strings in the database."""

from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class LedgerEntryKind(str, Enum):
    OWNER_ACCEPTED = "owner_accepted"  # DR
    GUEST_PAYMENT = "guest_payment"  # CR
    POINTS_DISCOUNT = "points_discount"  # CR
    REFUND = "refund"  # CR reversal


class LedgerEntryStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EarningsPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class EarningsStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class RewardsTransactionType(str, Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"
    ADJUSTED = "adjusted"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
