"""
Error taxonomy for booking operations.

Every failure a booking operation can report to its caller is one of these
classes. Each carries the HTTP status the REST adapter answers with, a short
machine-readable ``code`` and a message that is safe to show to users.
"""

from __future__ import annotations

from typing import Any


class BookingCoreError(Exception):
    """Base class for all expected booking failures."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def public_message(self) -> str:
        return self.message


class InvalidRangeError(BookingCoreError):
    """Requested dates, guest count or stay length are not acceptable."""

    status_code = 400
    code = "invalid_range"


class NotFoundError(BookingCoreError):
    """Booking, property or coupon is absent, or the actor is not a party to it."""

    status_code = 404
    code = "not_found"


class ConflictError(BookingCoreError):
    """The requested dates overlap an active booking of the same property."""

    status_code = 409
    code = "conflict"

    def __init__(
        self,
        message: str = "Property is no longer available for the selected dates",
        **context: Any,
    ) -> None:
        super().__init__(message, **context)


class InvalidTransitionError(BookingCoreError):
    """The booking is not in a state that allows the requested action."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, from_status: str, attempted: str, message: str | None = None) -> None:
        action = attempted.replace("_", " ")
        state = from_status.replace("_", " ")
        super().__init__(
            message or f"Cannot {action} a booking that is {state}",
            from_status=from_status,
            attempted=attempted,
        )
        self.from_status = from_status
        self.attempted = attempted


class DeadlineExpiredError(BookingCoreError):
    """The owner-granted payment window has elapsed."""

    status_code = 410
    code = "deadline_expired"

    def __init__(
        self,
        message: str = "Payment window expired; the booking has been cancelled",
        **context: Any,
    ) -> None:
        super().__init__(message, **context)


class PaymentMismatchError(BookingCoreError):
    """
    A credit would exceed the booking's debits, or the booking is already paid.

    This indicates a client retried a completed action or the ledger is out of
    line with the booking, so callers log it as a consistency alarm. Users only
    ever see the generic message.
    """

    status_code = 402
    code = "payment_mismatch"

    @property
    def public_message(self) -> str:
        return "Payment could not be processed"


class InsufficientPointsError(BookingCoreError):
    """Points redemption rejected; the booking is left untouched."""

    status_code = 422
    code = "insufficient_points"
