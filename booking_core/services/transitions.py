"""Booking lifecycle transition table."""

from __future__ import annotations

from enum import Enum

from booking_core.errors import InvalidTransitionError
from booking_core.models.enums import BookingStatus


class BookingAction(str, Enum):
    ACCEPT = "accept"
    PAY = "pay"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    CANCEL = "cancel"


TRANSITIONS: dict[BookingAction, tuple[frozenset[BookingStatus], BookingStatus]] = {
    BookingAction.ACCEPT: (frozenset({BookingStatus.PENDING}), BookingStatus.ACCEPTED),
    BookingAction.PAY: (frozenset({BookingStatus.ACCEPTED}), BookingStatus.CONFIRMED),
    BookingAction.CHECK_IN: (frozenset({BookingStatus.CONFIRMED}), BookingStatus.CHECKED_IN),
    BookingAction.CHECK_OUT: (frozenset({BookingStatus.CHECKED_IN}), BookingStatus.CHECKED_OUT),
    BookingAction.CANCEL: (
        frozenset({BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.CONFIRMED}),
        BookingStatus.CANCELLED,
    ),
}

TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.CHECKED_OUT})


def can_transition(current: BookingStatus | str, action: BookingAction) -> bool:
    """Return True if ``action`` is legal from ``current``."""
    allowed_from, _ = TRANSITIONS[action]
    return BookingStatus(current) in allowed_from


def next_status(current: BookingStatus | str, action: BookingAction) -> BookingStatus:
    """
    Look up the status ``action`` leads to from ``current``.

    Raises:
        InvalidTransitionError: If the action is not allowed from ``current``
    """
    status = BookingStatus(current)
    allowed_from, target = TRANSITIONS[action]
    if status not in allowed_from:
        raise InvalidTransitionError(from_status=status.value, attempted=action.value)
    return target
