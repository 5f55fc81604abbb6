"""
Unit tests for the booking transition table.
"""

from __future__ import annotations

import pytest

from booking_core.errors import InvalidTransitionError
from booking_core.models.enums import BookingStatus
from booking_core.services.transitions import BookingAction, can_transition, next_status


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,action,expected",
    [
        (BookingStatus.PENDING, BookingAction.ACCEPT, BookingStatus.ACCEPTED),
        (BookingStatus.ACCEPTED, BookingAction.PAY, BookingStatus.CONFIRMED),
        (BookingStatus.CONFIRMED, BookingAction.CHECK_IN, BookingStatus.CHECKED_IN),
        (BookingStatus.CHECKED_IN, BookingAction.CHECK_OUT, BookingStatus.CHECKED_OUT),
        (BookingStatus.PENDING, BookingAction.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.ACCEPTED, BookingAction.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingAction.CANCEL, BookingStatus.CANCELLED),
    ],
)
def test_legal_transitions(
    current: BookingStatus, action: BookingAction, expected: BookingStatus
) -> None:
    assert next_status(current, action) == expected
    assert can_transition(current, action)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,action",
    [
        (BookingStatus.PENDING, BookingAction.PAY),
        (BookingStatus.ACCEPTED, BookingAction.ACCEPT),
        (BookingStatus.ACCEPTED, BookingAction.CHECK_IN),
        (BookingStatus.CHECKED_IN, BookingAction.CANCEL),
        (BookingStatus.CHECKED_OUT, BookingAction.CANCEL),
        (BookingStatus.CANCELLED, BookingAction.PAY),
        (BookingStatus.CANCELLED, BookingAction.ACCEPT),
    ],
)
def test_illegal_transitions_raise(current: BookingStatus, action: BookingAction) -> None:
    assert not can_transition(current, action)

    with pytest.raises(InvalidTransitionError) as exc_info:
        next_status(current, action)

    assert exc_info.value.from_status == current.value
    assert exc_info.value.attempted == action.value
    assert exc_info.value.status_code == 409


@pytest.mark.unit
def test_next_status_accepts_plain_strings() -> None:
    assert next_status("pending", BookingAction.ACCEPT) == BookingStatus.ACCEPTED
