"""
Booking lifecycle routes.

The acting user is identified by the ``X-User-Id`` header set by the upstream
gateway. Users who are not a party to a booking get 404.
"""

from datetime import date
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, Query, status

from booking_core.dependencies import get_booking_service
from booking_core.errors import BookingCoreError
from booking_core.routes._booking_helpers import (
    booking_response,
    error_response,
    internal_error_response,
)
from booking_core.schemas.bookings import (
    AvailabilityResponse,
    BookingCreatePayload,
    CancelPayload,
    ConflictOut,
    LedgerEntryOut,
    LedgerResponse,
    PaymentPayload,
)
from booking_core.services.bookings import BookingService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreatePayload,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    """
    Request a booking for a property.

    Args:
        payload: Property, dates, guest count and optional coupon code
        actor_id: Guest making the request
        service: Booking service

    Returns:
        201 ``{booking, pricing}``; 400 bad range, 404 unknown property or
        coupon, 409 dates no longer available
    """
    try:
        booking, pricing = service.create_booking(
            guest_id=actor_id,
            property_id=payload.property_id,
            check_in=payload.check_in,
            check_out=payload.check_out,
            guest_count=payload.guest_count,
            coupon_code=payload.coupon_code,
        )
        return booking_response(booking, pricing)
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("booking_creation_failed", property_id=payload.property_id, error=str(e))
        return internal_error_response()


@router.get("/bookings/availability")
def check_availability(
    property_id: int = Query(..., alias="propertyId"),
    check_in: date = Query(..., alias="checkIn"),
    check_out: date = Query(..., alias="checkOut"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    try:
        conflicts = service.check_availability(property_id, check_in, check_out)
        return AvailabilityResponse(
            property_id=property_id,
            check_in=check_in,
            check_out=check_out,
            is_available=not conflicts,
            conflicts=[ConflictOut.model_validate(c) for c in conflicts],
        )
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("availability_check_failed", property_id=property_id, error=str(e))
        return internal_error_response()


@router.get("/bookings/{booking_id}")
def get_booking(
    booking_id: int,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    try:
        return booking_response(service.get_booking(booking_id, actor_id=actor_id))
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("booking_fetch_failed", booking_id=booking_id, error=str(e))
        return internal_error_response()


@router.get("/bookings/{booking_id}/ledger")
def get_ledger(
    booking_id: int,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    """
    Ledger entries of a booking with running balance and settlement state.
    """
    try:
        result = service.ledger_statement(booking_id, actor_id=actor_id)
        return LedgerResponse(
            booking_id=booking_id,
            entries=[LedgerEntryOut.model_validate(e) for e in result["entries"]],
            balance=result["balance"],
            settlement_state=result["settlement_state"].value,
        )
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("ledger_fetch_failed", booking_id=booking_id, error=str(e))
        return internal_error_response()


@router.patch("/bookings/{booking_id}/accept")
def accept_booking(
    booking_id: int,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    """
    Owner accepts a pending booking and opens the payment window.
    """
    try:
        return booking_response(service.accept_booking(booking_id, actor_id=actor_id))
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("booking_accept_failed", booking_id=booking_id, error=str(e))
        return internal_error_response()


@router.patch("/bookings/{booking_id}/payment")
def record_payment(
    booking_id: int,
    payload: PaymentPayload,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    """
    Guest pays an accepted booking.

    Returns:
        200 ``{booking}``; 410 payment window expired (the booking is now
        cancelled), 402 payment mismatch, 409 wrong state, 422 points rejected
    """
    try:
        booking = service.record_payment(
            booking_id,
            method=payload.method,
            points_to_redeem=payload.points_to_redeem,
            amount=payload.amount,
            actor_id=actor_id,
        )
        return booking_response(booking)
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("booking_payment_failed", booking_id=booking_id, error=str(e))
        return internal_error_response()


@router.patch("/bookings/{booking_id}/checkin")
def check_in(
    booking_id: int,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    try:
        return booking_response(service.check_in(booking_id, actor_id=actor_id))
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("booking_check_in_failed", booking_id=booking_id, error=str(e))
        return internal_error_response()


@router.patch("/bookings/{booking_id}/checkout")
def check_out(
    booking_id: int,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    try:
        return booking_response(service.check_out(booking_id, actor_id=actor_id))
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("booking_check_out_failed", booking_id=booking_id, error=str(e))
        return internal_error_response()


@router.patch("/bookings/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    payload: CancelPayload,
    actor_id: int = Header(..., alias="X-User-Id"),
    service: BookingService = Depends(get_booking_service),
) -> Any:
    """
    Guest or owner cancels a booking. Cancelling twice returns the same booking.
    """
    try:
        booking = service.cancel_booking(booking_id, reason=payload.reason, actor_id=actor_id)
        return booking_response(booking)
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("booking_cancel_failed", booking_id=booking_id, error=str(e))
        return internal_error_response()
