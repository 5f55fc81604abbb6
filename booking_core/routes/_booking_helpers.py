"""
Internal helper functions for booking route handlers.

Translate booking errors into HTTP responses and rows into response models,
so the handlers themselves stay a thin layer over BookingService.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import status
from fastapi.responses import JSONResponse

from booking_core.errors import BookingCoreError, PaymentMismatchError
from booking_core.schemas.bookings import BookingOut, BookingResponse, PricingOut
from booking_core.services.pricing import PricingBreakdown

logger = structlog.get_logger(__name__)


def error_response(exc: BookingCoreError) -> JSONResponse:
    """
    Build the JSON error body for an expected booking failure.

    Args:
        exc: Error raised by a booking operation

    Returns:
        JSONResponse: ``{"error": code, "message": text}`` with the error's status code
    """
    if isinstance(exc, PaymentMismatchError):
        # Full context goes to the log only.
        logger.error("payment_mismatch", message=exc.message, **exc.context)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.public_message},
    )


def internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "Internal server error"},
    )


def booking_response(
    booking: dict[str, Any], pricing: Optional[PricingBreakdown] = None
) -> BookingResponse:
    return BookingResponse(
        booking=BookingOut.model_validate(booking),
        pricing=PricingOut.model_validate(pricing.as_dict()) if pricing else None,
    )
