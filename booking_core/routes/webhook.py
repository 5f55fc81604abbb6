"""Payment processor webhook receiver route."""

import base64
import binascii
import secrets
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from booking_core import config
from booking_core.dependencies import get_booking_service
from booking_core.errors import BookingCoreError
from booking_core.routes._booking_helpers import error_response, internal_error_response
from booking_core.schemas.bookings import ChargeResultPayload
from booking_core.services.bookings import BookingService

router = APIRouter()
logger = structlog.get_logger(__name__)


def validate_basic_auth(auth_header: str | None) -> bool:
    """
    Validate HTTP Basic Auth credentials against the configured webhook credentials.

    Args:
        auth_header: Authorization header value (e.g., "Basic dXNlcjpwYXNz")

    Returns:
        bool: True if credentials match, False otherwise
    """
    if not auth_header or not auth_header.startswith("Basic "):
        return False
    if not config.WEBHOOK_USERNAME:
        logger.warning("webhook_credentials_not_configured")
        return False

    try:
        decoded = base64.b64decode(auth_header[len("Basic "):]).decode("utf-8")
        username, password = decoded.split(":", 1)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.warning("webhook_auth_header_invalid")
        return False

    username_ok = secrets.compare_digest(username.encode(), config.WEBHOOK_USERNAME.encode())
    password_ok = secrets.compare_digest(password.encode(), config.WEBHOOK_PASSWORD.encode())
    return username_ok and password_ok


def handle_succeeded(service: BookingService, charge: ChargeResultPayload) -> dict[str, Any]:
    booking = service.record_payment(
        charge.booking_id,
        method=charge.method,
        points_to_redeem=charge.points_to_redeem,
        amount=charge.amount,
    )
    return {"status": "recorded", "booking_status": booking["status"].value}


def handle_refunded(service: BookingService, charge: ChargeResultPayload) -> dict[str, Any]:
    if charge.amount is None or not charge.transaction_id:
        raise ValueError("Refund requires amount and transactionId")
    booking = service.record_refund(charge.booking_id, charge.amount, charge.transaction_id)
    return {"status": "recorded", "payment_status": booking["payment_status"].value}


def handle_failed(service: BookingService, charge: ChargeResultPayload) -> dict[str, Any]:
    logger.warning(
        "charge_failed",
        booking_id=charge.booking_id,
        transaction_id=charge.transaction_id,
        method=charge.method,
    )
    return {"status": "ignored"}


@router.post("/payments/charge-result")
async def receive_charge_result(
    request: Request,
    service: BookingService = Depends(get_booking_service),
) -> JSONResponse:
    """
    Handle payment processor callbacks.

    Supported statuses:
    - succeeded: record the guest payment
    - refunded: record a refund of a cancelled booking
    - failed: logged only

    Authentication: HTTP Basic Auth with WEBHOOK_USERNAME/WEBHOOK_PASSWORD

    Expected payload:
        {
            "bookingId": 42,
            "status": "succeeded",
            "method": "bkash",
            "amount": "2700.00",
            "transactionId": "TRX123"
        }
    """
    if not validate_basic_auth(request.headers.get("Authorization")):
        logger.warning("webhook_authentication_failed")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized"},
        )

    try:
        charge = ChargeResultPayload.model_validate(await request.json())
    except (ValueError, ValidationError):
        logger.warning("webhook_payload_invalid")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid payload"},
        )

    logger.info(
        "charge_result_received",
        booking_id=charge.booking_id,
        charge_status=charge.status,
        transaction_id=charge.transaction_id,
    )

    handlers = {
        "succeeded": handle_succeeded,
        "refunded": handle_refunded,
        "failed": handle_failed,
    }
    handler = handlers.get(charge.status)
    if handler is None:
        logger.warning("webhook_unsupported_status", charge_status=charge.status)
        return JSONResponse(content={"status": "ignored"})

    try:
        return JSONResponse(content=handler(service, charge))
    except BookingCoreError as exc:
        return error_response(exc)
    except ValueError as exc:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})
    except Exception as e:
        logger.exception("webhook_processing_failed", booking_id=charge.booking_id, error=str(e))
        return internal_error_response()
