"""
HTTP adapters for the property and notification services, with retries on
rate limiting, server errors and timeouts.
"""

import time
from decimal import Decimal
from typing import Any, Dict, Optional, cast
from urllib.parse import urljoin

import requests
import structlog

from booking_core.metrics import collaborator_latency, collaborator_requests
from booking_core.services.pricing import PropertyInfo

logger = structlog.get_logger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 0.5
REQUEST_TIMEOUT = 5


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def send_request(
    service: str,
    method: str,
    url: str,
    json: Optional[Dict[str, Any]] = None,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """
    Send one request to a collaborator service, retrying transient failures.

    Args:
        service (str): Collaborator name used as the metrics label.
        method (str): HTTP method.
        url (str): Absolute URL.
        json (Optional[Dict[str, Any]]): JSON body.
        session (Optional[requests.Session]): Session to send with. Defaults to the module.

    Returns:
        requests.Response: The final response; 404 is returned, not raised.

    Raises:
        requests.RequestException: If the request fails after all retries.
    """
    http = session or requests
    retries = 0

    while True:
        res: Optional[requests.Response] = None
        try:
            start_time = time.time()
            res = http.request(method, url, json=json, timeout=REQUEST_TIMEOUT)
            collaborator_requests.labels(service=service, status_code=str(res.status_code)).inc()
            collaborator_latency.labels(service=service).observe(time.time() - start_time)

            if res.status_code == 404:
                return res
            res.raise_for_status()
            return res

        except requests.RequestException as err:
            if res is None:
                collaborator_requests.labels(service=service, status_code="error").inc()
            retries += 1
            if retries > MAX_RETRIES or not should_retry(res, err):
                logger.warning(
                    "collaborator_request_failed", service=service, url=url, error=str(err)
                )
                raise
            logger.info("collaborator_request_retry", service=service, url=url, attempt=retries)
            time.sleep(RETRY_DELAY * retries)


def _decimal(value: Any, default: str = "0") -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal(default)


def parse_property(payload: Dict[str, Any]) -> PropertyInfo:
    """Build PropertyInfo from the property service's JSON representation."""
    commission = payload.get("commission_rate")
    return PropertyInfo(
        property_id=int(payload["id"]),
        owner_id=int(payload["owner_id"]),
        base_price=_decimal(payload.get("base_price")),
        cleaning_fee=_decimal(payload.get("cleaning_fee")),
        security_deposit=_decimal(payload.get("security_deposit")),
        extra_guest_fee=_decimal(payload.get("extra_guest_fee")),
        max_guests=int(payload.get("max_guests") or 1),
        minimum_stay=int(payload.get("minimum_stay") or 1),
        commission_rate=_decimal(commission) if commission is not None else None,
    )


class HttpPropertyLookup:
    """Reads property pricing and ownership from ``GET {base_url}/properties/{id}``."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.session = session

    def get_property(self, property_id: int) -> Optional[PropertyInfo]:
        url = urljoin(self.base_url, f"properties/{property_id}")
        res = send_request("property", "GET", url, session=self.session)
        if res.status_code == 404:
            return None
        body = cast(Dict[str, Any], res.json())
        return parse_property(body.get("property", body))


class HttpNotifier:
    """Posts user notifications to ``POST {base_url}/notifications``."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.session = session

    def notify(self, user_id: int, message: str) -> None:
        url = urljoin(self.base_url, "notifications")
        send_request(
            "notification",
            "POST",
            url,
            json={"user_id": user_id, "message": message},
            session=self.session,
        )
