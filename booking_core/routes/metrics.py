"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP booking_transitions_total Booking lifecycle operations by action and outcome
        # TYPE booking_transitions_total counter
        booking_transitions_total{action="accept",status="success"} 3.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Return metrics in Prometheus text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
