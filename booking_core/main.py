# booking_core/main.py

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from booking_core.config import ALLOWED_ORIGINS, SWEEP_INTERVAL_SECONDS, SWEEPER_ENABLED
from booking_core.logging_config import setup_logging
from booking_core.middleware import RequestIDMiddleware
from booking_core.routes.bookings import router as bookings_router
from booking_core.routes.health import router as health_router
from booking_core.routes.metrics import router as metrics_router
from booking_core.routes.rewards import router as rewards_router
from booking_core.routes.webhook import router as webhook_router
from booking_core.services.sweeper import ExpirationSweeper

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Booking Core API",
    description="Reservations, payment workflow, ledger and rewards for short-term rentals",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(bookings_router, tags=["Bookings"])
app.include_router(rewards_router, tags=["Rewards"])
app.include_router(webhook_router, tags=["Webhooks"])

sweeper: Optional[ExpirationSweeper] = None


def build_sweeper() -> ExpirationSweeper:
    from booking_core.db.engine import get_engine
    from booking_core.dependencies import build_booking_service

    service = build_booking_service(get_engine())
    return ExpirationSweeper(service, interval_seconds=SWEEP_INTERVAL_SECONDS)


@app.on_event("startup")
def startup_event() -> None:
    """Start the expiration sweeper when enabled."""
    global sweeper

    logger.info("FastAPI application starting up...")
    if SWEEPER_ENABLED:
        sweeper = build_sweeper()
        sweeper.start()
    logger.info("FastAPI application initialized", sweeper_enabled=SWEEPER_ENABLED)


@app.on_event("shutdown")
def shutdown_event() -> None:
    global sweeper

    if sweeper is not None:
        sweeper.stop()
        sweeper = None
