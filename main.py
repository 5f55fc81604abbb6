"""
Run one expiration sweep and exit.

Intended for cron or a Kubernetes CronJob when the in-process sweeper
(SWEEPER_ENABLED) is turned off.
"""

import sys

import structlog

from booking_core.db.engine import get_engine
from booking_core.dependencies import build_booking_service
from booking_core.logging_config import setup_logging
from booking_core.services.sweeper import ExpirationSweeper

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> int:
    result = ExpirationSweeper(build_booking_service(get_engine())).run_once()
    logger.info("sweep_finished", cancelled=result.cancelled, failed=result.failed)
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
