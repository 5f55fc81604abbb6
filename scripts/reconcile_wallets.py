import argparse

import structlog
from sqlalchemy import select

from booking_core.db.engine import get_engine
from booking_core.logging_config import setup_logging
from booking_core.models.rewards import RewardsAccount
from booking_core.services.rewards import reconcile_account

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Replay every rewards wallet's transaction log and report drift.

    With --repair, cached counters are rewritten from the log.
    """
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--repair", action="store_true", help="rewrite drifted counters")
    args = parser.parse_args()

    engine = get_engine()
    with engine.connect() as conn:
        user_ids = list(conn.execute(select(RewardsAccount.__table__.c.user_id)).scalars())

    drifted = 0
    for user_id in user_ids:
        result = reconcile_account(engine, user_id, repair=args.repair)
        if not result.consistent:
            drifted += 1

    logger.info(
        "wallet_reconciliation_finished",
        accounts=len(user_ids),
        drifted=drifted,
        repair=args.repair,
    )


if __name__ == "__main__":
    main()
