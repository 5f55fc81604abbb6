"""
Rewards wallet routes: balance and redemption limit.

A wallet is only visible to its owner, identified by the ``X-User-Id``
header; other callers get 404. Reconciliation is an operator task run
through ``scripts/reconcile_wallets.py`` and has no HTTP endpoint.
"""

from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.engine import Engine

from booking_core.dependencies import get_db_engine
from booking_core.errors import BookingCoreError, NotFoundError
from booking_core.routes._booking_helpers import error_response, internal_error_response
from booking_core.schemas.rewards import (
    MaxRedeemableResponse,
    RewardsAccountResponse,
    RewardsTransactionOut,
)
from booking_core.services import rewards

logger = structlog.get_logger(__name__)
router = APIRouter()


def ensure_wallet_owner(user_id: int, actor_id: int) -> None:
    if actor_id != user_id:
        logger.info("rewards_access_denied", user_id=user_id, actor_id=actor_id)
        raise NotFoundError("Rewards account not found", user_id=user_id)


@router.get("/rewards/{user_id}")
def get_rewards_account(
    user_id: int,
    limit: int = Query(20, ge=1, le=100),
    actor_id: int = Header(..., alias="X-User-Id"),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Wallet counters and the most recent transactions of a user.

    A user without a wallet yet gets zeroed counters.
    """
    try:
        ensure_wallet_owner(user_id, actor_id)
        with engine.connect() as conn:
            account = rewards.get_account(conn, user_id) or {}
            transactions = rewards.recent_transactions(conn, user_id, limit=limit)
        return RewardsAccountResponse(
            user_id=user_id,
            current_balance=account.get("current_balance", 0),
            total_earned=account.get("total_earned", 0),
            lifetime_spent=account.get("lifetime_spent", 0),
            member_tier_id=account.get("member_tier_id"),
            transactions=[RewardsTransactionOut.model_validate(t) for t in transactions],
        )
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("rewards_fetch_failed", user_id=user_id, error=str(e))
        return internal_error_response()


@router.get("/rewards/{user_id}/max-redeemable")
def get_max_redeemable(
    user_id: int,
    amount: Decimal = Query(..., ge=0, description="Booking amount the points would apply to"),
    actor_id: int = Header(..., alias="X-User-Id"),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    try:
        ensure_wallet_owner(user_id, actor_id)
        with engine.connect() as conn:
            points = rewards.max_redeemable(conn, user_id, amount)
        return MaxRedeemableResponse(user_id=user_id, booking_amount=str(amount), max_points=points)
    except BookingCoreError as exc:
        return error_response(exc)
    except Exception as e:
        logger.exception("max_redeemable_failed", user_id=user_id, error=str(e))
        return internal_error_response()
