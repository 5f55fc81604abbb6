"""
Loyalty-points wallet.

``rewards_accounts`` holds cached counters; ``rewards_transactions`` is the
authoritative append-only log. Every mutation locks the account row, updates
the counters and appends the transaction inside the caller's transaction, so
the replayed log always reproduces ``current_balance``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from booking_core.db.writers._insert import insert_ignore
from booking_core.errors import InsufficientPointsError
from booking_core.metrics import points_movements
from booking_core.models.enums import RewardsTransactionType
from booking_core.models.rewards import (
    MemberStatusTier,
    RewardsAccount,
    RewardsPointSettings,
    RewardsPointSlot,
    RewardsTransaction,
)
from booking_core.models.types import ZERO, money
from booking_core.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

accounts = RewardsAccount.__table__
transactions = RewardsTransaction.__table__
slots = RewardsPointSlot.__table__
settings_table = RewardsPointSettings.__table__
tiers = MemberStatusTier.__table__


@dataclass(frozen=True)
class PointsSettings:
    points_per_taka: int = 1
    min_points_to_redeem: int = 100
    max_points_per_booking: Optional[int] = None


@dataclass(frozen=True)
class ReconciliationResult:
    user_id: int
    cached_balance: int
    replayed_balance: int
    transaction_count: int
    repaired: bool = False

    @property
    def consistent(self) -> bool:
        return self.cached_balance == self.replayed_balance


def get_points_settings(conn: Connection) -> PointsSettings:
    """Active redemption settings, or the defaults when none are configured."""
    row = (
        conn.execute(
            select(settings_table)
            .where(settings_table.c.is_active.is_(True))
            .order_by(settings_table.c.id.desc())
            .limit(1)
        )
        .mappings()
        .first()
    )
    if row is None:
        return PointsSettings()
    return PointsSettings(
        points_per_taka=row["points_per_taka"],
        min_points_to_redeem=row["min_points_to_redeem"],
        max_points_per_booking=row["max_points_per_booking"],
    )


def find_points_slot(conn: Connection, amount: Decimal) -> Optional[dict[str, Any]]:
    """Active earning slot whose ``[min_amount, max_amount]`` contains ``amount``."""
    row = (
        conn.execute(
            select(slots)
            .where(
                slots.c.is_active.is_(True),
                slots.c.min_amount <= amount,
                (slots.c.max_amount.is_(None)) | (slots.c.max_amount >= amount),
            )
            .order_by(slots.c.min_amount.desc())
            .limit(1)
        )
        .mappings()
        .first()
    )
    return dict(row) if row else None


def _lock_account(conn: Connection, user_id: int) -> dict[str, Any]:
    insert_ignore(conn, RewardsAccount, {"user_id": user_id}, ["user_id"])
    row = (
        conn.execute(select(accounts).where(accounts.c.user_id == user_id).with_for_update())
        .mappings()
        .one()
    )
    return dict(row)


def _append(
    conn: Connection,
    user_id: int,
    type_: RewardsTransactionType,
    points: int,
    balance_after: int,
    booking_id: Optional[int],
    description: str,
    now: datetime,
) -> None:
    conn.execute(
        insert(transactions).values(
            user_id=user_id,
            type=type_,
            points=points,
            balance_after=balance_after,
            booking_id=booking_id,
            description=description,
            created_at=now,
        )
    )
    points_movements.labels(type=type_.value).inc(abs(points))


def _update_member_tier(conn: Connection, user_id: int, total_earned: int) -> Optional[int]:
    tier_id = conn.execute(
        select(tiers.c.id)
        .where(tiers.c.is_active.is_(True), tiers.c.min_points <= total_earned)
        .order_by(tiers.c.min_points.desc())
        .limit(1)
    ).scalar()
    conn.execute(
        update(accounts).where(accounts.c.user_id == user_id).values(member_tier_id=tier_id)
    )
    return tier_id


def award_points(
    conn: Connection,
    user_id: int,
    paid_amount: Decimal,
    booking_id: int,
    now: Optional[datetime] = None,
) -> int:
    """
    Credit loyalty points for a paid booking.

    Points are ``floor(paid_amount / 1000 * points_per_thousand)`` of the
    matching slot. A booking that already earned points earns nothing more.

    Returns:
        int: Points awarded (0 when no slot matches or already awarded)
    """
    now = now or utc_now()
    account = _lock_account(conn, user_id)

    already = conn.execute(
        select(transactions.c.id).where(
            transactions.c.user_id == user_id,
            transactions.c.booking_id == booking_id,
            transactions.c.type == RewardsTransactionType.EARNED,
        )
    ).first()
    if already is not None:
        logger.info("points_already_awarded", user_id=user_id, booking_id=booking_id)
        return 0

    paid_amount = money(paid_amount)
    slot = find_points_slot(conn, paid_amount)
    if slot is None:
        logger.info("no_points_slot", user_id=user_id, amount=str(paid_amount))
        return 0

    points = math.floor(paid_amount / Decimal(1000) * slot["points_per_thousand"])
    if points <= 0:
        return 0

    balance = account["current_balance"] + points
    total_earned = account["total_earned"] + points
    conn.execute(
        update(accounts)
        .where(accounts.c.user_id == user_id)
        .values(current_balance=balance, total_earned=total_earned, updated_at=now)
    )
    _append(
        conn, user_id, RewardsTransactionType.EARNED, points, balance, booking_id,
        f"Points earned from booking ({paid_amount} BDT)", now,
    )
    tier_id = _update_member_tier(conn, user_id, total_earned)

    logger.info(
        "points_awarded",
        user_id=user_id,
        booking_id=booking_id,
        points=points,
        balance=balance,
        member_tier_id=tier_id,
    )
    return points


def _points_worth(amount: Decimal, settings: PointsSettings) -> int:
    """Points whose value equals ``amount``."""
    return math.floor(money(amount) * settings.points_per_taka)


def max_redeemable(conn: Connection, user_id: int, booking_amount: Decimal) -> int:
    """
    Most points the user may redeem against ``booking_amount``.

    ``min(balance, max_points_per_booking, floor(booking_amount * points_per_taka))``,
    or 0 when that falls below the redemption minimum.
    """
    settings = get_points_settings(conn)
    limit = min(get_balance(conn, user_id), _points_worth(booking_amount, settings))
    if settings.max_points_per_booking is not None:
        limit = min(limit, settings.max_points_per_booking)
    if limit < settings.min_points_to_redeem:
        return 0
    return limit


def redeem_points(
    conn: Connection,
    user_id: int,
    points: int,
    booking_id: int,
    booking_amount: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Spend points on a booking.

    Args:
        conn: Active database connection (within transaction)
        user_id: Wallet owner
        points: Points to spend
        booking_id: Booking the discount applies to
        booking_amount: Amount due; when given, the discount may not exceed it
        now: Transaction timestamp

    Returns:
        Decimal: Discount amount, ``points / points_per_taka``

    Raises:
        InsufficientPointsError: Below the minimum, above the per-booking
            maximum, above the balance, or worth more than the booking
    """
    now = now or utc_now()
    settings = get_points_settings(conn)

    if points < settings.min_points_to_redeem:
        raise InsufficientPointsError(
            f"Minimum {settings.min_points_to_redeem} points required to redeem", points=points
        )
    if settings.max_points_per_booking is not None and points > settings.max_points_per_booking:
        raise InsufficientPointsError(
            f"Maximum {settings.max_points_per_booking} points can be used per booking",
            points=points,
        )
    if booking_amount is not None and points > _points_worth(booking_amount, settings):
        raise InsufficientPointsError("Points exceed the booking amount", points=points)

    account = _lock_account(conn, user_id)
    if account["current_balance"] < points:
        raise InsufficientPointsError(
            "Insufficient points balance", points=points, balance=account["current_balance"]
        )

    discount = money(Decimal(points) / Decimal(settings.points_per_taka))
    balance = account["current_balance"] - points
    conn.execute(
        update(accounts)
        .where(accounts.c.user_id == user_id)
        .values(
            current_balance=balance,
            lifetime_spent=account["lifetime_spent"] + points,
            updated_at=now,
        )
    )
    _append(
        conn, user_id, RewardsTransactionType.REDEEMED, -points, balance, booking_id,
        f"Points redeemed for booking ({points} points = {discount} BDT)", now,
    )
    logger.info(
        "points_redeemed",
        user_id=user_id,
        booking_id=booking_id,
        points=points,
        discount=str(discount),
    )
    return discount


def refund_points(
    conn: Connection, user_id: int, booking_id: int, now: Optional[datetime] = None
) -> int:
    """
    Give back the points most recently redeemed for a booking.

    Returns 0 when nothing was redeemed or the redemption was already
    refunded, so repeated cancellations never double-credit.
    """
    now = now or utc_now()
    account = _lock_account(conn, user_id)

    redeemed = (
        conn.execute(
            select(transactions)
            .where(
                transactions.c.user_id == user_id,
                transactions.c.booking_id == booking_id,
                transactions.c.type == RewardsTransactionType.REDEEMED,
            )
            .order_by(transactions.c.created_at.desc(), transactions.c.id.desc())
            .limit(1)
        )
        .mappings()
        .first()
    )
    if redeemed is None:
        return 0

    refunded = conn.execute(
        select(transactions.c.id).where(
            transactions.c.user_id == user_id,
            transactions.c.booking_id == booking_id,
            transactions.c.type == RewardsTransactionType.ADJUSTED,
            transactions.c.id > redeemed["id"],
        )
    ).first()
    if refunded is not None:
        logger.info("points_already_refunded", user_id=user_id, booking_id=booking_id)
        return 0

    points = abs(redeemed["points"])
    balance = account["current_balance"] + points
    conn.execute(
        update(accounts)
        .where(accounts.c.user_id == user_id)
        .values(
            current_balance=balance,
            lifetime_spent=max(0, account["lifetime_spent"] - points),
            updated_at=now,
        )
    )
    _append(
        conn, user_id, RewardsTransactionType.ADJUSTED, points, balance, booking_id,
        f"Points refunded for cancelled booking ({points} points)", now,
    )
    logger.info(
        "points_refunded", user_id=user_id, booking_id=booking_id, points=points, balance=balance
    )
    return points


def get_account(conn: Connection, user_id: int) -> Optional[dict[str, Any]]:
    row = conn.execute(select(accounts).where(accounts.c.user_id == user_id)).mappings().first()
    return dict(row) if row else None


def get_balance(conn: Connection, user_id: int) -> int:
    balance = conn.execute(
        select(accounts.c.current_balance).where(accounts.c.user_id == user_id)
    ).scalar()
    return balance or 0


def recent_transactions(conn: Connection, user_id: int, limit: int = 20) -> list[dict[str, Any]]:
    stmt = (
        select(transactions)
        .where(transactions.c.user_id == user_id)
        .order_by(transactions.c.created_at.desc(), transactions.c.id.desc())
        .limit(limit)
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]


def replay_balance(conn: Connection, user_id: int) -> int:
    """Sum of the user's signed transaction points, folded in creation order."""
    balance = 0
    stmt = (
        select(transactions.c.points)
        .where(transactions.c.user_id == user_id)
        .order_by(transactions.c.created_at, transactions.c.id)
    )
    for (points,) in conn.execute(stmt):
        balance += points
    return balance


def reconcile_account(engine: Engine, user_id: int, repair: bool = False) -> ReconciliationResult:
    """
    Compare a wallet's cached counters with its transaction log.

    Args:
        engine: SQLAlchemy Engine
        user_id: Wallet owner
        repair: Rewrite the counters from the log when they disagree

    Returns:
        ReconciliationResult: Cached and replayed balances; ``repaired`` is True
        only if counters were rewritten
    """
    with engine.begin() as conn:
        account = _lock_account(conn, user_id)
        replayed = replay_balance(conn, user_id)
        count = conn.execute(
            select(func.count()).select_from(transactions).where(transactions.c.user_id == user_id)
        ).scalar_one()

        result = ReconciliationResult(
            user_id=user_id,
            cached_balance=account["current_balance"],
            replayed_balance=replayed,
            transaction_count=count,
        )
        if result.consistent:
            return result

        logger.warning(
            "rewards_balance_drift",
            user_id=user_id,
            cached_balance=result.cached_balance,
            replayed_balance=replayed,
        )
        if not repair:
            return result

        earned = spent = 0
        for row in conn.execute(
            select(transactions.c.type, transactions.c.points, transactions.c.booking_id).where(
                transactions.c.user_id == user_id
            )
        ):
            if row.type == RewardsTransactionType.EARNED:
                earned += row.points
            elif row.type == RewardsTransactionType.REDEEMED:
                spent -= row.points
            elif row.booking_id is not None:
                spent -= row.points

        conn.execute(
            update(accounts)
            .where(accounts.c.user_id == user_id)
            .values(
                current_balance=replayed,
                total_earned=earned,
                lifetime_spent=max(0, spent),
                updated_at=utc_now(),
            )
        )
        _update_member_tier(conn, user_id, earned)
        logger.info("rewards_balance_repaired", user_id=user_id, balance=replayed)

    return ReconciliationResult(
        user_id=user_id,
        cached_balance=result.cached_balance,
        replayed_balance=replayed,
        transaction_count=count,
        repaired=True,
    )
