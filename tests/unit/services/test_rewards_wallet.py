"""
Unit tests for the loyalty-points wallet.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from conftest import GUEST_ID, NOW, configure_points, grant_points
from sqlalchemy import insert, update
from sqlalchemy.engine import Engine

from booking_core.errors import InsufficientPointsError
from booking_core.models.enums import RewardsTransactionType
from booking_core.models.rewards import MemberStatusTier, RewardsAccount
from booking_core.services import rewards

BOOKING_ID = 501


@pytest.mark.unit
def test_defaults_without_settings_row(engine: Engine) -> None:
    with engine.connect() as conn:
        settings = rewards.get_points_settings(conn)

    assert settings == rewards.PointsSettings(points_per_taka=1, min_points_to_redeem=100)


@pytest.mark.unit
def test_award_points_uses_matching_slot(engine: Engine) -> None:
    configure_points(engine, points_per_thousand=10)

    with engine.begin() as conn:
        awarded = rewards.award_points(conn, GUEST_ID, Decimal("2650"), BOOKING_ID, now=NOW)
        account = rewards.get_account(conn, GUEST_ID)
        history = rewards.recent_transactions(conn, GUEST_ID)

    assert awarded == 26
    assert account is not None
    assert account["current_balance"] == 26
    assert account["total_earned"] == 26
    assert history[0]["type"] == RewardsTransactionType.EARNED
    assert history[0]["balance_after"] == 26


@pytest.mark.unit
def test_award_points_is_idempotent_per_booking(engine: Engine) -> None:
    configure_points(engine)

    with engine.begin() as conn:
        first = rewards.award_points(conn, GUEST_ID, Decimal("5000"), BOOKING_ID, now=NOW)
        second = rewards.award_points(conn, GUEST_ID, Decimal("5000"), BOOKING_ID, now=NOW)

        assert rewards.get_balance(conn, GUEST_ID) == first

    assert first == 50
    assert second == 0


@pytest.mark.unit
def test_award_points_without_slot_awards_nothing(engine: Engine) -> None:
    with engine.begin() as conn:
        assert rewards.award_points(conn, GUEST_ID, Decimal("5000"), BOOKING_ID, now=NOW) == 0
        assert rewards.get_balance(conn, GUEST_ID) == 0


@pytest.mark.unit
def test_award_points_promotes_member_tier(engine: Engine) -> None:
    configure_points(engine, points_per_thousand=100)
    with engine.begin() as conn:
        conn.execute(
            insert(MemberStatusTier.__table__),
            [
                {"tier_name": "bronze", "display_name": "Bronze", "min_points": 0},
                {"tier_name": "silver", "display_name": "Silver", "min_points": 500},
            ],
        )

    with engine.begin() as conn:
        rewards.award_points(conn, GUEST_ID, Decimal("6000"), BOOKING_ID, now=NOW)
        account = rewards.get_account(conn, GUEST_ID)

    assert account is not None
    assert account["member_tier_id"] == 2


@pytest.mark.unit
def test_max_redeemable(engine: Engine) -> None:
    configure_points(
        engine, points_per_taka=10, min_points_to_redeem=100, max_points_per_booking=800
    )
    grant_points(engine, GUEST_ID, 1000)

    with engine.connect() as conn:
        assert rewards.max_redeemable(conn, GUEST_ID, Decimal("2700")) == 800
        assert rewards.max_redeemable(conn, GUEST_ID, Decimal("50")) == 500
        assert rewards.max_redeemable(conn, GUEST_ID, Decimal("5")) == 0


@pytest.mark.unit
def test_redeem_points_returns_discount(engine: Engine) -> None:
    configure_points(engine, points_per_taka=10)
    grant_points(engine, GUEST_ID, 1000)

    with engine.begin() as conn:
        discount = rewards.redeem_points(
            conn, GUEST_ID, 500, BOOKING_ID, booking_amount=Decimal("2700"), now=NOW
        )
        account = rewards.get_account(conn, GUEST_ID)

    assert discount == Decimal("50.00")
    assert account is not None
    assert account["current_balance"] == 500
    assert account["lifetime_spent"] == 500


@pytest.mark.unit
@pytest.mark.parametrize(
    "points,booking_amount,message",
    [
        (50, Decimal("2700"), "Minimum 100 points"),
        (900, Decimal("2700"), "Maximum 800 points"),
        (600, Decimal("50"), "exceed the booking amount"),
    ],
)
def test_redeem_points_limits(
    engine: Engine, points: int, booking_amount: Decimal, message: str
) -> None:
    configure_points(engine, points_per_taka=10, max_points_per_booking=800)
    grant_points(engine, GUEST_ID, 1000)

    with engine.begin() as conn:
        with pytest.raises(InsufficientPointsError, match=message):
            rewards.redeem_points(conn, GUEST_ID, points, BOOKING_ID, booking_amount=booking_amount)

    with engine.connect() as conn:
        assert rewards.get_balance(conn, GUEST_ID) == 1000


@pytest.mark.unit
def test_redeem_more_than_balance(engine: Engine) -> None:
    configure_points(engine, points_per_taka=10)
    grant_points(engine, GUEST_ID, 200)

    with engine.begin() as conn:
        with pytest.raises(InsufficientPointsError, match="Insufficient points balance"):
            rewards.redeem_points(conn, GUEST_ID, 300, BOOKING_ID)


@pytest.mark.unit
def test_refund_points_only_once(engine: Engine) -> None:
    configure_points(engine, points_per_taka=10)
    grant_points(engine, GUEST_ID, 1000)

    with engine.begin() as conn:
        rewards.redeem_points(conn, GUEST_ID, 500, BOOKING_ID, now=NOW)

    with engine.begin() as conn:
        first = rewards.refund_points(conn, GUEST_ID, BOOKING_ID, now=NOW + timedelta(minutes=1))
        second = rewards.refund_points(conn, GUEST_ID, BOOKING_ID, now=NOW + timedelta(minutes=2))
        account = rewards.get_account(conn, GUEST_ID)

    assert (first, second) == (500, 0)
    assert account is not None
    assert account["current_balance"] == 1000
    assert account["lifetime_spent"] == 0


@pytest.mark.unit
def test_refund_without_redemption_is_noop(engine: Engine) -> None:
    with engine.begin() as conn:
        assert rewards.refund_points(conn, GUEST_ID, BOOKING_ID, now=NOW) == 0


@pytest.mark.unit
def test_replay_matches_cached_balance(engine: Engine) -> None:
    configure_points(engine, points_per_taka=10)
    grant_points(engine, GUEST_ID, 1000)

    with engine.begin() as conn:
        rewards.redeem_points(conn, GUEST_ID, 300, BOOKING_ID, now=NOW)
        rewards.award_points(conn, GUEST_ID, Decimal("2000"), BOOKING_ID, now=NOW)
        rewards.refund_points(conn, GUEST_ID, BOOKING_ID, now=NOW + timedelta(minutes=1))

        assert rewards.replay_balance(conn, GUEST_ID) == rewards.get_balance(conn, GUEST_ID) == 1020

    result = rewards.reconcile_account(engine, GUEST_ID)
    assert result.consistent
    assert not result.repaired
    assert result.transaction_count == 4


@pytest.mark.unit
def test_reconcile_reports_and_repairs_drift(engine: Engine) -> None:
    grant_points(engine, GUEST_ID, 1000)
    with engine.begin() as conn:
        conn.execute(
            update(RewardsAccount.__table__)
            .where(RewardsAccount.__table__.c.user_id == GUEST_ID)
            .values(current_balance=1500)
        )

    report = rewards.reconcile_account(engine, GUEST_ID)
    assert not report.consistent
    assert (report.cached_balance, report.replayed_balance) == (1500, 1000)

    repaired = rewards.reconcile_account(engine, GUEST_ID, repair=True)
    assert repaired.repaired

    with engine.connect() as conn:
        account = rewards.get_account(conn, GUEST_ID)

    assert account is not None
    assert account["current_balance"] == 1000
    assert account["total_earned"] == 1000
    assert rewards.reconcile_account(engine, GUEST_ID).consistent
