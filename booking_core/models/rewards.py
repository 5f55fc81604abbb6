# models/rewards.py

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from booking_core.models.base import Base
from booking_core.models.enums import RewardsTransactionType
from booking_core.models.types import Money, StringEnum, UTCDateTime
from booking_core.utils.datetime import utc_now


class RewardsAccount(Base):
    """
    Cached loyalty-points counters for one user.

    The transaction log is authoritative; ``current_balance`` must always
    equal the sum of the user's signed transaction points.
    """

    __tablename__ = "rewards_accounts"

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    current_balance = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)
    lifetime_spent = Column(Integer, nullable=False, default=0)
    member_tier_id = Column(Integer, ForeignKey("member_status_tiers.id"), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)


class RewardsTransaction(Base):
    """Append-only points movement. ``points`` is signed (+earned, -redeemed)."""

    __tablename__ = "rewards_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("rewards_accounts.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(StringEnum(RewardsTransactionType), nullable=False)
    points = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    booking_id = Column(Integer, nullable=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)


class RewardsPointSlot(Base):
    """Earning rate for paid amounts within ``[min_amount, max_amount]``."""

    __tablename__ = "rewards_point_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    min_amount = Column(Money(), nullable=False)
    max_amount = Column(Money(), nullable=True)
    points_per_thousand = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class RewardsPointSettings(Base):
    __tablename__ = "rewards_point_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    points_per_taka = Column(Integer, nullable=False, default=1)
    min_points_to_redeem = Column(Integer, nullable=False, default=100)
    max_points_per_booking = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class MemberStatusTier(Base):
    __tablename__ = "member_status_tiers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tier_name = Column(String(50), nullable=False, unique=True)
    display_name = Column(String(100), nullable=False)
    min_points = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
