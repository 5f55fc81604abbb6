from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from booking_core.schemas.bookings import RowModel


class RewardsTransactionOut(RowModel):
    id: int
    type: str
    points: int
    balance_after: int
    booking_id: Optional[int] = None
    description: Optional[str] = None
    created_at: datetime


class RewardsAccountResponse(BaseModel):
    user_id: int
    current_balance: int
    total_earned: int
    lifetime_spent: int
    member_tier_id: Optional[int] = None
    transactions: list[RewardsTransactionOut]


class MaxRedeemableResponse(BaseModel):
    user_id: int
    booking_amount: str
    max_points: int

