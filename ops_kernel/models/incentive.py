"""Incentive Model — the over-achievement pool and its per-staff split."""

from typing import List, Literal, Optional

from pydantic import BaseModel


class IncentivePool(BaseModel):
    target_sales: float
    sales_for_calculation: float
    over_achievement: float
    over_achievement_rate: Optional[float] = None   # Over-achievement as percent of target; None when target is 0
    pool_share: float
    pool: float
    use_sales_value: Literal["actual", "runRate"]
    status: Literal["projected", "finalized"]


class StaffShare(BaseModel):
    staff_id: str
    staff_name: str
    hours_worked: float = 0
    quest_xp: int = 0
    points: int
    share_percentage: float
    estimated_share: int


class IncentiveDistribution(BaseModel):
    """Recomputed per date. Never authoritative; always derivable."""

    pool: IncentivePool
    staff_shares: List[StaffShare] = []
    total_points: int = 0

    @property
    def status(self) -> str:
        return self.pool.status
