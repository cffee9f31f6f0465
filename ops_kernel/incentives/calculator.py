"""
Incentive Calculator — over-achievement pool and per-staff shares.

Behavioral Contract:
- points = round(hours_worked * points_per_hour + quest_xp)
- pool = max(0, sales_for_calculation - target_sales) * pool_share
- Estimated shares are whole currency units split by largest remainder,
  so they always add up to round(pool).
- Once the business day has closed the pool uses actual sales and is
  finalized; before that it is projected from the run-rate.
"""

import logging
import math
from datetime import date, datetime, time
from typing import Dict, List, Optional, Tuple

from ops_kernel.derivation.derive import (
    TodoIndex,
    business_day_closed,
    derive_forecast_for_date,
    derive_sales_for_date,
    derive_staff_states,
)
from ops_kernel.models.config import IncentivePolicy
from ops_kernel.models.events import DomainEvent
from ops_kernel.models.incentive import IncentiveDistribution, IncentivePool, StaffShare
from ops_kernel.models.master import MasterData

logger = logging.getLogger(__name__)


def build_pool(
    sales_for_calculation: float,
    target_sales: float,
    pool_share: float,
    use_sales_value: str = "actual",
    status: str = "finalized",
) -> IncentivePool:
    over = max(0.0, sales_for_calculation - target_sales)
    return IncentivePool(
        target_sales=target_sales,
        sales_for_calculation=sales_for_calculation,
        over_achievement=over,
        over_achievement_rate=(
            over / target_sales * 100 if target_sales > 0 else None
        ),
        pool_share=pool_share,
        pool=over * pool_share,
        use_sales_value=use_sales_value,
        status=status,
    )


def split_pool(total: int, points: List[int]) -> List[int]:
    """Largest-remainder split of `total` proportional to `points`."""
    point_sum = sum(points)
    if point_sum <= 0 or total <= 0:
        return [0 for _ in points]

    raw = [total * p / point_sum for p in points]
    shares = [math.floor(r) for r in raw]
    leftover = total - sum(shares)
    # Largest fractional part first; earlier entries win ties
    order = sorted(range(len(points)), key=lambda i: (-(raw[i] - shares[i]), i))
    for i in order[:leftover]:
        shares[i] += 1
    return shares


def distribute(
    pool: IncentivePool,
    contributions: List[Tuple[str, str, float, int]],
    points_per_hour: float = 10.0,
) -> IncentiveDistribution:
    """
    Split a pool across (staff_id, staff_name, hours_worked, quest_xp)
    contributions. Staff without points are left out.
    """
    rows = []
    for staff_id, name, hours, xp in contributions:
        points = int(round(hours * points_per_hour + xp))
        if points > 0:
            rows.append((staff_id, name, hours, xp, points))
    rows.sort(key=lambda r: (-r[4], r[0]))

    total_points = sum(r[4] for r in rows)
    estimated = split_pool(int(round(pool.pool)), [r[4] for r in rows])

    shares = [
        StaffShare(
            staff_id=staff_id,
            staff_name=name,
            hours_worked=round(hours, 2),
            quest_xp=xp,
            points=points,
            share_percentage=round(points / total_points * 100, 2) if total_points else 0,
            estimated_share=amount,
        )
        for (staff_id, name, hours, xp, points), amount in zip(rows, estimated)
    ]
    return IncentiveDistribution(pool=pool, staff_shares=shares, total_points=total_points)


class IncentiveCalculator:
    """Computes the incentive distribution of one store and business day from the event log."""

    def __init__(self, policy: Optional[IncentivePolicy] = None):
        self.policy = policy or IncentivePolicy()

    def run_rate_sales(
        self, actual: float, forecast: float, day: date, as_of: datetime
    ) -> float:
        """Full-day sales projected from the share of business hours elapsed."""
        opens = datetime.combine(day, time(hour=self.policy.business_open_hour))
        span = (self.policy.business_close_hour - self.policy.business_open_hour) * 3600
        elapsed = (as_of - opens).total_seconds()
        if actual <= 0 or elapsed <= 0 or span <= 0:
            return forecast if actual <= 0 else actual
        return actual * span / min(elapsed, span)

    def quest_xp(self, events: List[DomainEvent], store_id: str, day: date) -> Dict[str, int]:
        """XP per staff member from to-dos they completed that day."""
        xp: Dict[str, int] = {}
        for todo in TodoIndex(events, store_id).completed():
            if not todo.assignee_id or todo.timestamp.date() != day:
                continue
            reward = todo.xp_reward
            if reward is None:
                reward = self.policy.xp_by_priority.get(todo.priority, 0)
            xp[todo.assignee_id] = xp.get(todo.assignee_id, 0) + reward
        return xp

    def calculate(
        self,
        events: List[DomainEvent],
        store_id: str,
        day: date,
        master: Optional[MasterData] = None,
        current_time: Optional[datetime] = None,
    ) -> IncentiveDistribution:
        if current_time is None:
            current_time = datetime.utcnow()
        events = list(events)

        actual, _ = derive_sales_for_date(events, store_id, day)
        target = self.policy.target_for(store_id, day.weekday() >= 5)
        if business_day_closed(day, current_time, self.policy.business_close_hour):
            pool = build_pool(actual, target, self.policy.pool_share, "actual", "finalized")
        else:
            forecast = derive_forecast_for_date(events, store_id, day)
            projected = self.run_rate_sales(
                actual, forecast.forecast_sales if forecast else 0, day, current_time
            )
            pool = build_pool(projected, target, self.policy.pool_share, "runRate", "projected")

        staff_ids = [s.id for s in master.staff_for_store(store_id)] if master else []
        states = derive_staff_states(events, store_id, day, staff_ids, current_time)
        xp = self.quest_xp(events, store_id, day)

        contributions = []
        for staff_id in list(states) + [s for s in xp if s not in states]:
            staff = master.find_staff(staff_id) if master else None
            state = states.get(staff_id)
            hours = state.worked_minutes / 60.0 if state else 0.0
            contributions.append((staff_id, staff.name if staff else staff_id, hours, xp.get(staff_id, 0)))

        distribution = distribute(pool, contributions, self.policy.points_per_hour)
        logger.debug(
            "Incentive pool for %s on %s: %.0f (%s)", store_id, day, pool.pool, pool.status
        )
        return distribution
