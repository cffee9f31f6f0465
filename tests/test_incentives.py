"""Tests for the Incentive Calculator."""

from datetime import date, datetime

from ops_kernel.demo.fixtures import demo_master_data
from ops_kernel.derivation.derive import achievement_rate
from ops_kernel.incentives.calculator import (
    IncentiveCalculator,
    build_pool,
    distribute,
    split_pool,
)
from ops_kernel.models.config import IncentivePolicy
from ops_kernel.models.events import DecisionEvent, LaborEvent, SalesEvent

DAY = date(2026, 3, 4)  # Wednesday


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 4, hour, minute)


def _make_shift(staff_id: str, start: int, end: int):
    return [
        LaborEvent(store_id="1", timestamp=_at(start), staff_id=staff_id, action="check-in"),
        LaborEvent(store_id="1", timestamp=_at(end), staff_id=staff_id, action="check-out"),
    ]


def _make_sale(total: float, hour: int = 19) -> SalesEvent:
    return SalesEvent(store_id="1", timestamp=_at(hour), time_band="dinner", menu_id="menu-5",
                      quantity=10, unit_price=total / 10, total=total)


def _make_completed_todo(assignee: str, priority: str = "high", xp_reward=None, hour: int = 12) -> DecisionEvent:
    return DecisionEvent(
        store_id="1", timestamp=_at(hour), proposal_id=f"p-{assignee}-{hour}", target_id="role-kitchen",
        action="completed", title="Extra prep", priority=priority, assignee_id=assignee,
        xp_reward=xp_reward,
    )


class TestPool:
    def test_over_achievement_scenario(self):
        assert achievement_rate(120000, 100000) == 120
        pool = build_pool(120000, 100000, 0.1)
        assert pool.over_achievement == 20000
        assert pool.pool == 2000
        assert pool.over_achievement_rate == 20

    def test_no_pool_below_target(self):
        pool = build_pool(80000, 100000, 0.75)
        assert pool.over_achievement == 0
        assert pool.pool == 0
        assert pool.over_achievement_rate == 0

    def test_zero_target(self):
        assert build_pool(5000, 0, 0.5).over_achievement_rate is None


class TestSplit:
    def test_largest_remainder_conserves_total(self):
        shares = split_pool(2000, [33, 33, 34])
        assert sum(shares) == 2000
        assert shares == [660, 660, 680]

    def test_remainder_goes_to_largest_fraction(self):
        shares = split_pool(100, [1, 1, 1])
        assert sum(shares) == 100
        assert shares == [34, 33, 33]

    def test_empty(self):
        assert split_pool(1000, []) == []
        assert split_pool(0, [5, 5]) == [0, 0]


class TestDistribute:
    def test_conservation_and_order(self):
        pool = build_pool(120000, 100000, 0.1)
        distribution = distribute(pool, [
            ("s1", "Taro", 8.0, 0),
            ("s2", "Hanako", 5.5, 10),
            ("s3", "Ichiro", 0.0, 0),
        ])
        assert [s.staff_id for s in distribution.staff_shares] == ["s1", "s2"]
        assert [s.points for s in distribution.staff_shares] == [80, 65]
        assert distribution.total_points == 145
        assert sum(s.estimated_share for s in distribution.staff_shares) == 2000
        assert abs(sum(s.share_percentage for s in distribution.staff_shares) - 100) < 0.05

    def test_no_contributors(self):
        distribution = distribute(build_pool(120000, 100000, 0.1), [])
        assert distribution.staff_shares == []
        assert distribution.total_points == 0


class TestCalculator:
    def setup_method(self):
        self.master = demo_master_data()
        self.calculator = IncentiveCalculator()

    def test_finalized_after_close(self):
        events = _make_shift("staff-1", 10, 20) + _make_shift("staff-2", 10, 15) + [_make_sale(300000)]
        distribution = self.calculator.calculate(events, "1", DAY, self.master, _at(23))
        assert distribution.status == "finalized"
        assert distribution.pool.use_sales_value == "actual"
        assert distribution.pool.target_sales == 280000
        assert distribution.pool.pool == 15000
        shares = {s.staff_id: s for s in distribution.staff_shares}
        assert set(shares) == {"staff-1", "staff-2"}
        assert shares["staff-1"].points == 100
        assert shares["staff-1"].estimated_share == 10000
        assert shares["staff-2"].estimated_share == 5000
        assert shares["staff-1"].staff_name == "Taro Tanaka"

    def test_projected_from_run_rate(self):
        events = _make_shift("staff-1", 10, 16) + [_make_sale(200000, hour=16)]
        distribution = self.calculator.calculate(events, "1", DAY, self.master, _at(16, 30))
        assert distribution.status == "projected"
        assert distribution.pool.use_sales_value == "runRate"
        assert distribution.pool.sales_for_calculation == 400000

    def test_run_rate(self):
        assert self.calculator.run_rate_sales(55000, 0, DAY, _at(16, 30)) == 110000
        assert self.calculator.run_rate_sales(0, 90000, DAY, _at(16, 30)) == 90000
        assert self.calculator.run_rate_sales(50000, 0, DAY, _at(10)) == 50000

    def test_quest_xp(self):
        events = [
            _make_completed_todo("staff-2", priority="high"),
            _make_completed_todo("staff-2", xp_reward=7, hour=13),
            _make_completed_todo("staff-3", priority="low"),
        ]
        assert self.calculator.quest_xp(events, "1", DAY) == {"staff-2": 27, "staff-3": 5}

    def test_quest_xp_adds_points(self):
        events = _make_shift("staff-2", 10, 15) + [_make_completed_todo("staff-2"), _make_sale(300000)]
        distribution = self.calculator.calculate(events, "1", DAY, self.master, _at(23))
        share = distribution.staff_shares[0]
        assert share.quest_xp == 20
        assert share.points == 70

    def test_weekend_target(self):
        saturday = date(2026, 3, 7)
        policy = IncentivePolicy(pool_share=0.5)
        distribution = IncentiveCalculator(policy).calculate([], "1", saturday, self.master,
                                                             datetime(2026, 3, 7, 23))
        assert distribution.pool.target_sales == 420000
        assert distribution.pool.pool == 0
