"""Tests for the derivation layer."""

from datetime import date, datetime

import pytest

from ops_kernel.demo.fixtures import demo_master_data
from ops_kernel.derivation.derive import (
    TodoIndex,
    achievement_rate,
    business_day_closed,
    derive_calendar_data,
    derive_cockpit_metrics,
    derive_daily_labor_guardrail,
    derive_daily_sales_metrics,
    derive_exceptions,
    derive_forecast_for_date,
    derive_forecast_table,
    derive_labor_guardrail_summary,
    derive_labor_metrics,
    derive_monthly_forecast_summary,
    derive_prep_metrics,
    derive_staff_states,
    derive_weekly_labor_metrics,
    fold_staff_state,
    overdue_todos,
    project_daily_sales,
    select_guardrail_bracket,
)
from ops_kernel.derivation.time_bands import band_closed, time_band_for
from ops_kernel.models.config import OpsConfig
from ops_kernel.models.events import (
    DecisionEvent,
    DeliveryEvent,
    ForecastEvent,
    LaborEvent,
    PrepEvent,
    SalesEvent,
)

DAY = date(2026, 3, 4)
BANDS = OpsConfig().time_bands


def _at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def _make_labor(staff_id: str, action: str, hour: int, minute: int = 0, store_id: str = "1") -> LaborEvent:
    return LaborEvent(
        id=f"lab-{staff_id}-{action}-{hour}{minute:02d}",
        store_id=store_id,
        timestamp=_at(hour, minute),
        staff_id=staff_id,
        action=action,
    )


def _make_sale(total: float, hour: int = 12, band: str = "lunch", quantity: int = 1) -> SalesEvent:
    return SalesEvent(
        store_id="1", timestamp=_at(hour), time_band=band, menu_id="menu-1",
        quantity=quantity, unit_price=total / quantity, total=total,
    )


def _make_forecast(sales: float, band: str = "lunch", customers: int = 40,
                   day: date = DAY, written_at: datetime = None) -> ForecastEvent:
    return ForecastEvent(
        store_id="1",
        timestamp=written_at or _at(8),
        time_band=band,
        date=day,
        forecast_customers=customers,
        avg_spend=sales / customers,
        forecast_sales=sales,
    )


def _make_prep(item: str, status: str, hour: int = 9, batch: str = "morning") -> PrepEvent:
    return PrepEvent(store_id="1", timestamp=_at(hour), prep_item_id=item,
                     quantity=10, status=status, batch_id=batch)


def _make_decision(proposal_id: str, action: str, hour: int, target_id: str = "role-kitchen",
                   deadline: datetime = None) -> DecisionEvent:
    return DecisionEvent(
        store_id="1", timestamp=_at(hour), proposal_id=proposal_id, target_id=target_id,
        action=action, title="Extra prep", distributed_to_roles=[target_id], deadline=deadline,
    )


def _shift_events():
    return [
        _make_labor("S1", "check-in", 9),
        _make_labor("S1", "break-start", 13),
        _make_labor("S1", "break-end", 13, 30),
        _make_labor("S1", "check-out", 18),
    ]


class TestTimeBands:
    def test_classification(self):
        assert time_band_for(_at(11), BANDS) == "lunch"
        assert time_band_for(_at(13, 59), BANDS) == "lunch"
        assert time_band_for(_at(14), BANDS) == "idle"
        assert time_band_for(_at(21, 30), BANDS) == "dinner"
        assert time_band_for(_at(22), BANDS) == "all"
        assert time_band_for(_at(9), BANDS) == "all"

    def test_band_closed(self):
        assert not band_closed("lunch", DAY, _at(13, 59), BANDS)
        assert band_closed("lunch", DAY, _at(14), BANDS)
        assert not band_closed("all", DAY, _at(23), BANDS)
        assert band_closed("all", DAY, _at(0, day=date(2026, 3, 5)), BANDS)


class TestStaffState:
    def test_full_shift(self):
        state = fold_staff_state("S1", _shift_events(), as_of=_at(18, 1))
        assert state.status == "out"
        assert state.total_minutes == 540
        assert state.break_minutes == 30
        assert state.worked_minutes == 510
        assert state.check_in_time == _at(9)

    def test_irrelevant_events_do_not_matter(self):
        noise = [
            _make_sale(5000),
            _make_labor("S2", "check-in", 10),
            _make_labor("S2", "check-out", 12),
            _make_prep("prep-1", "planned"),
        ]
        shift = _shift_events()
        interleaved = [noise[0], shift[0], noise[1], shift[1], noise[2], shift[2], noise[3], shift[3]]
        reversed_noise = list(reversed(noise)) + shift

        baseline = fold_staff_state("S1", shift, as_of=_at(18, 1))
        for events in (interleaved, reversed_noise):
            labor = [e for e in events if e.type == "labor"]
            assert fold_staff_state("S1", labor, as_of=_at(18, 1)) == baseline

    def test_open_intervals_accrue_to_as_of(self):
        events = [_make_labor("S1", "check-in", 9), _make_labor("S1", "break-start", 12)]
        state = fold_staff_state("S1", events, as_of=_at(12, 20))
        assert state.status == "break"
        assert state.total_minutes == 200
        assert state.break_minutes == 20

    def test_open_intervals_stop_at_last_event_without_as_of(self):
        events = [_make_labor("S1", "check-in", 9), _make_labor("S1", "break-start", 12)]
        state = fold_staff_state("S1", events)
        assert state.total_minutes == 180
        assert state.break_minutes == 0

    def test_events_after_as_of_are_ignored(self):
        state = fold_staff_state("S1", _shift_events(), as_of=_at(12))
        assert state.status == "working"
        assert state.total_minutes == 180

    def test_checkout_during_break_closes_the_break(self):
        events = [
            _make_labor("S1", "check-in", 9),
            _make_labor("S1", "break-start", 12),
            _make_labor("S1", "check-out", 12, 30),
        ]
        state = fold_staff_state("S1", events, as_of=_at(13))
        assert state.status == "out"
        assert state.total_minutes == 210
        assert state.break_minutes == 30

    def test_invalid_transitions_ignored(self):
        events = [
            _make_labor("S1", "break-start", 8),
            _make_labor("S1", "check-in", 9),
            _make_labor("S1", "check-in", 10),
            _make_labor("S1", "check-out", 11),
        ]
        state = fold_staff_state("S1", events)
        assert state.total_minutes == 120
        assert state.check_in_time == _at(9)

    def test_unknown_staff_is_out(self):
        state = fold_staff_state("nobody", _shift_events())
        assert state.status == "out"
        assert state.total_minutes == 0

    def test_states_include_listed_staff(self):
        states = derive_staff_states(_shift_events(), "1", DAY, ["S1", "S9"], _at(18, 1))
        assert states["S9"].status == "out"
        assert states["S1"].total_minutes == 540


class TestLaborMetrics:
    def test_counts_and_cost(self):
        master = demo_master_data()
        events = [
            _make_labor("staff-1", "check-in", 9),
            _make_labor("staff-2", "check-in", 10),
            _make_labor("staff-2", "break-start", 12),
        ]
        metrics = derive_labor_metrics(events, "1", DAY, master, as_of=_at(13))
        assert metrics.active_staff_count == 1
        assert metrics.on_break_count == 1
        # staff-1: 4h at 1800; staff-2: 2h worked at 1500
        assert metrics.total_hours_today == 6.0
        assert metrics.labor_cost_estimate == 4 * 1800 + 2 * 1500

    def test_default_wage_for_unknown_staff(self):
        events = [_make_labor("temp-1", "check-in", 9), _make_labor("temp-1", "check-out", 11)]
        metrics = derive_labor_metrics(events, "1", DAY, None, default_wage=1000)
        assert metrics.labor_cost_estimate == 2000

    def test_other_stores_excluded(self):
        events = [_make_labor("staff-7", "check-in", 9, store_id="2")]
        metrics = derive_labor_metrics(events, "1", DAY, as_of=_at(12))
        assert metrics.active_staff_count == 0
        assert metrics.total_hours_today == 0


class TestSalesAndForecast:
    def test_achievement_rate(self):
        events = [_make_forecast(100000), _make_sale(70000), _make_sale(50000, hour=13)]
        metrics = derive_daily_sales_metrics(events, "1", DAY, "lunch")
        assert metrics.actual_sales == 120000
        assert metrics.forecast_sales == 100000
        assert metrics.achievement_rate == 120

    def test_zero_forecast_gives_zero_rate(self):
        assert achievement_rate(5000, 0) == 0
        metrics = derive_daily_sales_metrics([_make_sale(5000)], "1", DAY)
        assert metrics.achievement_rate == 0

    def test_forecast_last_write_wins(self):
        events = [
            _make_forecast(90000, written_at=_at(8)),
            _make_forecast(110000, written_at=_at(9)),
        ]
        cell = derive_forecast_for_date(events, "1", DAY, "lunch")
        assert cell.forecast_sales == 110000

    def test_all_band_sums_bands(self):
        events = [
            _make_forecast(100000, "lunch", customers=40),
            _make_forecast(200000, "dinner", customers=60),
        ]
        cell = derive_forecast_for_date(events, "1", DAY)
        assert cell.forecast_sales == 300000
        assert cell.forecast_customers == 100
        assert cell.avg_spend == 3000

    def test_band_filter(self):
        events = [_make_forecast(100000, "lunch"), _make_forecast(200000, "dinner")]
        table = derive_forecast_table(events, "1", "2026-03", "dinner")
        assert list(table) == [(DAY, "dinner")]

    def test_calendar_covers_month(self):
        events = [_make_forecast(100000, "lunch")]
        cells = derive_calendar_data(events, "1", "2026-03")
        assert len(cells) == 31
        assert cells[3].date == DAY
        assert cells[3].day_of_week == "Wed"
        assert cells[3].sales == 100000
        assert cells[0].sales == 0

    def test_monthly_summary(self):
        events = [
            _make_forecast(100000, "lunch", customers=40),
            _make_forecast(60000, "lunch", customers=20, day=date(2026, 3, 5)),
            _make_forecast(50000, "lunch", customers=20, day=date(2026, 4, 1)),
        ]
        summary = derive_monthly_forecast_summary(events, "1", "2026-03")
        assert summary.total_customers == 60
        assert summary.total_sales == 160000

    def test_unbanded_sale_counts_toward_its_hour(self):
        events = [_make_forecast(100000, "lunch"), _make_sale(120000, hour=12, band="all")]
        lunch = derive_daily_sales_metrics(events, "1", DAY, "lunch", BANDS)
        assert lunch.actual_sales == 120000
        assert lunch.achievement_rate == 120
        assert derive_daily_sales_metrics(events, "1", DAY, "dinner", BANDS).actual_sales == 0
        # Default bands apply when none are given
        assert derive_daily_sales_metrics(events, "1", DAY, "lunch").actual_sales == 120000
        assert derive_daily_sales_metrics(events, "1", DAY).actual_sales == 120000


class TestPrepMetrics:
    def test_latest_status_per_batch(self):
        events = [
            _make_prep("prep-1", "planned"),
            _make_prep("prep-1", "started", hour=10),
            _make_prep("prep-1", "completed", hour=11),
            _make_prep("prep-2", "planned"),
            _make_prep("prep-3", "planned"),
            _make_prep("prep-3", "started", hour=10),
            _make_prep("prep-4", "cancelled"),
        ]
        metrics = derive_prep_metrics(events, "1", DAY)
        assert metrics.completed_count == 1
        assert metrics.planned_count == 1
        assert metrics.in_progress_count == 1
        assert round(metrics.completion_rate, 2) == 33.33

    def test_batches_are_separate(self):
        events = [_make_prep("prep-1", "completed"), _make_prep("prep-1", "planned", batch="evening")]
        metrics = derive_prep_metrics(events, "1", DAY)
        assert metrics.completed_count == 1
        assert metrics.planned_count == 1

    def test_empty(self):
        assert derive_prep_metrics([], "1", DAY).completion_rate == 0


class TestTodoIndex:
    def test_last_write_wins(self):
        events = [
            _make_decision("p1", "approved", 9),
            _make_decision("p1", "started", 10),
        ]
        index = TodoIndex(events)
        assert index.get("p1", "role-kitchen").action == "started"
        assert index.stats().in_progress_count == 1

    def test_equal_timestamps_keep_insertion_order(self):
        events = [
            _make_decision("p1", "approved", 9),
            _make_decision("p1", "started", 10),
            _make_decision("p1", "completed", 10),
        ]
        assert TodoIndex(events).get("p1", "role-kitchen").action == "completed"

    def test_aggregate_rejection_closes_every_target(self):
        events = [
            _make_decision("p1", "approved", 9, target_id="role-kitchen"),
            _make_decision("p1", "approved", 9, target_id="role-floor"),
            _make_decision("p1", "rejected", 10, target_id="*"),
        ]
        index = TodoIndex(events)
        assert index.active() == []
        assert all(e.action == "rejected" for e in index.targets("p1").values())

    def test_role_filter(self):
        events = [
            _make_decision("p1", "approved", 9, target_id="role-kitchen"),
            _make_decision("p2", "approved", 9, target_id="role-floor"),
        ]
        index = TodoIndex(events)
        assert [t.proposal_id for t in index.active("role-floor")] == ["p2"]
        assert index.stats().pending_count == 2

    def test_paused_todo_stays_active(self):
        events = [
            _make_decision("p1", "approved", 9),
            _make_decision("p1", "started", 10),
            _make_decision("p1", "paused", 11),
        ]
        index = TodoIndex(events)
        assert [t.action for t in index.active()] == ["paused"]
        stats = index.stats()
        assert stats.paused_count == 1
        assert stats.in_progress_count == 0
        assert stats.total == 1

    def test_overdue(self):
        events = [
            _make_decision("p1", "approved", 9, deadline=_at(10)),
            _make_decision("p2", "approved", 9, deadline=_at(12)),
            _make_decision("p3", "completed", 9, deadline=_at(10)),
        ]
        overdue = overdue_todos(TodoIndex(events), _at(11))
        assert [t.proposal_id for t in overdue] == ["p1"]


class TestExceptionsAndCockpit:
    def test_exception_board(self):
        events = [
            DeliveryEvent(id="dlv-1", store_id="1", timestamp=_at(10), supplier_id="fish",
                          item_name="Salmon", expected_at=_at(9, 30), status="delayed", delay_minutes=45),
            _make_labor("staff-1", "check-in", 9),
            _make_prep("prep-1", "planned"),
            _make_prep("prep-2", "planned"),
            _make_forecast(100000),
            _make_sale(130000),
        ]
        exceptions = derive_exceptions(events, "1", DAY, _at(12), BANDS)
        by_type = {e.type: e for e in exceptions}
        assert by_type["delivery-delay"].severity == "critical"
        assert by_type["delivery-delay"].id == "exc-dlv-1"
        assert by_type["staff-shortage"].severity == "critical"
        assert by_type["prep-behind"].severity == "critical"
        assert by_type["demand-surge"].severity == "warning"

    def test_cockpit_summary(self):
        events = [_make_forecast(100000), _make_sale(120000), _make_prep("prep-1", "completed")]
        metrics = derive_cockpit_metrics(events, "1", DAY, "all", _at(13), BANDS)
        assert metrics.sales.achievement_rate == 120
        assert metrics.sales.trend == "up"
        assert metrics.operations.completion_rate == 100
        # Nobody checked in
        assert metrics.exceptions.count == 1
        assert metrics.exceptions.critical_count == 1


class TestBusinessDay:
    def test_closed_at_close_hour(self):
        assert not business_day_closed(DAY, _at(21, 59), 22)
        assert business_day_closed(DAY, _at(22), 22)
        assert business_day_closed(DAY, _at(1, day=date(2026, 3, 5)), 22)


def _make_shift_event(staff_id: str, action: str, day: date, hour: int) -> LaborEvent:
    return LaborEvent(store_id="1", timestamp=_at(hour, day=day), staff_id=staff_id, action=action)


MONDAY = date(2026, 3, 2)


class TestWeeklyLaborMetrics:
    def setup_method(self):
        self.master = demo_master_data()
        self.events = [
            _make_shift_event("staff-1", "check-in", MONDAY, 9),
            _make_shift_event("staff-1", "check-out", MONDAY, 17),
            SalesEvent(store_id="1", timestamp=_at(12, day=MONDAY), time_band="lunch", menu_id="menu-1",
                       quantity=1, unit_price=100000, total=100000),
            # Wednesday, still on shift at as_of
            _make_shift_event("staff-2", "check-in", DAY, 10),
            # Not on the store roster
            _make_shift_event("temp-1", "check-in", DAY, 9),
            # After as_of
            _make_shift_event("staff-3", "check-in", date(2026, 3, 5), 9),
        ]

    def _metrics(self):
        return derive_weekly_labor_metrics(self.events, "1", MONDAY, self.master, as_of=_at(13))

    def test_daily_rows(self):
        metrics = self._metrics()
        assert metrics.week_end == date(2026, 3, 8)
        assert len(metrics.days) == 7

        monday = metrics.days[0]
        assert monday.hours == 8.0
        assert monday.labor_cost == 14400
        assert monday.sales == 100000
        assert monday.labor_rate == 14.4
        assert monday.sales_per_labor_cost == 6.94
        assert monday.star_mix.star3 == 1

        tuesday = metrics.days[1]
        assert tuesday.staff_count == 0
        assert tuesday.sales is None
        assert tuesday.labor_rate is None

        wednesday = metrics.days[2]
        assert wednesday.hours == 3.0
        assert wednesday.labor_cost == 4500
        assert wednesday.staff_count == 1

        assert metrics.days[3].staff_count == 0

    def test_week_summary(self):
        metrics = self._metrics()
        assert metrics.total_hours == 11.0
        assert metrics.total_labor_cost == 18900
        assert metrics.total_sales == 100000
        assert metrics.avg_labor_rate == 18.9
        assert metrics.sales_per_labor_cost == 5.29
        assert metrics.staff_count_total == 2
        assert metrics.star_mix_total.star3 == 2
        assert not metrics.is_calculating

    def test_empty_week_is_calculating(self):
        metrics = derive_weekly_labor_metrics([], "1", MONDAY, self.master, as_of=_at(13))
        assert metrics.is_calculating
        assert metrics.total_sales is None
        assert metrics.avg_labor_rate is None


class TestLaborGuardrail:
    def setup_method(self):
        self.policy = OpsConfig().labor_guardrails

    def test_bracket_selection(self):
        assert select_guardrail_bracket(self.policy.weekday, 250000).high_sales == 300000
        assert select_guardrail_bracket(self.policy.weekday, 300000).high_sales == 300000
        assert select_guardrail_bracket(self.policy.weekday, 900000).high_sales == 500000
        assert select_guardrail_bracket(self.policy.weekend, 0).high_sales == 600000

    def test_status(self):
        safe = derive_labor_guardrail_summary(250000, 250000, 25000, False, self.policy)
        assert safe.status == "safe"
        assert safe.projected_labor_rate == pytest.approx(0.10)
        assert safe.good_rate == 0.12
        assert safe.bracket_low_sales == 200000

        caution = derive_labor_guardrail_summary(250000, 250000, 35000, False, self.policy)
        assert caution.status == "caution"
        assert caution.delta_to_good == pytest.approx(0.02)

        danger = derive_labor_guardrail_summary(250000, 250000, 50000, False, self.policy)
        assert danger.status == "danger"
        assert danger.delta_to_bad == pytest.approx(0.02)

    def test_no_projected_sales(self):
        summary = derive_labor_guardrail_summary(0, 0, 10000, True, self.policy)
        assert summary.projected_labor_rate == 0
        assert summary.status == "safe"
        assert summary.day_type == "weekend"

    def test_sales_projection(self):
        assert project_daily_sales(50000, 250000, _at(13, 45), 11, 22) == pytest.approx(200000)
        assert project_daily_sales(0, 250000, _at(13, 45), 11, 22) == 250000
        assert project_daily_sales(50000, 250000, _at(23), 11, 22) == 50000

    def test_open_day(self):
        events = [
            _make_forecast(100000, "lunch"),
            _make_forecast(150000, "dinner"),
            _make_sale(50000, hour=12),
            _make_labor("staff-2", "check-in", 10),
        ]
        summary = derive_daily_labor_guardrail(
            events, "1", DAY, demo_master_data(), _at(13, 45), self.policy, 11, 22
        )
        assert summary.bracket_high_sales == 300000
        assert summary.projected_sales == pytest.approx(200000)
        # 3.75h at 1500, scaled to a full day
        assert summary.projected_labor_cost == pytest.approx(5625 * 1.2)
        assert summary.status == "safe"

    def test_closed_day_uses_actuals(self):
        events = [
            _make_forecast(100000, "lunch"),
            _make_forecast(150000, "dinner"),
            _make_sale(50000, hour=12),
            _make_labor("staff-2", "check-in", 10),
            _make_labor("staff-2", "check-out", 18),
        ]
        summary = derive_daily_labor_guardrail(
            events, "1", DAY, demo_master_data(), _at(23), self.policy, 11, 22
        )
        assert summary.projected_sales == 50000
        assert summary.projected_labor_cost == 12000
        assert summary.status == "danger"
