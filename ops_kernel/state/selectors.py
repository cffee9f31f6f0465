"""
Selectors — read-only views over an AppState snapshot.

Behavioral Contract:
- Pure functions of the snapshot; nothing here mutates state.
- Day-scoped views use the snapshot's as_of date unless one is given.
- With no store selected every selector returns its empty default.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional

from ops_kernel.derivation.derive import (
    TodoIndex,
    derive_calendar_data,
    derive_cockpit_metrics,
    derive_daily_labor_guardrail,
    derive_daily_sales_metrics,
    derive_exceptions,
    derive_forecast_table,
    derive_labor_metrics,
    derive_monthly_forecast_summary,
    derive_monthly_sales_metrics,
    derive_prep_metrics,
    derive_staff_states,
    derive_weekly_labor_metrics,
)
from ops_kernel.incentives.calculator import IncentiveCalculator
from ops_kernel.models.app_state import AppState
from ops_kernel.models.events import DecisionEvent, DomainEvent
from ops_kernel.models.incentive import IncentiveDistribution
from ops_kernel.models.incident import Incident, IncidentStatus
from ops_kernel.models.master import Store
from ops_kernel.models.metrics import (
    CalendarCell,
    CockpitMetrics,
    DailySalesMetrics,
    ExceptionItem,
    ForecastCell,
    LaborGuardrailSummary,
    LaborMetrics,
    MonthlyForecastSummary,
    PrepMetrics,
    StaffState,
    TodoStats,
    WeeklyLaborMetrics,
)
from ops_kernel.models.proposal import Proposal
from ops_kernel.models.replay import ReplayState


def _day(state: AppState, day: Optional[date]) -> date:
    return day or state.as_of.date()


def _month(state: AppState, month: Optional[str]) -> str:
    return month or state.selected_month


def _band(state: AppState, time_band: Optional[str]) -> str:
    return time_band or state.selected_time_band


def select_current_store(state: AppState) -> Optional[Store]:
    if state.selected_store_id is None:
        return None
    return state.master.find_store(state.selected_store_id)


def select_staff_states(state: AppState, day: Optional[date] = None) -> Dict[str, StaffState]:
    store_id = state.selected_store_id
    if store_id is None:
        return {}
    staff_ids = [s.id for s in state.master.staff_for_store(store_id)]
    return derive_staff_states(state.events, store_id, _day(state, day), staff_ids, state.as_of)


def select_labor_metrics(state: AppState, day: Optional[date] = None) -> LaborMetrics:
    if state.selected_store_id is None:
        return LaborMetrics()
    return derive_labor_metrics(
        state.events, state.selected_store_id, _day(state, day), state.master,
        state.as_of, state.config.default_hourly_wage,
    )


def select_weekly_labor_metrics(
    state: AppState, week_start: Optional[date] = None
) -> Optional[WeeklyLaborMetrics]:
    """Week defaults to the one (Monday start) containing as_of."""
    if state.selected_store_id is None:
        return None
    if week_start is None:
        today = state.as_of.date()
        week_start = today - timedelta(days=today.weekday())
    return derive_weekly_labor_metrics(
        state.events, state.selected_store_id, week_start, state.master,
        state.as_of, state.config.default_hourly_wage,
    )


def select_labor_guardrail_summary(
    state: AppState, day: Optional[date] = None
) -> Optional[LaborGuardrailSummary]:
    if state.selected_store_id is None:
        return None
    hours = state.config.incentives
    return derive_daily_labor_guardrail(
        state.events, state.selected_store_id, _day(state, day), state.master, state.as_of,
        state.config.labor_guardrails, hours.business_open_hour, hours.business_close_hour,
        state.config.default_hourly_wage,
    )


def select_daily_sales_metrics(
    state: AppState, day: Optional[date] = None, time_band: Optional[str] = None
) -> Optional[DailySalesMetrics]:
    if state.selected_store_id is None:
        return None
    return derive_daily_sales_metrics(
        state.events, state.selected_store_id, _day(state, day), _band(state, time_band),
        state.config.time_bands,
    )


def select_monthly_sales_metrics(
    state: AppState, month: Optional[str] = None, time_band: Optional[str] = None
) -> List[DailySalesMetrics]:
    """Month and band default to the current selection."""
    if state.selected_store_id is None:
        return []
    return derive_monthly_sales_metrics(
        state.events, state.selected_store_id, _month(state, month), _band(state, time_band),
        state.config.time_bands,
    )


def select_forecast_table(
    state: AppState, month: Optional[str] = None, time_band: Optional[str] = None
) -> List[ForecastCell]:
    if state.selected_store_id is None:
        return []
    table = derive_forecast_table(
        state.events, state.selected_store_id, _month(state, month), _band(state, time_band)
    )
    return [table[key] for key in sorted(table)]


def select_calendar_data(
    state: AppState, month: Optional[str] = None, time_band: Optional[str] = None
) -> List[CalendarCell]:
    if state.selected_store_id is None:
        return []
    return derive_calendar_data(
        state.events, state.selected_store_id, _month(state, month), _band(state, time_band)
    )


def select_monthly_forecast_summary(
    state: AppState, month: Optional[str] = None, time_band: Optional[str] = None
) -> MonthlyForecastSummary:
    if state.selected_store_id is None:
        return MonthlyForecastSummary()
    return derive_monthly_forecast_summary(
        state.events, state.selected_store_id, _month(state, month), _band(state, time_band)
    )


def select_prep_metrics(state: AppState, day: Optional[date] = None) -> PrepMetrics:
    if state.selected_store_id is None:
        return PrepMetrics()
    return derive_prep_metrics(state.events, state.selected_store_id, _day(state, day))


def _todo_index(state: AppState) -> Optional[TodoIndex]:
    if state.selected_store_id is None:
        return None
    return TodoIndex(state.events, state.selected_store_id)


def select_active_todos(state: AppState, role_id: Optional[str] = None) -> List[DecisionEvent]:
    index = _todo_index(state)
    return index.active(role_id) if index else []


def select_completed_todos(state: AppState, role_id: Optional[str] = None) -> List[DecisionEvent]:
    index = _todo_index(state)
    return index.completed(role_id) if index else []


def select_todo_stats(state: AppState, role_id: Optional[str] = None) -> TodoStats:
    index = _todo_index(state)
    return index.stats(role_id) if index else TodoStats()


def select_cockpit_metrics(state: AppState, day: Optional[date] = None) -> CockpitMetrics:
    if state.selected_store_id is None:
        return CockpitMetrics()
    return derive_cockpit_metrics(
        state.events, state.selected_store_id, _day(state, day), state.selected_time_band,
        state.as_of, state.config.time_bands, state.master, state.config.thresholds,
        state.config.default_hourly_wage,
    )


def select_exceptions(state: AppState, day: Optional[date] = None) -> List[ExceptionItem]:
    if state.selected_store_id is None:
        return []
    return derive_exceptions(
        state.events, state.selected_store_id, _day(state, day), state.as_of,
        state.config.time_bands, state.master, state.config.thresholds,
    )


def select_incidents(
    state: AppState,
    day: Optional[date] = None,
    status: Optional[IncidentStatus] = None,
) -> List[Incident]:
    """Incidents of the selected store, newest activity first."""
    incidents = [
        i for i in state.incidents
        if i.store_id == state.selected_store_id
        and (day is None or i.date == day)
        and (status is None or i.status == status)
    ]
    return sorted(incidents, key=lambda i: i.updated_at, reverse=True)


def select_incentive_distribution(
    state: AppState, day: Optional[date] = None
) -> Optional[IncentiveDistribution]:
    if state.selected_store_id is None:
        return None
    calculator = IncentiveCalculator(state.config.incentives)
    return calculator.calculate(
        state.events, state.selected_store_id, _day(state, day), state.master, state.as_of
    )


def select_replay_state(state: AppState) -> ReplayState:
    return state.replay


def select_recent_events(state: AppState, limit: int = 20) -> List[DomainEvent]:
    events = [e for e in state.events if e.store_id == state.selected_store_id]
    events.sort(key=lambda e: e.timestamp, reverse=True)
    return events[:limit]


def select_pending_proposals(state: AppState) -> List[Proposal]:
    return [p for p in state.proposals if p.store_id == state.selected_store_id]
