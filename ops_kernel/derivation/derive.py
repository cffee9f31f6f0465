"""
Derivation Layer — pure folds from the event log into point-in-time views.

Behavioral Contract:
- Every function here is pure: same event prefix and filters, same view.
- Events are folded in timestamp order using a stable sort, so events
  with identical timestamps keep their insertion order.
- Missing data never raises; views fall back to zero counts and empty lists.
"""

import calendar
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from ops_kernel.derivation.time_bands import DEFAULT_BAND, effective_band, matches_band, time_band_for
from ops_kernel.models.config import (
    DetectorThresholds,
    LaborGuardrailBracket,
    LaborGuardrailPolicy,
    TimeBandWindow,
)
from ops_kernel.models.events import (
    AGGREGATE_TARGET,
    DecisionEvent,
    DeliveryEvent,
    DomainEvent,
    LaborEvent,
    PrepEvent,
)
from ops_kernel.models.master import MasterData
from ops_kernel.models.metrics import (
    AffectedItem,
    CalendarCell,
    CockpitMetrics,
    DailySalesMetrics,
    ExceptionImpact,
    ExceptionItem,
    ExceptionSummary,
    ForecastCell,
    LaborGuardrailSummary,
    LaborMetrics,
    MonthlyForecastSummary,
    PrepMetrics,
    SalesSummary,
    StarMix,
    StaffState,
    SupplyDemandSummary,
    TodoStats,
    WeeklyLaborDay,
    WeeklyLaborMetrics,
)

logger = logging.getLogger(__name__)

DEFAULT_HOURLY_WAGE = 1200.0
ACTIVE_ACTIONS = ("approved", "started", "paused")
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


# --- Filtering helpers ---

def ordered(events: Iterable[DomainEvent]) -> List[DomainEvent]:
    """Stable timestamp order; ties keep insertion order."""
    return sorted(events, key=lambda e: e.timestamp)


def of_type(events: Iterable[DomainEvent], event_type: str) -> List[DomainEvent]:
    return [e for e in events if e.type == event_type]


def for_store(events: Iterable[DomainEvent], store_id: str) -> List[DomainEvent]:
    return [e for e in events if e.store_id == store_id]


def on_date(events: Iterable[DomainEvent], day: date) -> List[DomainEvent]:
    return [e for e in events if e.timestamp.date() == day]


def in_month(day: date, month: str) -> bool:
    """month is 'YYYY-MM'."""
    return day.isoformat()[:7] == month


def _minutes(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / 60.0)


# --- Forecast ---

def derive_forecast_table(
    events: Iterable[DomainEvent],
    store_id: str,
    month: str,
    time_band: str = DEFAULT_BAND,
) -> Dict[Tuple[date, str], ForecastCell]:
    """Forecast cells keyed by (date, band). Last write wins per key."""
    table: Dict[Tuple[date, str], ForecastCell] = {}
    for event in ordered(of_type(events, "forecast")):
        if event.store_id != store_id or not in_month(event.date, month):
            continue
        if not matches_band(event.time_band, time_band):
            continue
        table[(event.date, event.time_band)] = ForecastCell(
            date=event.date,
            time_band=event.time_band,
            forecast_customers=event.forecast_customers,
            avg_spend=event.avg_spend,
            forecast_sales=event.forecast_sales,
        )
    return table


def _aggregate_cells(day: date, cells: List[ForecastCell]) -> Optional[ForecastCell]:
    """Sum the per-band cells of one day. A day-level 'all' cell is used only when no band cells exist."""
    banded = [c for c in cells if c.time_band != DEFAULT_BAND]
    if not banded:
        return cells[0] if cells else None
    customers = sum(c.forecast_customers for c in banded)
    sales = sum(c.forecast_sales for c in banded)
    return ForecastCell(
        date=day,
        time_band=DEFAULT_BAND,
        forecast_customers=customers,
        avg_spend=sales / customers if customers > 0 else 0,
        forecast_sales=sales,
    )


def derive_forecast_for_date(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    time_band: str = DEFAULT_BAND,
) -> Optional[ForecastCell]:
    table = derive_forecast_table(events, store_id, day.isoformat()[:7], time_band)
    if time_band == DEFAULT_BAND:
        return _aggregate_cells(day, [c for (d, _), c in table.items() if d == day])
    return table.get((day, time_band))


def derive_monthly_forecast_summary(
    events: Iterable[DomainEvent],
    store_id: str,
    month: str,
    time_band: str = DEFAULT_BAND,
) -> MonthlyForecastSummary:
    cells = derive_calendar_data(events, store_id, month, time_band)
    customers = sum(c.customers for c in cells)
    sales = sum(c.sales for c in cells)
    return MonthlyForecastSummary(
        total_customers=customers,
        avg_spend=sales / customers if customers > 0 else 0,
        total_sales=sales,
    )


def derive_calendar_data(
    events: Iterable[DomainEvent],
    store_id: str,
    month: str,
    time_band: str = DEFAULT_BAND,
) -> List[CalendarCell]:
    """One cell per day of the month, forecast figures filled in where known."""
    events = list(events)
    year, month_num = (int(part) for part in month.split("-"))
    table = derive_forecast_table(events, store_id, month, time_band)
    cells = []
    for day_num in range(1, calendar.monthrange(year, month_num)[1] + 1):
        day = date(year, month_num, day_num)
        if time_band == DEFAULT_BAND:
            cell = _aggregate_cells(day, [c for (d, _), c in table.items() if d == day])
        else:
            cell = table.get((day, time_band))
        cells.append(CalendarCell(
            date=day,
            day_of_week=DAY_NAMES[day.weekday()],
            customers=cell.forecast_customers if cell else 0,
            avg_spend=cell.avg_spend if cell else 0,
            sales=cell.forecast_sales if cell else 0,
        ))
    return cells


# --- Sales ---

def derive_sales_for_date(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    time_band: str = DEFAULT_BAND,
    bands: Optional[Dict[str, TimeBandWindow]] = None,
) -> Tuple[float, int]:
    """
    (total sales, customer count) for one day and band. A sale recorded
    without a band counts toward the band its timestamp falls in.
    """
    total = 0.0
    customers = 0
    for event in of_type(events, "sales"):
        if event.store_id != store_id or event.timestamp.date() != day:
            continue
        if not matches_band(effective_band(event.time_band, event.timestamp, bands), time_band):
            continue
        total += event.total
        customers += event.quantity
    return total, customers


def achievement_rate(actual: float, forecast: float) -> float:
    return actual / forecast * 100 if forecast > 0 else 0.0


def derive_daily_sales_metrics(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    time_band: str = DEFAULT_BAND,
    bands: Optional[Dict[str, TimeBandWindow]] = None,
) -> DailySalesMetrics:
    events = list(events)
    forecast = derive_forecast_for_date(events, store_id, day, time_band)
    actual_sales, actual_customers = derive_sales_for_date(events, store_id, day, time_band, bands)
    forecast_sales = forecast.forecast_sales if forecast else 0
    return DailySalesMetrics(
        date=day,
        time_band=time_band,
        forecast_customers=forecast.forecast_customers if forecast else 0,
        forecast_sales=forecast_sales,
        actual_customers=actual_customers,
        actual_sales=actual_sales,
        achievement_rate=achievement_rate(actual_sales, forecast_sales),
    )


def derive_monthly_sales_metrics(
    events: Iterable[DomainEvent],
    store_id: str,
    month: str,
    time_band: str = DEFAULT_BAND,
    bands: Optional[Dict[str, TimeBandWindow]] = None,
) -> List[DailySalesMetrics]:
    events = list(events)
    year, month_num = (int(part) for part in month.split("-"))
    return [
        derive_daily_sales_metrics(events, store_id, date(year, month_num, d), time_band, bands)
        for d in range(1, calendar.monthrange(year, month_num)[1] + 1)
    ]


# --- Labor ---

def fold_staff_state(
    staff_id: str,
    labor_events: Iterable[LaborEvent],
    as_of: Optional[datetime] = None,
) -> StaffState:
    """
    Fold one staff member's labor events into a StaffState.

    out --check-in--> working --check-out--> out
    working --break-start--> break --break-end--> working
    break --check-out--> out (the open break is closed)

    Any other action is ignored. Open intervals accrue up to as_of when
    given, otherwise up to the staff member's last event.
    """
    state = StaffState(staff_id=staff_id)
    session_start: Optional[datetime] = None
    break_start: Optional[datetime] = None
    last_seen: Optional[datetime] = None

    for event in ordered(e for e in labor_events if e.staff_id == staff_id):
        if as_of is not None and event.timestamp > as_of:
            break
        at = event.timestamp
        last_seen = at
        action = event.action

        if state.status == "out" and action == "check-in":
            state.status = "working"
            state.check_in_time = at
            session_start = at
        elif state.status == "working" and action == "check-out":
            state.total_minutes += _minutes(session_start, at)
            state.status = "out"
            session_start = None
        elif state.status == "working" and action == "break-start":
            state.status = "break"
            break_start = at
        elif state.status == "break" and action == "break-end":
            state.break_minutes += _minutes(break_start, at)
            state.status = "working"
            break_start = None
        elif state.status == "break" and action == "check-out":
            state.break_minutes += _minutes(break_start, at)
            state.total_minutes += _minutes(session_start, at)
            state.status = "out"
            session_start = None
            break_start = None
        else:
            logger.debug("Ignored %s for %s while %s", action, staff_id, state.status)
            continue
        state.last_action = at

    horizon = as_of if as_of is not None else last_seen
    if horizon is not None:
        if session_start is not None:
            state.total_minutes += _minutes(session_start, horizon)
        if break_start is not None:
            state.break_minutes += _minutes(break_start, horizon)
    return state


def derive_staff_states(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    staff_ids: Optional[List[str]] = None,
    as_of: Optional[datetime] = None,
) -> Dict[str, StaffState]:
    """States for the given staff plus anyone with labor events that day."""
    labor = [
        e for e in of_type(events, "labor")
        if e.store_id == store_id and e.timestamp.date() == day
    ]
    ids = list(staff_ids or [])
    for event in labor:
        if event.staff_id not in ids:
            ids.append(event.staff_id)
    return {staff_id: fold_staff_state(staff_id, labor, as_of) for staff_id in ids}


def derive_labor_metrics(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    master: Optional[MasterData] = None,
    as_of: Optional[datetime] = None,
    default_wage: float = DEFAULT_HOURLY_WAGE,
) -> LaborMetrics:
    staff_ids = [s.id for s in master.staff_for_store(store_id)] if master else []
    states = derive_staff_states(events, store_id, day, staff_ids, as_of)

    total_hours = 0.0
    total_cost = 0.0
    for staff_id, state in states.items():
        hours = state.worked_minutes / 60.0
        staff = master.find_staff(staff_id) if master else None
        wage = staff.wage if staff and staff.wage is not None else default_wage
        total_hours += hours
        total_cost += hours * wage

    return LaborMetrics(
        active_staff_count=sum(1 for s in states.values() if s.status == "working"),
        on_break_count=sum(1 for s in states.values() if s.status == "break"),
        total_hours_today=round(total_hours, 2),
        labor_cost_estimate=round(total_cost),
    )


def _star_mix(levels: List[int]) -> StarMix:
    return StarMix(star3=levels.count(3), star2=levels.count(2), star1=levels.count(1))


def derive_weekly_labor_metrics(
    events: Iterable[DomainEvent],
    store_id: str,
    week_start: date,
    master: MasterData,
    as_of: Optional[datetime] = None,
    default_wage: float = DEFAULT_HOURLY_WAGE,
) -> WeeklyLaborMetrics:
    """
    Hours, labor cost and sales for the seven days from week_start.

    Only staff on the store's roster count, and only on days they checked
    in. A session still open accrues up to as_of on the as_of day and up
    to the staff member's last event on earlier days. Days after as_of
    stay empty.
    """
    events = list(events)
    roster = {s.id: s for s in master.staff_for_store(store_id)}
    labor = [
        e for e in of_type(events, "labor")
        if e.store_id == store_id and e.staff_id in roster
    ]

    rows: List[WeeklyLaborDay] = []
    worked: Dict[str, int] = {}
    total_hours = 0.0
    total_cost = 0.0
    total_sales = 0.0
    for offset in range(7):
        day = week_start + timedelta(days=offset)
        if as_of is not None and day > as_of.date():
            day_labor = []
        else:
            day_labor = [e for e in labor if e.timestamp.date() == day]
        horizon = as_of if as_of is not None and as_of.date() == day else None

        hours = 0.0
        cost = 0.0
        levels: List[int] = []
        for staff_id in sorted({e.staff_id for e in day_labor}):
            state = fold_staff_state(staff_id, day_labor, horizon)
            if state.check_in_time is None:
                continue
            staff = roster[staff_id]
            wage = staff.wage if staff.wage is not None else default_wage
            staff_hours = state.worked_minutes / 60.0
            hours += staff_hours
            cost += staff_hours * wage
            levels.append(staff.star_level)
            worked[staff_id] = staff.star_level

        sales_total, _ = derive_sales_for_date(events, store_id, day)
        sales = sales_total if sales_total > 0 else None
        rows.append(WeeklyLaborDay(
            date=day,
            hours=round(hours, 1),
            labor_cost=round(cost),
            sales=sales,
            labor_rate=round(cost / sales * 100, 1) if sales else None,
            sales_per_labor_cost=round(sales / cost, 2) if sales and cost > 0 else None,
            staff_count=len(levels),
            star_mix=_star_mix(levels),
        ))
        total_hours += hours
        total_cost += cost
        total_sales += sales_total

    return WeeklyLaborMetrics(
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
        days=rows,
        total_hours=round(total_hours, 1),
        total_labor_cost=round(total_cost),
        total_sales=total_sales if total_sales > 0 else None,
        avg_labor_rate=round(total_cost / total_sales * 100, 1) if total_sales > 0 else None,
        sales_per_labor_cost=(
            round(total_sales / total_cost, 2) if total_sales > 0 and total_cost > 0 else None
        ),
        staff_count_total=len(worked),
        star_mix_total=_star_mix(list(worked.values())),
        is_calculating=all(row.staff_count == 0 for row in rows),
    )


def select_guardrail_bracket(
    brackets: List[LaborGuardrailBracket], forecast_sales: float
) -> LaborGuardrailBracket:
    """The lowest bracket whose high_sales covers the forecast, else the highest."""
    by_sales = sorted(brackets, key=lambda b: b.high_sales)
    for bracket in by_sales:
        if bracket.high_sales >= forecast_sales:
            return bracket
    return by_sales[-1]


def project_daily_sales(
    actual_sales: float, forecast_sales: float, as_of: datetime, open_hour: int, close_hour: int
) -> float:
    """
    Sales so far scaled to the whole business day. Before the first sale
    the forecast stands in. After close the actual total is final.
    """
    if actual_sales <= 0:
        return forecast_sales
    opened = datetime.combine(as_of.date(), time(hour=open_hour))
    business_minutes = (close_hour - open_hour) * 60.0
    elapsed = min(_minutes(opened, as_of), business_minutes)
    if elapsed <= 0:
        return actual_sales
    return actual_sales * business_minutes / elapsed


def derive_labor_guardrail_summary(
    forecast_sales: float,
    projected_sales: float,
    planned_labor_cost: float,
    is_weekend: bool,
    policy: LaborGuardrailPolicy,
) -> LaborGuardrailSummary:
    """
    Compare the projected end-of-day labor rate with the good and bad
    rates of the bracket the forecast falls in.

    danger: at or above the bad rate. caution: at or above the good rate.
    """
    bracket = select_guardrail_bracket(policy.brackets_for(is_weekend), forecast_sales)
    rate = planned_labor_cost / projected_sales if projected_sales > 0 else 0.0
    delta_to_good = rate - bracket.good_rate
    delta_to_bad = rate - bracket.bad_rate
    if delta_to_bad >= 0:
        status = "danger"
    elif delta_to_good >= 0:
        status = "caution"
    else:
        status = "safe"
    return LaborGuardrailSummary(
        day_type="weekend" if is_weekend else "weekday",
        bracket_high_sales=bracket.high_sales,
        bracket_low_sales=bracket.low_sales,
        good_rate=bracket.good_rate,
        bad_rate=bracket.bad_rate,
        projected_labor_cost=planned_labor_cost,
        projected_sales=projected_sales,
        projected_labor_rate=rate,
        delta_to_good=delta_to_good,
        delta_to_bad=delta_to_bad,
        status=status,
    )


def derive_daily_labor_guardrail(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    master: MasterData,
    as_of: datetime,
    policy: LaborGuardrailPolicy,
    open_hour: int,
    close_hour: int,
    default_wage: float = DEFAULT_HOURLY_WAGE,
) -> LaborGuardrailSummary:
    """
    Guardrail for one business day. While the day is open the labor cost so
    far is scaled by the policy's planned_cost_factor; after close it is final.
    """
    events = list(events)
    sales = derive_daily_sales_metrics(events, store_id, day)
    labor = derive_labor_metrics(events, store_id, day, master, as_of, default_wage)

    closed = business_day_closed(day, as_of, close_hour)
    reference = as_of if as_of.date() == day else datetime.combine(day, time(hour=open_hour))
    if closed:
        projected_sales = sales.actual_sales or sales.forecast_sales
        planned_cost = labor.labor_cost_estimate
    else:
        projected_sales = project_daily_sales(
            sales.actual_sales, sales.forecast_sales, reference, open_hour, close_hour
        )
        planned_cost = labor.labor_cost_estimate * policy.planned_cost_factor
    return derive_labor_guardrail_summary(
        sales.forecast_sales, projected_sales, planned_cost, day.weekday() >= 5, policy
    )


# --- Prep ---

def derive_prep_statuses(
    events: Iterable[DomainEvent], store_id: str, day: date
) -> Dict[Tuple[str, Optional[str]], PrepEvent]:
    """Latest prep event per (prep_item_id, batch_id)."""
    latest: Dict[Tuple[str, Optional[str]], PrepEvent] = {}
    for event in ordered(of_type(events, "prep")):
        if event.store_id != store_id or event.timestamp.date() != day:
            continue
        latest[(event.prep_item_id, event.batch_id)] = event
    return latest


def derive_prep_metrics(
    events: Iterable[DomainEvent], store_id: str, day: date
) -> PrepMetrics:
    statuses = [e.status for e in derive_prep_statuses(events, store_id, day).values()]
    planned = statuses.count("planned")
    started = statuses.count("started")
    completed = statuses.count("completed")
    total = planned + started + completed
    return PrepMetrics(
        planned_count=planned,
        in_progress_count=started,
        completed_count=completed,
        completion_rate=completed / total * 100 if total > 0 else 0,
    )


# --- Deliveries ---

def derive_delivery_statuses(
    events: Iterable[DomainEvent], store_id: str, day: date
) -> List[DeliveryEvent]:
    """Latest event per delivery, identified by supplier, item and expected time."""
    latest: Dict[Tuple[str, str, datetime], DeliveryEvent] = {}
    for event in ordered(of_type(events, "delivery")):
        if event.store_id != store_id or event.timestamp.date() != day:
            continue
        latest[(event.supplier_id, event.item_name, event.expected_at)] = event
    return list(latest.values())


# --- Exceptions and cockpit ---

def derive_exceptions(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    as_of: datetime,
    bands: Dict[str, TimeBandWindow],
    master: Optional[MasterData] = None,
    thresholds: Optional[DetectorThresholds] = None,
) -> List[ExceptionItem]:
    """Operational exceptions shown on the exception board."""
    events = list(events)
    thresholds = thresholds or DetectorThresholds()
    current_band = time_band_for(as_of, bands)
    exceptions: List[ExceptionItem] = []

    for delivery in derive_delivery_statuses(events, store_id, day):
        if delivery.status != "delayed":
            continue
        delay = delivery.delay_minutes
        critical = delay > thresholds.delivery_critical_delay_minutes
        exceptions.append(ExceptionItem(
            id=f"exc-{delivery.id}",
            type="delivery-delay",
            severity="critical" if critical else "warning",
            title=f"Delivery delayed: {delivery.item_name}",
            description=f"{delay} minutes late",
            related_event_id=delivery.id or "",
            detected_at=delivery.timestamp,
            impact=ExceptionImpact(
                time_band=current_band,
                affected_items=[AffectedItem(id=delivery.id or "", name=delivery.item_name, type="prep")],
                impact_type="delay",
                impact_severity="high" if delay > 60 else "medium" if critical else "low",
            ),
        ))

    labor = derive_labor_metrics(events, store_id, day, master, as_of)
    if labor.active_staff_count < thresholds.staff_shortage_count:
        short = labor.active_staff_count < thresholds.staff_shortage_count - 1
        exceptions.append(ExceptionItem(
            id=f"exc-labor-{day.isoformat()}",
            type="staff-shortage",
            severity="critical" if short else "warning",
            title="Staff shortage",
            description=f"{labor.active_staff_count} staff working",
            detected_at=as_of,
            impact=ExceptionImpact(
                time_band=current_band,
                impact_type="delay",
                impact_severity="high" if short else "medium",
            ),
        ))

    prep = derive_prep_metrics(events, store_id, day)
    if prep.completion_rate < thresholds.prep_warning_rate and prep.planned_count > 0:
        critical = prep.completion_rate < thresholds.prep_critical_rate
        exceptions.append(ExceptionItem(
            id=f"exc-prep-{day.isoformat()}",
            type="prep-behind",
            severity="critical" if critical else "warning",
            title="Prep behind schedule",
            description=f"{round(prep.completion_rate)}% complete",
            detected_at=as_of,
            impact=ExceptionImpact(
                time_band=current_band,
                impact_type="stockout",
                impact_severity="high" if critical else "medium",
            ),
        ))

    sales = derive_daily_sales_metrics(events, store_id, day, DEFAULT_BAND)
    if sales.achievement_rate > thresholds.demand_surge_rate:
        critical = sales.achievement_rate > 150
        exceptions.append(ExceptionItem(
            id=f"exc-demand-{day.isoformat()}",
            type="demand-surge",
            severity="critical" if critical else "warning",
            title="Demand surge",
            description=f"{round(sales.achievement_rate)}% of forecast",
            detected_at=as_of,
            impact=ExceptionImpact(
                time_band=current_band,
                impact_type="stockout",
                impact_severity="high" if critical else "medium",
            ),
        ))

    return exceptions


def derive_cockpit_metrics(
    events: Iterable[DomainEvent],
    store_id: str,
    day: date,
    time_band: str,
    as_of: datetime,
    bands: Dict[str, TimeBandWindow],
    master: Optional[MasterData] = None,
    thresholds: Optional[DetectorThresholds] = None,
    default_wage: float = DEFAULT_HOURLY_WAGE,
) -> CockpitMetrics:
    events = list(events)
    sales = derive_daily_sales_metrics(events, store_id, day, time_band, bands)
    labor = derive_labor_metrics(events, store_id, day, master, as_of, default_wage)
    prep = derive_prep_metrics(events, store_id, day)
    exceptions = derive_exceptions(events, store_id, day, as_of, bands, master, thresholds)

    rate = sales.achievement_rate
    trend = "up" if rate > 100 else "down" if rate < 80 else "stable"

    balance = prep.completion_rate - (rate - 100)
    status = "oversupply" if balance > 20 else "undersupply" if balance < -20 else "balanced"

    return CockpitMetrics(
        sales=SalesSummary(
            forecast=sales.forecast_sales,
            actual=sales.actual_sales,
            achievement_rate=rate,
            trend=trend,
        ),
        labor=labor,
        supply_demand=SupplyDemandSummary(status=status, score=max(0, min(100, 50 + balance))),
        operations=prep,
        exceptions=ExceptionSummary(
            count=len(exceptions),
            critical_count=sum(1 for e in exceptions if e.severity == "critical"),
        ),
    )


# --- Todos ---

class TodoIndex:
    """
    Current decision state per (proposal_id, target_id), built once per read.

    Later events win; identical timestamps fall back to insertion order.
    A rejected event on the aggregate target closes every target of its
    proposal.
    """

    def __init__(self, events: Iterable[DomainEvent], store_id: Optional[str] = None):
        self._latest: Dict[Tuple[str, str], DecisionEvent] = {}
        for event in ordered(of_type(events, "decision")):
            if store_id is not None and event.store_id != store_id:
                continue
            self._apply(event)

    def _apply(self, event: DecisionEvent) -> None:
        if event.action == "rejected" and event.target_id == AGGREGATE_TARGET:
            keys = [k for k in self._latest if k[0] == event.proposal_id]
            for key in keys:
                self._latest[key] = event
            if not keys:
                self._latest[(event.proposal_id, AGGREGATE_TARGET)] = event
            return
        self._latest[(event.proposal_id, event.target_id)] = event

    def __len__(self) -> int:
        return len(self._latest)

    def get(self, proposal_id: str, target_id: str) -> Optional[DecisionEvent]:
        return self._latest.get((proposal_id, target_id))

    def targets(self, proposal_id: str) -> Dict[str, DecisionEvent]:
        """Current state of every target of one proposal."""
        return {t: e for (p, t), e in self._latest.items() if p == proposal_id}

    def has_proposal(self, proposal_id: str) -> bool:
        return any(p == proposal_id for p, _ in self._latest)

    def active(self, role_id: Optional[str] = None) -> List[DecisionEvent]:
        todos = [e for e in self._latest.values() if e.action in ACTIVE_ACTIONS]
        if role_id:
            todos = [e for e in todos if role_id in e.distributed_to_roles]
        return todos

    def completed(self, role_id: Optional[str] = None) -> List[DecisionEvent]:
        todos = [e for e in self._latest.values() if e.action == "completed"]
        if role_id:
            todos = [e for e in todos if role_id in e.distributed_to_roles]
        return todos

    def stats(self, role_id: Optional[str] = None) -> TodoStats:
        active = self.active(role_id)
        pending = sum(1 for e in active if e.action == "approved")
        in_progress = sum(1 for e in active if e.action == "started")
        paused = sum(1 for e in active if e.action == "paused")
        completed = len(self.completed(role_id))
        return TodoStats(
            pending_count=pending,
            in_progress_count=in_progress,
            paused_count=paused,
            completed_count=completed,
            total=pending + in_progress + paused + completed,
        )


def overdue_todos(index: TodoIndex, as_of: datetime) -> List[DecisionEvent]:
    """Active todos whose deadline has passed."""
    return [t for t in index.active() if t.deadline is not None and t.deadline < as_of]


def business_day_closed(day: date, as_of: datetime, close_hour: int) -> bool:
    if close_hour >= 24:
        return as_of.date() > day
    return as_of >= datetime.combine(day, time(hour=close_hour))
