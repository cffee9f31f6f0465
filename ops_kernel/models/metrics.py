"""Derived views — recomputed from the event log on every read, never stored."""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

from ops_kernel.models.events import TimeBand

StaffStatus = Literal["out", "working", "break"]
Trend = Literal["up", "down", "stable"]


class StaffState(BaseModel):
    staff_id: str
    status: StaffStatus = "out"
    last_action: Optional[datetime] = None
    check_in_time: Optional[datetime] = None
    total_minutes: float = 0                # Checked-in minutes, breaks included
    break_minutes: float = 0

    @property
    def worked_minutes(self) -> float:
        return max(0.0, self.total_minutes - self.break_minutes)


class LaborMetrics(BaseModel):
    active_staff_count: int = 0
    on_break_count: int = 0
    total_hours_today: float = 0
    labor_cost_estimate: float = 0


class ForecastCell(BaseModel):
    date: date
    time_band: TimeBand
    forecast_customers: int = 0
    avg_spend: float = 0
    forecast_sales: float = 0


class CalendarCell(BaseModel):
    date: date
    day_of_week: str
    customers: int = 0
    avg_spend: float = 0
    sales: float = 0


class MonthlyForecastSummary(BaseModel):
    total_customers: int = 0
    avg_spend: float = 0
    total_sales: float = 0


class DailySalesMetrics(BaseModel):
    date: date
    time_band: TimeBand
    forecast_customers: int = 0
    forecast_sales: float = 0
    actual_customers: int = 0
    actual_sales: float = 0
    achievement_rate: float = 0             # actual_sales / forecast_sales * 100


class PrepMetrics(BaseModel):
    planned_count: int = 0
    in_progress_count: int = 0
    completed_count: int = 0
    completion_rate: float = 0


class AffectedItem(BaseModel):
    id: str
    name: str
    type: Literal["prep", "menu"]


class ExceptionImpact(BaseModel):
    time_band: TimeBand
    affected_items: List[AffectedItem] = []
    impact_type: Literal["stockout", "delay", "excess", "quality"]
    impact_severity: Literal["high", "medium", "low"]


class ExceptionItem(BaseModel):
    id: str
    type: Literal["delivery-delay", "staff-shortage", "demand-surge", "prep-behind"]
    severity: Literal["warning", "critical"]
    title: str
    description: str
    related_event_id: str = ""
    detected_at: datetime
    impact: ExceptionImpact


class SalesSummary(BaseModel):
    forecast: float = 0
    actual: float = 0
    achievement_rate: float = 0
    trend: Trend = "stable"


class SupplyDemandSummary(BaseModel):
    status: Literal["balanced", "oversupply", "undersupply"] = "balanced"
    score: float = 50


class ExceptionSummary(BaseModel):
    count: int = 0
    critical_count: int = 0


class CockpitMetrics(BaseModel):
    sales: SalesSummary = SalesSummary()
    labor: LaborMetrics = LaborMetrics()
    supply_demand: SupplyDemandSummary = SupplyDemandSummary()
    operations: PrepMetrics = PrepMetrics()
    exceptions: ExceptionSummary = ExceptionSummary()


class TodoStats(BaseModel):
    pending_count: int = 0                  # approved, not started
    in_progress_count: int = 0
    paused_count: int = 0
    completed_count: int = 0
    total: int = 0


class StarMix(BaseModel):
    star3: int = 0
    star2: int = 0
    star1: int = 0


class WeeklyLaborDay(BaseModel):
    date: date
    hours: float = 0
    labor_cost: float = 0
    sales: Optional[float] = None           # None when the day has no sales
    labor_rate: Optional[float] = None      # labor_cost / sales * 100
    sales_per_labor_cost: Optional[float] = None
    staff_count: int = 0
    star_mix: StarMix = StarMix()


class WeeklyLaborMetrics(BaseModel):
    week_start: date
    week_end: date
    days: List[WeeklyLaborDay] = []
    total_hours: float = 0
    total_labor_cost: float = 0
    total_sales: Optional[float] = None
    avg_labor_rate: Optional[float] = None
    sales_per_labor_cost: Optional[float] = None
    staff_count_total: int = 0              # Distinct staff who worked during the week
    star_mix_total: StarMix = StarMix()
    is_calculating: bool = False            # No staff worked on any day yet


GuardrailStatus = Literal["safe", "caution", "danger"]


class LaborGuardrailSummary(BaseModel):
    """Where the projected end-of-day labor rate sits against its bracket."""

    day_type: Literal["weekday", "weekend"]
    bracket_high_sales: float
    bracket_low_sales: float
    good_rate: float
    bad_rate: float
    projected_labor_cost: float = 0
    projected_sales: float = 0
    projected_labor_rate: float = 0         # Ratio, not percent
    delta_to_good: float = 0                # Positive: above the good rate
    delta_to_bad: float = 0                 # Positive: above the bad rate
    status: GuardrailStatus = "safe"
