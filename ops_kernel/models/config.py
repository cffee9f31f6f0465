"""Kernel configuration — thresholds, incentive policy, time bands, storage."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class TimeBandWindow(BaseModel):
    """Hour window [start_hour, end_hour) of a named part of the business day."""

    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=1, le=24)

    @property
    def cron(self) -> str:
        return f"* {self.start_hour}-{self.end_hour - 1} * * *"


def default_time_bands() -> Dict[str, TimeBandWindow]:
    return {
        "lunch": TimeBandWindow(start_hour=11, end_hour=14),
        "idle": TimeBandWindow(start_hour=14, end_hour=17),
        "dinner": TimeBandWindow(start_hour=17, end_hour=22),
    }


class DetectorThresholds(BaseModel):
    """Fixed thresholds the incident detector compares views against."""

    demand_drop_warning_rate: float = 80.0      # achievement % below this → warning
    demand_drop_critical_rate: float = 50.0     # achievement % below this → critical
    labor_cost_warning_ratio: float = 0.35      # labor cost / sales
    labor_cost_critical_ratio: float = 0.50
    no_break_after_minutes: float = 240.0
    prep_warning_rate: float = 50.0
    prep_critical_rate: float = 30.0
    delivery_critical_delay_minutes: int = 30
    staff_shortage_count: int = 3               # exceptions: fewer working staff than this
    demand_surge_rate: float = 120.0


class StoreTarget(BaseModel):
    weekday: float
    weekend: float


def _default_store_targets() -> Dict[str, StoreTarget]:
    return {
        "1": StoreTarget(weekday=280000, weekend=420000),
        "2": StoreTarget(weekday=250000, weekend=380000),
        "3": StoreTarget(weekday=320000, weekend=480000),
        "4": StoreTarget(weekday=230000, weekend=350000),
    }


def _default_xp() -> Dict[str, int]:
    return {"low": 5, "medium": 10, "high": 20, "critical": 30}


class IncentivePolicy(BaseModel):
    pool_share: float = Field(ge=0, le=1, default=0.75)
    points_per_hour: float = 10.0
    xp_by_priority: Dict[str, int] = Field(default_factory=_default_xp)
    store_targets: Dict[str, StoreTarget] = Field(default_factory=_default_store_targets)
    fallback_target: StoreTarget = StoreTarget(weekday=250000, weekend=380000)
    business_open_hour: int = 11
    business_close_hour: int = 22

    def target_for(self, store_id: str, is_weekend: bool) -> float:
        target = self.store_targets.get(store_id, self.fallback_target)
        return target.weekend if is_weekend else target.weekday


class LaborGuardrailBracket(BaseModel):
    """Labor-rate band for a daily sales level: good_rate at high_sales, bad_rate at low_sales."""

    high_sales: float = Field(gt=0)
    low_sales: float = Field(ge=0)
    cost: float = Field(ge=0)
    good_rate: float = Field(gt=0)
    bad_rate: float = Field(gt=0)


def _bracket(high: float, low: float, cost: float, good: float, bad: float) -> LaborGuardrailBracket:
    return LaborGuardrailBracket(high_sales=high, low_sales=low, cost=cost, good_rate=good, bad_rate=bad)


def _default_weekday_brackets() -> List[LaborGuardrailBracket]:
    return [
        _bracket(200000, 150000, 28000, 0.14, 0.19),
        _bracket(300000, 200000, 36000, 0.12, 0.18),
        _bracket(400000, 300000, 42000, 0.105, 0.14),
        _bracket(500000, 400000, 48000, 0.096, 0.12),
    ]


def _default_weekend_brackets() -> List[LaborGuardrailBracket]:
    return [
        _bracket(600000, 450000, 48000, 0.08, 0.107),
        _bracket(800000, 600000, 56000, 0.07, 0.093),
        _bracket(1000000, 800000, 62000, 0.062, 0.078),
        _bracket(1200000, 1000000, 68000, 0.057, 0.068),
    ]


class LaborGuardrailPolicy(BaseModel):
    weekday: List[LaborGuardrailBracket] = Field(default_factory=_default_weekday_brackets, min_length=1)
    weekend: List[LaborGuardrailBracket] = Field(default_factory=_default_weekend_brackets, min_length=1)
    planned_cost_factor: float = Field(gt=0, default=1.2)  # Labor cost so far → full-day estimate

    def brackets_for(self, is_weekend: bool) -> List[LaborGuardrailBracket]:
        return self.weekend if is_weekend else self.weekday


class OpsConfig(BaseModel):
    """Configuration for the state container and everything it drives."""

    default_hourly_wage: float = 1200.0
    time_bands: Dict[str, TimeBandWindow] = Field(default_factory=default_time_bands)
    thresholds: DetectorThresholds = DetectorThresholds()
    incentives: IncentivePolicy = IncentivePolicy()
    labor_guardrails: LaborGuardrailPolicy = LaborGuardrailPolicy()
    replay_interval_seconds: float = Field(ge=0, default=1.0)
    storage_path: Optional[str] = None          # None → in-memory SQLite
    storage_namespace: str = "all_os_store_v1"
    proposal_deadline_minutes: int = 60
