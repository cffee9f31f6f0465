"""Ops Kernel data models."""

from ops_kernel.models.app_state import AppState
from ops_kernel.models.config import (
    DetectorThresholds,
    IncentivePolicy,
    LaborGuardrailBracket,
    LaborGuardrailPolicy,
    OpsConfig,
    StoreTarget,
    TimeBandWindow,
)
from ops_kernel.models.events import (
    AGGREGATE_TARGET,
    DecisionEvent,
    DeliveryEvent,
    DomainEvent,
    ForecastEvent,
    LaborEvent,
    PrepEvent,
    SalesEvent,
    TimeBand,
)
from ops_kernel.models.incentive import IncentiveDistribution, IncentivePool, StaffShare
from ops_kernel.models.incident import (
    AgentId,
    Incident,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
)
from ops_kernel.models.master import MasterData, Menu, PrepItem, Role, Staff, Store
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
    WeeklyLaborDay,
    WeeklyLaborMetrics,
)
from ops_kernel.models.proposal import Proposal
from ops_kernel.models.replay import ReplayState

__all__ = [
    "AGGREGATE_TARGET",
    "AgentId",
    "AppState",
    "CalendarCell",
    "CockpitMetrics",
    "DailySalesMetrics",
    "DecisionEvent",
    "DeliveryEvent",
    "DetectorThresholds",
    "DomainEvent",
    "ExceptionItem",
    "ForecastCell",
    "ForecastEvent",
    "IncentiveDistribution",
    "IncentivePolicy",
    "IncentivePool",
    "Incident",
    "IncidentSeverity",
    "IncidentStatus",
    "IncidentType",
    "LaborEvent",
    "LaborGuardrailBracket",
    "LaborGuardrailPolicy",
    "LaborGuardrailSummary",
    "LaborMetrics",
    "MasterData",
    "Menu",
    "MonthlyForecastSummary",
    "OpsConfig",
    "PrepEvent",
    "PrepItem",
    "PrepMetrics",
    "Proposal",
    "ReplayState",
    "Role",
    "SalesEvent",
    "Staff",
    "StaffShare",
    "StaffState",
    "Store",
    "StoreTarget",
    "TimeBand",
    "TimeBandWindow",
    "TodoStats",
    "WeeklyLaborDay",
    "WeeklyLaborMetrics",
]
