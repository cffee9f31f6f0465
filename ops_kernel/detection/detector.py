"""
Incident Detector — threshold checks over derived views.

Behavioral Contract:
- Stateless: detect() only reads the events it is given.
- Every candidate carries a signature (type:time_band:date[:subject]);
  the incident id is a hash of the store and signature, so the same
  condition always maps to the same incident.
- The IncidentRegistry upserts by id. Re-scanning identical inputs
  changes nothing. Resolved incidents stay resolved.
"""

import hashlib
import logging
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from ops_kernel.derivation.derive import (
    TodoIndex,
    achievement_rate,
    derive_delivery_statuses,
    derive_forecast_for_date,
    derive_forecast_table,
    derive_labor_metrics,
    derive_prep_metrics,
    derive_sales_for_date,
    derive_staff_states,
    overdue_todos,
)
from ops_kernel.derivation.time_bands import DEFAULT_BAND, band_closed
from ops_kernel.errors import NotFoundError, ValidationError
from ops_kernel.models.config import OpsConfig
from ops_kernel.models.events import DomainEvent
from ops_kernel.models.incident import (
    STATUS_RANK,
    AgentId,
    Incident,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
)
from ops_kernel.models.master import MasterData

logger = logging.getLogger(__name__)

# Lead agent and supporting agents per incident type.
AGENT_TABLE = {
    IncidentType.DEMAND_DROP: (AgentId.POS, [AgentId.MANAGEMENT, AgentId.PLAN]),
    IncidentType.LABOR_OVERRUN: (AgentId.HR, [AgentId.MANAGEMENT, AgentId.OPS]),
    IncidentType.STOCKOUT_RISK: (AgentId.SUPPLY, [AgentId.OPS, AgentId.PLAN]),
    IncidentType.DELIVERY_DELAY: (AgentId.SUPPLY, [AgentId.OPS]),
    IncidentType.OPS_DELAY: (AgentId.OPS, [AgentId.MANAGEMENT]),
}


def incident_signature(
    incident_type: IncidentType, time_band: str, day: date, subject: Optional[str] = None
) -> str:
    parts = [incident_type.value, time_band, day.isoformat()]
    if subject:
        parts.append(subject)
    return ":".join(parts)


def incident_id(store_id: str, signature: str) -> str:
    digest = hashlib.sha256(f"{store_id}|{signature}".encode()).hexdigest()
    return f"inc_{digest[:16]}"


class ScanContext:
    """Inputs of one scan, shared by every rule."""

    def __init__(
        self,
        events: List[DomainEvent],
        store_id: str,
        day: date,
        as_of: datetime,
        config: OpsConfig,
        master: Optional[MasterData] = None,
    ):
        self.events = events
        self.store_id = store_id
        self.day = day
        self.as_of = as_of
        self.config = config
        self.master = master
        self.thresholds = config.thresholds

    def make_incident(
        self,
        incident_type: IncidentType,
        severity: IncidentSeverity,
        summary: str,
        time_band: str = DEFAULT_BAND,
        subject: Optional[str] = None,
        metrics: Optional[dict] = None,
    ) -> Incident:
        signature = incident_signature(incident_type, time_band, self.day, subject)
        lead, supporting = AGENT_TABLE[incident_type]
        return Incident(
            id=incident_id(self.store_id, signature),
            signature=signature,
            type=incident_type,
            severity=severity,
            store_id=self.store_id,
            date=self.day,
            time_band=time_band,
            subject=subject,
            lead_agent=lead,
            supporting_agents=list(supporting),
            summary=summary,
            metrics=metrics or {},
            detected_at=self.as_of,
            updated_at=self.as_of,
        )


IncidentRule = Callable[[ScanContext], List[Incident]]


class IncidentDetector:
    """
    Tier 0 detector: deterministic threshold rules.
    Rules are evaluated in registration order.
    """

    def __init__(self, config: Optional[OpsConfig] = None):
        self.config = config or OpsConfig()
        self._rules: List[IncidentRule] = []
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        self._rules.append(self._check_demand_drop)
        self._rules.append(self._check_labor_overrun)
        self._rules.append(self._check_stockout_risk)
        self._rules.append(self._check_delivery_delay)
        self._rules.append(self._check_ops_delay)

    def register_rule(self, rule: IncidentRule) -> None:
        self._rules.append(rule)

    def detect(
        self,
        events: List[DomainEvent],
        store_id: str,
        day: date,
        current_time: Optional[datetime] = None,
        master: Optional[MasterData] = None,
    ) -> List[Incident]:
        """Run every rule and return the incident candidates, deduplicated by id."""
        if current_time is None:
            current_time = datetime.utcnow()

        ctx = ScanContext(list(events), store_id, day, current_time, self.config, master)
        found: Dict[str, Incident] = {}
        for rule in self._rules:
            for incident in rule(ctx):
                found.setdefault(incident.id, incident)
        return list(found.values())

    def _check_demand_drop(self, ctx: ScanContext) -> List[Incident]:
        """
        Sales achievement per band. A band is judged once it has sales or
        its window has closed. A day-level forecast is judged the same way
        against the whole day.
        """
        incidents = []
        bands = list(ctx.config.time_bands.keys())
        day_table = derive_forecast_table(ctx.events, ctx.store_id, ctx.day.isoformat()[:7])
        if (ctx.day, DEFAULT_BAND) in day_table:
            bands.append(DEFAULT_BAND)

        for band in bands:
            if band == DEFAULT_BAND:
                forecast = day_table[(ctx.day, DEFAULT_BAND)]
            else:
                forecast = derive_forecast_for_date(ctx.events, ctx.store_id, ctx.day, band)
            if forecast is None or forecast.forecast_sales <= 0:
                continue

            actual, _ = derive_sales_for_date(ctx.events, ctx.store_id, ctx.day, band, ctx.config.time_bands)
            if actual <= 0 and not band_closed(band, ctx.day, ctx.as_of, ctx.config.time_bands):
                continue

            rate = achievement_rate(actual, forecast.forecast_sales)
            if rate < ctx.thresholds.demand_drop_critical_rate:
                severity = IncidentSeverity.CRITICAL
            elif rate < ctx.thresholds.demand_drop_warning_rate:
                severity = IncidentSeverity.WARNING
            else:
                continue

            incidents.append(ctx.make_incident(
                IncidentType.DEMAND_DROP,
                severity,
                summary=f"Sales at {rate:.0f}% of forecast ({actual:.0f} / {forecast.forecast_sales:.0f})",
                time_band=band,
                metrics={"achievement_rate": round(rate, 1), "actual_sales": actual,
                         "forecast_sales": forecast.forecast_sales},
            ))
        return incidents

    def _check_labor_overrun(self, ctx: ScanContext) -> List[Incident]:
        incidents = []
        labor = derive_labor_metrics(
            ctx.events, ctx.store_id, ctx.day, ctx.master, ctx.as_of,
            ctx.config.default_hourly_wage,
        )
        sales, _ = derive_sales_for_date(ctx.events, ctx.store_id, ctx.day)
        if sales > 0:
            ratio = labor.labor_cost_estimate / sales
            severity = None
            if ratio > ctx.thresholds.labor_cost_critical_ratio:
                severity = IncidentSeverity.CRITICAL
            elif ratio > ctx.thresholds.labor_cost_warning_ratio:
                severity = IncidentSeverity.WARNING
            if severity is not None:
                incidents.append(ctx.make_incident(
                    IncidentType.LABOR_OVERRUN,
                    severity,
                    summary=f"Labor cost is {ratio * 100:.0f}% of sales",
                    metrics={"labor_cost_ratio": round(ratio, 3),
                             "labor_cost": labor.labor_cost_estimate, "sales": sales},
                ))

        staff_ids = [s.id for s in ctx.master.staff_for_store(ctx.store_id)] if ctx.master else []
        states = derive_staff_states(ctx.events, ctx.store_id, ctx.day, staff_ids, ctx.as_of)
        for staff_id, state in states.items():
            if state.total_minutes >= ctx.thresholds.no_break_after_minutes and state.break_minutes == 0:
                incidents.append(ctx.make_incident(
                    IncidentType.LABOR_OVERRUN,
                    IncidentSeverity.INFO,
                    summary=f"{staff_id} has worked {state.total_minutes / 60:.1f}h without a break",
                    subject=staff_id,
                    metrics={"total_minutes": state.total_minutes},
                ))
        return incidents

    def _check_stockout_risk(self, ctx: ScanContext) -> List[Incident]:
        prep = derive_prep_metrics(ctx.events, ctx.store_id, ctx.day)
        if prep.planned_count == 0 or prep.completion_rate >= ctx.thresholds.prep_warning_rate:
            return []
        if prep.completion_rate < ctx.thresholds.prep_critical_rate:
            severity = IncidentSeverity.CRITICAL
        else:
            severity = IncidentSeverity.WARNING
        return [ctx.make_incident(
            IncidentType.STOCKOUT_RISK,
            severity,
            summary=f"Prep is {prep.completion_rate:.0f}% complete with {prep.planned_count} items not started",
            metrics={"completion_rate": round(prep.completion_rate, 1),
                     "planned_count": prep.planned_count},
        )]

    def _check_delivery_delay(self, ctx: ScanContext) -> List[Incident]:
        incidents = []
        for delivery in derive_delivery_statuses(ctx.events, ctx.store_id, ctx.day):
            if delivery.status != "delayed" or delivery.delay_minutes <= 0:
                continue
            if delivery.delay_minutes > ctx.thresholds.delivery_critical_delay_minutes:
                severity = IncidentSeverity.CRITICAL
            else:
                severity = IncidentSeverity.WARNING
            incidents.append(ctx.make_incident(
                IncidentType.DELIVERY_DELAY,
                severity,
                summary=f"Delivery of {delivery.item_name} is {delivery.delay_minutes} minutes late",
                time_band=delivery.time_band,
                subject=delivery.item_name,
                metrics={"delay_minutes": delivery.delay_minutes,
                         "supplier_id": delivery.supplier_id},
            ))
        return incidents

    def _check_ops_delay(self, ctx: ScanContext) -> List[Incident]:
        incidents = []
        index = TodoIndex(ctx.events, ctx.store_id)
        seen = set()
        for todo in overdue_todos(index, ctx.as_of):
            if todo.proposal_id in seen:
                continue
            seen.add(todo.proposal_id)
            late = (ctx.as_of - todo.deadline).total_seconds() / 60.0
            incidents.append(ctx.make_incident(
                IncidentType.OPS_DELAY,
                IncidentSeverity.WARNING,
                summary=f"'{todo.title}' is {late:.0f} minutes past its deadline",
                time_band=todo.time_band,
                subject=todo.proposal_id,
                metrics={"minutes_overdue": round(late, 1)},
            ))
        return incidents


class IncidentRegistry:
    """
    Incidents by id. Never deletes; incidents only move forward and
    end in RESOLVED.
    """

    def __init__(self, incidents: Optional[List[Incident]] = None):
        self._incidents: Dict[str, Incident] = {}
        for incident in incidents or []:
            self._incidents[incident.id] = incident

    def __len__(self) -> int:
        return len(self._incidents)

    def get(self, incident_id: str) -> Optional[Incident]:
        return self._incidents.get(incident_id)

    def require(self, incident_id: str) -> Incident:
        incident = self._incidents.get(incident_id)
        if incident is None:
            raise NotFoundError("incident", incident_id)
        return incident

    def all(
        self,
        store_id: Optional[str] = None,
        day: Optional[date] = None,
        status: Optional[IncidentStatus] = None,
    ) -> List[Incident]:
        incidents = list(self._incidents.values())
        if store_id is not None:
            incidents = [i for i in incidents if i.store_id == store_id]
        if day is not None:
            incidents = [i for i in incidents if i.date == day]
        if status is not None:
            incidents = [i for i in incidents if i.status == status]
        return incidents

    def upsert(self, candidate: Incident, current_time: Optional[datetime] = None) -> Incident:
        """Insert a new incident or refresh an unresolved one in place."""
        if current_time is None:
            current_time = datetime.utcnow()

        existing = self._incidents.get(candidate.id)
        if existing is None:
            self._incidents[candidate.id] = candidate
            logger.info("Opened incident %s (%s)", candidate.id, candidate.signature)
            return candidate

        if existing.status == IncidentStatus.RESOLVED:
            return existing

        changed = (
            existing.severity != candidate.severity
            or existing.summary != candidate.summary
            or existing.metrics != candidate.metrics
        )
        if changed:
            existing.severity = candidate.severity
            existing.summary = candidate.summary
            existing.metrics = candidate.metrics
            existing.updated_at = current_time
            logger.debug("Refreshed incident %s", existing.id)
        return existing

    def sync(self, candidates: List[Incident], current_time: Optional[datetime] = None) -> List[Incident]:
        return [self.upsert(c, current_time) for c in candidates]

    def advance(
        self,
        incident_id: str,
        status: IncidentStatus,
        current_time: Optional[datetime] = None,
        proposal_id: Optional[str] = None,
    ) -> Incident:
        """
        Move an incident forward. Moving to the current status or an
        earlier one is a no-op; leaving RESOLVED is not allowed.
        """
        if current_time is None:
            current_time = datetime.utcnow()

        incident = self.require(incident_id)
        if proposal_id is not None and incident.proposal_id is None:
            incident.proposal_id = proposal_id
        if STATUS_RANK[status] <= STATUS_RANK[incident.status]:
            return incident
        incident.status = status
        incident.updated_at = current_time
        logger.info("Incident %s → %s", incident_id, status.value)
        return incident

    def set_status(
        self,
        incident_id: str,
        status: IncidentStatus,
        current_time: Optional[datetime] = None,
    ) -> Incident:
        """Explicit status change from a user. Backward moves are rejected."""
        incident = self.require(incident_id)
        if STATUS_RANK[status] < STATUS_RANK[incident.status]:
            raise ValidationError(
                f"Incident {incident_id} cannot move from {incident.status.value} to {status.value}"
            )
        return self.advance(incident_id, status, current_time)

    def snapshot(self) -> List[dict]:
        return [i.model_dump(mode="json") for i in self._incidents.values()]
