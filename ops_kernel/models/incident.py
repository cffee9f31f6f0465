"""Incident — a detected operational anomaly with its owning agents."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from ops_kernel.models.events import TimeBand


class IncidentType(str, Enum):
    DEMAND_DROP = "demand_drop"
    LABOR_OVERRUN = "labor_overrun"
    STOCKOUT_RISK = "stockout_risk"
    DELIVERY_DELAY = "delivery_delay"
    OPS_DELAY = "ops_delay"


class IncidentSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class IncidentStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    PROPOSED = "proposed"
    EXECUTING = "executing"
    RESOLVED = "resolved"


class AgentId(str, Enum):
    """Conceptual owners of an incident."""
    MANAGEMENT = "management"
    PLAN = "plan"
    OPS = "ops"
    POS = "pos"
    SUPPLY = "supply"
    HR = "hr"


# Incidents only move forward; RESOLVED is terminal.
STATUS_RANK = {
    IncidentStatus.OPEN: 0,
    IncidentStatus.INVESTIGATING: 1,
    IncidentStatus.PROPOSED: 2,
    IncidentStatus.EXECUTING: 3,
    IncidentStatus.RESOLVED: 4,
}


class Incident(BaseModel):
    """
    An anomaly found by the detector. Identity is its signature, so a
    re-scan of the same condition lands on the same record.
    """

    id: str
    signature: str                          # type:time_band:date[:subject]
    type: IncidentType
    severity: IncidentSeverity
    status: IncidentStatus = IncidentStatus.OPEN
    store_id: str
    date: date
    time_band: TimeBand = "all"
    subject: Optional[str] = None           # Staff id, item name, proposal id...
    lead_agent: AgentId
    supporting_agents: List[AgentId] = []
    summary: str
    metrics: dict = {}
    proposal_id: Optional[str] = None
    detected_at: datetime
    updated_at: datetime
