"""
Proposal templates — the deterministic rules that turn an incident into
draft proposals.

Each incident type maps to one or more templates. A template picks its
targets from master data and escalates its priority when the incident is
critical.
"""

from typing import Callable, Dict, List

from pydantic import BaseModel

from ops_kernel.models.incident import Incident, IncidentSeverity, IncidentType
from ops_kernel.models.master import MasterData

TargetPicker = Callable[[Incident, MasterData], List[str]]


def _no_targets(incident: Incident, master: MasterData) -> List[str]:
    return []


def _first_menus(count: int) -> TargetPicker:
    def pick(incident: Incident, master: MasterData) -> List[str]:
        return [m.id for m in master.menus[:count]]
    return pick


def _slow_menus(count: int, min_prep_minutes: int = 15) -> TargetPicker:
    def pick(incident: Incident, master: MasterData) -> List[str]:
        return [m.id for m in master.menus if m.prep_time_minutes > min_prep_minutes][:count]
    return pick


def _high_price_menus(count: int) -> TargetPicker:
    def pick(incident: Incident, master: MasterData) -> List[str]:
        return [m.id for m in sorted(master.menus, key=lambda m: m.price, reverse=True)[:count]]
    return pick


def _prep_items(count: int = 0) -> TargetPicker:
    def pick(incident: Incident, master: MasterData) -> List[str]:
        items = master.prep_items if count <= 0 else master.prep_items[:count]
        return [p.id for p in items]
    return pick


class ProposalTemplate(BaseModel):
    """Static shape of a proposal generated for one incident type."""

    key: str
    type: str
    title: str
    description: str
    reason: str
    priority: str
    critical_priority: str                  # Priority used when the incident is critical
    default_roles: List[str]                # Role codes, resolved to role ids at build time
    expected_effects: List[str] = []
    quantity: float = 0

    def priority_for(self, incident: Incident) -> str:
        if incident.severity == IncidentSeverity.CRITICAL:
            return self.critical_priority
        return self.priority


TEMPLATES: Dict[IncidentType, List[ProposalTemplate]] = {
    IncidentType.DELIVERY_DELAY: [
        ProposalTemplate(
            key="delivery-delay-menu-restriction",
            type="menu-restriction",
            title="Restrict affected menus",
            description="A delivery is late. Pause menus that depend on it until it arrives.",
            reason="Ingredient shortage from a delayed delivery",
            priority="high",
            critical_priority="critical",
            default_roles=["kitchen", "floor"],
            expected_effects=["stockout-prevention"],
        ),
        ProposalTemplate(
            key="delivery-delay-prep-reorder",
            type="prep-reorder",
            title="Reorder prep around the late delivery",
            description="Move prep that does not need the delayed items to the front.",
            reason="Absorb the delivery delay",
            priority="medium",
            critical_priority="medium",
            default_roles=["kitchen"],
            expected_effects=["stockout-prevention"],
        ),
    ],
    IncidentType.LABOR_OVERRUN: [
        ProposalTemplate(
            key="labor-overrun-shift-adjustment",
            type="shift-adjustment",
            title="Adjust shifts to sales",
            description="Labor cost is high against sales. Release staff early or hold new check-ins.",
            reason="Labor cost ratio above target",
            priority="high",
            critical_priority="critical",
            default_roles=["manager"],
            expected_effects=["labor-reduction"],
        ),
    ],
    IncidentType.DEMAND_DROP: [
        ProposalTemplate(
            key="demand-drop-promotion",
            type="promotion",
            title="Run a time-band promotion",
            description="Sales are behind forecast. Promote high-margin menus for the rest of the band.",
            reason="Sales below forecast",
            priority="high",
            critical_priority="critical",
            default_roles=["floor", "manager"],
            expected_effects=["sales-impact"],
        ),
        ProposalTemplate(
            key="demand-drop-scope-reduction",
            type="scope-reduction",
            title="Scale down slow menus",
            description="Stop preparing slow menus while demand is low.",
            reason="Reduce waste while demand is low",
            priority="medium",
            critical_priority="high",
            default_roles=["kitchen"],
            expected_effects=["waste-reduction"],
        ),
    ],
    IncidentType.STOCKOUT_RISK: [
        ProposalTemplate(
            key="stockout-risk-extra-prep",
            type="extra-prep",
            title="Add prep batches",
            description="Prep is behind. Add batches for the items most likely to run out.",
            reason="Prep completion behind schedule",
            priority="high",
            critical_priority="critical",
            default_roles=["kitchen"],
            expected_effects=["stockout-prevention"],
            quantity=10,
        ),
        ProposalTemplate(
            key="stockout-risk-prep-reorder",
            type="prep-reorder",
            title="Review prep priorities",
            description="Prep is behind. Reorder the remaining prep by demand.",
            reason="Prep completion behind schedule",
            priority="medium",
            critical_priority="high",
            default_roles=["kitchen"],
            expected_effects=["stockout-prevention"],
        ),
    ],
    IncidentType.OPS_DELAY: [
        ProposalTemplate(
            key="ops-delay-follow-up",
            type="follow-up",
            title="Follow up on overdue task",
            description="A distributed task is past its deadline. Check on it or reassign it.",
            reason="Task past deadline",
            priority="medium",
            critical_priority="high",
            default_roles=["manager"],
        ),
    ],
}

# Target selection per template key.
TARGET_MENUS: Dict[str, TargetPicker] = {
    "delivery-delay-menu-restriction": _first_menus(3),
    "demand-drop-promotion": _high_price_menus(3),
    "demand-drop-scope-reduction": _slow_menus(2),
}

TARGET_PREP_ITEMS: Dict[str, TargetPicker] = {
    "delivery-delay-prep-reorder": _prep_items(2),
    "stockout-risk-extra-prep": _prep_items(3),
    "stockout-risk-prep-reorder": _prep_items(),
}


FOLLOW_UP_TEMPLATE = ProposalTemplate(
    key="info-follow-up",
    type="follow-up",
    title="Check in with staff",
    description="A staff member has worked a long stretch without a break. Schedule one.",
    reason="No break recorded",
    priority="low",
    critical_priority="low",
    default_roles=["manager"],
    expected_effects=["labor-reduction"],
)


def templates_for(incident: Incident) -> List[ProposalTemplate]:
    """Templates that apply to an incident. Info-level incidents only get a follow-up."""
    if incident.severity == IncidentSeverity.INFO:
        return [FOLLOW_UP_TEMPLATE]
    return TEMPLATES.get(incident.type, [])


def pick_menus(template: ProposalTemplate, incident: Incident, master: MasterData) -> List[str]:
    return TARGET_MENUS.get(template.key, _no_targets)(incident, master)


def pick_prep_items(template: ProposalTemplate, incident: Incident, master: MasterData) -> List[str]:
    return TARGET_PREP_ITEMS.get(template.key, _no_targets)(incident, master)
