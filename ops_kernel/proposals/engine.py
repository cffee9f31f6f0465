"""
Proposal/Decision Engine — proposals in, decision events out.

Behavioral Contract:
- A proposal is pending until approved or rejected, then it leaves the queue.
- Approval never edits the proposal. It becomes one `approved` decision
  event per target: todo_count numbered targets, else one per role,
  else a single aggregate target.
- Rejection is one `rejected` event on the aggregate target; it closes
  every target of the proposal.
- start: approved → started. pause: started → paused (with an optional
  reason). resume: paused → started. complete: approved | started |
  paused → completed. Completing a target that was never started is allowed.
- A paused target is still active; resuming clears its pause reason.
- Each transition is a new event; history is never rewritten.
"""

import hashlib
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from ops_kernel.derivation.derive import TodoIndex
from ops_kernel.errors import NotFoundError
from ops_kernel.models.events import AGGREGATE_TARGET, DecisionEvent, PrepEvent
from ops_kernel.models.incident import Incident, IncidentStatus
from ops_kernel.models.master import MasterData
from ops_kernel.models.proposal import PRIORITY_ORDER, Proposal
from ops_kernel.proposals.templates import pick_menus, pick_prep_items, templates_for

logger = logging.getLogger(__name__)

# Which current actions each transition may leave from.
TRANSITIONS = {
    "started": ("approved", "paused"),
    "paused": ("started",),
    "completed": ("approved", "started", "paused"),
}

OPEN_STATUSES = (IncidentStatus.OPEN, IncidentStatus.INVESTIGATING)


def new_proposal_id() -> str:
    return f"prop_{uuid4().hex[:12]}"


def _event_id() -> str:
    return f"evt_{uuid4().hex[:12]}"


def _template_proposal_id(incident_id: str, template_key: str) -> str:
    digest = hashlib.sha256(f"{incident_id}|{template_key}".encode()).hexdigest()
    return f"prop_{digest[:12]}"


# --- Generation ---

def proposals_from_incidents(
    incidents: List[Incident],
    master: MasterData,
    current_time: Optional[datetime] = None,
    deadline_minutes: int = 60,
) -> List[Proposal]:
    """
    Draft proposals for open incidents. One proposal per proposal type
    survives, the highest priority one. Ids are stable per incident and
    template, so regenerating yields the same proposals.
    """
    if current_time is None:
        current_time = datetime.utcnow()
    deadline = current_time + timedelta(minutes=deadline_minutes)

    by_type: Dict[str, Proposal] = {}
    for incident in incidents:
        if incident.status not in OPEN_STATUSES:
            continue
        for template in templates_for(incident):
            proposal = Proposal(
                id=_template_proposal_id(incident.id, template.key),
                type=template.type,
                title=template.title,
                description=f"{incident.summary} - {template.description}",
                reason=template.reason,
                triggered_by=incident.id,
                priority=template.priority_for(incident),
                created_at=current_time,
                store_id=incident.store_id,
                time_band=incident.time_band,
                target_menu_ids=pick_menus(template, incident, master),
                target_prep_item_ids=pick_prep_items(template, incident, master),
                quantity=template.quantity,
                distributed_to_roles=master.role_ids_for_codes(template.default_roles),
                deadline=deadline,
                expected_effects=template.expected_effects,
                incident_id=incident.id,
            )
            existing = by_type.get(proposal.type)
            if existing is None or PRIORITY_ORDER[proposal.priority] > PRIORITY_ORDER[existing.priority]:
                by_type[proposal.type] = proposal

    return sorted(by_type.values(), key=lambda p: PRIORITY_ORDER[p.priority], reverse=True)


def proposal_from_decision(decision: DecisionEvent) -> Proposal:
    """Rebuild the authoring proposal from one of its decision events, for re-editing."""
    return Proposal(
        id=decision.proposal_id,
        type=decision.proposal_type,
        title=decision.title,
        description=decision.description,
        reason=decision.reason,
        priority=decision.priority,
        created_at=decision.timestamp,
        store_id=decision.store_id,
        time_band=decision.time_band,
        target_menu_ids=list(decision.target_menu_ids),
        target_prep_item_ids=list(decision.target_prep_item_ids),
        quantity=decision.quantity,
        distributed_to_roles=list(decision.distributed_to_roles),
        deadline=decision.deadline,
        incident_id=decision.incident_id,
        xp_reward=decision.xp_reward,
    )


# --- Decision events ---

def fan_out_targets(proposal: Proposal) -> List[Tuple[str, List[str]]]:
    """(target_id, roles) for every to-do an approval creates."""
    if proposal.todo_count:
        n = proposal.todo_count
        return [(f"{i}/{n}", list(proposal.distributed_to_roles)) for i in range(1, n + 1)]
    if proposal.distributed_to_roles:
        return [(role_id, [role_id]) for role_id in proposal.distributed_to_roles]
    return [(AGGREGATE_TARGET, [])]


def decision_event(
    proposal: Proposal,
    action: str,
    current_time: datetime,
    target_id: str = AGGREGATE_TARGET,
    roles: Optional[List[str]] = None,
    assignee_id: Optional[str] = None,
) -> DecisionEvent:
    return DecisionEvent(
        id=_event_id(),
        store_id=proposal.store_id,
        timestamp=current_time,
        time_band=proposal.time_band,
        proposal_id=proposal.id,
        target_id=target_id,
        action=action,
        title=proposal.title,
        description=proposal.description,
        priority=proposal.priority,
        distributed_to_roles=list(proposal.distributed_to_roles if roles is None else roles),
        target_menu_ids=list(proposal.target_menu_ids),
        target_prep_item_ids=list(proposal.target_prep_item_ids),
        quantity=proposal.quantity,
        deadline=proposal.deadline,
        incident_id=proposal.incident_id,
        assignee_id=assignee_id,
        xp_reward=proposal.xp_reward,
        proposal_type=proposal.type,
        reason=proposal.reason,
    )


def approval_events(proposal: Proposal, current_time: Optional[datetime] = None) -> List[DecisionEvent]:
    if current_time is None:
        current_time = datetime.utcnow()
    return [
        decision_event(proposal, "approved", current_time, target_id, roles)
        for target_id, roles in fan_out_targets(proposal)
    ]


def rejection_event(proposal: Proposal, current_time: Optional[datetime] = None) -> DecisionEvent:
    if current_time is None:
        current_time = datetime.utcnow()
    return decision_event(proposal, "rejected", current_time)


def transition_events(
    index: TodoIndex,
    proposal_id: str,
    action: str,
    target_id: Optional[str] = None,
    current_time: Optional[datetime] = None,
    assignee_id: Optional[str] = None,
    from_actions: Optional[Tuple[str, ...]] = None,
    pause_reason: Optional[str] = None,
) -> List[DecisionEvent]:
    """
    Events moving every eligible target of a proposal (or just target_id)
    to `action`. Targets not in an allowed state are skipped.

    from_actions narrows the allowed source states, e.g. resume only
    leaves from paused.
    """
    if current_time is None:
        current_time = datetime.utcnow()

    targets = index.targets(proposal_id)
    if not targets:
        raise NotFoundError("proposal", proposal_id)
    if target_id is not None:
        if target_id not in targets:
            raise NotFoundError("todo", f"{proposal_id}/{target_id}")
        targets = {target_id: targets[target_id]}

    allowed = TRANSITIONS[action]
    if from_actions is not None:
        allowed = tuple(a for a in allowed if a in from_actions)
    events = []
    for tid, current in targets.items():
        if current.action not in allowed:
            logger.debug("Skipped %s for %s/%s in state %s", action, proposal_id, tid, current.action)
            continue
        events.append(current.model_copy(update={
            "id": _event_id(),
            "timestamp": current_time,
            "action": action,
            "assignee_id": assignee_id or current.assignee_id,
            "pause_reason": pause_reason if action == "paused" else None,
        }))
    return events


def completion_prep_events(completed: List[DecisionEvent]) -> List[PrepEvent]:
    """Completed prep for the prep items a completed to-do targeted."""
    events = []
    for todo in completed:
        for prep_item_id in todo.target_prep_item_ids:
            events.append(PrepEvent(
                id=_event_id(),
                store_id=todo.store_id,
                timestamp=todo.timestamp,
                time_band=todo.time_band,
                prep_item_id=prep_item_id,
                quantity=todo.quantity,
                status="completed",
                batch_id=f"{todo.proposal_id}/{todo.target_id}",
                assigned_staff_id=todo.assignee_id,
                proposal_id=todo.proposal_id,
            ))
    return events


def all_targets_completed(index: TodoIndex, proposal_id: str) -> bool:
    targets = index.targets(proposal_id)
    return bool(targets) and all(t.action == "completed" for t in targets.values())


class ProposalEngine:
    """
    Pending proposal queue.
    Approval and rejection remove a proposal; nothing else does.
    """

    def __init__(self, proposals: Optional[List[Proposal]] = None):
        self._pending: Dict[str, Proposal] = {}
        for proposal in proposals or []:
            self._pending[proposal.id] = proposal

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, proposal_id: str) -> bool:
        return proposal_id in self._pending

    def pending(self, store_id: Optional[str] = None) -> List[Proposal]:
        """Pending proposals, highest priority first, oldest first within a priority."""
        proposals = list(self._pending.values())
        if store_id is not None:
            proposals = [p for p in proposals if p.store_id == store_id]
        return sorted(proposals, key=lambda p: (-PRIORITY_ORDER[p.priority], p.created_at))

    def get(self, proposal_id: str) -> Optional[Proposal]:
        return self._pending.get(proposal_id)

    def require(self, proposal_id: str) -> Proposal:
        proposal = self._pending.get(proposal_id)
        if proposal is None:
            raise NotFoundError("proposal", proposal_id)
        return proposal

    def add(self, proposal: Proposal) -> bool:
        """Queue a proposal. Returns False if one with the same id is already pending."""
        if proposal.id in self._pending:
            return False
        self._pending[proposal.id] = proposal
        logger.info("Queued proposal %s (%s, %s)", proposal.id, proposal.type, proposal.priority)
        return True

    def update(self, proposal: Proposal) -> Proposal:
        self.require(proposal.id)
        self._pending[proposal.id] = proposal
        return proposal

    def remove(self, proposal_id: str) -> Proposal:
        proposal = self.require(proposal_id)
        del self._pending[proposal_id]
        return proposal

    def clear(self) -> None:
        self._pending = {}

    def snapshot(self) -> List[dict]:
        return [p.model_dump(mode="json") for p in self._pending.values()]
