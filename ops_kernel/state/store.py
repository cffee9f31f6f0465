"""
Ops Store — the single process-wide state container.

Behavioral Contract:
- Owns master data, the live event log, pending proposals, incidents,
  the replay controller and the current selection.
- Every command becomes an Action handled by dispatch(); one handler
  per action type. Nothing mutates state outside a handler.
- Reads go through `state` (an AppState snapshot) and select_* functions.
- After each command the snapshot is handed to the repository; a
  storage failure never fails the command.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ops_kernel.demo.fixtures import demo_day_events, demo_master_data, demo_replay_batch
from ops_kernel.derivation.derive import TodoIndex
from ops_kernel.derivation.time_bands import time_band_for
from ops_kernel.detection.detector import IncidentDetector, IncidentRegistry
from ops_kernel.errors import NotFoundError, ValidationError
from ops_kernel.event_log.store import EventInput, EventLog, coerce_event
from ops_kernel.incentives.calculator import IncentiveCalculator
from ops_kernel.models.app_state import AppState
from ops_kernel.models.config import OpsConfig
from ops_kernel.models.events import EVENT_ADAPTER, DomainEvent
from ops_kernel.models.incident import Incident, IncidentStatus
from ops_kernel.models.master import MasterData
from ops_kernel.models.proposal import Proposal
from ops_kernel.persistence.repository import SnapshotRepository
from ops_kernel.proposals.engine import (
    ProposalEngine,
    all_targets_completed,
    approval_events,
    completion_prep_events,
    proposals_from_incidents,
    rejection_event,
    transition_events,
)
from ops_kernel.replay.controller import ReplayController
from ops_kernel.state import actions
from ops_kernel.state.actions import Action
from ops_kernel.state.commands import (
    delivery_event,
    forecast_event,
    labor_event,
    prep_event,
    sales_event,
    with_time_band,
)

logger = logging.getLogger(__name__)

ProposalRef = Union[Proposal, str]


class OpsStore:
    """
    Explicit state container with a reducer-style dispatch.
    Single-threaded: call it from one thread or one event loop.
    """

    def __init__(
        self,
        config: Optional[OpsConfig] = None,
        master: Optional[MasterData] = None,
        repository: Optional[SnapshotRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or OpsConfig()
        self.master = master or demo_master_data()
        self.repository = repository
        self._clock = clock or datetime.utcnow

        self.log = EventLog()
        self.proposals = ProposalEngine()
        self.incidents = IncidentRegistry()
        self.detector = IncidentDetector(self.config)
        self.incentives = IncentiveCalculator(self.config.incentives)
        self.replay = ReplayController(
            self.log, self.config.replay_interval_seconds, tick=self._replay_tick
        )

        now = self._clock()
        self.selected_store_id: Optional[str] = self.master.stores[0].id if self.master.stores else None
        self.selected_time_band = "all"
        self.selected_month = now.strftime("%Y-%m")

        self._handlers: Dict[str, Callable[[dict], Any]] = {}
        self._register_default_handlers()

        if self.repository is not None:
            self._restore(self.repository.load())

    # --- Dispatch ---

    def _register_default_handlers(self) -> None:
        h = self._handlers
        h[actions.CHECK_IN] = self._handle_labor
        h[actions.CHECK_OUT] = self._handle_labor
        h[actions.START_BREAK] = self._handle_labor
        h[actions.END_BREAK] = self._handle_labor
        h[actions.APPEND_EVENT] = self._handle_append_event
        h[actions.RECORD_SALE] = self._handle_record_sale
        h[actions.RECORD_DELIVERY] = self._handle_record_delivery
        h[actions.UPSERT_FORECAST] = self._handle_upsert_forecast
        h[actions.RECORD_PREP] = self._handle_record_prep
        h[actions.REFRESH_PROPOSALS] = self._handle_refresh_proposals
        h[actions.ADD_PROPOSAL] = self._handle_add_proposal
        h[actions.UPDATE_PROPOSAL] = self._handle_update_proposal
        h[actions.APPROVE_PROPOSAL] = self._handle_approve_proposal
        h[actions.REJECT_PROPOSAL] = self._handle_reject_proposal
        h[actions.START_DECISION] = self._handle_decision_transition
        h[actions.PAUSE_DECISION] = self._handle_decision_transition
        h[actions.RESUME_DECISION] = self._handle_decision_transition
        h[actions.COMPLETE_DECISION] = self._handle_decision_transition
        h[actions.SCAN_INCIDENTS] = self._handle_scan_incidents
        h[actions.SET_INCIDENT_STATUS] = self._handle_set_incident_status
        h[actions.START_REPLAY] = self._handle_start_replay
        h[actions.STEP_REPLAY] = self._handle_step_replay
        h[actions.PLAY_REPLAY] = self._handle_play_replay
        h[actions.PAUSE_REPLAY] = self._handle_pause_replay
        h[actions.RESET_REPLAY] = self._handle_reset_replay
        h[actions.SEED_DEMO_DATA] = self._handle_seed_demo_data
        h[actions.RESET_ALL_DATA] = self._handle_reset_all_data
        h[actions.SELECT_STORE] = self._handle_select_store
        h[actions.SELECT_TIME_BAND] = self._handle_select_time_band
        h[actions.SELECT_MONTH] = self._handle_select_month
        h[actions.UPDATE_CONFIG] = self._handle_update_config

    def register_handler(self, action_type: str, handler: Callable[[dict], Any]) -> None:
        self._handlers[action_type] = handler

    def dispatch(self, action: Action) -> Any:
        """Run the handler for one action, then persist."""
        handler = self._handlers.get(action.type)
        if handler is None:
            raise ValidationError(f"Unknown action: {action.type}")

        try:
            result = handler(action.payload)
        except PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc

        logger.debug("Dispatched %s", action.type)
        if action.type not in actions.TRANSIENT_ACTIONS:
            self._persist()
        return result

    def _now(self, payload: dict) -> datetime:
        return payload.get("current_time") or self._clock()

    def _require_store(self, payload: dict) -> str:
        store_id = payload.get("store_id") or self.selected_store_id
        if store_id is None or self.master.find_store(store_id) is None:
            raise NotFoundError("store", str(store_id))
        return store_id

    def _append(self, events: List[EventInput]) -> List[DomainEvent]:
        return self.log.extend(events)

    # --- Snapshot and persistence ---

    @property
    def events(self) -> EventLog:
        """The log reads use: base log plus replayed events while a replay is loaded."""
        return self.replay.events

    @property
    def state(self) -> AppState:
        return self.snapshot()

    def snapshot(self, current_time: Optional[datetime] = None) -> AppState:
        return AppState.model_construct(
            master=self.master,
            events=list(self.events),
            live_event_count=len(self.log),
            proposals=self.proposals.pending(),
            incidents=[i.model_copy() for i in self.incidents.all()],
            replay=self.replay.state.model_copy(),
            selected_store_id=self.selected_store_id,
            selected_time_band=self.selected_time_band,
            selected_month=self.selected_month,
            config=self.config,
            as_of=current_time or self._clock(),
        )

    def _serialize(self) -> dict:
        return {
            "master": self.master.model_dump(mode="json"),
            "events": self.log.snapshot(),
            "proposals": self.proposals.snapshot(),
            "incidents": self.incidents.snapshot(),
            "selected_store_id": self.selected_store_id,
            "selected_time_band": self.selected_time_band,
            "selected_month": self.selected_month,
        }

    def _persist(self) -> None:
        if self.repository is None:
            return
        try:
            document = self._serialize()
        except (TypeError, ValueError) as exc:
            logger.warning("Could not serialize state: %s", exc)
            return
        self.repository.save(document)

    def _restore(self, data: Optional[dict]) -> None:
        if not data:
            return
        try:
            master = MasterData.model_validate(data.get("master") or {})
            log = EventLog(data.get("events") or [])
            proposals = [Proposal.model_validate(p) for p in data.get("proposals") or []]
            incidents = [Incident.model_validate(i) for i in data.get("incidents") or []]
        except (PydanticValidationError, ValidationError) as exc:
            logger.warning("Ignoring unreadable snapshot: %s", exc)
            return

        self.master = master
        self.log = log
        self.proposals = ProposalEngine(proposals)
        self.incidents = IncidentRegistry(incidents)
        self.replay = ReplayController(
            self.log, self.config.replay_interval_seconds, tick=self._replay_tick
        )
        self.selected_store_id = data.get("selected_store_id") or self.selected_store_id
        self.selected_time_band = data.get("selected_time_band") or "all"
        self.selected_month = data.get("selected_month") or self.selected_month
        logger.info("Restored %d events from snapshot", len(self.log))

    # --- Handlers: operational events ---

    def _handle_labor(self, payload: dict) -> DomainEvent:
        store_id = self._require_store(payload)
        staff_id = payload["staff_id"]
        if self.master.find_staff(staff_id) is None:
            raise NotFoundError("staff", staff_id)
        now = self._now(payload)
        event = labor_event(store_id, staff_id, payload["action"], now, self.config.time_bands)
        self._append([event])
        logger.info("%s %s at %s", staff_id, payload["action"], now.isoformat())
        return event

    def _handle_append_event(self, payload: dict) -> DomainEvent:
        event = with_time_band(coerce_event(payload["event"]), self.config.time_bands)
        return self.log.append(event)

    def _handle_record_sale(self, payload: dict) -> DomainEvent:
        store_id = self._require_store(payload)
        unit_price = payload.get("unit_price")
        if unit_price is None:
            menu = next((m for m in self.master.menus if m.id == payload["menu_id"]), None)
            if menu is None:
                raise NotFoundError("menu", payload["menu_id"])
            unit_price = menu.price
        event = sales_event(
            store_id, payload["menu_id"], payload["quantity"], unit_price,
            self._now(payload), self.config.time_bands, payload.get("time_band"),
        )
        self._append([event])
        return event

    def _handle_record_delivery(self, payload: dict) -> DomainEvent:
        store_id = self._require_store(payload)
        event = delivery_event(
            store_id,
            payload["supplier_id"],
            payload["item_name"],
            payload["expected_at"],
            payload["status"],
            self._now(payload),
            self.config.time_bands,
            delay_minutes=payload.get("delay_minutes", 0),
            actual_at=payload.get("actual_at"),
        )
        self._append([event])
        logger.info("Delivery of %s is %s", event.item_name, event.status)
        return event

    def _handle_upsert_forecast(self, payload: dict) -> DomainEvent:
        store_id = self._require_store(payload)
        event = forecast_event(
            store_id, payload["date"], payload["time_band"], payload["customers"],
            payload["avg_spend"], self._now(payload),
        )
        self._append([event])
        logger.info("Forecast for %s/%s set to %.0f", event.date, event.time_band, event.forecast_sales)
        return event

    def _handle_record_prep(self, payload: dict) -> DomainEvent:
        store_id = self._require_store(payload)
        prep_item_id = payload["prep_item_id"]
        if self.master.find_prep_item(prep_item_id) is None:
            raise NotFoundError("prep item", prep_item_id)
        event = prep_event(
            store_id, prep_item_id, payload["quantity"], payload["status"],
            self._now(payload), self.config.time_bands,
            batch_id=payload.get("batch_id"),
            proposal_id=payload.get("proposal_id"),
            assigned_staff_id=payload.get("assigned_staff_id"),
        )
        self._append([event])
        return event

    # --- Handlers: incidents ---

    def _scan(self, store_id: str, day: date, now: datetime) -> List[Incident]:
        candidates = self.detector.detect(list(self.events), store_id, day, now, self.master)
        return self.incidents.sync(candidates, now)

    def _handle_scan_incidents(self, payload: dict) -> List[Incident]:
        store_id = self._require_store(payload)
        now = self._now(payload)
        found = self._scan(store_id, payload.get("date") or now.date(), now)
        logger.info("Scan of store %s found %d incidents", store_id, len(found))
        return found

    def _handle_set_incident_status(self, payload: dict) -> Incident:
        try:
            status = IncidentStatus(payload["status"])
        except ValueError as exc:
            raise ValidationError(f"Unknown incident status: {payload['status']}") from exc
        return self.incidents.set_status(payload["incident_id"], status, self._now(payload))

    # --- Handlers: proposals and decisions ---

    def _resolve_proposal(self, ref: ProposalRef) -> Proposal:
        if isinstance(ref, Proposal):
            return ref
        return self.proposals.require(ref)

    def _handle_refresh_proposals(self, payload: dict) -> List[Proposal]:
        store_id = self._require_store(payload)
        now = self._now(payload)
        day = payload.get("date") or now.date()
        incidents = self._scan(store_id, day, now)

        decided = TodoIndex(self.log, store_id)
        added = []
        for proposal in proposals_from_incidents(
            incidents, self.master, now, self.config.proposal_deadline_minutes
        ):
            if decided.has_proposal(proposal.id) or not self.proposals.add(proposal):
                continue
            added.append(proposal)
            self.incidents.advance(proposal.incident_id, IncidentStatus.PROPOSED, now, proposal.id)
        logger.info("Refreshed proposals for store %s: %d new", store_id, len(added))
        return added

    def _handle_add_proposal(self, payload: dict) -> Proposal:
        proposal: Proposal = payload["proposal"]
        if self.master.find_store(proposal.store_id) is None:
            raise NotFoundError("store", proposal.store_id)
        if proposal.incident_id is not None:
            self.incidents.require(proposal.incident_id)
        if not self.proposals.add(proposal):
            raise ValidationError(f"Proposal already pending: {proposal.id}")
        if proposal.incident_id is not None:
            self.incidents.advance(
                proposal.incident_id, IncidentStatus.PROPOSED, self._now(payload), proposal.id
            )
        return proposal

    def _handle_update_proposal(self, payload: dict) -> Proposal:
        return self.proposals.update(payload["proposal"])

    def _handle_approve_proposal(self, payload: dict) -> List[DomainEvent]:
        proposal = self._resolve_proposal(payload["proposal"])
        self.proposals.require(proposal.id)
        now = self._now(payload)

        events = self._append(approval_events(proposal, now))
        self.proposals.remove(proposal.id)
        if proposal.incident_id and self.incidents.get(proposal.incident_id):
            self.incidents.advance(proposal.incident_id, IncidentStatus.EXECUTING, now, proposal.id)
        logger.info("Approved proposal %s into %d todos", proposal.id, len(events))
        return events

    def _handle_reject_proposal(self, payload: dict) -> DomainEvent:
        proposal = self._resolve_proposal(payload["proposal"])
        self.proposals.require(proposal.id)
        event = self._append([rejection_event(proposal, self._now(payload))])[0]
        self.proposals.remove(proposal.id)
        logger.info("Rejected proposal %s", proposal.id)
        return event

    def _handle_decision_transition(self, payload: dict) -> List[DomainEvent]:
        ref = payload["proposal"]
        proposal_id = ref.id if isinstance(ref, Proposal) else ref
        action = payload["action"]
        now = self._now(payload)

        index = TodoIndex(self.log)
        events: List[DomainEvent] = transition_events(
            index, proposal_id, action, payload.get("target_id"), now, payload.get("assignee_id"),
            payload.get("from_actions"), payload.get("pause_reason"),
        )
        if not events:
            logger.debug("No todos of %s eligible for %s", proposal_id, action)
            return []
        if action == "completed":
            events = events + completion_prep_events(events)

        appended = self._append(events)
        logger.info("%s %d todos of proposal %s", action.capitalize(), len(events), proposal_id)

        if action == "completed":
            incident_id = events[0].incident_id
            if incident_id and self.incidents.get(incident_id) and all_targets_completed(
                TodoIndex(self.log), proposal_id
            ):
                self.incidents.advance(incident_id, IncidentStatus.RESOLVED, now)
        return appended

    # --- Handlers: replay ---

    def _handle_start_replay(self, payload: dict):
        events = payload.get("events")
        if events is None:
            store_id = self._require_store(payload)
            events = demo_replay_batch(store_id, self._now(payload).date())
        return self.replay.load(events)

    def _handle_step_replay(self, payload: dict):
        return self.replay.step()

    def _handle_play_replay(self, payload: dict):
        return self.replay.play()

    def _handle_pause_replay(self, payload: dict):
        return self.replay.pause()

    def _handle_reset_replay(self, payload: dict):
        return self.replay.reset()

    def _replay_tick(self) -> bool:
        """Timed replay step, routed through dispatch."""
        if not self.replay.state.is_playing:
            return False
        self.dispatch(Action(type=actions.STEP_REPLAY))
        return self.replay.state.is_playing

    # --- Handlers: data and selection ---

    def _handle_seed_demo_data(self, payload: dict) -> int:
        day = payload.get("date") or self._now(payload).date()
        self._reset()
        self.master = demo_master_data()
        self.selected_store_id = self.master.stores[0].id
        self.selected_month = day.strftime("%Y-%m")
        seeded = 0
        for store in self.master.stores:
            seeded += len(self.log.extend(demo_day_events(store.id, day)))
        logger.info("Seeded %d demo events for %s", seeded, day.isoformat())
        return seeded

    def _handle_reset_all_data(self, payload: dict) -> None:
        self._reset()
        if self.repository is not None:
            self.repository.clear()
        logger.info("All data reset")

    def _reset(self) -> None:
        self.replay.reset()
        self.log = EventLog()
        self.proposals = ProposalEngine()
        self.incidents = IncidentRegistry()
        self.replay = ReplayController(
            self.log, self.config.replay_interval_seconds, tick=self._replay_tick
        )

    def _handle_select_store(self, payload: dict) -> str:
        store_id = payload["store_id"]
        if self.master.find_store(store_id) is None:
            raise NotFoundError("store", store_id)
        self.selected_store_id = store_id
        return store_id

    def _handle_select_time_band(self, payload: dict) -> str:
        band = payload["time_band"]
        if band != "all" and band not in self.config.time_bands:
            raise ValidationError(f"Unknown time band: {band}")
        self.selected_time_band = band
        return band

    def _handle_select_month(self, payload: dict) -> str:
        month = payload["month"]
        try:
            datetime.strptime(month, "%Y-%m")
        except ValueError as exc:
            raise ValidationError(f"Month must be YYYY-MM: {month}") from exc
        self.selected_month = month
        return month

    def _handle_update_config(self, payload: dict) -> OpsConfig:
        config: OpsConfig = payload["config"]
        self.config = config
        self.detector = IncidentDetector(config)
        self.incentives = IncentiveCalculator(config.incentives)
        self.replay.ticker.interval_seconds = config.replay_interval_seconds
        logger.info("Configuration updated")
        return config

    # --- Command surface ---

    def _command(self, action_type: str, **payload: Any) -> Any:
        return self.dispatch(Action(type=action_type, payload=payload))

    def check_in(self, staff_id: str, current_time: Optional[datetime] = None):
        return self._command(actions.CHECK_IN, staff_id=staff_id, action="check-in",
                             current_time=current_time)

    def check_out(self, staff_id: str, current_time: Optional[datetime] = None):
        return self._command(actions.CHECK_OUT, staff_id=staff_id, action="check-out",
                             current_time=current_time)

    def start_break(self, staff_id: str, current_time: Optional[datetime] = None):
        return self._command(actions.START_BREAK, staff_id=staff_id, action="break-start",
                             current_time=current_time)

    def end_break(self, staff_id: str, current_time: Optional[datetime] = None):
        return self._command(actions.END_BREAK, staff_id=staff_id, action="break-end",
                             current_time=current_time)

    def append_event(self, event: EventInput):
        return self._command(actions.APPEND_EVENT, event=event)

    def record_sale(self, menu_id: str, quantity: int, unit_price: Optional[float] = None,
                    time_band: Optional[str] = None, current_time: Optional[datetime] = None):
        return self._command(actions.RECORD_SALE, menu_id=menu_id, quantity=quantity,
                             unit_price=unit_price, time_band=time_band, current_time=current_time)

    def record_delivery(self, supplier_id: str, item_name: str, expected_at: datetime, status: str,
                        delay_minutes: int = 0, actual_at: Optional[datetime] = None,
                        current_time: Optional[datetime] = None):
        return self._command(actions.RECORD_DELIVERY, supplier_id=supplier_id, item_name=item_name,
                             expected_at=expected_at, status=status, delay_minutes=delay_minutes,
                             actual_at=actual_at, current_time=current_time)

    def upsert_forecast(self, day: date, time_band: str, customers: int, avg_spend: float,
                        current_time: Optional[datetime] = None):
        return self._command(actions.UPSERT_FORECAST, date=day, time_band=time_band,
                             customers=customers, avg_spend=avg_spend, current_time=current_time)

    def _prep(self, status: str, prep_item_id: str, quantity: float, batch_id: Optional[str],
              proposal_id: Optional[str], assigned_staff_id: Optional[str],
              current_time: Optional[datetime]):
        return self._command(actions.RECORD_PREP, prep_item_id=prep_item_id, quantity=quantity,
                             status=status, batch_id=batch_id, proposal_id=proposal_id,
                             assigned_staff_id=assigned_staff_id, current_time=current_time)

    def plan_prep(self, prep_item_id: str, quantity: float, batch_id: Optional[str] = None,
                  proposal_id: Optional[str] = None, assigned_staff_id: Optional[str] = None,
                  current_time: Optional[datetime] = None):
        return self._prep("planned", prep_item_id, quantity, batch_id, proposal_id,
                          assigned_staff_id, current_time)

    def start_prep(self, prep_item_id: str, quantity: float, batch_id: Optional[str] = None,
                   proposal_id: Optional[str] = None, assigned_staff_id: Optional[str] = None,
                   current_time: Optional[datetime] = None):
        return self._prep("started", prep_item_id, quantity, batch_id, proposal_id,
                          assigned_staff_id, current_time)

    def complete_prep(self, prep_item_id: str, quantity: float, batch_id: Optional[str] = None,
                      proposal_id: Optional[str] = None, assigned_staff_id: Optional[str] = None,
                      current_time: Optional[datetime] = None):
        return self._prep("completed", prep_item_id, quantity, batch_id, proposal_id,
                          assigned_staff_id, current_time)

    def scan_incidents(self, day: Optional[date] = None, current_time: Optional[datetime] = None):
        return self._command(actions.SCAN_INCIDENTS, date=day, current_time=current_time)

    def set_incident_status(self, incident_id: str, status: str,
                            current_time: Optional[datetime] = None):
        return self._command(actions.SET_INCIDENT_STATUS, incident_id=incident_id, status=status,
                             current_time=current_time)

    def refresh_proposals(self, day: Optional[date] = None, current_time: Optional[datetime] = None):
        return self._command(actions.REFRESH_PROPOSALS, date=day, current_time=current_time)

    def add_proposal(self, proposal: Proposal, current_time: Optional[datetime] = None):
        return self._command(actions.ADD_PROPOSAL, proposal=proposal, current_time=current_time)

    def update_proposal(self, proposal: Proposal):
        return self._command(actions.UPDATE_PROPOSAL, proposal=proposal)

    def approve_proposal(self, proposal: ProposalRef, current_time: Optional[datetime] = None):
        return self._command(actions.APPROVE_PROPOSAL, proposal=proposal, current_time=current_time)

    def reject_proposal(self, proposal: ProposalRef, current_time: Optional[datetime] = None):
        return self._command(actions.REJECT_PROPOSAL, proposal=proposal, current_time=current_time)

    def start_decision(self, proposal: ProposalRef, target_id: Optional[str] = None,
                       assignee_id: Optional[str] = None, current_time: Optional[datetime] = None):
        return self._command(actions.START_DECISION, proposal=proposal, action="started",
                             from_actions=("approved",), target_id=target_id,
                             assignee_id=assignee_id, current_time=current_time)

    def pause_decision(self, proposal: ProposalRef, target_id: Optional[str] = None,
                       reason: Optional[str] = None, current_time: Optional[datetime] = None):
        return self._command(actions.PAUSE_DECISION, proposal=proposal, action="paused",
                             target_id=target_id, pause_reason=reason, current_time=current_time)

    def resume_decision(self, proposal: ProposalRef, target_id: Optional[str] = None,
                        current_time: Optional[datetime] = None):
        return self._command(actions.RESUME_DECISION, proposal=proposal, action="started",
                             from_actions=("paused",), target_id=target_id,
                             current_time=current_time)

    def complete_decision(self, proposal: ProposalRef, target_id: Optional[str] = None,
                          assignee_id: Optional[str] = None, current_time: Optional[datetime] = None):
        return self._command(actions.COMPLETE_DECISION, proposal=proposal, action="completed",
                             target_id=target_id, assignee_id=assignee_id, current_time=current_time)

    def start_replay(self, events: Optional[List[EventInput]] = None,
                     current_time: Optional[datetime] = None):
        return self._command(actions.START_REPLAY, events=events, current_time=current_time)

    def step_replay(self):
        return self._command(actions.STEP_REPLAY)

    def play_replay(self):
        """Start timed replay. Must be called from a running event loop."""
        return self._command(actions.PLAY_REPLAY)

    def pause_replay(self):
        return self._command(actions.PAUSE_REPLAY)

    def reset_replay(self):
        return self._command(actions.RESET_REPLAY)

    def seed_demo_data(self, day: Optional[date] = None, current_time: Optional[datetime] = None):
        return self._command(actions.SEED_DEMO_DATA, date=day, current_time=current_time)

    def reset_all_data(self):
        return self._command(actions.RESET_ALL_DATA)

    def select_store(self, store_id: str):
        return self._command(actions.SELECT_STORE, store_id=store_id)

    def select_time_band(self, time_band: str):
        return self._command(actions.SELECT_TIME_BAND, time_band=time_band)

    def select_month(self, month: str):
        return self._command(actions.SELECT_MONTH, month=month)

    def update_config(self, config: OpsConfig):
        return self._command(actions.UPDATE_CONFIG, config=config)

    def close(self) -> None:
        self.replay.reset()
        if self.repository is not None:
            self.repository.close()

    def current_band(self, current_time: Optional[datetime] = None) -> str:
        return time_band_for(current_time or self._clock(), self.config.time_bands)


def parse_event(payload: dict) -> DomainEvent:
    """Parse an untyped payload into an event without appending it."""
    try:
        return EVENT_ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc
