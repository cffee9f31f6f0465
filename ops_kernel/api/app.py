"""
Ops Kernel API — FastAPI endpoints.

Exposes the state container's commands and selectors as JSON for:
- Event ingestion and the timeclock
- Forecasts, prep and deliveries
- Proposals and to-dos
- Incidents
- Derived metrics and incentives
- Replay control
- Demo data, configuration and capabilities
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ops_kernel.access.capabilities import ViewRole, resolve_session
from ops_kernel.errors import NotFoundError, ValidationError
from ops_kernel.models.config import OpsConfig
from ops_kernel.models.events import TimeBand
from ops_kernel.models.incident import IncidentStatus
from ops_kernel.models.proposal import Proposal
from ops_kernel.models.replay import ReplayState
from ops_kernel.persistence.repository import SnapshotRepository
from ops_kernel.state import selectors
from ops_kernel.state.store import OpsStore

logger = logging.getLogger(__name__)

MONTH_PATTERN = r"^\d{4}-\d{2}$"


# --- Request/Response Models ---

class TimeclockRequest(BaseModel):
    staff_id: str
    current_time: Optional[datetime] = None


class SaleRequest(BaseModel):
    menu_id: str
    quantity: int = Field(ge=0)
    unit_price: Optional[float] = None
    time_band: Optional[TimeBand] = None
    current_time: Optional[datetime] = None


class DeliveryRequest(BaseModel):
    supplier_id: str
    item_name: str
    expected_at: datetime
    status: str
    delay_minutes: int = 0
    actual_at: Optional[datetime] = None
    current_time: Optional[datetime] = None


class ForecastRequest(BaseModel):
    day: date
    time_band: TimeBand
    customers: int = Field(ge=0)
    avg_spend: float = Field(ge=0)
    current_time: Optional[datetime] = None


class PrepRequest(BaseModel):
    prep_item_id: str
    quantity: float = Field(ge=0)
    batch_id: Optional[str] = None
    proposal_id: Optional[str] = None
    assigned_staff_id: Optional[str] = None
    current_time: Optional[datetime] = None


class ScanRequest(BaseModel):
    day: Optional[date] = None
    current_time: Optional[datetime] = None


class DecideRequest(BaseModel):
    current_time: Optional[datetime] = None


class TodoTransitionRequest(BaseModel):
    target_id: Optional[str] = None
    assignee_id: Optional[str] = None
    current_time: Optional[datetime] = None


class TodoPauseRequest(BaseModel):
    target_id: Optional[str] = None
    reason: Optional[str] = None
    current_time: Optional[datetime] = None


class IncidentStatusRequest(BaseModel):
    status: IncidentStatus
    current_time: Optional[datetime] = None


class ReplayStartRequest(BaseModel):
    events: Optional[List[dict]] = None
    current_time: Optional[datetime] = None


class SelectionRequest(BaseModel):
    store_id: Optional[str] = None
    time_band: Optional[TimeBand] = None
    month: Optional[str] = None


class SeedRequest(BaseModel):
    day: Optional[date] = None


def _replay_view(state: ReplayState) -> dict:
    return {
        "phase": state.phase,
        "current_index": state.current_index,
        "total": len(state.pending_events),
        "remaining": state.remaining,
        "is_playing": state.is_playing,
        "is_paused": state.is_paused,
    }


# --- Application Factory ---

def create_app(
    store: Optional[OpsStore] = None,
    config: Optional[OpsConfig] = None,
) -> FastAPI:
    """Create the FastAPI application with an injected or fresh store."""

    if store is None:
        config = config or OpsConfig()
        repository = None
        if config.storage_path:
            repository = SnapshotRepository(config.storage_path, config.storage_namespace)
        store = OpsStore(config=config, repository=repository)

    app = FastAPI(
        title="Ops Kernel",
        description="Event-sourced store operations: metrics, incidents, proposals and incentives",
        version="0.1.0",
    )
    app.state.store = store

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    # --- Events ---

    @app.post("/events")
    async def append_event(event: dict):
        return store.append_event(event)

    @app.get("/events")
    async def recent_events(limit: int = 20):
        return selectors.select_recent_events(store.state, limit)

    # --- Timeclock ---

    @app.post("/timeclock/check-in")
    async def check_in(request: TimeclockRequest):
        return store.check_in(request.staff_id, request.current_time)

    @app.post("/timeclock/check-out")
    async def check_out(request: TimeclockRequest):
        return store.check_out(request.staff_id, request.current_time)

    @app.post("/timeclock/break-start")
    async def start_break(request: TimeclockRequest):
        return store.start_break(request.staff_id, request.current_time)

    @app.post("/timeclock/break-end")
    async def end_break(request: TimeclockRequest):
        return store.end_break(request.staff_id, request.current_time)

    @app.get("/timeclock/staff")
    async def staff_states(day: Optional[date] = None):
        return selectors.select_staff_states(store.state, day)

    # --- Sales, deliveries, forecasts, prep ---

    @app.post("/sales")
    async def record_sale(request: SaleRequest):
        return store.record_sale(
            request.menu_id, request.quantity, request.unit_price,
            request.time_band, request.current_time,
        )

    @app.post("/deliveries")
    async def record_delivery(request: DeliveryRequest):
        return store.record_delivery(
            request.supplier_id, request.item_name, request.expected_at, request.status,
            request.delay_minutes, request.actual_at, request.current_time,
        )

    @app.put("/forecasts")
    async def upsert_forecast(request: ForecastRequest):
        return store.upsert_forecast(
            request.day, request.time_band, request.customers, request.avg_spend,
            request.current_time,
        )

    @app.get("/forecasts")
    async def forecast_table(
        month: Optional[str] = Query(default=None, pattern=MONTH_PATTERN),
        time_band: Optional[TimeBand] = None,
    ):
        return selectors.select_forecast_table(store.state, month, time_band)

    @app.get("/forecasts/calendar")
    async def forecast_calendar(
        month: Optional[str] = Query(default=None, pattern=MONTH_PATTERN),
        time_band: Optional[TimeBand] = None,
    ):
        state = store.state
        return {
            "cells": selectors.select_calendar_data(state, month, time_band),
            "summary": selectors.select_monthly_forecast_summary(state, month, time_band),
        }

    @app.post("/prep/{status}")
    async def record_prep(status: str, request: PrepRequest):
        commands = {
            "plan": store.plan_prep,
            "start": store.start_prep,
            "complete": store.complete_prep,
        }
        if status not in commands:
            raise NotFoundError("prep command", status)
        return commands[status](
            request.prep_item_id, request.quantity, request.batch_id,
            request.proposal_id, request.assigned_staff_id, request.current_time,
        )

    # --- Proposals ---

    @app.get("/proposals")
    async def pending_proposals():
        return selectors.select_pending_proposals(store.state)

    @app.post("/proposals")
    async def add_proposal(proposal: Proposal):
        return store.add_proposal(proposal)

    @app.post("/proposals/refresh")
    async def refresh_proposals(request: ScanRequest):
        return store.refresh_proposals(request.day, request.current_time)

    @app.put("/proposals/{proposal_id}")
    async def update_proposal(proposal_id: str, proposal: Proposal):
        if proposal.id != proposal_id:
            raise ValidationError("Proposal id does not match the path")
        return store.update_proposal(proposal)

    @app.post("/proposals/{proposal_id}/approve")
    async def approve_proposal(proposal_id: str, request: DecideRequest):
        todos = store.approve_proposal(proposal_id, request.current_time)
        return {"proposal_id": proposal_id, "todos": todos}

    @app.post("/proposals/{proposal_id}/reject")
    async def reject_proposal(proposal_id: str, request: DecideRequest):
        return store.reject_proposal(proposal_id, request.current_time)

    # --- To-dos ---

    @app.get("/todos")
    async def todos(role_id: Optional[str] = None):
        state = store.state
        return {
            "active": selectors.select_active_todos(state, role_id),
            "completed": selectors.select_completed_todos(state, role_id),
            "stats": selectors.select_todo_stats(state, role_id),
        }

    @app.post("/todos/{proposal_id}/start")
    async def start_todo(proposal_id: str, request: TodoTransitionRequest):
        return store.start_decision(
            proposal_id, request.target_id, request.assignee_id, request.current_time
        )

    @app.post("/todos/{proposal_id}/pause")
    async def pause_todo(proposal_id: str, request: TodoPauseRequest):
        return store.pause_decision(
            proposal_id, request.target_id, request.reason, request.current_time
        )

    @app.post("/todos/{proposal_id}/resume")
    async def resume_todo(proposal_id: str, request: TodoTransitionRequest):
        return store.resume_decision(proposal_id, request.target_id, request.current_time)

    @app.post("/todos/{proposal_id}/complete")
    async def complete_todo(proposal_id: str, request: TodoTransitionRequest):
        return store.complete_decision(
            proposal_id, request.target_id, request.assignee_id, request.current_time
        )

    # --- Incidents ---

    @app.get("/incidents")
    async def incidents(day: Optional[date] = None, status: Optional[IncidentStatus] = None):
        return selectors.select_incidents(store.state, day, status)

    @app.post("/incidents/scan")
    async def scan_incidents(request: ScanRequest):
        return store.scan_incidents(request.day, request.current_time)

    @app.put("/incidents/{incident_id}/status")
    async def set_incident_status(incident_id: str, request: IncidentStatusRequest):
        return store.set_incident_status(incident_id, request.status, request.current_time)

    # --- Metrics ---

    @app.get("/metrics/labor")
    async def labor_metrics(day: Optional[date] = None):
        return selectors.select_labor_metrics(store.state, day)

    @app.get("/metrics/labor/weekly")
    async def weekly_labor_metrics(week_start: Optional[date] = None):
        return selectors.select_weekly_labor_metrics(store.state, week_start)

    @app.get("/metrics/labor/guardrail")
    async def labor_guardrail(day: Optional[date] = None):
        return selectors.select_labor_guardrail_summary(store.state, day)

    @app.get("/metrics/sales")
    async def daily_sales(day: Optional[date] = None, time_band: Optional[TimeBand] = None):
        return selectors.select_daily_sales_metrics(store.state, day, time_band)

    @app.get("/metrics/sales/monthly")
    async def monthly_sales(
        month: Optional[str] = Query(default=None, pattern=MONTH_PATTERN),
        time_band: Optional[TimeBand] = None,
    ):
        return selectors.select_monthly_sales_metrics(store.state, month, time_band)

    @app.get("/metrics/prep")
    async def prep_metrics(day: Optional[date] = None):
        return selectors.select_prep_metrics(store.state, day)

    @app.get("/metrics/cockpit")
    async def cockpit(day: Optional[date] = None):
        return selectors.select_cockpit_metrics(store.state, day)

    @app.get("/metrics/exceptions")
    async def exceptions(day: Optional[date] = None):
        return selectors.select_exceptions(store.state, day)

    @app.get("/incentives")
    async def incentives(day: Optional[date] = None):
        return selectors.select_incentive_distribution(store.state, day)

    # --- Replay ---

    @app.get("/replay")
    async def replay_status():
        return _replay_view(selectors.select_replay_state(store.state))

    @app.post("/replay/start")
    async def start_replay(request: ReplayStartRequest):
        return _replay_view(store.start_replay(request.events, request.current_time))

    @app.post("/replay/step")
    async def step_replay():
        event = store.step_replay()
        return {"applied": event, "replay": _replay_view(store.replay.state)}

    @app.post("/replay/play")
    async def play_replay():
        return _replay_view(store.play_replay())

    @app.post("/replay/pause")
    async def pause_replay():
        return _replay_view(store.pause_replay())

    @app.post("/replay/reset")
    async def reset_replay():
        return _replay_view(store.reset_replay())

    # --- Data, selection, config, session ---

    @app.post("/data/seed")
    async def seed(request: SeedRequest):
        return {"seeded": store.seed_demo_data(request.day)}

    @app.post("/data/reset")
    async def reset_data():
        store.reset_all_data()
        return {"status": "reset"}

    @app.get("/selection")
    async def get_selection():
        state = store.state
        return {
            "store": selectors.select_current_store(state),
            "time_band": state.selected_time_band,
            "month": state.selected_month,
        }

    @app.put("/selection")
    async def update_selection(request: SelectionRequest):
        if request.store_id is not None:
            store.select_store(request.store_id)
        if request.time_band is not None:
            store.select_time_band(request.time_band)
        if request.month is not None:
            store.select_month(request.month)
        return await get_selection()

    @app.get("/config")
    async def get_config():
        return store.config

    @app.put("/config")
    async def update_config(new_config: OpsConfig):
        return store.update_config(new_config)

    @app.get("/session/capabilities")
    async def capabilities(role: ViewRole = ViewRole.STAFF):
        return resolve_session(role, store.selected_store_id)

    return app


# Default app instance
app = create_app()
