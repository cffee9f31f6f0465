"""Actions — the messages every command is turned into before dispatch."""

from typing import Any, Dict

from pydantic import BaseModel

# Timeclock
CHECK_IN = "timeclock/check-in"
CHECK_OUT = "timeclock/check-out"
START_BREAK = "timeclock/break-start"
END_BREAK = "timeclock/break-end"

# Operational events
APPEND_EVENT = "events/append"
RECORD_SALE = "sales/record"
RECORD_DELIVERY = "delivery/record"
UPSERT_FORECAST = "forecast/upsert"
RECORD_PREP = "prep/record"

# Proposals and decisions
REFRESH_PROPOSALS = "proposals/refresh"
ADD_PROPOSAL = "proposals/add"
UPDATE_PROPOSAL = "proposals/update"
APPROVE_PROPOSAL = "proposals/approve"
REJECT_PROPOSAL = "proposals/reject"
START_DECISION = "decisions/start"
PAUSE_DECISION = "decisions/pause"
RESUME_DECISION = "decisions/resume"
COMPLETE_DECISION = "decisions/complete"

# Incidents
SCAN_INCIDENTS = "incidents/scan"
SET_INCIDENT_STATUS = "incidents/set-status"

# Replay
START_REPLAY = "replay/start"
STEP_REPLAY = "replay/step"
PLAY_REPLAY = "replay/play"
PAUSE_REPLAY = "replay/pause"
RESET_REPLAY = "replay/reset"

# Data and selection
SEED_DEMO_DATA = "data/seed-demo"
RESET_ALL_DATA = "data/reset"
SELECT_STORE = "ui/select-store"
SELECT_TIME_BAND = "ui/select-time-band"
SELECT_MONTH = "ui/select-month"
UPDATE_CONFIG = "config/update"

# Actions that never reach the repository
TRANSIENT_ACTIONS = {STEP_REPLAY, PLAY_REPLAY, PAUSE_REPLAY, START_REPLAY, RESET_REPLAY}


class Action(BaseModel):
    type: str
    payload: Dict[str, Any] = {}
