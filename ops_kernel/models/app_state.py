"""App State — the read-only snapshot selectors work on."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from ops_kernel.models.config import OpsConfig
from ops_kernel.models.events import DomainEvent, TimeBand
from ops_kernel.models.incident import Incident
from ops_kernel.models.master import MasterData
from ops_kernel.models.proposal import Proposal
from ops_kernel.models.replay import ReplayState


class AppState(BaseModel):
    """
    Everything a selector may read, taken at one instant.
    `events` already includes replayed events when a replay is loaded.
    """

    master: MasterData
    events: List[DomainEvent] = []
    live_event_count: int = 0
    proposals: List[Proposal] = []
    incidents: List[Incident] = []
    replay: ReplayState = ReplayState()
    selected_store_id: Optional[str] = None
    selected_time_band: TimeBand = "all"
    selected_month: str                     # YYYY-MM
    config: OpsConfig = OpsConfig()
    as_of: datetime                         # Reference time for open intervals and run-rates
