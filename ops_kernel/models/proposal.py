"""Proposal — a draft recommendation awaiting approval or rejection."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ops_kernel.models.events import Priority, TimeBand

ProposalType = Literal[
    "menu-restriction",
    "prep-reorder",
    "help-request",
    "scope-reduction",
    "high-margin-priority",
    "extra-prep",
    "promotion",
    "shift-adjustment",
    "follow-up",
]

ExpectedEffect = Literal["sales-impact", "labor-reduction", "waste-reduction", "stockout-prevention"]

PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}


class Proposal(BaseModel):
    """
    Mutable workflow record. Approval never edits it; it is turned into
    decision events and dropped from the pending queue.
    """

    id: str
    type: ProposalType = "extra-prep"
    title: str
    description: str = ""
    reason: str = ""
    triggered_by: str = ""                  # Event or incident id that triggered this
    priority: Priority = "medium"
    created_at: datetime
    store_id: str
    time_band: TimeBand = "all"

    # Editable fields
    target_menu_ids: List[str] = []
    target_prep_item_ids: List[str] = []
    quantity: float = 0
    distributed_to_roles: List[str] = []
    deadline: Optional[datetime] = None
    expected_effects: List[ExpectedEffect] = []
    todo_count: Optional[int] = Field(default=None, ge=1)
    incident_id: Optional[str] = None
    xp_reward: Optional[int] = None
