"""
Capabilities — what each view role may see and do.

Advisory only: the table drives which surfaces a client offers. It is
not a security boundary and no command checks it.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel


class ViewRole(str, Enum):
    STAFF = "staff"
    MANAGER = "manager"
    OWNER = "owner"


class Capability(str, Enum):
    VIEW_FLOOR = "view_floor"
    OPERATE_TIMECLOCK = "operate_timeclock"
    WORK_TODOS = "work_todos"
    VIEW_COCKPIT = "view_cockpit"
    DECIDE_PROPOSALS = "decide_proposals"
    EDIT_FORECAST = "edit_forecast"
    RUN_REPLAY = "run_replay"
    VIEW_INCENTIVES = "view_incentives"
    MANAGE_DATA = "manage_data"


_STAFF = frozenset({
    Capability.VIEW_FLOOR,
    Capability.OPERATE_TIMECLOCK,
    Capability.WORK_TODOS,
    Capability.VIEW_INCENTIVES,
})

_MANAGER = _STAFF | {
    Capability.VIEW_COCKPIT,
    Capability.DECIDE_PROPOSALS,
    Capability.EDIT_FORECAST,
    Capability.RUN_REPLAY,
}

CAPABILITIES: Dict[ViewRole, FrozenSet[Capability]] = {
    ViewRole.STAFF: _STAFF,
    ViewRole.MANAGER: frozenset(_MANAGER),
    ViewRole.OWNER: frozenset(_MANAGER | {Capability.MANAGE_DATA}),
}


class Session(BaseModel):
    """A view role resolved once, with its capabilities."""

    role: ViewRole
    store_id: Optional[str] = None
    capabilities: List[Capability]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def resolve_session(role: ViewRole, store_id: Optional[str] = None) -> Session:
    return Session(
        role=role,
        store_id=store_id,
        capabilities=sorted(CAPABILITIES[role], key=lambda c: c.value),
    )
