"""Replay state — the staged batch and its cursor."""

from typing import List

from pydantic import BaseModel

from ops_kernel.models.events import DomainEvent


class ReplayState(BaseModel):
    """Lives outside the event log; stepping mutates the overlay log."""

    pending_events: List[DomainEvent] = []
    current_index: int = 0
    is_playing: bool = False
    is_paused: bool = False

    @property
    def phase(self) -> str:
        """idle | loaded | playing | finished"""
        if not self.pending_events:
            return "idle"
        if self.is_playing:
            return "playing"
        if self.current_index >= len(self.pending_events):
            return "finished"
        return "loaded"

    @property
    def remaining(self) -> int:
        return max(0, len(self.pending_events) - self.current_index)
