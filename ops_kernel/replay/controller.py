"""
Replay Controller — re-applies a staged batch of events one at a time.

States:
  idle → loaded → (stepping | playing) → idle on reset

Behavioral Contract:
- Replayed events go to an overlay on top of the live log; the live log
  is never touched, and reset discards the overlay.
- step() past the end of the batch is a silent no-op.
- play() runs one cancellable ticker on the current asyncio loop. It
  stops on pause, reset or exhaustion; pause keeps the cursor.
- Stepping N times and playing to completion produce the same overlay.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from ops_kernel.errors import OpsKernelError
from ops_kernel.event_log.store import EventInput, EventLog, OverlayEventLog, coerce_event
from ops_kernel.models.events import DomainEvent
from ops_kernel.models.replay import ReplayState

logger = logging.getLogger(__name__)


class ReplayTicker:
    """
    Calls `tick` every `interval_seconds` until it returns False, raises
    a kernel error, or the ticker is stopped. At most one task runs at a time;
    a stopped task no longer counts as running even before it has unwound.
    """

    def __init__(
        self,
        tick: Callable[[], bool],
        interval_seconds: float = 1.0,
        on_error: Optional[Callable[[OpsKernelError], None]] = None,
    ):
        self._tick = tick
        self._on_error = on_error
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        if self._task is None or self._task.done():
            return False
        return self._stop_event is None or not self._stop_event.is_set()

    def start(self) -> asyncio.Task:
        """Schedule the ticker on the running loop. Raises RuntimeError outside a loop."""
        if self.running:
            return self._task
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._task = loop.create_task(self.run(self._stop_event))
        return self._task

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        if stop_event is None:
            stop_event = asyncio.Event()

        while not stop_event.is_set():
            try:
                keep_going = self._tick()
            except OpsKernelError as exc:
                logger.warning("Replay tick failed, stopping: %s", exc)
                if self._on_error is not None:
                    self._on_error(exc)
                break
            if not keep_going:
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None and not self._task.done():
            if self._task is not asyncio.current_task():
                self._task.cancel()

    async def wait(self) -> None:
        """Wait for the current task to finish or be cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass


class ReplayController:
    """
    Owns the replay state, the overlay log and the ticker.
    `tick` defaults to step_for_ticker; the state container passes its own
    so that timed steps go through dispatch like every other command.
    """

    def __init__(
        self,
        log: EventLog,
        interval_seconds: float = 1.0,
        tick: Optional[Callable[[], bool]] = None,
    ):
        self.base = log
        self.overlay: Optional[OverlayEventLog] = None
        self.state = ReplayState()
        self.ticker = ReplayTicker(
            tick or self.step_for_ticker, interval_seconds, on_error=self._stop_playing
        )

    @property
    def events(self) -> EventLog:
        """The log reads should use: the overlay while a replay is loaded."""
        return self.overlay if self.overlay is not None else self.base

    def load(self, events: List[EventInput]) -> ReplayState:
        """Stage a batch. Any previous replay is reset first."""
        staged = [coerce_event(e) for e in events]
        self.reset()
        self.overlay = OverlayEventLog(self.base)
        self.state = ReplayState(pending_events=staged)
        logger.info("Replay loaded with %d events", len(staged))
        return self.state

    def step(self) -> Optional[DomainEvent]:
        """Apply the next staged event. Past the end this does nothing."""
        if self.overlay is None or self.state.current_index >= len(self.state.pending_events):
            logger.debug("Replay step ignored; nothing left to apply")
            return None
        event = self.state.pending_events[self.state.current_index]
        applied = self.overlay.append(event)
        self.state.current_index += 1
        if self.state.current_index >= len(self.state.pending_events):
            self.state.is_playing = False
        return applied

    def step_for_ticker(self) -> bool:
        """One timed step. Returns whether the ticker should keep going."""
        if not self.state.is_playing:
            return False
        self.step()
        return self.state.is_playing

    def _stop_playing(self, exc: OpsKernelError) -> None:
        self.state.is_playing = False

    def play(self) -> ReplayState:
        """Start the ticker. No-op when nothing is left or it is already playing."""
        if self.state.remaining == 0 or self.state.is_playing:
            return self.state
        self.state.is_playing = True
        self.state.is_paused = False
        self.ticker.start()
        logger.info("Replay playing from %d/%d", self.state.current_index, len(self.state.pending_events))
        return self.state

    def pause(self) -> ReplayState:
        self.ticker.stop()
        if self.state.is_playing:
            self.state.is_playing = False
            self.state.is_paused = True
        return self.state

    def reset(self) -> ReplayState:
        self.ticker.stop()
        if self.overlay is not None:
            self.overlay.discard()
        self.overlay = None
        self.state = ReplayState()
        return self.state
