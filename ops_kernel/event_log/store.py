"""
Event Log — the ordered, append-only store every view is derived from.

Behavioral Contract:
- Append-only. No event is ever modified or removed.
- Events keep submission order; out-of-order timestamps are not re-sorted.
- Every event carries a unique id; one is assigned when absent.
- A rejected append or batch leaves the log unchanged.
- query() returns a lazy view over the prefix present at call time and
  can be iterated any number of times.
"""

import logging
from itertools import chain
from typing import Callable, Iterable, Iterator, List, Optional, Set, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ops_kernel.errors import ValidationError
from ops_kernel.models.events import (
    EVENT_ADAPTER,
    DecisionEvent,
    DeliveryEvent,
    DomainEvent,
    ForecastEvent,
    LaborEvent,
    PrepEvent,
    SalesEvent,
)

logger = logging.getLogger(__name__)

EventPredicate = Callable[[DomainEvent], bool]
EventInput = Union[DomainEvent, dict]

_VARIANTS = (SalesEvent, LaborEvent, PrepEvent, DeliveryEvent, DecisionEvent, ForecastEvent)


def coerce_event(event: EventInput) -> DomainEvent:
    """Parse a payload into a tagged event variant, assigning an id when absent."""
    try:
        if isinstance(event, dict):
            parsed = EVENT_ADAPTER.validate_python(event)
        elif isinstance(event, _VARIANTS):
            parsed = event
        else:
            raise ValidationError(f"Unsupported event payload: {type(event).__name__}")
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc

    if not parsed.id:
        parsed = parsed.model_copy(update={"id": f"evt_{uuid4().hex[:12]}"})
    return parsed


class EventQuery:
    """Lazy, restartable view over a fixed prefix of an event sequence."""

    def __init__(self, source: Callable[[], Iterable[DomainEvent]], limit: int,
                 predicate: Optional[EventPredicate] = None):
        self._source = source
        self._limit = limit
        self._predicate = predicate

    def __iter__(self) -> Iterator[DomainEvent]:
        for index, event in enumerate(self._source()):
            if index >= self._limit:
                return
            if self._predicate is None or self._predicate(event):
                yield event

    def where(self, predicate: EventPredicate) -> "EventQuery":
        """Narrow the view further without materialising it."""
        if self._predicate is None:
            combined = predicate
        else:
            first = self._predicate
            combined = lambda e: first(e) and predicate(e)  # noqa: E731
        return EventQuery(self._source, self._limit, combined)

    def to_list(self) -> List[DomainEvent]:
        return list(self)


class EventLog:
    """
    In-memory event log for a single process.
    Persistence is handled by the snapshot repository.
    """

    def __init__(self, events: Optional[Iterable[EventInput]] = None):
        self._events: List[DomainEvent] = []
        self._ids: Set[str] = set()
        if events:
            self.extend(events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[DomainEvent]:
        return iter(self._events)

    def _known_ids(self) -> Set[str]:
        return self._ids

    def append(self, event: EventInput) -> DomainEvent:
        """Validate and append one event. Returns the stored event."""
        parsed = coerce_event(event)
        if parsed.id in self._known_ids():
            raise ValidationError(f"Duplicate event id: {parsed.id}")
        self._events.append(parsed)
        self._ids.add(parsed.id)
        logger.debug("Appended %s event %s", parsed.type, parsed.id)
        return parsed

    def extend(self, events: Iterable[EventInput]) -> List[DomainEvent]:
        """Validate a whole batch, then append all of it or none of it."""
        parsed: List[DomainEvent] = []
        seen = set(self._known_ids())
        for event in events:
            item = coerce_event(event)
            if item.id in seen:
                raise ValidationError(f"Duplicate event id: {item.id}")
            seen.add(item.id)
            parsed.append(item)

        for item in parsed:
            self._events.append(item)
            self._ids.add(item.id)
        if parsed:
            logger.debug("Appended batch of %d events", len(parsed))
        return parsed

    def query(self, predicate: Optional[EventPredicate] = None) -> EventQuery:
        """Matching events of the current prefix, in submission order."""
        return EventQuery(lambda: iter(self), len(self), predicate)

    def recent(self, limit: int = 20) -> List[DomainEvent]:
        """The most recently appended events, newest first."""
        events = list(self)
        return list(reversed(events[-limit:])) if limit > 0 else []

    def snapshot(self) -> List[dict]:
        """Serializable copy of the log."""
        return [EVENT_ADAPTER.dump_python(e, mode="json") for e in self]


class OverlayEventLog(EventLog):
    """
    Replayed events layered over a base log.

    Reads see base events followed by overlay events. Appends only touch
    the overlay, so discarding it leaves the base exactly as it was.
    """

    def __init__(self, base: EventLog):
        super().__init__()
        self.base = base

    def __len__(self) -> int:
        return len(self.base) + len(self._events)

    def __iter__(self) -> Iterator[DomainEvent]:
        return chain(list(self.base), list(self._events))

    def _known_ids(self) -> Set[str]:
        return self._ids | {e.id for e in self.base}

    @property
    def overlay_events(self) -> List[DomainEvent]:
        return list(self._events)

    def discard(self) -> int:
        """Drop every overlay event. Returns how many were dropped."""
        dropped = len(self._events)
        self._events = []
        self._ids = set()
        if dropped:
            logger.info("Discarded %d replayed events", dropped)
        return dropped
