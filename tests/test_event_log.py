"""Tests for the Event Log."""

from datetime import datetime

import pytest

from ops_kernel.errors import ValidationError
from ops_kernel.event_log.store import EventLog, OverlayEventLog, coerce_event
from ops_kernel.models.events import LaborEvent, SalesEvent


def _make_sale(event_id=None, hour=12, total=1000.0) -> SalesEvent:
    return SalesEvent(
        id=event_id,
        store_id="1",
        timestamp=datetime(2026, 3, 4, hour),
        time_band="lunch",
        menu_id="menu-1",
        quantity=1,
        unit_price=total,
        total=total,
    )


def _make_labor_dict(event_id: str, action: str = "check-in") -> dict:
    return {
        "id": event_id,
        "type": "labor",
        "store_id": "1",
        "timestamp": "2026-03-04T09:00:00",
        "staff_id": "staff-1",
        "action": action,
    }


class TestAppend:
    def setup_method(self):
        self.log = EventLog()

    def test_assigns_id_when_absent(self):
        stored = self.log.append(_make_sale())
        assert stored.id.startswith("evt_")
        assert len(self.log) == 1

    def test_keeps_given_id(self):
        stored = self.log.append(_make_sale("sale-1"))
        assert stored.id == "sale-1"

    def test_parses_dict_payloads(self):
        stored = self.log.append(_make_labor_dict("lab-1"))
        assert isinstance(stored, LaborEvent)

    def test_duplicate_id_rejected(self):
        self.log.append(_make_sale("sale-1"))
        with pytest.raises(ValidationError):
            self.log.append(_make_sale("sale-1"))
        assert len(self.log) == 1

    def test_malformed_payload_leaves_log_unchanged(self):
        self.log.append(_make_sale("sale-1"))
        with pytest.raises(ValidationError):
            self.log.append({"type": "labor", "store_id": "1"})
        with pytest.raises(ValidationError):
            self.log.append(_make_labor_dict("lab-1", action="nap"))
        assert [e.id for e in self.log] == ["sale-1"]

    def test_unsupported_payload_type(self):
        with pytest.raises(ValidationError):
            coerce_event("not an event")

    def test_keeps_submission_order(self):
        self.log.append(_make_sale("late", hour=15))
        self.log.append(_make_sale("early", hour=11))
        assert [e.id for e in self.log] == ["late", "early"]


class TestExtend:
    def setup_method(self):
        self.log = EventLog()

    def test_batch_is_all_or_nothing(self):
        self.log.append(_make_sale("sale-1"))
        with pytest.raises(ValidationError):
            self.log.extend([
                _make_sale("sale-2"),
                {"type": "sales", "store_id": "1"},
            ])
        assert len(self.log) == 1

    def test_duplicate_within_batch(self):
        with pytest.raises(ValidationError):
            self.log.extend([_make_sale("dup"), _make_sale("dup")])
        assert len(self.log) == 0

    def test_returns_stored_events(self):
        stored = self.log.extend([_make_sale("a"), _make_labor_dict("b")])
        assert [e.id for e in stored] == ["a", "b"]


class TestQuery:
    def setup_method(self):
        self.log = EventLog([_make_sale("a"), _make_labor_dict("b"), _make_sale("c")])

    def test_predicate(self):
        sales = self.log.query(lambda e: e.type == "sales").to_list()
        assert [e.id for e in sales] == ["a", "c"]

    def test_restartable(self):
        query = self.log.query()
        assert [e.id for e in query] == [e.id for e in query]

    def test_sees_prefix_at_call_time(self):
        query = self.log.query()
        self.log.append(_make_sale("d"))
        assert [e.id for e in query] == ["a", "b", "c"]

    def test_where_narrows(self):
        query = self.log.query(lambda e: e.type == "sales").where(lambda e: e.id != "a")
        assert [e.id for e in query] == ["c"]

    def test_recent_is_newest_first(self):
        assert [e.id for e in self.log.recent(2)] == ["c", "b"]
        assert self.log.recent(0) == []

    def test_snapshot_is_json_ready(self):
        snapshot = self.log.snapshot()
        assert snapshot[0]["type"] == "sales"
        assert snapshot[0]["timestamp"] == "2026-03-04T12:00:00"
        assert len(EventLog(snapshot)) == 3


class TestOverlay:
    def setup_method(self):
        self.base = EventLog([_make_sale("a")])
        self.overlay = OverlayEventLog(self.base)

    def test_reads_base_then_overlay(self):
        self.overlay.append(_make_sale("r1"))
        assert [e.id for e in self.overlay] == ["a", "r1"]
        assert len(self.overlay) == 2
        assert len(self.base) == 1

    def test_rejects_ids_known_to_base(self):
        with pytest.raises(ValidationError):
            self.overlay.append(_make_sale("a"))

    def test_discard_leaves_base_untouched(self):
        self.overlay.extend([_make_sale("r1"), _make_sale("r2")])
        assert self.overlay.discard() == 2
        assert [e.id for e in self.overlay] == ["a"]
        assert [e.id for e in self.base] == ["a"]
