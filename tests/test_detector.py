"""Tests for the Incident Detector and Registry."""

from datetime import date, datetime

import pytest

from ops_kernel.detection.detector import (
    IncidentDetector,
    IncidentRegistry,
    incident_id,
    incident_signature,
)
from ops_kernel.errors import NotFoundError, ValidationError
from ops_kernel.models.config import DetectorThresholds, OpsConfig
from ops_kernel.models.events import (
    DecisionEvent,
    DeliveryEvent,
    ForecastEvent,
    LaborEvent,
    PrepEvent,
    SalesEvent,
)
from ops_kernel.models.incident import (
    AgentId,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
)

DAY = date(2026, 3, 4)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 4, hour, minute)


def _make_lunch_forecast(sales: float) -> ForecastEvent:
    return ForecastEvent(
        store_id="1", timestamp=_at(8), time_band="lunch", date=DAY,
        forecast_customers=50, avg_spend=sales / 50, forecast_sales=sales,
    )


def _make_lunch_sale(total: float, hour: int = 12) -> SalesEvent:
    return SalesEvent(
        store_id="1", timestamp=_at(hour), time_band="lunch", menu_id="menu-1",
        quantity=2, unit_price=total / 2, total=total,
    )


def _demand_drop_events():
    return [
        _make_lunch_forecast(100000),
        _make_lunch_sale(25000, hour=11),
        _make_lunch_sale(15000, hour=12),
    ]


class TestSignature:
    def test_signature_format(self):
        assert incident_signature(IncidentType.DEMAND_DROP, "lunch", DAY) == "demand_drop:lunch:2026-03-04"
        assert incident_signature(
            IncidentType.DELIVERY_DELAY, "all", DAY, "Salmon"
        ) == "delivery_delay:all:2026-03-04:Salmon"

    def test_id_is_stable_and_store_scoped(self):
        sig = "demand_drop:lunch:2026-03-04"
        assert incident_id("1", sig) == incident_id("1", sig)
        assert incident_id("1", sig) != incident_id("2", sig)
        assert incident_id("1", sig).startswith("inc_")


class TestDemandDrop:
    def setup_method(self):
        self.detector = IncidentDetector()

    def test_critical_when_below_half(self):
        incidents = self.detector.detect(_demand_drop_events(), "1", DAY, _at(12, 30))
        assert len(incidents) == 1
        incident = incidents[0]
        assert incident.type == IncidentType.DEMAND_DROP
        assert incident.severity == IncidentSeverity.CRITICAL
        assert incident.time_band == "lunch"
        assert incident.metrics["achievement_rate"] == 40.0
        assert incident.lead_agent == AgentId.POS
        assert incident.status == IncidentStatus.OPEN

    def test_warning_between_thresholds(self):
        events = [_make_lunch_forecast(100000), _make_lunch_sale(70000)]
        incidents = self.detector.detect(events, "1", DAY, _at(12, 30))
        assert incidents[0].severity == IncidentSeverity.WARNING

    def test_no_incident_at_target(self):
        events = [_make_lunch_forecast(100000), _make_lunch_sale(90000)]
        assert self.detector.detect(events, "1", DAY, _at(12, 30)) == []

    def test_band_without_sales_waits_for_close(self):
        events = [_make_lunch_forecast(100000)]
        assert self.detector.detect(events, "1", DAY, _at(12)) == []
        closed = self.detector.detect(events, "1", DAY, _at(14, 5))
        assert closed[0].severity == IncidentSeverity.CRITICAL

    def test_unbanded_sale_counts_for_its_hour(self):
        unbanded = SalesEvent(
            store_id="1", timestamp=_at(12), menu_id="menu-1",
            quantity=1, unit_price=120000, total=120000,
        )
        events = [_make_lunch_forecast(100000), unbanded]
        assert self.detector.detect(events, "1", DAY, _at(15)) == []

    def test_custom_thresholds(self):
        config = OpsConfig(thresholds=DetectorThresholds(demand_drop_critical_rate=30))
        incidents = IncidentDetector(config).detect(_demand_drop_events(), "1", DAY, _at(12, 30))
        assert incidents[0].severity == IncidentSeverity.WARNING


class TestOtherRules:
    def setup_method(self):
        self.detector = IncidentDetector()

    def test_delivery_delay(self):
        events = [
            DeliveryEvent(store_id="1", timestamp=_at(10, 15), supplier_id="fish", item_name="Salmon",
                          expected_at=_at(10), status="delayed", delay_minutes=45),
            DeliveryEvent(store_id="1", timestamp=_at(10, 20), supplier_id="veg", item_name="Shiso",
                          expected_at=_at(10), status="delayed", delay_minutes=10),
        ]
        incidents = {i.subject: i for i in self.detector.detect(events, "1", DAY, _at(11))}
        assert incidents["Salmon"].severity == IncidentSeverity.CRITICAL
        assert incidents["Shiso"].severity == IncidentSeverity.WARNING

    def test_arrived_delivery_is_not_delayed(self):
        events = [
            DeliveryEvent(store_id="1", timestamp=_at(10, 15), supplier_id="fish", item_name="Salmon",
                          expected_at=_at(10), status="delayed", delay_minutes=45),
            DeliveryEvent(store_id="1", timestamp=_at(11), supplier_id="fish", item_name="Salmon",
                          expected_at=_at(10), status="arrived", delay_minutes=60),
        ]
        assert self.detector.detect(events, "1", DAY, _at(11, 30)) == []

    def test_stockout_risk(self):
        events = [
            PrepEvent(store_id="1", timestamp=_at(9), prep_item_id=f"prep-{n}", quantity=10, status="planned")
            for n in range(1, 4)
        ] + [PrepEvent(store_id="1", timestamp=_at(9), prep_item_id="prep-4", quantity=10, status="completed")]
        incidents = self.detector.detect(events, "1", DAY, _at(10))
        assert incidents[0].type == IncidentType.STOCKOUT_RISK
        assert incidents[0].severity == IncidentSeverity.CRITICAL

    def test_labor_cost_overrun(self):
        events = [
            LaborEvent(store_id="1", timestamp=_at(9), staff_id="temp-1", action="check-in"),
            LaborEvent(store_id="1", timestamp=_at(12), staff_id="temp-1", action="check-out"),
            _make_lunch_sale(8000),
        ]
        # 3h at the default 1200 wage against 8000 in sales
        incidents = self.detector.detect(events, "1", DAY, _at(12, 30))
        labor = [i for i in incidents if i.type == IncidentType.LABOR_OVERRUN]
        assert labor[0].severity == IncidentSeverity.WARNING

    def test_no_break_is_info(self):
        events = [LaborEvent(store_id="1", timestamp=_at(9), staff_id="staff-1", action="check-in")]
        incidents = self.detector.detect(events, "1", DAY, _at(13, 30))
        assert len(incidents) == 1
        assert incidents[0].severity == IncidentSeverity.INFO
        assert incidents[0].subject == "staff-1"

    def test_overdue_todo(self):
        events = [
            DecisionEvent(store_id="1", timestamp=_at(9), proposal_id="p1", target_id="role-kitchen",
                          action="approved", title="Extra prep", deadline=_at(10)),
        ]
        incidents = self.detector.detect(events, "1", DAY, _at(11))
        assert incidents[0].type == IncidentType.OPS_DELAY
        assert incidents[0].subject == "p1"

    def test_extra_rule(self):
        calls = []
        self.detector.register_rule(lambda ctx: calls.append(ctx.store_id) or [])
        self.detector.detect([], "1", DAY, _at(12))
        assert calls == ["1"]


class TestRegistry:
    def setup_method(self):
        self.detector = IncidentDetector()
        self.registry = IncidentRegistry()

    def _scan(self, events, when):
        return self.registry.sync(self.detector.detect(events, "1", DAY, when), when)

    def test_rescan_is_idempotent(self):
        first = self._scan(_demand_drop_events(), _at(12, 30))
        second = self._scan(_demand_drop_events(), _at(12, 45))
        assert len(self.registry) == 1
        assert [i.id for i in first] == [i.id for i in second]
        # Nothing changed, so updated_at stays put
        assert second[0].updated_at == _at(12, 30)

    def test_refresh_updates_severity(self):
        events = _demand_drop_events()
        self._scan(events, _at(12, 30))
        events.append(_make_lunch_sale(20000, hour=13))
        refreshed = self._scan(events, _at(13, 10))
        assert len(self.registry) == 1
        assert refreshed[0].severity == IncidentSeverity.WARNING
        assert refreshed[0].updated_at == _at(13, 10)

    def test_resolved_stays_resolved(self):
        incident = self._scan(_demand_drop_events(), _at(12, 30))[0]
        self.registry.set_status(incident.id, IncidentStatus.RESOLVED, _at(12, 40))
        again = self._scan(_demand_drop_events(), _at(12, 50))
        assert again[0].status == IncidentStatus.RESOLVED

    def test_advance_is_forward_only(self):
        incident = self._scan(_demand_drop_events(), _at(12, 30))[0]
        self.registry.advance(incident.id, IncidentStatus.EXECUTING, _at(12, 35), "prop_1")
        self.registry.advance(incident.id, IncidentStatus.PROPOSED, _at(12, 40))
        assert incident.status == IncidentStatus.EXECUTING
        assert incident.proposal_id == "prop_1"

    def test_set_status_rejects_backward_moves(self):
        incident = self._scan(_demand_drop_events(), _at(12, 30))[0]
        self.registry.set_status(incident.id, IncidentStatus.INVESTIGATING, _at(12, 35))
        with pytest.raises(ValidationError):
            self.registry.set_status(incident.id, IncidentStatus.OPEN, _at(12, 40))

    def test_unknown_incident(self):
        with pytest.raises(NotFoundError):
            self.registry.set_status("inc_missing", IncidentStatus.RESOLVED)

    def test_filters(self):
        self._scan(_demand_drop_events(), _at(12, 30))
        assert len(self.registry.all(store_id="1", day=DAY)) == 1
        assert self.registry.all(store_id="2") == []
        assert self.registry.all(status=IncidentStatus.RESOLVED) == []
