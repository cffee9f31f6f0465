"""
Demo fixtures — master data, one business day of events and a replay batch.

Everything is generated for a given day so the demo lines up with
whatever date the store is looking at.
"""

from datetime import date, datetime, time, timedelta
from typing import List

from ops_kernel.models.events import (
    DecisionEvent,
    DeliveryEvent,
    DomainEvent,
    ForecastEvent,
    LaborEvent,
    PrepEvent,
    SalesEvent,
)
from ops_kernel.models.master import MasterData, Menu, PrepItem, Role, Staff, Store


def demo_master_data() -> MasterData:
    return MasterData(
        stores=[
            Store(id="1", name="Aburi TORA Futako-Tamagawa", code="FUTAKO"),
            Store(id="2", name="Aburi TORA Jiyugaoka", code="JIYUGAOKA"),
            Store(id="3", name="Aburi TORA Toyosu", code="TOYOSU"),
            Store(id="4", name="Aburi TORA Komazawa", code="KOMAZAWA"),
        ],
        roles=[
            Role(id="role-manager", name="Manager", code="manager"),
            Role(id="role-kitchen", name="Kitchen", code="kitchen"),
            Role(id="role-floor", name="Floor", code="floor"),
            Role(id="role-delivery", name="Delivery", code="delivery"),
        ],
        staff=[
            Staff(id="staff-1", name="Taro Tanaka", role_id="role-manager", store_id="1", star_level=3, wage=1800),
            Staff(id="staff-2", name="Hanako Suzuki", role_id="role-kitchen", store_id="1", star_level=3, wage=1500),
            Staff(id="staff-3", name="Ichiro Sato", role_id="role-kitchen", store_id="1", star_level=2, wage=1300),
            Staff(id="staff-4", name="Misaki Yamada", role_id="role-floor", store_id="1", star_level=2, wage=1200),
            Staff(id="staff-5", name="Kenta Takahashi", role_id="role-floor", store_id="1", star_level=1, wage=1100),
            Staff(id="staff-6", name="Ai Ito", role_id="role-delivery", store_id="1", star_level=1, wage=1100),
            Staff(id="staff-7", name="Yuko Nakamura", role_id="role-manager", store_id="2", star_level=3, wage=1800),
            Staff(id="staff-8", name="Makoto Kobayashi", role_id="role-kitchen", store_id="2", star_level=2, wage=1300),
            Staff(id="staff-9", name="Megumi Kato", role_id="role-floor", store_id="2", star_level=2, wage=1200),
            Staff(id="staff-10", name="Daisuke Watanabe", role_id="role-manager", store_id="3", star_level=3, wage=1800),
            Staff(id="staff-11", name="Yumi Matsumoto", role_id="role-kitchen", store_id="3", star_level=2, wage=1300),
            Staff(id="staff-12", name="Ken Inoue", role_id="role-floor", store_id="3", star_level=1, wage=1100),
            Staff(id="staff-13", name="Naoki Kimura", role_id="role-manager", store_id="4", star_level=3, wage=1800),
            Staff(id="staff-14", name="Miho Hayashi", role_id="role-kitchen", store_id="4", star_level=2, wage=1300),
            Staff(id="staff-15", name="Sho Saito", role_id="role-floor", store_id="4", star_level=1, wage=1100),
        ],
        menus=[
            Menu(id="menu-1", name="Aged tuna nigiri", price=2800, category="main", prep_time_minutes=5),
            Menu(id="menu-2", name="Seared salmon nigiri", price=3200, category="main", prep_time_minutes=6),
            Menu(id="menu-3", name="Sea urchin gunkan", price=4500, category="main", prep_time_minutes=3),
            Menu(id="menu-4", name="Tamagoyaki", price=1800, category="side", prep_time_minutes=8),
            Menu(id="menu-5", name="Premium assortment", price=5800, category="main", prep_time_minutes=20),
            Menu(id="menu-6", name="Sake (one go)", price=800, category="drink", prep_time_minutes=1),
            Menu(id="menu-7", name="Green tea", price=0, category="drink", prep_time_minutes=1),
        ],
        prep_items=[
            PrepItem(id="prep-1", name="Aged tuna", menu_ids=["menu-1", "menu-5"], default_quantity=30, unit="pieces"),
            PrepItem(id="prep-2", name="Seared salmon", menu_ids=["menu-2", "menu-5"], default_quantity=25, unit="pieces"),
            PrepItem(id="prep-3", name="Sea urchin", menu_ids=["menu-3", "menu-5"], default_quantity=15, unit="pieces"),
            PrepItem(id="prep-4", name="Sushi rice", menu_ids=["menu-1", "menu-2", "menu-3", "menu-4", "menu-5"],
                     default_quantity=100, unit="balls"),
            PrepItem(id="prep-5", name="Tamagoyaki", menu_ids=["menu-4"], default_quantity=20, unit="rolls"),
        ],
    )


def _at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour=hour, minute=minute))


def demo_day_events(store_id: str, day: date) -> List[DomainEvent]:
    """A morning and lunch service for one store, in timestamp order."""
    prefix = f"demo-{store_id}-{day.isoformat()}"
    evening = day - timedelta(days=1)
    events: List[DomainEvent] = [
        ForecastEvent(id=f"{prefix}-fc-lunch", store_id=store_id, timestamp=_at(evening, 20),
                      time_band="lunch", date=day, forecast_customers=60, avg_spend=2500,
                      forecast_sales=150000),
        ForecastEvent(id=f"{prefix}-fc-idle", store_id=store_id, timestamp=_at(evening, 20),
                      time_band="idle", date=day, forecast_customers=15, avg_spend=2000,
                      forecast_sales=30000),
        ForecastEvent(id=f"{prefix}-fc-dinner", store_id=store_id, timestamp=_at(evening, 20),
                      time_band="dinner", date=day, forecast_customers=50, avg_spend=4000,
                      forecast_sales=200000),
    ]

    shifts = [("staff-1", 9), ("staff-2", 9), ("staff-3", 10), ("staff-4", 10), ("staff-5", 11)]
    for staff_id, hour in shifts:
        events.append(LaborEvent(id=f"{prefix}-in-{staff_id}", store_id=store_id,
                                 timestamp=_at(day, hour), staff_id=staff_id, action="check-in"))

    for n, (item, qty) in enumerate([("prep-1", 30), ("prep-2", 25), ("prep-3", 15), ("prep-4", 100)], start=1):
        events.append(PrepEvent(id=f"{prefix}-prep-plan-{n}", store_id=store_id, timestamp=_at(day, 9, n),
                                prep_item_id=item, quantity=qty, status="planned", batch_id="morning"))
    events.append(PrepEvent(id=f"{prefix}-prep-start-4", store_id=store_id, timestamp=_at(day, 9, 30),
                            prep_item_id="prep-4", quantity=100, status="started", batch_id="morning"))
    events.append(PrepEvent(id=f"{prefix}-prep-done-4", store_id=store_id, timestamp=_at(day, 10, 30),
                            prep_item_id="prep-4", quantity=100, status="completed", batch_id="morning"))
    events.append(DeliveryEvent(id=f"{prefix}-dlv-salmon", store_id=store_id, timestamp=_at(day, 10, 15),
                                supplier_id="supplier-fish", item_name="Salmon",
                                expected_at=_at(day, 10), status="delayed", delay_minutes=45))

    sales = [(11, 10, "menu-1", 4), (11, 40, "menu-2", 3), (12, 5, "menu-5", 2),
             (12, 30, "menu-3", 2), (12, 50, "menu-6", 5), (13, 20, "menu-4", 3)]
    menus = {m.id: m for m in demo_master_data().menus}
    for n, (hour, minute, menu_id, qty) in enumerate(sales, start=1):
        price = menus[menu_id].price
        events.append(SalesEvent(id=f"{prefix}-sale-{n}", store_id=store_id, timestamp=_at(day, hour, minute),
                                 time_band="lunch", menu_id=menu_id, quantity=qty, unit_price=price,
                                 total=qty * price))

    events.append(LaborEvent(id=f"{prefix}-brk-staff-2", store_id=store_id, timestamp=_at(day, 13, 30),
                             time_band="lunch", staff_id="staff-2", action="break-start"))
    events.append(LaborEvent(id=f"{prefix}-brk-end-staff-2", store_id=store_id, timestamp=_at(day, 14),
                             time_band="idle", staff_id="staff-2", action="break-end"))
    events.append(DecisionEvent(id=f"{prefix}-todo-1", store_id=store_id, timestamp=_at(day, 10, 45),
                                proposal_id=f"{prefix}-quest-1", target_id="role-kitchen",
                                action="approved", title="Lunch prep check", priority="medium",
                                distributed_to_roles=["role-kitchen"], proposal_type="follow-up"))
    events.append(DecisionEvent(id=f"{prefix}-todo-1-done", store_id=store_id, timestamp=_at(day, 11, 15),
                                time_band="lunch", proposal_id=f"{prefix}-quest-1", target_id="role-kitchen",
                                action="completed", title="Lunch prep check", priority="medium",
                                distributed_to_roles=["role-kitchen"], proposal_type="follow-up",
                                assignee_id="staff-2"))
    return events


def demo_replay_batch(store_id: str, day: date) -> List[DomainEvent]:
    """An afternoon of events to step through on top of the demo day."""
    prefix = f"replay-{store_id}-{day.isoformat()}"
    return [
        SalesEvent(id=f"{prefix}-1", store_id=store_id, timestamp=_at(day, 14, 20), time_band="idle",
                   menu_id="menu-4", quantity=2, unit_price=1800, total=3600),
        LaborEvent(id=f"{prefix}-2", store_id=store_id, timestamp=_at(day, 14, 30), time_band="idle",
                   staff_id="staff-3", action="break-start"),
        DeliveryEvent(id=f"{prefix}-3", store_id=store_id, timestamp=_at(day, 14, 45), time_band="idle",
                      supplier_id="supplier-fish", item_name="Salmon", expected_at=_at(day, 10),
                      status="arrived", delay_minutes=45, actual_at=_at(day, 14, 45)),
        PrepEvent(id=f"{prefix}-4", store_id=store_id, timestamp=_at(day, 15), time_band="idle",
                  prep_item_id="prep-2", quantity=25, status="started", batch_id="morning"),
        LaborEvent(id=f"{prefix}-5", store_id=store_id, timestamp=_at(day, 15, 15), time_band="idle",
                   staff_id="staff-3", action="break-end"),
        PrepEvent(id=f"{prefix}-6", store_id=store_id, timestamp=_at(day, 16), time_band="idle",
                  prep_item_id="prep-2", quantity=25, status="completed", batch_id="morning"),
        SalesEvent(id=f"{prefix}-7", store_id=store_id, timestamp=_at(day, 17, 30), time_band="dinner",
                   menu_id="menu-5", quantity=4, unit_price=5800, total=23200),
        LaborEvent(id=f"{prefix}-8", store_id=store_id, timestamp=_at(day, 18), time_band="dinner",
                   staff_id="staff-1", action="check-out"),
    ]
