"""
Event builders for the command surface.

These are the only functions that create operational events. They are
pure: the caller supplies the time and the band windows.
"""

from datetime import date, datetime
from typing import Dict, Optional
from uuid import uuid4

from ops_kernel.derivation.time_bands import DEFAULT_BAND, time_band_for
from ops_kernel.models.config import TimeBandWindow
from ops_kernel.models.events import (
    DeliveryEvent,
    DomainEvent,
    ForecastEvent,
    LaborEvent,
    PrepEvent,
    SalesEvent,
)


def _event_id() -> str:
    return f"evt_{uuid4().hex[:12]}"


def labor_event(
    store_id: str,
    staff_id: str,
    action: str,
    current_time: datetime,
    bands: Dict[str, TimeBandWindow],
) -> LaborEvent:
    return LaborEvent(
        id=_event_id(),
        store_id=store_id,
        timestamp=current_time,
        time_band=time_band_for(current_time, bands),
        staff_id=staff_id,
        action=action,
    )


def sales_event(
    store_id: str,
    menu_id: str,
    quantity: int,
    unit_price: float,
    current_time: datetime,
    bands: Dict[str, TimeBandWindow],
    time_band: Optional[str] = None,
) -> SalesEvent:
    return SalesEvent(
        id=_event_id(),
        store_id=store_id,
        timestamp=current_time,
        time_band=time_band or time_band_for(current_time, bands),
        menu_id=menu_id,
        quantity=quantity,
        unit_price=unit_price,
        total=quantity * unit_price,
    )


def prep_event(
    store_id: str,
    prep_item_id: str,
    quantity: float,
    status: str,
    current_time: datetime,
    bands: Dict[str, TimeBandWindow],
    batch_id: Optional[str] = None,
    proposal_id: Optional[str] = None,
    assigned_staff_id: Optional[str] = None,
) -> PrepEvent:
    return PrepEvent(
        id=_event_id(),
        store_id=store_id,
        timestamp=current_time,
        time_band=time_band_for(current_time, bands),
        prep_item_id=prep_item_id,
        quantity=quantity,
        status=status,
        batch_id=batch_id,
        proposal_id=proposal_id,
        assigned_staff_id=assigned_staff_id,
    )


def delivery_event(
    store_id: str,
    supplier_id: str,
    item_name: str,
    expected_at: datetime,
    status: str,
    current_time: datetime,
    bands: Dict[str, TimeBandWindow],
    delay_minutes: int = 0,
    actual_at: Optional[datetime] = None,
) -> DeliveryEvent:
    return DeliveryEvent(
        id=_event_id(),
        store_id=store_id,
        timestamp=current_time,
        time_band=time_band_for(current_time, bands),
        supplier_id=supplier_id,
        item_name=item_name,
        expected_at=expected_at,
        status=status,
        delay_minutes=delay_minutes,
        actual_at=actual_at,
    )


def forecast_event(
    store_id: str,
    day: date,
    time_band: str,
    customers: int,
    avg_spend: float,
    current_time: datetime,
) -> ForecastEvent:
    return ForecastEvent(
        id=_event_id(),
        store_id=store_id,
        timestamp=current_time,
        time_band=time_band,
        date=day,
        forecast_customers=customers,
        avg_spend=avg_spend,
        forecast_sales=customers * avg_spend,
    )


def with_time_band(event: DomainEvent, bands: Dict[str, TimeBandWindow]) -> DomainEvent:
    """
    Stamp a band-less event with the band of its timestamp.
    Forecasts keep 'all', which there means a day-level forecast.
    """
    if event.type == "forecast" or event.time_band != DEFAULT_BAND:
        return event
    return event.model_copy(update={"time_band": time_band_for(event.timestamp, bands)})
