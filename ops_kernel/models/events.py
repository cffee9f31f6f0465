"""Domain Events — the append-only facts every view is derived from."""

from datetime import date, datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

TimeBand = Literal["all", "lunch", "idle", "dinner"]
Priority = Literal["low", "medium", "high", "critical"]

LaborAction = Literal["check-in", "check-out", "break-start", "break-end"]
PrepStatus = Literal["planned", "started", "completed", "cancelled"]
DeliveryStatus = Literal["scheduled", "delayed", "arrived", "cancelled"]
DecisionAction = Literal["approved", "started", "paused", "completed", "rejected"]

# Target id used by decision events that address a proposal as a whole.
AGGREGATE_TARGET = "*"


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class BaseEvent(BaseModel):
    """Fields shared by every event variant. Events are frozen once built."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None                # Assigned by the event log when absent
    store_id: str
    timestamp: datetime                     # Naive UTC
    time_band: TimeBand = "all"

    @field_validator("timestamp")
    @classmethod
    def _normalise_timestamp(cls, value: datetime) -> datetime:
        return _to_naive_utc(value)

    @property
    def business_date(self) -> date:
        return self.timestamp.date()


class SalesEvent(BaseEvent):
    type: Literal["sales"] = "sales"
    menu_id: str
    quantity: int = Field(ge=0)
    unit_price: float = Field(ge=0)
    total: float


class LaborEvent(BaseEvent):
    type: Literal["labor"] = "labor"
    staff_id: str
    action: LaborAction


class PrepEvent(BaseEvent):
    type: Literal["prep"] = "prep"
    prep_item_id: str
    quantity: float = Field(ge=0)
    status: PrepStatus
    batch_id: Optional[str] = None
    assigned_staff_id: Optional[str] = None
    proposal_id: Optional[str] = None       # Decision that caused this prep work


class DeliveryEvent(BaseEvent):
    type: Literal["delivery"] = "delivery"
    supplier_id: str
    item_name: str
    expected_at: datetime
    status: DeliveryStatus
    delay_minutes: int = 0
    actual_at: Optional[datetime] = None

    @field_validator("expected_at", "actual_at")
    @classmethod
    def _normalise_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(value) if value is not None else None


class DecisionEvent(BaseEvent):
    """One state transition of one to-do target of a proposal."""

    type: Literal["decision"] = "decision"
    proposal_id: str
    target_id: str = AGGREGATE_TARGET
    action: DecisionAction
    title: str
    description: str = ""
    priority: Priority = "medium"
    distributed_to_roles: List[str] = []
    target_menu_ids: List[str] = []
    target_prep_item_ids: List[str] = []
    quantity: float = 0
    deadline: Optional[datetime] = None
    incident_id: Optional[str] = None
    assignee_id: Optional[str] = None
    xp_reward: Optional[int] = None
    proposal_type: str = "extra-prep"
    reason: str = ""
    pause_reason: Optional[str] = None      # Only on paused events

    @field_validator("deadline")
    @classmethod
    def _normalise_deadline(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(value) if value is not None else None


class ForecastEvent(BaseEvent):
    type: Literal["forecast"] = "forecast"
    date: date
    forecast_customers: int = Field(ge=0)
    avg_spend: float = Field(ge=0)
    forecast_sales: float = Field(ge=0)     # forecast_customers * avg_spend


DomainEvent = Annotated[
    Union[SalesEvent, LaborEvent, PrepEvent, DeliveryEvent, DecisionEvent, ForecastEvent],
    Field(discriminator="type"),
]

EVENT_ADAPTER: TypeAdapter = TypeAdapter(DomainEvent)

EVENT_TYPES = ("sales", "labor", "prep", "delivery", "decision", "forecast")
