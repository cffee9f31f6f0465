"""Master data — the stores, people, menus and prep items events refer to."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Store(BaseModel):
    id: str
    name: str
    code: str


class Role(BaseModel):
    id: str
    name: str
    code: str                               # e.g., "manager", "kitchen", "floor", "delivery"


class Staff(BaseModel):
    id: str
    name: str
    role_id: str
    store_id: str
    star_level: int = Field(ge=1, le=3, default=1)
    wage: Optional[float] = None            # Hourly wage; falls back to config default


class Menu(BaseModel):
    id: str
    name: str
    price: float
    category: str
    prep_time_minutes: int = 0


class PrepItem(BaseModel):
    id: str
    name: str
    menu_ids: List[str] = []
    default_quantity: float = 0
    unit: str = "pcs"


class MasterData(BaseModel):
    """Everything the event log references by id."""

    stores: List[Store] = []
    roles: List[Role] = []
    staff: List[Staff] = []
    menus: List[Menu] = []
    prep_items: List[PrepItem] = []

    def find_staff(self, staff_id: str) -> Optional[Staff]:
        return next((s for s in self.staff if s.id == staff_id), None)

    def find_prep_item(self, prep_item_id: str) -> Optional[PrepItem]:
        return next((p for p in self.prep_items if p.id == prep_item_id), None)

    def find_store(self, store_id: str) -> Optional[Store]:
        return next((s for s in self.stores if s.id == store_id), None)

    def staff_for_store(self, store_id: str) -> List[Staff]:
        return [s for s in self.staff if s.store_id == store_id]

    def role_ids_for_codes(self, codes: List[str]) -> List[str]:
        return [r.id for r in self.roles if r.code in codes]
