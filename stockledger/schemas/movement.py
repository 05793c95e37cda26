import datetime as dt

from pydantic import BaseModel, field_validator

from stockledger.clock import to_naive_utc
from stockledger.models.item import ItemType
from stockledger.models.movement import EntryType, MovementType


def _all_means_none(v):
    # List views send "all" for an unset select box
    if isinstance(v, str) and v.strip().lower() in ("", "all"):
        return None
    return v


class MovementCreate(BaseModel):
    product_id: str
    type: MovementType
    quantity: int = 0
    date: dt.datetime | None = None
    responsible: str
    requester_name: str = ""
    requester_code: str = ""
    department: str = ""
    supplier: str = ""
    invoice: str = ""
    entry_type: EntryType | None = None
    purpose: str = ""
    reason: str = ""
    product_type: str = ""
    expiration_date: dt.date | None = None
    changes: str = ""
    request_id: str = ""

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)


class MovementFilter(BaseModel):
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    movement_type: MovementType | None = None
    material_type: ItemType | None = None
    department: str | None = None

    @field_validator("movement_type", "material_type", "department", mode="before")
    @classmethod
    def drop_all(cls, v):
        return _all_means_none(v)


class MovementOut(BaseModel):
    id: str
    product_id: str
    date: dt.datetime
    type: MovementType
    quantity: int
    responsible: str
    requester_name: str = ""
    requester_code: str = ""
    department: str = ""
    supplier: str = ""
    invoice: str = ""
    entry_type: EntryType | None = None
    purpose: str = ""
    reason: str = ""
    product_type: str = ""
    expiration_date: dt.date | None = None
    changes: str = ""
    request_id: str = ""

    model_config = {"from_attributes": True}


class MovementDetailOut(MovementOut):
    # Resolved from the weak product_id; None once the item has been deleted
    item_name: str | None = None
    item_code: str | None = None


class MovementPageOut(BaseModel):
    items: list[MovementDetailOut]
    next_cursor: str | None = None


class BatchOut(BaseModel):
    movement_id: str
    date: dt.datetime
    quantity: int
    expiration_date: dt.date
    remaining_quantity: int
    active: bool
    alert: str
