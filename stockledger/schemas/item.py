from datetime import date, datetime

from pydantic import BaseModel

from stockledger.models.item import ItemType


class ItemCreate(BaseModel):
    name: str
    code: str = ""
    quantity: int = 0
    unit: str = ""
    category: str = ""
    reference: str = ""
    type: ItemType = ItemType.CONSUMABLE
    patrimony: str = ""
    is_perishable: bool = False
    expiration_date: date | None = None
    image_url: str = ""


class ItemUpdate(BaseModel):
    name: str | None = None
    code: str | None = None
    quantity: int | None = None
    unit: str | None = None
    category: str | None = None
    reference: str | None = None
    type: ItemType | None = None
    patrimony: str | None = None
    is_perishable: bool | None = None
    expiration_date: date | None = None
    image_url: str | None = None


class ItemFilter(BaseModel):
    search_term: str | None = None
    material_type: ItemType | None = None


class ItemOut(BaseModel):
    id: str
    name: str
    code: str
    quantity: int
    unit: str
    category: str
    reference: str
    type: ItemType
    patrimony: str
    is_perishable: bool
    expiration_date: date | None = None
    image_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ItemPageOut(BaseModel):
    items: list[ItemOut]
    next_cursor: str | None = None


class NextCodeOut(BaseModel):
    code: str
