from datetime import date, datetime

from pydantic import BaseModel

from stockledger.models.consumption_request import RequestStatus
from stockledger.schemas.ledger import Requester


class RequestItemCreate(BaseModel):
    item_id: str
    quantity: int


class RequestCreate(BaseModel):
    requester: Requester
    department: str
    purpose: str = ""
    items: list[RequestItemCreate]


class RejectBody(BaseModel):
    reason: str = ""


class RequestItemOut(BaseModel):
    item_id: str
    name: str
    quantity: int
    unit: str
    is_perishable: bool
    expiration_date: date | None = None

    model_config = {"from_attributes": True}


class RequestOut(BaseModel):
    id: str
    requester_name: str
    requester_code: str
    department: str
    purpose: str
    date: datetime
    status: RequestStatus
    rejection_reason: str = ""
    approved_by: str = ""
    approved_at: datetime | None = None
    rejected_by: str = ""
    rejected_at: datetime | None = None
    fulfilled_by: str = ""
    fulfilled_at: datetime | None = None
    awaiting_fulfillment: bool = False
    items: list[RequestItemOut]

    model_config = {"from_attributes": True}


class RequestPageOut(BaseModel):
    items: list[RequestOut]
    next_cursor: str | None = None
