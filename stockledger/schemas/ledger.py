from datetime import date, datetime

from pydantic import BaseModel, field_validator

from stockledger.clock import to_naive_utc
from stockledger.models.movement import EntryType


class Requester(BaseModel):
    """Person the stock is issued to, kept apart from the operator who records it."""

    name: str
    code: str = ""  # registration number

    @property
    def label(self) -> str:
        # "Name (ID)", the format older screens display
        return f"{self.name} ({self.code})" if self.code else self.name


class LineItem(BaseModel):
    item_id: str
    quantity: int
    expiration_date: date | None = None


class _LedgerBatch(BaseModel):
    items: list[LineItem]
    date: datetime | None = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)


class EntryCreate(_LedgerBatch):
    supplier: str
    invoice: str = ""
    entry_type: EntryType = EntryType.OFFICIAL


class ExitCreate(_LedgerBatch):
    requester: Requester
    department: str
    purpose: str = ""
    request_id: str | None = None


class ReturnCreate(_LedgerBatch):
    department: str
    reason: str = ""
