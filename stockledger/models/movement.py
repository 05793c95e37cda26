import uuid
import datetime as dt
from enum import Enum as PyEnum

from sqlalchemy import Date, DateTime, Enum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.database import Base


class MovementType(str, PyEnum):
    ENTRY = "entry"
    EXIT = "exit"
    RETURN = "return"
    AUDIT = "audit"


class EntryType(str, PyEnum):
    OFFICIAL = "official"
    UNOFFICIAL = "unofficial"


class Movement(Base):
    """Immutable ledger row. Written once, never updated or deleted."""

    __tablename__ = "movements"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # Weak reference: the item may be deleted later, so no foreign key
    product_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    date: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, index=True)
    type: Mapped[str] = mapped_column(
        Enum(MovementType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # magnitude, sign comes from type

    responsible: Mapped[str] = mapped_column(String, nullable=False)  # operator who recorded it
    requester_name: Mapped[str] = mapped_column(String, default="")
    requester_code: Mapped[str] = mapped_column(String, default="")

    department: Mapped[str] = mapped_column(String, default="", index=True)
    supplier: Mapped[str] = mapped_column(String, default="")
    invoice: Mapped[str] = mapped_column(String, default="")
    entry_type: Mapped[str | None] = mapped_column(
        Enum(EntryType, values_callable=lambda x: [e.value for e in x]),
        nullable=True,
    )
    purpose: Mapped[str] = mapped_column(Text, default="")
    reason: Mapped[str] = mapped_column(Text, default="")
    product_type: Mapped[str] = mapped_column(String, default="", index=True)  # item type at write time
    expiration_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    changes: Mapped[str] = mapped_column(Text, default="")  # audit rows only
    request_id: Mapped[str] = mapped_column(String, default="", index=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    @property
    def signed_quantity(self) -> int:
        if self.type == MovementType.EXIT:
            return -self.quantity
        if self.type == MovementType.AUDIT:
            return 0
        return self.quantity
