import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Date, DateTime, Enum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.database import Base


class ItemType(str, PyEnum):
    CONSUMABLE = "consumable"
    DURABLE = "durable"


class Item(Base):
    """A stock-keeping unit. ``quantity`` only moves through the ledger engine or an audited edit."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False)
    name_lowercase: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # PREFIX-NNN, generated sequentially but not unique (see catalog_service.next_code)
    code: Mapped[str] = mapped_column(String, default="", index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[str] = mapped_column(String, default="")
    category: Mapped[str] = mapped_column(String, default="")
    reference: Mapped[str] = mapped_column(Text, default="")
    type: Mapped[str] = mapped_column(
        Enum(ItemType, values_callable=lambda x: [e.value for e in x]),
        default=ItemType.CONSUMABLE,
    )
    patrimony: Mapped[str] = mapped_column(String, default="N/A")  # asset tag, durable items only
    is_perishable: Mapped[bool] = mapped_column(Boolean, default=False)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    image_url: Mapped[str] = mapped_column(String, default="")

    # Optimistic concurrency: UPDATE ... WHERE version = :seen, StaleDataError when another writer won
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
