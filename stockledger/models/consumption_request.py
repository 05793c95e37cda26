import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.database import Base


class RequestStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ConsumptionRequest(Base):
    __tablename__ = "consumption_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    requester_name: Mapped[str] = mapped_column(String, nullable=False)
    requester_code: Mapped[str] = mapped_column(String, default="")  # registration number
    requester_user_id: Mapped[str] = mapped_column(String, default="", index=True)
    tenant_id: Mapped[str] = mapped_column(String, default="", index=True)
    department: Mapped[str] = mapped_column(String, default="")
    purpose: Mapped[str] = mapped_column(Text, default="")
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        Enum(RequestStatus, values_callable=lambda x: [e.value for e in x]),
        default=RequestStatus.PENDING,
        index=True,
    )
    rejection_reason: Mapped[str] = mapped_column(Text, default="")

    approved_by: Mapped[str] = mapped_column(String, default="")
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejected_by: Mapped[str] = mapped_column(String, default="")
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Fulfillment sub-state of APPROVED: set once the correlated exit commits
    fulfilled_by: Mapped[str] = mapped_column(String, default="")
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    items: Mapped[list["ConsumptionRequestItem"]] = relationship(
        "ConsumptionRequestItem",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="ConsumptionRequestItem.position",
    )

    @property
    def awaiting_fulfillment(self) -> bool:
        return self.status == RequestStatus.APPROVED and self.fulfilled_at is None


class ConsumptionRequestItem(Base):
    __tablename__ = "consumption_request_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    request_id: Mapped[str] = mapped_column(String, ForeignKey("consumption_requests.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)

    # Snapshots taken at submission; item_id is a weak reference like Movement.product_id
    item_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String, default="")
    is_perishable: Mapped[bool] = mapped_column(Boolean, default=False)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    request: Mapped["ConsumptionRequest"] = relationship("ConsumptionRequest", back_populates="items")
