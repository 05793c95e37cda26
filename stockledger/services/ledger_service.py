"""Atomic stock mutations: every quantity change commits together with its movement row.

``record_entry``, ``record_exit`` and ``record_return`` share one shape:
validate the batch up front, then inside a single transaction read each item,
check it, change its quantity and append one movement per line. Any failure
rolls the whole batch back. There are no in-process locks; items carry a
version column, so a concurrent writer that commits first makes this commit
fail with ``StorageConflictError``. The caller decides whether to retry.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stockledger.clock import utcnow
from stockledger.context import SessionContext
from stockledger.errors import InsufficientStockError, LedgerError, NotFoundError, StorageConflictError, ValidationError
from stockledger.models.item import Item
from stockledger.models.movement import Movement, MovementType
from stockledger.schemas.ledger import EntryCreate, ExitCreate, LineItem, ReturnCreate
from stockledger.schemas.movement import MovementCreate
from stockledger.services import request_service
from stockledger.services.catalog_service import display_value
from stockledger.services.movement_service import append_movement

logger = logging.getLogger(__name__)


@contextmanager
def ledger_transaction(db: Session, label: str):
    """Commit on success; roll back and re-raise on any failure."""
    try:
        yield
        db.flush()
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning("%s rolled back: concurrent update detected", label)
        raise StorageConflictError(f"{label} conflicted with a concurrent update, please retry") from e
    except Exception as e:
        db.rollback()
        logger.warning("%s rolled back: %s", label, e)
        raise


def _validate_lines(lines: list[LineItem]) -> None:
    if not lines:
        raise ValidationError("At least one line item is required")
    for line in lines:
        if not line.item_id:
            raise ValidationError("Line item is missing item_id")
        if line.quantity <= 0:
            raise ValidationError(f"Quantity for item {line.item_id} must be positive")


def _require_text(value: str | None, field: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{field} is required")


class _ItemReader:
    """Loads each item once per transaction so repeated lines see the running quantity."""

    def __init__(self, db: Session):
        self.db = db
        self.seen: dict[str, Item] = {}

    def get(self, item_id: str) -> Item:
        item = self.seen.get(item_id)
        if item is None:
            item = self.db.query(Item).filter(Item.id == item_id).first()
            if not item:
                raise NotFoundError(f"Item {item_id} not found")
            self.seen[item_id] = item
        return item


def record_entry(db: Session, ctx: SessionContext, data: EntryCreate) -> list[Movement]:
    """Receive stock. Perishable items keep the nearest expiration date seen."""
    _validate_lines(data.items)
    _require_text(data.supplier, "Supplier")
    when = data.date or utcnow()

    movements = []
    with ledger_transaction(db, "Entry"):
        reader = _ItemReader(db)
        for line in data.items:
            item = reader.get(line.item_id)
            item.quantity += line.quantity

            if item.is_perishable and line.expiration_date:
                if item.expiration_date is None or line.expiration_date < item.expiration_date:
                    item.expiration_date = line.expiration_date

            movements.append(append_movement(db, MovementCreate(
                product_id=item.id,
                type=MovementType.ENTRY,
                quantity=line.quantity,
                date=when,
                responsible=ctx.actor_id,
                supplier=data.supplier,
                invoice=data.invoice,
                entry_type=data.entry_type,
                product_type=display_value(item.type),
                expiration_date=line.expiration_date,
            ), commit=False))

    logger.info("Entry of %d line(s) from %s recorded by %s", len(movements), data.supplier, ctx.actor_id)
    return movements


def record_exit(db: Session, ctx: SessionContext, data: ExitCreate) -> list[Movement]:
    """Issue stock. One short line aborts the whole batch with InsufficientStockError."""
    _validate_lines(data.items)
    _require_text(data.requester.name, "Requester name")
    _require_text(data.department, "Department")
    when = data.date or utcnow()

    movements = []
    with ledger_transaction(db, "Exit"):
        reader = _ItemReader(db)
        for line in data.items:
            item = reader.get(line.item_id)
            if item.quantity < line.quantity:
                raise InsufficientStockError(item.id, item.name, item.quantity, line.quantity)
            item.quantity -= line.quantity

            movements.append(append_movement(db, MovementCreate(
                product_id=item.id,
                type=MovementType.EXIT,
                quantity=line.quantity,
                date=when,
                responsible=ctx.actor_id,
                requester_name=data.requester.name,
                requester_code=data.requester.code,
                department=data.department,
                purpose=data.purpose,
                product_type=display_value(item.type),
                request_id=data.request_id or "",
            ), commit=False))

    logger.info("Exit of %d line(s) to %s recorded by %s", len(movements), data.department, ctx.actor_id)

    if data.request_id:
        # Correlation is advisory: the exit stands even if the request can't be marked
        try:
            request_service.mark_fulfilled(db, ctx, data.request_id)
        except LedgerError as e:
            logger.warning("Exit committed but request %s was not marked fulfilled: %s", data.request_id, e)
    return movements


def record_return(db: Session, ctx: SessionContext, data: ReturnCreate) -> list[Movement]:
    """Take stock back. Returns are always accepted, no upper bound."""
    _validate_lines(data.items)
    _require_text(data.department, "Department")
    when = data.date or utcnow()

    movements = []
    with ledger_transaction(db, "Return"):
        reader = _ItemReader(db)
        for line in data.items:
            item = reader.get(line.item_id)
            item.quantity += line.quantity

            movements.append(append_movement(db, MovementCreate(
                product_id=item.id,
                type=MovementType.RETURN,
                quantity=line.quantity,
                date=when,
                responsible=ctx.actor_id,
                department=data.department,
                reason=data.reason,
                product_type=display_value(item.type),
            ), commit=False))

    logger.info("Return of %d line(s) from %s recorded by %s", len(movements), data.department, ctx.actor_id)
    return movements
