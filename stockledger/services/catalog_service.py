import logging

from sqlalchemy.orm import Session

from stockledger.clock import utcnow
from stockledger.context import SessionContext
from stockledger.errors import NotFoundError, ValidationError
from stockledger.models.item import Item, ItemType
from stockledger.models.movement import Movement, MovementType
from stockledger.schemas.item import ItemCreate, ItemFilter, ItemUpdate
from stockledger.services.pagination import Page, SortKey, paginate

logger = logging.getLogger(__name__)

CODE_DIGITS = 3


def _normalize_patrimony(item_type: ItemType | str, patrimony: str | None) -> str:
    if item_type == ItemType.DURABLE:
        return patrimony or "N/A"
    return "N/A"


def create_item(db: Session, data: ItemCreate) -> Item:
    if not data.name.strip():
        raise ValidationError("Item name is required")
    if data.quantity < 0:
        raise ValidationError("Initial quantity cannot be negative")
    item = Item(
        name=data.name,
        name_lowercase=data.name.lower(),
        code=data.code,
        quantity=data.quantity,
        unit=data.unit,
        category=data.category,
        reference=data.reference,
        type=data.type,
        patrimony=_normalize_patrimony(data.type, data.patrimony),
        is_perishable=data.is_perishable,
        expiration_date=data.expiration_date,
        image_url=data.image_url,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Created item %s (%s)", item.id, item.code or item.name)
    return item


def get_item(db: Session, item_id: str) -> Item | None:
    return db.query(Item).filter(Item.id == item_id).first()


def require_item(db: Session, item_id: str) -> Item:
    item = get_item(db, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    return item


NULLABLE_FIELDS = {"expiration_date"}


def _apply_update(item: Item, data: ItemUpdate) -> None:
    update_data = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    if update_data.get("quantity", 0) < 0:
        raise ValidationError("Quantity cannot be negative")
    if "name" in update_data:
        if not (update_data["name"] or "").strip():
            raise ValidationError("Item name is required")
        update_data["name_lowercase"] = update_data["name"].lower()
    for field, value in update_data.items():
        setattr(item, field, value)
    if "type" in update_data or "patrimony" in update_data:
        item.patrimony = _normalize_patrimony(item.type, item.patrimony)


def update_item(db: Session, item_id: str, data: ItemUpdate) -> Item:
    """Merge the given fields. Emits no movement; use ``edit_item`` for audited edits."""
    item = require_item(db, item_id)
    _apply_update(item, data)
    db.commit()
    db.refresh(item)
    return item


# (label, attribute) pairs compared when an admin edits an item
AUDITED_FIELDS = [
    ("Name", "name"),
    ("Type", "type"),
    ("Patrimony", "patrimony"),
    ("Unit", "unit"),
    ("Quantity", "quantity"),
    ("Category", "category"),
    ("Reference", "reference"),
]


def display_value(value) -> str:
    if value is None or value == "":
        return "N/A"
    return str(value.value if hasattr(value, "value") else value)


def describe_changes(before: dict, after: Item) -> list[str]:
    changes = []
    for label, attr in AUDITED_FIELDS:
        old, new = before.get(attr), getattr(after, attr)
        if display_value(old) != display_value(new):
            changes.append(f"{label}: from '{display_value(old)}' to '{display_value(new)}'")
    if (before.get("image_url") or "") != (after.image_url or ""):
        changes.append("Image was changed")
    return changes


def edit_item(db: Session, ctx: SessionContext, item_id: str, data: ItemUpdate) -> Item:
    """Admin edit: apply the update and log an Audit movement in the same commit when anything changed."""
    item = require_item(db, item_id)
    before = {attr: getattr(item, attr) for _, attr in AUDITED_FIELDS}
    before["image_url"] = item.image_url

    try:
        _apply_update(item, data)
        changes = describe_changes(before, item)
        if changes:
            db.add(Movement(
                product_id=item.id,
                date=utcnow(),
                type=MovementType.AUDIT,
                quantity=0,
                responsible=ctx.actor_id,
                product_type=display_value(item.type),
                changes=f"Item edited: {'; '.join(changes)}.",
            ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    if changes:
        logger.info("Item %s edited by %s: %d field(s) changed", item.id, ctx.actor_id, len(changes))
    return item


def delete_item(db: Session, item_id: str) -> None:
    """Remove the item. Its movements stay as history with a dangling product_id."""
    item = require_item(db, item_id)
    db.delete(item)
    db.commit()
    logger.info("Deleted item %s", item_id)


def list_items(db: Session, filters: ItemFilter | None = None) -> list[Item]:
    filters = filters or ItemFilter()
    q = db.query(Item)
    if filters.material_type:
        q = q.filter(Item.type == filters.material_type)

    if filters.search_term:
        by_name = (
            q.filter(Item.name_lowercase.startswith(filters.search_term.lower(), autoescape=True))
            .order_by(Item.name_lowercase)
            .all()
        )
        by_code = q.filter(Item.code == filters.search_term).all()
        merged: dict[str, Item] = {}
        for item in by_name + by_code:
            merged.setdefault(item.id, item)
        return list(merged.values())

    return q.order_by(Item.name_lowercase).all()


def page_items(
    db: Session, page_size: int, cursor: str | None = None, material_type: ItemType | None = None
) -> Page[Item]:
    q = db.query(Item)
    if material_type:
        q = q.filter(Item.type == material_type)
    return paginate(q, [SortKey(Item.name_lowercase), SortKey(Item.id)], page_size, cursor)


def next_code(db: Session, prefix: str) -> str:
    """Next sequential code for ``prefix``.

    Reads the greatest existing code and increments it outside any
    transaction, so two concurrent callers can receive the same code.
    """
    if not prefix:
        raise ValidationError("Code prefix is required")
    last = (
        db.query(Item.code)
        .filter(Item.code >= prefix, Item.code <= prefix + "\uf8ff")  # case-sensitive range, LIKE folds case
        .order_by(Item.code.desc())
        .first()
    )
    if not last:
        return f"{prefix}-{1:0{CODE_DIGITS}d}"
    suffix = last.code.rsplit("-", 1)[-1]
    last_number = int(suffix) if suffix.isdigit() else 0
    return f"{prefix}-{last_number + 1:0{CODE_DIGITS}d}"
