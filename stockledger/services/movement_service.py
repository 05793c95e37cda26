from sqlalchemy.orm import Session

from stockledger.clock import end_of_day, start_of_day, utcnow
from stockledger.errors import ValidationError
from stockledger.models.item import Item
from stockledger.models.movement import Movement, MovementType
from stockledger.schemas.movement import MovementCreate, MovementDetailOut, MovementFilter
from stockledger.services.pagination import Page, SortKey, paginate


def build_movement(data: MovementCreate) -> Movement:
    if not data.product_id:
        raise ValidationError("Movement product_id is required")
    if not data.responsible:
        raise ValidationError("Movement responsible is required")
    if data.quantity < 0:
        raise ValidationError("Movement quantity is a magnitude and cannot be negative")
    if data.type == MovementType.AUDIT and data.quantity != 0:
        raise ValidationError("Audit movements carry quantity 0")
    fields = data.model_dump(exclude={"date"})
    return Movement(date=data.date or utcnow(), **fields)


def append_movement(db: Session, data: MovementCreate, commit: bool = True) -> Movement:
    """Insert one ledger row. Inside the engine pass ``commit=False`` and let the transaction commit."""
    movement = build_movement(data)
    db.add(movement)
    if commit:
        db.commit()
        db.refresh(movement)
    return movement


def list_movements_for_item(db: Session, product_id: str) -> list[Movement]:
    return (
        db.query(Movement)
        .filter(Movement.product_id == product_id)
        .order_by(Movement.date.desc(), Movement.id.desc())
        .all()
    )


def _filtered(db: Session, filters: MovementFilter | None):
    filters = filters or MovementFilter()
    q = db.query(Movement)
    if filters.start_date:
        q = q.filter(Movement.date >= start_of_day(filters.start_date))
    if filters.end_date:
        q = q.filter(Movement.date <= end_of_day(filters.end_date))
    if filters.movement_type:
        q = q.filter(Movement.type == filters.movement_type)
    if filters.department:
        q = q.filter(Movement.department == filters.department)
    if filters.material_type:
        q = q.filter(Movement.product_type == filters.material_type.value)
    return q


def list_movements(db: Session, filters: MovementFilter | None = None) -> list[Movement]:
    return _filtered(db, filters).order_by(Movement.date.desc(), Movement.id.desc()).all()


def page_movements(
    db: Session, page_size: int, cursor: str | None = None, filters: MovementFilter | None = None
) -> Page[Movement]:
    keys = [SortKey(Movement.date, descending=True), SortKey(Movement.id, descending=True)]
    return paginate(_filtered(db, filters), keys, page_size, cursor)


def describe_movements(db: Session, movements: list[Movement]) -> list[MovementDetailOut]:
    """Attach item name/code to each row; rows whose item was deleted get blanks instead of failing."""
    ids = {m.product_id for m in movements}
    items = {}
    if ids:
        items = {i.id: i for i in db.query(Item).filter(Item.id.in_(ids)).all()}
    result = []
    for m in movements:
        item = items.get(m.product_id)
        out = MovementDetailOut.model_validate(m)
        if item:
            out.item_name = item.name
            out.item_code = item.code
        result.append(out)
    return result
