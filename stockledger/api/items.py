from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.api.auth import get_session_context
from stockledger.config import settings
from stockledger.context import SessionContext
from stockledger.database import get_db
from stockledger.models.item import ItemType
from stockledger.schemas.item import ItemCreate, ItemFilter, ItemOut, ItemPageOut, ItemUpdate, NextCodeOut
from stockledger.schemas.movement import BatchOut, MovementDetailOut
from stockledger.services import batch_service, catalog_service, movement_service

router = APIRouter(prefix="/items", tags=["Items"])


@router.post("", response_model=ItemOut, status_code=201)
def create_item(data: ItemCreate, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    ctx.require_role("admin", "operator")
    return catalog_service.create_item(db, data)


@router.get("", response_model=list[ItemOut])
def list_items(
    search_term: str | None = None,
    material_type: ItemType | None = None,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    return catalog_service.list_items(db, ItemFilter(search_term=search_term, material_type=material_type))


@router.get("/page", response_model=ItemPageOut)
def page_items(
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    cursor: str | None = None,
    material_type: ItemType | None = None,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    page = catalog_service.page_items(db, page_size, cursor, material_type)
    return ItemPageOut(items=page.items, next_cursor=page.next_cursor)


@router.get("/next-code", response_model=NextCodeOut)
def next_code(prefix: str, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    return NextCodeOut(code=catalog_service.next_code(db, prefix))


@router.get("/{item_id}", response_model=ItemOut)
def get_item(item_id: str, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    return catalog_service.require_item(db, item_id)


@router.patch("/{item_id}", response_model=ItemOut)
def edit_item(
    item_id: str, data: ItemUpdate, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)
):
    ctx.require_role("admin")
    return catalog_service.edit_item(db, ctx, item_id, data)


@router.delete("/{item_id}", status_code=204)
def delete_item(item_id: str, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    ctx.require_role("admin")
    catalog_service.delete_item(db, item_id)


@router.get("/{item_id}/movements", response_model=list[MovementDetailOut])
def item_movements(item_id: str, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    movements = movement_service.list_movements_for_item(db, item_id)
    return movement_service.describe_movements(db, movements)


@router.get("/{item_id}/batches", response_model=list[BatchOut])
def item_batches(
    item_id: str,
    active_only: bool = False,
    today: date | None = None,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    movements = movement_service.list_movements_for_item(db, item_id)
    batches = batch_service.reconcile_batches(movements, today)
    return [
        BatchOut(
            movement_id=b.movement.id,
            date=b.movement.date,
            quantity=b.movement.quantity,
            expiration_date=b.expiration_date,
            remaining_quantity=b.remaining_quantity,
            active=b.active,
            alert=b.alert.value,
        )
        for b in batches
        if b.active or not active_only
    ]
