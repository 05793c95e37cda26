from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

from stockledger.api.auth import get_session_context
from stockledger.config import settings
from stockledger.context import SessionContext
from stockledger.database import get_db
from stockledger.errors import ValidationError
from stockledger.schemas.movement import MovementDetailOut, MovementFilter, MovementPageOut
from stockledger.services import movement_service

router = APIRouter(prefix="/movements", tags=["Movements"])


def movement_filters(
    start_date: date | None = None,
    end_date: date | None = None,
    movement_type: str | None = Query(None, description="entry, exit, return, audit or all"),
    material_type: str | None = Query(None, description="consumable, durable or all"),
    department: str | None = Query(None, description="department name or all"),
) -> MovementFilter:
    try:
        return MovementFilter(
            start_date=start_date,
            end_date=end_date,
            movement_type=movement_type,
            material_type=material_type,
            department=department,
        )
    except SchemaError as e:
        raise ValidationError(f"Invalid movement filter: {e.errors()[0]['msg']}") from e


@router.get("", response_model=list[MovementDetailOut])
def list_movements(
    filters: MovementFilter = Depends(movement_filters),
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    movements = movement_service.list_movements(db, filters)
    return movement_service.describe_movements(db, movements)


@router.get("/page", response_model=MovementPageOut)
def page_movements(
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    cursor: str | None = None,
    filters: MovementFilter = Depends(movement_filters),
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    page = movement_service.page_movements(db, page_size, cursor, filters)
    return MovementPageOut(items=movement_service.describe_movements(db, page.items), next_cursor=page.next_cursor)
