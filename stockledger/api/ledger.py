from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.api.auth import get_session_context
from stockledger.context import SessionContext
from stockledger.database import get_db
from stockledger.schemas.ledger import EntryCreate, ExitCreate, ReturnCreate
from stockledger.schemas.movement import MovementOut
from stockledger.services import ledger_service

router = APIRouter(prefix="/ledger", tags=["Ledger"])

OPERATOR_ROLES = ("admin", "operator")


@router.post("/entries", response_model=list[MovementOut], status_code=201)
def record_entry(data: EntryCreate, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    ctx.require_role(*OPERATOR_ROLES)
    return ledger_service.record_entry(db, ctx, data)


@router.post("/exits", response_model=list[MovementOut], status_code=201)
def record_exit(data: ExitCreate, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    ctx.require_role(*OPERATOR_ROLES)
    return ledger_service.record_exit(db, ctx, data)


@router.post("/returns", response_model=list[MovementOut], status_code=201)
def record_return(
    data: ReturnCreate, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)
):
    ctx.require_role(*OPERATOR_ROLES)
    return ledger_service.record_return(db, ctx, data)
