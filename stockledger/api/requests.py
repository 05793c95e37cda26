from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.api.auth import get_session_context
from stockledger.config import settings
from stockledger.context import SessionContext
from stockledger.database import get_db
from stockledger.schemas.consumption_request import RejectBody, RequestCreate, RequestOut, RequestPageOut
from stockledger.schemas.ledger import ExitCreate
from stockledger.services import request_service

router = APIRouter(prefix="/requests", tags=["Consumption Requests"])

REVIEWER_ROLES = ("admin", "operator")


@router.post("", response_model=RequestOut, status_code=201)
def create_request(data: RequestCreate, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    return request_service.create_request(db, ctx, data)


@router.get("/pending", response_model=list[RequestOut])
def list_pending(ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    ctx.require_role(*REVIEWER_ROLES)
    return request_service.list_pending(db, ctx.tenant_id or None)


@router.get("/mine", response_model=RequestPageOut)
def my_requests(
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    cursor: str | None = None,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    page = request_service.page_requests_for_user(db, ctx.user_id, page_size, cursor)
    return RequestPageOut(items=page.items, next_cursor=page.next_cursor)


@router.get("/history", response_model=RequestPageOut)
def processed_requests(
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    cursor: str | None = None,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    ctx.require_role(*REVIEWER_ROLES)
    page = request_service.page_processed_requests(db, ctx.tenant_id, page_size, cursor)
    return RequestPageOut(items=page.items, next_cursor=page.next_cursor)


@router.get("/{request_id}", response_model=RequestOut)
def get_request(request_id: str, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    return request_service.require_request(db, request_id, ctx)


@router.post("/{request_id}/approve", response_model=RequestOut)
def approve_request(request_id: str, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    ctx.require_role(*REVIEWER_ROLES)
    return request_service.approve(db, ctx, request_id)


@router.post("/{request_id}/reject", response_model=RequestOut)
def reject_request(
    request_id: str,
    data: RejectBody,
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
):
    ctx.require_role(*REVIEWER_ROLES)
    return request_service.reject(db, ctx, request_id, data.reason)


@router.get("/{request_id}/exit-draft", response_model=ExitCreate)
def exit_draft(request_id: str, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    """Prefilled exit batch for an approved request; post it (edited or not) to /ledger/exits."""
    ctx.require_role(*REVIEWER_ROLES)
    return request_service.exit_draft(request_service.require_request(db, request_id, ctx))
