import logging

from sqlalchemy.orm import Session

from stockledger.clock import utcnow
from stockledger.context import SessionContext
from stockledger.errors import InvalidTransitionError, NotFoundError, ValidationError
from stockledger.models.consumption_request import ConsumptionRequest, ConsumptionRequestItem, RequestStatus
from stockledger.models.item import Item
from stockledger.schemas.consumption_request import RequestCreate
from stockledger.schemas.ledger import ExitCreate, LineItem, Requester
from stockledger.services.pagination import Page, SortKey, paginate

logger = logging.getLogger(__name__)

PAGE_KEYS = [SortKey(ConsumptionRequest.date, descending=True), SortKey(ConsumptionRequest.id, descending=True)]


def create_request(db: Session, ctx: SessionContext, data: RequestCreate) -> ConsumptionRequest:
    if not data.items:
        raise ValidationError("A request needs at least one item")
    if not data.requester.name.strip():
        raise ValidationError("Requester name is required")
    if not data.department.strip():
        raise ValidationError("Department is required")
    for line in data.items:
        if line.quantity <= 0:
            raise ValidationError(f"Quantity for item {line.item_id} must be positive")

    req = ConsumptionRequest(
        requester_name=data.requester.name,
        requester_code=data.requester.code,
        requester_user_id=ctx.user_id,
        tenant_id=ctx.tenant_id,
        department=data.department,
        purpose=data.purpose,
        date=utcnow(),
        status=RequestStatus.PENDING,
    )
    try:
        for position, line in enumerate(data.items):
            item = db.query(Item).filter(Item.id == line.item_id).first()
            if not item:
                raise NotFoundError(f"Item {line.item_id} not found")
            req.items.append(ConsumptionRequestItem(
                position=position,
                item_id=item.id,
                name=item.name,
                quantity=line.quantity,
                unit=item.unit,
                is_perishable=item.is_perishable,
                expiration_date=item.expiration_date,
            ))
        db.add(req)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(req)
    logger.info("Request %s submitted by %s with %d item(s)", req.id, req.requester_name, len(req.items))
    return req


def get_request(db: Session, request_id: str) -> ConsumptionRequest | None:
    return db.query(ConsumptionRequest).filter(ConsumptionRequest.id == request_id).first()


def require_request(db: Session, request_id: str, ctx: SessionContext | None = None) -> ConsumptionRequest:
    """Load a request visible to ``ctx``. Other tenants' requests look missing."""
    req = get_request(db, request_id)
    if not req or (ctx and ctx.tenant_id and req.tenant_id != ctx.tenant_id):
        raise NotFoundError(f"Request {request_id} not found")
    return req


def approve(db: Session, ctx: SessionContext, request_id: str) -> ConsumptionRequest:
    """Mark intent only. Stock moves later, when an operator records the exit for this request."""
    req = require_request(db, request_id, ctx)
    if req.status != RequestStatus.PENDING:
        raise InvalidTransitionError(f"Cannot approve request in '{req.status.value}' status")
    req.status = RequestStatus.APPROVED
    req.approved_by = ctx.actor_id
    req.approved_at = utcnow()
    db.commit()
    db.refresh(req)
    logger.info("Request %s approved by %s", req.id, ctx.actor_id)
    return req


def reject(db: Session, ctx: SessionContext, request_id: str, reason: str) -> ConsumptionRequest:
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required")
    req = require_request(db, request_id, ctx)
    if req.status != RequestStatus.PENDING:
        raise InvalidTransitionError(f"Cannot reject request in '{req.status.value}' status")
    req.status = RequestStatus.REJECTED
    req.rejected_by = ctx.actor_id
    req.rejected_at = utcnow()
    req.rejection_reason = reason.strip()
    db.commit()
    db.refresh(req)
    logger.info("Request %s rejected by %s", req.id, ctx.actor_id)
    return req


def mark_fulfilled(db: Session, ctx: SessionContext, request_id: str) -> ConsumptionRequest:
    req = require_request(db, request_id, ctx)
    if not req.awaiting_fulfillment:
        raise InvalidTransitionError(
            f"Request {request_id} is not awaiting fulfillment (status '{req.status.value}')"
        )
    req.fulfilled_by = ctx.actor_id
    req.fulfilled_at = utcnow()
    db.commit()
    db.refresh(req)
    logger.info("Request %s fulfilled by %s", req.id, ctx.actor_id)
    return req


def exit_draft(req: ConsumptionRequest) -> ExitCreate:
    """Exit batch prefilled from an approved request, for the operator to adjust before recording."""
    if not req.awaiting_fulfillment:
        raise InvalidTransitionError(f"Request {req.id} is not awaiting fulfillment")
    return ExitCreate(
        items=[LineItem(item_id=line.item_id, quantity=line.quantity) for line in req.items],
        requester=Requester(name=req.requester_name, code=req.requester_code),
        department=req.department,
        purpose=req.purpose,
        request_id=req.id,
    )


def list_pending(db: Session, tenant_id: str | None = None) -> list[ConsumptionRequest]:
    q = db.query(ConsumptionRequest).filter(ConsumptionRequest.status == RequestStatus.PENDING)
    if tenant_id:
        q = q.filter(ConsumptionRequest.tenant_id == tenant_id)
    return q.order_by(ConsumptionRequest.date.asc(), ConsumptionRequest.id.asc()).all()


def page_requests_for_user(db: Session, user_id: str, page_size: int, cursor: str | None = None) -> Page:
    q = db.query(ConsumptionRequest).filter(ConsumptionRequest.requester_user_id == user_id)
    return paginate(q, PAGE_KEYS, page_size, cursor)


def page_processed_requests(db: Session, tenant_id: str, page_size: int, cursor: str | None = None) -> Page:
    q = db.query(ConsumptionRequest).filter(
        ConsumptionRequest.tenant_id == tenant_id,
        ConsumptionRequest.status.in_([RequestStatus.APPROVED, RequestStatus.REJECTED]),
    )
    return paginate(q, PAGE_KEYS, page_size, cursor)
