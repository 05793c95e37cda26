from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockledger.database import Base, import_models
from stockledger.errors import InsufficientStockError, NotFoundError, StorageConflictError, ValidationError
from stockledger.models.item import Item, ItemType
from stockledger.models.movement import EntryType, Movement, MovementType
from stockledger.schemas.consumption_request import RequestCreate, RequestItemCreate
from stockledger.schemas.ledger import EntryCreate, ExitCreate, LineItem, Requester, ReturnCreate
from stockledger.services import ledger_service, movement_service, request_service


def _entry(*lines, supplier="Distribuidora Norte", **kwargs):
    return EntryCreate(items=[LineItem(item_id=i, quantity=q, **extra) for i, q, extra in lines], supplier=supplier, **kwargs)


def _exit(*lines, **kwargs):
    kwargs.setdefault("requester", Requester(name="Ana Souza", code="4471"))
    kwargs.setdefault("department", "Pediatria")
    return ExitCreate(items=[LineItem(item_id=i, quantity=q) for i, q in lines], **kwargs)


def _return(*lines, **kwargs):
    kwargs.setdefault("department", "Pediatria")
    return ReturnCreate(items=[LineItem(item_id=i, quantity=q) for i, q in lines], **kwargs)


def _quantity(db, item_id):
    return db.query(Item).filter(Item.id == item_id).one().quantity


def test_entry_increments_and_logs_one_movement_per_line(db, ctx, make_item):
    a = make_item("Gaze", quantity=2)
    b = make_item("Alcool", quantity=0, type=ItemType.DURABLE)

    movements = ledger_service.record_entry(
        db, ctx, _entry((a.id, 10, {}), (b.id, 4, {}), invoice="NF-123", entry_type=EntryType.UNOFFICIAL)
    )

    assert _quantity(db, a.id) == 12
    assert _quantity(db, b.id) == 4
    assert len(movements) == 2
    first = movements[0]
    assert first.type == MovementType.ENTRY
    assert first.quantity == 10
    assert first.supplier == "Distribuidora Norte"
    assert first.invoice == "NF-123"
    assert first.entry_type == EntryType.UNOFFICIAL
    assert first.responsible == ctx.actor_id
    assert movements[1].product_type == "durable"


def test_entry_with_unknown_item_applies_nothing(db, ctx, make_item):
    a = make_item("Gaze", quantity=2)
    with pytest.raises(NotFoundError):
        ledger_service.record_entry(db, ctx, _entry((a.id, 5, {}), ("missing", 1, {})))

    assert _quantity(db, a.id) == 2
    assert db.query(Movement).count() == 0


def test_perishable_entry_keeps_nearest_expiration(db, ctx, make_item):
    item = make_item("Soro", is_perishable=True, expiration_date=date(2025, 6, 30))

    ledger_service.record_entry(db, ctx, _entry((item.id, 5, {"expiration_date": date(2025, 3, 1)})))
    assert db.get(Item, item.id).expiration_date == date(2025, 3, 1)

    ledger_service.record_entry(db, ctx, _entry((item.id, 5, {"expiration_date": date(2026, 1, 1)})))
    assert db.get(Item, item.id).expiration_date == date(2025, 3, 1)


def test_perishable_entry_sets_first_expiration(db, ctx, make_item):
    item = make_item("Vacina", is_perishable=True)
    movements = ledger_service.record_entry(db, ctx, _entry((item.id, 5, {"expiration_date": date(2025, 9, 1)})))
    assert db.get(Item, item.id).expiration_date == date(2025, 9, 1)
    assert movements[0].expiration_date == date(2025, 9, 1)


def test_non_perishable_entry_ignores_expiration(db, ctx, make_item):
    item = make_item("Papel")
    ledger_service.record_entry(db, ctx, _entry((item.id, 5, {"expiration_date": date(2025, 9, 1)})))
    assert db.get(Item, item.id).expiration_date is None


def test_exit_decrements_and_records_requester(db, ctx, make_item):
    item = make_item("Gaze", quantity=10)
    movements = ledger_service.record_exit(db, ctx, _exit((item.id, 4), purpose="Curativos"))

    assert _quantity(db, item.id) == 6
    exit_row = movements[0]
    assert exit_row.type == MovementType.EXIT
    assert exit_row.quantity == 4
    assert exit_row.responsible == ctx.actor_id
    assert exit_row.requester_name == "Ana Souza"
    assert exit_row.requester_code == "4471"
    assert exit_row.department == "Pediatria"
    assert exit_row.purpose == "Curativos"


def test_exit_short_line_leaves_whole_batch_unchanged(db, ctx, make_item):
    plenty = make_item("Gaze", quantity=10)
    short = make_item("Luva", quantity=1)

    with pytest.raises(InsufficientStockError) as exc:
        ledger_service.record_exit(db, ctx, _exit((plenty.id, 5), (short.id, 2)))

    assert exc.value.available == 1
    assert exc.value.requested == 2
    assert _quantity(db, plenty.id) == 10
    assert _quantity(db, short.id) == 1
    assert db.query(Movement).count() == 0


def test_exit_repeated_lines_cannot_overdraw(db, ctx, make_item):
    item = make_item("Gaze", quantity=8)
    with pytest.raises(InsufficientStockError):
        ledger_service.record_exit(db, ctx, _exit((item.id, 5), (item.id, 5)))
    assert _quantity(db, item.id) == 8


def test_exit_of_exact_stock_reaches_zero(db, ctx, make_item):
    item = make_item("Gaze", quantity=3)
    ledger_service.record_exit(db, ctx, _exit((item.id, 3)))
    assert _quantity(db, item.id) == 0


def test_return_is_unbounded(db, ctx, make_item):
    item = make_item("Muleta", quantity=0, type=ItemType.DURABLE)
    movements = ledger_service.record_return(db, ctx, _return((item.id, 50), reason="Sobra de evento"))
    assert _quantity(db, item.id) == 50
    assert movements[0].type == MovementType.RETURN
    assert movements[0].reason == "Sobra de evento"


@pytest.mark.parametrize(
    "build",
    [
        lambda item_id: _entry(),
        lambda item_id: _entry((item_id, 0, {})),
        lambda item_id: _entry((item_id, 1, {}), supplier=" "),
        lambda item_id: _exit((item_id, -1)),
        lambda item_id: _exit((item_id, 1), department=""),
        lambda item_id: _exit((item_id, 1), requester=Requester(name="")),
        lambda item_id: _return((item_id, 1), department=""),
    ],
)
def test_invalid_batches_fail_before_touching_stock(db, ctx, make_item, build):
    item = make_item("Gaze", quantity=5)
    data = build(item.id)
    op = {
        EntryCreate: ledger_service.record_entry,
        ExitCreate: ledger_service.record_exit,
        ReturnCreate: ledger_service.record_return,
    }[type(data)]
    with pytest.raises(ValidationError):
        op(db, ctx, data)
    assert _quantity(db, item.id) == 5


def test_quantity_equals_algebraic_sum_of_movements(db, ctx, make_item):
    item = make_item("Gaze", quantity=0)
    ledger_service.record_entry(db, ctx, _entry((item.id, 20, {})))
    ledger_service.record_exit(db, ctx, _exit((item.id, 7)))
    ledger_service.record_return(db, ctx, _return((item.id, 2)))
    with pytest.raises(InsufficientStockError):
        ledger_service.record_exit(db, ctx, _exit((item.id, 16)))
    ledger_service.record_exit(db, ctx, _exit((item.id, 15)))

    movements = movement_service.list_movements_for_item(db, item.id)
    assert [m.type for m in movements].count(MovementType.EXIT) == 2
    assert _quantity(db, item.id) == sum(m.signed_quantity for m in movements) == 0


def test_exit_with_request_id_marks_request_fulfilled(db, ctx, make_item):
    item = make_item("Gaze", quantity=10)
    req = request_service.create_request(
        db, ctx, RequestCreate(requester=Requester(name="Ana"), department="UTI", items=[RequestItemCreate(item_id=item.id, quantity=3)])
    )
    request_service.approve(db, ctx, req.id)

    draft = request_service.exit_draft(request_service.get_request(db, req.id))
    draft.items[0].quantity = 2  # partial fulfillment
    movements = ledger_service.record_exit(db, ctx, draft)

    assert movements[0].request_id == req.id
    assert _quantity(db, item.id) == 8
    fulfilled = request_service.get_request(db, req.id)
    assert fulfilled.fulfilled_by == ctx.actor_id
    assert not fulfilled.awaiting_fulfillment


def test_exit_with_stale_request_id_still_commits(db, ctx, make_item):
    item = make_item("Gaze", quantity=10)
    ledger_service.record_exit(db, ctx, _exit((item.id, 1), request_id="no-such-request"))
    assert _quantity(db, item.id) == 9


def test_concurrent_write_surfaces_storage_conflict(tmp_path, ctx):
    import_models()
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = Session()
    item = Item(name="Gaze", name_lowercase="gaze", quantity=10, created_at=datetime(2024, 1, 1))
    setup.add(item)
    setup.commit()
    item_id = item.id
    setup.close()

    slow, fast = Session(), Session()
    try:
        slow.query(Item).filter(Item.id == item_id).one()  # snapshot at version 1

        fast_item = fast.query(Item).filter(Item.id == item_id).one()
        fast_item.quantity -= 4
        fast.commit()

        with pytest.raises(StorageConflictError):
            ledger_service.record_exit(slow, ctx, _exit((item_id, 3)))

        assert fast.query(Item).filter(Item.id == item_id).one().quantity == 6
        assert fast.query(Movement).count() == 0
    finally:
        slow.close()
        fast.close()
        engine.dispose()
