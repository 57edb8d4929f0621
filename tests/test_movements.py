import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.exceptions import MovementValidationError, NotFound, Unauthorized
from stockledger.crud.items import create_item
from stockledger.crud.movements import edit_notes, get_movement, soft_delete
from stockledger.crud.staff import create_staff
from stockledger.db.session import Base, build_engine
from stockledger.services.history import MovementFilters, counted_balance, list_movements
from stockledger.services.reconciler import adjust_stock, record_inflow, record_outflow, revert_movement

from stockledger import models as ledger_models  # noqa: F401


@pytest.fixture()
def db_session():
    engine = build_engine("sqlite://")
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def barber(db_session):
    return create_staff(db_session, {"name": "Bruno", "role": "barber"})


@pytest.fixture()
def manager(db_session):
    return create_staff(db_session, {"name": "Marta", "role": "manager"})


@pytest.fixture()
def stocked_item(db_session, barber):
    item = create_item(db_session, {"unit_id": 2, "name": "Beard oil", "sku": "BO-30"})
    record_inflow(db_session, item_id=item.id, quantity=10, reason="PURCHASE", unit_cost=4.5, actor_id=barber.id)
    return item


def test_edit_notes_changes_only_notes(db_session, barber, stocked_item):
    sale = record_outflow(db_session, item_id=stocked_item.id, quantity=2, reason="SALE", actor_id=barber.id)
    fixed = datetime(2024, 5, 1, 12, 0, 0)

    updated = edit_notes(
        db_session,
        movement_id=sale.id,
        notes="  sold with a trim  ",
        actor_id=barber.id,
        clock=lambda: fixed,
    )

    assert updated.notes == "sold with a trim"
    assert updated.updated_at == fixed
    assert updated.quantity == 2
    assert stocked_item.current_stock == 8


def test_edit_notes_cannot_blank_an_adjustment(db_session, manager, stocked_item):
    adjustment = adjust_stock(db_session, item_id=stocked_item.id, delta=-1, actor_id=manager.id, notes="dropped")

    with pytest.raises(MovementValidationError):
        edit_notes(db_session, movement_id=adjustment.id, notes="   ", actor_id=manager.id)

    db_session.refresh(adjustment)
    assert adjustment.notes == "dropped"


def test_edit_notes_on_missing_movement(db_session, barber):
    with pytest.raises(NotFound):
        edit_notes(db_session, movement_id=321, notes="x", actor_id=barber.id)


def test_receptionist_cannot_touch_movements(db_session, stocked_item):
    receptionist = create_staff(db_session, {"name": "Rita", "role": "RECEPTIONIST"})
    movement_id = list_movements(db_session, 2).items[0].id

    with pytest.raises(Unauthorized):
        edit_notes(db_session, movement_id=movement_id, notes="hi", actor_id=receptionist.id)
    with pytest.raises(Unauthorized):
        soft_delete(db_session, movement_id=movement_id, actor_id=receptionist.id)


def test_soft_delete_hides_row_but_keeps_balance(db_session, barber, stocked_item):
    sale = record_outflow(db_session, item_id=stocked_item.id, quantity=3, reason="SALE", actor_id=barber.id)
    assert stocked_item.current_stock == 7

    deleted = soft_delete(db_session, movement_id=sale.id, actor_id=barber.id)

    assert deleted.deleted_at is not None
    assert deleted.deleted_by == barber.id
    assert deleted.is_deleted is True
    assert stocked_item.current_stock == 7
    assert counted_balance(db_session, stocked_item.id) == 7
    assert get_movement(db_session, sale.id) is None
    assert get_movement(db_session, sale.id, include_deleted=True).id == sale.id

    visible = list_movements(db_session, 2)
    assert sale.id not in [row.id for row in visible.items]
    everything = list_movements(db_session, 2, MovementFilters(include_deleted=True))
    assert sale.id in [row.id for row in everything.items]


def test_soft_delete_twice_is_not_found(db_session, barber, stocked_item):
    movement_id = list_movements(db_session, 2).items[0].id
    soft_delete(db_session, movement_id=movement_id, actor_id=barber.id)

    with pytest.raises(NotFound):
        soft_delete(db_session, movement_id=movement_id, actor_id=barber.id)


def test_editing_notes_of_deleted_row_is_not_found(db_session, barber, stocked_item):
    movement_id = list_movements(db_session, 2).items[0].id
    soft_delete(db_session, movement_id=movement_id, actor_id=barber.id)

    with pytest.raises(NotFound):
        edit_notes(db_session, movement_id=movement_id, notes="late note", actor_id=barber.id)


def test_soft_deleted_row_can_still_be_reverted(db_session, barber, manager, stocked_item):
    sale = record_outflow(db_session, item_id=stocked_item.id, quantity=4, reason="SALE", actor_id=barber.id)
    soft_delete(db_session, movement_id=sale.id, actor_id=barber.id)
    assert stocked_item.current_stock == 6

    reverted = revert_movement(db_session, movement_id=sale.id, actor_id=manager.id)

    assert reverted.reverted is True
    assert reverted.deleted_at is not None
    assert stocked_item.current_stock == 10
    assert counted_balance(db_session, stocked_item.id) == 10
