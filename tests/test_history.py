import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.exceptions import MovementValidationError
from stockledger.crud.items import create_item
from stockledger.crud.movements import soft_delete
from stockledger.crud.staff import create_staff
from stockledger.db.session import Base, build_engine
from stockledger.services.history import (
    MovementFilters,
    get_item_history,
    get_summary_by_period,
    list_movements,
)
from stockledger.services.reconciler import adjust_stock, record_inflow, record_outflow, revert_movement

from stockledger import models as ledger_models  # noqa: F401

DAY_ONE = datetime(2024, 3, 1, 9, 0, 0)


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
def manager(db_session):
    return create_staff(db_session, {"name": "Marta", "role": "MANAGER"})


def _on(day: int):
    stamp = DAY_ONE + timedelta(days=day)
    return lambda: stamp


@pytest.fixture()
def ledger(db_session, manager):
    """Three days of movements for two items of unit 1, plus one item in unit 2."""

    pomade = create_item(db_session, {"unit_id": 1, "name": "Pomade"})
    razor = create_item(db_session, {"unit_id": 1, "name": "Razor blades"})
    other = create_item(db_session, {"unit_id": 2, "name": "Towels"})

    record_inflow(
        db_session, item_id=pomade.id, quantity=50, reason="PURCHASE", unit_cost=2.0, actor_id=manager.id, clock=_on(0)
    )
    record_inflow(
        db_session, item_id=razor.id, quantity=100, reason="PURCHASE", unit_cost=0.5, actor_id=manager.id, clock=_on(0)
    )
    sale = record_outflow(
        db_session, item_id=pomade.id, quantity=12, reason="SALE", actor_id=manager.id, clock=_on(1)
    )
    record_outflow(
        db_session, item_id=razor.id, quantity=30, reason="INTERNAL_CONSUMPTION", actor_id=manager.id, clock=_on(1)
    )
    adjust_stock(db_session, item_id=pomade.id, delta=-3, actor_id=manager.id, notes="breakage", clock=_on(2))
    record_inflow(
        db_session, item_id=other.id, quantity=5, reason="PURCHASE", unit_cost=1.0, actor_id=manager.id, clock=_on(2)
    )
    return {"pomade": pomade, "razor": razor, "other": other, "sale": sale}


def test_list_movements_is_newest_first_and_scoped_to_unit(db_session, ledger):
    page = list_movements(db_session, 1)

    assert page.total_count == 5
    assert page.total_pages == 1
    assert page.page_size == 20
    stamps = [row.created_at for row in page.items]
    assert stamps == sorted(stamps, reverse=True)
    assert {row.unit_id for row in page.items} == {1}


def test_list_movements_filters(db_session, ledger, manager):
    pomade_id = ledger["pomade"].id

    by_item = list_movements(db_session, 1, MovementFilters(item_id=pomade_id))
    assert by_item.total_count == 3

    outflows = list_movements(db_session, 1, MovementFilters(movement_type="outflow"))
    assert outflows.total_count == 3

    sales = list_movements(db_session, 1, MovementFilters(reason="SALE"))
    assert [row.id for row in sales.items] == [ledger["sale"].id]

    by_actor = list_movements(db_session, 1, MovementFilters(performed_by=manager.id))
    assert by_actor.total_count == 5

    day_one = list_movements(db_session, 1, MovementFilters(start=DAY_ONE + timedelta(days=1), end=DAY_ONE + timedelta(days=1)))
    assert day_one.total_count == 2


def test_list_movements_pagination(db_session, ledger):
    first = list_movements(db_session, 1, page=1, page_size=2)
    second = list_movements(db_session, 1, page=2, page_size=2)
    third = list_movements(db_session, 1, page=3, page_size=2)

    assert first.total_pages == 3
    assert len(first.items) == 2
    assert len(second.items) == 2
    assert len(third.items) == 1
    seen = [row.id for row in first.items + second.items + third.items]
    assert len(set(seen)) == 5


@pytest.mark.parametrize("page, page_size", [(0, 10), (1, 0), (1, 101)])
def test_list_movements_rejects_bad_paging(db_session, page, page_size):
    with pytest.raises(MovementValidationError):
        list_movements(db_session, 1, page=page, page_size=page_size)


def test_invalid_filter_values_are_reported(db_session):
    with pytest.raises(MovementValidationError) as excinfo:
        list_movements(
            db_session,
            1,
            MovementFilters(movement_type="SIDEWAYS", start=DAY_ONE, end=DAY_ONE - timedelta(days=1)),
        )

    assert "invalid movement_type: SIDEWAYS" in excinfo.value.errors
    assert "start must not be after end" in excinfo.value.errors


def test_reverted_rows_are_listed_unless_excluded(db_session, ledger, manager):
    revert_movement(db_session, movement_id=ledger["sale"].id, actor_id=manager.id)

    assert list_movements(db_session, 1).total_count == 5
    assert list_movements(db_session, 1, MovementFilters(include_reverted=False)).total_count == 4


def test_item_history_range(db_session, ledger):
    pomade_id = ledger["pomade"].id

    history = get_item_history(db_session, pomade_id)
    assert [row.quantity for row in history] == [3, 12, 50]

    later = get_item_history(db_session, pomade_id, start=DAY_ONE + timedelta(days=1))
    assert [row.quantity for row in later] == [3, 12]

    with pytest.raises(MovementValidationError):
        get_item_history(db_session, pomade_id, start=DAY_ONE, end=DAY_ONE - timedelta(seconds=1))


def test_item_history_hides_soft_deleted_by_default(db_session, ledger, manager):
    soft_delete(db_session, movement_id=ledger["sale"].id, actor_id=manager.id)

    assert len(get_item_history(db_session, ledger["pomade"].id)) == 2
    assert len(get_item_history(db_session, ledger["pomade"].id, include_deleted=True)) == 3


def test_summary_totals_and_values(db_session, ledger):
    summary = get_summary_by_period(db_session, 1)

    assert summary.total_in == 150
    assert summary.total_out == 45
    assert summary.net_change == 105
    assert summary.entries_count == 2
    assert summary.exits_count == 3
    assert summary.entries_value == pytest.approx(150.0)
    assert summary.exits_value == pytest.approx(0.0)
    assert summary.by_reason == {
        "PURCHASE": 150,
        "SALE": -12,
        "INTERNAL_CONSUMPTION": -30,
        "ADJUSTMENT": -3,
    }


def test_summary_for_one_item_and_period(db_session, ledger):
    pomade_id = ledger["pomade"].id

    summary = get_summary_by_period(
        db_session, 1, start=DAY_ONE + timedelta(days=1), end=DAY_ONE + timedelta(days=2), item_id=pomade_id
    )

    assert summary.total_in == 0
    assert summary.total_out == 15
    assert summary.net_change == -15
    assert summary.item_id == pomade_id


def test_all_time_summary_matches_balance_after_revert_and_soft_delete(db_session, ledger, manager):
    pomade = ledger["pomade"]
    revert_movement(db_session, movement_id=ledger["sale"].id, actor_id=manager.id)
    breakage = list_movements(db_session, 1, MovementFilters(item_id=pomade.id, reason="ADJUSTMENT")).items[0]
    soft_delete(db_session, movement_id=breakage.id, actor_id=manager.id)

    summary = get_summary_by_period(db_session, 1, item_id=pomade.id)

    assert pomade.current_stock == 47
    assert summary.net_change == pomade.current_stock
    assert summary.exits_count == 1
