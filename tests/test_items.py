import os
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.crud.items import create_item, get_item, list_items
from stockledger.db.session import Base, build_engine

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


class _NoClash:
    """Stands in for the sku lookup result when another writer has not committed yet."""

    def scalars(self):
        return self

    def first(self):
        return None


def test_create_item_starts_empty(db_session):
    item = create_item(db_session, {"unit_id": 3, "name": "  Clipper oil ", "sku": " CO-1 ", "current_stock": 40})

    assert item.id is not None
    assert item.name == "Clipper oil"
    assert item.sku == "CO-1"
    assert item.current_stock == 0
    assert get_item(db_session, item.id) is item


def test_create_item_requires_name_and_unit(db_session):
    with pytest.raises(ValueError):
        create_item(db_session, {"unit_id": 1, "name": "   "})
    with pytest.raises(ValueError):
        create_item(db_session, {"name": "Tonic"})
    assert list_items(db_session, 1) == []


def test_duplicate_sku_in_unit_is_rejected(db_session):
    create_item(db_session, {"unit_id": 1, "name": "Pomade", "sku": "POM-1"})

    with pytest.raises(ValueError, match="already exists"):
        create_item(db_session, {"unit_id": 1, "name": "Pomade XL", "sku": "POM-1"})

    other_unit = create_item(db_session, {"unit_id": 2, "name": "Pomade", "sku": "POM-1"})
    assert other_unit.unit_id == 2


def test_sku_race_lost_at_insert_is_a_value_error(db_session, monkeypatch):
    create_item(db_session, {"unit_id": 1, "name": "Pomade", "sku": "POM-1"})

    with monkeypatch.context() as patched:
        patched.setattr(db_session, "execute", lambda *args, **kwargs: _NoClash())
        with pytest.raises(ValueError, match="already exists"):
            create_item(db_session, {"unit_id": 1, "name": "Pomade XL", "sku": "POM-1"})

    # The failed insert was rolled back and the session is usable again.
    assert [item.name for item in list_items(db_session, 1)] == ["Pomade"]
    assert create_item(db_session, {"unit_id": 1, "name": "Wax", "sku": "WAX-1"}).sku == "WAX-1"


def test_list_items_is_scoped_and_ordered(db_session):
    create_item(db_session, {"unit_id": 1, "name": "Wax"})
    create_item(db_session, {"unit_id": 1, "name": "Comb"})
    create_item(db_session, {"unit_id": 2, "name": "Towels"})

    assert [item.name for item in list_items(db_session, 1)] == ["Comb", "Wax"]
    assert [item.name for item in list_items(db_session, 1, limit=1, offset=1)] == ["Wax"]
