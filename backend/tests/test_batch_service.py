"""
Batch tracking: CRUD on a record's batches and the expiry windows.
"""
from datetime import datetime, timedelta

import pytest

from stockledger.extensions import db
from stockledger.models import InventoryBatch, InventoryMovement, InventoryRecord
from stockledger.services import batch_service
from stockledger.time_utils import parse_iso_datetime
from stockledger.validation import NotFoundError, ValidationError

NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def record(db_session, variant, warehouse, stock):
    return stock(variant, warehouse, 40)


def test_create_batch_leaves_ledger_alone(record):
    batch = batch_service.create_batch(
        record.id, batch_number="  LOT-1 ", quantity=12, expiry_date=NOW + timedelta(days=5)
    )

    assert batch.batch_number == "LOT-1"
    assert batch.to_dict()["expiry_date"] == "2026-10-24T12:00:00Z"
    db.session.expire_all()
    assert db.session.get(InventoryRecord, record.id).quantity == 40
    assert db.session.query(InventoryMovement).filter_by(inventory_id=record.id).count() == 1


def test_create_batch_validation(record):
    with pytest.raises(ValidationError, match="batch_number is required"):
        batch_service.create_batch(record.id, batch_number="   ", quantity=1)
    with pytest.raises(ValidationError, match="non-negative"):
        batch_service.create_batch(record.id, batch_number="LOT-1", quantity=-1)
    with pytest.raises(NotFoundError):
        batch_service.create_batch(999999, batch_number="LOT-1", quantity=1)
    assert db.session.query(InventoryBatch).count() == 0


def test_list_batches_newest_first(record):
    first = batch_service.create_batch(record.id, batch_number="LOT-1", quantity=1)
    second = batch_service.create_batch(record.id, batch_number="LOT-2", quantity=2)

    assert [b.id for b in batch_service.list_batches(record.id)] == [second.id, first.id]

    with pytest.raises(NotFoundError):
        batch_service.list_batches(999999)


def test_update_batch_changes_only_given_fields(record):
    batch = batch_service.create_batch(record.id, batch_number="LOT-1", quantity=5, expiry_date=NOW)

    updated = batch_service.update_batch(batch.id, quantity=3)

    assert (updated.batch_number, updated.quantity, updated.expiry_date) == ("LOT-1", 3, NOW)
    with pytest.raises(ValidationError, match="At least one field"):
        batch_service.update_batch(batch.id)
    with pytest.raises(NotFoundError, match="Batch not found"):
        batch_service.update_batch(999999, quantity=1)


def test_delete_batch(record):
    batch = batch_service.create_batch(record.id, batch_number="LOT-1", quantity=5)

    batch_service.delete_batch(batch.id)

    assert db.session.query(InventoryBatch).count() == 0
    with pytest.raises(NotFoundError):
        batch_service.delete_batch(batch.id)


def test_expiry_windows(record):
    def add(number, expiry):
        return batch_service.create_batch(record.id, batch_number=number, quantity=1, expiry_date=expiry)

    add("NO-EXPIRY", None)
    add("LONG-GONE", NOW - timedelta(days=40))
    add("JUST-GONE", NOW - timedelta(hours=1))
    add("SOON", NOW + timedelta(days=2))
    add("EDGE", NOW + timedelta(days=30))
    add("LATER", NOW + timedelta(days=31))

    expiring = batch_service.list_expiring(now=NOW)
    assert [b.batch_number for b in expiring] == ["SOON", "EDGE"]
    assert expiring[0].to_dict(include_refs=True)["location"]["name"] == "Main Warehouse"

    assert [b.batch_number for b in batch_service.list_expiring(365, now=NOW)] == ["SOON", "EDGE", "LATER"]
    assert [b.batch_number for b in batch_service.list_expired(now=NOW)] == ["JUST-GONE", "LONG-GONE"]


@pytest.mark.parametrize("days", [0, 366, -5])
def test_expiring_window_bounds(db_session, days):
    with pytest.raises(ValidationError):
        batch_service.list_expiring(days, now=NOW)


@pytest.mark.parametrize("raw,expected", [
    (None, None),
    ("", None),
    ("2026-11-01", datetime(2026, 11, 1)),
    ("2026-11-01T08:30:00Z", datetime(2026, 11, 1, 8, 30)),
    ("2026-11-01T08:30:00+02:00", datetime(2026, 11, 1, 6, 30)),
])
def test_parse_iso_datetime(raw, expected):
    assert parse_iso_datetime(raw) == expected


def test_parse_iso_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        parse_iso_datetime("next tuesday")
