# Overview: Lot/batch tracking and expiry lookups for inventory records.

# backend/stockledger/services/batch_service.py
"""
Inventory batches.

- A batch belongs to one InventoryRecord and carries a batch number, a
  non-negative quantity and an optional expiry date (UTC-naive).
- Batch writes never touch the record's quantity or the movement ledger.
- Expiry windows are measured from "now" at call time: expiring means
  now <= expiry_date <= now + days; expired means expiry_date < now.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import InventoryBatch, InventoryRecord, Variant
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError
from .concurrency import run_in_transaction
from .inventory_service import get_record

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_WINDOW_DAYS = 30
MAX_EXPIRY_WINDOW_DAYS = 365
BATCH_NUMBER_MAX_LENGTH = 64


def _with_refs(query):
    return query.options(
        joinedload(InventoryBatch.inventory).joinedload(InventoryRecord.variant).joinedload(Variant.product),
        joinedload(InventoryBatch.inventory).joinedload(InventoryRecord.location),
    )


def _clean_batch_number(batch_number: str) -> str:
    cleaned = (batch_number or "").strip()
    if not cleaned:
        raise ValidationError("batch_number is required")
    if len(cleaned) > BATCH_NUMBER_MAX_LENGTH:
        raise ValidationError(f"batch_number must be at most {BATCH_NUMBER_MAX_LENGTH} characters")
    return cleaned


def _require_quantity(quantity: int) -> int:
    if quantity < 0:
        raise ValidationError("quantity must be a non-negative integer")
    return quantity


def get_batch(batch_id: int) -> InventoryBatch:
    batch = _with_refs(db.session.query(InventoryBatch)).filter(InventoryBatch.id == batch_id).first()
    if batch is None:
        raise NotFoundError("Batch not found")
    return batch


def list_batches(inventory_id: int) -> list[InventoryBatch]:
    """Batches of one record, newest first. NotFoundError for an unknown record."""
    get_record(inventory_id)
    return (
        db.session.query(InventoryBatch)
        .filter(InventoryBatch.inventory_id == inventory_id)
        .order_by(InventoryBatch.created_at.desc(), InventoryBatch.id.desc())
        .all()
    )


def create_batch(
    inventory_id: int,
    *,
    batch_number: str,
    quantity: int,
    expiry_date: Optional[datetime] = None,
) -> InventoryBatch:
    batch_number = _clean_batch_number(batch_number)
    quantity = _require_quantity(quantity)

    def _op():
        get_record(inventory_id)
        batch = InventoryBatch(
            inventory_id=inventory_id,
            batch_number=batch_number,
            quantity=quantity,
            expiry_date=expiry_date,
        )
        db.session.add(batch)
        db.session.flush()
        return batch

    batch = run_in_transaction(_op)
    logger.info("Created batch %s (%s) on inventory record %s", batch.id, batch_number, inventory_id)
    return batch


def update_batch(
    batch_id: int,
    *,
    batch_number: Optional[str] = None,
    quantity: Optional[int] = None,
    expiry_date: Optional[datetime] = None,
) -> InventoryBatch:
    """Fields left as None are unchanged."""
    if batch_number is None and quantity is None and expiry_date is None:
        raise ValidationError("At least one field to update must be provided")
    if batch_number is not None:
        batch_number = _clean_batch_number(batch_number)
    if quantity is not None:
        _require_quantity(quantity)

    def _op():
        batch = get_batch(batch_id)
        if batch_number is not None:
            batch.batch_number = batch_number
        if quantity is not None:
            batch.quantity = quantity
        if expiry_date is not None:
            batch.expiry_date = expiry_date
        db.session.flush()
        return batch

    return run_in_transaction(_op)


def delete_batch(batch_id: int) -> None:
    def _op():
        batch = get_batch(batch_id)
        db.session.delete(batch)

    run_in_transaction(_op)
    logger.info("Deleted batch %s", batch_id)


def list_expiring(days: int = DEFAULT_EXPIRY_WINDOW_DAYS, *, now: Optional[datetime] = None) -> list[InventoryBatch]:
    """Batches expiring within `days` (1..365), soonest first."""
    if days < 1 or days > MAX_EXPIRY_WINDOW_DAYS:
        raise ValidationError(f"days must be between 1 and {MAX_EXPIRY_WINDOW_DAYS}")
    now = now or utcnow()
    return (
        _with_refs(db.session.query(InventoryBatch))
        .filter(InventoryBatch.expiry_date.isnot(None))
        .filter(InventoryBatch.expiry_date >= now)
        .filter(InventoryBatch.expiry_date <= now + timedelta(days=days))
        .order_by(InventoryBatch.expiry_date.asc(), InventoryBatch.id.asc())
        .all()
    )


def list_expired(*, now: Optional[datetime] = None) -> list[InventoryBatch]:
    """Batches past their expiry date, most recently expired first."""
    now = now or utcnow()
    return (
        _with_refs(db.session.query(InventoryBatch))
        .filter(InventoryBatch.expiry_date.isnot(None))
        .filter(InventoryBatch.expiry_date < now)
        .order_by(InventoryBatch.expiry_date.desc(), InventoryBatch.id.desc())
        .all()
    )
