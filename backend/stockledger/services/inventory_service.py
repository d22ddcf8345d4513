# Overview: Service-layer operations for single inventory records; encapsulates business logic and database work.

# backend/stockledger/services/inventory_service.py
"""
Inventory Ledger Invariants (authoritative)

Record model:
- One InventoryRecord per (variant_id, location_id); created lazily at quantity 0.
- quantity never goes below zero; every write path checks before flushing.
- available = max(0, quantity - reserved_qty).

Ledger balance:
- Every change of InventoryRecord.quantity appends exactly one InventoryMovement
  carrying the actual signed delta, in the same DB transaction.
- Movements are append-only (no updates/deletes).
- Hence record.quantity == SUM(movement.quantity) for every record.

Primary record policy:
- Whole-variant updates target the variant's primary record: the one created
  first, ties broken by id (select_primary_record). The detail reader uses the
  same policy so the flags it shows are the ones the update path writes.

Downstream sync:
- After commit, the affected variant is handed to the SyncNotifier.
- Notifier failures are logged there and never roll back or fail the update.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..extensions import db, sync_notifier
from ..models import InventoryMovement, InventoryRecord, Location, Variant
from ..validation import NotFoundError, ValidationError
from .availability import DEFAULT_LOW_STOCK_THRESHOLD
from .concurrency import lock_for_update, run_in_transaction
from .movement_types import MovementType, ledger_type_for_delta
from .sync_notifier import TRIGGER_MANUAL_ADJUSTMENT

DEFAULT_RECORD_REASON = "Manual adjustment"
DEFAULT_PRIMARY_REASON = "Manual adjustment from inventory management"
DEFAULT_LOCATION_REASON = "Manual location adjustment"


# -- lookups -------------------------------------------------------------------

def require_variant(variant_id: int, *, line: int | None = None) -> Variant:
    variant = db.session.query(Variant).filter_by(id=variant_id).first()
    if variant is None:
        raise NotFoundError(f"Variant not found: {variant_id}", line=line)
    return variant


def require_location(location_id: int, *, line: int | None = None) -> Location:
    location = db.session.query(Location).filter_by(id=location_id).first()
    if location is None:
        raise NotFoundError(f"Location not found: {location_id}", line=line)
    return location


def get_record(record_id: int, *, lock: bool = False, line: int | None = None) -> InventoryRecord:
    query = db.session.query(InventoryRecord).filter_by(id=record_id)
    if lock:
        query = lock_for_update(query)
    record = query.first()
    if record is None:
        raise NotFoundError(f"Inventory record not found: {record_id}", line=line)
    return record


def find_record(variant_id: int, location_id: int, *, lock: bool = False) -> Optional[InventoryRecord]:
    query = db.session.query(InventoryRecord).filter_by(variant_id=variant_id, location_id=location_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def find_or_create_record(
    variant_id: int,
    location_id: int,
    *,
    low_stock_alert: int = DEFAULT_LOW_STOCK_THRESHOLD,
    line: int | None = None,
) -> tuple[InventoryRecord, bool]:
    """
    Return (record, created) for the pair, creating a quantity-0 record if needed.

    Must run inside run_in_transaction: a racing insert of the same pair
    surfaces as IntegrityError at flush and the retry finds the winner's row.
    """
    record = find_record(variant_id, location_id, lock=True)
    if record is not None:
        return record, False

    require_variant(variant_id, line=line)
    require_location(location_id, line=line)

    record = InventoryRecord(
        variant_id=variant_id,
        location_id=location_id,
        quantity=0,
        reserved_qty=0,
        low_stock_alert=low_stock_alert,
    )
    db.session.add(record)
    db.session.flush()
    return record, True


def select_primary_record(records: Iterable[InventoryRecord]) -> Optional[InventoryRecord]:
    """Primary record policy: earliest created, ties broken by lowest id."""
    return min(
        records,
        key=lambda r: (r.created_at or datetime.max, r.id),
        default=None,
    )


# -- ledger writes ---------------------------------------------------------------

def append_movement(
    record: InventoryRecord,
    quantity: int,
    *,
    movement_type: MovementType,
    reason: str,
    business_type: MovementType | None = None,
) -> InventoryMovement:
    """Append-only ledger line. Callers have already applied `quantity` to the record."""
    movement = InventoryMovement(
        inventory_id=record.id,
        quantity=quantity,
        type=movement_type.value,
        business_type=business_type.value if business_type else None,
        reason=reason,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_delta(
    record: InventoryRecord,
    delta: int,
    *,
    reason: str,
    movement_type: MovementType | None = None,
    business_type: MovementType | None = None,
    line: int | None = None,
) -> Optional[InventoryMovement]:
    """
    Move record.quantity by `delta` and log the movement.

    Returns None for a zero delta (nothing to record).
    """
    if delta == 0:
        return None
    new_quantity = (record.quantity or 0) + delta
    if new_quantity < 0:
        raise ValidationError(
            f"Insufficient inventory for record {record.id}. "
            f"On-hand: {record.quantity}, requested: {-delta}",
            line=line,
        )
    record.quantity = new_quantity
    return append_movement(
        record,
        delta,
        movement_type=movement_type or ledger_type_for_delta(delta),
        reason=reason,
        business_type=business_type,
    )


def set_quantity(
    record: InventoryRecord,
    new_quantity: int,
    *,
    reason: str,
    movement_type: MovementType | None = None,
    line: int | None = None,
) -> Optional[InventoryMovement]:
    """Set an absolute quantity; the movement records the actual change."""
    if new_quantity < 0:
        raise ValidationError("quantity must be a non-negative integer", line=line)
    return apply_delta(
        record,
        new_quantity - (record.quantity or 0),
        reason=reason,
        movement_type=movement_type,
        line=line,
    )


def _require_non_negative(name: str, value: Optional[int]) -> None:
    if value is not None and value < 0:
        raise ValidationError(f"{name} must be a non-negative integer")


def _apply_field_changes(
    record: InventoryRecord,
    *,
    reason: str,
    movement_type: MovementType | None,
    quantity: Optional[int] = None,
    reserved_qty: Optional[int] = None,
    low_stock_alert: Optional[int] = None,
    barcode: Optional[str] = None,
    sell_when_out_of_stock: Optional[bool] = None,
) -> Optional[InventoryMovement]:
    _require_non_negative("quantity", quantity)
    _require_non_negative("committed", reserved_qty)
    _require_non_negative("low_stock_alert", low_stock_alert)

    if reserved_qty is not None:
        record.reserved_qty = reserved_qty
    if low_stock_alert is not None:
        record.low_stock_alert = low_stock_alert
    if barcode is not None:
        record.barcode = barcode
    if sell_when_out_of_stock is not None:
        record.sell_when_out_of_stock = sell_when_out_of_stock

    movement = None
    if quantity is not None:
        movement = set_quantity(record, quantity, reason=reason, movement_type=movement_type)
    db.session.flush()
    return movement


def _notify_manual(variant_id: int, message: str, initiated_by: str) -> None:
    sync_notifier.notify(
        variant_id,
        TRIGGER_MANUAL_ADJUSTMENT,
        {"initiated_by": initiated_by, "message": message},
    )


# -- single-location mutator ---------------------------------------------------

def update_record(
    record_id: int,
    *,
    quantity: Optional[int] = None,
    low_stock_alert: Optional[int] = None,
    reason: Optional[str] = None,
    initiated_by: str = "system",
) -> InventoryRecord:
    """
    Update quantity and/or low_stock_alert on one record by id.

    A quantity change is logged as INBOUND/OUTBOUND by sign.
    """
    if quantity is None and low_stock_alert is None:
        raise ValidationError("At least one field to update must be provided")

    def _op():
        record = get_record(record_id, lock=True)
        _apply_field_changes(
            record,
            reason=reason or DEFAULT_RECORD_REASON,
            movement_type=None,
            quantity=quantity,
            low_stock_alert=low_stock_alert,
        )
        return record

    record = run_in_transaction(_op)
    _notify_manual(record.variant_id, f"Manual inventory adjustment on record {record.id}", initiated_by)
    return record


def update_primary_record(
    variant_id: int,
    *,
    on_hand: Optional[int] = None,
    committed: Optional[int] = None,
    barcode: Optional[str] = None,
    sell_when_out_of_stock: Optional[bool] = None,
    reason: Optional[str] = None,
    initiated_by: str = "system",
) -> InventoryRecord:
    """
    Update the variant's primary record (see select_primary_record).

    Raises NotFoundError if the variant is unknown or has no records yet.
    """
    def _op():
        require_variant(variant_id)
        records = lock_for_update(
            db.session.query(InventoryRecord).filter_by(variant_id=variant_id)
        ).all()
        primary = select_primary_record(records)
        if primary is None:
            raise NotFoundError("No inventory records found for this variant")
        _apply_field_changes(
            primary,
            reason=reason or DEFAULT_PRIMARY_REASON,
            movement_type=None,
            quantity=on_hand,
            reserved_qty=committed,
            barcode=barcode,
            sell_when_out_of_stock=sell_when_out_of_stock,
        )
        return primary

    record = run_in_transaction(_op)
    _notify_manual(variant_id, "Manual inventory adjustment via admin panel", initiated_by)
    return record


def update_location_record(
    variant_id: int,
    location_id: int,
    *,
    on_hand: Optional[int] = None,
    committed: Optional[int] = None,
    barcode: Optional[str] = None,
    sell_when_out_of_stock: Optional[bool] = None,
    reason: Optional[str] = None,
    initiated_by: str = "system",
) -> InventoryRecord:
    """
    Update the record for one (variant, location) pair.

    Quantity changes are logged as ADJUSTMENT. No record for the pair is a
    NotFoundError: this path never creates records.
    """
    if on_hand is None and committed is None and barcode is None and sell_when_out_of_stock is None:
        raise ValidationError("At least one field to update must be provided")

    def _op():
        record = find_record(variant_id, location_id, lock=True)
        if record is None:
            raise NotFoundError("Inventory record not found for this location")
        _apply_field_changes(
            record,
            reason=reason or DEFAULT_LOCATION_REASON,
            movement_type=MovementType.ADJUSTMENT,
            quantity=on_hand,
            reserved_qty=committed,
            barcode=barcode,
            sell_when_out_of_stock=sell_when_out_of_stock,
        )
        return record

    record = run_in_transaction(_op)
    _notify_manual(variant_id, f"Manual inventory adjustment at location {location_id}", initiated_by)
    return record

