# Overview: Batch inventory workflows (adjust, typed movements, transfers); one transaction per call.

# backend/stockledger/services/bulk_service.py
"""
Bulk operators.

All-or-nothing: every call runs its whole item list inside one transaction.
The first failing line aborts the batch, rolls everything back, and the
raised error carries the zero-based index of that line (error.line).

BulkAdjust
- quantity given: set that absolute value (must be >= 0)
- delta given: set max(0, current + delta). The clamp is explicit: the
  movement logs the actual change, e.g. delta -100 on 30 units logs -30.
- neither: ValidationError

BulkMovement (and the single create_movement)
- find-or-create the (variant, location) record at quantity 0
- signed delta from the business type (see movement_types.BUSINESS_DIRECTION)
- outbound lines that exceed on-hand are rejected

BulkTransfer
- real source at the target location: skipped
- quantity defaults to the source's full quantity; <= 0 is skipped
- real source: OUTBOUND on the source, INBOUND on the target (total unchanged)
- synthetic source: no source row exists, so the line is a stock *creation*:
  a single INBOUND at the target, labelled "creation" in the results
- a new target record inherits the source's low_stock_alert (10 for synthetic)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..extensions import sync_notifier
from ..models import InventoryMovement, InventoryRecord
from ..validation import PayloadPolicy, ValidationError, enforce_rules_bulk_items, validate_payload
from .availability import DEFAULT_LOW_STOCK_THRESHOLD
from .concurrency import run_in_transaction
from .inventory_service import (
    apply_delta,
    find_or_create_record,
    get_record,
    require_location,
    require_variant,
    set_quantity,
)
from .movement_types import MovementType, parse_business_type, signed_quantity
from .record_refs import RealRef, RecordRef, SyntheticRef, parse_record_ref
from .sync_notifier import TRIGGER_BULK_ADJUSTMENT, TRIGGER_MOVEMENT, TRIGGER_TRANSFER

ADJUST_ITEM_POLICY = PayloadPolicy(
    fields={"id": str, "quantity": int, "delta": int},
    required={"id"},
    non_negative={"quantity"},
    nullable={"quantity", "delta"},
)

MOVEMENT_ITEM_POLICY = PayloadPolicy(
    fields={"variant_id": int, "location_id": int, "quantity": int},
    required={"variant_id", "location_id", "quantity"},
    positive={"quantity"},
)

TRANSFER_ITEM_POLICY = PayloadPolicy(
    fields={"id": str, "quantity": int},
    required={"id"},
    non_negative={"quantity"},
    nullable={"quantity"},
)


@dataclass(frozen=True)
class AdjustItem:
    record_id: int
    quantity: Optional[int] = None
    delta: Optional[int] = None


@dataclass(frozen=True)
class MovementItem:
    variant_id: int
    location_id: int
    quantity: int


@dataclass(frozen=True)
class TransferItem:
    source: RecordRef
    quantity: Optional[int] = None


@dataclass
class MovementResult:
    record: InventoryRecord
    movement: InventoryMovement
    created: bool = False

    def to_dict(self) -> dict:
        return {
            "inventory": self.record.to_dict(include_refs=True),
            "movement": self.movement.to_dict(),
            "created": self.created,
        }


@dataclass
class TransferResult:
    status: str  # "transfer" | "creation" | "skipped"
    source_id: Optional[object]
    target: Optional[InventoryRecord] = None
    quantity: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "status": self.status,
            "skipped": self.status == "skipped",
            "from_id": self.source_id,
            "quantity": self.quantity,
        }
        if self.reason:
            data["reason"] = self.reason
        if self.target is not None:
            data["to_id"] = self.target.id
            data["target"] = self.target.to_dict(include_refs=True)
        return data


# -- item parsing ------------------------------------------------------------------

def _validate_item(raw, policy: PayloadPolicy, line: int) -> dict:
    try:
        return validate_payload(payload=raw, policy=policy)
    except ValidationError as e:
        raise ValidationError(e.message, line=line) from e


def parse_adjust_items(raw_items: list) -> list[AdjustItem]:
    enforce_rules_bulk_items(raw_items)
    items = []
    for line, raw in enumerate(raw_items):
        clean = _validate_item(raw, ADJUST_ITEM_POLICY, line)
        ref = parse_record_ref(clean["id"], line=line)
        if not isinstance(ref, RealRef):
            raise ValidationError("Synthetic inventory rows cannot be adjusted directly", line=line)
        items.append(AdjustItem(record_id=ref.record_id, quantity=clean.get("quantity"), delta=clean.get("delta")))
    return items


def parse_movement_items(raw_items: list) -> list[MovementItem]:
    enforce_rules_bulk_items(raw_items)
    items = []
    for line, raw in enumerate(raw_items):
        clean = _validate_item(raw, MOVEMENT_ITEM_POLICY, line)
        items.append(MovementItem(clean["variant_id"], clean["location_id"], clean["quantity"]))
    return items


def parse_transfer_items(raw_items: list) -> list[TransferItem]:
    enforce_rules_bulk_items(raw_items)
    items = []
    for line, raw in enumerate(raw_items):
        clean = _validate_item(raw, TRANSFER_ITEM_POLICY, line)
        items.append(TransferItem(parse_record_ref(clean["id"], line=line), clean.get("quantity")))
    return items


def _require_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required")
    return reason


# -- operators -------------------------------------------------------------------

def bulk_adjust(items: list[AdjustItem], reason: str, *, initiated_by: str = "system") -> list[InventoryRecord]:
    reason = _require_reason(reason)
    if not items:
        raise ValidationError("items array is required")

    def _op():
        updated = []
        for line, item in enumerate(items):
            record = get_record(item.record_id, lock=True, line=line)
            if item.quantity is not None:
                new_quantity = item.quantity
            elif item.delta is not None:
                new_quantity = max(0, record.quantity + item.delta)
            else:
                raise ValidationError("Each item must include either quantity or delta", line=line)
            set_quantity(record, new_quantity, reason=reason, line=line)
            updated.append(record)
        return updated

    records = run_in_transaction(_op)
    sync_notifier.notify_many(
        (r.variant_id for r in records),
        TRIGGER_BULK_ADJUSTMENT,
        {"initiated_by": initiated_by, "message": reason},
    )
    return records


def _apply_typed_movement(item: MovementItem, movement_type: MovementType, reason: str, line: int | None) -> MovementResult:
    record, created = find_or_create_record(item.variant_id, item.location_id, line=line)
    movement = apply_delta(
        record,
        signed_quantity(movement_type, item.quantity),
        reason=reason,
        business_type=movement_type,
        line=line,
    )
    return MovementResult(record=record, movement=movement, created=created)


def bulk_movement(
    items: list[MovementItem],
    movement_type,
    reason: str,
    *,
    initiated_by: str = "system",
) -> list[MovementResult]:
    movement_type = parse_business_type(movement_type)
    reason = _require_reason(reason)
    if not items:
        raise ValidationError("items array is required")
    for line, item in enumerate(items):
        if item.quantity <= 0:
            raise ValidationError("quantity must be positive", line=line)

    def _op():
        return [_apply_typed_movement(item, movement_type, reason, line) for line, item in enumerate(items)]

    results = run_in_transaction(_op)
    sync_notifier.notify_many(
        (r.record.variant_id for r in results),
        TRIGGER_MOVEMENT,
        {"initiated_by": initiated_by, "message": reason, "type": movement_type.value},
    )
    return results


def create_movement(
    variant_id: int,
    location_id: int,
    quantity: int,
    movement_type,
    reason: str,
    *,
    initiated_by: str = "system",
) -> MovementResult:
    """Single typed movement; same rules as one line of bulk_movement."""
    results = bulk_movement(
        [MovementItem(variant_id, location_id, quantity)],
        movement_type,
        reason,
        initiated_by=initiated_by,
    )
    return results[0]


def _transfer_line(item: TransferItem, target_location_id: int, reason: str, line: int) -> TransferResult:
    if isinstance(item.source, SyntheticRef):
        if item.quantity is None:
            raise ValidationError("quantity is required when transferring an unassigned variant", line=line)
        if item.quantity <= 0:
            return TransferResult("skipped", item.source.wire_id, reason="Quantity <= 0")
        require_variant(item.source.variant_id, line=line)
        target, _ = find_or_create_record(
            item.source.variant_id,
            target_location_id,
            low_stock_alert=DEFAULT_LOW_STOCK_THRESHOLD,
            line=line,
        )
        apply_delta(
            target,
            item.quantity,
            reason=reason,
            movement_type=MovementType.INBOUND,
            business_type=MovementType.ADJUSTMENT_IN,
            line=line,
        )
        return TransferResult("creation", None, target=target, quantity=item.quantity)

    source = get_record(item.source.record_id, lock=True, line=line)
    if source.location_id == target_location_id:
        return TransferResult("skipped", source.id, reason="Already at target location")

    quantity = item.quantity if item.quantity is not None else source.quantity
    if quantity <= 0:
        return TransferResult("skipped", source.id, reason="Quantity <= 0")

    apply_delta(
        source,
        -quantity,
        reason=reason,
        movement_type=MovementType.OUTBOUND,
        business_type=MovementType.TRANSFER_OUT,
        line=line,
    )
    target, _ = find_or_create_record(
        source.variant_id,
        target_location_id,
        low_stock_alert=source.low_stock_alert,
        line=line,
    )
    apply_delta(
        target,
        quantity,
        reason=reason,
        movement_type=MovementType.INBOUND,
        business_type=MovementType.TRANSFER_IN,
        line=line,
    )
    return TransferResult("transfer", source.id, target=target, quantity=quantity)


def bulk_transfer(
    items: list[TransferItem],
    target_location_id: int,
    reason: str,
    *,
    initiated_by: str = "system",
) -> list[TransferResult]:
    reason = _require_reason(reason)
    if not items:
        raise ValidationError("items array is required")

    def _op():
        require_location(target_location_id)
        return [_transfer_line(item, target_location_id, reason, line) for line, item in enumerate(items)]

    results = run_in_transaction(_op)
    sync_notifier.notify_many(
        (r.target.variant_id for r in results if r.target is not None),
        TRIGGER_TRANSFER,
        {"initiated_by": initiated_by, "message": reason, "target_location_id": target_location_id},
    )
    return results
