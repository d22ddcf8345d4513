# Overview: Real-or-synthetic inventory record references.

"""
A variant with no inventory row anywhere is still listed, as a synthetic
zero-quantity placeholder. On the wire the placeholder id is
"synthetic-<variant_id>"; inside the service layer it is a SyntheticRef and
nothing else looks at the string prefix.

Synthetic placeholders are never persisted. The first movement or transfer
that targets the variant creates a real InventoryRecord.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..validation import ValidationError
from .availability import DEFAULT_LOW_STOCK_THRESHOLD

SYNTHETIC_PREFIX = "synthetic-"
UNASSIGNED_LOCATION_NAME = "Unassigned"


@dataclass(frozen=True)
class RealRef:
    record_id: int


@dataclass(frozen=True)
class SyntheticRef:
    variant_id: int

    @property
    def wire_id(self) -> str:
        return f"{SYNTHETIC_PREFIX}{self.variant_id}"


RecordRef = Union[RealRef, SyntheticRef]


def _parse_int(raw: str, *, line: int | None) -> int:
    raw = raw.strip()
    if not raw.isdigit():
        raise ValidationError(f"Invalid inventory id: {raw!r}", line=line)
    return int(raw)


def parse_record_ref(value, *, line: int | None = None) -> RecordRef:
    """Parse an inventory id from a request (int, numeric string or synthetic id)."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("Inventory id is required", line=line)
    if isinstance(value, int):
        return RealRef(value)
    if isinstance(value, str):
        if value.startswith(SYNTHETIC_PREFIX):
            return SyntheticRef(_parse_int(value[len(SYNTHETIC_PREFIX):], line=line))
        return RealRef(_parse_int(value, line=line))
    raise ValidationError("Inventory id must be a string or integer", line=line)


@dataclass(frozen=True)
class SyntheticRecord:
    """Read-time placeholder for a variant that has no inventory row."""

    variant: object
    quantity: int = 0
    reserved_qty: int = 0
    low_stock_alert: int = DEFAULT_LOW_STOCK_THRESHOLD

    @property
    def ref(self) -> SyntheticRef:
        return SyntheticRef(self.variant.id)

    @property
    def available(self) -> int:
        return 0

    @property
    def updated_at(self):
        return self.variant.updated_at

    def to_dict(self, *, include_refs: bool = True, include_batches: bool = False) -> dict:
        data = {
            "id": self.ref.wire_id,
            "synthetic": True,
            "variant_id": self.variant.id,
            "location_id": None,
            "quantity": 0,
            "reserved_qty": 0,
            "available": 0,
            "low_stock_alert": self.low_stock_alert,
            "barcode": "",
            "sell_when_out_of_stock": False,
        }
        if include_refs:
            data["variant"] = self.variant.display_dict()
            data["location"] = {"id": None, "name": UNASSIGNED_LOCATION_NAME}
        if include_batches:
            data["batches"] = []
        return data
