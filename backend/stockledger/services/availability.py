# Overview: Pure availability math over inventory records; no database access.

# backend/stockledger/services/availability.py
"""
Availability Invariants (authoritative)

- on_hand   = SUM(max(0, quantity)) over the variant's records
- reserved  = SUM(max(0, |reserved_qty|)) over the variant's records
- available = max(0, on_hand - reserved); never negative, even when reserved > on_hand
- low_stock_threshold = MIN(low_stock_alert) over the records, 10 when there are none

Classification:
- OUT_OF_STOCK iff available == 0
- LOW_STOCK    iff 0 < available <= low_stock_threshold
- IN_STOCK     otherwise

Both functions are pure: the same records always yield the same result.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

DEFAULT_LOW_STOCK_THRESHOLD = 10


class StockStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


@dataclass(frozen=True)
class StockAggregate:
    on_hand: int
    reserved: int
    available: int
    low_stock_threshold: int

    def to_dict(self) -> dict:
        return {
            "on_hand": self.on_hand,
            "committed": self.reserved,
            "available": self.available,
            "low_stock_threshold": self.low_stock_threshold,
        }


def _threshold_of(record) -> int:
    value = getattr(record, "low_stock_alert", None)
    return DEFAULT_LOW_STOCK_THRESHOLD if value is None else value


def aggregate(records: Iterable) -> StockAggregate:
    """
    Roll up any objects exposing quantity / reserved_qty / low_stock_alert.

    Accepts InventoryRecord rows as well as synthetic placeholders.
    """
    records = list(records)
    on_hand = sum(max(0, r.quantity or 0) for r in records)
    reserved = sum(max(0, abs(r.reserved_qty or 0)) for r in records)
    threshold = min((_threshold_of(r) for r in records), default=DEFAULT_LOW_STOCK_THRESHOLD)
    return StockAggregate(
        on_hand=on_hand,
        reserved=reserved,
        available=max(0, on_hand - reserved),
        low_stock_threshold=threshold,
    )


def classify(agg: StockAggregate) -> StockStatus:
    if agg.available == 0:
        return StockStatus.OUT_OF_STOCK
    if agg.available <= agg.low_stock_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def classify_records(records: Iterable) -> StockStatus:
    return classify(aggregate(records))
