# Overview: Read-side rollups for inventory listings, details and availability.

# backend/stockledger/services/aggregation_service.py
"""
Aggregation reader.

Two-phase design (fetch all, then filter, then paginate):
- Stock classification depends on values derived across rows (a variant's
  available quantity sums every location), so low-stock / out-of-stock
  filtering cannot be a single-table WHERE clause. Matching variants and
  their records are fetched in one pass and filtered in memory.
- Cost is O(matching variants) per request. Accepted while the catalog is
  small; a materialized available/threshold column is the next step if it grows.

Reads hold no locks and take no snapshot across calls: a listing and a later
detail lookup may observe different states.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import InventoryRecord, Location, Order, OrderItem, Product, Variant
from ..time_utils import to_utc_z
from ..validation import ValidationError
from .availability import StockStatus, aggregate, classify
from .inventory_service import require_variant, select_primary_record
from .record_refs import SyntheticRecord

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

MANAGEMENT_FILTERS = {
    "all": None,
    "low-stock": StockStatus.LOW_STOCK,
    "out-of-stock": StockStatus.OUT_OF_STOCK,
}

# Order statuses whose items still hold committed stock
OPEN_ORDER_STATUSES = ("PENDING", "PROCESSING", "LABEL_CREATED", "ON_HOLD")


@dataclass(frozen=True)
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def make_page(page: Optional[int] = None, limit: Optional[int] = None) -> Page:
    page = 1 if page is None else page
    limit = DEFAULT_PAGE_SIZE if limit is None else limit
    if page < 1:
        raise ValidationError("Page must be a positive integer")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    return Page(page=page, limit=limit)


def paginate(rows: list, page: Page) -> tuple[list, dict]:
    total = len(rows)
    pages = (total + page.limit - 1) // page.limit
    return rows[page.offset:page.offset + page.limit], {
        "page": page.page,
        "limit": page.limit,
        "total": total,
        "pages": pages,
    }


def search_terms(search: Optional[str]) -> list[str]:
    return [t for t in (search or "").split() if t]


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with the wildcards in `term` matched literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def variant_search_clause(search: Optional[str]):
    """
    AND-of-ORs: every whitespace-separated term must match the SKU, the
    variant name or the product name (case-insensitive substring).
    Returns None when there is nothing to filter on.
    """
    terms = search_terms(search)
    if not terms:
        return None
    clauses = []
    for term in terms:
        pattern = like_pattern(term)
        clauses.append(or_(
            Variant.sku.ilike(pattern, escape="\\"),
            Variant.name.ilike(pattern, escape="\\"),
            Product.name.ilike(pattern, escape="\\"),
        ))
    return and_(*clauses)


def _variant_query(search: Optional[str]):
    query = db.session.query(Variant).join(Product, Variant.product_id == Product.id)
    clause = variant_search_clause(search)
    if clause is not None:
        query = query.filter(clause)
    return query


# -- per-variant rollup ----------------------------------------------------------

def _management_row(variant: Variant) -> dict:
    records = list(variant.inventory_records)
    agg = aggregate(records)
    primary = select_primary_record(records)
    return {
        "id": variant.id,
        **variant.display_dict(),
        **agg.to_dict(),
        "status": classify(agg).value,
        "barcode": (primary.barcode if primary else None) or "",
        "sell_when_out_of_stock": bool(primary.sell_when_out_of_stock) if primary else False,
        **variant.pricing_dict(),
    }


def badge_counts(rows: list[dict]) -> dict:
    return {
        "all": len(rows),
        "low_stock": sum(1 for r in rows if r["status"] == StockStatus.LOW_STOCK.value),
        "out_of_stock": sum(1 for r in rows if r["status"] == StockStatus.OUT_OF_STOCK.value),
    }


def list_management(
    *,
    search: Optional[str] = None,
    stock_filter: str = "all",
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> dict:
    """
    Per-variant rollup across all locations for the management screen.

    Badge counts are computed over the full unfiltered row set, so they do not
    change with the active filter or page.
    """
    if stock_filter not in MANAGEMENT_FILTERS:
        raise ValidationError("Filter must be all, low-stock, or out-of-stock")
    page_spec = make_page(page, limit)

    variants = (
        _variant_query(search)
        .filter(Variant.is_active.is_(True))
        .options(selectinload(Variant.inventory_records), joinedload(Variant.product))
        .order_by(Product.name.asc(), Variant.name.asc(), Variant.id.asc())
        .all()
    )

    rows = [_management_row(v) for v in variants]
    counts = badge_counts(rows)

    wanted = MANAGEMENT_FILTERS[stock_filter]
    if wanted is not None:
        rows = [r for r in rows if r["status"] == wanted.value]

    items, pagination = paginate(rows, page_spec)
    return {"items": items, "pagination": pagination, "counts": counts}


# -- per-record listing -------------------------------------------------------------

def _record_status(record) -> StockStatus:
    return classify(aggregate([record]))


def list_flat(
    *,
    location_id: Optional[int] = None,
    low_stock: bool = False,
    out_of_stock: bool = False,
    search: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> dict:
    """
    One row per inventory record, newest update first.

    Without a location filter, variants that have no record in any location
    are listed too, as synthetic zero rows in the "Unassigned" location.
    out_of_stock takes precedence over low_stock when both are set.
    """
    page_spec = make_page(page, limit)

    query = (
        db.session.query(InventoryRecord)
        .join(Variant, InventoryRecord.variant_id == Variant.id)
        .join(Product, Variant.product_id == Product.id)
        .options(
            joinedload(InventoryRecord.variant).joinedload(Variant.product),
            joinedload(InventoryRecord.location),
            selectinload(InventoryRecord.batches),
        )
    )
    if location_id is not None:
        query = query.filter(InventoryRecord.location_id == location_id)
    clause = variant_search_clause(search)
    if clause is not None:
        query = query.filter(clause)
    rows: list = query.all()

    if location_id is None:
        unassigned = (
            _variant_query(search)
            .filter(~Variant.inventory_records.any())
            .options(joinedload(Variant.product))
            .all()
        )
        rows.extend(SyntheticRecord(variant=v) for v in unassigned)

    if out_of_stock:
        rows = [r for r in rows if _record_status(r) == StockStatus.OUT_OF_STOCK]
    elif low_stock:
        rows = [r for r in rows if _record_status(r) == StockStatus.LOW_STOCK]

    rows.sort(key=lambda r: r.updated_at or datetime.min, reverse=True)

    items, pagination = paginate(rows, page_spec)
    return {
        "items": [r.to_dict(include_refs=True, include_batches=True) for r in items],
        "pagination": pagination,
    }


def _records_with_status(status: StockStatus) -> list[InventoryRecord]:
    records = (
        db.session.query(InventoryRecord)
        .options(
            joinedload(InventoryRecord.variant).joinedload(Variant.product),
            joinedload(InventoryRecord.location),
        )
        .order_by(InventoryRecord.updated_at.desc(), InventoryRecord.id.desc())
        .all()
    )
    return [r for r in records if _record_status(r) == status]


def list_low_stock() -> list[InventoryRecord]:
    return _records_with_status(StockStatus.LOW_STOCK)


def list_out_of_stock() -> list[InventoryRecord]:
    return _records_with_status(StockStatus.OUT_OF_STOCK)


# -- single variant ------------------------------------------------------------------

def _variant_records(variant_id: int) -> list[InventoryRecord]:
    return (
        db.session.query(InventoryRecord)
        .join(Location, InventoryRecord.location_id == Location.id)
        .options(joinedload(InventoryRecord.location))
        .filter(InventoryRecord.variant_id == variant_id)
        .order_by(Location.name.asc(), InventoryRecord.id.asc())
        .all()
    )


def get_variant_detail(variant_id: int) -> dict:
    """
    Per-location breakdown plus the variant aggregate.

    barcode / sell_when_out_of_stock come from the primary record, the same
    record update_primary_record writes to.
    """
    variant = require_variant(variant_id)
    records = _variant_records(variant_id)
    agg = aggregate(records)
    primary = select_primary_record(records)

    return {
        "id": variant.id,
        **variant.display_dict(),
        **agg.to_dict(),
        "status": classify(agg).value,
        "barcode": (primary.barcode if primary else None) or "",
        "sell_when_out_of_stock": bool(primary.sell_when_out_of_stock) if primary else False,
        "primary_inventory_id": primary.id if primary else None,
        **variant.pricing_dict(),
        "location_inventory": [
            {
                "inventory_id": r.id,
                "location_id": r.location_id,
                "location_name": r.location.name,
                "location_city": r.location.city,
                "location_state": r.location.state,
                "committed": r.reserved_qty or 0,
                "available": r.available,
                "on_hand": r.quantity or 0,
                "low_stock_alert": r.low_stock_alert,
                "barcode": r.barcode or "",
                "sell_when_out_of_stock": bool(r.sell_when_out_of_stock),
            }
            for r in records
        ],
    }


def get_variant_records(variant_id: int) -> list[InventoryRecord]:
    require_variant(variant_id)
    return _variant_records(variant_id)


def get_variant_availability(variant_id: int) -> dict:
    require_variant(variant_id)
    records = _variant_records(variant_id)
    availability = [
        {
            "location_id": r.location_id,
            "location_name": r.location.name,
            "total_quantity": r.quantity or 0,
            "reserved_quantity": r.reserved_qty or 0,
            "available_quantity": r.available,
        }
        for r in records
    ]
    total_available = sum(a["available_quantity"] for a in availability)
    return {
        "variant_id": variant_id,
        "total_available": total_available,
        "availability": availability,
        "in_stock": total_available > 0,
    }


def list_committed_orders(variant_id: int) -> list[dict]:
    """Open orders holding stock of this variant, newest first."""
    require_variant(variant_id)
    orders = (
        db.session.query(Order)
        .filter(
            Order.status.in_(OPEN_ORDER_STATUSES),
            Order.items.any(OrderItem.variant_id == variant_id),
        )
        .options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [
        {
            "id": o.id,
            "order_number": o.order_number,
            "customer_name": o.customer_name,
            "customer_email": o.customer_email,
            "status": o.status,
            "quantity": sum(i.quantity for i in o.items if i.variant_id == variant_id),
            "created_at": to_utc_z(o.created_at),
        }
        for o in orders
    ]
