# backend/stockledger/routes/inventory.py
"""
Inventory routes.

SECURITY: every route except the availability lookup declares a permission key.
- Read operations require INVENTORY:READ
- Record and bulk updates require INVENTORY:UPDATE
- Movements require INVENTORY:CREATE
- Feed imports require INVENTORY:WRITE
- Batch creation, update and deletion require INVENTORY:CREATE, INVENTORY:UPDATE
  and INVENTORY:DELETE respectively

Errors:
- Service errors (ValidationError / NotFoundError / ConflictError) are rendered
  by the blueprint error handler as {"error": ..., "line": n?} with their status.
- Bulk operations are all-or-nothing; "line" is the index of the failing item.
"""
import httpx
from flask import Blueprint, current_app, request
from werkzeug.exceptions import HTTPException

from ..decorators import current_actor, require_permission
from ..time_utils import parse_iso_datetime
from ..validation import (
    InventoryError,
    PayloadPolicy,
    ValidationError,
    enforce_rules_reason,
    enforce_rules_record_update,
    validate_payload,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/inventory")

RECORD_UPDATE_POLICY = PayloadPolicy(
    fields={"quantity": int, "low_stock_alert": int, "reason": str},
    non_negative={"quantity", "low_stock_alert"},
    nullable={"quantity", "low_stock_alert", "reason"},
    max_lengths={"reason": 255},
)

VARIANT_UPDATE_FIELDS = {"on_hand", "committed", "barcode", "sell_when_out_of_stock"}

VARIANT_UPDATE_POLICY = PayloadPolicy(
    fields={
        "on_hand": int,
        "committed": int,
        "reason": str,
        "barcode": str,
        "sell_when_out_of_stock": bool,
    },
    non_negative={"on_hand", "committed"},
    nullable={"on_hand", "committed", "reason", "barcode", "sell_when_out_of_stock"},
    max_lengths={"reason": 255, "barcode": 64},
)

MOVEMENT_POLICY = PayloadPolicy(
    fields={"variant_id": int, "location_id": int, "quantity": int, "type": str, "reason": str},
    required={"variant_id", "location_id", "quantity", "type", "reason"},
    positive={"quantity"},
    max_lengths={"reason": 255},
)

BULK_ADJUST_POLICY = PayloadPolicy(
    fields={"items": list, "reason": str},
    required={"items", "reason"},
    max_lengths={"reason": 255},
)

BULK_MOVEMENT_POLICY = PayloadPolicy(
    fields={"items": list, "type": str, "reason": str},
    required={"items", "type", "reason"},
    max_lengths={"reason": 255},
)

BULK_TRANSFER_POLICY = PayloadPolicy(
    fields={"items": list, "target_location_id": int, "reason": str},
    required={"items", "target_location_id", "reason"},
    max_lengths={"reason": 255},
)

BATCH_CREATE_POLICY = PayloadPolicy(
    fields={"inventory_id": int, "batch_number": str, "quantity": int, "expiry_date": str},
    required={"inventory_id", "batch_number", "quantity"},
    non_negative={"quantity"},
    nullable={"expiry_date"},
    max_lengths={"batch_number": 64},
)

BATCH_UPDATE_POLICY = PayloadPolicy(
    fields={"batch_number": str, "quantity": int, "expiry_date": str},
    non_negative={"quantity"},
    nullable={"batch_number", "quantity", "expiry_date"},
    max_lengths={"batch_number": 64},
)


@inventory_bp.errorhandler(InventoryError)
def handle_inventory_error(e: InventoryError):
    return e.to_dict(), e.status_code


@inventory_bp.errorhandler(Exception)
def handle_unexpected_error(e: Exception):
    if isinstance(e, HTTPException):
        return e
    current_app.logger.exception("Unhandled error in %s %s", request.method, request.path)
    return {"error": "Internal server error"}, 500


# -- request helpers ------------------------------------------------------------

def _arg_int(name: str):
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _arg_bool(name: str) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return False
    value = raw.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no", ""):
        return False
    raise ValidationError(f"{name} must be a boolean")


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _expiry_date(patch: dict):
    try:
        return parse_iso_datetime(patch.get("expiry_date"))
    except ValueError:
        raise ValidationError("expiry_date must be an ISO-8601 date or datetime")


# -- reads ------------------------------------------------------------------------

@inventory_bp.get("")
@require_permission("INVENTORY:READ")
def list_inventory_route():
    """
    Flat record listing.

    Query: location_id, search, low_stock, out_of_stock, page, limit.
    Without location_id, variants with no records appear as synthetic rows.
    """
    from ..services.aggregation_service import list_flat

    return list_flat(
        location_id=_arg_int("location_id"),
        low_stock=_arg_bool("low_stock"),
        out_of_stock=_arg_bool("out_of_stock"),
        search=request.args.get("search"),
        page=_arg_int("page"),
        limit=_arg_int("limit"),
    ), 200


@inventory_bp.get("/management")
@require_permission("INVENTORY:READ")
def inventory_management_route():
    """Per-variant rollup with filter=all|low-stock|out-of-stock and badge counts."""
    from ..services.aggregation_service import list_management

    return list_management(
        search=request.args.get("search"),
        stock_filter=request.args.get("filter", "all"),
        page=_arg_int("page"),
        limit=_arg_int("limit"),
    ), 200


@inventory_bp.get("/variant/<int:variant_id>/details")
@require_permission("INVENTORY:READ")
def variant_details_route(variant_id: int):
    from ..services.aggregation_service import get_variant_detail

    return get_variant_detail(variant_id), 200


@inventory_bp.get("/variant/<int:variant_id>/committed-orders")
@require_permission("INVENTORY:READ")
def committed_orders_route(variant_id: int):
    from ..services.aggregation_service import list_committed_orders

    return {"orders": list_committed_orders(variant_id)}, 200


@inventory_bp.get("/variant/<int:variant_id>")
@require_permission("INVENTORY:READ")
def variant_records_route(variant_id: int):
    from ..services.aggregation_service import get_variant_records

    records = get_variant_records(variant_id)
    return {"items": [r.to_dict(include_refs=True) for r in records]}, 200


@inventory_bp.get("/availability/<int:variant_id>")
def availability_route(variant_id: int):
    """Public: per-location and total available quantity."""
    from ..services.aggregation_service import get_variant_availability

    return get_variant_availability(variant_id), 200


@inventory_bp.get("/low-stock")
@require_permission("INVENTORY:READ")
def low_stock_route():
    from ..services.aggregation_service import list_low_stock

    return {"items": [r.to_dict(include_refs=True) for r in list_low_stock()]}, 200


@inventory_bp.get("/out-of-stock")
@require_permission("INVENTORY:READ")
def out_of_stock_route():
    from ..services.aggregation_service import list_out_of_stock

    return {"items": [r.to_dict(include_refs=True) for r in list_out_of_stock()]}, 200


# -- single-record writes -------------------------------------------------------------

@inventory_bp.put("/variant/<int:variant_id>/update")
@require_permission("INVENTORY:UPDATE")
def update_variant_route(variant_id: int):
    """
    Update the variant's primary record.

    Body: on_hand?, committed?, reason?, barcode?, sell_when_out_of_stock?
    """
    patch = validate_payload(payload=_json_body(), policy=VARIANT_UPDATE_POLICY)
    enforce_rules_reason(patch, required=False)

    from ..services.inventory_service import update_primary_record

    record = update_primary_record(
        variant_id,
        on_hand=patch.get("on_hand"),
        committed=patch.get("committed"),
        barcode=patch.get("barcode"),
        sell_when_out_of_stock=patch.get("sell_when_out_of_stock"),
        reason=patch.get("reason"),
        initiated_by=current_actor(),
    )
    return {"inventory": record.to_dict(include_refs=True)}, 200


@inventory_bp.put("/variant/<int:variant_id>/location/<int:location_id>/update")
@require_permission("INVENTORY:UPDATE")
def update_variant_location_route(variant_id: int, location_id: int):
    """Update one (variant, location) record; 404 when the pair has no record."""
    patch = validate_payload(payload=_json_body(), policy=VARIANT_UPDATE_POLICY)
    enforce_rules_reason(patch, required=False)
    enforce_rules_record_update(patch, VARIANT_UPDATE_FIELDS)

    from ..services.inventory_service import update_location_record

    record = update_location_record(
        variant_id,
        location_id,
        on_hand=patch.get("on_hand"),
        committed=patch.get("committed"),
        barcode=patch.get("barcode"),
        sell_when_out_of_stock=patch.get("sell_when_out_of_stock"),
        reason=patch.get("reason"),
        initiated_by=current_actor(),
    )
    return {"inventory": record.to_dict(include_refs=True)}, 200


@inventory_bp.put("/<int:record_id>")
@require_permission("INVENTORY:UPDATE")
def update_record_route(record_id: int):
    """Update quantity and/or low_stock_alert on one record by id."""
    patch = validate_payload(payload=_json_body(), policy=RECORD_UPDATE_POLICY)
    enforce_rules_reason(patch, required=False)

    from ..services.inventory_service import update_record

    record = update_record(
        record_id,
        quantity=patch.get("quantity"),
        low_stock_alert=patch.get("low_stock_alert"),
        reason=patch.get("reason"),
        initiated_by=current_actor(),
    )
    return {"inventory": record.to_dict(include_refs=True)}, 200


@inventory_bp.post("/movement")
@require_permission("INVENTORY:CREATE")
def create_movement_route():
    """Single typed movement; the (variant, location) record is created if missing."""
    patch = validate_payload(payload=_json_body(), policy=MOVEMENT_POLICY)
    enforce_rules_reason(patch, required=True)

    from ..services.bulk_service import create_movement

    result = create_movement(
        patch["variant_id"],
        patch["location_id"],
        patch["quantity"],
        patch["type"],
        patch["reason"],
        initiated_by=current_actor(),
    )
    return result.to_dict(), 201


# -- bulk ------------------------------------------------------------------------------

@inventory_bp.post("/bulk/adjust")
@require_permission("INVENTORY:UPDATE")
def bulk_adjust_route():
    patch = validate_payload(payload=_json_body(), policy=BULK_ADJUST_POLICY)
    enforce_rules_reason(patch, required=True)

    from ..services.bulk_service import bulk_adjust, parse_adjust_items

    records = bulk_adjust(parse_adjust_items(patch["items"]), patch["reason"], initiated_by=current_actor())
    return {
        "updated": len(records),
        "items": [r.to_dict(include_refs=True) for r in records],
    }, 200


@inventory_bp.post("/bulk/movement")
@require_permission("INVENTORY:CREATE")
def bulk_movement_route():
    patch = validate_payload(payload=_json_body(), policy=BULK_MOVEMENT_POLICY)
    enforce_rules_reason(patch, required=True)

    from ..services.bulk_service import bulk_movement, parse_movement_items

    results = bulk_movement(
        parse_movement_items(patch["items"]),
        patch["type"],
        patch["reason"],
        initiated_by=current_actor(),
    )
    return {"count": len(results), "items": [r.to_dict() for r in results]}, 201


@inventory_bp.post("/bulk/transfer")
@require_permission("INVENTORY:UPDATE")
def bulk_transfer_route():
    """
    Move stock to target_location_id.

    items[].id is a record id or "synthetic-<variant_id>"; a synthetic line
    creates stock at the target instead of moving it.
    """
    patch = validate_payload(payload=_json_body(), policy=BULK_TRANSFER_POLICY)
    enforce_rules_reason(patch, required=True)

    from ..services.bulk_service import bulk_transfer, parse_transfer_items

    results = bulk_transfer(
        parse_transfer_items(patch["items"]),
        patch["target_location_id"],
        patch["reason"],
        initiated_by=current_actor(),
    )
    return {
        "transferred": sum(1 for r in results if r.status == "transfer"),
        "created": sum(1 for r in results if r.status == "creation"),
        "skipped": sum(1 for r in results if r.status == "skipped"),
        "results": [r.to_dict() for r in results],
    }, 200


# -- external feed ----------------------------------------------------------------------

@inventory_bp.post("/sync/shipstation")
@require_permission("INVENTORY:WRITE")
def sync_shipstation_route():
    from ..services.feed_import_service import sync_feed_inventory

    try:
        result = sync_feed_inventory()
    except httpx.HTTPError:
        current_app.logger.exception("ShipStation inventory sync failed")
        return {"error": "ShipStation request failed"}, 502

    return {
        **result.to_dict(),
        "message": f"Synced {result.synced} inventory items from ShipStation",
    }, 200


@inventory_bp.post("/sync/shipstation/<sku>")
@require_permission("INVENTORY:WRITE")
def sync_shipstation_sku_route(sku: str):
    from ..services.feed_import_service import sync_feed_sku

    try:
        result = sync_feed_sku(sku)
    except httpx.HTTPError:
        current_app.logger.exception("ShipStation sync failed for SKU %s", sku)
        return {"error": "ShipStation request failed"}, 502

    return {**result, "message": f"Synced SKU {sku} from ShipStation"}, 200


# -- batches ----------------------------------------------------------------------------

@inventory_bp.get("/batches")
@require_permission("INVENTORY:READ")
def list_batches_route():
    """Batches of one record. Query: inventory_id (required)."""
    inventory_id = _arg_int("inventory_id")
    if inventory_id is None:
        raise ValidationError("inventory_id is required")

    from ..services.batch_service import list_batches

    return {"items": [b.to_dict() for b in list_batches(inventory_id)]}, 200


@inventory_bp.get("/batches/expiring")
@require_permission("INVENTORY:READ")
def list_expiring_batches_route():
    """Batches expiring within ?days= (1..365, default 30), soonest first."""
    from ..services.batch_service import DEFAULT_EXPIRY_WINDOW_DAYS, list_expiring

    days = _arg_int("days")
    batches = list_expiring(DEFAULT_EXPIRY_WINDOW_DAYS if days is None else days)
    return {"items": [b.to_dict(include_refs=True) for b in batches]}, 200


@inventory_bp.get("/batches/expired")
@require_permission("INVENTORY:READ")
def list_expired_batches_route():
    from ..services.batch_service import list_expired

    return {"items": [b.to_dict(include_refs=True) for b in list_expired()]}, 200


@inventory_bp.get("/batches/<int:batch_id>")
@require_permission("INVENTORY:READ")
def get_batch_route(batch_id: int):
    from ..services.batch_service import get_batch

    return {"batch": get_batch(batch_id).to_dict(include_refs=True)}, 200


@inventory_bp.post("/batches")
@require_permission("INVENTORY:CREATE")
def create_batch_route():
    patch = validate_payload(payload=_json_body(), policy=BATCH_CREATE_POLICY)

    from ..services.batch_service import create_batch

    batch = create_batch(
        patch["inventory_id"],
        batch_number=patch["batch_number"],
        quantity=patch["quantity"],
        expiry_date=_expiry_date(patch),
    )
    return {"batch": batch.to_dict()}, 201


@inventory_bp.put("/batches/<int:batch_id>")
@require_permission("INVENTORY:UPDATE")
def update_batch_route(batch_id: int):
    patch = validate_payload(payload=_json_body(), policy=BATCH_UPDATE_POLICY)

    from ..services.batch_service import update_batch

    batch = update_batch(
        batch_id,
        batch_number=patch.get("batch_number"),
        quantity=patch.get("quantity"),
        expiry_date=_expiry_date(patch),
    )
    return {"batch": batch.to_dict()}, 200


@inventory_bp.delete("/batches/<int:batch_id>")
@require_permission("INVENTORY:DELETE")
def delete_batch_route(batch_id: int):
    from ..services.batch_service import delete_batch

    delete_batch(batch_id)
    return {"message": "Batch deleted"}, 200
