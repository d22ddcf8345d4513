# Overview: Import on-hand quantities from the ShipStation warehouse feed into the ledger.

# backend/stockledger/services/feed_import_service.py
"""
ShipStation feed import.

- Feed items are matched to variants by Variant.shipstation_sku.
- Quantities land on the default location: the first active location, or a
  newly created "Main Warehouse" when none exists.
- Each item is written in its own transaction through the ledger write path
  (set_quantity), so the import keeps the ledger balanced like any other
  absolute adjustment. One bad item never blocks the rest of the feed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

import httpx
from flask import current_app

from ..extensions import db, sync_notifier
from ..models import Location, Variant
from ..validation import InventoryError, NotFoundError, ValidationError
from .concurrency import run_in_transaction
from .inventory_service import find_or_create_record, set_quantity
from .sync_notifier import TRIGGER_FEED_IMPORT

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_NAME = "Main Warehouse"
FEED_REASON = "ShipStation inventory sync"
PAGE_SIZE = 100


class ShipStationClient:
    """Thin httpx wrapper around the ShipStation v2 inventory endpoint."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 30.0, transport=None):
        self._client = httpx.Client(
            base_url=base_url,
            headers={"API-Key": api_key, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config) -> "ShipStationClient":
        return cls(
            base_url=config["SHIPSTATION_BASE_URL"],
            api_key=config["SHIPSTATION_API_KEY"],
            timeout=config.get("SHIPSTATION_TIMEOUT", 30.0),
        )

    def fetch_page(self, page: int) -> dict:
        response = self._client.get("/v2/inventory", params={"page_size": PAGE_SIZE, "page": page})
        response.raise_for_status()
        return response.json()

    def fetch_sku(self, sku: str) -> dict:
        response = self._client.get("/v2/inventory", params={"sku": sku})
        response.raise_for_status()
        return response.json()

    def iter_inventory(self) -> Iterator[dict]:
        """
        Yield every feed item across pages.

        A page that fails to load ends the walk; items already yielded stand.
        """
        page = 1
        while True:
            try:
                data = self.fetch_page(page)
            except httpx.HTTPError as exc:
                logger.error("Error fetching ShipStation inventory page %s: %s", page, exc)
                return
            items = data.get("inventory") or []
            if not items:
                return
            logger.info("ShipStation page %s: %s items fetched", page, len(items))
            yield from items
            if data.get("pages") and page < data["pages"]:
                page += 1
            else:
                return

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ShipStationClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass
class FeedSyncResult:
    synced: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0
    skipped_skus: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "synced": self.synced,
            "skipped": self.skipped,
            "errors": self.errors,
            "total": self.total,
            "skipped_skus": self.skipped_skus,
        }


def extract_quantity(item: dict) -> int:
    """available, then on_hand, then quantity (a number or an {available|onHand} object)."""
    if item.get("available") is not None:
        return int(item["available"])
    if item.get("on_hand") is not None:
        return int(item["on_hand"])
    quantity = item.get("quantity")
    if isinstance(quantity, dict):
        if quantity.get("available") is not None:
            return int(quantity["available"])
        if quantity.get("onHand") is not None:
            return int(quantity["onHand"])
        return 0
    if isinstance(quantity, (int, float)) and not isinstance(quantity, bool):
        return int(quantity)
    return 0


def get_default_location() -> Location:
    """First active location; creates "Main Warehouse" if there is none."""
    def _op():
        location = (
            db.session.query(Location)
            .filter_by(is_active=True)
            .order_by(Location.id.asc())
            .first()
        )
        if location is None:
            location = Location(name=DEFAULT_LOCATION_NAME, is_active=True)
            db.session.add(location)
            db.session.flush()
            logger.info("Created default location %r", DEFAULT_LOCATION_NAME)
        return location

    return run_in_transaction(_op)


def _apply_feed_quantity(variant_id: int, location_id: int, quantity: int) -> None:
    def _op():
        record, _ = find_or_create_record(variant_id, location_id)
        set_quantity(record, max(0, quantity), reason=FEED_REASON)

    run_in_transaction(_op)


def _variants_by_feed_sku() -> dict[str, Variant]:
    variants = db.session.query(Variant).filter(Variant.shipstation_sku.isnot(None)).all()
    return {v.shipstation_sku: v for v in variants}


def sync_feed_inventory(client: Optional[ShipStationClient] = None) -> FeedSyncResult:
    """Pull the whole feed and write each matched SKU's quantity.

    A client built here from app config is closed before returning; a
    caller-supplied client is left open.
    """
    if client is None:
        with ShipStationClient.from_config(current_app.config) as owned:
            return _sync_feed_inventory(owned)
    return _sync_feed_inventory(client)


def _sync_feed_inventory(client: ShipStationClient) -> FeedSyncResult:
    result = FeedSyncResult()

    items = list(client.iter_inventory())
    result.total = len(items)
    if not items:
        logger.warning("No inventory items found in ShipStation")
        return result

    by_sku = _variants_by_feed_sku()
    location = get_default_location()

    for item in items:
        sku = item.get("sku")
        variant = by_sku.get(sku)
        if variant is None:
            logger.warning("No variant found for ShipStation SKU %s", sku)
            result.skipped += 1
            result.skipped_skus.append(sku)
            continue
        try:
            _apply_feed_quantity(variant.id, location.id, extract_quantity(item))
        except (InventoryError, ValueError, TypeError) as exc:
            logger.error("Error processing ShipStation SKU %s: %s", sku, exc)
            result.errors += 1
            continue
        result.synced += 1
        sync_notifier.notify(variant.id, TRIGGER_FEED_IMPORT, {"initiated_by": "shipstation", "sku": sku})

    logger.info(
        "ShipStation sync completed: %s synced, %s skipped, %s errors",
        result.synced, result.skipped, result.errors,
    )
    return result


def sync_feed_sku(sku: str, client: Optional[ShipStationClient] = None) -> dict:
    """Pull one SKU from the feed.

    NotFoundError if the feed or catalog lacks it; ValidationError if the
    feed reports a quantity that is not a number.
    """
    if client is None:
        with ShipStationClient.from_config(current_app.config) as owned:
            return _sync_feed_sku(sku, owned)
    return _sync_feed_sku(sku, client)


def _sync_feed_sku(sku: str, client: ShipStationClient) -> dict:
    data = client.fetch_sku(sku)
    items = data.get("inventory") or []
    if not items:
        raise NotFoundError("SKU not found in ShipStation")
    try:
        quantity = extract_quantity(items[0])
    except (ValueError, TypeError) as exc:
        logger.error("Invalid ShipStation quantity for SKU %s: %s", sku, exc)
        raise ValidationError(f"Invalid quantity in ShipStation feed for SKU {sku}") from exc

    variant = db.session.query(Variant).filter_by(shipstation_sku=sku).first()
    if variant is None:
        raise NotFoundError("Variant not found for this SKU")

    location = get_default_location()
    _apply_feed_quantity(variant.id, location.id, quantity)
    sync_notifier.notify(variant.id, TRIGGER_FEED_IMPORT, {"initiated_by": "shipstation", "sku": sku})

    logger.info("Updated ShipStation SKU %s: %s units", sku, quantity)
    return {"sku": sku, "variant_id": variant.id, "location_id": location.id, "quantity": quantity}
