from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class InventoryRecord(db.Model):
    """
    Stock held for one variant at one location.

    UNIQUENESS: exactly one record per (variant_id, location_id).

    LEDGER BALANCE:
    Records are always created with quantity 0 and every quantity change is
    written together with an InventoryMovement in the same transaction, so
    quantity == SUM(movements.quantity) for the record at all times.

    CONCURRENCY:
    version_id is the optimistic lock. A read-modify-write that loses a race
    raises StaleDataError at flush; the service layer retries the whole
    transaction (see services/concurrency.py).
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "location_id", name="uq_inventory_variant_location"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        db.Index("ix_inventory_location_updated", "location_id", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_qty = db.Column(db.Integer, nullable=False, default=0)
    low_stock_alert = db.Column(db.Integer, nullable=False, default=10)

    barcode = db.Column(db.String(64), nullable=True)
    sell_when_out_of_stock = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variant = db.relationship("Variant", back_populates="inventory_records")
    location = db.relationship("Location")
    movements = db.relationship(
        "InventoryMovement",
        back_populates="inventory",
        lazy=True,
        order_by="InventoryMovement.id",
    )
    batches = db.relationship(
        "InventoryBatch",
        back_populates="inventory",
        lazy=True,
        order_by="InventoryBatch.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord id={self.id} variant_id={self.variant_id} "
            f"location_id={self.location_id} quantity={self.quantity}>"
        )

    @property
    def available(self) -> int:
        return max(0, (self.quantity or 0) - (self.reserved_qty or 0))

    def to_dict(self, *, include_refs: bool = False, include_batches: bool = False) -> dict:
        data = {
            "id": self.id,
            "variant_id": self.variant_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "reserved_qty": self.reserved_qty,
            "available": self.available,
            "low_stock_alert": self.low_stock_alert,
            "barcode": self.barcode or "",
            "sell_when_out_of_stock": bool(self.sell_when_out_of_stock),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_refs:
            data["variant"] = self.variant.display_dict() if self.variant else None
            data["location"] = self.location.to_dict() if self.location else None
        if include_batches:
            data["batches"] = [b.to_dict() for b in self.batches]
        return data


class InventoryMovement(db.Model):
    """
    Append-only ledger line for one InventoryRecord.

    - quantity is the signed delta (positive = inbound, negative = outbound)
    - type is the ledger tag (INBOUND / OUTBOUND / ADJUSTMENT for writes made here)
    - business_type keeps the caller's business reason tag (PURCHASE, SALE, ...)
    - rows are never updated or deleted
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_invmove_inventory_created", "inventory_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_records.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)
    business_type = db.Column(db.String(32), nullable=True)
    reason = db.Column(db.String(255), nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    inventory = db.relationship("InventoryRecord", back_populates="movements")

    def __repr__(self) -> str:
        return f"<InventoryMovement id={self.id} inventory_id={self.inventory_id} quantity={self.quantity} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "quantity": self.quantity,
            "type": self.type,
            "business_type": self.business_type,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryBatch(db.Model):
    """
    Lot/batch breakdown of one InventoryRecord, with an optional expiry date.

    Batches are bookkeeping alongside the ledger: they never move the record's
    quantity and write no InventoryMovement. Their quantities are not required
    to sum to the record's on-hand.
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_batch_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_records.id"), nullable=False, index=True)

    batch_number = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    inventory = db.relationship("InventoryRecord", back_populates="batches")

    def __repr__(self) -> str:
        return f"<InventoryBatch id={self.id} inventory_id={self.inventory_id} batch_number={self.batch_number!r}>"

    def to_dict(self, *, include_refs: bool = False) -> dict:
        data = {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "expiry_date": to_utc_z(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_refs and self.inventory is not None:
            record = self.inventory
            data["variant"] = record.variant.display_dict() if record.variant else None
            data["location"] = record.location.to_dict() if record.location else None
        return data
