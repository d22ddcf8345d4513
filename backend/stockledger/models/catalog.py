from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Location(db.Model):
    """
    A stock-holding place (physical warehouse or virtual bucket).

    Created by setup/import. Never deleted while inventory references it.
    """
    __tablename__ = "locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    city = db.Column(db.String(120), nullable=True)
    state = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "city": self.city,
            "state": self.state,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Catalog product (reference only).

    The ledger reads product display fields for listings; it never writes them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")
    image_url = db.Column(db.String(512), nullable=True)

    variants = db.relationship("Variant", back_populates="product", lazy=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"


class Variant(db.Model):
    """
    Sellable unit of a product (reference only).

    SKU is the catalog's own code; shipstation_sku is the code used by the
    external warehouse feed when importing quantities.
    """
    __tablename__ = "variants"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_variants_sku"),
        db.Index("ix_variants_product_name", "product_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Authoritative storage in cents
    regular_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=True)

    shipstation_sku = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="variants")
    inventory_records = db.relationship(
        "InventoryRecord",
        back_populates="variant",
        lazy=True,
        order_by="InventoryRecord.id",
    )

    def __repr__(self) -> str:
        return f"<Variant id={self.id} sku={self.sku!r} name={self.name!r}>"

    def pricing_dict(self) -> dict:
        """Pricing passthrough: the effective price is the sale price when one is set."""
        sale = self.sale_price_cents if self.sale_price_cents and self.sale_price_cents > 0 else None
        return {
            "price_cents": sale if sale is not None else self.regular_price_cents,
            "regular_price_cents": self.regular_price_cents,
            "sale_price_cents": sale,
        }

    def display_dict(self) -> dict:
        return {
            "variant_id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else "",
            "product_status": self.product.status if self.product else "ACTIVE",
            "product_image": self.product.image_url if self.product else None,
            "variant_name": self.name,
            "sku": self.sku,
        }


class Order(db.Model):
    """
    Customer order (reference only).

    Orders in an OPEN_ORDER_STATUSES state hold reserved stock for their items.
    """
    __tablename__ = "orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_name = db.Column(db.String(255), nullable=False, default="")
    customer_email = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(32), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship("OrderItem", back_populates="order", lazy=True)


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="items")
