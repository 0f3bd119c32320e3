from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, format_cents


class Category(db.Model):
    """Product grouping shown on the POS grid."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    emoji = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "emoji": self.emoji,
        }


class Product(db.Model):
    """
    Product master data.

    BARCODE IS THE KEY:
    Products are identified by their scannable barcode. Every other table
    references products by barcode (product_barcode).

    PRICE:
    price_cents is the single "current selling price". Checkout snapshots it
    onto SaleLine.unit_price_cents; later price edits never touch past sales.

    STOCK:
    There is no stock column. On-hand is always SUM(stock_batches.quantity_remaining),
    see services/stock_service.py.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
    )

    barcode = db.Column(db.String(64), primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    emoji = db.Column(db.String(16), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product barcode={self.barcode!r} name={self.name!r}>"

    def to_dict(self, *, stock: int | None = None) -> dict:
        data = {
            "id": self.barcode,
            "barcode": self.barcode,
            "category_id": self.category_id,
            "name": self.name,
            "emoji": self.emoji,
            "price_cents": self.price_cents,
            "price": format_cents(self.price_cents),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if stock is not None:
            data["stock"] = stock
        return data
