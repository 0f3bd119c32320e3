from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, format_cents


class Sale(db.Model):
    """
    Committed checkout. Immutable once written.

    total_cents == SUM(sale_lines.line_total_cents), computed once by the
    checkout engine from the prices it snapshotted. Never recomputed.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_nonneg"),
        db.Index("ix_sales_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    total_cents = db.Column(db.Integer, nullable=False)

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        order_by="SaleLine.line_number",
    )

    def to_dict(self, *, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "date": to_utc_z(self.created_at),
            "total_cents": self.total_cents,
            "total": format_cents(self.total_cents),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """Individual line items on a sale, with the price at time of sale."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "line_number", name="uq_sale_lines_sale_line"),
        db.CheckConstraint("quantity > 0", name="ck_sale_lines_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)
    product_barcode = db.Column(db.String(64), db.ForeignKey("products.barcode"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "line_number": self.line_number,
            "product_id": self.product_barcode,
            "name": product.name if product else None,
            "emoji": product.emoji if product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "price_at_sale": format_cents(self.unit_price_cents),
            "line_total_cents": self.line_total_cents,
        }
