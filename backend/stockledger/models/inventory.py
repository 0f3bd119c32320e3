from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


MOVEMENT_RECEIPT = "RECEIPT"
MOVEMENT_SALE = "SALE"
MOVEMENT_CORRECTION = "CORRECTION"


class StockBatch(db.Model):
    """
    One receipt of inventory (a lot).

    INVARIANTS:
    - quantity_remaining >= 0 (CHECK constraint + service validation)
    - quantity_remaining never increases after creation
    - rows are never deleted; a batch at zero stays for audit history

    CONSUMPTION ORDER:
    expiry_date ascending (NULL last), then sequence ascending, then id.
    sequence is the per-product insertion counter assigned by append_receipt().

    version_id is SQLAlchemy's optimistic version counter: two sessions
    decrementing the same batch cannot both win.
    """
    __tablename__ = "stock_batches"
    __table_args__ = (
        db.CheckConstraint("quantity_remaining >= 0", name="ck_stock_batches_remaining_nonneg"),
        db.CheckConstraint("quantity_received > 0", name="ck_stock_batches_received_pos"),
        db.CheckConstraint("quantity_remaining <= quantity_received", name="ck_stock_batches_remaining_le_received"),
        db.UniqueConstraint("product_barcode", "sequence", name="uq_stock_batches_product_sequence"),
        db.Index("ix_stock_batches_product_live", "product_barcode", "quantity_remaining"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_barcode = db.Column(db.String(64), db.ForeignKey("products.barcode"), nullable=False, index=True)

    quantity_received = db.Column(db.Integer, nullable=False)
    quantity_remaining = db.Column(db.Integer, nullable=False)

    unit_cost_cents = db.Column(db.Integer, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sequence = db.Column(db.Integer, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("batches", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StockBatch id={self.id} product={self.product_barcode!r} "
            f"remaining={self.quantity_remaining}/{self.quantity_received} seq={self.sequence}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_barcode,
            "quantity_received": self.quantity_received,
            "quantity_remaining": self.quantity_remaining,
            "unit_cost_cents": self.unit_cost_cents,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "received_at": to_utc_z(self.received_at),
            "sequence": self.sequence,
        }


class StockMovement(db.Model):
    """
    Append-only audit record of a stock change against one batch.

    - RECEIPT: positive quantity_delta, creates the batch
    - SALE: negative quantity_delta, sale_id set
    - CORRECTION: negative quantity_delta from a manual stock correction
      (positive corrections are recorded as RECEIPT on a new batch)

    id is monotonic; for a single product, id order is commit order because
    every writer holds the product lock while inserting.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity_delta <> 0", name="ck_stock_movements_nonzero"),
        db.Index("ix_stock_movements_product_id", "product_barcode", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_barcode = db.Column(db.String(64), db.ForeignKey("products.barcode"), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey("stock_batches.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    batch = db.relationship("StockBatch", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_barcode,
            "batch_id": self.batch_id,
            "kind": self.kind,
            "quantity_delta": self.quantity_delta,
            "sale_id": self.sale_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
