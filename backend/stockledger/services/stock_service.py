# Overview: Stock aggregator; on-hand quantity derived from live batches.

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import StockBatch
"""
On-hand is never stored. It is SUM(quantity_remaining) over a product's
batches, recomputed on every read, so there is nothing to drift.
"""


def get_on_hand(product_barcode: str) -> int:
    """Current on-hand for one product. Unknown or batch-less products -> 0."""
    q = db.session.query(
        func.coalesce(func.sum(StockBatch.quantity_remaining), 0)
    ).filter(
        StockBatch.product_barcode == product_barcode,
        StockBatch.quantity_remaining > 0,
    )
    return int(q.scalar() or 0)


def get_on_hand_many(product_barcodes: Iterable[str]) -> dict[str, int]:
    """
    On-hand for several products from a single aggregate query.

    One statement means one read view: every product is measured at the same
    point, which the checkout engine relies on. Every requested barcode is
    present in the result (0 when it has no live batches).
    """
    keys = list(dict.fromkeys(product_barcodes))
    if not keys:
        return {}

    rows = db.session.query(
        StockBatch.product_barcode,
        func.sum(StockBatch.quantity_remaining),
    ).filter(
        StockBatch.product_barcode.in_(keys),
        StockBatch.quantity_remaining > 0,
    ).group_by(
        StockBatch.product_barcode,
    ).all()

    totals = {key: 0 for key in keys}
    for barcode, qty in rows:
        totals[barcode] = int(qty or 0)
    return totals
