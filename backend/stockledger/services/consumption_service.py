# Overview: Batch consumer; deducts stock across batches in consumption order.

from __future__ import annotations

from typing import Sequence

from ..errors import InsufficientStock, InvalidQuantity, ValidationError
from ..models import StockBatch
from ..models.inventory import MOVEMENT_SALE, MOVEMENT_CORRECTION
from ..validation import coerce_int, require_positive_quantity
from .ledger_service import get_batches, deduct_from_batch


def plan_consumption(batches: Sequence[StockBatch], quantity: int) -> list[tuple[StockBatch, int]]:
    """
    Walk batches in the given order taking min(remaining, still_needed) from each.

    Pure: touches nothing. Returns fewer units than requested only when the
    batches run out, which consume() rules out beforehand.
    """
    plan = []
    still_needed = quantity
    for batch in batches:
        if still_needed <= 0:
            break
        take = min(batch.quantity_remaining, still_needed)
        if take <= 0:
            continue
        plan.append((batch, take))
        still_needed -= take
    return plan


def consume(
    product_barcode: str,
    quantity: int,
    *,
    kind: str = MOVEMENT_SALE,
    sale_id: int | None = None,
    note: str | None = None,
) -> list[tuple[int, int]]:
    """
    Remove quantity units of a product, earliest-expiring batch first.

    Returns [(batch_id, quantity_taken), ...] in the order batches were hit.

    Total availability is checked before the first deduction, so a request
    that cannot be satisfied fails with InsufficientStock and no batch is
    touched. Must run inside the caller's ledger_transaction().
    """
    quantity = require_positive_quantity(quantity, product_id=product_barcode)

    batches = get_batches(product_barcode, lock=True)
    available = sum(b.quantity_remaining for b in batches)
    if available < quantity:
        raise InsufficientStock(product_barcode, quantity, available)

    taken = []
    for batch, qty in plan_consumption(batches, quantity):
        deduct_from_batch(batch.id, qty, kind=kind, sale_id=sale_id, note=note)
        taken.append((batch.id, qty))
    return taken


def correct(product_barcode: str, negative_amount: int, *, note: str | None = None) -> list[tuple[int, int]]:
    """
    Manual downward stock correction.

    Same ordering and failure semantics as consume(); movements are tagged
    CORRECTION instead of SALE.
    """
    try:
        amount = coerce_int(negative_amount, "amount")
    except ValidationError:
        raise InvalidQuantity(negative_amount, product_id=product_barcode)
    if amount >= 0:
        raise InvalidQuantity(negative_amount, product_id=product_barcode)

    return consume(product_barcode, -amount, kind=MOVEMENT_CORRECTION, note=note)
