# Overview: Ledger store; stock batches and the append-only movement log.

from __future__ import annotations

from datetime import date, datetime
from typing import Iterator, Optional

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientBatchQuantity, ValidationError
from ..models import StockBatch, StockMovement
from ..models.inventory import MOVEMENT_RECEIPT, MOVEMENT_SALE, MOVEMENT_CORRECTION
from ..validation import require_positive_quantity, require_cents
from stockledger.time_utils import utcnow
from .concurrency import lock_for_update
"""
Stock Ledger Invariants (authoritative)

Batches:
- A batch is created only by append_receipt() and starts with
  quantity_remaining == quantity_received > 0.
- quantity_remaining is only ever decremented, by deduct_from_batch(), and
  never below zero.
- Batches are never deleted. Zero-quantity batches stay for audit history
  and are skipped by get_batches().

Consumption order (deterministic, the contract the batch consumer relies on):
- expiry_date ascending, batches without expiry last
- then sequence ascending (per-product insertion order)
- then id ascending

Movements:
- Append-only; one movement per batch mutation, in the same DB transaction.
- Nothing here commits. Callers own the transaction (see ledger_transaction()).
"""

CONSUMABLE_KINDS = (MOVEMENT_SALE, MOVEMENT_CORRECTION)


def consumption_order():
    return (
        StockBatch.expiry_date.is_(None),
        StockBatch.expiry_date.asc(),
        StockBatch.sequence.asc(),
        StockBatch.id.asc(),
    )


def get_batches(product_barcode: str, *, lock: bool = False) -> list[StockBatch]:
    """Live batches (quantity_remaining > 0) in consumption order."""
    q = db.session.query(StockBatch).filter(
        StockBatch.product_barcode == product_barcode,
        StockBatch.quantity_remaining > 0,
    ).order_by(*consumption_order())
    if lock:
        q = lock_for_update(q)
    return q.all()


def _next_sequence(product_barcode: str) -> int:
    current = db.session.query(
        func.coalesce(func.max(StockBatch.sequence), 0)
    ).filter(
        StockBatch.product_barcode == product_barcode,
    ).scalar()
    return int(current or 0) + 1


def append_receipt(
    product_barcode: str,
    quantity: int,
    unit_cost_cents: int,
    received_at: Optional[datetime] = None,
    *,
    expiry_date: Optional[date] = None,
    note: str | None = None,
) -> StockBatch:
    """
    Create a new batch plus its RECEIPT movement.

    The caller is expected to hold the product lock so sequence numbers are
    assigned without gaps or duplicates.
    """
    quantity = require_positive_quantity(quantity, product_id=product_barcode)
    unit_cost_cents = require_cents(unit_cost_cents, "unit_cost_cents")
    received_at = received_at or utcnow()

    batch = StockBatch(
        product_barcode=product_barcode,
        quantity_received=quantity,
        quantity_remaining=quantity,
        unit_cost_cents=unit_cost_cents,
        expiry_date=expiry_date,
        received_at=received_at,
        sequence=_next_sequence(product_barcode),
    )
    db.session.add(batch)
    db.session.flush()  # ensures batch.id is assigned without committing

    db.session.add(StockMovement(
        product_barcode=product_barcode,
        batch_id=batch.id,
        kind=MOVEMENT_RECEIPT,
        quantity_delta=quantity,
        note=note,
        occurred_at=received_at,
    ))
    db.session.flush()
    return batch


def deduct_from_batch(
    batch_id: int,
    quantity: int,
    *,
    kind: str = MOVEMENT_SALE,
    sale_id: int | None = None,
    note: str | None = None,
) -> StockBatch:
    """
    Decrement one batch and append the matching consumption movement.

    Raises InsufficientBatchQuantity if quantity exceeds what is left.
    The flush carries the batch version check: a concurrent writer that got
    there first surfaces as StaleDataError.
    """
    if kind not in CONSUMABLE_KINDS:
        raise ValidationError(f"kind must be one of {', '.join(CONSUMABLE_KINDS)}")

    batch = lock_for_update(db.session.query(StockBatch).filter_by(id=batch_id)).first()
    if batch is None:
        raise ValidationError(f"Batch {batch_id} not found")

    quantity = require_positive_quantity(quantity, product_id=batch.product_barcode)
    if quantity > batch.quantity_remaining:
        raise InsufficientBatchQuantity(batch.id, quantity, batch.quantity_remaining)

    batch.quantity_remaining = batch.quantity_remaining - quantity

    db.session.add(StockMovement(
        product_barcode=batch.product_barcode,
        batch_id=batch.id,
        kind=kind,
        quantity_delta=-quantity,
        sale_id=sale_id,
        note=note,
        occurred_at=utcnow(),
    ))
    db.session.flush()
    return batch


def iter_movements(product_barcode: str, *, chunk_size: int = 200) -> Iterator[StockMovement]:
    """
    Movement history for one product, oldest first.

    Lazy: rows are fetched chunk_size at a time as the caller iterates.
    A bad chunk_size fails here, not on first iteration.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    q = db.session.query(StockMovement).filter(
        StockMovement.product_barcode == product_barcode,
    ).order_by(StockMovement.id.asc())
    return _stream(q, chunk_size)


def _stream(query, chunk_size: int) -> Iterator[StockMovement]:
    yield from query.yield_per(chunk_size)


def has_history(product_barcode: str) -> bool:
    return db.session.query(
        db.session.query(StockBatch.id).filter_by(product_barcode=product_barcode).exists()
    ).scalar()
