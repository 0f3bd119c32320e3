# Overview: Service-layer operations for inventory; the receive / correct / read contract.

# backend/stockledger/services/inventory_service.py

from __future__ import annotations

import logging
from datetime import date
from typing import Iterator

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidQuantity, UnknownProduct, ValidationError
from ..models import Product, StockBatch, StockMovement
from ..validation import MAX_QUANTITY, coerce_int, require_positive_quantity, require_cents
from stockledger.time_utils import utcnow
from . import stock_service
from .concurrency import ledger_transaction, lock_for_update, run_with_retry
from .consumption_service import correct
from .ledger_service import append_receipt, get_batches, iter_movements
"""
Stock Ledger Inventory Operations (authoritative)

- receive_stock: new batch + RECEIPT movement.
- correct_stock: delta > 0 is a receipt priced at the product's current
  selling price (the POS has no buying-price field); delta < 0 consumes with
  CORRECTION movements; delta == 0 changes nothing.
- Reads never lock and never write.

Every write runs in its own ledger_transaction() with the product row
locked, so writes to one product are linearized.
"""

logger = logging.getLogger(__name__)


def _ensure_product(product_barcode: str, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(barcode=product_barcode)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise UnknownProduct(product_barcode)
    return product


def receive_stock(
    product_barcode: str,
    quantity: int,
    unit_cost_cents: int,
    *,
    expiry_date: date | None = None,
    note: str | None = None,
) -> StockBatch:
    """Receive a new batch of stock. Raises InvalidQuantity or UnknownProduct."""
    quantity = require_positive_quantity(quantity, product_id=product_barcode)
    unit_cost_cents = require_cents(unit_cost_cents, "unit_cost_cents")

    def _op():
        with ledger_transaction():
            _ensure_product(product_barcode, lock=True)
            batch = append_receipt(
                product_barcode,
                quantity,
                unit_cost_cents,
                utcnow(),
                expiry_date=expiry_date,
                note=note,
            )
        logger.info("received %d of %s into batch %s", quantity, product_barcode, batch.id)
        return batch

    return run_with_retry(_op)


def correct_stock(product_barcode: str, delta: int, *, note: str | None = None) -> int:
    """
    Apply a manual stock correction and return the new on-hand quantity.

    Raises UnknownProduct, InvalidQuantity (non-integer or out-of-range delta) or
    InsufficientStock (downward correction larger than on-hand).
    """
    try:
        amount = coerce_int(delta, "amount")
    except ValidationError:
        raise InvalidQuantity(delta, product_id=product_barcode)
    if abs(amount) > MAX_QUANTITY:
        raise InvalidQuantity(delta, product_id=product_barcode)
    delta = amount

    def _op():
        with ledger_transaction():
            product = _ensure_product(product_barcode, lock=True)
            if delta > 0:
                append_receipt(
                    product_barcode,
                    delta,
                    product.price_cents,
                    utcnow(),
                    note=note or f"Stock correction +{delta}",
                )
            elif delta < 0:
                correct(product_barcode, delta, note=note or f"Stock correction {delta}")
            on_hand = stock_service.get_on_hand(product_barcode)
        if delta:
            logger.info("corrected %s by %d, on-hand now %d", product_barcode, delta, on_hand)
        return on_hand

    return run_with_retry(_op)


def get_on_hand(product_barcode: str) -> int:
    return stock_service.get_on_hand(product_barcode)


def list_movements(product_barcode: str) -> Iterator[StockMovement]:
    """Movement history oldest first; lazy and finite."""
    return iter_movements(product_barcode)


def list_batches(product_barcode: str) -> list[StockBatch]:
    _ensure_product(product_barcode)
    return get_batches(product_barcode)


def get_inventory_summary(product_barcode: str) -> dict:
    """
    On-hand plus the cost picture of what is left on the shelf.

    weighted_average_cost_cents is over live batches only:
        sum(remaining * unit_cost) / sum(remaining)  (nearest-cent rounding, half-up)
    """
    _ensure_product(product_barcode)

    row = db.session.query(
        func.coalesce(func.sum(StockBatch.quantity_remaining), 0).label("units"),
        func.coalesce(
            func.sum(StockBatch.quantity_remaining * StockBatch.unit_cost_cents),
            0,
        ).label("cost"),
        func.count(StockBatch.id).label("batches"),
        func.min(StockBatch.expiry_date).label("next_expiry"),
    ).filter(
        StockBatch.product_barcode == product_barcode,
        StockBatch.quantity_remaining > 0,
    ).one()

    units = int(row.units or 0)
    cost = int(row.cost or 0)
    wac = (cost + (units // 2)) // units if units > 0 else None
    next_expiry = row.next_expiry
    if isinstance(next_expiry, str):
        next_expiry = date.fromisoformat(next_expiry)

    return {
        "product_id": product_barcode,
        "quantity_on_hand": units,
        "live_batches": int(row.batches or 0),
        "weighted_average_cost_cents": wac,
        "inventory_value_cents": cost,
        "next_expiry_date": next_expiry.isoformat() if next_expiry else None,
    }
