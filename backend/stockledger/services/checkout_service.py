"""
Checkout engine - turns a cart into a committed Sale, atomically.

Request states:
    VALIDATING -> PRICING -> CONSUMING -> COMMITTING -> COMMITTED | ROLLED_BACK

- VALIDATING: cart shape, positive integer quantities, every product exists.
- PRICING: one locked snapshot of on-hand and current price for every product.
  Any shortfall fails the whole request before anything is written.
- CONSUMING: batch consumer per line. A shortfall here can only mean the
  snapshot was beaten by a concurrent writer -> StockRaceDetected.
- COMMITTING: sale lines written from the PRICING snapshot; the price is never
  re-read.

Everything between PRICING and COMMITTED runs in one ledger_transaction();
any exception rolls the whole request back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..extensions import db
from ..errors import InsufficientStock, LedgerError, StockRaceDetected, UnknownProduct
from ..models import Product, Sale, SaleLine
from ..models.inventory import MOVEMENT_SALE
from ..validation import CartLine, parse_cart
from stockledger.time_utils import utcnow
from .concurrency import ledger_transaction, lock_for_update, run_with_retry
from .consumption_service import consume
from .stock_service import get_on_hand_many

logger = logging.getLogger(__name__)

VALIDATING = "VALIDATING"
PRICING = "PRICING"
CONSUMING = "CONSUMING"
COMMITTING = "COMMITTING"
COMMITTED = "COMMITTED"
ROLLED_BACK = "ROLLED_BACK"


@dataclass
class CheckoutResult:
    sale: Sale
    updated_on_hand: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "updated_on_hand": dict(self.updated_on_hand),
        }


def _requested_totals(lines: list[CartLine]) -> dict[str, int]:
    # Duplicate lines for one product must be checked against stock together
    totals: dict[str, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def _load_products(barcodes: Iterable[str]) -> dict[str, Product]:
    """Lock product rows in key order so concurrent carts cannot deadlock."""
    keys = sorted(set(barcodes))
    q = db.session.query(Product).filter(Product.barcode.in_(keys)).order_by(Product.barcode)
    return {p.barcode: p for p in lock_for_update(q).all()}


def _checkout_locked(lines: list[CartLine], progress: dict) -> CheckoutResult:
    """Runs inside the caller's transaction; progress["state"] tracks how far it got."""
    progress["state"] = VALIDATING
    products = _load_products(line.product_id for line in lines)
    for line in lines:
        if line.product_id not in products:
            raise UnknownProduct(line.product_id)

    progress["state"] = PRICING
    requested = _requested_totals(lines)
    on_hand = get_on_hand_many(requested.keys())
    for barcode, qty in requested.items():
        if on_hand[barcode] < qty:
            raise InsufficientStock(barcode, qty, on_hand[barcode])

    prices = {barcode: products[barcode].price_cents for barcode in requested}
    total_cents = sum(line.quantity * prices[line.product_id] for line in lines)

    progress["state"] = CONSUMING
    sale = Sale(created_at=utcnow(), total_cents=total_cents)
    db.session.add(sale)
    db.session.flush()  # sale.id is referenced by the SALE movements

    for line in lines:
        try:
            consume(
                line.product_id,
                line.quantity,
                kind=MOVEMENT_SALE,
                sale_id=sale.id,
                note=f"Sale {sale.id}",
            )
        except InsufficientStock as exc:
            raise StockRaceDetected(line.product_id, reason=exc.message) from exc

    progress["state"] = COMMITTING
    for number, line in enumerate(lines, start=1):
        unit_price = prices[line.product_id]
        db.session.add(SaleLine(
            sale_id=sale.id,
            line_number=number,
            product_barcode=line.product_id,
            quantity=line.quantity,
            unit_price_cents=unit_price,
            line_total_cents=unit_price * line.quantity,
        ))
    db.session.flush()

    updated = get_on_hand_many(requested.keys())
    return CheckoutResult(sale=sale, updated_on_hand=updated)


def checkout(cart_lines) -> CheckoutResult:
    """
    Convert a cart into a committed Sale.

    cart_lines: iterable of {"product_id": barcode, "quantity": n} mappings
    (CartLine instances and (barcode, n) pairs are accepted too).

    Raises EmptyCart, InvalidQuantity, UnknownProduct, InsufficientStock or
    StockRaceDetected. On any failure nothing is written. Storage errors
    propagate unchanged after the rollback.
    """
    lines = parse_cart(cart_lines)

    def _op():
        progress = {"state": VALIDATING}
        try:
            with ledger_transaction():
                result = _checkout_locked(lines, progress)
        except Exception as exc:
            # An outermost ledger_transaction() has already rolled back here
            code = exc.code if isinstance(exc, LedgerError) else type(exc).__name__
            logger.info("checkout %s in %s: %s", ROLLED_BACK, progress["state"], code)
            raise
        logger.info(
            "checkout %s sale=%s total_cents=%s lines=%d",
            COMMITTED, result.sale.id, result.sale.total_cents, len(lines),
        )
        return result

    return run_with_retry(_op)
