# Overview: Ledger and checkout error taxonomy shared by services, routes and CLI.

"""
Stock Ledger Error Taxonomy (authoritative)

- Input errors: rejected before any mutation. Safe to retry after fixing input.
- Capacity errors: not enough stock. No partial effect. Retry after restock
  or with a smaller quantity.
- Concurrency errors: transient. Retry the whole request from validation.
- Storage errors are plain SQLAlchemy exceptions. The transaction scope
  rolls them back and re-raises; they are never retried here.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger/checkout errors."""

    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "retryable": self.retryable,
        }


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class InputError(LedgerError):
    """400-level input problem."""


class ValidationError(InputError):
    """Malformed payload (missing field, wrong type)."""


class EmptyCart(InputError):
    def __init__(self):
        super().__init__("Cannot process an empty sale")


class InvalidQuantity(InputError):
    def __init__(self, quantity, product_id: str | None = None):
        super().__init__(
            f"Quantity must be a positive integer (got {quantity!r})",
            details={"product_id": product_id, "quantity": quantity},
        )
        self.quantity = quantity
        self.product_id = product_id


class UnknownProduct(InputError):
    def __init__(self, product_id: str):
        super().__init__(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class SaleNotFound(InputError):
    def __init__(self, sale_id):
        super().__init__(f"Sale {sale_id} not found", details={"sale_id": sale_id})
        self.sale_id = sale_id


# ---------------------------------------------------------------------------
# Capacity errors
# ---------------------------------------------------------------------------

class CapacityError(LedgerError):
    """409-level stock shortfall."""


class InsufficientStock(CapacityError):
    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Not enough stock for {product_id}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InsufficientBatchQuantity(CapacityError):
    def __init__(self, batch_id: int, requested: int, remaining: int):
        super().__init__(
            f"Batch {batch_id} has {remaining} remaining, cannot deduct {requested}",
            details={
                "batch_id": batch_id,
                "requested": requested,
                "remaining": remaining,
            },
        )
        self.batch_id = batch_id
        self.requested = requested
        self.remaining = remaining


# ---------------------------------------------------------------------------
# Concurrency errors
# ---------------------------------------------------------------------------

class ConcurrencyError(LedgerError):
    retryable = True


class StockRaceDetected(ConcurrencyError):
    def __init__(self, product_id: str | None = None, reason: str | None = None):
        super().__init__(
            "Stock changed concurrently; retry the checkout",
            details={"product_id": product_id, "reason": reason},
        )
        self.product_id = product_id


# ---------------------------------------------------------------------------
# Catalog conflicts
# ---------------------------------------------------------------------------

class ConflictError(LedgerError):
    """409-level catalog conflict (duplicate barcode, delete with history)."""
