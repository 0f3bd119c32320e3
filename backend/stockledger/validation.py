from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from stockledger.errors import EmptyCart, InvalidQuantity, ValidationError
from stockledger.time_utils import parse_iso_date


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Upper bound for any stock or cart quantity; keeps batch rows inside a 64-bit INTEGER
MAX_QUANTITY = 999_999_999

MAX_BARCODE_LENGTH = 64


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for client input.

    Rejects bools, floats, decimals and scientific notation; accepts ints and
    plain digit strings (with optional leading minus).
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_positive_quantity(value: Any, *, product_id: str | None = None) -> int:
    """Quantity for receipts, consumption and cart lines: 0 < integer <= MAX_QUANTITY."""
    try:
        qty = coerce_int(value, "quantity")
    except ValidationError:
        raise InvalidQuantity(value, product_id=product_id)
    if qty <= 0 or qty > MAX_QUANTITY:
        raise InvalidQuantity(value, product_id=product_id)
    return qty


def require_cents(value: Any, field: str) -> int:
    cents = coerce_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} cannot be negative")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} exceeds maximum allowed ({MAX_PRICE_CENTS} cents)")
    return cents


def require_text(payload: Mapping, field: str, *, max_length: int = 255, required: bool = True) -> str | None:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def require_barcode(value: Any) -> str:
    if value is None:
        raise ValidationError("product_id is required")
    barcode = str(value).strip()
    if not barcode:
        raise ValidationError("product_id is required")
    if len(barcode) > MAX_BARCODE_LENGTH:
        raise ValidationError(f"product_id must be at most {MAX_BARCODE_LENGTH} characters")
    return barcode


def optional_date(value: Any, field: str):
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")


def _line_fields(raw) -> tuple[Any, Any]:
    if isinstance(raw, CartLine):
        return raw.product_id, raw.quantity
    if isinstance(raw, Mapping):
        # Accept the POS client's camelCase keys as well
        product_id = raw.get("product_id", raw.get("productId", raw.get("barcode")))
        return product_id, raw.get("quantity")
    if isinstance(raw, (tuple, list)) and len(raw) == 2:
        return raw[0], raw[1]
    raise ValidationError("each cart line must have product_id and quantity")


def parse_cart(raw_lines: Iterable | None) -> list[CartLine]:
    """
    Validates + normalizes a cart into CartLine tuples, in cart order.

    - None / [] -> EmptyCart
    - quantity not a positive integer -> InvalidQuantity
    - product_id missing -> ValidationError
    """
    if raw_lines is None:
        raise EmptyCart()
    if isinstance(raw_lines, (str, bytes, Mapping)):
        raise ValidationError("items must be a list of cart lines")

    lines = []
    for raw in raw_lines:
        product_id, quantity = _line_fields(raw)
        barcode = require_barcode(product_id)
        lines.append(CartLine(barcode, require_positive_quantity(quantity, product_id=barcode)))

    if not lines:
        raise EmptyCart()
    return lines
