# Overview: Catalog operations for categories and products; thin CRUD around the ledger.

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, UnknownProduct, ValidationError
from ..models import Category, Product, SaleLine
from ..validation import coerce_int, require_barcode, require_cents, require_text
from stockledger.time_utils import utcnow
from .concurrency import ledger_transaction, run_with_retry
from .ledger_service import append_receipt, has_history
from .stock_service import get_on_hand_many


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name).all()


def create_category(*, name: str, emoji: str) -> Category:
    payload = {"name": name, "emoji": emoji}
    name = require_text(payload, "name", max_length=120)
    emoji = require_text(payload, "emoji", max_length=16)

    if db.session.query(Category).filter_by(name=name).first():
        raise ConflictError(f"Category {name!r} already exists", details={"name": name})

    category = Category(name=name, emoji=emoji)
    db.session.add(category)
    db.session.commit()
    return category


def get_product(product_barcode: str) -> Product:
    product = db.session.query(Product).filter_by(barcode=product_barcode).first()
    if product is None:
        raise UnknownProduct(product_barcode)
    return product


def list_products() -> list[tuple[Product, int]]:
    """All products by name, each paired with its derived on-hand quantity."""
    products = db.session.query(Product).order_by(Product.name, Product.barcode).all()
    stock = get_on_hand_many(p.barcode for p in products)
    return [(p, stock.get(p.barcode, 0)) for p in products]


def create_product(
    *,
    barcode: str,
    name: str,
    category_id: int,
    price_cents: int,
    emoji: str | None = None,
    initial_stock: int = 0,
) -> Product:
    """
    Create a product and, when initial_stock > 0, its first batch.

    The first batch is costed at the selling price: the POS form has no
    buying-price field. Product and batch are written in one transaction.
    """
    payload = {"name": name, "emoji": emoji}
    barcode = require_barcode(barcode)
    name = require_text(payload, "name")
    emoji = require_text(payload, "emoji", max_length=16, required=False)
    price_cents = require_cents(price_cents, "price_cents")
    category_id = coerce_int(category_id, "category_id")
    initial_stock = coerce_int(initial_stock or 0, "stock")
    if initial_stock < 0:
        raise ValidationError("stock cannot be negative")

    def _op():
        with ledger_transaction():
            if db.session.get(Category, category_id) is None:
                raise ValidationError(f"Category {category_id} not found")
            if db.session.query(Product).filter_by(barcode=barcode).first():
                raise ConflictError(f"Product {barcode} already exists", details={"product_id": barcode})

            product = Product(
                barcode=barcode,
                category_id=category_id,
                name=name,
                emoji=emoji,
                price_cents=price_cents,
            )
            db.session.add(product)
            db.session.flush()

            if initial_stock > 0:
                append_receipt(barcode, initial_stock, price_cents, utcnow(), note="Initial stock")
        return product

    return run_with_retry(_op)


def update_product(product_barcode: str, **changes) -> Product:
    """
    Edit catalog fields. price_cents changes the current selling price only;
    committed sales keep their snapshotted prices.
    """
    allowed = {"name", "emoji", "price_cents", "category_id"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    product = get_product(product_barcode)

    values = {}
    if "name" in changes:
        values["name"] = require_text(changes, "name")
    if "emoji" in changes:
        values["emoji"] = require_text(changes, "emoji", max_length=16, required=False)
    if "price_cents" in changes:
        values["price_cents"] = require_cents(changes["price_cents"], "price_cents")
    if "category_id" in changes:
        values["category_id"] = coerce_int(changes["category_id"], "category_id")
        if db.session.get(Category, values["category_id"]) is None:
            raise ValidationError(f"Category {values['category_id']} not found")

    for key, value in values.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def delete_product(product_barcode: str) -> None:
    """
    Delete a product that never held stock and never sold.

    Batches and sale lines are audit history and are never deleted, so a
    product with either is refused with ConflictError.
    """
    def _op():
        with ledger_transaction():
            product = get_product(product_barcode)
            sold = db.session.query(
                db.session.query(SaleLine.id).filter_by(product_barcode=product_barcode).exists()
            ).scalar()
            if sold or has_history(product_barcode):
                raise ConflictError(
                    f"Product {product_barcode} has stock or sales history and cannot be deleted",
                    details={"product_id": product_barcode},
                )
            db.session.delete(product)

    run_with_retry(_op)

