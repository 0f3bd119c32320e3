# Overview: Flask API routes for categories and products; parses input and returns JSON responses.

# backend/stockledger/routes/catalog.py
"""
Catalog routes.

Products are keyed by barcode. Every product payload carries its derived
"stock" (sum of live batches); there is no stored stock column to edit, so
stock changes go through PUT /api/products/<barcode>/stock.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import catalog_service, inventory_service
from .responses import ledger_error_response

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/categories")
def list_categories_route():
    return jsonify([c.to_dict() for c in catalog_service.list_categories()]), 200


@catalog_bp.post("/categories")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(
            name=payload.get("name"),
            emoji=payload.get("emoji"),
        )
        return jsonify(category.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/products")
def list_products_route():
    rows = catalog_service.list_products()
    return jsonify([product.to_dict(stock=stock) for product, stock in rows]), 200


@catalog_bp.post("/products")
def create_product_route():
    """
    Create a product with optional initial stock.

    Body: {"barcode", "name", "category_id", "price_cents", "emoji"?, "stock"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(
            barcode=payload.get("barcode"),
            name=payload.get("name"),
            category_id=payload.get("category_id", payload.get("categoryId")),
            price_cents=payload.get("price_cents"),
            emoji=payload.get("emoji"),
            initial_stock=payload.get("stock", 0),
        )
        stock = inventory_service.get_on_hand(product.barcode)
        return jsonify(product.to_dict(stock=stock)), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/products/<barcode>")
def get_product_route(barcode: str):
    try:
        product = catalog_service.get_product(barcode)
    except LedgerError as e:
        return ledger_error_response(e)
    return jsonify(product.to_dict(stock=inventory_service.get_on_hand(barcode))), 200


@catalog_bp.patch("/products/<barcode>")
def update_product_route(barcode: str):
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(barcode, **payload)
        return jsonify(product.to_dict(stock=inventory_service.get_on_hand(barcode))), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/products/<barcode>")
def delete_product_route(barcode: str):
    try:
        catalog_service.delete_product(barcode)
        return "", 204
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put("/products/<barcode>/stock")
def correct_stock_route(barcode: str):
    """
    Manual stock correction.

    Body: {"amount": n} - positive receives, negative removes (earliest
    expiring batch first), zero changes nothing.
    """
    payload = request.get_json(silent=True) or {}
    if "amount" not in payload:
        return jsonify({"error": "A numeric amount is required."}), 400

    try:
        inventory_service.correct_stock(barcode, payload["amount"], note=payload.get("note"))
        product = catalog_service.get_product(barcode)
        return jsonify(product.to_dict(stock=inventory_service.get_on_hand(barcode))), 200
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update stock for %s", barcode)
        return jsonify({"error": "Internal server error"}), 500
