# Overview: Flask API routes for checkout and sales history; parses input and returns JSON responses.

# backend/stockledger/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import checkout_service, sales_service
from .responses import ledger_error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def checkout_route():
    """
    Checkout a cart.

    Body: {"items": [{"product_id": barcode, "quantity": n}, ...]}
    Returns the committed sale and the on-hand quantity of every product in
    the cart after the sale.
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = checkout_service.checkout(payload.get("items"))
        return jsonify(result.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    """
    Sales history, newest first.

    Query params:
    - limit: int (optional, max 500)
    """
    limit = request.args.get("limit", type=int)
    if limit is not None:
        limit = max(1, min(limit, 500))
    sales = sales_service.list_sales(limit=limit)
    return jsonify([sale.to_dict() for sale in sales]), 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except LedgerError as e:
        return ledger_error_response(e)
    return jsonify(sale.to_dict()), 200
