# backend/stockledger/routes/inventory.py
"""
Inventory ledger routes.

- POST /<barcode>/receive     new batch
- GET  /<barcode>/summary     on-hand and live-batch cost picture
- GET  /<barcode>/batches     live batches in consumption order
- GET  /<barcode>/movements   movement log, oldest first

Time semantics:
- Datetimes are serialized as ISO-8601 'Z' strings; expiry dates as YYYY-MM-DD.
"""
from itertools import islice

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..validation import optional_date
from ..services import inventory_service
from .responses import ledger_error_response

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/<barcode>/receive")
def receive_stock_route(barcode: str):
    """
    Receive stock into a new batch.

    Body: {"quantity", "unit_cost_cents", "expiry_date"?, "note"?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        batch = inventory_service.receive_stock(
            barcode,
            payload.get("quantity"),
            payload.get("unit_cost_cents"),
            expiry_date=optional_date(payload.get("expiry_date"), "expiry_date"),
            note=payload.get("note"),
        )
        summary = inventory_service.get_inventory_summary(barcode)
        return jsonify({"batch": batch.to_dict(), "summary": summary}), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive stock for %s", barcode)
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<barcode>/summary")
def inventory_summary_route(barcode: str):
    try:
        return jsonify(inventory_service.get_inventory_summary(barcode)), 200
    except LedgerError as e:
        return ledger_error_response(e)


@inventory_bp.get("/<barcode>/batches")
def inventory_batches_route(barcode: str):
    try:
        batches = inventory_service.list_batches(barcode)
    except LedgerError as e:
        return ledger_error_response(e)
    return jsonify([b.to_dict() for b in batches]), 200


@inventory_bp.get("/<barcode>/movements")
def inventory_movements_route(barcode: str):
    """
    Movement log, oldest first.

    Query params:
    - limit: int (optional, default 500, max 5000)
    """
    limit = request.args.get("limit", default=500, type=int)
    limit = max(1, min(limit, 5000))

    movements = islice(inventory_service.list_movements(barcode), limit)
    return jsonify([m.to_dict() for m in movements]), 200
