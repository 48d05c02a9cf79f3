# wms/routes/inventory.py
"""
Inventory ledger routes.

- GET  /api/inventory/log        append-only stock movements, oldest first
- POST /api/inventory/adjust     manual correction, journaled as an adjustment
- GET  /api/inventory/reconcile  products whose stock the ledger does not explain
"""
from flask import Blueprint, jsonify, request

from ..services import ledger_service
from .common import json_body, json_error


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/log")
def inventory_log_route():
    entries = ledger_service.list_inventory_log(
        product_id=request.args.get("product_id", type=int),
        log_type=request.args.get("type") or None,
        reference_id=request.args.get("reference_id", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@inventory_bp.post("/adjust")
def adjust_inventory_route():
    try:
        data = json_body()
        product_id = data.get("product_id")
        if not isinstance(product_id, int):
            return jsonify({"error": "product_id required"}), 400
        delta = data.get("quantity", data.get("delta"))
        entry = ledger_service.adjust_stock(product_id, delta, reason=data.get("reason"))
        return jsonify({"entry": entry.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to adjust inventory")


@inventory_bp.get("/reconcile")
def reconcile_route():
    mismatches = ledger_service.reconcile_stock()
    return jsonify({"consistent": not mismatches, "mismatches": mismatches}), 200
