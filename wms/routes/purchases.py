# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..services import purchase_service
from ..services.purchase_service import PurchaseOrderError
from .common import json_body, json_error


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchase-orders")


@purchases_bp.post("")
def create_purchase_order_route():
    """
    Create a purchase order in status 'ordered'.

    Body: header fields (distributor_id, shipping_ref, expected_arrival_date)
    plus "items": [{"product_id", "quantity"}]. Stock is unchanged until receipt.
    """
    try:
        data = json_body()
        lines = data.get("items", data.get("lines"))
        if not isinstance(lines, list):
            raise PurchaseOrderError("items must be a list of purchase order lines")
        header = {k: v for k, v in data.items() if k not in ("items", "lines")}
        po_id = purchase_service.create_purchase_order(header, lines)
        return jsonify({"purchase_order": purchase_service.get_purchase_order_with_items(po_id)}), 201
    except Exception as exc:
        return json_error(exc, "Failed to create purchase order")


@purchases_bp.get("")
def list_purchase_orders_route():
    pos = purchase_service.list_purchase_orders(request.args.get("status") or None)
    return jsonify({"items": pos, "count": len(pos)}), 200


@purchases_bp.get("/incoming")
def list_incoming_route():
    pos = purchase_service.list_incoming_purchase_orders()
    return jsonify({"items": pos, "count": len(pos)}), 200


@purchases_bp.get("/<int:po_id>")
def get_purchase_order_route(po_id: int):
    try:
        return jsonify({"purchase_order": purchase_service.get_purchase_order_with_items(po_id)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to load purchase order")


@purchases_bp.get("/<int:po_id>/items")
def get_purchase_order_items_route(po_id: int):
    try:
        purchase_service.get_purchase_order(po_id)
        items = purchase_service.get_purchase_order_items(po_id)
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to load purchase order items")


@purchases_bp.put("/<int:po_id>")
def update_purchase_order_route(po_id: int):
    try:
        data = json_body()
        purchase_service.update_purchase_order(
            po_id,
            status=data.get("status"),
            expected_arrival_date=data.get("expected_arrival_date"),
            shipping_ref=data.get("shipping_ref"),
        )
        return jsonify({"purchase_order": purchase_service.get_purchase_order_with_items(po_id)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to update purchase order")


@purchases_bp.post("/<int:po_id>/receive")
def receive_purchase_order_route(po_id: int):
    """Credit stock for every line. A second receive answers 409."""
    try:
        purchase_service.receive_purchase_order(po_id)
        return jsonify({"purchase_order": purchase_service.get_purchase_order_with_items(po_id)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to receive purchase order")
