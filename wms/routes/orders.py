# Overview: Flask API routes for sales orders; parses input and returns JSON responses.

"""
Sales order routes.

POST /api/orders takes the header fields plus an "items" list:

    {"order_number": "INV-1", "contact_id": 3, "discount": 10,
     "deposit": 50, "payment_method": "cash",
     "items": [{"product_id": 1, "quantity": 2, "price_at_sale": 30}]}

With ?currency=display every amount in the body is read in the display
currency and stored canonically.
"""

from flask import Blueprint, jsonify, request

from ..services import orders_service
from ..services.orders_service import OrderError
from .common import (
    ORDER_ITEM_MONEY,
    convert_order,
    json_body,
    json_error,
    request_currency,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

_HEADER_MONEY = ("total_amount", "discount", "deposit")
_LINE_MONEY = ("price_at_sale", "price")


@orders_bp.post("")
def create_order_route():
    try:
        currency = request_currency()
        data = json_body()
        lines = data.get("items", data.get("lines"))
        if not isinstance(lines, list):
            raise OrderError("items must be a list of order lines")

        header = {k: v for k, v in data.items() if k not in ("items", "lines")}
        header = currency.parse_fields(header, _HEADER_MONEY)
        lines = [currency.parse_fields(line, _LINE_MONEY) if isinstance(line, dict) else line for line in lines]

        order_id = orders_service.fulfill_order(header, lines)
        order = orders_service.get_order_with_items(order_id)
        return jsonify({"order": convert_order(order, currency)}), 201
    except Exception as exc:
        return json_error(exc, "Failed to create order")


@orders_bp.get("")
def list_orders_route():
    try:
        currency = request_currency()
        limit = request.args.get("limit", type=int)
        orders = [convert_order(o, currency) for o in orders_service.list_orders(limit=limit)]
        return jsonify({"items": orders, "count": len(orders)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to list orders")


@orders_bp.get("/pending")
def list_pending_orders_route():
    try:
        currency = request_currency()
        orders = [convert_order(o, currency) for o in orders_service.list_pending_orders()]
        return jsonify({"items": orders, "count": len(orders)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to list pending orders")


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        currency = request_currency()
        order = orders_service.get_order_with_items(order_id)
        return jsonify({"order": convert_order(order, currency)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to load order")


@orders_bp.get("/<int:order_id>/items")
def get_order_items_route(order_id: int):
    try:
        currency = request_currency()
        orders_service.get_order(order_id)
        items = [currency.convert_fields(i, ORDER_ITEM_MONEY) for i in orders_service.get_order_items(order_id)]
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to load order items")


@orders_bp.post("/<int:order_id>/deposit")
def settle_deposit_route(order_id: int):
    try:
        currency = request_currency()
        data = currency.parse_fields(json_body(), ("amount",))
        orders_service.settle_deposit(order_id, data.get("amount"))
        order = orders_service.get_order_with_items(order_id)
        return jsonify({"order": convert_order(order, currency)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to settle deposit")


@orders_bp.post("/<int:order_id>/returns")
def record_return_route(order_id: int):
    try:
        data = json_body()
        product_id = data.get("product_id")
        if not isinstance(product_id, int):
            return jsonify({"error": "product_id required"}), 400
        entry = orders_service.record_return(
            order_id,
            product_id,
            data.get("quantity"),
            reason=data.get("reason"),
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to record return")
