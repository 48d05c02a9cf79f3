# Overview: Shared helpers for API routes: error mapping and display-currency handling.

from __future__ import annotations

from flask import current_app, jsonify, request

from ..currency import CurrencyConfig
from ..services import settings_service
from ..validation import ConflictError, NotFoundError, ValidationError

RETRY_MESSAGE = "Operation could not be completed, please retry"

PRODUCT_MONEY = ("price", "cost")
ORDER_MONEY = ("total_amount", "discount", "deposit", "balance_due", "subtotal")
ORDER_ITEM_MONEY = ("price_at_sale", "line_total")


def json_error(exc: Exception, action: str):
    """
    Map a service exception to a JSON error response.

    Must be called from an except block: unexpected errors are logged with
    their traceback and answered with a generic retry message.
    """
    if isinstance(exc, ValidationError):
        body = {"error": str(exc)}
        details = getattr(exc, "details", None)
        if details:
            body["details"] = details
        return jsonify(body), 400
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404

    current_app.logger.exception(action)
    return jsonify({"error": RETRY_MESSAGE}), 500


def request_currency() -> CurrencyConfig:
    """
    Currency for this request.

    Amounts are canonical unless the caller passes ?currency=display, in
    which case responses are converted and request amounts are parsed back.
    """
    if request.args.get("currency", "").lower() != "display":
        return CurrencyConfig()
    config = settings_service.load_config()
    return CurrencyConfig(config.display_currency, config.exchange_rate)


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def convert_order(order: dict, currency: CurrencyConfig) -> dict:
    result = currency.convert_fields(order, ORDER_MONEY)
    if "items" in result:
        result["items"] = [currency.convert_fields(item, ORDER_ITEM_MONEY) for item in result["items"]]
    return result
