from flask import Blueprint, jsonify, request

from ..services import analytics_service
from .common import convert_order, json_error, request_currency


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")

_TOTALS = ("gross_sales", "total_received", "total_pending")


def _convert_trend(trend: list[dict], currency) -> list[dict]:
    return [{**point, "amount": currency.convert(point["amount"])} for point in trend]


@analytics_bp.get("")
def analytics_route():
    """
    Windowed sales aggregates.

    Query: window (last_7_days | last_30_days | last_6_months |
    last_12_months | all | custom; default last_30_days), start and end
    (ISO dates, custom only).
    """
    try:
        currency = request_currency()
        result = analytics_service.compute_window(
            request.args.get("window", analytics_service.WINDOW_LAST_30_DAYS),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        result = currency.convert_fields(result, _TOTALS)
        result["daily_trend"] = _convert_trend(result["daily_trend"], currency)
        return jsonify(result), 200
    except Exception as exc:
        return json_error(exc, "Failed to compute analytics")


@analytics_bp.get("/daily")
def daily_sales_route():
    try:
        currency = request_currency()
        days = request.args.get("days", 7, type=int)
        trend = analytics_service.sales_last_days(days)
        return jsonify({"items": _convert_trend(trend, currency), "currency": currency.code}), 200
    except Exception as exc:
        return json_error(exc, "Failed to compute daily sales")


@analytics_bp.get("/dashboard")
def dashboard_route():
    try:
        currency = request_currency()
        stats = analytics_service.dashboard_stats(request.args.get("threshold", type=float))
        stats = currency.convert_fields(stats, ("total_sales",))
        stats["recent_orders"] = [convert_order(o, currency) for o in stats["recent_orders"]]
        return jsonify(stats), 200
    except Exception as exc:
        return json_error(exc, "Failed to load dashboard")
