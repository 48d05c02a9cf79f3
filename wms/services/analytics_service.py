# Overview: Service-layer operations for analytics; encapsulates aggregation queries.

from __future__ import annotations

import calendar
from datetime import date, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Order
from ..validation import ValidationError
from . import catalog_service, orders_service, settings_service
from wms.time_utils import parse_iso_date, today as utc_today


WINDOW_LAST_7_DAYS = "last_7_days"
WINDOW_LAST_30_DAYS = "last_30_days"
WINDOW_LAST_6_MONTHS = "last_6_months"
WINDOW_LAST_12_MONTHS = "last_12_months"
WINDOW_ALL = "all"
WINDOW_CUSTOM = "custom"

WINDOWS = {
    WINDOW_LAST_7_DAYS,
    WINDOW_LAST_30_DAYS,
    WINDOW_LAST_6_MONTHS,
    WINDOW_LAST_12_MONTHS,
    WINDOW_ALL,
    WINDOW_CUSTOM,
}


class AnalyticsError(ValidationError):
    """Raised when an analytics request is malformed."""


def _months_ago(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def resolve_window(
    window: str,
    *,
    today: date | None = None,
    start=None,
    end=None,
) -> tuple[date | None, date | None]:
    """
    Translate a window selector into concrete inclusive day bounds.

    Day windows include today: last_7_days is today and the six days before.
    Month windows start on the same day-of-month N months back.
    """
    today = today or utc_today()

    if window == WINDOW_LAST_7_DAYS:
        return today - timedelta(days=6), today
    if window == WINDOW_LAST_30_DAYS:
        return today - timedelta(days=29), today
    if window == WINDOW_LAST_6_MONTHS:
        return _months_ago(today, 6), today
    if window == WINDOW_LAST_12_MONTHS:
        return _months_ago(today, 12), today
    if window == WINDOW_ALL:
        return None, None
    if window == WINDOW_CUSTOM:
        try:
            start_day = parse_iso_date(start)
            end_day = parse_iso_date(end)
        except ValueError:
            raise AnalyticsError("start and end must be ISO-8601 dates")
        if start_day and end_day and start_day > end_day:
            raise AnalyticsError("start must not be after end")
        return start_day, end_day

    raise AnalyticsError(f"window must be one of: {', '.join(sorted(WINDOWS))}")


def compute_analytics(start=None, end=None) -> dict:
    """
    Windowed sales aggregates.

    Bounds are inclusive and compared at day granularity on created_at.
    Both None aggregates every order ever created; either bound may be open.

    - gross_sales: SUM(total_amount)
    - total_received: SUM(deposit)
    - total_pending: SUM(total_amount - deposit)  (unclamped)
    - order_count
    - daily_trend: per calendar day SUM(total_amount), ascending
    """
    start_day = parse_iso_date(start)
    end_day = parse_iso_date(end)
    if start_day and end_day and start_day > end_day:
        raise AnalyticsError("start must not be after end")

    day_expr = func.date(Order.created_at)

    def _bounded(query):
        if start_day:
            query = query.filter(day_expr >= start_day.isoformat())
        if end_day:
            query = query.filter(day_expr <= end_day.isoformat())
        return query

    gross, received, count = _bounded(
        db.session.query(
            func.coalesce(func.sum(Order.total_amount), 0),
            func.coalesce(func.sum(Order.deposit), 0),
            func.count(Order.id),
        )
    ).one()

    trend_rows = (
        _bounded(
            db.session.query(
                day_expr.label("day"),
                func.coalesce(func.sum(Order.total_amount), 0).label("amount"),
                func.count(Order.id).label("orders"),
            )
        )
        .group_by(day_expr)
        .order_by(day_expr.asc())
        .all()
    )

    gross = float(gross or 0)
    received = float(received or 0)
    return {
        "start": start_day.isoformat() if start_day else None,
        "end": end_day.isoformat() if end_day else None,
        "gross_sales": gross,
        "total_received": received,
        "total_pending": gross - received,
        "order_count": int(count or 0),
        "daily_trend": [
            {
                "date": row.day,
                "amount": float(row.amount or 0),
                "orders": int(row.orders or 0),
            }
            for row in trend_rows
        ],
    }


def compute_window(window: str, *, today: date | None = None, start=None, end=None) -> dict:
    start_day, end_day = resolve_window(window, today=today, start=start, end=end)
    result = compute_analytics(start_day, end_day)
    result["window"] = window
    return result


def sales_last_days(days: int = 7, *, today: date | None = None) -> list[dict]:
    if days < 1:
        raise AnalyticsError("days must be >= 1")
    today = today or utc_today()
    return compute_analytics(today - timedelta(days=days - 1), today)["daily_trend"]


def dashboard_stats(low_stock_threshold: float | None = None) -> dict:
    if low_stock_threshold is None:
        low_stock_threshold = settings_service.load_config().low_stock_threshold

    totals = compute_analytics(None, None)
    return {
        "total_sales": totals["gross_sales"],
        "order_count": totals["order_count"],
        "low_stock_threshold": low_stock_threshold,
        "low_stock_count": catalog_service.count_low_stock(low_stock_threshold),
        "recent_orders": orders_service.list_orders(limit=10),
    }
