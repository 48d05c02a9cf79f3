# WMS Tests - Analytics aggregator
#
# Tests for:
# - Totals and daily trend over all orders
# - Inclusive day-granularity bounds
# - Window resolution (day and month windows, custom)
# - Dashboard stats

from datetime import date

import pytest

from wms.services import analytics_service, orders_service
from wms.services.analytics_service import AnalyticsError


def _order(product, amount, created_at, deposit=0.0):
    return orders_service.fulfill_order(
        {"created_at": created_at, "deposit": deposit},
        [{"product_id": product.id, "quantity": 1, "price": amount}],
    )


@pytest.fixture
def three_orders(product):
    _order(product, 10, "2024-03-01T09:00:00Z", deposit=10)
    _order(product, 20, "2024-03-01T23:59:00Z", deposit=5)
    _order(product, 30, "2024-03-02T00:00:00Z")


class TestComputeAnalytics:

    def test_all_orders_scenario(self, three_orders):
        """
        SCENARIO: orders of 10, 20, 30 across two days
        EXPECTED: gross 60, two trend points summing to 60
        """
        result = analytics_service.compute_analytics(None, None)

        assert result["gross_sales"] == 60.0
        assert result["order_count"] == 3
        assert len(result["daily_trend"]) == 2
        assert sum(point["amount"] for point in result["daily_trend"]) == 60.0
        assert [point["date"] for point in result["daily_trend"]] == ["2024-03-01", "2024-03-02"]

    def test_received_and_pending(self, three_orders):
        result = analytics_service.compute_analytics(None, None)
        assert result["total_received"] == 15.0
        assert result["total_pending"] == 45.0

    def test_bounds_are_inclusive_days(self, three_orders):
        first_day = analytics_service.compute_analytics("2024-03-01", "2024-03-01")
        assert first_day["gross_sales"] == 30.0
        assert first_day["order_count"] == 2

        second_day = analytics_service.compute_analytics(date(2024, 3, 2), date(2024, 3, 2))
        assert second_day["gross_sales"] == 30.0

    def test_open_bounds(self, three_orders):
        assert analytics_service.compute_analytics("2024-03-02", None)["gross_sales"] == 30.0
        assert analytics_service.compute_analytics(None, "2024-03-01")["gross_sales"] == 30.0

    def test_empty_store(self, app):
        result = analytics_service.compute_analytics(None, None)
        assert result["gross_sales"] == 0.0
        assert result["order_count"] == 0
        assert result["daily_trend"] == []

    def test_inverted_bounds_rejected(self, app):
        with pytest.raises(AnalyticsError):
            analytics_service.compute_analytics("2024-03-05", "2024-03-01")


class TestResolveWindow:

    TODAY = date(2024, 8, 31)

    @pytest.mark.parametrize("window,expected", [
        ("last_7_days", (date(2024, 8, 25), date(2024, 8, 31))),
        ("last_30_days", (date(2024, 8, 2), date(2024, 8, 31))),
        ("last_6_months", (date(2024, 2, 29), date(2024, 8, 31))),
        ("last_12_months", (date(2023, 8, 31), date(2024, 8, 31))),
        ("all", (None, None)),
    ])
    def test_windows(self, window, expected):
        assert analytics_service.resolve_window(window, today=self.TODAY) == expected

    def test_custom(self):
        assert analytics_service.resolve_window("custom", start="2024-01-01", end="2024-01-31") == (
            date(2024, 1, 1),
            date(2024, 1, 31),
        )

    def test_custom_bad_date(self):
        with pytest.raises(AnalyticsError):
            analytics_service.resolve_window("custom", start="soon")

    def test_unknown_window(self):
        with pytest.raises(AnalyticsError):
            analytics_service.resolve_window("fortnight")

    def test_compute_window(self, three_orders):
        result = analytics_service.compute_window("last_7_days", today=date(2024, 3, 2))
        assert result["window"] == "last_7_days"
        assert result["start"] == "2024-02-25"
        assert result["gross_sales"] == 60.0

    def test_sales_last_days(self, three_orders):
        trend = analytics_service.sales_last_days(1, today=date(2024, 3, 2))
        assert trend == [{"date": "2024-03-02", "amount": 30.0, "orders": 1}]


class TestDashboard:

    def test_dashboard_stats(self, three_orders, second_product):
        stats = analytics_service.dashboard_stats()
        assert stats["total_sales"] == 60.0
        assert stats["order_count"] == 3
        assert stats["low_stock_threshold"] == 50.0
        # P is at 97, the cable at 40
        assert stats["low_stock_count"] == 1
        assert len(stats["recent_orders"]) == 3
        assert stats["recent_orders"][0]["total_amount"] == 30.0
