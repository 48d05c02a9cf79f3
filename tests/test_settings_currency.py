# WMS Tests - Settings store and currency conversion
#
# Tests for:
# - Setting upsert and typed config defaults
# - Numeric setting and currency code validation
# - Conversion round-trip and rate validation
# - Best-effort rate lookup (httpx MockTransport) with keep-previous fallback

import httpx
import pytest

from wms import currency
from wms.currency import CurrencyConfig, RateLookupError
from wms.services import settings_service
from wms.validation import ValidationError

from tests.conftest import RATES_URL, rates_transport


class TestSettingsStore:

    def test_seeded_currency(self, app):
        assert settings_service.get_setting("display_currency") == "AED"
        assert settings_service.get_setting("exchange_rate") == "1"

    def test_upsert_last_write_wins(self, app):
        settings_service.set_setting("company_name", "Veik")
        settings_service.set_setting("company_name", "Veik Trading")
        assert settings_service.get_setting("company_name") == "Veik Trading"
        assert list(settings_service.get_all_settings()).count("company_name") == 1

    def test_missing_key_is_none(self, app):
        assert settings_service.get_setting("nope") is None

    def test_load_config_applies_defaults(self, app):
        config = settings_service.load_config()
        assert config.display_currency == "AED"
        assert config.exchange_rate == 1.0
        assert config.tax_rate == 0.0
        assert config.low_stock_threshold == 50.0

    def test_load_config_reads_values(self, app):
        settings_service.set_settings({"tax_rate": "0.05", "low_stock_threshold": 10})
        config = settings_service.load_config()
        assert config.tax_rate == 0.05
        assert config.low_stock_threshold == 10.0

    @pytest.mark.parametrize("key,value", [
        ("exchange_rate", 0),
        ("exchange_rate", "-1"),
        ("exchange_rate", "abc"),
        ("low_stock_threshold", -5),
    ])
    def test_invalid_numeric_settings(self, app, key, value):
        with pytest.raises(ValidationError):
            settings_service.set_setting(key, value)

    def test_save_currency(self, app):
        config = settings_service.save_currency("usd", 0.2723)
        assert config.display_currency == "USD"
        assert config.exchange_rate == pytest.approx(0.2723)

    @pytest.mark.parametrize("code", ["EUR", "", None])
    def test_unsupported_currency_rejected(self, app, code):
        with pytest.raises(ValidationError):
            settings_service.save_currency(code, 4.0)
        with pytest.raises(ValidationError):
            settings_service.set_setting("display_currency", code)
        assert settings_service.load_config().display_currency == "AED"


class TestConversion:

    @pytest.mark.parametrize("amount", [0.0, 0.01, 1.0, 19.99, 1234.5678, 999999.99])
    @pytest.mark.parametrize("rate", [0.2723, 1.0, 1.96, 3.6725])
    def test_round_trip(self, amount, rate):
        assert currency.to_canonical(currency.to_display(amount, rate), rate) == pytest.approx(amount, abs=1e-6)

    def test_identity_rate(self):
        assert currency.to_display(42.0, 1.0) == 42.0
        assert CurrencyConfig().is_identity

    @pytest.mark.parametrize("rate", [0, -1.5])
    def test_rate_must_be_positive(self, rate):
        with pytest.raises(ValueError):
            currency.to_display(10, rate)
        with pytest.raises(ValueError):
            CurrencyConfig("USD", rate)

    def test_convert_fields(self):
        config = CurrencyConfig("USD", 0.25)
        row = config.convert_fields({"price": 100.0, "cost": None, "name": "x"}, ("price", "cost"))
        assert row == {"price": 25.0, "cost": None, "name": "x", "currency": "USD"}
        assert config.parse_fields({"price": "25"}, ("price",))["price"] == 100.0


class TestRateLookup:

    def test_canonical_needs_no_network(self):
        def handler(request):
            raise AssertionError("network should not be used")

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            assert currency.fetch_rate("aed", url=RATES_URL, client=client) == 1.0

    def test_fetch_known_rate(self, rates_client):
        assert currency.fetch_rate("USD", url=RATES_URL, client=rates_client) == pytest.approx(0.2723)

    def test_unknown_currency(self, rates_client):
        with pytest.raises(RateLookupError):
            currency.fetch_rate("XYZ", url=RATES_URL, client=rates_client)

    def test_http_failure(self):
        with httpx.Client(transport=rates_transport(status_code=503)) as client:
            with pytest.raises(RateLookupError):
                currency.fetch_rate("USD", url=RATES_URL, client=client)

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(RateLookupError):
                currency.fetch_rate("USD", url=RATES_URL, client=client)

    def test_refresh_stores_rate(self, app, rates_client):
        config, warning = settings_service.refresh_exchange_rate("CNY", client=rates_client)
        assert warning is None
        assert config.display_currency == "CNY"
        assert settings_service.load_config().exchange_rate == pytest.approx(1.96)

    def test_refresh_rejects_unsupported_code(self, app):
        def handler(request):
            raise AssertionError("network should not be used")

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ValidationError):
                settings_service.refresh_exchange_rate("XYZ", client=client)
        assert settings_service.load_config().display_currency == "AED"

    def test_refresh_failure_keeps_previous_rate(self, app):
        settings_service.save_currency("USD", 0.27)
        with httpx.Client(transport=rates_transport(status_code=500)) as client:
            config, warning = settings_service.refresh_exchange_rate("CNY", client=client)

        assert warning
        assert config.display_currency == "USD"
        assert config.exchange_rate == pytest.approx(0.27)
        assert settings_service.load_config().display_currency == "USD"
