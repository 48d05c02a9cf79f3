from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from flask import current_app

from .. import currency
from ..extensions import db
from ..models import SettingEntry
from ..validation import ValidationError
from .concurrency import transactional

logger = logging.getLogger(__name__)


KEY_DISPLAY_CURRENCY = "display_currency"
KEY_EXCHANGE_RATE = "exchange_rate"
KEY_TAX_RATE = "tax_rate"
KEY_LOW_STOCK_THRESHOLD = "low_stock_threshold"

DEFAULTS = {
    KEY_DISPLAY_CURRENCY: "AED",
    KEY_EXCHANGE_RATE: "1",
    KEY_TAX_RATE: "0",
    KEY_LOW_STOCK_THRESHOLD: "50",
}


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class EngineSettings:
    """Typed view of the settings table with defaults applied once."""
    display_currency: str = DEFAULTS[KEY_DISPLAY_CURRENCY]
    exchange_rate: float = 1.0
    tax_rate: float = 0.0
    low_stock_threshold: float = 50.0

    def to_dict(self) -> dict:
        return asdict(self)


def get_setting(key: str) -> str | None:
    row = db.session.get(SettingEntry, key)
    return row.value if row else None


def get_all_settings() -> dict[str, str]:
    rows = db.session.query(SettingEntry).order_by(SettingEntry.key.asc()).all()
    return {r.key: r.value for r in rows}


# Numeric keys and the lower bound each must respect (strict for the rate)
_NUMERIC_KEYS = {
    KEY_EXCHANGE_RATE: (0.0, False),
    KEY_TAX_RATE: (0.0, True),
    KEY_LOW_STOCK_THRESHOLD: (0.0, True),
}


def _check_numeric(key: str, value) -> None:
    if key not in _NUMERIC_KEYS or value is None:
        return
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")
    floor, inclusive = _NUMERIC_KEYS[key]
    if number < floor or (number == floor and not inclusive):
        raise ValidationError(f"{key} must be {'>=' if inclusive else '>'} {floor:g}")


def _check_currency_code(code) -> str:
    code = str(code or "").strip().upper()
    if not code:
        raise ValidationError("Currency code is required")
    if code not in currency.SUPPORTED_CURRENCIES:
        raise ValidationError(f"Unsupported currency: {code} (expected one of {', '.join(sorted(currency.SUPPORTED_CURRENCIES))})")
    return code


def _upsert(key: str, value) -> SettingEntry:
    if not key or not str(key).strip():
        raise ValidationError("Setting key is required")
    key = str(key).strip()
    _check_numeric(key, value)
    if key == KEY_DISPLAY_CURRENCY:
        value = _check_currency_code(value)
    value = None if value is None else str(value)

    row = db.session.get(SettingEntry, key)
    if row is None:
        row = SettingEntry(key=key, value=value)
        db.session.add(row)
    else:
        row.value = value
    db.session.flush()
    return row


@transactional
def set_setting(key: str, value) -> SettingEntry:
    """Upsert a single key. Last write wins."""
    return _upsert(key, value)


@transactional
def set_settings(values: dict) -> dict[str, str]:
    for key, value in values.items():
        _upsert(key, value)
    return get_all_settings()


def _as_float(raw: str | None, default: str, key: str) -> float:
    try:
        return float(raw if raw not in (None, "") else default)
    except (TypeError, ValueError):
        raise SettingsError(f"Setting {key} is not numeric: {raw!r}")


def load_config() -> EngineSettings:
    """
    Read every setting and apply the caller-visible defaults.

    This is the only place defaults are applied; callers use the struct.
    """
    raw = get_all_settings()
    rate = _as_float(raw.get(KEY_EXCHANGE_RATE), DEFAULTS[KEY_EXCHANGE_RATE], KEY_EXCHANGE_RATE)
    if rate <= 0:
        raise SettingsError("exchange_rate must be > 0")
    return EngineSettings(
        display_currency=(raw.get(KEY_DISPLAY_CURRENCY) or DEFAULTS[KEY_DISPLAY_CURRENCY]).upper(),
        exchange_rate=rate,
        tax_rate=_as_float(raw.get(KEY_TAX_RATE), DEFAULTS[KEY_TAX_RATE], KEY_TAX_RATE),
        low_stock_threshold=_as_float(
            raw.get(KEY_LOW_STOCK_THRESHOLD),
            DEFAULTS[KEY_LOW_STOCK_THRESHOLD],
            KEY_LOW_STOCK_THRESHOLD,
        ),
    )


@transactional
def save_currency(code: str, rate: float) -> EngineSettings:
    code = _check_currency_code(code)
    try:
        rate = float(rate)
    except (TypeError, ValueError):
        raise ValidationError("exchange_rate must be a number")
    if rate <= 0:
        raise ValidationError("exchange_rate must be > 0")
    _upsert(KEY_DISPLAY_CURRENCY, code)
    _upsert(KEY_EXCHANGE_RATE, repr(rate))
    return load_config()


def refresh_exchange_rate(code: str, *, client=None) -> tuple[EngineSettings, str | None]:
    """
    Fetch a live rate for code and store it with the display currency.

    The lookup runs outside the write lock. On any lookup failure the
    previously stored rate is kept and the error message is returned.
    """
    code = _check_currency_code(code)
    current = load_config()
    try:
        rate = currency.fetch_rate(
            code,
            url=current_app.config["EXCHANGE_RATE_URL"],
            timeout=current_app.config["EXCHANGE_RATE_TIMEOUT"],
            client=client,
        )
    except currency.RateLookupError as exc:
        logger.warning("Keeping exchange rate %s for %s: %s", current.exchange_rate, current.display_currency, exc)
        return current, str(exc)
    return save_currency(code, rate), None
