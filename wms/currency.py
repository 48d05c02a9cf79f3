# Overview: Display-currency conversion over the canonical storage currency.

"""
Currency Conversion Layer

Every persisted amount is in the canonical currency (AED). Conversion is
applied only at the boundary: to_display when rendering, to_canonical when
parsing user-entered amounts back for storage.

rate is "display units per canonical unit". Rate 1 with the canonical code is
the identity case and needs no special handling.

fetch_rate is a best-effort lookup. It is never called from inside the
ledger or catalog; callers await it, then store the rate through settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from .validation import ValidationError

logger = logging.getLogger(__name__)

CANONICAL_CURRENCY = "AED"
SUPPORTED_CURRENCIES = {"AED", "USD", "CNY"}


class RateLookupError(RuntimeError):
    """The external rate source failed or did not know the currency."""


def _check_rate(rate: float) -> float:
    rate = float(rate)
    if rate <= 0:
        raise ValueError("exchange rate must be > 0")
    return rate


def to_display(amount_canonical: float, rate: float) -> float:
    return amount_canonical * _check_rate(rate)


def to_canonical(amount_display: float, rate: float) -> float:
    return amount_display / _check_rate(rate)


@dataclass(frozen=True)
class CurrencyConfig:
    code: str = CANONICAL_CURRENCY
    rate: float = 1.0

    def __post_init__(self):
        _check_rate(self.rate)

    @property
    def is_identity(self) -> bool:
        return self.code == CANONICAL_CURRENCY and self.rate == 1.0

    def convert(self, amount: float | None) -> float | None:
        """Canonical -> display."""
        if amount is None:
            return None
        return to_display(amount, self.rate)

    def parse(self, amount: float | None) -> float | None:
        """Display -> canonical."""
        if amount is None:
            return None
        return to_canonical(amount, self.rate)

    def convert_fields(self, row: dict, fields) -> dict:
        converted = dict(row)
        for field in fields:
            if converted.get(field) is not None:
                converted[field] = self.convert(converted[field])
        converted["currency"] = self.code
        return converted

    def parse_fields(self, row: dict, fields) -> dict:
        """Display -> canonical for each amount present; non-numeric amounts are invalid input."""
        parsed = dict(row)
        for field in fields:
            value = parsed.get(field)
            if value is None:
                continue
            if isinstance(value, bool):
                raise ValidationError(f"{field} must be a number")
            try:
                amount = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{field} must be a number")
            parsed[field] = self.parse(amount)
        return parsed


def fetch_rate(
    code: str,
    *,
    url: str = "https://api.exchangerate-api.com/v4/latest/AED",
    timeout: float = 5.0,
    client: httpx.Client | None = None,
) -> float:
    """
    Look up display units per 1 AED for code.

    The canonical currency is answered locally without a network call.

    Raises:
        RateLookupError: network failure, bad payload, or unknown currency
    """
    code = (code or "").strip().upper()
    if code == CANONICAL_CURRENCY:
        return 1.0

    owns_client = client is None
    client = client or httpx.Client(timeout=timeout)
    try:
        response = client.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise RateLookupError(f"Rate lookup failed: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    rates = payload.get("rates") if isinstance(payload, dict) else None
    rate = rates.get(code) if isinstance(rates, dict) else None
    if rate is None:
        raise RateLookupError(f"Rate not found for {code}")
    try:
        return _check_rate(rate)
    except (TypeError, ValueError) as exc:
        raise RateLookupError(f"Invalid rate for {code}: {rate!r}") from exc
