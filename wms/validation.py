# Overview: Error taxonomy and column-driven coercion of caller-supplied payloads.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text

from wms.time_utils import parse_iso_datetime


# Ceiling for any single amount or quantity, canonical currency
MAX_AMOUNT = 999_999_999.0


class ValidationError(ValueError):
    """Invalid input (HTTP 400)."""


class ConflictError(ValueError):
    """Input is well-formed but clashes with stored state (HTTP 409)."""


class NotFoundError(LookupError):
    """Referenced row does not exist (HTTP 404)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns of a model callers may write.

    writable_fields: keys accepted in a payload; anything else is rejected
    required_on_create: keys that must be present and non-null on create
    """
    writable_fields: frozenset[str] | set[str]
    required_on_create: frozenset[str] | set[str] = field(default_factory=frozenset)


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        # "1.0" and "1e3" are not accepted as integers
        if text and text.lstrip("+-").isdigit():
            return int(text)
    raise ValidationError(f"{key} must be an integer")


def _as_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


def _as_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a datetime")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    return parsed


def _as_date(key: str, value: Any) -> date:
    if isinstance(value, date):
        return value.date() if isinstance(value, datetime) else value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 date")


def coerce_value(col, value: Any):
    """Convert a JSON value to the Python type of a mapped column. None passes through."""
    if value is None:
        return None

    coltype = col.type
    # DateTime before Date, Integer before Float: order matters for subclasses
    if isinstance(coltype, Integer):
        return _as_int(col.key, value)
    if isinstance(coltype, Float):
        # Stock is fractional for area/weight units
        return _as_float(col.key, value)
    if isinstance(coltype, Boolean):
        return value if isinstance(value, bool) else bool(value)
    if isinstance(coltype, DateTime):
        return _as_datetime(col.key, value)
    if isinstance(coltype, Date):
        return _as_date(col.key, value)
    if isinstance(coltype, (String, Text)):
        return str(value).strip()
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a caller payload against a model's columns and a write policy.

    Unknown or non-writable keys, nulls in non-nullable columns, blank
    required strings and over-long strings are rejected. On create
    (partial=False) every required_on_create key must be present.

    Returns the cleaned patch, values coerced to column types.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(k for k in policy.required_on_create if payload.get(k) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = coerce_value(col, raw)
        if isinstance(value, str):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            max_len = getattr(col.type, "length", None)
            if max_len and len(value) > max_len:
                raise ValidationError(f"{key} exceeds max length {max_len}")
        patch[key] = value
    return patch


def require_non_negative(patch: dict, *fields: str) -> None:
    """Every named amount present in patch must lie in [0, MAX_AMOUNT]."""
    for name in fields:
        value = patch.get(name)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{name} must be >= 0")
        if value > MAX_AMOUNT:
            raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT:,.2f}")


def require_positive(value, name: str) -> float:
    number = _as_float(name, value)
    if number <= 0:
        raise ValidationError(f"{name} must be > 0")
    if number > MAX_AMOUNT:
        raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT:,.2f}")
    return number


def require_choice(value, name: str, choices) -> str:
    if value not in choices:
        raise ValidationError(f"{name} must be one of: {', '.join(sorted(choices))}")
    return value
