from __future__ import annotations

from flask import Blueprint, jsonify

from ..services import settings_service
from .common import json_body, json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _settings_payload() -> dict:
    return {
        "settings": settings_service.get_all_settings(),
        "config": settings_service.load_config().to_dict(),
    }


def _parse_updates(payload: dict) -> dict:
    """Accept {"key": ..., "value": ...} or a flat {key: value} map."""
    if "key" in payload and set(payload) <= {"key", "value"}:
        return {payload["key"]: payload.get("value")}
    return payload


@settings_bp.get("")
def get_settings_route():
    try:
        return jsonify(_settings_payload()), 200
    except Exception as exc:
        return json_error(exc, "Failed to load settings")


@settings_bp.put("")
def update_settings_route():
    try:
        updates = _parse_updates(json_body())
        if not updates:
            return jsonify({"error": "No settings supplied"}), 400
        settings_service.set_settings(updates)
        return jsonify(_settings_payload()), 200
    except Exception as exc:
        return json_error(exc, "Failed to update settings")


@settings_bp.put("/currency")
def save_currency_route():
    try:
        data = json_body()
        config = settings_service.save_currency(data.get("code"), data.get("rate"))
        return jsonify({"config": config.to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to save currency")


@settings_bp.post("/currency/refresh")
def refresh_currency_route():
    """
    Look up a live rate for the given code and store it.

    The lookup is best-effort: on failure the previous rate is kept and the
    response carries a warning instead of an error status.
    """
    try:
        code = (json_body().get("code") or "").strip().upper()
        if not code:
            return jsonify({"error": "code required"}), 400
        config, warning = settings_service.refresh_exchange_rate(code)
        return jsonify({"config": config.to_dict(), "warning": warning}), 200
    except Exception as exc:
        return json_error(exc, "Failed to refresh exchange rate")
