# wms/config.py
from __future__ import annotations
import os

from sqlalchemy.pool import StaticPool


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # The relational store lives in memory; durability comes from the snapshot.
    # StaticPool keeps exactly one connection so serialize() sees every table.
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Snapshot location: one file per schema version under SNAPSHOT_DIR
    SNAPSHOT_DIR = os.environ.get("WMS_SNAPSHOT_DIR", "instance")
    # Bump the key for breaking schema changes (old snapshots become unreachable)
    SNAPSHOT_KEY = os.environ.get("WMS_SNAPSHOT_KEY", "veik_wms_v7.db")

    # Sample products/contacts on first seed (reference data is always seeded)
    SEED_DEMO_DATA = os.environ.get("WMS_SEED_DEMO_DATA", "1") == "1"

    CANONICAL_CURRENCY = "AED"
    EXCHANGE_RATE_URL = os.environ.get(
        "WMS_EXCHANGE_RATE_URL",
        "https://api.exchangerate-api.com/v4/latest/AED",
    )
    EXCHANGE_RATE_TIMEOUT = float(os.environ.get("WMS_EXCHANGE_RATE_TIMEOUT", "5"))

    # An admin active within this window cannot be logged in a second time
    ADMIN_LOCK_MINUTES = int(os.environ.get("WMS_ADMIN_LOCK_MINUTES", "30"))

    # bcrypt cost factor; tests lower it
    BCRYPT_ROUNDS = int(os.environ.get("WMS_BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
