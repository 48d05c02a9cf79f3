# Overview: Schema creation, additive migrations and baseline seed data.

"""
Schema Manager

ensure_schema() is run once per process start against the store that was
just loaded from the snapshot:

- empty store: create every table, then seed reference data (categories,
  units, default admin/employee accounts, currency settings) and, when
  SEED_DEMO_DATA is on, a few sample products and contacts
- existing store: create any table the snapshot predates, then try each
  additive column migration; "duplicate column" means it was already applied

Migrations are additive only, idempotent and order-independent. Breaking
changes bump SNAPSHOT_KEY instead.
"""

from __future__ import annotations

import logging

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..extensions import db
from . import auth_service, catalog_service, contacts_service, settings_service
from .concurrency import run_write

logger = logging.getLogger(__name__)


class SchemaError(RuntimeError):
    """The store cannot be opened or its schema cannot be brought up to date."""


# (table, column factory). Factories: a Column can only be attached once.
MIGRATIONS = [
    ("orders", lambda: sa.Column("order_number", sa.String(64), nullable=True)),
    ("orders", lambda: sa.Column("discount", sa.Float, nullable=False, server_default="0")),
    ("purchase_orders", lambda: sa.Column("shipping_ref", sa.String(128), nullable=True)),
    ("products", lambda: sa.Column("seed_stock", sa.Float, nullable=False, server_default="0")),
    ("inventory_logs", lambda: sa.Column("reason", sa.String(255), nullable=True)),
]

DEFAULT_CATEGORIES = ["Electronics", "Accessories", "Furniture"]
DEFAULT_UNITS = ["pcs", "box", "kg"]
DEFAULT_USERS = [
    # username, password, role, display name
    ("admin", "admin", "admin", "Administrator"),
    ("user", "user", "employee", "Staff Member"),
]
DEMO_PRODUCTS = [
    {"name": "Mechanical Keyboard", "price": 120.0, "cost": 60.0, "stock": 15, "category": "Electronics", "unit": "pcs"},
    {"name": "Wireless Mouse", "price": 45.0, "cost": 20.0, "stock": 30, "category": "Electronics", "unit": "pcs"},
    {"name": "USB-C Cable", "price": 12.0, "cost": 3.0, "stock": 100, "category": "Accessories", "unit": "box"},
]
DEMO_CONTACTS = [
    {"name": "John Doe", "phone": "123-456-7890", "email": "john@example.com", "address": "123 Main St", "type": "customer"},
    {"name": "Global Tech Supply", "phone": "987-654-3210", "email": "sales@globaltech.com", "address": "456 Port Rd", "type": "distributor"},
    {"name": "Alice Sales", "phone": "555-0101", "email": "alice@veik.com", "address": "Office", "type": "sales_rep"},
]


def table_names() -> set[str]:
    try:
        return set(sa.inspect(db.engine).get_table_names())
    except SQLAlchemyError as exc:
        raise SchemaError(f"Cannot open store: {exc}") from exc


def column_names(table: str) -> list[str]:
    return [c["name"] for c in sa.inspect(db.engine).get_columns(table)]


def _is_duplicate_column(exc: OperationalError) -> bool:
    return "duplicate column" in str(exc.orig if exc.orig is not None else exc).lower()


def run_migrations() -> list[str]:
    """
    Attempt every additive column migration.

    Returns the "table.column" names actually added on this call.
    """
    # DDL goes through the engine; release the session's hold on the connection
    db.session.remove()

    applied = []
    for table, make_column in MIGRATIONS:
        column = make_column()
        try:
            with db.engine.begin() as conn:
                Operations(MigrationContext.configure(conn)).add_column(table, column)
        except OperationalError as exc:
            if _is_duplicate_column(exc):
                logger.debug("Migration %s.%s already applied", table, column.name)
                continue
            raise SchemaError(f"Migration {table}.{column.name} failed: {exc}") from exc
        logger.info("Applied migration %s.%s", table, column.name)
        applied.append(f"{table}.{column.name}")

    if "products.seed_stock" in applied:
        _backfill_seed_stock()
    return applied


def _backfill_seed_stock() -> None:
    """Older stores have no seed stock: derive it so stock reconciles with the log."""
    with db.engine.begin() as conn:
        if "inventory_logs" in set(sa.inspect(conn).get_table_names()):
            conn.execute(sa.text(
                "UPDATE products SET seed_stock = stock - COALESCE("
                "(SELECT SUM(quantity) FROM inventory_logs WHERE inventory_logs.product_id = products.id), 0)"
            ))
        else:
            conn.execute(sa.text("UPDATE products SET seed_stock = stock"))


def seed_defaults(*, demo: bool = True) -> None:
    """Baseline reference data for a brand-new store, written as one unit."""
    def _op():
        for name in DEFAULT_CATEGORIES:
            catalog_service.add_category(name)
        for name in DEFAULT_UNITS:
            catalog_service.add_unit(name)
        for username, password, role, display_name in DEFAULT_USERS:
            if not auth_service.get_user_by_username(username):
                auth_service.create_user(username, password, name=display_name, role=role)
        settings_service.set_settings({
            settings_service.KEY_DISPLAY_CURRENCY: settings_service.DEFAULTS[settings_service.KEY_DISPLAY_CURRENCY],
            settings_service.KEY_EXCHANGE_RATE: settings_service.DEFAULTS[settings_service.KEY_EXCHANGE_RATE],
        })
        if demo:
            for product in DEMO_PRODUCTS:
                catalog_service.create_product(product)
            for contact in DEMO_CONTACTS:
                contacts_service.create_contact(contact)

    run_write(_op)


def ensure_schema(*, seed_demo: bool | None = None) -> bool:
    """
    Bring the loaded store up to the current schema.

    Returns:
        True when the store was empty and has just been created and seeded.

    Raises:
        SchemaError: the store cannot be opened or a migration fails for a
            reason other than the column already existing
    """
    if seed_demo is None:
        seed_demo = bool(current_app.config.get("SEED_DEMO_DATA", True))

    if "products" not in table_names():
        db.create_all()
        seed_defaults(demo=seed_demo)
        logger.info("Created and seeded a new store")
        return True

    # Tables added after the snapshot was written (checkfirst)
    db.create_all()
    run_migrations()
    return False

