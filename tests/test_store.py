# WMS Tests - Snapshot persistence and schema management
#
# Tests for:
# - Every committed write is persisted and survives a restart
# - Failed writes are not persisted
# - Reset invalidates the handle, discards the snapshot and re-seeds
# - Corrupt snapshots are fatal at startup
# - Additive migrations are idempotent and upgrade older stores

import sqlite3

import pytest

from wms.extensions import db
from wms.services import catalog_service, ledger_service, orders_service, schema_service
from wms.services.backup_service import reset_database
from wms.services.concurrency import get_snapshot_store
from wms.snapshot import SnapshotCorruptError, SnapshotInvalidatedError, SnapshotStore


LEGACY_SCHEMA = """
CREATE TABLE categories (id INTEGER PRIMARY KEY AUTOINCREMENT, name VARCHAR(128) NOT NULL UNIQUE);
CREATE TABLE units (id INTEGER PRIMARY KEY AUTOINCREMENT, name VARCHAR(64) NOT NULL UNIQUE);
CREATE TABLE products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(255) NOT NULL,
    price FLOAT NOT NULL,
    cost FLOAT NOT NULL,
    stock FLOAT NOT NULL,
    category_id INTEGER,
    unit_id INTEGER,
    created_at DATETIME NOT NULL
);
CREATE TABLE contacts (
    id INTEGER PRIMARY KEY AUTOINCREMENT, name VARCHAR(255) NOT NULL,
    phone VARCHAR(64), email VARCHAR(255), address TEXT, type VARCHAR(16) NOT NULL
);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT, contact_id INTEGER, sales_rep_id INTEGER,
    total_amount FLOAT NOT NULL, deposit FLOAT NOT NULL, payment_method VARCHAR(16),
    created_at DATETIME NOT NULL
);
CREATE TABLE order_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT, order_id INTEGER NOT NULL, product_id INTEGER,
    quantity FLOAT NOT NULL, price_at_sale FLOAT NOT NULL
);
CREATE TABLE purchase_orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT, distributor_id INTEGER, status VARCHAR(16) NOT NULL,
    expected_arrival_date DATE, created_at DATETIME NOT NULL
);
CREATE TABLE purchase_order_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT, po_id INTEGER NOT NULL, product_id INTEGER, quantity FLOAT NOT NULL
);
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT, username VARCHAR(64) NOT NULL UNIQUE,
    password_hash VARCHAR(255) NOT NULL, role VARCHAR(16) NOT NULL, name VARCHAR(255),
    is_logged_in BOOLEAN NOT NULL, last_active DATETIME
);
INSERT INTO products (name, price, cost, stock, created_at) VALUES ('Old Stock Item', 9.5, 4.0, 25, '2023-11-02 08:30:00');
INSERT INTO orders (total_amount, deposit, payment_method, created_at) VALUES (19.0, 19.0, 'cash', '2023-11-03 12:00:00');
"""


def _legacy_snapshot() -> bytes:
    conn = sqlite3.connect(":memory:")
    try:
        conn.executescript(LEGACY_SCHEMA)
        return bytes(conn.serialize())
    finally:
        conn.close()


class TestSnapshotPersistence:

    def test_fresh_store_is_seeded_and_saved(self, app):
        store = get_snapshot_store()
        assert store.exists()
        assert store.path.name == "wms_test.db"

    def test_write_survives_restart(self, app, app_factory, product):
        orders_service.fulfill_order({"order_number": "A-1"}, [{"product_id": product.id, "quantity": 10, "price": 5.0}])

        restarted = app_factory()
        with restarted.app_context():
            products = catalog_service.list_products()
            assert [p["name"] for p in products] == ["Product P"]
            assert products[0]["stock"] == 90
            assert orders_service.list_orders()[0]["order_number"] == "A-1"
            assert ledger_service.reconcile_stock() == []
            db.session.remove()

    def test_failed_write_is_not_persisted(self, app, app_factory, product):
        with pytest.raises(ValueError):
            orders_service.fulfill_order({}, [{"product_id": 4040, "quantity": 1, "price": 1.0}])

        restarted = app_factory()
        with restarted.app_context():
            assert orders_service.list_orders() == []
            db.session.remove()

    def test_demo_data_seeded_on_request(self, app_factory):
        demo = app_factory(SNAPSHOT_KEY="demo.db", SEED_DEMO_DATA=True)
        with demo.app_context():
            assert len(catalog_service.list_products()) == 3
            assert ledger_service.reconcile_stock() == []
            db.session.remove()

    def test_corrupt_snapshot_is_fatal(self, app_config, app_factory, tmp_path):
        store = SnapshotStore(app_config["SNAPSHOT_DIR"], "broken.db")
        store.save(b"corrupt-snapshot" * 512)

        with pytest.raises(SnapshotCorruptError):
            app_factory(SNAPSHOT_KEY="broken.db")


class TestSnapshotStore:

    def test_save_and_load(self, tmp_path):
        store = SnapshotStore(tmp_path, "unit.db")
        assert store.load() is None
        store.save(b"abc")
        assert store.load() == b"abc"
        # No temp files left behind
        assert [p.name for p in tmp_path.iterdir()] == ["unit.db"]

    def test_reset_invalidates_before_delete(self, tmp_path):
        store = SnapshotStore(tmp_path, "unit.db")
        store.save(b"abc")
        store.reset()

        assert not store.exists()
        with pytest.raises(SnapshotInvalidatedError):
            store.save(b"resurrected")
        assert not store.exists()

        store.reopen()
        store.save(b"fresh")
        assert store.load() == b"fresh"


class TestReset:

    def test_reset_reseeds_defaults(self, app, app_factory, product, customer):
        reset_database()

        assert catalog_service.list_products() == []
        assert {c.name for c in catalog_service.list_categories()} == {"Electronics", "Accessories", "Furniture"}
        store = get_snapshot_store()
        assert store.is_valid
        assert store.exists()

        restarted = app_factory()
        with restarted.app_context():
            assert catalog_service.list_products() == []
            db.session.remove()


class TestMigrations:

    def test_migrations_idempotent(self, app):
        before = {t: schema_service.column_names(t) for t in schema_service.table_names()}

        assert schema_service.run_migrations() == []
        assert schema_service.run_migrations() == []

        after = {t: schema_service.column_names(t) for t in schema_service.table_names()}
        assert after == before
        for columns in after.values():
            assert len(columns) == len(set(columns))

    def test_ensure_schema_twice(self, app):
        assert schema_service.ensure_schema() is False
        assert schema_service.ensure_schema() is False
        assert len(catalog_service.list_categories()) == 3

    def test_legacy_store_is_upgraded(self, app_config, app_factory):
        SnapshotStore(app_config["SNAPSHOT_DIR"], "legacy.db").save(_legacy_snapshot())

        upgraded = app_factory(SNAPSHOT_KEY="legacy.db")
        with upgraded.app_context():
            assert "order_number" in schema_service.column_names("orders")
            assert "discount" in schema_service.column_names("orders")
            assert "shipping_ref" in schema_service.column_names("purchase_orders")
            assert "seed_stock" in schema_service.column_names("products")
            assert {"inventory_logs", "settings"} <= schema_service.table_names()

            product = catalog_service.list_products()[0]
            assert product["name"] == "Old Stock Item"
            assert product["stock"] == 25
            assert catalog_service.get_product(product["id"]).seed_stock == 25
            assert orders_service.list_orders()[0]["discount"] == 0.0
            assert ledger_service.reconcile_stock() == []

            # Second pass finds everything applied
            assert schema_service.run_migrations() == []
            db.session.remove()
