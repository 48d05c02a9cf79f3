# WMS Tests - Export / import
#
# Tests for:
# - Export covers every table in primary key order
# - Import replaces the store and survives a restart
# - Validation failures leave the store untouched
# - Failures during replacement restore the previous store
# - Older export formats (category names, plain passwords)

import json

import pytest

from wms.extensions import db
from wms.services import auth_service, backup_service, catalog_service, ledger_service, orders_service
from wms.services.backup_service import ImportValidationError


class TestExport:

    def test_every_table_exported(self, app, product):
        document = backup_service.export_data()
        assert set(document) == set(db.metadata.tables)
        assert [p["name"] for p in document["products"]] == ["Product P"]
        assert [u["username"] for u in document["users"]] == ["admin", "user"]

    def test_rows_are_json_ready(self, app, product):
        orders_service.fulfill_order({"created_at": "2024-02-01T10:30:00Z"}, [{"product_id": product.id, "quantity": 2, "price": 5.0}])
        text = backup_service.export_json()
        document = json.loads(text)
        assert document["orders"][0]["created_at"] == "2024-02-01T10:30:00"
        assert document["inventory_logs"][0]["quantity"] == -2


class TestImport:

    def test_round_trip_through_import(self, app, app_factory, product, customer):
        orders_service.fulfill_order({"contact_id": customer.id}, [{"product_id": product.id, "quantity": 10, "price": 5.0}])
        document = backup_service.export_data()

        catalog_service.create_product({"name": "Added later", "stock": 3})
        counts = backup_service.import_data(document)

        assert counts["products"] == 1
        assert [p["name"] for p in catalog_service.list_products()] == ["Product P"]
        assert catalog_service.list_products()[0]["stock"] == 90
        assert ledger_service.reconcile_stock() == []

        restarted = app_factory()
        with restarted.app_context():
            assert [p["name"] for p in catalog_service.list_products()] == ["Product P"]
            db.session.remove()

    def test_accepts_json_text(self, app, product):
        text = backup_service.export_json()
        counts = backup_service.import_data(text)
        assert counts["users"] == 2

    @pytest.mark.parametrize("document", [
        "not json",
        [],
        {"products": []},
        {"users": []},
        {"products": {}, "users": []},
        {"products": ["oops"], "users": []},
        {"products": [{"id": 1, "name": "X", "stock": "many"}], "users": []},
    ])
    def test_invalid_document_leaves_store_untouched(self, app, product, document):
        with pytest.raises(ImportValidationError):
            backup_service.import_data(document)
        assert [p["name"] for p in catalog_service.list_products()] == ["Product P"]

    def test_failure_during_replace_restores_store(self, app, product):
        """
        SCENARIO: document passes validation but violates a constraint on insert
        EXPECTED: previous store restored, nothing lost
        """
        document = {
            "products": [{"id": 1, "name": "Dup", "price": 1, "cost": 1, "stock": 1}],
            "users": [
                {"id": 1, "username": "same", "password_hash": "x", "role": "admin", "is_logged_in": False},
                {"id": 2, "username": "same", "password_hash": "y", "role": "admin", "is_logged_in": False},
            ],
        }
        with pytest.raises(Exception):
            backup_service.import_data(document)

        assert [p["name"] for p in catalog_service.list_products()] == ["Product P"]
        assert {u.username for u in auth_service.list_users()} == {"admin", "user"}

    def test_legacy_document(self, app):
        document = {
            "categories": [{"id": 7, "name": "Tiles"}],
            "units": [{"id": 3, "name": "m2"}],
            "products": [
                {"id": 5, "name": "Marble", "price": 120, "cost": 80, "stock": 10,
                 "category": "Tiles", "unit": "m2", "created_at": "2023-05-01T00:00:00"},
            ],
            "inventory_logs": [
                {"id": 1, "product_id": 5, "type": "purchase", "quantity": 4, "created_at": "2023-05-02T00:00:00"},
            ],
            "users": [{"id": 1, "username": "owner", "password": "pw", "role": "admin", "is_logged_in": 0}],
            "legacy_table": [{"x": 1}],
        }
        backup_service.import_data(document)

        product = catalog_service.get_product(5)
        assert product.to_dict()["category"] == "Tiles"
        assert product.to_dict()["unit"] == "m2"
        assert product.seed_stock == 6
        assert ledger_service.reconcile_stock() == []
        assert auth_service.login("owner", "pw").ok
