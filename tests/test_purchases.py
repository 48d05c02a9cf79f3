# WMS Tests - Purchase orders
#
# Tests for:
# - PO creation (status ordered, stock untouched, incoming derived)
# - Status advancing (forward only, received only through receive)
# - Receipt (stock credit, purchase log rows, terminal state)
# - Second receive rejected without touching stock

from datetime import date

import pytest

from wms.services import catalog_service, ledger_service, purchase_service
from wms.services.purchase_service import PurchaseOrderError, PurchaseOrderStateError
from wms.validation import ConflictError, NotFoundError


@pytest.fixture
def purchase_order(product, distributor):
    return purchase_service.create_purchase_order(
        {"distributor_id": distributor.id, "expected_arrival_date": "2024-05-01"},
        [{"product_id": product.id, "quantity": 20}],
    )


class TestCreatePurchaseOrder:

    def test_created_as_ordered(self, product, purchase_order):
        po = purchase_service.get_purchase_order_with_items(purchase_order)
        assert po["status"] == "ordered"
        assert po["distributor_name"] == "Global Tech Supply"
        assert po["expected_arrival_date"] == "2024-05-01"
        assert po["total_quantity"] == 20
        assert po["items"][0]["product_name"] == "Product P"
        # Stock only changes on receipt
        assert catalog_service.get_product(product.id).stock == 100

    def test_incoming_is_derived(self, product, purchase_order):
        assert catalog_service.get_incoming_quantity(product.id) == 20
        listed = {p["id"]: p for p in catalog_service.list_products()}
        assert listed[product.id]["incoming"] == 20

        purchase_service.receive_purchase_order(purchase_order)
        assert catalog_service.get_incoming_quantity(product.id) == 0

    def test_unknown_product_rejected(self, app):
        with pytest.raises(PurchaseOrderError):
            purchase_service.create_purchase_order({}, [{"product_id": 777, "quantity": 1}])

    def test_unknown_distributor_rejected(self, product):
        with pytest.raises(PurchaseOrderError):
            purchase_service.create_purchase_order({"distributor_id": 999}, [{"product_id": product.id, "quantity": 1}])

    def test_empty_lines_rejected(self, app):
        with pytest.raises(PurchaseOrderError):
            purchase_service.create_purchase_order({}, [])

    def test_bad_arrival_date_rejected(self, product):
        with pytest.raises(PurchaseOrderError):
            purchase_service.create_purchase_order(
                {"expected_arrival_date": "next tuesday"},
                [{"product_id": product.id, "quantity": 1}],
            )


class TestUpdatePurchaseOrder:

    def test_advance_to_shipped(self, purchase_order):
        po = purchase_service.update_purchase_order(purchase_order, status="shipped", shipping_ref="MSCU1234567")
        assert po.status == "shipped"
        assert po.shipping_ref == "MSCU1234567"

    def test_edit_arrival_date(self, purchase_order):
        po = purchase_service.update_purchase_order(purchase_order, expected_arrival_date="2024-06-15")
        assert po.expected_arrival_date == date(2024, 6, 15)

    def test_cannot_move_backwards(self, purchase_order):
        purchase_service.update_purchase_order(purchase_order, status="shipped")
        with pytest.raises(PurchaseOrderStateError):
            purchase_service.update_purchase_order(purchase_order, status="ordered")

    def test_cannot_set_received_directly(self, product, purchase_order):
        with pytest.raises(PurchaseOrderStateError):
            purchase_service.update_purchase_order(purchase_order, status="received")
        assert catalog_service.get_product(product.id).stock == 100

    def test_unknown_status(self, purchase_order):
        with pytest.raises(PurchaseOrderError):
            purchase_service.update_purchase_order(purchase_order, status="lost")


class TestReceivePurchaseOrder:

    def test_receive_scenario(self, product, purchase_order):
        """
        SCENARIO: PO with one line of 20 for P (stock 100)
        EXPECTED: stock 110 after selling 10, status received, one purchase row of +20
        """
        from wms.services import orders_service
        orders_service.fulfill_order({}, [{"product_id": product.id, "quantity": 10, "price": 5.0}])

        po = purchase_service.receive_purchase_order(purchase_order)
        assert po.status == "received"
        assert catalog_service.get_product(product.id).stock == 110

        rows = ledger_service.list_inventory_log(log_type="purchase")
        assert len(rows) == 1
        assert rows[0].quantity == 20
        assert rows[0].reference_id == purchase_order

    def test_second_receive_rejected(self, product, purchase_order):
        purchase_service.receive_purchase_order(purchase_order)

        with pytest.raises(PurchaseOrderStateError) as exc_info:
            purchase_service.receive_purchase_order(purchase_order)

        assert isinstance(exc_info.value, ConflictError)
        assert catalog_service.get_product(product.id).stock == 120
        assert len(ledger_service.list_inventory_log(log_type="purchase")) == 1

    def test_received_po_is_frozen(self, purchase_order):
        purchase_service.receive_purchase_order(purchase_order)
        with pytest.raises(PurchaseOrderStateError):
            purchase_service.update_purchase_order(purchase_order, shipping_ref="late edit")

    def test_receive_from_shipped(self, product, purchase_order):
        purchase_service.update_purchase_order(purchase_order, status="shipped")
        purchase_service.receive_purchase_order(purchase_order)
        assert catalog_service.get_product(product.id).stock == 120

    def test_receive_after_product_deleted(self, product, second_product):
        """
        SCENARIO: PO for P and Cable, Cable hard-deleted before the goods arrive
        EXPECTED: PO closes, P credited, nothing written for the deleted line
        """
        product_id, cable_id = product.id, second_product.id
        po_id = purchase_service.create_purchase_order(
            {}, [{"product_id": product_id, "quantity": 20}, {"product_id": cable_id, "quantity": 5}]
        )
        assert catalog_service.delete_product(cable_id) is True

        po = purchase_service.receive_purchase_order(po_id)
        assert po.status == "received"
        assert catalog_service.get_product(product_id).stock == 120

        rows = ledger_service.list_inventory_log(reference_id=po_id)
        assert [(r.product_id, r.quantity) for r in rows] == [(product_id, 20)]
        assert purchase_service.list_incoming_purchase_orders() == []
        assert ledger_service.reconcile_stock() == []

    def test_unknown_po(self, app):
        with pytest.raises(NotFoundError):
            purchase_service.receive_purchase_order(31337)


class TestPurchaseOrderListing:

    def test_incoming_listing_excludes_received(self, product, distributor):
        first = purchase_service.create_purchase_order(
            {"expected_arrival_date": "2024-07-01"}, [{"product_id": product.id, "quantity": 1}]
        )
        second = purchase_service.create_purchase_order(
            {"expected_arrival_date": "2024-06-01"}, [{"product_id": product.id, "quantity": 2}]
        )
        third = purchase_service.create_purchase_order({}, [{"product_id": product.id, "quantity": 3}])
        purchase_service.receive_purchase_order(first)

        incoming = [po["id"] for po in purchase_service.list_incoming_purchase_orders()]
        assert incoming == [second, third]

        received = purchase_service.list_purchase_orders("received")
        assert [po["id"] for po in received] == [first]
