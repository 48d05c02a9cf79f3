from __future__ import annotations

from ..extensions import db
from wms.time_utils import to_utc_z, utcnow

PO_STATUS_ORDERED = "ordered"
PO_STATUS_SHIPPED = "shipped"
PO_STATUS_RECEIVED = "received"

# Linear state machine; received is terminal
PO_STATUS_FLOW = [PO_STATUS_ORDERED, PO_STATUS_SHIPPED, PO_STATUS_RECEIVED]


class PurchaseOrder(db.Model):
    """
    Purchase order from a distributor.

    LIFECYCLE: ordered -> shipped -> received. Status only advances forward.
    Receiving applies line quantities to stock exactly once.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    distributor_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=True, index=True)

    # Container number / tracking id
    shipping_ref = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_ORDERED)
    expected_arrival_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    distributor = db.relationship("Contact", foreign_keys=[distributor_id])
    items = db.relationship("PurchaseOrderItem", backref="purchase_order", lazy=True, order_by="PurchaseOrderItem.id")

    @property
    def is_incoming(self) -> bool:
        return self.status != PO_STATUS_RECEIVED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "distributor_id": self.distributor_id,
            "distributor_name": self.distributor.name if self.distributor else None,
            "shipping_ref": self.shipping_ref,
            "status": self.status,
            "expected_arrival_date": (
                self.expected_arrival_date.isoformat() if self.expected_arrival_date else None
            ),
            "created_at": to_utc_z(self.created_at),
            "is_incoming": self.is_incoming,
        }


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    quantity = db.Column(db.Float, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_id": self.po_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "unit": self.product.unit.name if self.product and self.product.unit else None,
            "quantity": self.quantity,
        }
