from __future__ import annotations

from ..extensions import db
from wms.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = {"cash", "card", "transfer"}


class Order(db.Model):
    """
    Sales order header.

    AMOUNTS (canonical currency):
    - total_amount is the final total, net of discount
    - discount is an amount, not a rate: subtotal == total_amount + discount
    - deposit is the cumulative amount received so far; it may exceed
      total_amount (overpayment is stored as-is, display clamps the balance)

    Created once together with its lines; afterwards only deposit changes.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Free-text external reference typed by the operator
    order_number = db.Column(db.String(64), nullable=True)

    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=True, index=True)
    sales_rep_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=True, index=True)

    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    deposit = db.Column(db.Float, nullable=False, default=0.0)

    payment_method = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    contact = db.relationship("Contact", foreign_keys=[contact_id])
    sales_rep = db.relationship("Contact", foreign_keys=[sales_rep_id])
    items = db.relationship("OrderItem", backref="order", lazy=True, order_by="OrderItem.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "contact_id": self.contact_id,
            "contact_name": self.contact.name if self.contact else None,
            "sales_rep_id": self.sales_rep_id,
            "sales_rep_name": self.sales_rep.name if self.sales_rep else None,
            "total_amount": self.total_amount,
            "discount": self.discount,
            "deposit": self.deposit,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
        }


class OrderItem(db.Model):
    """Sales order line. price_at_sale is copied from the product at sale time."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    quantity = db.Column(db.Float, nullable=False)
    price_at_sale = db.Column(db.Float, nullable=False)

    product = db.relationship("Product")

    @property
    def line_total(self) -> float:
        return self.quantity * self.price_at_sale

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "unit": self.product.unit.name if self.product and self.product.unit else None,
            "quantity": self.quantity,
            "price_at_sale": self.price_at_sale,
            "line_total": self.line_total,
        }
