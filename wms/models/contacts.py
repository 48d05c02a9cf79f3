from __future__ import annotations

from ..extensions import db

CONTACT_TYPES = {"customer", "distributor", "sales_rep"}


class Contact(db.Model):
    """
    Customers, distributors and sales reps share one table.

    The role is a data attribute (type), not a type distinction: a purchase
    order's distributor and a sales order's rep are both contact ids.
    """
    __tablename__ = "contacts"
    __table_args__ = (
        db.Index("ix_contacts_type_name", "type", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(16), nullable=False, default="customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone or "",
            "email": self.email or "",
            "address": self.address or "",
            "type": self.type,
        }
