from __future__ import annotations

from ..extensions import db
from wms.time_utils import to_utc_z, utcnow


class Category(db.Model):
    """Product category. Unique by name; products point at it by id."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Unit(db.Model):
    """Unit of measure (pcs, box, kg, m2...). Unique by name."""
    __tablename__ = "units"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Product(db.Model):
    """
    Product master data.

    Money is stored in the canonical currency; display conversion happens at
    the API boundary only.

    STOCK:
    - stock is fractional (area/weight units are sold by the decimal)
    - seed_stock is the quantity the product was created with and never changes;
      stock == seed_stock + SUM(inventory_logs.quantity) for the product
    - incoming is derived at read time from open purchase orders, never stored

    category_id / unit_id are nullable references resolved to the current name
    when serialized. Deleting a category or unit nulls them out.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    price = db.Column(db.Float, nullable=False, default=0.0)
    cost = db.Column(db.Float, nullable=False, default=0.0)

    stock = db.Column(db.Float, nullable=False, default=0.0)
    seed_stock = db.Column(db.Float, nullable=False, default=0.0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    category = db.relationship("Category", lazy="joined")
    unit = db.relationship("Unit", lazy="joined")

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self, incoming: float | None = None) -> dict:
        result = {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "cost": self.cost,
            "stock": self.stock,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "unit_id": self.unit_id,
            "unit": self.unit.name if self.unit else None,
            "created_at": to_utc_z(self.created_at),
        }
        if incoming is not None:
            result["incoming"] = incoming
        return result
