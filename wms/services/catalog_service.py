# Overview: Service-layer operations for the product catalog; encapsulates business logic and database work.

"""
Catalog Service

Products, categories and units.

RULES:
- incoming is computed at read time from purchase-order lines whose order is
  not yet received; it is never stored
- add_category / add_unit are idempotent by name: a duplicate is a silent no-op
  that returns the existing row
- deleting a category or unit nulls products' reference to it in the same
  transaction (no dangling ids, no blocking)
- product delete is an unconditional hard delete; order and PO lines that
  point at it read back with an empty product name
- any stock change made through update_product is journaled as an
  adjustment so stock stays reconcilable with the inventory log
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product, PurchaseOrder, PurchaseOrderItem, Unit
from ..models.purchasing import PO_STATUS_RECEIVED
from ..models.inventory import LOG_ADJUSTMENT
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_non_negative,
    validate_payload,
)
from .concurrency import transactional
from .ledger_service import append_inventory_log


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price", "cost", "stock", "category_id", "unit_id"},
    required_on_create={"name"},
)


def _incoming_subquery():
    return (
        db.session.query(
            PurchaseOrderItem.product_id.label("product_id"),
            func.sum(PurchaseOrderItem.quantity).label("incoming"),
        )
        .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.po_id)
        .filter(PurchaseOrder.status != PO_STATUS_RECEIVED)
        .group_by(PurchaseOrderItem.product_id)
        .subquery()
    )


def list_products() -> list[dict]:
    """All products, newest first, each with its derived incoming quantity."""
    incoming = _incoming_subquery()
    rows = (
        db.session.query(Product, func.coalesce(incoming.c.incoming, 0))
        .outerjoin(incoming, incoming.c.product_id == Product.id)
        .order_by(Product.id.desc())
        .all()
    )
    return [product.to_dict(incoming=float(qty or 0)) for product, qty in rows]


def get_incoming_quantity(product_id: int) -> float:
    total = (
        db.session.query(func.coalesce(func.sum(PurchaseOrderItem.quantity), 0))
        .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.po_id)
        .filter(
            PurchaseOrderItem.product_id == product_id,
            PurchaseOrder.status != PO_STATUS_RECEIVED,
        )
        .scalar()
    )
    return float(total or 0)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def count_low_stock(threshold: float) -> int:
    return db.session.query(func.count(Product.id)).filter(Product.stock < threshold).scalar() or 0


def _resolve_names(payload: dict) -> dict:
    """
    Accept category/unit by name as well as by id.

    Older clients send the name string; an unknown name is invalid input.
    """
    payload = dict(payload or {})
    for name_key, id_key, model in (("category", "category_id", Category), ("unit", "unit_id", Unit)):
        if name_key not in payload:
            continue
        name = payload.pop(name_key)
        if id_key in payload:
            continue
        if name is None or str(name).strip() == "":
            payload[id_key] = None
            continue
        row = db.session.query(model).filter_by(name=str(name).strip()).first()
        if not row:
            raise ValidationError(f"Unknown {name_key}: {name}")
        payload[id_key] = row.id
    return payload


def _check_references(patch: dict) -> None:
    if patch.get("category_id") is not None and not db.session.get(Category, patch["category_id"]):
        raise ValidationError(f"Category {patch['category_id']} not found")
    if patch.get("unit_id") is not None and not db.session.get(Unit, patch["unit_id"]):
        raise ValidationError(f"Unit {patch['unit_id']} not found")


@transactional
def create_product(payload: dict) -> Product:
    """
    Create a product. The initial stock becomes the product's seed stock.

    Raises:
        ValidationError: bad or missing fields, unknown category/unit
    """
    patch = validate_payload(
        model=Product,
        payload=_resolve_names(payload),
        policy=PRODUCT_POLICY,
        partial=False,
    )
    require_non_negative(patch, "price", "cost")
    _check_references(patch)

    stock = patch.get("stock") or 0.0
    product = Product(**patch)
    product.stock = stock
    product.seed_stock = stock
    db.session.add(product)
    db.session.flush()
    return product


@transactional
def update_product(product_id: int, payload: dict) -> Product:
    product = get_product(product_id)
    patch = validate_payload(
        model=Product,
        payload=_resolve_names(payload),
        policy=PRODUCT_POLICY,
        partial=True,
    )
    require_non_negative(patch, "price", "cost")
    _check_references(patch)

    new_stock = patch.pop("stock", None)
    for key, value in patch.items():
        setattr(product, key, value)

    if new_stock is not None and new_stock != product.stock:
        delta = new_stock - product.stock
        product.stock = new_stock
        append_inventory_log(
            product_id=product.id,
            log_type=LOG_ADJUSTMENT,
            quantity=delta,
            reason="Manual stock edit",
        )

    db.session.flush()
    return product


@transactional
def delete_product(product_id: int) -> bool:
    deleted = db.session.query(Product).filter_by(id=product_id).delete()
    return bool(deleted)


# --- Categories / Units ---

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def list_units() -> list[Unit]:
    return db.session.query(Unit).order_by(Unit.name.asc()).all()


def _add_named(model, name: str):
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    existing = db.session.query(model).filter_by(name=name).first()
    if existing:
        return existing
    row = model(name=name)
    db.session.add(row)
    db.session.flush()
    return row


@transactional
def add_category(name: str) -> Category:
    """Add a category; an existing name is returned unchanged."""
    return _add_named(Category, name)


@transactional
def add_unit(name: str) -> Unit:
    """Add a unit; an existing name is returned unchanged."""
    return _add_named(Unit, name)


@transactional
def delete_category(category_id: int) -> bool:
    db.session.query(Product).filter(Product.category_id == category_id).update(
        {Product.category_id: None}, synchronize_session="fetch"
    )
    deleted = db.session.query(Category).filter_by(id=category_id).delete()
    return bool(deleted)


@transactional
def delete_unit(unit_id: int) -> bool:
    db.session.query(Product).filter(Product.unit_id == unit_id).update(
        {Product.unit_id: None}, synchronize_session="fetch"
    )
    deleted = db.session.query(Unit).filter_by(id=unit_id).delete()
    return bool(deleted)
