# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryLog, Product
from ..models.inventory import LOG_ADJUSTMENT, LOG_TYPES
from ..validation import NotFoundError, ValidationError
from .concurrency import transactional
"""
Inventory Ledger Invariants (authoritative)

- Append-only: InventoryLog rows are never updated or deleted.
- Exactly one row per stock-affecting line, written in the same transaction
  as the stock change it records.
- Sign convention: sale < 0, purchase > 0, return > 0, adjustment either way.
- Conservation: for every product,
      products.stock == products.seed_stock + SUM(inventory_logs.quantity)
- No domain logic here beyond the sign check; callers own the business rules.
"""

# Half a minor currency unit. Balances at or below this are settled; repeated
# float additions of converted payments leave residue smaller than this.
PENDING_EPSILON = 0.005

_SIGN_RULES = {
    "sale": lambda q: q < 0,
    "purchase": lambda q: q > 0,
    "return": lambda q: q > 0,
    "adjustment": lambda q: q != 0,
}


def append_inventory_log(
    *,
    product_id: int,
    log_type: str,
    quantity: float,
    reference_id: int | None = None,
    reason: str | None = None,
) -> InventoryLog:
    """
    Append one ledger row. Flushes, never commits.
    """
    if log_type not in LOG_TYPES:
        raise ValidationError(f"Invalid inventory log type: {log_type}")
    if not _SIGN_RULES[log_type](quantity):
        raise ValidationError(f"Quantity {quantity} has the wrong sign for a {log_type} entry")

    entry = InventoryLog(
        product_id=product_id,
        type=log_type,
        quantity=quantity,
        reference_id=reference_id,
        reason=reason,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_inventory_log(
    *,
    product_id: int | None = None,
    log_type: str | None = None,
    reference_id: int | None = None,
    limit: int | None = None,
) -> list[InventoryLog]:
    query = db.session.query(InventoryLog)
    if product_id is not None:
        query = query.filter(InventoryLog.product_id == product_id)
    if log_type:
        query = query.filter(InventoryLog.type == log_type)
    if reference_id is not None:
        query = query.filter(InventoryLog.reference_id == reference_id)
    query = query.order_by(InventoryLog.id.asc())
    if limit:
        query = query.limit(limit)
    return query.all()


def ledger_total(product_id: int) -> float:
    total = db.session.query(
        func.coalesce(func.sum(InventoryLog.quantity), 0)
    ).filter(InventoryLog.product_id == product_id).scalar()
    return float(total or 0)


def reconcile_stock(tolerance: float = 1e-6) -> list[dict]:
    """
    Products whose stock does not equal seed_stock + ledger sum.

    An empty list means the ledger fully explains current stock.
    """
    sums = (
        db.session.query(
            InventoryLog.product_id.label("product_id"),
            func.sum(InventoryLog.quantity).label("delta"),
        )
        .group_by(InventoryLog.product_id)
        .subquery()
    )
    rows = (
        db.session.query(Product, func.coalesce(sums.c.delta, 0))
        .outerjoin(sums, sums.c.product_id == Product.id)
        .all()
    )
    mismatches = []
    for product, delta in rows:
        expected = (product.seed_stock or 0.0) + float(delta or 0)
        if abs(expected - product.stock) > tolerance:
            mismatches.append({
                "product_id": product.id,
                "stock": product.stock,
                "expected": expected,
            })
    return mismatches


@transactional
def adjust_stock(product_id: int, delta: float, reason: str | None = None) -> InventoryLog:
    """Manual stock correction (count differences, damage...)."""
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    try:
        delta = float(delta)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be a number")
    if delta == 0:
        raise ValidationError("quantity must be non-zero for an adjustment")

    product.stock = product.stock + delta
    return append_inventory_log(
        product_id=product.id,
        log_type=LOG_ADJUSTMENT,
        quantity=delta,
        reason=reason or "Manual adjustment",
    )


def order_balance(total_amount: float, deposit: float) -> float:
    """Stored balance; negative when the customer overpaid."""
    return (total_amount or 0.0) - (deposit or 0.0)


def balance_due(total_amount: float, deposit: float) -> float:
    """Balance for display: never below zero."""
    return max(order_balance(total_amount, deposit), 0.0)


def is_payment_pending(total_amount: float, deposit: float) -> bool:
    return order_balance(total_amount, deposit) > PENDING_EPSILON
