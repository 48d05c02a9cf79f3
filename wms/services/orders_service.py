"""
Sales Orders Service

fulfill_order is the compound sale transaction: header, lines, stock and
ledger are written together or not at all.

AMOUNTS: everything here is canonical currency. Callers convert display
amounts with wms.currency before calling in.

STOCK: there is no availability check; stock may go negative (orders are
taken against incoming goods).
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Contact, InventoryLog, Order, OrderItem, Product
from ..models.inventory import LOG_RETURN, LOG_SALE
from ..models.orders import PAYMENT_METHODS
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_choice,
    require_non_negative,
    require_positive,
    validate_payload,
)
from .concurrency import transactional
from .ledger_service import (
    PENDING_EPSILON,
    append_inventory_log,
    balance_due,
    is_payment_pending,
)


ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "order_number",
        "contact_id",
        "sales_rep_id",
        "total_amount",
        "discount",
        "deposit",
        "payment_method",
        "created_at",
    },
)

# Tolerance when checking total_amount + discount against the line subtotal
AMOUNT_TOLERANCE = 0.005


class OrderError(ValidationError):
    """Raised for invalid sales order input."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _normalize_lines(lines: list[dict]) -> list[dict]:
    if not lines:
        raise OrderError("Cannot create an order with no lines")

    normalized = []
    for index, line in enumerate(lines, start=1):
        if not isinstance(line, dict):
            raise OrderError(f"Line {index} is not an object")
        product_id = line.get("product_id")
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise OrderError(f"Line {index}: product_id must be an integer")
        quantity = require_positive(line.get("quantity"), f"line {index} quantity")
        price = line.get("price_at_sale", line.get("price"))
        if price is None:
            raise OrderError(f"Line {index}: price_at_sale is required")
        try:
            price = float(price)
        except (TypeError, ValueError):
            raise OrderError(f"Line {index}: price_at_sale must be a number")
        if price < 0:
            raise OrderError(f"Line {index}: price_at_sale must be >= 0")
        normalized.append({"product_id": product_id, "quantity": quantity, "price_at_sale": price})
    return normalized


def _check_contact(contact_id: int | None, field: str) -> None:
    if contact_id is not None and not db.session.get(Contact, contact_id):
        raise OrderError(f"{field} {contact_id} not found")


@transactional
def fulfill_order(header: dict, lines: list[dict]) -> int:
    """
    Create a sales order and apply it to stock.

    For each line: copy the unit price into the line, decrement stock by the
    quantity, append a sale ledger row (-quantity) referencing the order.

    total_amount is net of discount. When omitted it is computed from the
    lines; when supplied it must equal subtotal - discount.

    Returns:
        The new order id

    Raises:
        OrderError / ValidationError: invalid header or lines (nothing written)
    """
    patch = validate_payload(model=Order, payload=header or {}, policy=ORDER_POLICY, partial=False)
    require_non_negative(patch, "total_amount", "discount", "deposit")
    if patch.get("payment_method") is not None:
        require_choice(patch["payment_method"], "payment_method", PAYMENT_METHODS)
    _check_contact(patch.get("contact_id"), "Contact")
    _check_contact(patch.get("sales_rep_id"), "Sales rep")

    items = _normalize_lines(lines)

    subtotal = sum(item["quantity"] * item["price_at_sale"] for item in items)
    discount = patch.get("discount") or 0.0
    if discount > subtotal + AMOUNT_TOLERANCE:
        raise OrderError("Discount cannot exceed the order subtotal")

    expected_total = subtotal - discount
    total_amount = patch.get("total_amount")
    if total_amount is None:
        total_amount = expected_total
    elif abs(total_amount - expected_total) > AMOUNT_TOLERANCE:
        raise OrderError(
            "total_amount must equal subtotal minus discount",
            details={"subtotal": subtotal, "discount": discount, "total_amount": total_amount},
        )

    patch["total_amount"] = total_amount
    patch["discount"] = discount
    patch["deposit"] = patch.get("deposit") or 0.0
    if patch.get("created_at") is None:
        patch.pop("created_at", None)

    order = Order(**patch)
    db.session.add(order)
    db.session.flush()

    for item in items:
        product = db.session.get(Product, item["product_id"])
        if not product:
            raise OrderError(f"Product {item['product_id']} not found")

        db.session.add(OrderItem(order_id=order.id, **item))
        product.stock = product.stock - item["quantity"]
        append_inventory_log(
            product_id=product.id,
            log_type=LOG_SALE,
            quantity=-item["quantity"],
            reference_id=order.id,
            reason=f"Order {order.order_number or order.id}",
        )

    db.session.flush()
    return order.id


@transactional
def settle_deposit(order_id: int, amount: float) -> Order:
    """
    Add a payment to the order's cumulative deposit.

    There is no upper bound: overpayment is stored as-is and the displayed
    balance due clamps to zero.
    """
    order = get_order(order_id)
    amount = require_positive(amount, "amount")
    order.deposit = (order.deposit or 0.0) + amount
    db.session.flush()
    return order


def returned_quantity(order_id: int, product_id: int) -> float:
    total = db.session.query(func.coalesce(func.sum(InventoryLog.quantity), 0)).filter(
        InventoryLog.type == LOG_RETURN,
        InventoryLog.reference_id == order_id,
        InventoryLog.product_id == product_id,
    ).scalar()
    return float(total or 0)


@transactional
def record_return(order_id: int, product_id: int, quantity: float, reason: str | None = None) -> InventoryLog:
    """
    Put goods from a sales order back into stock.

    The product must be on the order and the cumulative returned quantity
    may not exceed what was sold. Order amounts are not changed.
    """
    order = get_order(order_id)
    quantity = require_positive(quantity, "quantity")

    sold = sum(item.quantity for item in order.items if item.product_id == product_id)
    if sold <= 0:
        raise OrderError(f"Product {product_id} is not on order {order_id}")
    already = returned_quantity(order_id, product_id)
    if already + quantity > sold + 1e-9:
        raise OrderError(
            "Return quantity exceeds quantity sold",
            details={"sold": sold, "already_returned": already, "requested": quantity},
        )

    product = db.session.get(Product, product_id)
    if not product:
        raise OrderError(f"Product {product_id} not found")
    product.stock = product.stock + quantity
    return append_inventory_log(
        product_id=product_id,
        log_type=LOG_RETURN,
        quantity=quantity,
        reference_id=order_id,
        reason=reason or f"Return on order {order.order_number or order.id}",
    )


# --- Reads ---

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def order_to_dict(order: Order) -> dict:
    result = order.to_dict()
    result["balance_due"] = balance_due(order.total_amount, order.deposit)
    result["is_pending"] = is_payment_pending(order.total_amount, order.deposit)
    return result


def list_orders(limit: int | None = None) -> list[dict]:
    query = db.session.query(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if limit:
        query = query.limit(limit)
    return [order_to_dict(o) for o in query.all()]


def list_pending_orders() -> list[dict]:
    """Orders whose unpaid balance exceeds half a minor unit."""
    orders = (
        db.session.query(Order)
        .filter((Order.total_amount - Order.deposit) > PENDING_EPSILON)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [order_to_dict(o) for o in orders]


def get_order_items(order_id: int) -> list[dict]:
    items = (
        db.session.query(OrderItem)
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.id.asc())
        .all()
    )
    return [item.to_dict() for item in items]


def get_order_with_items(order_id: int) -> dict:
    order = get_order(order_id)
    result = order_to_dict(order)
    result["items"] = get_order_items(order_id)
    result["subtotal"] = sum(item["line_total"] for item in result["items"])
    return result
