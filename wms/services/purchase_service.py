# Overview: Service-layer operations for purchase orders; encapsulates business logic.

"""
Purchase Order Service

LIFECYCLE:
1. ordered: created with its lines
2. shipped: goods in transit (shipping_ref usually set here)
3. received: quantities applied to stock; terminal

Status only moves forward. Receiving is the only way into 'received' and is
refused for a PO that is already received, so stock is credited exactly once.
Lines are never edited after creation.
"""

from __future__ import annotations

import logging
from datetime import date

from ..extensions import db
from ..models import Contact, Product, PurchaseOrder, PurchaseOrderItem
from ..models.inventory import LOG_PURCHASE
from ..models.purchasing import (
    PO_STATUS_FLOW,
    PO_STATUS_ORDERED,
    PO_STATUS_RECEIVED,
)
from ..validation import ConflictError, NotFoundError, ValidationError, require_positive
from .concurrency import transactional
from .ledger_service import append_inventory_log
from wms.time_utils import parse_iso_date, parse_iso_datetime

logger = logging.getLogger(__name__)


class PurchaseOrderError(ValidationError):
    """Raised when purchase order data fails validation."""


class PurchaseOrderStateError(ConflictError):
    """Raised when an operation is invalid for the current PO status."""


def _parse_arrival(value) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise PurchaseOrderError("expected_arrival_date must be an ISO-8601 date")


def _normalize_lines(lines: list[dict]) -> list[dict]:
    if not lines:
        raise PurchaseOrderError("Cannot create a purchase order with no lines")
    normalized = []
    for index, line in enumerate(lines, start=1):
        product_id = line.get("product_id") if isinstance(line, dict) else None
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise PurchaseOrderError(f"Line {index}: product_id must be an integer")
        if not db.session.get(Product, product_id):
            raise PurchaseOrderError(f"Line {index}: product {product_id} not found")
        quantity = require_positive(line.get("quantity"), f"line {index} quantity")
        normalized.append({"product_id": product_id, "quantity": quantity})
    return normalized


@transactional
def create_purchase_order(header: dict, lines: list[dict]) -> int:
    """
    Create a purchase order in status 'ordered' together with its lines.

    Stock is not touched until the PO is received.

    Returns:
        The new purchase order id
    """
    header = header or {}
    distributor_id = header.get("distributor_id")
    if distributor_id is not None:
        contact = db.session.get(Contact, distributor_id)
        if not contact:
            raise PurchaseOrderError(f"Distributor {distributor_id} not found")

    items = _normalize_lines(lines)

    po = PurchaseOrder(
        distributor_id=distributor_id,
        shipping_ref=(header.get("shipping_ref") or None),
        status=PO_STATUS_ORDERED,
        expected_arrival_date=_parse_arrival(header.get("expected_arrival_date")),
    )
    if header.get("created_at"):
        try:
            po.created_at = parse_iso_datetime(str(header["created_at"]))
        except ValueError:
            raise PurchaseOrderError("created_at must be an ISO-8601 datetime")
    db.session.add(po)
    db.session.flush()

    for item in items:
        db.session.add(PurchaseOrderItem(po_id=po.id, **item))

    db.session.flush()
    return po.id


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found")
    return po


@transactional
def update_purchase_order(
    po_id: int,
    *,
    status: str | None = None,
    expected_arrival_date=None,
    shipping_ref: str | None = None,
) -> PurchaseOrder:
    """
    Edit header fields and/or advance status (ordered -> shipped).

    Raises:
        PurchaseOrderStateError: PO already received, backwards move, or an
            attempt to set 'received' here (use receive_purchase_order)
    """
    po = get_purchase_order(po_id)
    if po.status == PO_STATUS_RECEIVED:
        raise PurchaseOrderStateError(f"Purchase order {po_id} is already received")

    if status is not None and status != po.status:
        if status not in PO_STATUS_FLOW:
            raise PurchaseOrderError(f"Invalid status: {status}")
        if status == PO_STATUS_RECEIVED:
            raise PurchaseOrderStateError("Use receive to mark a purchase order as received")
        if PO_STATUS_FLOW.index(status) < PO_STATUS_FLOW.index(po.status):
            raise PurchaseOrderStateError(f"Cannot move purchase order from {po.status} back to {status}")
        po.status = status

    if expected_arrival_date is not None:
        po.expected_arrival_date = _parse_arrival(expected_arrival_date)
    if shipping_ref is not None:
        po.shipping_ref = shipping_ref.strip() or None

    db.session.flush()
    return po


@transactional
def receive_purchase_order(po_id: int) -> PurchaseOrder:
    """
    Receive goods: credit stock for every line and close the PO.

    For each line: stock += quantity and one purchase ledger row (+quantity)
    referencing the PO. Lines whose product was deleted credit nothing. Then
    status = received.

    Raises:
        NotFoundError: unknown PO
        PurchaseOrderStateError: PO already received (stock is not re-applied)
    """
    po = get_purchase_order(po_id)
    if po.status == PO_STATUS_RECEIVED:
        raise PurchaseOrderStateError(f"Purchase order {po_id} is already received")

    for line in po.items:
        product = db.session.get(Product, line.product_id) if line.product_id else None
        if product is None:
            # Product deleted since ordering: nothing to credit
            logger.warning("PO %s line %s: product %s no longer exists, skipped", po.id, line.id, line.product_id)
            continue
        product.stock = product.stock + line.quantity
        append_inventory_log(
            product_id=product.id,
            log_type=LOG_PURCHASE,
            quantity=line.quantity,
            reference_id=po.id,
            reason=f"PO {po.id}" + (f" ({po.shipping_ref})" if po.shipping_ref else ""),
        )

    po.status = PO_STATUS_RECEIVED
    db.session.flush()
    return po


# --- Reads ---

def list_purchase_orders(status: str | None = None) -> list[dict]:
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    query = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
    return [po.to_dict() for po in query.all()]


def list_incoming_purchase_orders() -> list[dict]:
    """Open POs (anything not yet received), soonest expected arrival first."""
    pos = (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.status != PO_STATUS_RECEIVED)
        .order_by(PurchaseOrder.expected_arrival_date.is_(None), PurchaseOrder.expected_arrival_date.asc(), PurchaseOrder.id.asc())
        .all()
    )
    return [po.to_dict() for po in pos]


def get_purchase_order_items(po_id: int) -> list[dict]:
    items = (
        db.session.query(PurchaseOrderItem)
        .filter(PurchaseOrderItem.po_id == po_id)
        .order_by(PurchaseOrderItem.id.asc())
        .all()
    )
    return [item.to_dict() for item in items]


def get_purchase_order_with_items(po_id: int) -> dict:
    po = get_purchase_order(po_id)
    result = po.to_dict()
    result["items"] = get_purchase_order_items(po_id)
    result["total_quantity"] = sum(item["quantity"] for item in result["items"])
    return result
