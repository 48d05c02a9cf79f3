from __future__ import annotations

from ..extensions import db
from wms.time_utils import to_utc_z, utcnow

LOG_SALE = "sale"
LOG_PURCHASE = "purchase"
LOG_ADJUSTMENT = "adjustment"
LOG_RETURN = "return"
LOG_TYPES = {LOG_SALE, LOG_PURCHASE, LOG_ADJUSTMENT, LOG_RETURN}


class InventoryLog(db.Model):
    """
    Append-only stock audit trail (the ledger).

    - quantity is a signed delta: negative for sales, positive for receipts
      and returns, either sign for adjustments
    - reference_id is the originating order or purchase order id
    - rows are never updated or deleted
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_inventory_logs_product_created", "product_id", "created_at"),
        db.Index("ix_inventory_logs_type_reference", "type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    reference_id = db.Column(db.Integer, nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "reference_id": self.reference_id,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
