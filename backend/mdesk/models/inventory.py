from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z


class InventoryLedgerEntry(db.Model):
    """
    Append-only audit row for manual stock adjustments.

    previous_stock + quantity_changed == new_stock always holds.
    """
    __tablename__ = "inventory_ledger"
    __table_args__ = (
        db.Index("ix_inventory_ledger_sku_created", "sku", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    previous_stock = db.Column(db.Integer, nullable=False)
    quantity_changed = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(64), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "previous_stock": self.previous_stock,
            "quantity_changed": self.quantity_changed,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
