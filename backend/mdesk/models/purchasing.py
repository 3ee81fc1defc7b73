from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z, to_iso_date


class PurchaseOrder(db.Model):
    """
    Order placed with a vendor.

    Lifecycle is one-directional: draft -> confirmed -> billed. Receiving
    the order increments stock and raises the vendor bill in one step.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.CheckConstraint("status IN ('draft', 'confirmed', 'billed')", name="ck_purchase_orders_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)

    vendor_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    order_date = db.Column(db.Date, nullable=False, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    vendor = db.relationship("Contact")
    lines = db.relationship(
        "PurchaseOrderLine",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "order_date": to_iso_date(self.order_date),
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "notes": self.notes,
            "lines": [line.to_dict() for line in self.lines],
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "received_at": to_utc_z(self.received_at),
        }


class PurchaseOrderLine(db.Model):
    __tablename__ = "purchase_order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_purchase_order_lines_qty_positive"),
        db.CheckConstraint("tax_bps >= 0 AND tax_bps <= 10000", name="ck_purchase_order_lines_tax"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_bps = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "tax_bps": self.tax_bps,
            "line_total_cents": self.line_total_cents,
        }
