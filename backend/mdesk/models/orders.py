from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z


class Order(db.Model):
    """
    Customer order.

    Orders are created unpaid and flip to paid exactly once, when the
    gateway reports the payment intent as succeeded. Orders are never
    deleted.
    """
    __tablename__ = "orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Shipping address
    shipping_address = db.Column(db.String(512), nullable=False)
    shipping_city = db.Column(db.String(128), nullable=False)
    shipping_postal_code = db.Column(db.String(32), nullable=False)
    shipping_country = db.Column(db.String(128), nullable=False)

    payment_method = db.Column(db.String(64), nullable=False)

    # Amounts in cents
    items_price_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=True)

    payment_term_id = db.Column(db.Integer, db.ForeignKey("payment_terms.id"), nullable=True)
    payment_terms_preview = db.Column(db.Text, nullable=True)

    payment_intent_id = db.Column(db.String(255), nullable=True, unique=True, index=True)

    # Gateway confirmation snapshot
    payment_result_id = db.Column(db.String(255), nullable=True)
    payment_result_status = db.Column(db.String(64), nullable=True)
    payment_result_update_time = db.Column(db.String(64), nullable=True)
    payment_result_email = db.Column(db.String(255), nullable=True)

    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    is_delivered = db.Column(db.Boolean, nullable=False, default=False)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    coupon = db.relationship("Coupon")
    payment_term = db.relationship("PaymentTerm")
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def to_dict(self) -> dict:
        payment_result = None
        if self.payment_result_id:
            payment_result = {
                "id": self.payment_result_id,
                "status": self.payment_result_status,
                "update_time": self.payment_result_update_time,
                "email_address": self.payment_result_email,
            }
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "items": [i.to_dict() for i in self.items],
            "shipping_address": {
                "address": self.shipping_address,
                "city": self.shipping_city,
                "postal_code": self.shipping_postal_code,
                "country": self.shipping_country,
            },
            "payment_method": self.payment_method,
            "payment_result": payment_result,
            "items_price_cents": self.items_price_cents,
            "shipping_price_cents": self.shipping_price_cents,
            "discount_cents": self.discount_cents,
            "total_price_cents": self.total_price_cents,
            "total_cost_cents": self.total_cost_cents,
            "coupon_code": self.coupon.code if self.coupon else None,
            "payment_term_id": self.payment_term_id,
            "payment_terms_preview": self.payment_terms_preview,
            "payment_intent_id": self.payment_intent_id,
            "is_paid": self.is_paid,
            "paid_at": to_utc_z(self.paid_at),
            "is_delivered": self.is_delivered,
            "delivered_at": to_utc_z(self.delivered_at),
            "created_at": to_utc_z(self.created_at),
        }


class OrderItem(db.Model):
    """Line captured at time of sale; later catalog edits do not touch it."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("qty >= 1", name="ck_order_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    image = db.Column(db.String(1024), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(64), nullable=True)

    qty = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    purchase_tax_bps = db.Column(db.Integer, nullable=False, default=0)

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.qty

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "image": self.image,
            "color": self.color,
            "size": self.size,
            "qty": self.qty,
            "price_cents": self.price_cents,
            "purchase_price_cents": self.purchase_price_cents,
            "purchase_tax_bps": self.purchase_tax_bps,
            "line_total_cents": self.line_total_cents,
        }
