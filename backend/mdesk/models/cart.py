from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z


class Cart(db.Model):
    """One cart per user; deleted outright when cleared."""
    __tablename__ = "carts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )

    def item_for_sku(self, sku: str):
        for item in self.items:
            if item.sku == sku:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "items": [i.to_dict() for i in self.items],
            "updated_at": to_utc_z(self.updated_at),
        }


class CartItem(db.Model):
    """
    A selected variant. price_cents and max_stock are snapshots taken when
    the line was added.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "sku", name="uq_cart_items_cart_sku"),
        db.CheckConstraint("qty >= 1", name="ck_cart_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    image = db.Column(db.String(1024), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(64), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    qty = db.Column(db.Integer, nullable=False, default=1)
    max_stock = db.Column(db.Integer, nullable=False, default=0)

    cart = db.relationship("Cart", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "image": self.image,
            "color": self.color,
            "size": self.size,
            "price_cents": self.price_cents,
            "qty": self.qty,
            "max_stock": self.max_stock,
        }
