# Overview: Per-user shopping cart keyed by SKU.

from __future__ import annotations

from ..extensions import db
from ..models import Cart, CartItem, Product
from ..validation import positive_int, NotFoundError


class CartError(Exception):
    """Raised when a cart operation is not allowed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _get_cart(user_id: int) -> Cart | None:
    return db.session.query(Cart).filter_by(user_id=user_id).first()


def _require_cart(user_id: int) -> Cart:
    cart = _get_cart(user_id)
    if not cart:
        raise NotFoundError("Cart not found")
    return cart


def _image_for(product: Product, color: str | None) -> str | None:
    for image in product.images:
        if color and image.color == color:
            return image.url
    return product.images[0].url if product.images else None


def get_cart(user_id: int) -> dict:
    """The caller's cart; a missing cart reads as an empty one."""
    cart = _get_cart(user_id)
    if not cart:
        return {"items": []}
    return cart.to_dict()


def upsert_item(user_id: int, *, product_id: int, sku: str, qty=1) -> tuple[dict, bool]:
    """
    Add a variant to the caller's cart, or raise its quantity when the SKU
    is already there. Quantity is capped at the stock snapshot stored on
    the line.

    Returns (cart_dict, created) where created is True when the cart itself
    was created by this call.
    """
    qty = positive_int("qty", qty)

    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    variant = product.variant_for_sku(sku)
    if not variant:
        raise NotFoundError("SKU not found for this product")
    if variant.stock < 1:
        raise CartError("This item is out of stock", {"sku": sku})

    created = False
    cart = _get_cart(user_id)
    if not cart:
        cart = Cart(user_id=user_id)
        db.session.add(cart)
        created = True

    item = cart.item_for_sku(sku)
    if item:
        item.max_stock = variant.stock
        item.qty = min(item.qty + qty, item.max_stock)
    else:
        cart.items.append(CartItem(
            product_id=product.id,
            sku=variant.sku,
            name=product.name,
            image=_image_for(product, variant.color),
            color=variant.color,
            size=variant.size,
            price_cents=variant.sales_price_cents,
            qty=min(qty, variant.stock),
            max_stock=variant.stock,
        ))

    db.session.commit()
    return cart.to_dict(), created


def remove_item(user_id: int, sku: str) -> dict:
    cart = _require_cart(user_id)
    item = cart.item_for_sku(sku)
    if item:
        cart.items.remove(item)
        db.session.commit()
    return cart.to_dict()


def set_quantity(user_id: int, sku: str, qty) -> dict:
    """Set the exact quantity of a SKU. Unknown SKUs leave the cart unchanged."""
    qty = positive_int("qty", qty)
    cart = _require_cart(user_id)
    item = cart.item_for_sku(sku)
    if item:
        item.qty = qty
        db.session.commit()
    return cart.to_dict()


def clear_cart(user_id: int) -> None:
    cart = _get_cart(user_id)
    if cart:
        db.session.delete(cart)
        db.session.commit()
