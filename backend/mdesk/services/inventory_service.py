# Overview: Per-SKU stock movements, manual adjustments and the adjustment ledger.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Product, ProductVariant, InventoryLedgerEntry
from ..validation import coerce_int, NotFoundError
from .concurrency import apply_guarded_update


ADJUSTMENT_REASONS = ("restock", "damage", "correction", "return", "other")


class InventoryError(Exception):
    """Raised when a stock movement is not allowed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def increment_stock(product_id: int, sku: str, qty: int) -> bool:
    """Add qty to one variant. Returns False when (product_id, sku) does not exist."""
    stmt = (
        update(ProductVariant)
        .where(ProductVariant.product_id == product_id, ProductVariant.sku == sku)
        .values(stock=ProductVariant.stock + qty)
    )
    return apply_guarded_update(stmt)


def decrement_stock(product_id: int, sku: str, qty: int) -> bool:
    """
    Remove qty from one variant only if at least qty is on hand.

    Returns False when the variant is missing or short; stock is untouched
    in that case.
    """
    stmt = (
        update(ProductVariant)
        .where(
            ProductVariant.product_id == product_id,
            ProductVariant.sku == sku,
            ProductVariant.stock >= qty,
        )
        .values(stock=ProductVariant.stock - qty)
    )
    return apply_guarded_update(stmt)


def current_stock(sku: str) -> int | None:
    return db.session.query(ProductVariant.stock).filter(ProductVariant.sku == sku).scalar()


def list_inventory(search: str | None = None) -> list[dict]:
    """One row per variant with its product's descriptive names."""
    query = db.session.query(ProductVariant).join(Product, Product.id == ProductVariant.product_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(like), ProductVariant.sku.ilike(like)))

    rows = []
    for variant in query.order_by(Product.name.asc(), ProductVariant.sku.asc()).all():
        product = variant.product
        rows.append({
            "product_id": product.id,
            "product_name": product.name,
            "brand": product.brand.name if product.brand else None,
            "category": product.category.name if product.category else None,
            "product_type": product.product_type.name if product.product_type else None,
            "published": product.published,
            **variant.to_dict(),
        })
    return rows


def adjust_stock(
    *,
    sku: str,
    quantity: int,
    reason: str,
    user_id: int | None,
    notes: str | None = None,
) -> InventoryLedgerEntry:
    """
    Apply a signed manual adjustment to one SKU and record it in the ledger.

    Raises:
        NotFoundError: unknown SKU
        InventoryError: zero quantity, bad reason, or stock would go negative
    """
    quantity = coerce_int("quantity", quantity)
    if quantity == 0:
        raise InventoryError("quantity must not be zero")
    if reason not in ADJUSTMENT_REASONS:
        raise InventoryError(f"reason must be one of: {', '.join(ADJUSTMENT_REASONS)}")

    variant = db.session.query(ProductVariant).filter(ProductVariant.sku == sku).first()
    if not variant:
        raise NotFoundError("SKU not found")

    stmt = (
        update(ProductVariant)
        .where(ProductVariant.id == variant.id, ProductVariant.stock + quantity >= 0)
        .values(stock=ProductVariant.stock + quantity)
    )
    if not apply_guarded_update(stmt):
        db.session.rollback()
        raise InventoryError("Stock cannot go below zero", {"sku": sku})

    new_stock = current_stock(sku)
    entry = InventoryLedgerEntry(
        sku=sku,
        product_id=variant.product_id,
        user_id=user_id,
        previous_stock=new_stock - quantity,
        quantity_changed=quantity,
        new_stock=new_stock,
        reason=reason,
        notes=notes,
    )
    db.session.add(entry)
    db.session.commit()
    db.session.refresh(variant)
    return entry


def list_ledger(sku: str | None = None, limit: int = 200) -> list[dict]:
    query = db.session.query(InventoryLedgerEntry)
    if sku:
        query = query.filter(InventoryLedgerEntry.sku == sku)
    limit = max(1, min(limit, 500))
    entries = query.order_by(InventoryLedgerEntry.id.desc()).limit(limit).all()
    return [e.to_dict() for e in entries]
