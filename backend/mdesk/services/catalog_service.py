# Overview: Product and variant management plus public catalog browsing.

"""
Catalog Service

Products are created with their variants in one call. SKUs are unique
across the catalog. After creation, variant stock changes only through
inventory_service (manual adjustments), order placement and purchase
receiving; product updates never overwrite the stock of an existing SKU.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Product,
    ProductVariant,
    ProductImage,
    Category,
    Brand,
    Style,
    ProductType,
    OrderItem,
    CartItem,
    PurchaseOrderLine,
    CustomerInvoiceLine,
    VendorBillLine,
    InventoryLedgerEntry,
)
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    money_cents,
    basis_points,
    coerce_int,
    ValidationError,
    NotFoundError,
)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "description", "material", "published",
        "category_id", "brand_id", "style_id", "product_type_id",
    }),
    required_on_create=frozenset({"name", "category_id"}),
)

_REFERENCES = (
    ("category_id", Category, "Category"),
    ("brand_id", Brand, "Brand"),
    ("style_id", Style, "Style"),
    ("product_type_id", ProductType, "Type"),
)


class CatalogError(Exception):
    """Raised when a catalog write violates a business rule."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _check_references(patch: dict) -> None:
    for key, model, label in _REFERENCES:
        if patch.get(key) is not None and not db.session.get(model, patch[key]):
            raise CatalogError(f"{label} not found", {key: patch[key]})


def _parse_variant(raw: dict) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("Each variant must be an object")
    sku = str(raw.get("sku") or "").strip()
    if not sku:
        raise ValidationError("Variant sku is required")
    stock = coerce_int("stock", raw.get("stock", 0))
    if stock < 0:
        raise ValidationError("stock must be >= 0")
    return {
        "sku": sku,
        "color": (raw.get("color") or None),
        "size": (raw.get("size") or None),
        "stock": stock,
        "sales_price_cents": money_cents("sales_price_cents", raw.get("sales_price_cents", 0)),
        "sales_tax_bps": basis_points("sales_tax_bps", raw.get("sales_tax_bps", 0)),
        "purchase_price_cents": money_cents("purchase_price_cents", raw.get("purchase_price_cents", 0)),
        "purchase_tax_bps": basis_points("purchase_tax_bps", raw.get("purchase_tax_bps", 0)),
    }


def _parse_variants(raw_variants) -> list[dict]:
    if not isinstance(raw_variants, list) or not raw_variants:
        raise ValidationError("At least one variant is required")
    variants = [_parse_variant(v) for v in raw_variants]
    skus = [v["sku"] for v in variants]
    duplicates = sorted({s for s in skus if skus.count(s) > 1})
    if duplicates:
        raise CatalogError("Duplicate SKU in request", {"skus": duplicates})
    return variants


def _parse_images(raw_images) -> list[dict]:
    if raw_images is None:
        return []
    if not isinstance(raw_images, list):
        raise ValidationError("images must be a list")
    images = []
    for raw in raw_images:
        url = str((raw or {}).get("url") or "").strip()
        if not url:
            raise ValidationError("Image url is required")
        images.append({"url": url, "color": (raw.get("color") or None)})
    return images


def _ensure_skus_free(skus: list[str], *, product_id: int | None = None) -> None:
    query = db.session.query(ProductVariant.sku).filter(ProductVariant.sku.in_(skus))
    if product_id is not None:
        query = query.filter(ProductVariant.product_id != product_id)
    taken = sorted(row[0] for row in query.all())
    if taken:
        raise CatalogError("SKU already exists", {"skus": taken})


def _commit() -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise CatalogError("SKU already exists")


def get_product_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(payload: dict) -> Product:
    data = {k: v for k, v in payload.items() if k not in ("variants", "images")}
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
    _check_references(patch)

    variants = _parse_variants(payload.get("variants"))
    images = _parse_images(payload.get("images"))
    _ensure_skus_free([v["sku"] for v in variants])

    product = Product(**patch)
    product.variants = [ProductVariant(**v) for v in variants]
    product.images = [ProductImage(**i) for i in images]

    db.session.add(product)
    _commit()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    """
    Patch product fields. When "variants" is given the variant set is
    replaced by SKU: listed SKUs are updated or added, unlisted ones removed.
    Existing SKUs keep their current stock.
    """
    product = get_product_or_404(product_id)

    data = {k: v for k, v in payload.items() if k not in ("variants", "images")}
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
    _check_references(patch)
    for key, value in patch.items():
        setattr(product, key, value)

    if "variants" in payload:
        variants = _parse_variants(payload["variants"])
        _ensure_skus_free([v["sku"] for v in variants], product_id=product.id)

        existing = {v.sku: v for v in product.variants}
        kept = []
        for fields in variants:
            variant = existing.get(fields["sku"])
            if variant is None:
                kept.append(ProductVariant(**fields))
                continue
            fields.pop("stock")
            for key, value in fields.items():
                setattr(variant, key, value)
            kept.append(variant)
        product.variants = kept

    if "images" in payload:
        product.images = [ProductImage(**i) for i in _parse_images(payload["images"])]

    _commit()
    return product


# Rows that keep a product's history; any of them blocks deletion
_HISTORY = (
    (OrderItem, "orders"),
    (PurchaseOrderLine, "purchase orders"),
    (CustomerInvoiceLine, "invoices"),
    (VendorBillLine, "vendor bills"),
    (InventoryLedgerEntry, "stock adjustments"),
)


def delete_product(product_id: int) -> None:
    """
    Delete a product with no history. Lines still sitting in customer carts
    are removed with it.
    """
    product = get_product_or_404(product_id)
    for model, label in _HISTORY:
        if db.session.query(model.id).filter(model.product_id == product.id).first():
            raise CatalogError(
                f"Product is referenced by {label} and cannot be deleted; unpublish it instead",
                {"product_id": product.id},
            )
    db.session.query(CartItem).filter(CartItem.product_id == product.id).delete(synchronize_session=False)
    db.session.delete(product)
    db.session.commit()


def list_products(
    *,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Back-office listing of every product, with optional pagination."""
    base_query = db.session.query(Product)
    if search:
        base_query = base_query.filter(Product.name.ilike(f"%{search.strip()}%"))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {"items": [p.to_dict() for p in products], "count": len(products)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_public_products(
    *,
    category_id: int | None = None,
    product_type_id: int | None = None,
    material: str | None = None,
    search: str | None = None,
) -> list[dict]:
    """Published products with at least one variant in stock."""
    in_stock = (
        db.session.query(ProductVariant.id)
        .filter(ProductVariant.product_id == Product.id, ProductVariant.stock > 0)
        .exists()
    )
    query = db.session.query(Product).filter(Product.published.is_(True), in_stock)

    if category_id:
        query = query.filter(Product.category_id == category_id)
    if product_type_id:
        query = query.filter(Product.product_type_id == product_type_id)
    if material:
        query = query.filter(Product.material.ilike(material.strip()))
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))

    return [p.to_dict() for p in query.order_by(Product.created_at.desc(), Product.id.desc()).all()]


def get_public_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product or not product.published:
        raise NotFoundError("Product not found")
    return product
