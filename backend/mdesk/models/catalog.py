from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z


class _NamedLookup:
    """Shared columns for the simple name/description lookup tables."""
    __table_args__ = {"sqlite_autoincrement": True}

    # Column matched by the generic ?search= filter
    search_field = "name"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Category(_NamedLookup, db.Model):
    __tablename__ = "categories"


class Brand(_NamedLookup, db.Model):
    __tablename__ = "brands"


class Style(_NamedLookup, db.Model):
    __tablename__ = "styles"


class ProductType(_NamedLookup, db.Model):
    __tablename__ = "product_types"


class Color(db.Model):
    __tablename__ = "colors"
    __table_args__ = {"sqlite_autoincrement": True}

    search_field = "name"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    hex_code = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "hex_code": self.hex_code,
            "created_at": to_utc_z(self.created_at),
        }


class Size(db.Model):
    __tablename__ = "sizes"
    __table_args__ = {"sqlite_autoincrement": True}

    # Sizes are usually looked up by their short code (S, M, XL)
    search_field = "code"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    code = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Catalog product.

    Sellable units are the variants; the product only carries the shared
    descriptive attributes used for browsing and discount eligibility.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    material = db.Column(db.String(128), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=True, index=True)
    style_id = db.Column(db.Integer, db.ForeignKey("styles.id"), nullable=True, index=True)
    product_type_id = db.Column(db.Integer, db.ForeignKey("product_types.id"), nullable=True, index=True)

    published = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category")
    brand = db.relationship("Brand")
    style = db.relationship("Style")
    product_type = db.relationship("ProductType")

    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )
    images = db.relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.id",
    )

    def variant_for_sku(self, sku: str):
        for variant in self.variants:
            if variant.sku == sku:
                return variant
        return None

    @property
    def total_stock(self) -> int:
        return sum(v.stock for v in self.variants)

    def to_dict(self) -> dict:
        colors = sorted({v.color for v in self.variants if v.color})
        sizes = sorted({v.size for v in self.variants if v.size})
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "material": self.material,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "brand_id": self.brand_id,
            "brand": self.brand.name if self.brand else None,
            "style_id": self.style_id,
            "style": self.style.name if self.style else None,
            "product_type_id": self.product_type_id,
            "product_type": self.product_type.name if self.product_type else None,
            "published": self.published,
            "colors": colors,
            "sizes": sizes,
            "variants": [v.to_dict() for v in self.variants],
            "images": [i.to_dict() for i in self.images],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductVariant(db.Model):
    """
    A sellable SKU of a product.

    SKU is unique across the whole catalog. Stock is adjusted only through
    single-statement UPDATEs keyed on (product_id, sku).
    """
    __tablename__ = "product_variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(64), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    sales_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_tax_bps = db.Column(db.Integer, nullable=False, default=0)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    purchase_tax_bps = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product", back_populates="variants")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "color": self.color,
            "size": self.size,
            "stock": self.stock,
            "sales_price_cents": self.sales_price_cents,
            "sales_tax_bps": self.sales_tax_bps,
            "purchase_price_cents": self.purchase_price_cents,
            "purchase_tax_bps": self.purchase_tax_bps,
        }


class ProductImage(db.Model):
    __tablename__ = "product_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    url = db.Column(db.String(1024), nullable=False)
    color = db.Column(db.String(64), nullable=True)

    product = db.relationship("Product", back_populates="images")

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url, "color": self.color}
