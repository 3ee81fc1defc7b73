"""
Catalog and lookup tests.

Verifies:
- SKUs are unique across the catalog
- Updating variants keeps existing stock
- Storefront only sees published, in-stock products
- Products with order, purchase or stock history cannot be deleted
- Lookup tables reject deletes while products reference them
"""

import pytest

from mdesk.models import Product, ProductVariant, CartItem
from mdesk.services import catalog_service, lookup_service, cart_service, purchase_service, inventory_service
from mdesk.services.catalog_service import CatalogError
from mdesk.validation import ValidationError


class TestProducts:

    def test_duplicate_sku_across_products(self, db_session, shirt, category):
        with pytest.raises(CatalogError) as exc:
            catalog_service.create_product({
                "name": "Copy",
                "category_id": category.id,
                "variants": [{"sku": "LS-M", "sales_price_cents": 100}],
            })
        assert str(exc.value) == "SKU already exists"

    def test_requires_a_variant(self, db_session, category):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "Empty", "category_id": category.id, "variants": []})

    def test_update_keeps_stock_of_existing_skus(self, db_session, shirt):
        catalog_service.update_product(shirt.id, {
            "variants": [
                {"sku": "LS-M", "stock": 0, "sales_price_cents": 80000},
                {"sku": "LS-XL", "stock": 3, "sales_price_cents": 80000},
            ],
        })

        db_session.expire_all()
        variants = {v.sku: v for v in db_session.query(ProductVariant).all()}
        assert variants["LS-M"].stock == 10
        assert variants["LS-M"].sales_price_cents == 80000
        assert variants["LS-XL"].stock == 3
        assert "LS-L" not in variants

    def test_public_listing_hides_unpublished_and_sold_out(self, db_session, shirt, trousers):
        catalog_service.update_product(trousers.id, {"published": False})

        names = [p["name"] for p in catalog_service.list_public_products()]

        assert names == ["Linen Shirt"]

    def test_public_listing_filters_by_material(self, db_session, shirt, trousers):
        names = [p["name"] for p in catalog_service.list_public_products(material="linen")]

        assert names == ["Linen Shirt"]

    def test_public_endpoint_needs_no_token(self, client, db_session, shirt):
        resp = client.get(f"/api/products/public/{shirt.id}")

        assert resp.status_code == 200
        assert resp.json["product"]["sizes"] == ["L", "M"]

    def test_admin_create_endpoint(self, client, db_session, category, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "name": "Polo",
            "category_id": category.id,
            "variants": [{"sku": "PO-S", "size": "S", "stock": 2, "sales_price_cents": 99900}],
        })

        assert resp.status_code == 201
        assert resp.json["product"]["variants"][0]["sku"] == "PO-S"

    def test_paginated_admin_listing(self, db_session, shirt, trousers):
        result = catalog_service.list_products(page=1, per_page=1)

        assert result["count"] == 1
        assert result["pagination"]["total"] == 2
        assert result["pagination"]["has_next"] is True

    def test_delete_removes_cart_lines(self, db_session, shirt, customer):
        cart_service.upsert_item(customer.id, product_id=shirt.id, sku="LS-M", qty=1)

        catalog_service.delete_product(shirt.id)

        db_session.expire_all()
        assert db_session.query(Product).count() == 0
        assert db_session.query(CartItem).count() == 0

    def test_delete_blocked_by_purchase_history(self, db_session, shirt, vendor):
        purchase_service.create_purchase_order({
            "vendor_id": vendor.id,
            "items": [{"product_id": shirt.id, "sku": "LS-M", "quantity": 1}],
        }, user_id=None)

        with pytest.raises(CatalogError) as exc:
            catalog_service.delete_product(shirt.id)

        assert "purchase orders" in str(exc.value)
        db_session.expire_all()
        assert db_session.query(Product).count() == 1

    def test_delete_blocked_endpoint_is_400(self, client, db_session, shirt, admin_headers):
        inventory_service.adjust_stock(sku="LS-M", quantity=2, reason="correction", user_id=None)

        resp = client.delete(f"/api/products/{shirt.id}", headers=admin_headers)

        assert resp.status_code == 400
        assert "stock adjustments" in resp.json["error"]


class TestLookups:

    def test_crud_round(self, db_session):
        brands = lookup_service.repository("brands")

        created = brands.create({"name": "Fabindia"})
        brands.update(created["id"], {"description": "Handloom"})

        assert brands.get(created["id"])["description"] == "Handloom"
        assert [b["name"] for b in brands.list(search="fab")] == ["Fabindia"]

    def test_duplicate_name_rejected(self, db_session):
        colors = lookup_service.repository("colors")
        colors.create({"name": "Indigo", "hex_code": "#3F51B5"})

        with pytest.raises(ValidationError):
            colors.create({"name": "Indigo"})

    def test_in_use_category_cannot_be_deleted(self, db_session, shirt, category):
        with pytest.raises(ValidationError):
            lookup_service.repository("categories").delete(category.id)

    def test_sizes_searched_by_code(self, db_session):
        sizes = lookup_service.repository("sizes")
        sizes.create({"name": "Extra Large", "code": "XL"})
        sizes.create({"name": "Small", "code": "S"})

        assert [s["name"] for s in sizes.list(search="xl")] == ["Extra Large"]

    def test_lookup_reads_are_public(self, client, db_session, category):
        resp = client.get("/api/categories")

        assert resp.status_code == 200
        assert resp.json["items"][0]["name"] == "Shirts"

    def test_admin_creates_via_api(self, client, db_session, admin_headers):
        resp = client.post("/api/styles", headers=admin_headers, json={"name": "Casual"})

        assert resp.status_code == 201
        assert resp.json["item"]["name"] == "Casual"
