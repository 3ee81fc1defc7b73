"""
Cart tests.

Verifies:
- First add creates the cart (201), later adds update it (200)
- Line price and stock snapshot come from the catalog
- Quantity is capped at the stock snapshot
"""

from mdesk.models import ProductVariant
from mdesk.services import cart_service


class TestCartService:

    def test_add_creates_cart_with_catalog_snapshot(self, db_session, shirt, customer):
        cart, created = cart_service.upsert_item(customer.id, product_id=shirt.id, sku="LS-M", qty=2)

        assert created is True
        item = cart["items"][0]
        assert item["price_cents"] == 75000
        assert item["max_stock"] == 10
        assert item["qty"] == 2
        assert item["image"] == "https://cdn.example/ls-blue.jpg"

    def test_repeat_add_raises_quantity_capped_at_stock(self, db_session, shirt, customer):
        cart_service.upsert_item(customer.id, product_id=shirt.id, sku="LS-L", qty=3)
        cart, created = cart_service.upsert_item(customer.id, product_id=shirt.id, sku="LS-L", qty=4)

        assert created is False
        assert len(cart["items"]) == 1
        assert cart["items"][0]["qty"] == 5

    def test_out_of_stock_rejected(self, db_session, shirt, customer):
        variant = db_session.query(ProductVariant).filter_by(sku="LS-L").one()
        variant.stock = 0
        db_session.commit()

        try:
            cart_service.upsert_item(customer.id, product_id=shirt.id, sku="LS-L", qty=1)
        except cart_service.CartError as e:
            assert str(e) == "This item is out of stock"
        else:
            raise AssertionError("expected CartError")

    def test_missing_cart_reads_as_empty(self, db_session, customer):
        assert cart_service.get_cart(customer.id) == {"items": []}


class TestCartEndpoints:

    def test_post_returns_201_then_200(self, client, db_session, shirt, customer_headers):
        body = {"product_id": shirt.id, "sku": "LS-M", "qty": 1}

        first = client.post("/api/cart", headers=customer_headers, json=body)
        second = client.post("/api/cart", headers=customer_headers, json=body)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json["cart"]["items"][0]["qty"] == 2

    def test_update_and_remove(self, client, db_session, shirt, customer_headers):
        client.post("/api/cart", headers=customer_headers, json={"product_id": shirt.id, "sku": "LS-M", "qty": 1})

        resp = client.put("/api/cart/items/LS-M", headers=customer_headers, json={"qty": 4})
        assert resp.status_code == 200
        assert resp.json["cart"]["items"][0]["qty"] == 4

        resp = client.delete("/api/cart/items/LS-M", headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["cart"]["items"] == []

    def test_update_without_cart_is_404(self, client, db_session, customer_headers):
        resp = client.put("/api/cart/items/LS-M", headers=customer_headers, json={"qty": 1})

        assert resp.status_code == 404
        assert resp.json["error"] == "Cart not found"

    def test_requires_auth(self, client, db_session):
        assert client.get("/api/cart").status_code == 401
