"""
Inventory adjustment tests.
"""

import pytest

from mdesk.models import InventoryLedgerEntry
from mdesk.services import inventory_service
from mdesk.services.inventory_service import InventoryError
from mdesk.validation import NotFoundError


class TestAdjustStock:

    def test_adjustment_writes_ledger(self, db_session, shirt, admin_user):
        entry = inventory_service.adjust_stock(
            sku="LS-M", quantity=-3, reason="damage", user_id=admin_user.id, notes="Torn seams"
        )

        assert entry.previous_stock == 10
        assert entry.new_stock == 7
        assert inventory_service.current_stock("LS-M") == 7
        assert db_session.query(InventoryLedgerEntry).count() == 1

    def test_cannot_go_negative(self, db_session, shirt):
        with pytest.raises(InventoryError):
            inventory_service.adjust_stock(sku="LS-L", quantity=-6, reason="correction", user_id=None)

        assert inventory_service.current_stock("LS-L") == 5
        assert db_session.query(InventoryLedgerEntry).count() == 0

    def test_unknown_sku(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.adjust_stock(sku="NOPE", quantity=1, reason="restock", user_id=None)

    def test_rejects_unknown_reason(self, db_session, shirt):
        with pytest.raises(InventoryError):
            inventory_service.adjust_stock(sku="LS-M", quantity=1, reason="gift", user_id=None)

    def test_decrement_is_guarded(self, db_session, shirt):
        assert inventory_service.decrement_stock(shirt.id, "LS-L", 6) is False
        assert inventory_service.decrement_stock(shirt.id, "LS-L", 5) is True
        db_session.commit()

        assert inventory_service.current_stock("LS-L") == 0

    def test_listing_includes_product_names(self, db_session, shirt):
        rows = inventory_service.list_inventory(search="LS-")

        assert {r["sku"] for r in rows} == {"LS-M", "LS-L"}
        assert rows[0]["product_name"] == "Linen Shirt"

    def test_adjust_endpoint(self, client, db_session, shirt, admin_headers):
        resp = client.post("/api/inventory/adjust", headers=admin_headers, json={
            "sku": "LS-M", "quantity": 4, "reason": "restock",
        })

        assert resp.status_code == 201
        assert resp.json["entry"]["new_stock"] == 14
