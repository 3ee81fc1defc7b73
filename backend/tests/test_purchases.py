"""
Purchasing workflow tests.

Verifies:
- Purchase order totals are the sum of taxed line totals
- Receiving increments stock for every line and raises a matching bill
- A purchase order can be received once
"""

from datetime import date

import pytest

from mdesk.models import ProductVariant, VendorBill, PurchaseOrder
from mdesk.services import purchase_service
from mdesk.services.purchase_service import PurchaseError
from mdesk.validation import NotFoundError


def _stock(db_session, sku):
    db_session.expire_all()
    return db_session.query(ProductVariant).filter_by(sku=sku).one().stock


def _two_line_po(vendor, shirt, trousers, user_id=None):
    return purchase_service.create_purchase_order({
        "vendor_id": vendor.id,
        "order_date": "2026-10-01",
        "items": [
            {"product_id": shirt.id, "sku": "LS-M", "quantity": 4, "unit_price_cents": 40000, "tax_bps": 500},
            {"product_id": trousers.id, "sku": "CH-32", "quantity": 10},
        ],
    }, user_id=user_id)


class TestCreatePurchaseOrder:

    def test_totals_and_numbering(self, db_session, vendor, shirt, trousers, admin_user):
        po = _two_line_po(vendor, shirt, trousers, admin_user.id)

        # 4 x 40000 + 5% = 168000; 10 x 1500 (variant purchase price, no tax) = 15000
        assert [line.line_total_cents for line in po.lines] == [168000, 15000]
        assert po.total_amount_cents == 183000
        assert po.status == "draft"
        assert po.order_number == "PO-0001"
        assert po.order_date == date(2026, 10, 1)

    def test_requires_items(self, db_session, vendor):
        with pytest.raises(PurchaseError) as exc:
            purchase_service.create_purchase_order({"vendor_id": vendor.id, "items": []}, user_id=None)
        assert str(exc.value) == "No purchase order items"

    def test_requires_vendor_contact(self, db_session, shirt, customer):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase_order({
                "vendor_id": customer.contact.id,
                "items": [{"product_id": shirt.id, "sku": "LS-M", "quantity": 1}],
            }, user_id=None)

    def test_sku_must_belong_to_product(self, db_session, vendor, shirt):
        with pytest.raises(PurchaseError):
            purchase_service.create_purchase_order({
                "vendor_id": vendor.id,
                "items": [{"product_id": shirt.id, "sku": "CH-32", "quantity": 1}],
            }, user_id=None)


class TestReceiveAndBill:

    def test_receive_increments_stock_and_bills(self, db_session, vendor, shirt, trousers):
        po = _two_line_po(vendor, shirt, trousers)

        po, bill = purchase_service.receive_and_bill(po.id, invoice_date=date(2026, 10, 5))

        assert _stock(db_session, "LS-M") == 14
        assert _stock(db_session, "CH-32") == 30
        assert _stock(db_session, "LS-L") == 5

        bill = db_session.get(VendorBill, bill.id)
        assert bill.total_amount_cents == 183000
        assert bill.status == "confirmed"
        assert bill.paid_amount_cents == 0
        assert bill.vendor_id == vendor.id
        assert bill.due_date == date(2026, 11, 4)
        assert len(bill.lines) == 2
        assert db_session.get(PurchaseOrder, po.id).status == "billed"

    def test_confirmed_order_can_be_received(self, db_session, vendor, shirt, trousers):
        po = _two_line_po(vendor, shirt, trousers)
        purchase_service.confirm_purchase_order(po.id)

        _, bill = purchase_service.receive_and_bill(po.id)

        assert bill.bill_number == "BILL-0001"

    def test_cannot_receive_twice(self, db_session, vendor, shirt, trousers):
        po = _two_line_po(vendor, shirt, trousers)
        purchase_service.receive_and_bill(po.id)

        with pytest.raises(PurchaseError):
            purchase_service.receive_and_bill(po.id)

        assert _stock(db_session, "LS-M") == 14
        assert db_session.query(VendorBill).count() == 1

    def test_cannot_confirm_billed_order(self, db_session, vendor, shirt, trousers):
        po = _two_line_po(vendor, shirt, trousers)
        purchase_service.receive_and_bill(po.id)

        with pytest.raises(PurchaseError):
            purchase_service.confirm_purchase_order(po.id)

    def test_receive_endpoint(self, client, db_session, vendor, shirt, trousers, admin_headers):
        po = _two_line_po(vendor, shirt, trousers)

        resp = client.post(f"/api/purchases/{po.id}/receive", headers=admin_headers, json={})

        assert resp.status_code == 200
        assert resp.json["purchase_order"]["status"] == "billed"
        assert resp.json["bill"]["total_amount_cents"] == 183000
