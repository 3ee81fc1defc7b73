"""
Report tests.
"""

import pytest

from mdesk.services import order_service, purchase_service, payment_service, reporting_service
from mdesk.services.reporting_service import ReportError
from mdesk.services.settings_service import SettingsSnapshot


SHIPPING = {"address": "12 MG Road", "city": "Pune", "postal_code": "411001", "country": "India"}


@pytest.fixture
def paid_order(db_session, shirt, customer_identity, gateway):
    placed = order_service.place_order(
        customer_identity,
        {
            "items": [
                {"product_id": shirt.id, "sku": "LS-M", "qty": 2},
                {"product_id": shirt.id, "sku": "LS-L", "qty": 1},
            ],
            "shipping_address": SHIPPING,
        },
        settings=SettingsSnapshot(automatic_invoicing=True),
        gateway=gateway,
    )
    gateway.succeed(placed.order.payment_intent_id)
    order, _ = order_service.verify_payment(placed.order.payment_intent_id, customer_identity, gateway=gateway)
    return order


class TestSalesReports:

    def test_sales_by_product_groups_variants(self, db_session, paid_order):
        report = reporting_service.sales_by_product()

        assert len(report["rows"]) == 1
        row = report["rows"][0]
        assert row["product_name"] == "Linen Shirt"
        assert row["sold_qty"] == 3
        assert row["total_received_cents"] == 225000
        assert {v["sku"]: v["sold_qty"] for v in row["variants"]} == {"LS-M": 2, "LS-L": 1}

    def test_unpaid_orders_excluded(self, db_session, shirt, customer_identity, gateway):
        order_service.place_order(
            customer_identity,
            {"items": [{"product_id": shirt.id, "sku": "LS-M", "qty": 1}], "shipping_address": SHIPPING},
            settings=SettingsSnapshot(automatic_invoicing=False),
            gateway=gateway,
        )

        assert reporting_service.sales_by_product()["rows"] == []

    def test_date_range_excludes_other_days(self, db_session, paid_order):
        report = reporting_service.sales_by_product(start="2000-01-01", end="2000-01-31")

        assert report["rows"] == []

    def test_sales_by_customer(self, db_session, paid_order, customer):
        rows = reporting_service.sales_by_customer()["rows"]

        assert rows == [{
            "contact_id": customer.contact.id,
            "customer_name": "Asha Rao",
            "total_orders": 1,
            "total_amount_cents": 225000,
            "paid_amount_cents": 225000,
            "unpaid_amount_cents": 0,
        }]

    def test_invalid_range(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.sales_by_product(start="2026-10-10", end="2026-10-01")


class TestPurchaseReports:

    def test_purchases_by_vendor_and_product(self, db_session, vendor, shirt):
        po = purchase_service.create_purchase_order({
            "vendor_id": vendor.id,
            "items": [{"product_id": shirt.id, "sku": "LS-M", "quantity": 5, "unit_price_cents": 40000, "tax_bps": 0}],
        }, user_id=None)
        _, bill = purchase_service.receive_and_bill(po.id)
        payment_service.register_payment({
            "contact_id": vendor.id,
            "payment_type": "outbound",
            "amount_cents": 50000,
            "payment_method": "bank",
            "bill_id": bill.id,
        }, user_id=None)

        vendors = reporting_service.purchases_by_vendor()["rows"]
        assert vendors[0]["vendor_name"] == "Loom Textiles"
        assert vendors[0]["unpaid_amount_cents"] == 150000

        products = reporting_service.purchases_by_product()["rows"]
        assert products[0]["purchased_qty"] == 5
        assert products[0]["total_paid_cents"] == 200000


class TestExport:

    def test_csv_export(self, db_session):
        body, mimetype, filename = reporting_service.export_table(
            title="Sales by Product",
            headers=["Product", "Qty"],
            rows=[["Linen Shirt", 3]],
            fmt="csv",
        )

        assert mimetype == "text/csv"
        assert filename == "Sales_by_Product.csv"
        assert body.splitlines() == ['"Product","Qty"', '"Linen Shirt",3']

    def test_unknown_format(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.export_table(title="X", headers=["a"], rows=[], fmt="xlsx")

    def test_export_endpoint_attachment(self, client, db_session, admin_headers):
        resp = client.post("/api/reports/export", headers=admin_headers, json={
            "title": "Report", "headers": ["A"], "rows": [["x"]], "format": "csv",
        })

        assert resp.status_code == 200
        assert resp.headers["Content-Disposition"] == 'attachment; filename="Report.csv"'
