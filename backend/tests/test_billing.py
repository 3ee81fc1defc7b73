"""
Billing document tests: payment terms and invoice access.
"""

from datetime import date

import pytest

from mdesk.services import billing_service, order_service
from mdesk.services.billing_service import BillingError, BillingAccessError
from mdesk.services.session_service import identity_for_user
from mdesk.services.settings_service import SettingsSnapshot


SHIPPING = {"address": "12 MG Road", "city": "Pune", "postal_code": "411001", "country": "India"}


@pytest.fixture
def invoiced_order(db_session, shirt, customer_identity, gateway):
    return order_service.place_order(
        customer_identity,
        {"items": [{"product_id": shirt.id, "sku": "LS-M", "qty": 1}], "shipping_address": SHIPPING},
        settings=SettingsSnapshot(automatic_invoicing=True),
        gateway=gateway,
    )


class TestPaymentTerms:

    def test_early_payment_text(self, db_session):
        term = billing_service.create_payment_term({
            "name": "2/10 Net 30",
            "early_payment_discount": True,
            "discount_bps": 200,
            "discount_days": 10,
            "early_pay_discount_computation": "total_amount",
        })

        text = billing_service.render_payment_terms_text(term, date(2026, 10, 19), 100000, 110000)

        assert text == (
            "Payment Terms: 2/10 Net 30\n"
            "Early payment discount: 22.00 if paid before 29/10/2026"
        )

    def test_base_amount_computation(self, db_session):
        term = billing_service.create_payment_term({
            "name": "5% early",
            "early_payment_discount": True,
            "discount_bps": 500,
            "discount_days": 7,
        })

        assert billing_service.early_payment_discount_cents(term, 100000, 110000) == 5000

    def test_default_term_cannot_be_deleted(self, db_session, default_term):
        with pytest.raises(BillingError) as exc:
            billing_service.delete_payment_term(default_term.id)
        assert str(exc.value) == "Cannot delete the default Immediate Payment term."

    def test_default_term_preview(self, db_session, default_term):
        assert default_term.example_preview == "Payment Terms: Immediate Payment"


class TestInvoiceAccess:

    def test_owner_reads_invoice_for_order(self, db_session, invoiced_order, customer_identity):
        invoice = billing_service.get_invoice_for_order(invoiced_order.order.id, customer_identity)

        assert invoice.id == invoiced_order.invoice_id
        assert len(invoice.lines) == 1

    def test_other_customer_denied(self, db_session, invoiced_order, other_customer):
        with pytest.raises(BillingAccessError):
            billing_service.get_invoice(invoiced_order.invoice_id, identity_for_user(other_customer))

    def test_admin_reads_any_invoice(self, db_session, invoiced_order, admin_identity):
        invoice = billing_service.get_invoice(invoiced_order.invoice_id, admin_identity)

        assert invoice.total_amount_cents == 75000

    def test_my_invoices_endpoint(self, client, db_session, invoiced_order, customer_headers):
        resp = client.get("/api/invoices/mine", headers=customer_headers)

        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_no_invoice_message(self, client, db_session, shirt, customer_identity, gateway, customer_headers):
        placed = order_service.place_order(
            customer_identity,
            {"items": [{"product_id": shirt.id, "sku": "LS-M", "qty": 1}], "shipping_address": SHIPPING},
            settings=SettingsSnapshot(automatic_invoicing=False),
            gateway=gateway,
        )

        resp = client.get(f"/api/invoices/order/{placed.order.id}", headers=customer_headers)

        assert resp.status_code == 404
        assert resp.json["error"] == "Invoice not found for this order"
