"""
Payment registration tests.

Verifies:
- Partial and full payments move invoices and bills to partially_paid / paid
- Direction, contact and draft checks reject mismatched payments
"""

import pytest

from mdesk.models import VendorBill, CustomerInvoice, Payment
from mdesk.services import payment_service, purchase_service, order_service
from mdesk.services.payment_service import PaymentError
from mdesk.services.settings_service import SettingsSnapshot
from mdesk.validation import NotFoundError, ValidationError


@pytest.fixture
def bill(db_session, vendor, shirt):
    po = purchase_service.create_purchase_order({
        "vendor_id": vendor.id,
        "items": [{"product_id": shirt.id, "sku": "LS-M", "quantity": 2, "unit_price_cents": 50000, "tax_bps": 0}],
    }, user_id=None)
    _, bill = purchase_service.receive_and_bill(po.id)
    return bill


@pytest.fixture
def invoice(db_session, shirt, customer_identity, gateway):
    placed = order_service.place_order(
        customer_identity,
        {
            "items": [{"product_id": shirt.id, "sku": "LS-M", "qty": 1}],
            "shipping_address": {"address": "12 MG Road", "city": "Pune", "postal_code": "411001", "country": "India"},
        },
        settings=SettingsSnapshot(automatic_invoicing=True),
        gateway=gateway,
    )
    return db_session.get(CustomerInvoice, placed.invoice_id)


def _outbound(vendor, bill, amount_cents, **extra):
    payload = {
        "contact_id": vendor.id,
        "payment_type": "outbound",
        "amount_cents": amount_cents,
        "payment_method": "bank",
        "bill_id": bill.id,
    }
    payload.update(extra)
    return payload


class TestRegisterPayment:

    def test_partial_then_full(self, db_session, vendor, bill, admin_user):
        payment_service.register_payment(_outbound(vendor, bill, 40000), user_id=admin_user.id)
        db_session.expire_all()
        assert db_session.get(VendorBill, bill.id).status == "partially_paid"

        payment_service.register_payment(_outbound(vendor, bill, 60000), user_id=admin_user.id)
        db_session.expire_all()
        settled = db_session.get(VendorBill, bill.id)
        assert settled.status == "paid"
        assert settled.paid_amount_cents == 100000

    def test_payment_numbers_are_sequential(self, db_session, vendor, bill):
        first = payment_service.register_payment(_outbound(vendor, bill, 10000), user_id=None)
        second = payment_service.register_payment(_outbound(vendor, bill, 10000), user_id=None)

        assert first.payment_number == "PAY-0001"
        assert second.payment_number == "PAY-0002"

    def test_inbound_cannot_settle_bill(self, db_session, vendor, bill):
        with pytest.raises(PaymentError):
            payment_service.register_payment(_outbound(vendor, bill, 10000, payment_type="inbound"), user_id=None)
        assert db_session.query(Payment).count() == 0

    def test_bill_must_belong_to_contact(self, db_session, vendor, bill, customer):
        with pytest.raises(PaymentError):
            payment_service.register_payment(
                _outbound(vendor, bill, 10000, contact_id=customer.contact.id), user_id=None
            )

    def test_amount_must_be_positive(self, db_session, vendor, bill):
        with pytest.raises(ValidationError):
            payment_service.register_payment(_outbound(vendor, bill, 0), user_id=None)

    def test_unknown_contact(self, db_session, vendor, bill):
        with pytest.raises(NotFoundError):
            payment_service.register_payment(_outbound(vendor, bill, 10000, contact_id=9999), user_id=None)

    def test_unlinked_payment_recorded_on_contact(self, db_session, vendor):
        payment = payment_service.register_payment({
            "contact_id": vendor.id,
            "payment_type": "outbound",
            "amount_cents": 2500,
            "payment_method": "cash",
        }, user_id=None)

        assert payment.bill_id is None
        assert payment_service.list_payments(contact_id=vendor.id)[0]["amount_cents"] == 2500


class TestInvoicePayments:

    def _inbound(self, customer, invoice, amount_cents, **extra):
        payload = {
            "contact_id": customer.contact.id,
            "payment_type": "inbound",
            "amount_cents": amount_cents,
            "payment_method": "upi",
            "invoice_id": invoice.id,
        }
        payload.update(extra)
        return payload

    def test_partial_then_full(self, db_session, customer, invoice):
        payment_service.register_payment(self._inbound(customer, invoice, 30000), user_id=None)
        db_session.expire_all()
        assert db_session.get(CustomerInvoice, invoice.id).status == "partially_paid"

        payment_service.register_payment(self._inbound(customer, invoice, 45000), user_id=None)
        db_session.expire_all()
        settled = db_session.get(CustomerInvoice, invoice.id)
        assert settled.status == "paid"
        assert settled.paid_amount_cents == 75000

    def test_outbound_cannot_settle_invoice(self, db_session, customer, invoice):
        with pytest.raises(PaymentError):
            payment_service.register_payment(
                self._inbound(customer, invoice, 10000, payment_type="outbound"), user_id=None
            )
        assert db_session.query(Payment).count() == 0

    def test_unknown_direction_rejected(self, db_session, customer, invoice):
        with pytest.raises(PaymentError) as exc:
            payment_service.register_payment(
                self._inbound(customer, invoice, 10000, payment_type="refund"), user_id=None
            )
        assert str(exc.value) == "payment_type must be one of: inbound, outbound"


class TestPaymentEndpoint:

    def test_register_via_api(self, client, db_session, vendor, bill, admin_headers):
        resp = client.post("/api/payments", headers=admin_headers, json=_outbound(vendor, bill, 100000))

        assert resp.status_code == 201
        db_session.expire_all()
        assert db_session.get(VendorBill, bill.id).status == "paid"

    def test_customer_cannot_register(self, client, db_session, vendor, bill, customer_headers):
        resp = client.post("/api/payments", headers=customer_headers, json=_outbound(vendor, bill, 100000))

        assert resp.status_code == 403
