# Overview: Registration of customer receipts and vendor payments against invoices and bills.

"""
Payment Registration Service

A Payment is immutable once written. Registering one against an invoice
(inbound) or a vendor bill (outbound) raises the document's paid amount
under a row lock and moves its status to paid or partially_paid. Paid
amounts never go down; there are no refunds or reversals.
"""

from datetime import date

from ..extensions import db
from ..models import Payment, CustomerInvoice, VendorBill, Contact
from ..models.billing import PAYMENT_TYPES
from ..validation import money_cents, coerce_date, coerce_int, NotFoundError
from mdesk.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from . import document_service


PAYMENT_METHODS = ("cash", "bank", "card", "upi", "cheque")


class PaymentError(Exception):
    """Raised for payment registration errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def status_for(paid_cents: int, total_cents: int) -> str:
    return "paid" if paid_cents >= total_cents else "partially_paid"


def _settle(document, amount_cents: int) -> None:
    document.paid_amount_cents = document.paid_amount_cents + amount_cents
    document.status = status_for(document.paid_amount_cents, document.total_amount_cents)


def apply_payment(
    *,
    contact_id: int,
    payment_type: str,
    amount_cents: int,
    payment_method: str,
    payment_date: date | None = None,
    invoice_id: int | None = None,
    bill_id: int | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Payment:
    """
    Write a Payment and settle its linked document in the current
    transaction. The caller commits.

    Raises:
        PaymentError: bad direction/method/amount, document mismatch
        NotFoundError: unknown contact, invoice or bill
    """
    if payment_type not in PAYMENT_TYPES:
        raise PaymentError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    if payment_method not in PAYMENT_METHODS:
        raise PaymentError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    if amount_cents <= 0:
        raise PaymentError("Payment amount must be positive")
    if invoice_id and bill_id:
        raise PaymentError("A payment can settle an invoice or a bill, not both")

    contact = db.session.get(Contact, contact_id)
    if not contact:
        raise NotFoundError("Contact not found")

    invoice = None
    bill = None
    if invoice_id:
        if payment_type != "inbound":
            raise PaymentError("Invoices can only be settled by inbound payments")
        invoice = lock_for_update(db.session.query(CustomerInvoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        if invoice.customer_id != contact.id:
            raise PaymentError("Invoice belongs to a different contact", {"invoice_id": invoice_id})
        if invoice.status == "draft":
            raise PaymentError("Cannot register a payment against a draft invoice")
    if bill_id:
        if payment_type != "outbound":
            raise PaymentError("Vendor bills can only be settled by outbound payments")
        bill = lock_for_update(db.session.query(VendorBill).filter_by(id=bill_id)).first()
        if not bill:
            raise NotFoundError("Vendor bill not found")
        if bill.vendor_id != contact.id:
            raise PaymentError("Bill belongs to a different contact", {"bill_id": bill_id})
        if bill.status == "draft":
            raise PaymentError("Cannot register a payment against a draft bill")

    payment = Payment(
        payment_number=document_service.next_document_number(document_service.PAYMENT),
        contact_id=contact.id,
        payment_type=payment_type,
        amount_cents=amount_cents,
        payment_date=payment_date or utcnow().date(),
        payment_method=payment_method,
        invoice_id=invoice.id if invoice else None,
        bill_id=bill.id if bill else None,
        notes=notes,
        created_by_user_id=user_id,
    )
    db.session.add(payment)

    if invoice is not None:
        _settle(invoice, amount_cents)
    if bill is not None:
        _settle(bill, amount_cents)

    db.session.flush()
    return payment


def register_payment(payload: dict, *, user_id: int | None) -> Payment:
    """Validate an API payload and register the payment in its own transaction."""
    if not isinstance(payload, dict):
        raise PaymentError("Invalid JSON payload")
    if payload.get("contact_id") in (None, ""):
        raise PaymentError("contact_id is required")

    contact_id = coerce_int("contact_id", payload["contact_id"])
    amount_cents = money_cents("amount_cents", payload.get("amount_cents"), allow_zero=False)
    payment_date = coerce_date("payment_date", payload["payment_date"]) if payload.get("payment_date") else None
    invoice_id = coerce_int("invoice_id", payload["invoice_id"]) if payload.get("invoice_id") else None
    bill_id = coerce_int("bill_id", payload["bill_id"]) if payload.get("bill_id") else None

    def _op() -> Payment:
        payment = apply_payment(
            contact_id=contact_id,
            payment_type=payload.get("payment_type"),
            amount_cents=amount_cents,
            payment_method=payload.get("payment_method") or "bank",
            payment_date=payment_date,
            invoice_id=invoice_id,
            bill_id=bill_id,
            notes=payload.get("notes"),
            user_id=user_id,
        )
        db.session.commit()
        return payment

    try:
        return run_with_retry(_op)
    except (PaymentError, NotFoundError):
        db.session.rollback()
        raise


def list_payments(
    *,
    payment_type: str | None = None,
    contact_id: int | None = None,
) -> list[dict]:
    query = db.session.query(Payment)
    if payment_type:
        query = query.filter(Payment.payment_type == payment_type)
    if contact_id:
        query = query.filter(Payment.contact_id == contact_id)
    return [p.to_dict() for p in query.order_by(Payment.id.desc()).all()]
