# Overview: Payment terms, customer invoices and vendor bill lookups.

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PaymentTerm, CustomerInvoice, CustomerInvoiceLine, VendorBill, Order, Contact
from ..models.billing import DEFAULT_PAYMENT_TERM_NAME
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    basis_points,
    coerce_int,
    ValidationError,
    NotFoundError,
)
from mdesk.time_utils import utcnow, format_ddmmyyyy
from . import document_service


PAYMENT_TERM_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "early_payment_discount", "discount_bps", "discount_days", "early_pay_discount_computation",
    }),
    required_on_create=frozenset({"name"}),
)


class BillingError(Exception):
    """Raised when a billing document operation is not allowed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class BillingAccessError(BillingError):
    """Caller may not see this document."""


# =============================================================================
# Payment terms
# =============================================================================

def early_payment_discount_cents(term: PaymentTerm, base_cents: int, total_cents: int) -> int:
    target = total_cents if term.early_pay_discount_computation == "total_amount" else base_cents
    return (target * term.discount_bps + 5000) // 10000


def render_payment_terms_text(term: PaymentTerm, invoice_date: date, base_cents: int, total_cents: int) -> str:
    """
    Text printed on an invoice for this term.

    Without an early-payment discount it is just the term name. With one it
    adds the discount amount and the last day it applies (DD/MM/YYYY).
    """
    if not term.early_payment_discount:
        return f"Payment Terms: {term.name}"

    discount = early_payment_discount_cents(term, base_cents, total_cents)
    early_pay_date = invoice_date + timedelta(days=term.discount_days)
    return (
        f"Payment Terms: {term.name}\n"
        f"Early payment discount: {discount / 100:.2f} if paid before {format_ddmmyyyy(early_pay_date)}"
    )


def _apply_term_defaults(term: PaymentTerm) -> None:
    """Normalize the default term and refresh example_preview."""
    if term.name == DEFAULT_PAYMENT_TERM_NAME:
        term.early_payment_discount = False
        term.discount_bps = 0
        term.discount_days = 0
        term.example_preview = f"Payment Terms: {DEFAULT_PAYMENT_TERM_NAME}"
        return

    if term.early_payment_discount:
        early_pay_date = utcnow().date() + timedelta(days=term.discount_days or 0)
        term.example_preview = (
            f"Payment Terms: {term.name}\n"
            f"Early payment discount: {term.discount_bps / 100:g}% if paid before {format_ddmmyyyy(early_pay_date)}"
        )
    else:
        term.example_preview = f"Payment Terms: {term.name}"


def _validate_term_fields(term: PaymentTerm) -> None:
    basis_points("discount_bps", term.discount_bps or 0)
    if coerce_int("discount_days", term.discount_days or 0) < 0:
        raise ValidationError("discount_days must be >= 0")
    if term.early_pay_discount_computation not in (None, "base_amount", "total_amount"):
        raise ValidationError("early_pay_discount_computation must be base_amount or total_amount")


def ensure_default_term() -> PaymentTerm:
    """Return the "Immediate Payment" term, creating it in the current transaction if needed."""
    term = db.session.query(PaymentTerm).filter_by(name=DEFAULT_PAYMENT_TERM_NAME).first()
    if term is None:
        term = PaymentTerm(name=DEFAULT_PAYMENT_TERM_NAME, early_pay_discount_computation="base_amount")
        _apply_term_defaults(term)
        db.session.add(term)
        db.session.flush()
    return term


def create_payment_term(payload: dict) -> PaymentTerm:
    patch = validate_payload(model=PaymentTerm, payload=payload, policy=PAYMENT_TERM_POLICY, partial=False)
    term = PaymentTerm(**patch)
    term.early_pay_discount_computation = term.early_pay_discount_computation or "base_amount"
    term.discount_bps = term.discount_bps or 0
    term.discount_days = term.discount_days or 0
    _validate_term_fields(term)
    _apply_term_defaults(term)

    db.session.add(term)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("A payment term with this name already exists")
    return term


def list_payment_terms() -> list[dict]:
    return [t.to_dict() for t in db.session.query(PaymentTerm).order_by(PaymentTerm.name.asc()).all()]


def delete_payment_term(term_id: int) -> None:
    term = db.session.get(PaymentTerm, term_id)
    if not term:
        raise NotFoundError("Payment term not found")
    if term.is_default:
        raise BillingError("Cannot delete the default Immediate Payment term.")
    in_use = db.session.query(Order.id).filter(Order.payment_term_id == term.id).first()
    if in_use:
        raise BillingError("Payment term is used by existing orders")
    db.session.delete(term)
    db.session.commit()


# =============================================================================
# Customer invoices
# =============================================================================

def create_invoice_for_order(order: Order, customer: Contact) -> CustomerInvoice:
    """
    Mirror an order into a confirmed, unpaid invoice. Caller commits.
    """
    if order.invoice is not None:
        raise BillingError("Invoice already exists for this order", {"order_id": order.id})

    invoice_date = utcnow().date()
    term = order.payment_term
    due_days = term.discount_days if term and term.early_payment_discount else 0

    invoice = CustomerInvoice(
        invoice_number=document_service.next_document_number(document_service.CUSTOMER_INVOICE),
        order_id=order.id,
        customer_id=customer.id,
        payment_term_id=term.id if term else None,
        invoice_date=invoice_date,
        due_date=invoice_date + timedelta(days=due_days),
        discount_cents=order.discount_cents,
        total_amount_cents=order.total_price_cents,
        paid_amount_cents=0,
        status="confirmed",
        payment_terms_preview=(
            render_payment_terms_text(term, invoice_date, order.items_price_cents, order.total_price_cents)
            if term else None
        ),
    )
    for item in order.items:
        invoice.lines.append(CustomerInvoiceLine(
            product_id=item.product_id,
            sku=item.sku,
            description=item.name,
            quantity=item.qty,
            unit_price_cents=item.price_cents,
            line_total_cents=item.line_total_cents,
        ))
    db.session.add(invoice)
    db.session.flush()
    return invoice


def list_invoices() -> list[dict]:
    invoices = db.session.query(CustomerInvoice).order_by(CustomerInvoice.id.desc()).all()
    return [i.to_dict() for i in invoices]


def list_invoices_for_contact(contact_id: int | None) -> list[dict]:
    """A caller without a linked contact simply has no invoices."""
    if not contact_id:
        return []
    invoices = (
        db.session.query(CustomerInvoice)
        .filter(CustomerInvoice.customer_id == contact_id)
        .order_by(CustomerInvoice.id.desc())
        .all()
    )
    return [i.to_dict() for i in invoices]


def _check_invoice_access(invoice: CustomerInvoice, identity) -> None:
    if identity.is_admin:
        return
    if not identity.contact_id or invoice.customer_id != identity.contact_id:
        raise BillingAccessError("Not authorized to view this invoice")


def get_invoice(invoice_id: int, identity) -> CustomerInvoice:
    invoice = db.session.get(CustomerInvoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    _check_invoice_access(invoice, identity)
    return invoice


def get_invoice_for_order(order_id: int, identity) -> CustomerInvoice:
    invoice = db.session.query(CustomerInvoice).filter_by(order_id=order_id).first()
    if not invoice:
        raise NotFoundError("Invoice not found for this order")
    _check_invoice_access(invoice, identity)
    return invoice


# =============================================================================
# Vendor bills
# =============================================================================

def list_bills(status: str | None = None) -> list[dict]:
    query = db.session.query(VendorBill)
    if status:
        query = query.filter(VendorBill.status == status)
    return [b.to_dict() for b in query.order_by(VendorBill.id.desc()).all()]


def get_bill(bill_id: int) -> VendorBill:
    bill = db.session.get(VendorBill, bill_id)
    if not bill:
        raise NotFoundError("Vendor bill not found")
    return bill
