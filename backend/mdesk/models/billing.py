from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z, to_iso_date


DEFAULT_PAYMENT_TERM_NAME = "Immediate Payment"

PAYMENT_TYPES = ("inbound", "outbound")


class PaymentTerm(db.Model):
    """
    Named payment term, optionally with an early-payment discount.

    example_preview is rendered from the other fields whenever the term is
    saved; the default "Immediate Payment" term has a fixed preview.
    """
    __tablename__ = "payment_terms"
    __table_args__ = (
        db.CheckConstraint(
            "early_pay_discount_computation IN ('base_amount', 'total_amount')",
            name="ck_payment_terms_computation",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)

    early_payment_discount = db.Column(db.Boolean, nullable=False, default=False)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_days = db.Column(db.Integer, nullable=False, default=0)
    early_pay_discount_computation = db.Column(db.String(16), nullable=False, default="base_amount")

    example_preview = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_PAYMENT_TERM_NAME

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "early_payment_discount": self.early_payment_discount,
            "discount_bps": self.discount_bps,
            "discount_days": self.discount_days,
            "early_pay_discount_computation": self.early_pay_discount_computation,
            "example_preview": self.example_preview,
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerInvoice(db.Model):
    """
    Receivable raised against a customer contact, usually mirroring an order.

    paid_amount_cents only grows; status follows it (paid when it reaches
    total_amount_cents, partially_paid otherwise).
    """
    __tablename__ = "customer_invoices"
    __table_args__ = (
        db.CheckConstraint("status IN ('draft', 'confirmed', 'paid', 'partially_paid')", name="ck_customer_invoices_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    payment_term_id = db.Column(db.Integer, db.ForeignKey("payment_terms.id"), nullable=True)

    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)

    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    payment_terms_preview = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    order = db.relationship("Order", backref=db.backref("invoice", uselist=False))
    customer = db.relationship("Contact")
    payment_term = db.relationship("PaymentTerm")
    lines = db.relationship(
        "CustomerInvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="CustomerInvoiceLine.id",
    )

    @property
    def amount_due_cents(self) -> int:
        return max(self.total_amount_cents - self.paid_amount_cents, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "payment_term_id": self.payment_term_id,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "discount_cents": self.discount_cents,
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "amount_due_cents": self.amount_due_cents,
            "status": self.status,
            "payment_terms_preview": self.payment_terms_preview,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
        }


class CustomerInvoiceLine(db.Model):
    __tablename__ = "customer_invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("customer_invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_bps = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    invoice = db.relationship("CustomerInvoice", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "tax_bps": self.tax_bps,
            "line_total_cents": self.line_total_cents,
        }


class VendorBill(db.Model):
    """Payable raised when a purchase order is received."""
    __tablename__ = "vendor_bills"
    __table_args__ = (
        db.CheckConstraint("status IN ('draft', 'confirmed', 'paid', 'partially_paid')", name="ck_vendor_bills_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_number = db.Column(db.String(32), nullable=False, unique=True)

    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, unique=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)

    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    purchase_order = db.relationship("PurchaseOrder", backref=db.backref("bill", uselist=False))
    vendor = db.relationship("Contact")
    lines = db.relationship(
        "VendorBillLine",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="VendorBillLine.id",
    )

    @property
    def amount_due_cents(self) -> int:
        return max(self.total_amount_cents - self.paid_amount_cents, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_number": self.bill_number,
            "purchase_order_id": self.purchase_order_id,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "amount_due_cents": self.amount_due_cents,
            "status": self.status,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
        }


class VendorBillLine(db.Model):
    __tablename__ = "vendor_bill_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("vendor_bills.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_bps = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    bill = db.relationship("VendorBill", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "tax_bps": self.tax_bps,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Money received from a customer (inbound) or paid to a vendor (outbound).

    Payments are immutable once recorded; there is no refund or reversal.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint(
            "payment_type IN (" + ", ".join(f"'{t}'" for t in PAYMENT_TYPES) + ")",
            name="ck_payments_type",
        ),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_number = db.Column(db.String(32), nullable=False, unique=True)

    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    payment_type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="bank")

    invoice_id = db.Column(db.Integer, db.ForeignKey("customer_invoices.id"), nullable=True, index=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("vendor_bills.id"), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    contact = db.relationship("Contact")
    invoice = db.relationship("CustomerInvoice", backref=db.backref("payments", lazy=True))
    bill = db.relationship("VendorBill", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_number": self.payment_number,
            "contact_id": self.contact_id,
            "contact_name": self.contact.name if self.contact else None,
            "payment_type": self.payment_type,
            "amount_cents": self.amount_cents,
            "payment_date": to_iso_date(self.payment_date),
            "payment_method": self.payment_method,
            "invoice_id": self.invoice_id,
            "bill_id": self.bill_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
