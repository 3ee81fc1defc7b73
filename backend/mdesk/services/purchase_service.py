# Overview: Purchase orders from draft through receiving and vendor billing.

"""
Purchase Order Service

LIFECYCLE (one-directional):
1. draft: created with its lines
2. confirmed: sent to the vendor
3. billed: goods received; stock incremented and a VendorBill raised

Receiving is a single transaction: every line's stock increment, the bill
and the status change commit together or not at all.
"""

from datetime import date, timedelta

from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderLine, Product, VendorBill, VendorBillLine
from ..validation import coerce_int, coerce_date, money_cents, basis_points, positive_int, NotFoundError
from mdesk.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .contact_service import require_contact_of_type
from .inventory_service import increment_stock
from . import document_service


STATUS_DRAFT = "draft"
STATUS_CONFIRMED = "confirmed"
STATUS_BILLED = "billed"

RECEIVABLE_STATUSES = {STATUS_DRAFT, STATUS_CONFIRMED}

DEFAULT_BILL_DUE_DAYS = 30


class PurchaseError(Exception):
    """Raised when a purchase order operation is not allowed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def line_total_cents(quantity: int, unit_price_cents: int, tax_bps: int) -> int:
    """quantity x unit price plus tax, tax rounded half up to the cent."""
    net = quantity * unit_price_cents
    return net + (net * tax_bps + 5000) // 10000


def _parse_line(raw: dict) -> PurchaseOrderLine:
    if not isinstance(raw, dict):
        raise PurchaseError("Each item must be an object")
    if raw.get("product_id") in (None, "") or not raw.get("sku"):
        raise PurchaseError("Each item needs product_id and sku")

    product = db.session.get(Product, coerce_int("product_id", raw["product_id"]))
    if not product:
        raise NotFoundError("Product not found")
    variant = product.variant_for_sku(raw["sku"])
    if not variant:
        raise PurchaseError("SKU does not belong to this product", {"sku": raw["sku"]})

    quantity = positive_int("quantity", raw.get("quantity"))
    unit_price = raw.get("unit_price_cents")
    unit_price_cents = (
        money_cents("unit_price_cents", unit_price) if unit_price is not None else variant.purchase_price_cents
    )
    tax = raw.get("tax_bps")
    tax_bps = basis_points("tax_bps", tax) if tax is not None else variant.purchase_tax_bps

    return PurchaseOrderLine(
        product_id=product.id,
        sku=variant.sku,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        tax_bps=tax_bps,
        line_total_cents=line_total_cents(quantity, unit_price_cents, tax_bps),
    )


def create_purchase_order(payload: dict, *, user_id: int | None) -> PurchaseOrder:
    """Create a draft purchase order; total is the sum of its line totals."""
    if not isinstance(payload, dict):
        raise PurchaseError("Invalid JSON payload")

    vendor = require_contact_of_type(payload.get("vendor_id"), "vendor", "Vendor")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise PurchaseError("No purchase order items")
    lines = [_parse_line(raw) for raw in items]

    order_date = coerce_date("order_date", payload["order_date"]) if payload.get("order_date") else utcnow().date()

    po = PurchaseOrder(
        order_number=document_service.next_document_number(document_service.PURCHASE_ORDER),
        vendor_id=vendor.id,
        order_date=order_date,
        status=STATUS_DRAFT,
        notes=payload.get("notes"),
        created_by_user_id=user_id,
    )
    po.lines = lines
    po.total_amount_cents = sum(line.line_total_cents for line in lines)

    db.session.add(po)
    db.session.commit()
    return po


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError("Purchase order not found")
    return po


def list_purchase_orders(status: str | None = None) -> list[dict]:
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    return [po.to_dict() for po in query.order_by(PurchaseOrder.id.desc()).all()]


def confirm_purchase_order(po_id: int) -> PurchaseOrder:
    def _op() -> PurchaseOrder:
        po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
        if not po:
            raise NotFoundError("Purchase order not found")
        if po.status != STATUS_DRAFT:
            raise PurchaseError(
                f"Only draft purchase orders can be confirmed (current status: {po.status})",
                {"status": po.status},
            )
        po.status = STATUS_CONFIRMED
        db.session.commit()
        return po

    return run_with_retry(_op)


def receive_and_bill(
    po_id: int,
    *,
    invoice_date: date | None = None,
    due_date: date | None = None,
) -> tuple[PurchaseOrder, VendorBill]:
    """
    Receive every line of a draft or confirmed purchase order.

    Increments each variant's stock by its line quantity, raises a confirmed
    VendorBill mirroring the order and marks the order billed.

    Raises:
        NotFoundError: unknown purchase order
        PurchaseError: wrong status, or a line's SKU no longer exists
    """
    def _op() -> tuple[PurchaseOrder, VendorBill]:
        po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
        if not po:
            raise NotFoundError("Purchase order not found")
        if po.status not in RECEIVABLE_STATUSES:
            raise PurchaseError(
                f"Purchase order cannot be received in status {po.status}",
                {"status": po.status},
            )

        for line in po.lines:
            if not increment_stock(line.product_id, line.sku, line.quantity):
                raise PurchaseError("SKU no longer exists", {"sku": line.sku})

        bill_date = invoice_date or utcnow().date()
        bill = VendorBill(
            bill_number=document_service.next_document_number(document_service.VENDOR_BILL),
            purchase_order_id=po.id,
            vendor_id=po.vendor_id,
            invoice_date=bill_date,
            due_date=due_date or (bill_date + timedelta(days=DEFAULT_BILL_DUE_DAYS)),
            total_amount_cents=po.total_amount_cents,
            paid_amount_cents=0,
            status="confirmed",
        )
        for line in po.lines:
            bill.lines.append(VendorBillLine(
                product_id=line.product_id,
                sku=line.sku,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                tax_bps=line.tax_bps,
                line_total_cents=line.line_total_cents,
            ))
        db.session.add(bill)

        po.status = STATUS_BILLED
        po.received_at = utcnow()

        db.session.commit()
        return po, bill

    try:
        return run_with_retry(_op)
    except (PurchaseError, NotFoundError):
        db.session.rollback()
        raise
