# Overview: Order placement, payment verification, delivery and automatic invoicing.

"""
Order Workflow

place_order() runs as one database transaction:
1. validate lines against the catalog and snapshot cost basis
2. decrement each SKU's stock with a conditional UPDATE (stock >= qty)
3. resolve the default payment term and render its text
4. apply and redeem the coupon, if any
5. insert the order (always unpaid) and create the gateway payment intent

Any failure, including the gateway call, rolls every step back. After
commit, if automatic invoicing is on, an invoice is raised for the
caller's linked contact; invoicing problems are logged and never undo
the order.

verify_payment() is the only path that marks an order paid. It is
idempotent: a second verification of a paid order changes nothing.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Product, Contact
from ..validation import coerce_int, positive_int, money_cents, NotFoundError
from mdesk.time_utils import utcnow, to_utc_z
from .concurrency import lock_for_update
from .inventory_service import decrement_stock
from .discount_service import CartLine, evaluate_coupon, redeem_coupon
from .purchase_service import line_total_cents
from .settings_service import SettingsSnapshot
from . import billing_service
from . import payment_service


INTENT_SUCCEEDED = "succeeded"

SHIPPING_FIELDS = ("address", "city", "postal_code", "country")


class OrderError(Exception):
    """Raised for order workflow errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderAccessError(OrderError):
    """Caller may not see or act on this order."""


@dataclass(frozen=True)
class PlacedOrder:
    order: Order
    client_secret: str | None
    invoice_id: int | None = None


@dataclass(frozen=True)
class _RequestedLine:
    product_id: int
    sku: str
    qty: int


def _parse_lines(raw_items) -> list[_RequestedLine]:
    if not isinstance(raw_items, list) or not raw_items:
        raise OrderError("No order items")
    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict) or raw.get("product_id") in (None, "") or not raw.get("sku"):
            raise OrderError("Each order item needs product_id, sku and qty")
        lines.append(_RequestedLine(
            product_id=coerce_int("product_id", raw["product_id"]),
            sku=str(raw["sku"]).strip(),
            qty=positive_int("qty", raw.get("qty")),
        ))
    return lines


def _parse_shipping(raw) -> dict:
    if not isinstance(raw, dict):
        raise OrderError("shipping_address is required")
    missing = [f for f in SHIPPING_FIELDS if not str(raw.get(f) or "").strip()]
    if missing:
        raise OrderError(f"shipping_address is missing: {', '.join(missing)}")
    return {f: str(raw[f]).strip() for f in SHIPPING_FIELDS}


def _build_items(lines: list[_RequestedLine]) -> list[OrderItem]:
    """
    Turn requested lines into order items priced from the catalog, with the
    variant's purchase price and tax captured as the cost basis.
    """
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_({l.product_id for l in lines})).all()
    }
    items = []
    for line in lines:
        product = products.get(line.product_id)
        if not product:
            raise NotFoundError("Product not found")
        variant = product.variant_for_sku(line.sku)
        if not variant:
            raise OrderError("SKU does not belong to this product", {"sku": line.sku})

        image = next((i.url for i in product.images if i.color and i.color == variant.color), None)
        if image is None and product.images:
            image = product.images[0].url

        items.append(OrderItem(
            product_id=product.id,
            sku=variant.sku,
            name=product.name,
            image=image,
            color=variant.color,
            size=variant.size,
            qty=line.qty,
            price_cents=variant.sales_price_cents,
            purchase_price_cents=variant.purchase_price_cents,
            purchase_tax_bps=variant.purchase_tax_bps,
        ))
    return items


def _decrement_stock(items: list[OrderItem]) -> None:
    for item in items:
        if not decrement_stock(item.product_id, item.sku, item.qty):
            raise OrderError("Insufficient stock", {"sku": item.sku, "requested": item.qty})


def place_order(identity, payload: dict, *, settings: SettingsSnapshot, gateway) -> PlacedOrder:
    """
    Place an order for the caller and open a payment intent for it.

    Raises:
        OrderError: empty/invalid lines, unknown SKU, insufficient stock
        CouponError: coupon rejected at placement time
        GatewayError: payment intent could not be created
        NotFoundError: unknown product
    """
    if not isinstance(payload, dict):
        raise OrderError("Invalid JSON payload")

    lines = _parse_lines(payload.get("items"))
    shipping = _parse_shipping(payload.get("shipping_address"))
    payment_method = str(payload.get("payment_method") or "card").strip()
    shipping_price_cents = money_cents("shipping_price_cents", payload.get("shipping_price_cents", 0))

    try:
        items = _build_items(lines)
        items_price_cents = sum(i.line_total_cents for i in items)
        total_cost_cents = sum(
            line_total_cents(i.qty, i.purchase_price_cents, i.purchase_tax_bps) for i in items
        )

        coupon = None
        discount_cents = 0
        coupon_code = (payload.get("coupon_code") or "").strip()
        if coupon_code:
            quote = evaluate_coupon(
                coupon_code,
                [CartLine(product_id=i.product_id, qty=i.qty, sku=i.sku) for i in items],
                contact_id=identity.contact_id,
                user_id=identity.user_id,
                channel="website",
            )
            coupon = quote.coupon
            discount_cents = quote.discount_cents

        _decrement_stock(items)

        term = billing_service.ensure_default_term()
        total_price_cents = items_price_cents + shipping_price_cents - discount_cents

        order = Order(
            user_id=identity.user_id,
            shipping_address=shipping["address"],
            shipping_city=shipping["city"],
            shipping_postal_code=shipping["postal_code"],
            shipping_country=shipping["country"],
            payment_method=payment_method,
            items_price_cents=items_price_cents,
            shipping_price_cents=shipping_price_cents,
            discount_cents=discount_cents,
            total_price_cents=total_price_cents,
            total_cost_cents=total_cost_cents,
            coupon_id=coupon.id if coupon else None,
            payment_term_id=term.id,
            payment_terms_preview=billing_service.render_payment_terms_text(
                term, utcnow().date(), items_price_cents, total_price_cents
            ),
            is_paid=False,
        )
        order.items = items
        db.session.add(order)

        if coupon is not None:
            redeem_coupon(coupon.id)

        db.session.flush()

        client_secret = None
        if total_price_cents > 0:
            intent = gateway.create_payment_intent(
                amount_cents=total_price_cents,
                receipt_email=identity.email,
                metadata={"order_id": order.id},
            )
            order.payment_intent_id = intent.id
            client_secret = intent.client_secret
        else:
            # Nothing to collect
            order.is_paid = True
            order.paid_at = utcnow()

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Order %s placed by user %s", order.id, identity.user_id)

    invoice_id = None
    if settings.automatic_invoicing:
        invoice_id = _auto_invoice(order, identity)

    return PlacedOrder(order=order, client_secret=client_secret, invoice_id=invoice_id)


def _auto_invoice(order: Order, identity) -> int | None:
    """Raise the order's invoice; log instead of failing the placement."""
    if not identity.contact_id:
        current_app.logger.warning(
            "Automatic invoicing skipped for order %s: user %s has no linked contact",
            order.id,
            identity.user_id,
        )
        return None

    try:
        contact = db.session.get(Contact, identity.contact_id)
        invoice = billing_service.create_invoice_for_order(order, contact)
        if order.is_paid:
            _settle_invoice(invoice, order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Automatic invoicing failed for order %s", order.id)
        return None

    current_app.logger.info("Invoice %s raised for order %s", invoice.invoice_number, order.id)
    return invoice.id


def _settle_invoice(invoice, order: Order) -> None:
    if invoice.amount_due_cents <= 0:
        # Nothing to collect; no zero-amount payment row
        invoice.status = payment_service.status_for(invoice.paid_amount_cents, invoice.total_amount_cents)
        return
    payment_service.apply_payment(
        contact_id=invoice.customer_id,
        payment_type="inbound",
        amount_cents=invoice.amount_due_cents,
        payment_method="card",
        invoice_id=invoice.id,
        notes=f"Gateway payment {order.payment_intent_id}" if order.payment_intent_id else None,
        user_id=order.user_id,
    )


def verify_payment(payment_intent_id: str, identity, *, gateway) -> tuple[Order, bool]:
    """
    Reconcile an order with its gateway payment intent.

    Returns (order, changed). changed is False when the order was already
    paid; paid_at is left as it was.

    Raises:
        NotFoundError: no order for this intent
        OrderAccessError: the order belongs to someone else
        OrderError: the intent has not succeeded or its amount differs
        GatewayError: the gateway could not be reached
    """
    payment_intent_id = (payment_intent_id or "").strip()
    if not payment_intent_id:
        raise OrderError("payment_intent_id is required")

    order = db.session.query(Order).filter_by(payment_intent_id=payment_intent_id).first()
    if not order:
        raise NotFoundError("Order not found")
    if not identity.is_admin and order.user_id != identity.user_id:
        raise OrderAccessError("Not authorized to verify this order")

    intent = gateway.retrieve_payment_intent(payment_intent_id)
    if intent.status != INTENT_SUCCEEDED:
        raise OrderError("Payment was not successful.", {"status": intent.status})
    if intent.amount != order.total_price_cents:
        raise OrderError(
            "Payment amount does not match order total",
            {"intent_amount": intent.amount, "order_total_cents": order.total_price_cents},
        )

    try:
        order = lock_for_update(db.session.query(Order).filter_by(id=order.id)).first()
        if order.is_paid:
            return order, False

        now = utcnow()
        order.is_paid = True
        order.paid_at = now
        order.payment_result_id = intent.id
        order.payment_result_status = intent.status
        order.payment_result_update_time = to_utc_z(now)
        order.payment_result_email = intent.receipt_email or identity.email

        if order.invoice is not None:
            _settle_invoice(order.invoice, order)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Order %s marked paid (intent %s)", order.id, intent.id)
    return order, True


def list_orders_for_user(user_id: int) -> list[dict]:
    orders = (
        db.session.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.id.desc())
        .all()
    )
    return [o.to_dict() for o in orders]


def list_orders() -> list[dict]:
    return [o.to_dict() for o in db.session.query(Order).order_by(Order.id.desc()).all()]


def get_order(order_id: int, identity) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if not identity.is_admin and order.user_id != identity.user_id:
        raise OrderAccessError("Not authorized to view this order")
    return order


def mark_delivered(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError("Order not found")
    if not order.is_delivered:
        order.is_delivered = True
        order.delivered_at = utcnow()
        db.session.commit()
    return order

