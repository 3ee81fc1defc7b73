# Overview: Read-only sales/purchase aggregations and CSV export.

from __future__ import annotations

import csv
import io
import re
from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import (
    Order,
    OrderItem,
    PurchaseOrder,
    PurchaseOrderLine,
    Product,
    CustomerInvoice,
    VendorBill,
    Contact,
)
from mdesk.time_utils import parse_iso_datetime, to_utc_z


EXPORT_FORMATS = ("csv",)

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    """
    Returns (start, end_exclusive). A date-only end covers that whole day.
    """
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ReportError("start and end must be ISO-8601 dates")

    if end_dt is not None:
        if _DATE_ONLY_RE.match(end.strip()):
            end_dt = end_dt + timedelta(days=1)
        else:
            end_dt = end_dt + timedelta(microseconds=1)
    if start_dt and end_dt and end_dt <= start_dt:
        raise ReportError("end must not be before start")
    return start_dt, end_dt


def _range_meta(start_dt, end_dt) -> dict:
    return {"start": to_utc_z(start_dt), "end": to_utc_z(end_dt)}


def _filter_date_column(query, column, start_dt, end_dt):
    """Apply a datetime range to a DATE column (end stays exclusive)."""
    if start_dt:
        query = query.filter(column >= start_dt.date())
    if end_dt:
        last_day = (end_dt - timedelta(microseconds=1)).date()
        query = query.filter(column <= last_day)
    return query


def _nest_variants(rows, qty_key: str, amount_key: str) -> list[dict]:
    """Fold (product, sku) rows into one entry per product with a variants list."""
    products: dict[int, dict] = {}
    for row in rows:
        entry = products.setdefault(row.product_id, {
            "product_id": row.product_id,
            "product_name": row.product_name,
            qty_key: 0,
            amount_key: 0,
            "variants": [],
        })
        qty = int(row.qty or 0)
        amount = int(row.amount or 0)
        entry[qty_key] += qty
        entry[amount_key] += amount
        entry["variants"].append({"sku": row.sku, qty_key: qty, amount_key: amount})

    result = sorted(products.values(), key=lambda e: e[amount_key], reverse=True)
    for entry in result:
        entry["variants"].sort(key=lambda v: v[amount_key], reverse=True)
    return result


def sales_by_product(*, start: str | None = None, end: str | None = None) -> dict:
    """Paid orders grouped by product then SKU; the range applies to paid_at."""
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(
        OrderItem.product_id.label("product_id"),
        OrderItem.sku.label("sku"),
        func.max(OrderItem.name).label("product_name"),
        func.sum(OrderItem.qty).label("qty"),
        func.sum(OrderItem.qty * OrderItem.price_cents).label("amount"),
    ).join(Order, Order.id == OrderItem.order_id).filter(Order.is_paid.is_(True))

    if start_dt:
        query = query.filter(Order.paid_at >= start_dt)
    if end_dt:
        query = query.filter(Order.paid_at < end_dt)

    rows = query.group_by(OrderItem.product_id, OrderItem.sku).all()
    return {
        **_range_meta(start_dt, end_dt),
        "rows": _nest_variants(rows, "sold_qty", "total_received_cents"),
    }


def purchases_by_product(*, start: str | None = None, end: str | None = None) -> dict:
    """Billed purchase orders grouped by product then SKU; the range applies to order_date."""
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(
        PurchaseOrderLine.product_id.label("product_id"),
        PurchaseOrderLine.sku.label("sku"),
        func.max(Product.name).label("product_name"),
        func.sum(PurchaseOrderLine.quantity).label("qty"),
        func.sum(PurchaseOrderLine.line_total_cents).label("amount"),
    ).join(
        PurchaseOrder, PurchaseOrder.id == PurchaseOrderLine.purchase_order_id
    ).join(
        Product, Product.id == PurchaseOrderLine.product_id
    ).filter(PurchaseOrder.status == "billed")

    query = _filter_date_column(query, PurchaseOrder.order_date, start_dt, end_dt)

    rows = query.group_by(PurchaseOrderLine.product_id, PurchaseOrderLine.sku).all()
    return {
        **_range_meta(start_dt, end_dt),
        "rows": _nest_variants(rows, "purchased_qty", "total_paid_cents"),
    }


def _party_totals(model, party_column, name_key: str, start_dt, end_dt) -> list[dict]:
    query = db.session.query(
        party_column.label("party_id"),
        func.max(Contact.name).label("party_name"),
        func.count(model.id).label("total_orders"),
        func.sum(model.total_amount_cents).label("total_amount"),
        func.sum(model.paid_amount_cents).label("paid_amount"),
    ).join(Contact, Contact.id == party_column)

    query = _filter_date_column(query, model.invoice_date, start_dt, end_dt)

    rows = query.group_by(party_column).order_by(func.count(model.id).desc()).all()
    return [
        {
            "contact_id": row.party_id,
            name_key: row.party_name,
            "total_orders": int(row.total_orders or 0),
            "total_amount_cents": int(row.total_amount or 0),
            "paid_amount_cents": int(row.paid_amount or 0),
            "unpaid_amount_cents": int(row.total_amount or 0) - int(row.paid_amount or 0),
        }
        for row in rows
    ]


def sales_by_customer(*, start: str | None = None, end: str | None = None) -> dict:
    """Invoice totals per customer; the range applies to invoice_date."""
    start_dt, end_dt = _parse_range(start, end)
    return {
        **_range_meta(start_dt, end_dt),
        "rows": _party_totals(CustomerInvoice, CustomerInvoice.customer_id, "customer_name", start_dt, end_dt),
    }


def purchases_by_vendor(*, start: str | None = None, end: str | None = None) -> dict:
    """Vendor bill totals per vendor; the range applies to the bill's invoice_date."""
    start_dt, end_dt = _parse_range(start, end)
    return {
        **_range_meta(start_dt, end_dt),
        "rows": _party_totals(VendorBill, VendorBill.vendor_id, "vendor_name", start_dt, end_dt),
    }


def export_table(*, title: str, headers: list, rows: list, fmt: str) -> tuple[str, str, str]:
    """
    Render a client-supplied table for download.

    Returns (body, mimetype, filename).
    """
    if fmt not in EXPORT_FORMATS:
        raise ReportError("Invalid export format")
    if not isinstance(headers, list) or not headers:
        raise ReportError("headers must be a non-empty list")
    if not isinstance(rows, list) or any(not isinstance(r, list) for r in rows):
        raise ReportError("rows must be a list of lists")
    width = len(headers)
    if any(len(r) != width for r in rows):
        raise ReportError("every row must have one value per header")

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC)
    writer.writerow([str(h) for h in headers])
    for row in rows:
        writer.writerow(row)

    slug = re.sub(r"[^A-Za-z0-9]+", "_", (title or "Report").strip()).strip("_") or "Report"
    return buffer.getvalue(), "text/csv", f"{slug}.csv"
