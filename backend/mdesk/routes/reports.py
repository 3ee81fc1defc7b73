from flask import Blueprint, Response, jsonify, request

from ..decorators import require_auth, require_admin
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-by-product")
@require_auth
@require_admin
def sales_by_product_report():
    try:
        report = reporting_service.sales_by_product(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/purchases-by-product")
@require_auth
@require_admin
def purchases_by_product_report():
    try:
        report = reporting_service.purchases_by_product(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/sales-by-customer")
@require_auth
@require_admin
def sales_by_customer_report():
    try:
        report = reporting_service.sales_by_customer(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/purchases-by-vendor")
@require_auth
@require_admin
def purchases_by_vendor_report():
    try:
        report = reporting_service.purchases_by_vendor(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.post("/export")
@require_auth
@require_admin
def export_report():
    """
    Download a table as an attachment.

    Request body: {"title": "Sales", "headers": [...], "rows": [[...], ...], "format": "csv"}
    """
    data = request.get_json(silent=True) or {}
    try:
        body, mimetype, filename = reporting_service.export_table(
            title=data.get("title") or "Report",
            headers=data.get("headers"),
            rows=data.get("rows"),
            fmt=(data.get("format") or "csv").lower(),
        )
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400

    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
