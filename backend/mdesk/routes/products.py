# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

"""
Product routes

- Storefront reads (/api/products/public...) need no token and only see
  published products
- Everything else is back-office and requires an admin role
"""
from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/public")
def list_public_products():
    """
    Query params:
    - category_id, type_id: int (optional)
    - material, search: str (optional)
    """
    try:
        products = catalog_service.list_public_products(
            category_id=request.args.get("category_id", type=int),
            product_type_id=request.args.get("type_id", type=int),
            material=request.args.get("material"),
            search=request.args.get("search"),
        )
        return jsonify({"items": products, "count": len(products)}), 200
    except Exception:
        current_app.logger.exception("Failed to list public products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/public/<int:product_id>")
def get_public_product(product_id: int):
    try:
        product = catalog_service.get_public_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.get("")
@require_auth
@require_admin
def list_products():
    """
    Query params:
    - search: str (optional) - substring match on name
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        result = catalog_service.list_products(
            search=request.args.get("search"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
@require_admin
def get_product(product_id: int):
    try:
        product = catalog_service.get_product_or_404(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.post("")
@require_auth
@require_admin
def create_product():
    """
    Create a product with its variants and images.

    Request body:
    {
        "name": "Linen Shirt",
        "category_id": 1,
        "variants": [{"sku": "LS-M-BLU", "size": "M", "color": "Blue", "stock": 5,
                      "sales_price_cents": 129900, "sales_tax_bps": 500, ...}],
        "images": [{"url": "...", "color": "Blue"}]
    }
    """
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        product = catalog_service.create_product(payload)
        return jsonify({"product": product.to_dict()}), 201

    except (ValidationError, CatalogError) as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product(product_id: int):
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        product = catalog_service.update_product(product_id, payload)
        return jsonify({"product": product.to_dict()}), 200

    except (ValidationError, CatalogError) as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product(product_id: int):
    try:
        catalog_service.delete_product(product_id)
        return jsonify({"message": "Product removed"}), 200
    except CatalogError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
