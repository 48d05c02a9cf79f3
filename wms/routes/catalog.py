# Overview: Flask API routes for products, categories and units.

"""
Catalog API routes.

Monetary fields (price, cost) are canonical unless ?currency=display is
passed; then responses are converted and request amounts parsed back.
"""

from flask import Blueprint, jsonify

from ..services import catalog_service
from .common import PRODUCT_MONEY, json_body, json_error, request_currency


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/products")
def list_products_route():
    try:
        currency = request_currency()
        products = [currency.convert_fields(p, PRODUCT_MONEY) for p in catalog_service.list_products()]
        return jsonify({"items": products, "count": len(products)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to list products")


@catalog_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        currency = request_currency()
        product = catalog_service.get_product(product_id)
        data = product.to_dict(incoming=catalog_service.get_incoming_quantity(product_id))
        return jsonify({"product": currency.convert_fields(data, PRODUCT_MONEY)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to load product")


@catalog_bp.post("/products")
def create_product_route():
    try:
        currency = request_currency()
        payload = currency.parse_fields(json_body(), PRODUCT_MONEY)
        product = catalog_service.create_product(payload)
        data = product.to_dict(incoming=0.0)
        return jsonify({"product": currency.convert_fields(data, PRODUCT_MONEY)}), 201
    except Exception as exc:
        return json_error(exc, "Failed to create product")


@catalog_bp.put("/products/<int:product_id>")
def update_product_route(product_id: int):
    try:
        currency = request_currency()
        payload = currency.parse_fields(json_body(), PRODUCT_MONEY)
        product = catalog_service.update_product(product_id, payload)
        data = product.to_dict(incoming=catalog_service.get_incoming_quantity(product_id))
        return jsonify({"product": currency.convert_fields(data, PRODUCT_MONEY)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to update product")


@catalog_bp.delete("/products/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        deleted = catalog_service.delete_product(product_id)
        return jsonify({"deleted": deleted}), 200
    except Exception as exc:
        return json_error(exc, "Failed to delete product")


@catalog_bp.get("/categories")
def list_categories_route():
    categories = [c.to_dict() for c in catalog_service.list_categories()]
    return jsonify({"items": categories, "count": len(categories)}), 200


@catalog_bp.post("/categories")
def add_category_route():
    try:
        category = catalog_service.add_category(json_body().get("name"))
        return jsonify({"category": category.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to add category")


@catalog_bp.delete("/categories/<int:category_id>")
def delete_category_route(category_id: int):
    try:
        deleted = catalog_service.delete_category(category_id)
        if not deleted:
            return jsonify({"error": "Category not found"}), 404
        return jsonify({"deleted": True}), 200
    except Exception as exc:
        return json_error(exc, "Failed to delete category")


@catalog_bp.get("/units")
def list_units_route():
    units = [u.to_dict() for u in catalog_service.list_units()]
    return jsonify({"items": units, "count": len(units)}), 200


@catalog_bp.post("/units")
def add_unit_route():
    try:
        unit = catalog_service.add_unit(json_body().get("name"))
        return jsonify({"unit": unit.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to add unit")


@catalog_bp.delete("/units/<int:unit_id>")
def delete_unit_route(unit_id: int):
    try:
        deleted = catalog_service.delete_unit(unit_id)
        if not deleted:
            return jsonify({"error": "Unit not found"}), 404
        return jsonify({"deleted": True}), 200
    except Exception as exc:
        return json_error(exc, "Failed to delete unit")
