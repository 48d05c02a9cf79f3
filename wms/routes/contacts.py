# Overview: Flask API routes for customers, distributors and sales reps.

from flask import Blueprint, jsonify, request

from ..services import contacts_service
from .common import json_body, json_error


contacts_bp = Blueprint("contacts", __name__, url_prefix="/api/contacts")


@contacts_bp.get("")
def list_contacts_route():
    try:
        contacts = contacts_service.list_contacts(request.args.get("type") or None)
        return jsonify({"items": [c.to_dict() for c in contacts], "count": len(contacts)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to list contacts")


@contacts_bp.get("/customers")
def list_customers_route():
    customers = contacts_service.list_customers()
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@contacts_bp.get("/<int:contact_id>")
def get_contact_route(contact_id: int):
    try:
        return jsonify({"contact": contacts_service.get_contact(contact_id).to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to load contact")


@contacts_bp.post("")
def create_contact_route():
    try:
        contact = contacts_service.create_contact(json_body())
        return jsonify({"contact": contact.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to create contact")


@contacts_bp.put("/<int:contact_id>")
def update_contact_route(contact_id: int):
    try:
        contact = contacts_service.update_contact(contact_id, json_body())
        return jsonify({"contact": contact.to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to update contact")


@contacts_bp.delete("/<int:contact_id>")
def delete_contact_route(contact_id: int):
    try:
        deleted = contacts_service.delete_contact(contact_id)
        if not deleted:
            return jsonify({"error": "Contact not found"}), 404
        return jsonify({"deleted": True}), 200
    except Exception as exc:
        return json_error(exc, "Failed to delete contact")
