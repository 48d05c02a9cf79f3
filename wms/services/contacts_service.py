from __future__ import annotations

from ..extensions import db
from ..models import Contact
from ..models.contacts import CONTACT_TYPES
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    require_choice,
    validate_payload,
)
from .concurrency import transactional

CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "type"},
    required_on_create={"name"},
)


def list_contacts(contact_type: str | None = None) -> list[Contact]:
    query = db.session.query(Contact)
    if contact_type:
        require_choice(contact_type, "type", CONTACT_TYPES)
        query = query.filter(Contact.type == contact_type)
    return query.order_by(Contact.name.asc(), Contact.id.asc()).all()


def list_customers() -> list[Contact]:
    return list_contacts("customer")


def get_contact(contact_id: int) -> Contact:
    contact = db.session.get(Contact, contact_id)
    if not contact:
        raise NotFoundError(f"Contact {contact_id} not found")
    return contact


@transactional
def create_contact(payload: dict) -> Contact:
    patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=False)
    patch["type"] = require_choice(patch.get("type") or "customer", "type", CONTACT_TYPES)
    contact = Contact(**patch)
    db.session.add(contact)
    db.session.flush()
    return contact


@transactional
def update_contact(contact_id: int, payload: dict) -> Contact:
    contact = get_contact(contact_id)
    patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=True)
    if "type" in patch:
        require_choice(patch["type"], "type", CONTACT_TYPES)
    for key, value in patch.items():
        setattr(contact, key, value)
    db.session.flush()
    return contact


@transactional
def delete_contact(contact_id: int) -> bool:
    """Hard delete. Orders/POs keep the id and read back without a name."""
    deleted = db.session.query(Contact).filter_by(id=contact_id).delete()
    return bool(deleted)
