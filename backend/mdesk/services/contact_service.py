# Overview: Customer / vendor address book.

from __future__ import annotations

from ..extensions import db
from ..models import Contact
from ..models.contacts import CONTACT_TYPES
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, NotFoundError


CONTACT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "contact_type", "email", "mobile", "address", "city", "state", "pincode",
    }),
    required_on_create=frozenset({"name"}),
)


def _check_type(contact_type: str | None) -> None:
    if contact_type is not None and contact_type not in CONTACT_TYPES:
        raise ValidationError(f"contact_type must be one of: {', '.join(CONTACT_TYPES)}")


def list_contacts(contact_type: str | None = None, search: str | None = None) -> list[dict]:
    query = db.session.query(Contact)
    if contact_type:
        _check_type(contact_type)
        query = query.filter(Contact.contact_type == contact_type)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Contact.name.ilike(like), Contact.email.ilike(like)))
    return [c.to_dict() for c in query.order_by(Contact.created_at.desc(), Contact.id.desc()).all()]


def get_contact(contact_id: int) -> Contact:
    contact = db.session.get(Contact, contact_id)
    if not contact:
        raise NotFoundError("Contact not found")
    return contact


def require_contact_of_type(contact_id, contact_type: str, label: str) -> Contact:
    contact = db.session.get(Contact, contact_id) if contact_id else None
    if not contact or contact.contact_type != contact_type:
        raise NotFoundError(f"{label} not found")
    return contact


def create_contact(payload: dict) -> Contact:
    patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=False)
    _check_type(patch.get("contact_type"))
    contact = Contact(**patch)
    db.session.add(contact)
    db.session.commit()
    return contact


def update_contact(contact_id: int, payload: dict) -> Contact:
    contact = get_contact(contact_id)
    patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=True)
    _check_type(patch.get("contact_type"))
    for key, value in patch.items():
        setattr(contact, key, value)
    db.session.commit()
    return contact
