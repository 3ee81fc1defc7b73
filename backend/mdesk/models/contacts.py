from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z


CONTACT_TYPES = ("customer", "vendor", "admin")


class Contact(db.Model):
    """
    Address-book entry for customers, vendors and staff.

    Invoices point at a customer contact, vendor bills and purchase orders
    at a vendor contact. A contact is linked to at most one user.
    """
    __tablename__ = "contacts"
    __table_args__ = (
        db.CheckConstraint("contact_type IN ('customer', 'vendor', 'admin')", name="ck_contacts_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    contact_type = db.Column(db.String(16), nullable=False, default="customer", index=True)

    email = db.Column(db.String(255), nullable=True, index=True)
    mobile = db.Column(db.String(32), nullable=True)

    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(128), nullable=True)
    pincode = db.Column(db.String(16), nullable=True)

    linked_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    linked_user = db.relationship("User", backref=db.backref("contact", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_type": self.contact_type,
            "email": self.email,
            "mobile": self.mobile,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "linked_user_id": self.linked_user_id,
            "created_at": to_utc_z(self.created_at),
        }
