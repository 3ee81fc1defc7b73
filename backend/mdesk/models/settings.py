from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z


SYSTEM_SETTINGS_ID = 1


class SystemSettings(db.Model):
    """
    Global settings. Exactly one row may exist (id is pinned to 1).
    """
    __tablename__ = "system_settings"
    __table_args__ = (
        db.CheckConstraint("id = 1", name="ck_system_settings_singleton"),
    )

    id = db.Column(db.Integer, primary_key=True, default=SYSTEM_SETTINGS_ID)
    automatic_invoicing = db.Column(db.Boolean, nullable=False, default=False)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "automatic_invoicing": self.automatic_invoicing,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-type document counters (PO, BILL, INV, PAY).
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
