from __future__ import annotations

from ..extensions import db
from mdesk.time_utils import to_utc_z, to_iso_date


DISCOUNT_TYPES = ("percentage", "flat")
AVAILABILITY_CHANNELS = ("website", "sales", "both")

# Product attribute a rule targets; target_id points into the matching lookup table
RULE_FACETS = ("category", "brand", "style", "type")


class DiscountOffer(db.Model):
    """
    A discount program. Customers never see the offer directly; they redeem
    one of its coupon codes.

    discount_value is basis points for percentage offers and cents for flat
    offers.
    """
    __tablename__ = "discount_offers"
    __table_args__ = (
        db.CheckConstraint("discount_type IN ('percentage', 'flat')", name="ck_discount_offers_type"),
        db.CheckConstraint("available_on IN ('website', 'sales', 'both')", name="ck_discount_offers_channel"),
        db.CheckConstraint("discount_value >= 0", name="ck_discount_offers_value"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False)
    discount_value = db.Column(db.Integer, nullable=False, default=0)

    min_cart_value_cents = db.Column(db.Integer, nullable=False, default=0)
    is_first_time_user_only = db.Column(db.Boolean, nullable=False, default=False)

    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)

    available_on = db.Column(db.String(16), nullable=False, default="both")
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    rules = db.relationship(
        "DiscountRule",
        back_populates="offer",
        cascade="all, delete-orphan",
        order_by="DiscountRule.id",
    )
    coupons = db.relationship("Coupon", back_populates="offer", order_by="Coupon.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "min_cart_value_cents": self.min_cart_value_cents,
            "is_first_time_user_only": self.is_first_time_user_only,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "available_on": self.available_on,
            "is_active": self.is_active,
            "rules": [r.to_dict() for r in self.rules],
            "coupon_count": len(self.coupons),
            "created_at": to_utc_z(self.created_at),
        }


class DiscountRule(db.Model):
    """Eligibility rule: a product matches if its <facet> equals target_id."""
    __tablename__ = "discount_rules"
    __table_args__ = (
        db.UniqueConstraint("offer_id", "facet", "target_id", name="uq_discount_rules_target"),
        db.CheckConstraint("facet IN ('category', 'brand', 'style', 'type')", name="ck_discount_rules_facet"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("discount_offers.id"), nullable=False, index=True)
    facet = db.Column(db.String(16), nullable=False)
    target_id = db.Column(db.Integer, nullable=False)

    offer = db.relationship("DiscountOffer", back_populates="rules")

    def to_dict(self) -> dict:
        return {"facet": self.facet, "target_id": self.target_id}


class Coupon(db.Model):
    """
    A redeemable code belonging to an offer.

    Codes are stored trimmed and uppercased. A coupon may be locked to one
    contact. used_count only grows, through a guarded UPDATE.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.CheckConstraint("status IN ('unused', 'used')", name="ck_coupons_status"),
        db.CheckConstraint("used_count >= 0", name="ck_coupons_used_count"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)

    offer_id = db.Column(db.Integer, db.ForeignKey("discount_offers.id"), nullable=False, index=True)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=True)

    expiration_date = db.Column(db.Date, nullable=True)

    usage_limit = db.Column(db.Integer, nullable=False, default=1)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="unused")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    offer = db.relationship("DiscountOffer", back_populates="coupons")
    contact = db.relationship("Contact")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "offer_id": self.offer_id,
            "offer_name": self.offer.name if self.offer else None,
            "contact_id": self.contact_id,
            "expiration_date": to_iso_date(self.expiration_date),
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "status": self.status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
