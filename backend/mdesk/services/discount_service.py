# Overview: Discount offers, coupon codes and the coupon evaluation engine.

"""
Discount Service

Two tiers: a DiscountOffer holds the discount terms (type, value, window,
channel, minimum cart value, eligibility rules) and owns any number of
Coupon codes. Customers redeem codes.

evaluate_coupon() is side-effect free: it only reads. Redemption happens
inside order placement through redeem_coupon(), a guarded UPDATE that can
never push used_count past usage_limit.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    DiscountOffer,
    DiscountRule,
    Coupon,
    Contact,
    Product,
    Order,
    Category,
    Brand,
    Style,
    ProductType,
)
from ..models.discounts import DISCOUNT_TYPES, AVAILABILITY_CHANNELS, RULE_FACETS
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    coerce_int,
    positive_int,
    money_cents,
    basis_points,
    ValidationError,
    NotFoundError,
)
from mdesk.time_utils import utcnow
from .concurrency import apply_guarded_update


# Product column matched by each rule facet, and the table its target lives in
FACET_TARGETS = {
    "category": ("category_id", Category),
    "brand": ("brand_id", Brand),
    "style": ("style_id", Style),
    "type": ("product_type_id", ProductType),
}

OFFER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "description", "discount_type", "discount_value",
        "min_cart_value_cents", "is_first_time_user_only",
        "start_date", "end_date", "available_on", "is_active",
    }),
    required_on_create=frozenset({"name", "discount_type", "discount_value"}),
)

COUPON_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"code", "offer_id", "contact_id", "expiration_date", "usage_limit", "is_active"}),
    required_on_create=frozenset({"code", "offer_id"}),
)


class CouponError(Exception):
    """
    Coupon rejected. status_code is 400 for business rules, 403 for a code
    locked to someone else and 404 for an unknown code.
    """

    def __init__(self, message: str, status_code: int = 400, details: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


@dataclass(frozen=True)
class CartLine:
    product_id: int
    qty: int
    sku: str | None = None
    client_price_cents: int | None = None


@dataclass(frozen=True)
class DiscountQuote:
    coupon: Coupon
    discount_cents: int
    cart_total_cents: int
    eligible_subtotal_cents: int

    def to_dict(self) -> dict:
        return {
            "coupon": self.coupon.to_dict(),
            "offer": self.coupon.offer.to_dict(),
            "calculated_discount_cents": self.discount_cents,
            "cart_total_cents": self.cart_total_cents,
            "eligible_subtotal_cents": self.eligible_subtotal_cents,
        }


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def parse_cart_lines(raw_items) -> list[CartLine]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Coupon code and cart items are required")
    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict) or raw.get("product_id") in (None, ""):
            raise ValidationError("Each cart item needs a product_id")
        client_price = raw.get("price_cents")
        lines.append(CartLine(
            product_id=coerce_int("product_id", raw["product_id"]),
            qty=positive_int("qty", raw.get("qty", 1)),
            sku=raw.get("sku") or None,
            client_price_cents=coerce_int("price_cents", client_price) if client_price is not None else None,
        ))
    return lines


# =============================================================================
# Evaluation
# =============================================================================

def _unit_price(product: Product, line: CartLine) -> int | None:
    """
    Catalog price of the line. None when the line's SKU is not one of the
    product's variants; the client's price only when the product has no
    variants at all.
    """
    if line.sku:
        variant = product.variant_for_sku(line.sku)
        return variant.sales_price_cents if variant else None
    if product.variants:
        return min(v.sales_price_cents for v in product.variants)
    return line.client_price_cents or 0


def _is_eligible(product: Product, rules: list[DiscountRule]) -> bool:
    if not rules:
        return True
    for rule in rules:
        column, _model = FACET_TARGETS[rule.facet]
        if getattr(product, column) == rule.target_id:
            return True
    return False


def compute_discount(offer: DiscountOffer, eligible_subtotal_cents: int) -> int:
    """Percentage (basis points, rounded half up) or flat, never above the eligible subtotal."""
    if offer.discount_type == "percentage":
        discount = (eligible_subtotal_cents * offer.discount_value + 5000) // 10000
    else:
        discount = offer.discount_value
    return min(discount, eligible_subtotal_cents)


def _check_coupon_usable(coupon: Coupon) -> None:
    if not coupon.is_active:
        raise CouponError("This coupon is no longer active")
    if coupon.expiration_date and coupon.expiration_date < utcnow().date():
        raise CouponError("This coupon has expired")
    if coupon.used_count >= coupon.usage_limit:
        if coupon.usage_limit == 1:
            raise CouponError("This coupon has already been used.")
        raise CouponError("This coupon has reached its usage limit")
    if coupon.status == "used":
        raise CouponError("This coupon has already been used.")


def _check_offer_applies(
    coupon: Coupon,
    *,
    contact_id: int | None,
    user_id: int | None,
    channel: str,
) -> None:
    offer = coupon.offer

    if coupon.contact_id and coupon.contact_id != contact_id:
        raise CouponError("This coupon code is specifically locked to another customer.", status_code=403)

    now = utcnow()
    if (
        not offer.is_active
        or (offer.start_date and now < offer.start_date)
        or (offer.end_date and now > offer.end_date)
    ):
        raise CouponError("The parent discount program is currently inactive.")

    if offer.available_on == "sales" and channel != "sales":
        raise CouponError("This discount is only available for backend sales orders.")
    if offer.available_on == "website" and channel != "website":
        raise CouponError("This discount is only available for website orders.")

    if offer.is_first_time_user_only and user_id is not None:
        has_orders = db.session.query(Order.id).filter(Order.user_id == user_id).first()
        if has_orders:
            raise CouponError("This offer is only valid on your first order.")


def evaluate_coupon(
    code: str,
    lines: list[CartLine],
    *,
    contact_id: int | None = None,
    user_id: int | None = None,
    channel: str = "website",
) -> DiscountQuote:
    """
    Price a coupon against a cart snapshot.

    Prices come from the catalog, not the client. Only lines whose product
    and SKU exist count toward the cart total. Nothing is written.

    Raises CouponError with a distinct message per failure.
    """
    clean_code = normalize_code(code)
    if not clean_code:
        raise CouponError("Coupon code and cart items are required")

    coupon = db.session.query(Coupon).filter_by(code=clean_code).first()
    if not coupon:
        raise CouponError("Invalid coupon code", status_code=404)

    _check_coupon_usable(coupon)

    product_ids = {line.product_id for line in lines}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }

    rules = list(coupon.offer.rules)
    matched = 0
    cart_total = 0
    eligible_subtotal = 0
    for line in lines:
        product = products.get(line.product_id)
        if not product:
            continue
        unit_price = _unit_price(product, line)
        if unit_price is None:
            continue
        matched += 1
        line_total = unit_price * line.qty
        cart_total += line_total
        if _is_eligible(product, rules):
            eligible_subtotal += line_total

    if not matched:
        raise CouponError("Cart items could not be verified.")

    if eligible_subtotal == 0:
        raise CouponError("This code is not applicable to any items in your cart.")

    minimum = coupon.offer.min_cart_value_cents
    if cart_total < minimum:
        raise CouponError(
            f"Cart total must be at least {minimum / 100:.2f} to use this code.",
            details={"min_cart_value_cents": minimum, "cart_total_cents": cart_total},
        )

    _check_offer_applies(coupon, contact_id=contact_id, user_id=user_id, channel=channel)

    return DiscountQuote(
        coupon=coupon,
        discount_cents=compute_discount(coupon.offer, eligible_subtotal),
        cart_total_cents=cart_total,
        eligible_subtotal_cents=eligible_subtotal,
    )


def redeem_coupon(coupon_id: int) -> None:
    """
    Count one use of a coupon inside the caller's transaction.

    Raises CouponError if another redemption used up the last slot first.
    """
    stmt = (
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            Coupon.is_active.is_(True),
            Coupon.used_count < Coupon.usage_limit,
        )
        .values(
            used_count=Coupon.used_count + 1,
            status=case(
                (Coupon.used_count + 1 >= Coupon.usage_limit, "used"),
                else_="unused",
            ),
        )
    )
    if not apply_guarded_update(stmt):
        raise CouponError("This coupon has reached its usage limit")


# =============================================================================
# Offer / coupon administration
# =============================================================================

def _parse_rules(raw_rules) -> list[DiscountRule]:
    if raw_rules is None:
        return []
    if not isinstance(raw_rules, list):
        raise ValidationError("rules must be a list")
    rules = []
    seen = set()
    for raw in raw_rules:
        facet = (raw or {}).get("facet")
        if facet not in RULE_FACETS:
            raise ValidationError(f"rule facet must be one of: {', '.join(RULE_FACETS)}")
        target_id = coerce_int("target_id", raw.get("target_id"))
        _column, model = FACET_TARGETS[facet]
        if not db.session.get(model, target_id):
            raise NotFoundError(f"Rule target not found: {facet} {target_id}")
        if (facet, target_id) in seen:
            continue
        seen.add((facet, target_id))
        rules.append(DiscountRule(facet=facet, target_id=target_id))
    return rules


def _check_offer_fields(offer: DiscountOffer) -> None:
    if offer.discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")
    if offer.available_on not in AVAILABILITY_CHANNELS:
        raise ValidationError(f"available_on must be one of: {', '.join(AVAILABILITY_CHANNELS)}")
    if offer.discount_type == "percentage":
        basis_points("discount_value", offer.discount_value)
    else:
        money_cents("discount_value", offer.discount_value, allow_zero=False)
    money_cents("min_cart_value_cents", offer.min_cart_value_cents or 0)
    if offer.start_date and offer.end_date and offer.end_date < offer.start_date:
        raise ValidationError("end_date must be after start_date")


def create_offer(payload: dict) -> DiscountOffer:
    data = {k: v for k, v in payload.items() if k != "rules"}
    patch = validate_payload(model=DiscountOffer, payload=data, policy=OFFER_POLICY, partial=False)
    patch.setdefault("available_on", "both")
    patch.setdefault("min_cart_value_cents", 0)

    offer = DiscountOffer(**patch)
    _check_offer_fields(offer)
    offer.rules = _parse_rules(payload.get("rules"))

    db.session.add(offer)
    db.session.commit()
    return offer


def get_offer(offer_id: int) -> DiscountOffer:
    offer = db.session.get(DiscountOffer, offer_id)
    if not offer:
        raise NotFoundError("Discount offer not found")
    return offer


def update_offer(offer_id: int, payload: dict) -> DiscountOffer:
    offer = get_offer(offer_id)
    data = {k: v for k, v in payload.items() if k != "rules"}
    patch = validate_payload(model=DiscountOffer, payload=data, policy=OFFER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(offer, key, value)
    _check_offer_fields(offer)
    if "rules" in payload:
        offer.rules = _parse_rules(payload["rules"])
    db.session.commit()
    return offer


def list_offers(active_only: bool = False) -> list[dict]:
    query = db.session.query(DiscountOffer)
    if active_only:
        query = query.filter(DiscountOffer.is_active.is_(True))
    return [o.to_dict() for o in query.order_by(DiscountOffer.id.desc()).all()]


def create_coupon(payload: dict) -> Coupon:
    patch = validate_payload(model=Coupon, payload=payload, policy=COUPON_POLICY, partial=False)
    patch["code"] = normalize_code(patch["code"])
    if not patch["code"]:
        raise ValidationError("code cannot be blank")

    get_offer(patch["offer_id"])
    if patch.get("contact_id") and not db.session.get(Contact, patch["contact_id"]):
        raise NotFoundError("Contact not found")
    if "usage_limit" in patch:
        patch["usage_limit"] = positive_int("usage_limit", patch["usage_limit"])

    if db.session.query(Coupon.id).filter_by(code=patch["code"]).first():
        raise ValidationError("Coupon code already exists")

    coupon = Coupon(**patch)
    db.session.add(coupon)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Coupon code already exists")
    return coupon


def list_coupons(offer_id: int | None = None) -> list[dict]:
    query = db.session.query(Coupon)
    if offer_id:
        query = query.filter(Coupon.offer_id == offer_id)
    return [c.to_dict() for c in query.order_by(Coupon.id.desc()).all()]


def set_coupon_active(coupon_id: int, is_active: bool) -> Coupon:
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")
    coupon.is_active = bool(is_active)
    db.session.commit()
    return coupon
