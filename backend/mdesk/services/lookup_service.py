# Overview: Generic CRUD for the catalog lookup tables (categories, brands, colors, sizes, styles, types).

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category, Brand, Color, Size, Style, ProductType, Product
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, NotFoundError


@dataclass(frozen=True)
class LookupResource:
    """A lookup table exposed over the API."""
    label: str
    model: type
    policy: ModelValidationPolicy
    # Product column referencing this table; None when products store the value as text
    product_fk: str | None = None


_NAMED_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "description"}),
    required_on_create=frozenset({"name"}),
)

RESOURCES: dict[str, LookupResource] = {
    "categories": LookupResource("Category", Category, _NAMED_POLICY, "category_id"),
    "brands": LookupResource("Brand", Brand, _NAMED_POLICY, "brand_id"),
    "styles": LookupResource("Style", Style, _NAMED_POLICY, "style_id"),
    "types": LookupResource("Type", ProductType, _NAMED_POLICY, "product_type_id"),
    "colors": LookupResource(
        "Color",
        Color,
        ModelValidationPolicy(
            writable_fields=frozenset({"name", "hex_code"}),
            required_on_create=frozenset({"name"}),
        ),
    ),
    "sizes": LookupResource(
        "Size",
        Size,
        ModelValidationPolicy(
            writable_fields=frozenset({"name", "code"}),
            required_on_create=frozenset({"name"}),
        ),
    ),
}


class LookupRepository:
    """
    CRUD over one lookup model.

    Search matches (case-insensitive, substring) on the model's declared
    search_field.
    """

    def __init__(self, resource: LookupResource):
        self.resource = resource
        self.model = resource.model

    def _get_or_404(self, item_id: int):
        item = db.session.get(self.model, item_id)
        if not item:
            raise NotFoundError(f"{self.resource.label} not found")
        return item

    def list(self, search: str | None = None) -> list[dict]:
        query = db.session.query(self.model)
        if search:
            column = getattr(self.model, self.model.search_field)
            query = query.filter(column.ilike(f"%{search.strip()}%"))
        return [item.to_dict() for item in query.order_by(self.model.name.asc()).all()]

    def get(self, item_id: int) -> dict:
        return self._get_or_404(item_id).to_dict()

    def _commit_unique(self) -> None:
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError(f"{self.resource.label} with this name already exists")

    def create(self, payload: dict) -> dict:
        patch = validate_payload(model=self.model, payload=payload, policy=self.resource.policy, partial=False)
        item = self.model(**patch)
        db.session.add(item)
        self._commit_unique()
        return item.to_dict()

    def update(self, item_id: int, payload: dict) -> dict:
        item = self._get_or_404(item_id)
        patch = validate_payload(model=self.model, payload=payload, policy=self.resource.policy, partial=True)
        for key, value in patch.items():
            setattr(item, key, value)
        self._commit_unique()
        return item.to_dict()

    def delete(self, item_id: int) -> None:
        item = self._get_or_404(item_id)
        if self.resource.product_fk:
            in_use = (
                db.session.query(Product.id)
                .filter(getattr(Product, self.resource.product_fk) == item_id)
                .first()
            )
            if in_use:
                raise ValidationError(f"{self.resource.label} is used by existing products")
        db.session.delete(item)
        db.session.commit()


def repository(resource_name: str) -> LookupRepository:
    return LookupRepository(RESOURCES[resource_name])
