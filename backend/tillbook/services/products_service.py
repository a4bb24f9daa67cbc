# Overview: Service-layer operations for the product catalog.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, TransactionItem
from ..validation import ModelValidationPolicy, ConflictError, validate_payload, enforce_rules_product


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "price_cents", "is_active"},
    required_on_create={"name", "price_cents"},
)


class ProductNotFoundError(Exception):
    """Raised when the product does not exist."""


def list_products(*, include_inactive: bool = False, search: str | None = None) -> list[Product]:
    """
    Catalog listing, alphabetical.

    Inactive products are only returned when include_inactive is set
    (admin views); checkout pickers never see them.
    """
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int, *, include_inactive: bool = True) -> Product:
    product = db.session.get(Product, product_id)
    if not product or (not include_inactive and not product.is_active):
        raise ProductNotFoundError("Product not found")
    return product


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    product = get_product(product_id)
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """
    Hard delete. Products already sold are kept for line-item history;
    deactivate them instead.
    """
    product = get_product(product_id)
    sold = db.session.query(TransactionItem.id).filter_by(product_id=product.id).first()
    if sold:
        raise ConflictError("Product has sales history; deactivate it instead")

    db.session.delete(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product has sales history; deactivate it instead")
