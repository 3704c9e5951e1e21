"""
Product catalogue & inventory.

Provides:
- GET    /products                    (search, category, status filters, pagination)
- GET    /products/<id>
- POST   /products                    (manager+)
- PATCH  /products/<id>               (manager+)
- DELETE /products/<id>               (manager+, soft delete)
- POST   /products/<id>/stock         (manager+, adjust stock by delta or set absolute)
- GET    /products/low-stock
- POST   /products/low-stock/notify   (manager+, push the current low-stock list)

Prices are VAT-inclusive shelf prices. Stock changes that leave a product at
or below its minimum raise a low-stock alert after commit.
"""

from __future__ import annotations

import logging

from flask import Blueprint, request
from flask_login import current_user, login_required

from ... import sales
from ...audit import log_action, serialize_model
from ...errors import Conflict, NotFound, ValidationError
from ...extensions import db
from ...models import STOCK_IN, STOCK_LOW, STOCK_OUT, Category, Product
from ...notifications import get_hub
from ...security import manager_required
from ...utils import api_response, clean_str, json_body, paginate, parse_bool, parse_decimal, parse_optional_int

logger = logging.getLogger(__name__)

products_bp = Blueprint("products", __name__, url_prefix="/products")

STOCK_STATUSES = (STOCK_IN, STOCK_LOW, STOCK_OUT)

# (field, max length, required)
_TEXT_FIELDS = (
    ("name", 100, True),
    ("sku", 64, True),
    ("description", 500, False),
    ("barcode", 64, False),
    ("brand", 100, False),
    ("supplier", 150, False),
    ("unit", 30, False),
)


def _get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found.")
    return product


def _validate_product(data: dict, product: Product | None = None) -> dict:
    """
    Validate create/update input. For updates, missing keys keep the
    current value. Returns the cleaned field dict.
    """
    cleaned: dict = {}
    errors: dict = {}

    for field, max_len, required in _TEXT_FIELDS:
        if field in data or product is None:
            value = clean_str(data.get(field)) or None
            if required and not value:
                errors[field] = f"{field.capitalize()} is required."
            elif value and len(value) > max_len:
                errors[field] = f"{field.capitalize()} cannot exceed {max_len} characters."
            cleaned[field] = value
    if "unit" in cleaned and cleaned["unit"] is None:
        cleaned["unit"] = "piece"

    if "price" in data or product is None:
        price = parse_decimal(data.get("price"))
        if price is None or price < 0:
            errors["price"] = "Price must be a non-negative number."
        cleaned["price"] = price

    if "cost" in data:
        cost = parse_decimal(data.get("cost")) if data.get("cost") not in (None, "") else None
        if cost is not None and cost < 0:
            errors["cost"] = "Cost must be a non-negative number."
        cleaned["cost"] = cost

    for field in ("stock", "min_stock", "max_stock"):
        if field in data or (product is None and field != "max_stock"):
            raw = data.get(field)
            if field == "max_stock" and raw in (None, ""):
                cleaned[field] = None
                continue
            value = parse_optional_int(raw) if raw not in (None, "") else 0
            if value is None or value < 0:
                errors[field] = "Must be a non-negative integer."
            cleaned[field] = value

    if "category_id" in data:
        category_id = parse_optional_int(data.get("category_id"))
        if category_id is not None:
            category = db.session.get(Category, category_id)
            if category is None or not category.is_active:
                errors["category_id"] = "Category not found."
        cleaned["category_id"] = category_id

    for flag in ("is_discountable", "is_vat_exemptable", "is_active"):
        if flag in data:
            cleaned[flag] = parse_bool(data.get(flag))

    if errors:
        raise ValidationError(errors=errors)

    exclude_id = product.id if product is not None else None
    for unique_field in ("sku", "barcode"):
        value = cleaned.get(unique_field)
        if not value:
            continue
        query = Product.query.filter(getattr(Product, unique_field) == value)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first() is not None:
            raise Conflict(f"A product with this {unique_field} already exists.")

    return cleaned


# ---------------------------------------------------------------------
# READ
# ---------------------------------------------------------------------

@products_bp.route("/")
@login_required
def list_products():
    """Catalogue listing; inactive products only on request."""
    query = Product.query

    if not parse_bool(request.args.get("include_inactive")):
        query = query.filter(Product.is_active.is_(True))

    search = clean_str(request.args.get("search"))
    if search:
        like = f"%{search}%"
        query = query.filter(
            Product.name.ilike(like)
            | Product.sku.ilike(like)
            | Product.barcode.ilike(like)
            | Product.brand.ilike(like)
        )

    category_id = parse_optional_int(request.args.get("category_id"))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)

    status = clean_str(request.args.get("status")).lower()
    if status:
        if status not in STOCK_STATUSES:
            raise ValidationError("Invalid stock status.", {"status": f"Must be one of: {', '.join(STOCK_STATUSES)}"})
        if status == STOCK_OUT:
            query = query.filter(Product.stock <= 0)
        elif status == STOCK_LOW:
            query = query.filter(Product.stock > 0, Product.stock <= Product.min_stock)
        else:
            query = query.filter(Product.stock > 0, Product.stock > Product.min_stock)

    items, pagination = paginate(query.order_by(Product.name.asc()))
    return api_response(items, pagination=pagination)


@products_bp.route("/low-stock")
@login_required
def low_stock():
    products = sales.low_stock_products()
    return api_response([p.to_dict() for p in products], count=len(products))


@products_bp.route("/<int:product_id>")
@login_required
def get_product(product_id: int):
    return api_response(_get_product(product_id).to_dict())


# ---------------------------------------------------------------------
# WRITE (manager+)
# ---------------------------------------------------------------------

@products_bp.route("/", methods=["POST"])
@login_required
@manager_required
def create_product():
    fields = _validate_product(json_body())
    product = Product(**fields)
    db.session.add(product)
    db.session.flush()
    log_action(product, "CREATE", after=serialize_model(product))
    db.session.commit()

    if product.is_low_stock:
        sales.notify_low_stock(get_hub(), [product])
    return api_response(product.to_dict(), "Product created.", 201)


@products_bp.route("/<int:product_id>", methods=["PATCH", "PUT"])
@login_required
@manager_required
def update_product(product_id: int):
    product = _get_product(product_id)
    before = serialize_model(product)
    was_low = product.is_low_stock

    for field, value in _validate_product(json_body(), product=product).items():
        setattr(product, field, value)

    db.session.flush()
    log_action(product, "UPDATE", before=before, after=serialize_model(product))
    db.session.commit()

    if product.is_active and product.is_low_stock and not was_low:
        sales.notify_low_stock(get_hub(), [product])
    return api_response(product.to_dict(), "Product updated.")


@products_bp.route("/<int:product_id>", methods=["DELETE"])
@login_required
@manager_required
def delete_product(product_id: int):
    """Soft delete; past transactions keep referencing the row."""
    product = _get_product(product_id)
    before = serialize_model(product)
    product.is_active = False
    db.session.flush()
    log_action(product, "DELETE", before=before, after=serialize_model(product))
    db.session.commit()
    return api_response(None, "Product deleted.")


@products_bp.route("/<int:product_id>/stock", methods=["POST"])
@login_required
@manager_required
def adjust_stock(product_id: int):
    """
    Adjust stock.

    Body: {"adjustment": <int delta>} or {"stock": <absolute int>}, plus an
    optional "reason".
    """
    product = _get_product(product_id)
    data = json_body()
    before = serialize_model(product)

    if "stock" in data:
        new_stock = parse_optional_int(data.get("stock"))
        if new_stock is None or new_stock < 0:
            raise ValidationError("Invalid stock.", {"stock": "Must be a non-negative integer."})
    else:
        delta = parse_optional_int(data.get("adjustment"))
        if delta is None or delta == 0:
            raise ValidationError("Invalid adjustment.", {"adjustment": "Must be a non-zero integer."})
        new_stock = product.stock + delta
        if new_stock < 0:
            raise ValidationError(f"Insufficient stock for {product.name}. Available: {product.stock}")

    product.stock = new_stock
    db.session.flush()
    log_action(product, "STOCK", before=before, after=serialize_model(product))
    db.session.commit()

    logger.info(
        "Stock for %s set to %d by %s (%s)",
        product.sku, product.stock, current_user.username, clean_str(data.get("reason")) or "no reason",
    )

    if product.is_active and product.is_low_stock:
        sales.notify_low_stock(get_hub(), [product])
    return api_response(product.to_dict(), "Stock updated.")


@products_bp.route("/low-stock/notify", methods=["POST"])
@login_required
@manager_required
def broadcast_low_stock():
    """Push the full low-stock list to managers and superadmins."""
    products = sales.low_stock_products()
    notification = sales.notify_low_stock(get_hub(), products)
    return api_response(
        {"count": len(products), "sent": notification is not None},
        "Low stock alert sent." if notification else "Nothing to send.",
    )

