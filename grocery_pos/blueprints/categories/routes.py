"""
Product categories.

- list: any logged-in user
- create/update/delete: manager or superadmin
- delete is a soft delete (is_active=False) and is refused while
  active products still reference the category
"""

from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user, login_required

from ...audit import log_action, serialize_model
from ...errors import Conflict, NotFound, ValidationError
from ...extensions import db
from ...models import Category, Product
from ...security import manager_required
from ...utils import api_response, clean_str, json_body, parse_bool

categories_bp = Blueprint("categories", __name__, url_prefix="/categories")


def _get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found.")
    return category


def _validate(data: dict, current: Category | None = None) -> dict:
    name = clean_str(data.get("name", current.name if current else ""))
    description = clean_str(data.get("description", current.description if current else "")) or None

    errors = {}
    if not name or len(name) > 50:
        errors["name"] = "Name is required (max 50 characters)."
    if description and len(description) > 200:
        errors["description"] = "Description cannot exceed 200 characters."
    if errors:
        raise ValidationError(errors=errors)

    duplicate = Category.query.filter(db.func.lower(Category.name) == name.lower())
    if current is not None:
        duplicate = duplicate.filter(Category.id != current.id)
    if duplicate.first() is not None:
        raise Conflict("A category with this name already exists.")

    return {"name": name, "description": description}


@categories_bp.route("/")
@login_required
def list_categories():
    include_inactive = parse_bool(request.args.get("include_inactive"))
    query = Category.query
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    categories = query.order_by(Category.name.asc()).all()
    return api_response([c.to_dict() for c in categories], count=len(categories))


@categories_bp.route("/", methods=["POST"])
@login_required
@manager_required
def create_category():
    fields = _validate(json_body())
    category = Category(created_by_id=current_user.id, **fields)
    db.session.add(category)
    db.session.flush()
    log_action(category, "CREATE", after=serialize_model(category))
    db.session.commit()
    return api_response(category.to_dict(), "Category created.", 201)


@categories_bp.route("/<int:category_id>", methods=["PATCH", "PUT"])
@login_required
@manager_required
def update_category(category_id: int):
    category = _get_category(category_id)
    data = json_body()
    before = serialize_model(category)

    fields = _validate(data, current=category)
    category.name = fields["name"]
    category.description = fields["description"]
    if "is_active" in data:
        category.is_active = parse_bool(data.get("is_active"))

    db.session.flush()
    log_action(category, "UPDATE", before=before, after=serialize_model(category))
    db.session.commit()
    return api_response(category.to_dict(), "Category updated.")


@categories_bp.route("/<int:category_id>", methods=["DELETE"])
@login_required
@manager_required
def delete_category(category_id: int):
    category = _get_category(category_id)

    in_use = Product.query.filter(Product.category_id == category.id, Product.is_active.is_(True)).count()
    if in_use:
        raise Conflict(f"Category is used by {in_use} active product(s).")

    before = serialize_model(category)
    category.is_active = False
    db.session.flush()
    log_action(category, "DELETE", before=before, after=serialize_model(category))
    db.session.commit()
    return api_response(None, "Category deleted.")
