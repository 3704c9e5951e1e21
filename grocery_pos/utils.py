"""
Utility functions shared across the app. This includes:
- api_response: the success envelope used by every route.
- json_body: read the request JSON object (never trusted).
- parse_* helpers: lenient parsing of user input.
- paginate: page/per_page handling for list endpoints.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from flask import current_app, jsonify, request

from .errors import ValidationError


def api_response(data: Any = None, message: str | None = None, status: int = 200, **extra: Any):
    """Success envelope: {"success": true, "message"?: ..., "data": ...}."""
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    body.update(extra)
    return jsonify(body), status


def json_body() -> Dict[str, Any]:
    """Return the JSON object sent by the client; reject anything else."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def parse_optional_int(value: Any) -> int | None:
    """Parse an optional int. Returns None if empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a decimal from user input (accepts comma or dot)."""
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        result = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse JSON booleans and the usual query-string spellings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def clean_str(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def paginate(query, serializer=None):
    """
    Paginate a query from ?page=&limit= and return (items, pagination dict).

    limit is capped at MAX_PAGE_SIZE.
    """
    page = parse_optional_int(request.args.get("page")) or 1
    per_page = parse_optional_int(request.args.get("limit")) or current_app.config["DEFAULT_PAGE_SIZE"]
    per_page = max(1, min(per_page, current_app.config["MAX_PAGE_SIZE"]))
    page = max(1, page)

    result = query.paginate(page=page, per_page=per_page, error_out=False)
    serialize = serializer or (lambda obj: obj.to_dict())

    pagination = {
        "page": result.page,
        "limit": result.per_page,
        "total": result.total,
        "pages": result.pages,
    }
    return [serialize(item) for item in result.items], pagination
