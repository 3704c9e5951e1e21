"""
Sales transactions.

Provides:
- POST /transactions/              checkout (any staff role)
- POST /transactions/preview       price a cart without saving it
- GET  /transactions/              list (cashiers only see their own sales)
- GET  /transactions/<id>
- POST /transactions/<id>/refund   manager+

The route commits; real-time notifications are sent only after the commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from flask import Blueprint, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from ... import sales
from ...errors import Conflict, NotFound, PermissionDenied, ValidationError
from ...extensions import db
from ...models import Transaction
from ...notifications import get_hub
from ...notifications.events import ROLE_CASHIER
from ...security import manager_required
from ...utils import api_response, clean_str, json_body, paginate, parse_optional_int

logger = logging.getLogger(__name__)

transactions_bp = Blueprint("transactions", __name__, url_prefix="/transactions")


def _parse_date(value: str | None, field: str) -> datetime | None:
    raw = clean_str(value)
    if not raw:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d")
    except ValueError:
        raise ValidationError("Invalid date.", {field: "Use YYYY-MM-DD."})


def _get_visible_transaction(transaction_id: int) -> Transaction:
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFound("Transaction not found.")
    if current_user.role == ROLE_CASHIER and transaction.cashier_id != current_user.id:
        raise PermissionDenied("You can only view your own transactions.")
    return transaction


# ---------------------------------------------------------------------
# CHECKOUT
# ---------------------------------------------------------------------

@transactions_bp.route("/", methods=["POST"])
@login_required
def checkout():
    """
    Ring up a sale.

    Body:
        items: [{"product_id": 1, "quantity": 2}, ...]
        customer_type: regular | senior | pwd
        payment_method: cash | card | digital
        amount_tendered, customer_name, notes (optional)
    """
    cashier = current_user._get_current_object()
    transaction = sales.create_transaction(json_body(), cashier)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Transaction number already in use, please retry.")

    logger.info(
        "Transaction %s completed by %s: total %s",
        transaction.transaction_number, cashier.username, transaction.total,
    )
    sales.notify_checkout(get_hub(), transaction)

    return api_response(transaction.to_dict(), "Transaction completed.", 201)


@transactions_bp.route("/preview", methods=["POST"])
@login_required
def preview():
    """Price a cart (Senior/PWD + VAT) without touching stock."""
    summary, _ = sales.price_cart(json_body(), check_stock=False)
    return api_response(sales.serialize_summary(summary))


# ---------------------------------------------------------------------
# READ
# ---------------------------------------------------------------------

@transactions_bp.route("/")
@login_required
def list_transactions():
    """
    Filters: status, payment_method, customer_type, cashier_id (manager+),
    start_date / end_date (YYYY-MM-DD, end inclusive), search (number).
    """
    query = Transaction.query

    if current_user.role == ROLE_CASHIER:
        query = query.filter(Transaction.cashier_id == current_user.id)
    else:
        cashier_id = parse_optional_int(request.args.get("cashier_id"))
        if cashier_id is not None:
            query = query.filter(Transaction.cashier_id == cashier_id)

    for field in ("status", "payment_method", "customer_type"):
        value = clean_str(request.args.get(field)).lower()
        if value:
            query = query.filter(getattr(Transaction, field) == value)

    start = _parse_date(request.args.get("start_date"), "start_date")
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    end = _parse_date(request.args.get("end_date"), "end_date")
    if end is not None:
        query = query.filter(Transaction.created_at < end + timedelta(days=1))

    search = clean_str(request.args.get("search"))
    if search:
        query = query.filter(Transaction.transaction_number.ilike(f"%{search}%"))

    items, pagination = paginate(
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc()),
        serializer=lambda t: t.to_dict(include_items=False),
    )
    return api_response(items, pagination=pagination)


@transactions_bp.route("/<int:transaction_id>")
@login_required
def get_transaction(transaction_id: int):
    return api_response(_get_visible_transaction(transaction_id).to_dict())


# ---------------------------------------------------------------------
# REFUND
# ---------------------------------------------------------------------

@transactions_bp.route("/<int:transaction_id>/refund", methods=["POST"])
@login_required
@manager_required
def refund(transaction_id: int):
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFound("Transaction not found.")

    reason = clean_str(json_body().get("reason")) or None
    refunded_by = current_user._get_current_object()
    sales.refund_transaction(transaction, refunded_by, reason)
    db.session.commit()

    logger.info("Transaction %s refunded by %s", transaction.transaction_number, refunded_by.username)
    sales.notify_refund(get_hub(), transaction, refunded_by)

    return api_response(transaction.to_dict(), "Transaction refunded.")
