"""
grocery_pos/sales.py

Checkout and refund workflows.

Checkout:
1) validate lines against active products and stock (prices come from the
   product, never from the client)
2) Senior/PWD adjustments + VAT breakdown (pricing.summarize_cart)
3) decrement stock, persist Transaction + items, audit
4) after commit: analytics push, low-stock alert for products that reached
   their minimum

Refund:
- only completed transactions; stock restored; refund notice to oversight
  roles and the original cashier.

IMPORTANT:
- Functions flush but never commit; the route commits, then calls
  notify_* so that nothing is pushed for a rolled-back change.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List

from flask import current_app

from . import analytics
from .audit import log_action, serialize_model
from .errors import NotFound, ValidationError
from .extensions import db
from .models import (
    PAYMENT_METHODS,
    Product,
    SystemSettings,
    Transaction,
    TransactionItem,
    TXN_COMPLETED,
    TXN_REFUNDED,
    User,
    utcnow,
)
from .notifications import alerts
from .notifications.events import ALERT_CRITICAL, ALERT_WARNING
from .notifications.hub import ConnectionHub
from .pricing import CUSTOMER_TYPES, CartLine, money, summarize_cart
from .utils import parse_decimal, parse_optional_int

logger = logging.getLogger(__name__)

# per product per transaction
MAX_LINE_QUANTITY = 10000


def current_vat_rate() -> Decimal:
    settings = SystemSettings.get()
    if settings.tax_rate is None:
        return Decimal(str(current_app.config["DEFAULT_VAT_RATE"]))
    return Decimal(str(settings.tax_rate))


def _discount_rate() -> Decimal:
    return Decimal(str(current_app.config["SENIOR_PWD_DISCOUNT_RATE"]))


def validate_customer_type(value: Any) -> str:
    customer_type = str(value or "regular").strip().lower()
    if customer_type not in CUSTOMER_TYPES:
        raise ValidationError(
            "Invalid customer type.",
            {"customer_type": f"Must be one of: {', '.join(CUSTOMER_TYPES)}"},
        )
    return customer_type


def build_cart_lines(raw_items: Any, check_stock: bool = True) -> tuple[List[CartLine], Dict[int, Product]]:
    """
    Turn [{"product_id": .., "quantity": ..}, ...] into CartLines.

    Repeated product ids are merged. Returns (lines, products by id).
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Transaction must have at least one item.")

    quantities: Dict[int, int] = {}
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError("Invalid item.", {f"items[{index}]": "Must be an object."})
        product_id = parse_optional_int(raw.get("product_id"))
        quantity = parse_optional_int(raw.get("quantity"))
        if product_id is None:
            raise ValidationError("Invalid item.", {f"items[{index}].product_id": "Required."})
        if quantity is None or quantity < 1:
            raise ValidationError("Invalid item.", {f"items[{index}].quantity": "Must be a positive integer."})
        quantities[product_id] = quantities.get(product_id, 0) + quantity
        if quantities[product_id] > MAX_LINE_QUANTITY:
            raise ValidationError(
                "Invalid item.", {f"items[{index}].quantity": f"Must not exceed {MAX_LINE_QUANTITY}."}
            )

    products: Dict[int, Product] = {}
    lines: List[CartLine] = []
    for product_id, quantity in quantities.items():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound(f"Product with ID {product_id} not found.")
        if not product.is_active:
            raise ValidationError(f"Product {product.name} is not active.")
        if check_stock and product.stock < quantity:
            raise ValidationError(f"Insufficient stock for {product.name}. Available: {product.stock}")

        products[product_id] = product
        lines.append(
            CartLine(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=money(product.price),
                is_discountable=product.is_discountable,
                is_vat_exemptable=product.is_vat_exemptable,
            )
        )
    return lines, products


def price_cart(payload: Dict[str, Any], check_stock: bool = True) -> tuple[Dict[str, Any], Dict[int, Product]]:
    customer_type = validate_customer_type(payload.get("customer_type"))
    lines, products = build_cart_lines(payload.get("items"), check_stock=check_stock)
    summary = summarize_cart(lines, customer_type, current_vat_rate(), _discount_rate())
    return summary, products


def serialize_summary(summary: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "customer_type": summary["customer_type"],
        "items": [line.to_dict() for line in summary["lines"]],
        "subtotal": summary["subtotal"],
        "discount": summary["total_discount"],
        "vat_exempt_amount": summary["total_vat_exempt"],
        "vat_exempt_sales": summary["vat_exempt_sales"],
        "total": summary["amount_due"],
        "vat_amount": summary["vat"]["vat_amount"],
        "net_sales": summary["vat"]["net_sales"],
        "vat_rate": summary["vat"]["vat_rate"],
    }


def create_transaction(payload: Dict[str, Any], cashier: User) -> Transaction:
    """Ring up a sale. Flushes; the caller commits."""
    payment_method = str(payload.get("payment_method") or "").strip().lower()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            "Invalid payment method.",
            {"payment_method": f"Must be one of: {', '.join(PAYMENT_METHODS)}"},
        )

    summary, products = price_cart(payload)
    amount_due = summary["amount_due"]

    amount_tendered = None
    change_due = None
    if payload.get("amount_tendered") not in (None, ""):
        amount_tendered = parse_decimal(payload.get("amount_tendered"))
        if amount_tendered is None or amount_tendered < amount_due:
            raise ValidationError("Amount tendered is less than the amount due.")
        amount_tendered = money(amount_tendered)
        change_due = money(amount_tendered - amount_due)

    notes = str(payload.get("notes") or "").strip() or None
    if notes and len(notes) > 500:
        raise ValidationError("Notes cannot exceed 500 characters.")

    transaction = Transaction(
        transaction_number=Transaction.next_transaction_number(),
        cashier_id=cashier.id,
        cashier_name=cashier.full_name,
        customer_name=str(payload.get("customer_name") or "").strip() or None,
        customer_type=summary["customer_type"],
        payment_method=payment_method,
        status=TXN_COMPLETED,
        subtotal=summary["subtotal"],
        discount=summary["total_discount"],
        vat_exempt_amount=summary["total_vat_exempt"],
        vat_exempt_sales=summary["vat_exempt_sales"],
        total=amount_due,
        vat_rate=summary["vat"]["vat_rate"],
        vat_amount=summary["vat"]["vat_amount"],
        net_sales=summary["vat"]["net_sales"],
        amount_tendered=amount_tendered,
        change_due=change_due,
        notes=notes,
    )

    for line in summary["lines"]:
        transaction.items.append(
            TransactionItem(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=money(line.unit_price),
                total_price=line.subtotal,
                discount_applied=line.discount_applied,
                vat_exempt=line.vat_exempt,
                discount_amount=money(line.discount_amount),
                vat_exempt_amount=money(line.vat_exempt_amount),
                final_price=line.payable,
            )
        )
        products[line.product_id].stock -= line.quantity

    db.session.add(transaction)
    db.session.flush()

    log_action(transaction, "CREATE", after=serialize_model(transaction))
    return transaction


def refund_transaction(transaction: Transaction, refunded_by: User, reason: str | None = None) -> Transaction:
    """Refund a completed sale and restore stock. Flushes; the caller commits."""
    if transaction.status != TXN_COMPLETED:
        raise ValidationError("Only completed transactions can be refunded.")

    before = serialize_model(transaction)

    for item in transaction.items:
        if item.product is not None:
            item.product.stock += item.quantity

    transaction.status = TXN_REFUNDED
    transaction.refunded_by_id = refunded_by.id
    transaction.refunded_at = utcnow()
    if reason:
        transaction.notes = f"{transaction.notes or ''}\nRefund reason: {reason}".strip()

    db.session.flush()
    log_action(transaction, "REFUND", before=before, after=serialize_model(transaction))
    return transaction


# ---------------------------------------------------------------------
# Post-commit notifications
# ---------------------------------------------------------------------
def low_stock_products() -> List[Product]:
    return (
        Product.query.filter(Product.is_active.is_(True), Product.stock <= Product.min_stock)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )


def notify_low_stock(hub: ConnectionHub, products: List[Product]) -> Dict[str, Any] | None:
    """Push a low-stock alert if alerts are enabled and anything is low."""
    if not products:
        return None
    if not SystemSettings.get().low_stock_alerts:
        logger.debug("Low stock alerts disabled; %d product(s) not announced", len(products))
        return None

    alert_type = ALERT_CRITICAL if any(p.stock <= 0 for p in products) else ALERT_WARNING
    return alerts.emit_low_stock_alert(
        hub,
        [p.to_event_dict() for p in products],
        alert_type=alert_type,
    )


def notify_checkout(hub: ConnectionHub, transaction: Transaction) -> None:
    analytics.broadcast_sales_analytics(hub, transaction.cashier_id)

    low = [item.product for item in transaction.items if item.product is not None and item.product.is_low_stock]
    notify_low_stock(hub, low)


def notify_refund(hub: ConnectionHub, transaction: Transaction, refunded_by: User) -> None:
    alerts.emit_transaction_refund(hub, transaction.to_event_dict(), refunded_by.full_name)
    analytics.broadcast_sales_analytics(hub, transaction.cashier_id)
