"""
grocery_pos/analytics.py

Sales analytics for dashboards and real-time pushes.

- Figures are computed from transactions inside a rolling window (days).
- Only completed transactions count as sales; refunds are reported apart.
- broadcast_sales_analytics() is called after every checkout/refund and pushes
  the manager dashboard (and the cashier's own figures) over the hub.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from sqlalchemy.orm import selectinload

from .models import Product, Transaction, TransactionItem, TXN_COMPLETED, TXN_REFUNDED, utcnow
from .notifications import analytics as analytics_events
from .notifications.hub import ConnectionHub
from .pricing import money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _window_start(days: int, now: datetime | None = None) -> datetime:
    now = now or utcnow()
    return now - timedelta(days=max(1, int(days)))


def transactions_in_window(days: int, cashier_id: int | None = None, now: datetime | None = None) -> List[Transaction]:
    query = Transaction.query.options(
        selectinload(Transaction.items).selectinload(TransactionItem.product).selectinload(Product.category)
    ).filter(Transaction.created_at >= _window_start(days, now))
    if cashier_id is not None:
        query = query.filter(Transaction.cashier_id == cashier_id)
    return query.order_by(Transaction.created_at.desc()).all()


# ---------------------------------------------------------------------
# Aggregations (pure over a list of transactions)
# ---------------------------------------------------------------------
def summarize(transactions: Iterable[Transaction]) -> Dict[str, Any]:
    total_sales = ZERO
    total_vat = ZERO
    total_discount = ZERO
    refunded_amount = ZERO
    completed = 0
    refunded = 0
    items_sold = 0

    for txn in transactions:
        if txn.status == TXN_COMPLETED:
            completed += 1
            total_sales += money(txn.total)
            total_vat += money(txn.vat_amount)
            total_discount += money(txn.discount)
            items_sold += txn.item_count
        elif txn.status == TXN_REFUNDED:
            refunded += 1
            refunded_amount += money(txn.total)

    average = money(total_sales / completed) if completed else ZERO

    return {
        "total_sales": money(total_sales),
        "transaction_count": completed,
        "average_transaction": average,
        "items_sold": items_sold,
        "total_vat": money(total_vat),
        "total_discount": money(total_discount),
        "refunded_count": refunded,
        "refunded_amount": money(refunded_amount),
    }


def hourly_sales(transactions: Iterable[Transaction]) -> List[Dict[str, Any]]:
    buckets: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[int, int] = defaultdict(int)
    for txn in transactions:
        if txn.status != TXN_COMPLETED or not txn.created_at:
            continue
        buckets[txn.created_at.hour] += money(txn.total)
        counts[txn.created_at.hour] += 1
    return [
        {"hour": hour, "sales": money(buckets[hour]), "transactions": counts[hour]}
        for hour in range(24)
    ]


def top_products(transactions: Iterable[Transaction], limit: int = 5) -> List[Dict[str, Any]]:
    quantity: Dict[Any, int] = defaultdict(int)
    revenue: Dict[Any, Decimal] = defaultdict(lambda: ZERO)
    names: Dict[Any, str] = {}
    for txn in transactions:
        if txn.status != TXN_COMPLETED:
            continue
        for item in txn.items:
            key = item.product_id or item.product_name
            names[key] = item.product_name
            quantity[key] += item.quantity
            revenue[key] += money(item.final_price)

    ranked = sorted(quantity, key=lambda key: (-quantity[key], names[key]))[:limit]
    return [
        {
            "product_id": key if isinstance(key, int) else None,
            "product_name": names[key],
            "quantity_sold": quantity[key],
            "revenue": money(revenue[key]),
        }
        for key in ranked
    ]


def sales_by_category(transactions: Iterable[Transaction]) -> List[Dict[str, Any]]:
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn in transactions:
        if txn.status != TXN_COMPLETED:
            continue
        for item in txn.items:
            category = "Uncategorized"
            if item.product is not None and item.product.category is not None:
                category = item.product.category.name
            totals[category] += money(item.final_price)
    return [
        {"category": name, "sales": money(amount)}
        for name, amount in sorted(totals.items(), key=lambda pair: -pair[1])
    ]


def top_performer(transactions: Iterable[Transaction]) -> Dict[str, Any] | None:
    totals: Dict[Any, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[Any, int] = defaultdict(int)
    names: Dict[Any, str] = {}
    for txn in transactions:
        if txn.status != TXN_COMPLETED:
            continue
        totals[txn.cashier_id] += money(txn.total)
        counts[txn.cashier_id] += 1
        names[txn.cashier_id] = txn.cashier_name

    if not totals:
        return None
    best = max(totals, key=lambda key: totals[key])
    return {
        "cashier_id": best,
        "cashier_name": names[best],
        "total_sales": money(totals[best]),
        "transaction_count": counts[best],
    }


def weekly_trend(transactions: Iterable[Transaction], now: datetime | None = None) -> List[Dict[str, Any]]:
    today = (now or utcnow()).date()
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    totals: Dict[Any, Decimal] = {day: ZERO for day in days}
    for txn in transactions:
        if txn.status != TXN_COMPLETED or not txn.created_at:
            continue
        day = txn.created_at.date()
        if day in totals:
            totals[day] += money(txn.total)
    return [{"date": day.isoformat(), "sales": money(totals[day])} for day in days]


# ---------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------
def dashboard_analytics(days: int = 30, now: datetime | None = None) -> Dict[str, Any]:
    """Store-wide figures (manager / superadmin dashboard)."""
    transactions = transactions_in_window(days, now=now)
    recent_week = [t for t in transactions if t.created_at and t.created_at >= _window_start(7, now)]
    today = [t for t in transactions if t.created_at and t.created_at >= _window_start(1, now)]

    return {
        "period": f"{int(days)}d",
        "summary": summarize(transactions),
        "weekly": summarize(recent_week),
        "daily": summarize(today),
        "hourly_sales": hourly_sales(today),
        "top_products": top_products(transactions),
        "sales_by_category": sales_by_category(transactions),
        "top_performer": top_performer(transactions),
        "weekly_trend": weekly_trend(recent_week, now=now),
    }


def cashier_analytics(cashier_id: int, days: int = 30, now: datetime | None = None) -> Dict[str, Any]:
    """One cashier's own figures."""
    transactions = transactions_in_window(days, cashier_id=cashier_id, now=now)
    recent_week = [t for t in transactions if t.created_at and t.created_at >= _window_start(7, now)]
    today = [t for t in transactions if t.created_at and t.created_at >= _window_start(1, now)]

    return {
        "period": f"{int(days)}d",
        "cashier_id": cashier_id,
        "summary": summarize(transactions),
        "weekly": summarize(recent_week),
        "daily": summarize(today),
        "top_products": top_products(transactions),
    }


def broadcast_sales_analytics(hub: ConnectionHub, cashier_id: int | None = None) -> None:
    """Recompute and push dashboards after a sale or refund."""
    if not hub.has_connected_clients():
        logger.debug("No connected clients; skipping analytics broadcast")
        return

    analytics_events.emit_manager_analytics_update(hub, dashboard_analytics(30))
    if cashier_id is not None:
        analytics_events.emit_cashier_analytics_update(hub, cashier_id, cashier_analytics(cashier_id, 30))
