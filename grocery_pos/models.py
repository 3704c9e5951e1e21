"""
Grocery Store POS – Domain Models

Entities:
- User (superadmin / manager / cashier, approval workflow)
- Category, Product (stock levels, Senior/PWD eligibility flags)
- Transaction, TransactionItem (VAT breakdown + per-line discounts)
- SystemSettings (single row: store info, VAT rate, maintenance mode)
- AuditLog

IMPORTANT:
- Prices are VAT-inclusive. VAT is extracted at checkout (see pricing.py).
- UI is never trusted. Any selection must be validated server-side in routes.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .notifications.events import ROLE_CASHIER, ROLE_SUPERADMIN
from .pricing import money


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (columns store naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
USER_STATUS_ACTIVE = "active"
USER_STATUS_INACTIVE = "inactive"
USER_STATUS_DELETED = "deleted"


class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(30), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default=ROLE_CASHIER, index=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=USER_STATUS_ACTIVE, index=True)

    is_approved = db.Column(db.Boolean, default=False, nullable=False, index=True)
    approved_by_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    approved_at = db.Column(db.DateTime, nullable=True)

    created_by_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Rotated on every login; Flask-Login ids embed it, so an older
    # session cookie stops resolving once a newer login happens.
    session_token = db.Column(db.String(64), nullable=True)

    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)
    last_login_ip = db.Column(db.String(45), nullable=True)
    last_user_agent = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    approved_by = db.relationship("User", foreign_keys=[approved_by_id], remote_side=[id])
    created_by = db.relationship("User", foreign_keys=[created_by_id], remote_side=[id])

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def rotate_session_token(self) -> str:
        self.session_token = secrets.token_hex(16)
        return self.session_token

    def get_id(self):
        return f"{self.id}:{self.session_token or ''}"

    @property
    def is_active(self):
        return self.status == USER_STATUS_ACTIVE

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_superadmin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "status": self.status,
            "is_approved": self.is_approved,
            "approved_by_id": self.approved_by_id,
            "approved_at": _iso(self.approved_at),
            "last_login": _iso(self.last_login),
            "created_at": _iso(self.created_at),
        }

    def to_event_dict(self) -> dict:
        """Shape used in socket payloads."""
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "status": self.status,
            "isApproved": self.is_approved,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


# ---------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------
class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False, index=True)
    description = db.Column(db.String(200), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_by_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    products = db.relationship("Product", back_populates="category", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Category {self.name}>"


STOCK_IN = "in-stock"
STOCK_LOW = "low-stock"
STOCK_OUT = "out-of-stock"


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False, index=True)
    description = db.Column(db.String(500), nullable=True)

    # VAT-inclusive shelf price
    price = db.Column(db.Numeric(12, 2), nullable=False)
    cost = db.Column(db.Numeric(12, 2), nullable=True)

    barcode = db.Column(db.String(64), unique=True, nullable=True, index=True)
    sku = db.Column(db.String(64), unique=True, nullable=False, index=True)
    brand = db.Column(db.String(100), nullable=True, index=True)
    supplier = db.Column(db.String(150), nullable=True)
    unit = db.Column(db.String(30), nullable=False, default="piece")

    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    stock = db.Column(db.Integer, nullable=False, default=0, index=True)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=True)

    # Senior/PWD eligibility
    is_discountable = db.Column(db.Boolean, default=False, nullable=False)
    is_vat_exemptable = db.Column(db.Boolean, default=False, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", back_populates="products")

    @property
    def stock_status(self) -> str:
        if (self.stock or 0) <= 0:
            return STOCK_OUT
        if self.stock <= (self.min_stock or 0):
            return STOCK_LOW
        return STOCK_IN

    @property
    def is_low_stock(self) -> bool:
        return self.stock_status != STOCK_IN

    @property
    def profit_margin(self) -> Decimal | None:
        if not self.cost or not self.price:
            return None
        price = Decimal(str(self.price))
        return money((price - Decimal(str(self.cost))) / price * Decimal("100"))

    @property
    def total_value(self) -> Decimal:
        return money(Decimal(str(self.price or 0)) * (self.stock or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": money(self.price),
            "cost": money(self.cost) if self.cost is not None else None,
            "barcode": self.barcode,
            "sku": self.sku,
            "brand": self.brand,
            "supplier": self.supplier,
            "unit": self.unit,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "stock_status": self.stock_status,
            "is_discountable": self.is_discountable,
            "is_vat_exemptable": self.is_vat_exemptable,
            "is_active": self.is_active,
            "profit_margin": self.profit_margin,
            "total_value": self.total_value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_event_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "sku": self.sku,
            "stock": self.stock,
            "minStock": self.min_stock,
            "stockStatus": self.stock_status,
        }

    def __repr__(self):
        return f"<Product {self.sku} - {self.name}>"


# ---------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------
TXN_COMPLETED = "completed"
TXN_REFUNDED = "refunded"

PAYMENT_METHODS = ("cash", "card", "digital")


class Transaction(db.Model):
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)

    transaction_number = db.Column(db.String(32), unique=True, nullable=False, index=True)

    cashier_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # snapshot: keeps the receipt readable if the user is renamed/deleted
    cashier_name = db.Column(db.String(120), nullable=False)

    customer_name = db.Column(db.String(120), nullable=True)
    customer_type = db.Column(db.String(20), nullable=False, default="regular")

    payment_method = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TXN_COMPLETED, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    vat_exempt_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    vat_exempt_sales = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("12.00"))
    vat_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    net_sales = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    amount_tendered = db.Column(db.Numeric(12, 2), nullable=True)
    change_due = db.Column(db.Numeric(12, 2), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    refunded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    cashier = db.relationship("User", foreign_keys=[cashier_id])
    refunded_by = db.relationship("User", foreign_keys=[refunded_by_id])

    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
    )

    __table_args__ = (
        db.Index("ix_transactions_cashier_created", "cashier_id", "created_at"),
        db.Index("ix_transactions_status_created", "status", "created_at"),
    )

    @classmethod
    def next_transaction_number(cls, now: datetime | None = None) -> str:
        """TXN<YYYYMMDD><6-digit sequence>; the sequence restarts every UTC day."""
        prefix = f"TXN{(now or utcnow()):%Y%m%d}"
        sequence = cls.query.filter(cls.transaction_number.like(f"{prefix}%")).count() + 1
        return f"{prefix}{sequence:06d}"

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
            "customer_name": self.customer_name,
            "customer_type": self.customer_type,
            "payment_method": self.payment_method,
            "status": self.status,
            "subtotal": money(self.subtotal),
            "discount": money(self.discount),
            "vat_exempt_amount": money(self.vat_exempt_amount),
            "vat_exempt_sales": money(self.vat_exempt_sales),
            "total": money(self.total),
            "vat_rate": self.vat_rate,
            "vat_amount": money(self.vat_amount),
            "net_sales": money(self.net_sales),
            "amount_tendered": money(self.amount_tendered) if self.amount_tendered is not None else None,
            "change_due": money(self.change_due) if self.change_due is not None else None,
            "item_count": self.item_count,
            "notes": self.notes,
            "refunded_at": _iso(self.refunded_at),
            "created_at": _iso(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

    def to_event_dict(self) -> dict:
        return {
            "id": str(self.id),
            "transactionNumber": self.transaction_number,
            "cashierId": str(self.cashier_id) if self.cashier_id is not None else None,
            "cashierName": self.cashier_name,
            "total": money(self.total),
            "status": self.status,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Transaction {self.transaction_number}>"


class TransactionItem(db.Model):
    __tablename__ = "transaction_items"

    id = db.Column(db.Integer, primary_key=True)

    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    product_name = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    discount_applied = db.Column(db.Boolean, default=False, nullable=False)
    vat_exempt = db.Column(db.Boolean, default=False, nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    vat_exempt_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    final_price = db.Column(db.Numeric(12, 2), nullable=False)

    transaction = db.relationship("Transaction", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": money(self.unit_price),
            "total_price": money(self.total_price),
            "discount_applied": self.discount_applied,
            "vat_exempt": self.vat_exempt,
            "discount_amount": money(self.discount_amount),
            "vat_exempt_amount": money(self.vat_exempt_amount),
            "final_price": money(self.final_price),
        }


# ---------------------------------------------------------------------
# Settings & audit
# ---------------------------------------------------------------------
class SystemSettings(db.Model):
    """Single-row store configuration."""

    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)

    maintenance_mode = db.Column(db.Boolean, default=False, nullable=False)
    maintenance_message = db.Column(
        db.String(255),
        default="System is currently under maintenance. Some features may be unavailable.",
    )

    store_name = db.Column(db.String(120), default="Grocery Store POS", nullable=False)
    store_address = db.Column(db.String(255), nullable=True)
    store_phone = db.Column(db.String(50), nullable=True)
    store_email = db.Column(db.String(255), nullable=True)
    currency = db.Column(db.String(8), default="PHP", nullable=False)

    # Percent (12 means 12%)
    tax_rate = db.Column(db.Numeric(5, 2), default=Decimal("12.00"), nullable=False)

    low_stock_alerts = db.Column(db.Boolean, default=True, nullable=False)
    session_timeout = db.Column(db.Integer, default=30, nullable=False)

    updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @classmethod
    def get(cls) -> "SystemSettings":
        """Return the settings row, creating it with defaults if missing."""
        settings = cls.query.order_by(cls.id.asc()).first()
        if settings is None:
            settings = cls()
            db.session.add(settings)
            db.session.flush()
        return settings

    def to_dict(self) -> dict:
        return {
            "maintenance_mode": self.maintenance_mode,
            "maintenance_message": self.maintenance_message,
            "store_name": self.store_name,
            "store_address": self.store_address,
            "store_phone": self.store_phone,
            "store_email": self.store_email,
            "currency": self.currency,
            "tax_rate": self.tax_rate,
            "low_stock_alerts": self.low_stock_alerts,
            "session_timeout": self.session_timeout,
            "updated_at": _iso(self.updated_at),
        }


class AuditLog(db.Model):
    """Who did what to which entity."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))
