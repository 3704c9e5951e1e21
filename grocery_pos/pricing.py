"""
grocery_pos/pricing.py

VAT and Senior/PWD discount calculations.

Rules:
- Shelf prices are VAT-inclusive. VAT is extracted, never added on top:
    VAT = Total * (Rate / (100 + Rate))      (12% => Total * 12/112)
- Senior Citizens (RA 9994) and PWD customers (RA 10754) get, per line:
  - VAT exemption if the product is VAT-exemptable
  - 20% discount if the product is discountable
  The two are independent toggles.
- Money is Decimal, rounded half-up to 2 places.

IMPORTANT:
- Nothing here raises on bad numeric input. Negative totals become 0 and
  out-of-range rates fall back to the default rate; both are logged so that
  the upstream data problem stays visible.
- Everything here is pure: no DB, no request context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Dict, Iterable, List

logger = logging.getLogger(__name__)

DEFAULT_VAT_RATE = Decimal("12")
DISCOUNT_RATE = Decimal("0.20")

CUSTOMER_REGULAR = "regular"
CUSTOMER_SENIOR = "senior"
CUSTOMER_PWD = "pwd"
CUSTOMER_TYPES = (CUSTOMER_REGULAR, CUSTOMER_SENIOR, CUSTOMER_PWD)
DISCOUNT_ELIGIBLE_CUSTOMERS = {CUSTOMER_SENIOR, CUSTOMER_PWD}

_CENT = Decimal("0.01")
# amounts with more integer digits than this are not money
_MAX_DIGITS = 100
_ZERO = Decimal("0.00")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _to_decimal(value: Any) -> Decimal | None:
    """Convert int/float/str/Decimal to Decimal. Returns None if unparseable."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite():
        return None
    return result


def money(value: Any) -> Decimal:
    """Round to 2 decimals, half-up. None/invalid => 0.00."""
    amount = _to_decimal(value)
    if amount is None:
        return _ZERO
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the cents
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def _working_precision(amount: Decimal) -> int:
    """Digits needed to carry amount exactly with headroom below the cent."""
    return max(28, amount.adjusted() + 10)


def _clamp_total(total: Any) -> Decimal:
    amount = _to_decimal(total)
    if amount is None or amount < 0 or amount.adjusted() >= _MAX_DIGITS:
        logger.warning("Invalid VAT base %r clamped to 0", total)
        return _ZERO
    return amount


def _clamp_rate(vat_rate: Any) -> Decimal:
    rate = _to_decimal(vat_rate)
    if rate is None or rate < 0 or rate > 100:
        logger.warning("Invalid VAT rate %r replaced by default %s", vat_rate, DEFAULT_VAT_RATE)
        return DEFAULT_VAT_RATE
    return rate


def normalize_customer_type(customer_type: Any) -> str:
    """Lower-case customer type; anything unknown is treated as regular."""
    value = str(customer_type or "").strip().lower()
    return value if value in CUSTOMER_TYPES else CUSTOMER_REGULAR


# ---------------------------------------------------------------------
# VAT
# ---------------------------------------------------------------------
def calculate_vat(total: Any, vat_rate: Any = DEFAULT_VAT_RATE) -> Dict[str, Decimal]:
    """
    Decompose a VAT-inclusive total into VAT and net sales.

    Returns:
        {"total", "vat_amount", "net_sales", "vat_rate"}

    net_sales is derived from the already rounded amounts, so
    net_sales + vat_amount == total holds exactly.
    """
    amount = money(_clamp_total(total))
    rate = _clamp_rate(vat_rate)

    with localcontext() as ctx:
        ctx.prec = _working_precision(amount)
        vat_amount = money(amount * rate / (Decimal("100") + rate))
        net_sales = money(amount - vat_amount)

    return {
        "total": amount,
        "vat_amount": vat_amount,
        "net_sales": net_sales,
        "vat_rate": rate,
    }


def calculate_vat_from_exclusive(net_amount: Any, vat_rate: Any = DEFAULT_VAT_RATE) -> Dict[str, Decimal]:
    """Add VAT on top of a VAT-exclusive amount. Same clamping as calculate_vat()."""
    net = money(_clamp_total(net_amount))
    rate = _clamp_rate(vat_rate)

    with localcontext() as ctx:
        ctx.prec = _working_precision(net)
        vat_amount = money(net * rate / Decimal("100"))
        total = money(net + vat_amount)

    return {
        "total": total,
        "vat_amount": vat_amount,
        "net_sales": net,
        "vat_rate": rate,
    }


def validate_vat_breakdown(breakdown: Dict[str, Any]) -> bool:
    """True if net_sales + vat_amount reconciles with total (1 cent tolerance)."""
    total = money(breakdown.get("total"))
    reconciled = money(breakdown.get("net_sales")) + money(breakdown.get("vat_amount"))
    return abs(reconciled - total) < _CENT


def format_vat_breakdown(breakdown: Dict[str, Any], currency: str = "₱") -> str:
    """Receipt-style text block."""
    rate = breakdown.get("vat_rate", DEFAULT_VAT_RATE)
    return "\n".join(
        [
            f"Total (VAT Inclusive): {currency}{money(breakdown.get('total')):.2f}",
            f"VAT ({rate}%): {currency}{money(breakdown.get('vat_amount')):.2f}",
            f"Net Sales: {currency}{money(breakdown.get('net_sales')):.2f}",
        ]
    )


# ---------------------------------------------------------------------
# Senior / PWD line adjustments
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class CartLine:
    """One checkout line. Eligibility flags are copied from the Product."""

    product_id: Any
    quantity: int
    unit_price: Decimal
    product_name: str = ""
    is_discountable: bool = False
    is_vat_exemptable: bool = False

    discount_applied: bool = False
    vat_exempt: bool = False
    discount_amount: Decimal = _ZERO
    vat_exempt_amount: Decimal = _ZERO
    final_price: Decimal | None = None

    @property
    def subtotal(self) -> Decimal:
        return money(Decimal(str(self.unit_price)) * int(self.quantity))

    @property
    def payable(self) -> Decimal:
        """final_price if adjusted, otherwise the plain subtotal."""
        return self.final_price if self.final_price is not None else self.subtotal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": money(self.unit_price),
            "subtotal": self.subtotal,
            "is_discountable": self.is_discountable,
            "is_vat_exemptable": self.is_vat_exemptable,
            "discount_applied": self.discount_applied,
            "vat_exempt": self.vat_exempt,
            "discount_amount": money(self.discount_amount),
            "vat_exempt_amount": money(self.vat_exempt_amount),
            "final_price": self.payable,
        }


def apply_discount_and_exemption(
    line: CartLine,
    customer_type: str,
    vat_rate: Any = DEFAULT_VAT_RATE,
    discount_rate: Any = DISCOUNT_RATE,
) -> CartLine:
    """
    Return a copy of the line with Senior/PWD adjustments applied.

    - regular (or unknown) customer: line returned unmodified.
    - VAT-exemptable product: VAT portion removed, line leaves the VAT base.
    - discountable product: 20% off the line subtotal (net of VAT when the
      line is also VAT-exempt).
    """
    if normalize_customer_type(customer_type) not in DISCOUNT_ELIGIBLE_CUSTOMERS:
        return line

    subtotal = line.subtotal
    base = subtotal
    vat_exempt = False
    vat_exempt_amount = _ZERO

    if line.is_vat_exemptable:
        vat_exempt = True
        breakdown = calculate_vat(subtotal, vat_rate)
        vat_exempt_amount = breakdown["vat_amount"]
        base = breakdown["net_sales"]

    discount_applied = False
    discount_amount = _ZERO
    if line.is_discountable:
        rate = _to_decimal(discount_rate)
        if rate is None or rate < 0 or rate > 1:
            rate = DISCOUNT_RATE
        discount_applied = True
        discount_amount = money(base * rate)

    if not (vat_exempt or discount_applied):
        return line

    return replace(
        line,
        discount_applied=discount_applied,
        vat_exempt=vat_exempt,
        discount_amount=discount_amount,
        vat_exempt_amount=vat_exempt_amount,
        final_price=money(base - discount_amount),
    )


def summarize_cart(
    lines: Iterable[CartLine],
    customer_type: str,
    vat_rate: Any = DEFAULT_VAT_RATE,
    discount_rate: Any = DISCOUNT_RATE,
) -> Dict[str, Any]:
    """
    Adjust every line and aggregate the transaction totals.

    The VAT breakdown covers only lines that are not VAT-exempt;
    exempt lines are reported separately as vat_exempt_sales.
    """
    adjusted: List[CartLine] = [
        apply_discount_and_exemption(line, customer_type, vat_rate, discount_rate) for line in lines
    ]

    subtotal = _ZERO
    total_discount = _ZERO
    total_vat_exempt = _ZERO
    vatable_sales = _ZERO
    vat_exempt_sales = _ZERO

    for line in adjusted:
        subtotal += line.subtotal
        total_discount += money(line.discount_amount)
        total_vat_exempt += money(line.vat_exempt_amount)
        if line.vat_exempt:
            vat_exempt_sales += line.payable
        else:
            vatable_sales += line.payable

    return {
        "customer_type": normalize_customer_type(customer_type),
        "lines": adjusted,
        "subtotal": money(subtotal),
        "total_discount": money(total_discount),
        "total_vat_exempt": money(total_vat_exempt),
        "vat_exempt_sales": money(vat_exempt_sales),
        "amount_due": money(vatable_sales + vat_exempt_sales),
        "vat": calculate_vat(vatable_sales, vat_rate),
    }
