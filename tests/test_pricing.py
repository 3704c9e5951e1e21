"""VAT extraction and Senior/PWD line adjustments."""

from decimal import Decimal

import pytest

from grocery_pos.pricing import (
    CartLine,
    apply_discount_and_exemption,
    calculate_vat,
    calculate_vat_from_exclusive,
    format_vat_breakdown,
    money,
    summarize_cart,
    validate_vat_breakdown,
)


def line(price="112.00", quantity=1, discountable=False, exemptable=False):
    return CartLine(
        product_id=1,
        product_name="Rice 5kg",
        quantity=quantity,
        unit_price=Decimal(price),
        is_discountable=discountable,
        is_vat_exemptable=exemptable,
    )


class TestCalculateVat:
    def test_standard_twelve_percent(self):
        assert calculate_vat(112, 12) == {
            "total": Decimal("112.00"),
            "vat_amount": Decimal("12.00"),
            "net_sales": Decimal("100.00"),
            "vat_rate": Decimal("12"),
        }

    @pytest.mark.parametrize(
        "total, rate",
        [(0, 12), (1, 12), ("0.01", 12), ("99.99", 12), ("12345.67", 12), (100, 0), (100, 100), ("59.50", "5.5")],
    )
    def test_net_plus_vat_equals_total(self, total, rate):
        result = calculate_vat(total, rate)
        assert result["net_sales"] + result["vat_amount"] == result["total"]
        assert validate_vat_breakdown(result)

    def test_negative_total_is_clamped_to_zero(self, caplog):
        assert calculate_vat(-5, 12) == calculate_vat(0, 12)
        assert "clamped" in caplog.text

    @pytest.mark.parametrize("total", [1e27, Decimal("1E+30"), "99999999999999999999999999999999.99"])
    def test_very_large_totals_still_reconcile(self, total):
        result = calculate_vat(total, 12)
        assert result["total"] > 0
        assert result["net_sales"] + result["vat_amount"] == result["total"]

    def test_large_total_exact_split(self):
        result = calculate_vat(Decimal("1.12E+30"), 12)
        assert result["vat_amount"] == Decimal("1.2E+29")
        assert result["net_sales"] == Decimal("1E+30")
        assert calculate_vat_from_exclusive(Decimal("1E+30"), 12)["total"] == Decimal("1.12E+30")

    def test_absurd_magnitude_is_clamped(self, caplog):
        assert calculate_vat("1E+999999", 12) == calculate_vat(0, 12)
        assert "clamped" in caplog.text

    @pytest.mark.parametrize("rate", [150, -1, "abc", None, float("nan")])
    def test_invalid_rate_falls_back_to_default(self, rate):
        assert calculate_vat(100, rate) == calculate_vat(100, 12)

    def test_zero_rate_has_no_vat(self):
        result = calculate_vat(50, 0)
        assert result["vat_amount"] == Decimal("0.00")
        assert result["net_sales"] == Decimal("50.00")

    def test_half_up_rounding(self):
        # 10 * 12/112 = 1.0714...
        assert calculate_vat(10, 12)["vat_amount"] == Decimal("1.07")
        assert money("2.675") == Decimal("2.68")


class TestVatHelpers:
    def test_from_exclusive(self):
        result = calculate_vat_from_exclusive(100, 12)
        assert result["total"] == Decimal("112.00")
        assert result["vat_amount"] == Decimal("12.00")

    def test_validate_detects_mismatch(self):
        assert not validate_vat_breakdown({"total": 112, "vat_amount": 12, "net_sales": 99})

    def test_format(self):
        text = format_vat_breakdown(calculate_vat(112, 12))
        assert "Total (VAT Inclusive): ₱112.00" in text
        assert "VAT (12%): ₱12.00" in text
        assert "Net Sales: ₱100.00" in text


class TestDiscountAndExemption:
    @pytest.mark.parametrize("discountable", [True, False])
    @pytest.mark.parametrize("exemptable", [True, False])
    def test_regular_customer_line_unchanged(self, discountable, exemptable):
        original = line(discountable=discountable, exemptable=exemptable)
        assert apply_discount_and_exemption(original, "regular") is original

    def test_discount_without_exemption(self):
        result = apply_discount_and_exemption(line(discountable=True), "senior")
        assert result.discount_applied
        assert not result.vat_exempt
        assert result.discount_amount == Decimal("22.40")
        assert result.final_price == Decimal("89.60")

    def test_exemption_without_discount(self):
        result = apply_discount_and_exemption(line(exemptable=True), "pwd")
        assert result.vat_exempt
        assert not result.discount_applied
        assert result.vat_exempt_amount == Decimal("12.00")
        assert result.final_price == Decimal("100.00")

    def test_discount_on_vat_exempt_base(self):
        result = apply_discount_and_exemption(line(discountable=True, exemptable=True), "senior")
        assert result.vat_exempt_amount == Decimal("12.00")
        assert result.discount_amount == Decimal("20.00")
        assert result.final_price == Decimal("80.00")

    def test_ineligible_product_unchanged_for_senior(self):
        original = line()
        assert apply_discount_and_exemption(original, "senior") is original

    def test_customer_type_is_case_insensitive(self):
        assert apply_discount_and_exemption(line(discountable=True), "PWD").discount_applied

    def test_input_line_is_not_mutated(self):
        original = line(discountable=True, exemptable=True)
        apply_discount_and_exemption(original, "senior")
        assert original.final_price is None
        assert not original.discount_applied


class TestSummarizeCart:
    def test_regular_cart(self):
        summary = summarize_cart([line("56.00", quantity=2), line("10.00")], "regular")
        assert summary["subtotal"] == Decimal("122.00")
        assert summary["amount_due"] == Decimal("122.00")
        assert summary["total_discount"] == Decimal("0.00")
        assert summary["vat"]["vat_amount"] == Decimal("13.07")

    def test_senior_cart_splits_exempt_sales(self):
        lines = [line(discountable=True, exemptable=True), line("56.00")]
        summary = summarize_cart(lines, "senior")

        assert summary["subtotal"] == Decimal("168.00")
        assert summary["total_discount"] == Decimal("20.00")
        assert summary["total_vat_exempt"] == Decimal("12.00")
        assert summary["vat_exempt_sales"] == Decimal("80.00")
        assert summary["amount_due"] == Decimal("136.00")
        # VAT only on the non-exempt 56.00 line
        assert summary["vat"]["total"] == Decimal("56.00")
        assert summary["vat"]["vat_amount"] == Decimal("6.00")

    def test_unknown_customer_type_is_regular(self):
        summary = summarize_cart([line(discountable=True)], "vip")
        assert summary["customer_type"] == "regular"
        assert summary["amount_due"] == Decimal("112.00")
