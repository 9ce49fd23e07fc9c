import unittest
from decimal import Decimal

from expense_tracker.currency_format import (
    CurrencyFormatter,
    format_currency,
    format_expense_amount,
    get_currency_formatter,
    normalize_currency,
    resolve_display_currency,
)
from expense_tracker.expenses import Expense


class CurrencyFormatterTests(unittest.TestCase):
    def test_two_fraction_digits_with_symbol(self) -> None:
        self.assertEqual(format_currency(12.5, "USD"), "$12.50")
        self.assertEqual(format_currency(Decimal("3"), "EUR"), "€3.00")
        self.assertEqual(format_currency("1234567.891", "GBP"), "£1,234,567.89")

    def test_rounds_half_up(self) -> None:
        self.assertEqual(format_currency(Decimal("0.125"), "USD"), "$0.13")
        self.assertEqual(format_currency(Decimal("-2.005"), "USD"), "-$2.01")

    def test_missing_amount_is_zero(self) -> None:
        self.assertEqual(format_currency(None, "USD"), "$0.00")
        self.assertEqual(format_currency("", "JPY"), "¥0.00")

    def test_code_without_narrow_symbol(self) -> None:
        self.assertEqual(format_currency(Decimal("1500"), "chf"), "CHF\u00a01,500.00")

    def test_large_amounts_keep_every_digit(self) -> None:
        self.assertEqual(
            format_currency(Decimal("1e30"), "USD"),
            "$1,000,000,000,000,000,000,000,000,000,000.00",
        )
        self.assertEqual(
            format_currency(Decimal("123456789012345678901234567890.125"), "EUR"),
            "€123,456,789,012,345,678,901,234,567,890.13",
        )

    def test_unreadably_large_amounts_format_as_zero(self) -> None:
        self.assertEqual(format_currency(Decimal("9e999999"), "USD"), "$0.00")
        self.assertEqual(format_currency("1e500", "GBP"), "£0.00")

    def test_blank_currency_uses_cad(self) -> None:
        self.assertEqual(get_currency_formatter(None).code, "CAD")
        self.assertEqual(format_currency(4, " "), "$4.00")

    def test_formatters_are_reused_and_consistent(self) -> None:
        cached = get_currency_formatter("USD")

        self.assertIs(get_currency_formatter("USD"), cached)
        fresh = CurrencyFormatter("usd")
        self.assertEqual(fresh.format(12.5), cached.format(12.5))
        self.assertEqual(format_currency(12.5, "EUR", formatter=fresh), "$12.50")

    def test_line_items_use_their_own_currency(self) -> None:
        expense = Expense(id=1, amount=Decimal("8"), currency="EUR")

        self.assertEqual(format_expense_amount(expense), "€8.00")


class DisplayCurrencyTests(unittest.TestCase):
    def test_first_expense_currency_wins(self) -> None:
        expenses = [
            Expense(id=1, amount=Decimal("1"), currency="eur"),
            Expense(id=2, amount=Decimal("1"), currency="USD"),
        ]

        self.assertEqual(resolve_display_currency(expenses, "GBP", "USD"), "EUR")

    def test_falls_back_to_form_then_default(self) -> None:
        self.assertEqual(resolve_display_currency([], "jpy", "USD"), "JPY")
        self.assertEqual(resolve_display_currency([], None, "cad"), "CAD")
        self.assertEqual(resolve_display_currency([], "", None), "USD")

    def test_unusable_first_currency_is_skipped(self) -> None:
        expenses = [Expense(id=1, amount=Decimal("1"), currency=None)]

        self.assertEqual(resolve_display_currency(expenses, "NZD"), "NZD")

    def test_normalize_currency_rejects_bad_codes(self) -> None:
        self.assertEqual(normalize_currency(" usd "), "USD")
        with self.assertRaises(ValueError):
            normalize_currency("US")
        with self.assertRaises(ValueError):
            normalize_currency("U5D")


if __name__ == "__main__":
    unittest.main()
