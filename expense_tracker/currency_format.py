from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from functools import lru_cache
from typing import Optional, Sequence

from expense_tracker.expenses import Expense, coerce_amount

CENTS = Decimal("0.01")
UNSPECIFIED_CURRENCY = "CAD"
FALLBACK_DISPLAY_CURRENCY = "USD"
CODE_SEPARATOR = "\u00a0"

# Canadian-English narrow symbols: every dollar currency renders as "$".
NARROW_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "CAD": "$",
    "AUD": "$",
    "NZD": "$",
    "HKD": "$",
    "SGD": "$",
    "MXN": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "INR": "₹",
    "KRW": "₩",
    "ILS": "₪",
    "NGN": "₦",
    "PHP": "₱",
    "VND": "₫",
    "UAH": "₴",
    "TRY": "₺",
}


@dataclass(frozen=True)
class CurrencyFormatter:
    """Formats amounts for one currency code with exactly two decimals.

    Codes without a narrow symbol are followed by a no-break space, as the
    Canadian-English currency style prints them.
    """

    code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", _format_code(self.code))

    @property
    def symbol(self) -> Optional[str]:
        return NARROW_SYMBOLS.get(self.code)

    def format(self, amount: object) -> str:
        value = coerce_amount(amount)
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, value.adjusted() + 3)
            value = value.quantize(CENTS, rounding=ROUND_HALF_UP)
            sign = "-" if value < 0 else ""
            digits = f"{abs(value):,.2f}"
        if self.symbol:
            return f"{sign}{self.symbol}{digits}"
        return f"{sign}{self.code}{CODE_SEPARATOR}{digits}"


@lru_cache(maxsize=None)
def get_currency_formatter(currency: Optional[str]) -> CurrencyFormatter:
    return CurrencyFormatter(_format_code(currency))


def format_currency(
    amount: object,
    currency: Optional[str],
    formatter: Optional[CurrencyFormatter] = None,
) -> str:
    if formatter is not None:
        return formatter.format(amount)
    return get_currency_formatter(_format_code(currency)).format(amount)


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def safe_normalize_currency(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return normalize_currency(value)
    except ValueError:
        return None


def resolve_display_currency(
    expenses: Sequence[Expense],
    form_currency: Optional[str] = None,
    default_currency: Optional[str] = None,
) -> str:
    """Pick the currency used for aggregate figures.

    Policy: the first fetched expense's currency wins, then the currency
    selected in the entry form, then the configured default. Individual
    expense lines are always formatted in their own currency instead.
    """
    if expenses:
        first_currency = safe_normalize_currency(expenses[0].currency)
        if first_currency:
            return first_currency
    return (
        safe_normalize_currency(form_currency)
        or safe_normalize_currency(default_currency)
        or FALLBACK_DISPLAY_CURRENCY
    )


def format_expense_amount(expense: Expense) -> str:
    return format_currency(expense.amount, expense.currency)


def _format_code(value: Optional[str]) -> str:
    if not value:
        return UNSPECIFIED_CURRENCY
    return value.strip().upper() or UNSPECIFIED_CURRENCY
