from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, localcontext
from typing import Iterable, Mapping, Optional

ZERO = Decimal("0")
UNCATEGORIZED = "Uncategorized"
ISO_DATE_PATTERN = re.compile(r"^([0-9]{4})-([0-9]{2})-([0-9]{2})$")
# Amounts with more integer digits than this are treated as unreadable.
MAX_AMOUNT_DIGITS = 100
# Enough digits to add readable amounts down to fractions of a cent exactly.
SUM_PRECISION = MAX_AMOUNT_DIGITS + 30


@dataclass(frozen=True)
class Expense:
    id: object
    amount: Decimal
    currency: Optional[str]
    category_id: object = None
    date: date | str | None = None
    merchant: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class Category:
    id: object
    name: str


def parse_expense_date(value: object) -> date | None:
    """Return the calendar date for ``value`` or ``None`` when it cannot be read.

    Accepts ``date`` and ``datetime`` instances and strict ``YYYY-MM-DD``
    strings. Every date is a plain UTC calendar day; aware datetimes are
    converted to UTC first.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    match = ISO_DATE_PATTERN.match(value.strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def coerce_amount(value: object) -> Decimal:
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return ZERO
    if not amount.is_finite() or amount.adjusted() >= MAX_AMOUNT_DIGITS:
        return ZERO
    return amount


def expense_from_record(record: Mapping[str, object]) -> Expense:
    category_id = record.get("categoryId")
    if category_id is None:
        category_id = record.get("category_id")
    currency = record.get("currency")
    return Expense(
        id=record.get("id"),
        amount=coerce_amount(record.get("amount")),
        currency=currency.strip().upper() if isinstance(currency, str) else None,
        category_id=category_id,
        date=record.get("date"),
        merchant=_optional_text(record.get("merchant")),
        note=_optional_text(record.get("note")),
    )


def describe_expense(expense: Expense, category_names: Mapping[object, str]) -> str:
    parts = [category_names.get(expense.category_id) or UNCATEGORIZED]
    if expense.merchant:
        parts.append(expense.merchant)
    if expense.note:
        parts.append(expense.note)
    return " - ".join(parts)


def category_names_by_id(categories: Iterable[Category]) -> dict[object, str]:
    return {category.id: category.name for category in categories}


def total_spend(expenses: Iterable[Expense]) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = SUM_PRECISION
        return sum((coerce_amount(expense.amount) for expense in expenses), ZERO)


def _optional_text(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None
