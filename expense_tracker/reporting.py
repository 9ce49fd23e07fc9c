from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, List, Optional

from expense_tracker.currency_format import resolve_display_currency
from expense_tracker.expenses import (
    SUM_PRECISION,
    ZERO,
    Expense,
    coerce_amount,
    parse_expense_date,
)

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30
WEEK_LABEL_PREFIX = "Week of "


class UnsupportedGroupingError(ValueError):
    """Raised when a report is requested with an unknown grouping mode."""


class GroupBy:
    WEEK = "week"
    MONTH = "month"
    values = {WEEK, MONTH}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower() if isinstance(value, str) else ""
        if normalized not in cls.values:
            raise UnsupportedGroupingError(f"Unsupported grouping mode: {value!r}")
        return normalized


@dataclass(frozen=True)
class ReportRange:
    from_date: date | str | None = None
    to_date: date | str | None = None

    def is_complete(self) -> bool:
        return bool(self.from_date) and bool(self.to_date)


@dataclass(frozen=True)
class Bucket:
    key: str
    label: str
    start: date
    total: Decimal
    expense_count: int


@dataclass(frozen=True)
class ExpenseReport:
    group_by: str
    report_range: ReportRange
    range_valid: bool
    buckets: tuple[Bucket, ...]
    total: Decimal
    max_total: Decimal
    expense_count: int
    display_currency: str

    def fill_percent(self, bucket: Bucket) -> int:
        return fill_percent(bucket.total, self.max_total)


def format_date(value: date) -> str:
    return value.isoformat()


def default_report_range(today: Optional[date] = None) -> ReportRange:
    end = today or datetime.now(timezone.utc).date()
    start = end - timedelta(days=DEFAULT_RANGE_DAYS)
    return ReportRange(from_date=format_date(start), to_date=format_date(end))


def is_valid_range(report_range: ReportRange) -> bool:
    if not report_range.is_complete():
        return False
    start = parse_expense_date(report_range.from_date)
    end = parse_expense_date(report_range.to_date)
    if start is None or end is None:
        return False
    return start <= end


def filter_by_range(expenses: Iterable[Expense], report_range: ReportRange) -> List[Expense]:
    """Select the expenses dated within ``report_range``, inclusive at both ends.

    A range missing either endpoint selects everything. Expenses whose date
    cannot be parsed are never selected by a complete range.
    """
    candidates = list(expenses)
    if not report_range.is_complete():
        return candidates

    start = parse_expense_date(report_range.from_date)
    end = parse_expense_date(report_range.to_date)
    if start is None or end is None:
        logger.debug("report range %r has an unreadable endpoint", report_range)
        return []

    selected: List[Expense] = []
    skipped = 0
    for expense in candidates:
        expense_date = parse_expense_date(expense.date)
        if expense_date is None:
            skipped += 1
            continue
        if start <= expense_date <= end:
            selected.append(expense)
    if skipped:
        logger.debug("skipped %d expenses with unreadable dates", skipped)
    return selected


def bucket_start(value: date, group_by: str) -> date:
    mode = GroupBy.validate(group_by)
    if mode == GroupBy.MONTH:
        return value.replace(day=1)
    # Monday of the ISO week; a Sunday belongs to the week that began six days earlier.
    return value - timedelta(days=value.weekday())


def bucket_label(start: date, group_by: str) -> str:
    mode = GroupBy.validate(group_by)
    formatted = format_date(start)
    if mode == GroupBy.MONTH:
        return formatted[:7]
    return f"{WEEK_LABEL_PREFIX}{formatted}"


def bucket_key(start: date) -> str:
    return f"{format_date(start)}T00:00:00.000Z"


def aggregate(expenses: Iterable[Expense], group_by: str) -> List[Bucket]:
    mode = GroupBy.validate(group_by)
    totals: dict[date, Decimal] = {}
    counts: dict[date, int] = {}
    for expense in expenses:
        expense_date = parse_expense_date(expense.date)
        if expense_date is None:
            continue
        start = bucket_start(expense_date, mode)
        totals[start] = _add(totals.get(start, ZERO), coerce_amount(expense.amount))
        counts[start] = counts.get(start, 0) + 1

    return [
        Bucket(
            key=bucket_key(start),
            label=bucket_label(start, mode),
            start=start,
            total=totals[start],
            expense_count=counts[start],
        )
        for start in sorted(totals)
    ]


def max_total(buckets: Iterable[Bucket]) -> Decimal:
    return max((bucket.total for bucket in buckets), default=ZERO)


def fill_percent(total: Decimal, maximum: Decimal) -> int:
    if maximum <= ZERO:
        return 0
    ratio = coerce_amount(total) / maximum * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_report(
    expenses: Iterable[Expense],
    report_range: ReportRange,
    group_by: str,
    form_currency: Optional[str] = None,
    default_currency: Optional[str] = None,
) -> ExpenseReport:
    mode = GroupBy.validate(group_by)
    all_expenses = list(expenses)
    selected = filter_by_range(all_expenses, report_range)
    buckets = aggregate(selected, mode)
    return ExpenseReport(
        group_by=mode,
        report_range=report_range,
        range_valid=is_valid_range(report_range),
        buckets=tuple(buckets),
        total=_sum_totals(buckets),
        max_total=max_total(buckets),
        expense_count=sum(bucket.expense_count for bucket in buckets),
        display_currency=resolve_display_currency(
            all_expenses, form_currency, default_currency
        ),
    )


def _add(left: Decimal, right: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = SUM_PRECISION
        return left + right


def _sum_totals(buckets: Iterable[Bucket]) -> Decimal:
    total = ZERO
    for bucket in buckets:
        total = _add(total, bucket.total)
    return total
