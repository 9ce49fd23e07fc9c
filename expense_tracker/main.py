import logging
from datetime import date, datetime
from decimal import Decimal

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    func,
    insert,
    select,
)
from sqlalchemy.exc import IntegrityError

from expense_tracker.config import get_settings
from expense_tracker.currency_format import (
    CENTS,
    format_expense_amount,
    get_currency_formatter,
    normalize_currency,
    resolve_display_currency,
)
from expense_tracker.expenses import (
    Category,
    Expense,
    category_names_by_id,
    describe_expense,
    total_spend,
)
from expense_tracker.logging_config import (
    init_logging,
    request_context_middleware,
    server_error_handler,
)
from expense_tracker.reporting import ReportRange, UnsupportedGroupingError, build_report

settings = get_settings()
init_logging(debug=settings.debug)
logger = logging.getLogger(__name__)

app = FastAPI(title="Expense Tracker", debug=settings.debug)
app.middleware("http")(request_context_middleware)
app.add_exception_handler(Exception, server_error_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, connect_args=connect_args)
metadata = MetaData()

# Numeric(12, 2): ten integer digits and two decimal places.
MAX_STORED_AMOUNT = Decimal("1e10")

DEFAULT_CATEGORIES = [
    "Groceries",
    "Dining",
    "Transport",
    "Utilities",
    "Entertainment",
    "Other",
]

categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), unique=True, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

expenses = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("category_id", Integer, ForeignKey("categories.id"), nullable=False),
    Column("merchant", String(255)),
    Column("note", String(500)),
    Column("date", Date, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)


@app.on_event("startup")
def init_db() -> None:
    metadata.create_all(engine)


class CategoryResponse(BaseModel):
    id: int
    name: str
    created_at: datetime


class ExpensePayload(BaseModel):
    amount: Decimal
    currency: str
    category_id: int
    merchant: str | None = None
    note: str | None = None
    date: date

    @classmethod
    def validate_payload(cls, payload: "ExpensePayload") -> "ExpensePayload":
        if not payload.amount.is_finite() or payload.amount <= 0:
            raise ValueError("Amount must be greater than zero.")
        if payload.amount >= MAX_STORED_AMOUNT:
            raise ValueError("Amount must be less than 10,000,000,000.")
        if payload.amount != payload.amount.quantize(CENTS):
            raise ValueError("Amount must have at most two decimal places.")
        payload.currency = normalize_currency(payload.currency)
        payload.merchant = payload.merchant.strip() or None if payload.merchant else None
        payload.note = payload.note.strip() or None if payload.note else None
        return payload


class ExpenseResponse(ExpensePayload):
    id: int
    formatted_amount: str
    description: str


class ExpenseSummaryResponse(BaseModel):
    display_currency: str
    total: Decimal
    formatted_total: str
    expense_count: int


class ReportBucketResponse(BaseModel):
    key: str
    label: str
    bucket_start: date
    total: Decimal
    formatted_total: str
    fill_percent: int
    expense_count: int


class ExpenseReportResponse(BaseModel):
    group_by: str
    range_from: str | None = None
    range_to: str | None = None
    range_valid: bool
    display_currency: str
    total: Decimal
    formatted_total: str
    max_total: Decimal
    expense_count: int
    buckets: list[ReportBucketResponse]


def ensure_default_categories(conn) -> None:
    existing = conn.execute(select(categories.c.id).limit(1)).first()
    if existing:
        return
    conn.execute(
        insert(categories),
        [{"name": name} for name in DEFAULT_CATEGORIES],
    )


def expense_from_row(row) -> Expense:
    return Expense(
        id=row["id"],
        amount=row["amount"],
        currency=row["currency"],
        category_id=row["category_id"],
        date=row["date"],
        merchant=row["merchant"],
        note=row["note"],
    )


def expense_response(expense: Expense, category_names: dict) -> ExpenseResponse:
    return ExpenseResponse(
        id=expense.id,
        amount=expense.amount,
        currency=expense.currency,
        category_id=expense.category_id,
        merchant=expense.merchant,
        note=expense.note,
        date=expense.date,
        formatted_amount=format_expense_amount(expense),
        description=describe_expense(expense, category_names),
    )


def fetch_category_names() -> dict:
    with engine.begin() as conn:
        rows = conn.execute(select(categories.c.id, categories.c.name)).mappings().all()
    return category_names_by_id(Category(id=row["id"], name=row["name"]) for row in rows)


def fetch_expense_rows():
    with engine.begin() as conn:
        return conn.execute(
            select(expenses).order_by(expenses.c.date.desc(), expenses.c.id.desc())
        ).mappings().all()


def load_expenses() -> list[Expense]:
    return [expense_from_row(row) for row in fetch_expense_rows()]


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/categories", response_model=list[CategoryResponse])
def list_categories() -> list[CategoryResponse]:
    with engine.begin() as conn:
        ensure_default_categories(conn)
        rows = conn.execute(
            select(categories).order_by(categories.c.name.asc(), categories.c.id.asc())
        ).mappings().all()
    return [
        CategoryResponse(id=row["id"], name=row["name"], created_at=row["created_at"])
        for row in rows
    ]


@app.get("/expenses", response_model=list[ExpenseResponse])
def list_expenses() -> list[ExpenseResponse]:
    category_names = fetch_category_names()
    return [expense_response(expense, category_names) for expense in load_expenses()]


@app.get("/expenses/summary", response_model=ExpenseSummaryResponse)
def expense_summary(currency: str | None = Query(None)) -> ExpenseSummaryResponse:
    all_expenses = load_expenses()
    display_currency = resolve_display_currency(
        all_expenses, currency, settings.default_currency
    )
    total = total_spend(all_expenses)
    return ExpenseSummaryResponse(
        display_currency=display_currency,
        total=total,
        formatted_total=get_currency_formatter(display_currency).format(total),
        expense_count=len(all_expenses),
    )


@app.post("/expenses", response_model=ExpenseResponse)
def create_expense(payload: ExpensePayload) -> ExpenseResponse:
    try:
        payload = ExpensePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stmt = (
        insert(expenses)
        .values(
            amount=payload.amount,
            currency=payload.currency,
            category_id=payload.category_id,
            merchant=payload.merchant,
            note=payload.note,
            date=payload.date,
        )
        .returning(*expenses.c)
    )
    try:
        with engine.begin() as conn:
            category = conn.execute(
                select(categories.c.id).where(categories.c.id == payload.category_id)
            ).first()
            if not category:
                raise HTTPException(status_code=404, detail="Category not found.")
            row = conn.execute(stmt).mappings().first()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Failed to create expense.") from exc

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create expense.")
    logger.info("created expense %s", row["id"])
    return expense_response(expense_from_row(row), fetch_category_names())


@app.delete("/expenses/{expense_id}")
def delete_expense(expense_id: int) -> dict:
    with engine.begin() as conn:
        result = conn.execute(expenses.delete().where(expenses.c.id == expense_id))
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Expense not found.")
    logger.info("deleted expense %s", expense_id)
    return {"status": "deleted"}


@app.get("/reports/expenses", response_model=ExpenseReportResponse)
def expense_report(
    range_from: str | None = Query(None, alias="from"),
    range_to: str | None = Query(None, alias="to"),
    group_by: str = Query("week", alias="groupBy"),
    currency: str | None = Query(None),
) -> ExpenseReportResponse:
    report_range = ReportRange(from_date=range_from, to_date=range_to)
    try:
        report = build_report(
            load_expenses(),
            report_range,
            group_by,
            form_currency=currency,
            default_currency=settings.default_currency,
        )
    except UnsupportedGroupingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    formatter = get_currency_formatter(report.display_currency)
    return ExpenseReportResponse(
        group_by=report.group_by,
        range_from=range_from,
        range_to=range_to,
        range_valid=report.range_valid,
        display_currency=report.display_currency,
        total=report.total,
        formatted_total=formatter.format(report.total),
        max_total=report.max_total,
        expense_count=report.expense_count,
        buckets=[
            ReportBucketResponse(
                key=bucket.key,
                label=bucket.label,
                bucket_start=bucket.start,
                total=bucket.total,
                formatted_total=formatter.format(bucket.total),
                fill_percent=report.fill_percent(bucket),
                expense_count=bucket.expense_count,
            )
            for bucket in report.buckets
        ],
    )
