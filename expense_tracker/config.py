from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from expense_tracker.currency_format import FALLBACK_DISPLAY_CURRENCY, safe_normalize_currency

TRUTHY_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Application settings read from the environment.

    DATABASE_URL, FRONTEND_ORIGIN, DEFAULT_CURRENCY, REPORT_SERVICE_URL,
    HTTP_TIMEOUT_SECONDS and DEBUG map onto the fields below.
    """

    database_url: str = "sqlite:///./expenses.db"
    frontend_origin: str = "http://localhost:5173"
    default_currency: str = FALLBACK_DISPLAY_CURRENCY
    report_service_url: str = "http://localhost:3000"
    http_timeout_seconds: float = 10.0
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            frontend_origin=os.getenv("FRONTEND_ORIGIN", cls.frontend_origin),
            default_currency=safe_normalize_currency(os.getenv("DEFAULT_CURRENCY"))
            or FALLBACK_DISPLAY_CURRENCY,
            report_service_url=os.getenv("REPORT_SERVICE_URL", cls.report_service_url).rstrip("/"),
            http_timeout_seconds=_parse_float(
                os.getenv("HTTP_TIMEOUT_SECONDS"), cls.http_timeout_seconds
            ),
            debug=os.getenv("DEBUG", "").strip().lower() in TRUTHY_VALUES,
        )


def _parse_float(raw: str | None, fallback: float) -> float:
    if not raw:
        return fallback
    try:
        value = float(raw)
    except ValueError:
        return fallback
    return value if value > 0 else fallback


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
