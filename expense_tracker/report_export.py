from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from expense_tracker.config import Settings
from expense_tracker.expenses import parse_expense_date
from expense_tracker.reporting import GroupBy, ReportRange, is_valid_range

logger = logging.getLogger(__name__)

REPORT_PDF_PATH = "/reports/expenses/pdf"
DEFAULT_EXPORT_ERROR = "Failed to download report"


class InvalidReportRange(ValueError):
    """Raised when an export is requested for a range that fails validation."""


class ReportExportError(RuntimeError):
    """Raised when the report service cannot produce the document."""


def build_export_params(report_range: ReportRange, group_by: str) -> dict[str, str]:
    if not is_valid_range(report_range):
        raise InvalidReportRange("Choose a valid date range.")
    return {
        "from": parse_expense_date(report_range.from_date).isoformat(),
        "to": parse_expense_date(report_range.to_date).isoformat(),
        "groupBy": GroupBy.validate(group_by),
    }


def export_filename(report_range: ReportRange) -> str:
    if not is_valid_range(report_range):
        raise InvalidReportRange("Choose a valid date range.")
    start = parse_expense_date(report_range.from_date)
    end = parse_expense_date(report_range.to_date)
    return f"expense-report-{start.isoformat()}-to-{end.isoformat()}.pdf"


@dataclass(frozen=True)
class ReportExportClient:
    base_url: str
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReportExportClient":
        return cls(base_url=settings.report_service_url, timeout=settings.http_timeout_seconds)

    def download_pdf(self, report_range: ReportRange, group_by: str) -> bytes:
        params = build_export_params(report_range, group_by)
        url = f"{self.base_url.rstrip('/')}{REPORT_PDF_PATH}?{urlencode(params)}"
        request = Request(url, headers={"Accept": "application/pdf"})
        logger.info("requesting expense report %s", params)
        try:
            with urlopen(request, timeout=self.timeout) as response:
                return response.read()
        except HTTPError as exc:
            message = _error_message(exc)
            logger.warning("report service returned %s: %s", exc.code, message)
            raise ReportExportError(message) from exc
        except (URLError, TimeoutError) as exc:
            logger.warning("report service unreachable: %s", exc)
            raise ReportExportError(DEFAULT_EXPORT_ERROR) from exc


def _error_message(exc: HTTPError) -> str:
    try:
        payload = json.loads(exc.read().decode("utf-8"))
    except (ValueError, UnicodeDecodeError, OSError):
        return DEFAULT_EXPORT_ERROR
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return DEFAULT_EXPORT_ERROR
