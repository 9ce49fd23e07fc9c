import json
import logging
import sys
import unittest

from expense_tracker.logging_config import (
    SERVICE_NAME,
    JsonFormatter,
    RequestContextFilter,
    request_id_ctx,
    request_path_ctx,
)


def make_record(message: str, *args) -> logging.LogRecord:
    return logging.LogRecord(
        name="expense_tracker.reporting",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=args,
        exc_info=None,
    )


class JsonFormatterTests(unittest.TestCase):
    def format_record(self, record: logging.LogRecord) -> dict:
        RequestContextFilter().filter(record)
        return json.loads(JsonFormatter().format(record))

    def test_entry_carries_service_and_request_context(self) -> None:
        id_token = request_id_ctx.set("req-42")
        path_token = request_path_ctx.set("GET /expenses")
        try:
            entry = self.format_record(make_record("built %d buckets", 3))
        finally:
            request_path_ctx.reset(path_token)
            request_id_ctx.reset(id_token)

        self.assertEqual(entry["service"], SERVICE_NAME)
        self.assertEqual(entry["event"], "built 3 buckets")
        self.assertEqual(entry["level"], "INFO")
        self.assertEqual(entry["logger"], "expense_tracker.reporting")
        self.assertEqual(entry["request_id"], "req-42")
        self.assertEqual(entry["path"], "GET /expenses")
        self.assertTrue(entry["ts"].endswith("Z"))
        self.assertNotIn("exc_info", entry)

    def test_entry_outside_a_request(self) -> None:
        entry = self.format_record(make_record("startup"))

        self.assertEqual(entry["request_id"], "-")
        self.assertEqual(entry["path"], "-")

    def test_exception_is_included(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record("failed")
            record.exc_info = sys.exc_info()

        entry = self.format_record(record)

        self.assertIn("RuntimeError: boom", entry["exc_info"])


if __name__ == "__main__":
    unittest.main()
