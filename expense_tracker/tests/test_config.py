import os
import unittest
from unittest import mock

from expense_tracker.config import Settings
from expense_tracker.report_export import ReportExportClient


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.database_url, "sqlite:///./expenses.db")
        self.assertEqual(settings.default_currency, "USD")
        self.assertEqual(settings.http_timeout_seconds, 10.0)
        self.assertFalse(settings.debug)

    def test_reads_environment(self) -> None:
        env = {
            "DATABASE_URL": "sqlite:///tmp/x.db",
            "DEFAULT_CURRENCY": " eur ",
            "REPORT_SERVICE_URL": "https://reports.example.com/",
            "HTTP_TIMEOUT_SECONDS": "2.5",
            "DEBUG": "True",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.database_url, "sqlite:///tmp/x.db")
        self.assertEqual(settings.default_currency, "EUR")
        self.assertEqual(settings.report_service_url, "https://reports.example.com")
        self.assertEqual(settings.http_timeout_seconds, 2.5)
        self.assertTrue(settings.debug)

    def test_invalid_values_fall_back(self) -> None:
        env = {"DEFAULT_CURRENCY": "euros", "HTTP_TIMEOUT_SECONDS": "-1"}
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        self.assertEqual(settings.default_currency, "USD")
        self.assertEqual(settings.http_timeout_seconds, 10.0)

    def test_export_client_from_settings(self) -> None:
        client = ReportExportClient.from_settings(
            Settings(report_service_url="http://svc", http_timeout_seconds=4)
        )

        self.assertEqual(client, ReportExportClient(base_url="http://svc", timeout=4))


if __name__ == "__main__":
    unittest.main()
