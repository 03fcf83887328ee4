# tests/test_cli_runner.py

"""Tests for the headless CLI commands."""

import io
import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

from src.cli import runner
from src.models.errors import NetworkError
from src.scrapers.page_fetcher import FetchOutcome, FetchResponse
from src.services.page_monitor import (
    BatchSummary,
    CheckResult,
    CompetitorCheckResult,
)
from src.storage.monitor_db import MonitorDB


class _StoreTestCase(unittest.TestCase):
    """Temp store with one competitor and page."""

    def setUp(self) -> None:
        """Create the store."""
        self.tmp_dir = tempfile.mkdtemp()
        self.store = MonitorDB(db_path=Path(self.tmp_dir) / "cli.db")
        self.competitor = self.store.add_competitor("Acme", "https://acme.test")
        self.page = self.store.add_page(
            self.competitor.id, "https://acme.test/pricing", "Pricing",
        )

    def tearDown(self) -> None:
        """Close the database."""
        self.store.close()


class TestRegistration(_StoreTestCase):
    """add-competitor and add-page."""

    def test_add_competitor(self) -> None:
        """A competitor is stored and exit code is 0."""
        code = runner.run_add_competitor(
            self.store, "Beta", "https://beta.test", None,
        )
        self.assertEqual(code, 0)
        names = [c.name for c in self.store.list_competitors()]
        self.assertIn("Beta", names)

    def test_add_page(self) -> None:
        """A page is attached to an existing competitor."""
        code = runner.run_add_page(
            self.store, self.competitor.id, "https://acme.test/", "Home",
        )
        self.assertEqual(code, 0)
        self.assertEqual(len(self.store.list_pages(self.competitor.id)), 2)

    def test_add_page_unknown_competitor(self) -> None:
        """Unknown competitors fail with exit code 1."""
        code = runner.run_add_page(self.store, 999, "https://x.test", "X")
        self.assertEqual(code, 1)

    def test_add_duplicate_page(self) -> None:
        """Store errors map to exit code 1."""
        code = runner.run_add_page(
            self.store, self.competitor.id,
            "https://acme.test/pricing", "Again",
        )
        self.assertEqual(code, 1)


class TestChecks(_StoreTestCase):
    """check-page, check-competitor and check-all wrappers."""

    def test_check_page_success(self) -> None:
        """A completed check exits 0."""
        monitor = MagicMock()
        monitor.check_page.return_value = CheckResult(
            page=self.page, is_first_snapshot=True,
        )
        self.assertEqual(runner.run_check_page(monitor, self.page.id), 0)

    def test_check_page_fetch_failure(self) -> None:
        """Fetch failures exit 1."""
        monitor = MagicMock()
        monitor.check_page.side_effect = NetworkError(self.page.url, "HTTP 500")
        self.assertEqual(runner.run_check_page(monitor, self.page.id), 1)

    def test_check_page_unknown(self) -> None:
        """Unknown ids exit 1."""
        monitor = MagicMock()
        monitor.check_page.side_effect = LookupError("Page 9 not found")
        self.assertEqual(runner.run_check_page(monitor, 9), 1)

    def test_check_competitor_with_page_error(self) -> None:
        """Any failed page makes the batch exit 1."""
        monitor = MagicMock()
        monitor.check_competitor.return_value = CompetitorCheckResult(
            competitor=self.competitor,
            checked=0,
            results=[CheckResult(page=self.page, error="HTTP 503")],
        )
        self.assertEqual(
            runner.run_check_competitor(monitor, self.competitor.id), 1,
        )

    def test_check_all_clean(self) -> None:
        """A clean batch exits 0."""
        monitor = MagicMock()
        monitor.check_all.return_value = BatchSummary(
            competitors=1, checked=1, changes=0,
        )
        self.assertEqual(runner.run_check_all(monitor), 0)

    def test_check_all_with_errors(self) -> None:
        """Batch errors exit 1."""
        monitor = MagicMock()
        monitor.check_all.return_value = BatchSummary(
            competitors=1, errors=["Acme - Pricing: HTTP 500"],
        )
        self.assertEqual(runner.run_check_all(monitor), 1)


class TestChanges(_StoreTestCase):
    """The changes listing command."""

    def setUp(self) -> None:
        """Seed one change."""
        super().setUp()
        self.store.create_change(
            page_id=self.page.id,
            new_fingerprint="abc",
            summary="Price decrease: -$5.00 (-10.0%)",
            significance="high",
            change_type="PRICE_CHANGE",
            old_price=50.0,
            new_price=45.0,
            detected_at=datetime(2026, 2, 1, 8, 0),
        )

    def test_json_output(self) -> None:
        """JSON output lists the change fields."""
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = runner.run_changes(self.store, None, None, 10, "json")
        self.assertEqual(code, 0)
        data = json.loads(out.getvalue())
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["significance"], "high")
        self.assertEqual(data[0]["new_price"], 45.0)
        self.assertEqual(data[0]["detected_at"], "2026-02-01T08:00:00")

    def test_table_output(self) -> None:
        """Table output renders without error."""
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = runner.run_changes(
                self.store, self.page.id, None, 10, "table",
            )
        self.assertEqual(code, 0)
        self.assertIn("Recent Changes", out.getvalue())

    def test_no_changes(self) -> None:
        """An empty listing is not an error."""
        code = runner.run_changes(self.store, 999, None, 10, "json")
        self.assertEqual(code, 0)


class TestFetchPreview(unittest.TestCase):
    """The fetch command previews pages without a store."""

    def _fetcher(self, outcomes: list[FetchOutcome]) -> MagicMock:
        fetcher = MagicMock()
        fetcher.fetch_many.return_value = outcomes
        return fetcher

    def test_detected_price_listed(self) -> None:
        """Fetched pages show their extracted price."""
        html = (
            '<html><body><span class="price">$24.00</span></body></html>'
        )
        fetcher = self._fetcher([
            FetchOutcome(
                url="https://acme.test/p",
                response=FetchResponse(
                    url="https://acme.test/p", html=html, status=200,
                ),
            )
        ])
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = runner.run_fetch(fetcher, ["https://acme.test/p"])
        self.assertEqual(code, 0)
        fetcher.fetch_many.assert_called_once_with(["https://acme.test/p"])
        self.assertIn("$24.00", out.getvalue())

    def test_failed_url_exits_one(self) -> None:
        """Any unreachable URL makes the preview exit 1."""
        fetcher = self._fetcher([
            FetchOutcome(url="https://down.test", error="HTTP 503"),
        ])
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = runner.run_fetch(fetcher, ["https://down.test"])
        self.assertEqual(code, 1)
        self.assertIn("HTTP 503", out.getvalue())


class TestBuildMonitor(_StoreTestCase):
    """Production wiring."""

    def test_build_monitor_uses_store(self) -> None:
        """The factory wires collaborators around the given store."""
        monitor = runner.build_monitor(self.store)
        self.assertIs(monitor.store, self.store)


if __name__ == "__main__":
    unittest.main()
