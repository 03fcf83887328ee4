# src/services/page_monitor.py

"""Runs check cycles: fetch, normalise, extract, diff, classify, alert."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from src.config.settings import Settings
from src.filters.content_normalizer import normalize_content
from src.filters.differ import DiffResult, compare_snapshots
from src.filters.price_delta import (
    PriceDecision,
    PriceDelta,
    PriceThresholds,
    evaluate_price_change,
)
from src.filters.price_extractor import extract_price
from src.models.change import Change
from src.models.page import Competitor, MonitoredPage
from src.models.snapshot import Snapshot
from src.scrapers.page_fetcher import PageFetcher
from src.services.analyzer import (
    AnalysisResult,
    BaseAnalyzer,
    analysis_unavailable,
)
from src.services.change_composer import (
    STATE_CONTENT_CHANGE,
    STATE_NO_PRIOR_SNAPSHOT,
    STATE_PRICE_ONLY_CHANGE,
    ChangeDraft,
    classify_check,
    compose_change,
)
from src.services.notifier import BaseNotifier, ChangeNotification
from src.storage.monitor_db import MonitorDB

logger = logging.getLogger("pagewatch.monitor")


@dataclass
class PriceChange:
    """A price movement that passed the alerting policy."""

    delta: PriceDelta
    currency: str | None


@dataclass
class CheckResult:
    """Outcome of checking a single page."""

    page: MonitoredPage
    snapshot: Snapshot | None = None
    is_first_snapshot: bool = False
    change: Change | None = None
    price_change: PriceChange | None = None
    diff: DiffResult | None = None
    error: str | None = None


@dataclass
class CompetitorCheckResult:
    """Outcome of checking every active page of a competitor."""

    competitor: Competitor
    checked: int = 0
    changes: int = 0
    results: list[CheckResult] = field(
        default_factory=lambda: list[CheckResult]()
    )


@dataclass
class BatchSummary:
    """Totals for a run across all active competitors."""

    competitors: int = 0
    checked: int = 0
    changes: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )


class PageMonitor:
    """Coordinates one check cycle per page against the store."""

    def __init__(
        self,
        store: MonitorDB,
        fetcher: PageFetcher,
        analyzer: BaseAnalyzer,
        notifier: BaseNotifier,
        thresholds: PriceThresholds | None = None,
        retention: int | None = None,
    ) -> None:
        self.settings = Settings()
        self.store = store
        self.fetcher = fetcher
        self.analyzer = analyzer
        self.notifier = notifier
        self.thresholds = thresholds or PriceThresholds()
        self.retention = (
            retention
            if retention is not None
            else self.settings.SNAPSHOT_RETENTION
        )
        if self.retention < 1:
            raise ValueError("retention must keep at least one snapshot")

    # ── Private helpers ──────────────────────────────────

    def _wait(self) -> None:
        """Pause between pages to avoid hammering competitor sites."""
        time.sleep(self.settings.REQUEST_DELAY)

    def _recipient_for(self, page: MonitoredPage) -> str | None:
        competitor = self.store.get_competitor(page.competitor_id)
        if competitor is not None and competitor.alert_recipient:
            return competitor.alert_recipient
        return self.settings.ALERT_WEBHOOK_URL or None

    def _analyze(
        self,
        page: MonitoredPage,
        diff: DiffResult | None,
        price: PriceDecision | None,
        currency: str | None,
    ) -> AnalysisResult | None:
        """Ask the analyzer for a verdict, degrading on any failure.

        Returns ``None`` when there is neither a line diff nor an
        alertable price move to talk about.
        """
        price_moved = price is not None and price.should_emit
        try:
            if diff is not None and diff.has_changes:
                return self.analyzer.analyze(
                    page.display_name,
                    page.url,
                    diff,
                    price.delta if price is not None and price_moved else None,
                    currency,
                )
            if price is not None and price_moved:
                return self.analyzer.analyze_price_change(
                    page.display_name, page.url, price.delta, currency,
                )
        except Exception as exc:
            logger.warning(
                "Analyzer failed for %s: %s",
                page.display_name,
                exc,
                exc_info=True,
            )
            return analysis_unavailable(str(exc))
        return None

    @staticmethod
    def _build_change(
        previous: Snapshot,
        current: Snapshot,
        draft: ChangeDraft,
    ) -> Change:
        """Unsaved change row; the store assigns ids on commit."""
        return Change(
            id=0,
            page_id=current.page_id,
            old_fingerprint=previous.fingerprint,
            new_fingerprint=current.fingerprint,
            summary=draft.summary,
            analysis=draft.analysis,
            significance=draft.significance,
            change_type=draft.change_type,
            old_price=draft.old_price,
            new_price=draft.new_price,
            price_delta=draft.price_delta,
            price_delta_pct=draft.price_delta_pct,
            notified=False,
            detected_at=current.captured_at,
            old_snapshot_id=previous.id,
        )

    def _notify(self, page: MonitoredPage, change: Change) -> Change:
        """Alert on *change* and flag it once delivery succeeded."""
        recipient = self._recipient_for(page)
        if not recipient:
            logger.debug("No alert recipient for %s", page.display_name)
            return change

        result = self.notifier.send_alert(
            [
                ChangeNotification(
                    change_id=change.id,
                    page_label=page.display_name,
                    page_url=page.url,
                    significance=change.significance,
                    summary=change.summary,
                    analysis=change.analysis,
                    detected_at=change.detected_at,
                )
            ],
            recipient,
        )
        if not result.sent:
            logger.warning(
                "Alert for change %d not sent: %s",
                change.id,
                result.reason,
            )
            return change

        self.store.mark_notified(change.id)
        change.notified = True
        return change

    def _prune(self, page_id: int) -> None:
        self.store.prune_snapshots(page_id, self.retention)

    # ── Public API ───────────────────────────────────────

    def check_page(self, page_id: int) -> CheckResult:
        """Run one check cycle for a page.

        The first snapshot of a page only establishes a baseline. Later
        checks compare against the most recent stored snapshot and
        persist at most one change.

        Raises:
            LookupError: Unknown page id.
            FetchError: The page could not be retrieved.
            StoreError: Persisting state failed.
        """
        page = self.store.get_page(page_id)
        if page is None:
            raise LookupError(f"Page {page_id} not found")

        logger.info("Checking %s (%s)", page.display_name, page.url)
        response = self.fetcher.fetch(page.url)
        content = normalize_content(response.html)
        price = extract_price(content.raw_html, content.normalized_text)

        previous = self.store.get_latest_snapshot(page.id)
        captured = Snapshot(
            id=0,
            page_id=page.id,
            raw_html=content.raw_html,
            normalized_text=content.normalized_text,
            fingerprint=content.fingerprint,
            price_value=price.value,
            price_raw=price.raw,
            currency=price.currency,
            captured_at=datetime.now(),
        )

        decision = (
            evaluate_price_change(
                previous.price_value,
                price.value,
                price.confidence,
                self.thresholds,
            )
            if previous is not None
            else None
        )
        state = classify_check(previous, captured, decision)
        logger.debug("Check state for %s: %s", page.display_name, state)

        if state == STATE_NO_PRIOR_SNAPSHOT or previous is None:
            snapshot, _ = self.store.record_check(captured)
            logger.info("Baseline snapshot stored for %s", page.display_name)
            self._prune(page.id)
            return CheckResult(
                page=page, snapshot=snapshot, is_first_snapshot=True,
            )

        result = CheckResult(page=page)
        currency = price.currency or previous.currency
        if decision is not None and decision.should_emit:
            result.price_change = PriceChange(
                delta=decision.delta, currency=currency,
            )

        if state == STATE_CONTENT_CHANGE:
            result.diff = compare_snapshots(
                previous.normalized_text, captured.normalized_text,
            )

        pending: Change | None = None
        if state in (STATE_CONTENT_CHANGE, STATE_PRICE_ONLY_CHANGE):
            analysis = self._analyze(page, result.diff, decision, currency)
            draft = compose_change(
                state, result.diff, decision, analysis, currency,
            )
            if draft is not None:
                pending = self._build_change(previous, captured, draft)

        # Snapshot and change commit together or not at all
        result.snapshot, change = self.store.record_check(captured, pending)

        if change is not None:
            logger.info(
                "Change %d on %s: %s (%s)",
                change.id,
                page.display_name,
                change.summary,
                change.significance,
            )
            result.change = self._notify(page, change)

        self._prune(page.id)
        return result

    def check_competitor(self, competitor_id: int) -> CompetitorCheckResult:
        """Check every active page of a competitor sequentially.

        A failing page is recorded on its :class:`CheckResult` and the
        batch moves on.

        Raises:
            LookupError: Unknown competitor id.
        """
        competitor = self.store.get_competitor(competitor_id)
        if competitor is None:
            raise LookupError(f"Competitor {competitor_id} not found")

        outcome = CompetitorCheckResult(competitor=competitor)
        pages = self.store.list_pages(competitor_id, active_only=True)
        for index, page in enumerate(pages):
            if index:
                self._wait()
            try:
                result = self.check_page(page.id)
            except Exception as exc:
                logger.error(
                    "Check failed for %s: %s",
                    page.display_name,
                    exc,
                    exc_info=True,
                )
                result = CheckResult(page=page, error=str(exc))
            else:
                outcome.checked += 1
                if result.change is not None:
                    outcome.changes += 1
            outcome.results.append(result)

        logger.info(
            "Checked %d/%d page(s) for %s, %d change(s)",
            outcome.checked,
            len(pages),
            competitor.name,
            outcome.changes,
        )
        return outcome

    def check_all(self) -> BatchSummary:
        """Check every active competitor that has at least one page."""
        summary = BatchSummary()
        for competitor in self.store.list_competitors(active_only=True):
            if not self.store.list_pages(competitor.id, active_only=True):
                logger.debug("Skipping %s: no active pages", competitor.name)
                continue
            summary.competitors += 1
            outcome = self.check_competitor(competitor.id)
            summary.checked += outcome.checked
            summary.changes += outcome.changes
            summary.errors.extend(
                f"{r.page.display_name}: {r.error}"
                for r in outcome.results
                if r.error
            )
        return summary
