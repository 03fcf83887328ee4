# src/cli/runner.py

"""Headless CLI commands wrapping the page monitor."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from src.filters.content_normalizer import normalize_content
from src.filters.price_delta import format_price
from src.filters.price_extractor import extract_price
from src.models.change import Change
from src.models.errors import FetchError, StoreError
from src.scrapers.page_fetcher import FetchOutcome, PageFetcher
from src.services.analyzer import OpenAIAnalyzer
from src.services.notifier import WebhookNotifier
from src.services.page_monitor import CheckResult, PageMonitor
from src.storage.monitor_db import MonitorDB

logger = logging.getLogger("pagewatch.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

_SIGNIFICANCE_STYLE: dict[str, str] = {
    "high": "bold red",
    "medium": "yellow",
    "low": "green",
}


def build_monitor(store: MonitorDB) -> PageMonitor:
    """Wire the production collaborators around *store*."""
    return PageMonitor(
        store=store,
        fetcher=PageFetcher(),
        analyzer=OpenAIAnalyzer(),
        notifier=WebhookNotifier(),
    )


def _price_cell(value: float | None) -> str:
    return format_price(value) if value is not None else "—"


def _changes_to_dicts(changes: list[Change]) -> list[dict[str, object]]:
    """Serialise changes to plain dicts for JSON output."""
    return [
        {
            "id": c.id,
            "page_id": c.page_id,
            "change_type": c.change_type,
            "significance": c.significance,
            "summary": c.summary,
            "old_price": c.old_price,
            "new_price": c.new_price,
            "price_delta": c.price_delta,
            "price_delta_pct": c.price_delta_pct,
            "notified": c.notified,
            "detected_at": c.detected_at.isoformat(),
        }
        for c in changes
    ]


def _print_changes(changes: list[Change], title: str) -> None:
    """Render a Rich table of change records to stdout."""
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=5)
    table.add_column("Detected", style="dim")
    table.add_column("Type")
    table.add_column("Significance", justify="center")
    table.add_column("Summary", max_width=60)
    table.add_column("Old", justify="right")
    table.add_column("New", justify="right", style="green")
    table.add_column("Alerted", justify="center")

    for c in changes:
        style = _SIGNIFICANCE_STYLE.get(c.significance, "")
        table.add_row(
            str(c.id),
            c.detected_at.strftime("%Y-%m-%d %H:%M"),
            c.change_type,
            f"[{style}]{c.significance.upper()}[/{style}]",
            c.summary,
            _price_cell(c.old_price),
            _price_cell(c.new_price),
            "✓" if c.notified else "",
        )

    Console().print(table)


def _report_check(result: CheckResult) -> None:
    """One status line per checked page on stderr."""
    name = result.page.display_name
    if result.error:
        _err.print(f"[red]✗ {name}: {result.error}[/red]")
    elif result.is_first_snapshot:
        _err.print(f"[dim]• {name}: baseline snapshot stored[/dim]")
    elif result.change is not None:
        change = result.change
        style = _SIGNIFICANCE_STYLE.get(change.significance, "")
        _err.print(
            f"[{style}]! {name}: {change.summary} "
            f"({change.significance})[/{style}]"
        )
    else:
        _err.print(f"[green]✓ {name}: no changes[/green]")


def run_add_competitor(
    store: MonitorDB,
    name: str,
    website_url: str,
    alert_recipient: str | None,
) -> int:
    """Register a competitor and print its id."""
    try:
        competitor = store.add_competitor(name, website_url, alert_recipient)
    except StoreError as exc:
        _err.print(f"[red]Could not add competitor: {exc}[/red]")
        return 1
    _err.print(
        f"[green]✓ Added competitor {competitor.name}"
        f" (id={competitor.id})[/green]"
    )
    return 0


def run_add_page(
    store: MonitorDB,
    competitor_id: int,
    url: str,
    label: str,
) -> int:
    """Attach a monitored page to a competitor."""
    if store.get_competitor(competitor_id) is None:
        _err.print(f"[red]Unknown competitor id {competitor_id}[/red]")
        return 1
    try:
        page = store.add_page(competitor_id, url, label)
    except StoreError as exc:
        _err.print(f"[red]Could not add page: {exc}[/red]")
        return 1
    _err.print(
        f"[green]✓ Monitoring {page.display_name} (id={page.id})[/green]"
    )
    return 0


def run_check_page(monitor: PageMonitor, page_id: int) -> int:
    """Run one check cycle for a single page."""
    try:
        result = monitor.check_page(page_id)
    except (LookupError, FetchError, StoreError) as exc:
        logger.error("check-page %d failed: %s", page_id, exc)
        _err.print(f"[red]Check failed: {exc}[/red]")
        return 1
    _report_check(result)
    return 0


def run_check_competitor(monitor: PageMonitor, competitor_id: int) -> int:
    """Check all pages of one competitor; non-zero if any page failed."""
    try:
        outcome = monitor.check_competitor(competitor_id)
    except (LookupError, StoreError) as exc:
        _err.print(f"[red]Check failed: {exc}[/red]")
        return 1

    for result in outcome.results:
        _report_check(result)
    _err.print(
        f"[bold]{outcome.competitor.name}:[/bold] "
        f"{outcome.checked} checked, {outcome.changes} change(s)"
    )
    return 1 if any(r.error for r in outcome.results) else 0


def run_check_all(monitor: PageMonitor) -> int:
    """Check every active competitor."""
    _err.print("[bold]Checking all active competitors...[/bold]")
    try:
        summary = monitor.check_all()
    except StoreError as exc:
        _err.print(f"[red]Batch failed: {exc}[/red]")
        return 1

    for error_msg in summary.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")
    _err.print(
        f"[green]✓ {summary.competitors} competitor(s), "
        f"{summary.checked} page(s) checked, "
        f"{summary.changes} change(s)[/green]"
    )
    return 1 if summary.errors else 0


def _print_fetch_outcomes(outcomes: list[FetchOutcome]) -> None:
    """Render fetch status and detected price per URL to stdout."""
    table = Table(
        title="Fetch Preview", show_lines=True, title_style="bold cyan",
    )
    table.add_column("URL", max_width=60)
    table.add_column("Status", justify="center")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Confidence", justify="center")
    table.add_column("Source", style="dim")

    for outcome in outcomes:
        if outcome.response is None:
            table.add_row(
                outcome.url, f"[red]{outcome.error}[/red]", "—", "", "",
            )
            continue
        content = normalize_content(outcome.response.html)
        price = extract_price(content.raw_html, content.normalized_text)
        table.add_row(
            outcome.url,
            str(outcome.response.status),
            _price_cell(price.value),
            price.confidence,
            price.source,
        )

    Console().print(table)


def run_fetch(fetcher: PageFetcher, urls: list[str]) -> int:
    """Fetch URLs without storing anything; non-zero if any failed."""
    outcomes = fetcher.fetch_many(urls)
    _print_fetch_outcomes(outcomes)
    return 0 if all(o.success for o in outcomes) else 1



def run_changes(
    store: MonitorDB,
    page_id: int | None,
    competitor_id: int | None,
    limit: int,
    output_format: str,
) -> int:
    """List recent changes as a table or JSON."""
    changes = store.list_changes(
        page_id=page_id, competitor_id=competitor_id, limit=limit,
    )
    if not changes:
        _err.print("[yellow]No changes recorded.[/yellow]")
        return 0

    if output_format == "table":
        _print_changes(changes, "Recent Changes")
    else:
        json.dump(
            _changes_to_dicts(changes),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")
    return 0
