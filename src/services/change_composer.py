# src/services/change_composer.py

"""Merge content-diff and price signals into one classified change."""

import logging
from dataclasses import dataclass

from src.filters.differ import (
    DiffResult,
    determine_significance,
    generate_change_summary,
)
from src.filters.price_delta import (
    PriceDecision,
    format_price_change,
    price_significance,
)
from src.models.change import (
    CHANGE_TYPE_CONTENT,
    CHANGE_TYPE_PRICE,
    significance_rank,
)
from src.models.snapshot import Snapshot
from src.services.analyzer import SIGNIFICANCE_UNKNOWN, AnalysisResult

logger = logging.getLogger("pagewatch.classifier")

# Outcomes of one check cycle
STATE_NO_PRIOR_SNAPSHOT = "NO_PRIOR_SNAPSHOT"
STATE_UNCHANGED = "UNCHANGED"
STATE_PRICE_ONLY_CHANGE = "PRICE_ONLY_CHANGE"
STATE_CONTENT_CHANGE = "CONTENT_CHANGE"

REPORTABLE_STATES: frozenset[str] = frozenset(
    {STATE_PRICE_ONLY_CHANGE, STATE_CONTENT_CHANGE}
)


@dataclass
class ChangeDraft:
    """Fields of a Change record before it is persisted."""

    summary: str
    analysis: str | None
    significance: str
    change_type: str
    old_price: float | None = None
    new_price: float | None = None
    price_delta: float | None = None
    price_delta_pct: float | None = None


def classify_check(
    previous: Snapshot | None,
    current: Snapshot,
    price: PriceDecision | None,
) -> str:
    """Pick the state of this check cycle.

    Content change is fingerprint inequality; price change is the
    price engine's emit decision.
    """
    if previous is None:
        return STATE_NO_PRIOR_SNAPSHOT

    content_changed = previous.fingerprint != current.fingerprint
    price_changed = price is not None and price.should_emit

    if not content_changed and not price_changed:
        return STATE_UNCHANGED
    if not content_changed:
        return STATE_PRICE_ONLY_CHANGE
    return STATE_CONTENT_CHANGE


def elevate_for_price(significance: str) -> str:
    """Raise ``low`` to ``medium`` when a meaningful price move coexists."""
    if significance_rank(significance) < significance_rank("medium"):
        return "medium"
    return significance


def _apply_price_fields(draft: ChangeDraft, price: PriceDecision) -> None:
    delta = price.delta
    draft.old_price = delta.old_price
    draft.new_price = delta.new_price
    draft.price_delta = delta.delta_amount
    draft.price_delta_pct = delta.delta_percent


def compose_change(
    state: str,
    diff: DiffResult | None,
    price: PriceDecision | None,
    analysis: AnalysisResult | None = None,
    currency: str | None = None,
) -> ChangeDraft | None:
    """Build the change for a reportable *state*, else ``None``.

    ``PRICE_ONLY_CHANGE`` takes its significance from the price
    magnitude. ``CONTENT_CHANGE`` starts from the diff, is raised to
    ``medium`` by a coexisting price move, and finally defers to a
    definitive analyzer verdict.
    """
    if state not in REPORTABLE_STATES:
        return None

    analysis_text = analysis.text if analysis is not None else None

    if state == STATE_PRICE_ONLY_CHANGE:
        if price is None:
            raise ValueError("Price-only change requires a price decision")
        draft = ChangeDraft(
            summary=format_price_change(price.delta, currency),
            analysis=analysis_text,
            significance=price_significance(price.delta),
            change_type=CHANGE_TYPE_PRICE,
        )
        _apply_price_fields(draft, price)
        return draft

    if diff is None:
        raise ValueError("Content change requires a diff")

    significance = determine_significance(diff)
    summary = generate_change_summary(diff)
    change_type = CHANGE_TYPE_CONTENT
    price_moved = price is not None and price.should_emit

    if significance == "none":
        # Fingerprints differ but the line sets match (reordering,
        # repeated lines); only a price move can still carry it
        if not price_moved:
            logger.debug("Fingerprint changed with an empty line diff")
            return None
        significance = "low"

    if price_moved and price is not None:
        significance = elevate_for_price(significance)
        change_type = CHANGE_TYPE_PRICE
        summary = f"{summary}; {format_price_change(price.delta, currency)}"

    if (
        analysis is not None
        and analysis.significance != SIGNIFICANCE_UNKNOWN
    ):
        logger.debug(
            "Analyzer verdict %s overrides heuristic %s",
            analysis.significance,
            significance,
        )
        significance = analysis.significance

    draft = ChangeDraft(
        summary=summary,
        analysis=analysis_text,
        significance=significance,
        change_type=change_type,
    )
    if price_moved and price is not None:
        _apply_price_fields(draft, price)
    return draft
