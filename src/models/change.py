# src/models/change.py

"""Detected change model and significance helpers."""

from dataclasses import dataclass
from datetime import datetime

# Significance tiers, weakest first
SIGNIFICANCE_LEVELS: tuple[str, ...] = ("none", "low", "medium", "high")

CHANGE_TYPE_CONTENT = "CONTENT"
CHANGE_TYPE_PRICE = "PRICE_CHANGE"


def significance_rank(significance: str) -> int:
    """Return the ordinal of a significance tier (``none`` is 0)."""
    return SIGNIFICANCE_LEVELS.index(significance)


@dataclass
class Change:
    """A reportable change detected by one page check.

    Only ``notified`` is ever updated after creation.
    """

    id: int
    page_id: int
    old_fingerprint: str | None
    new_fingerprint: str
    summary: str
    analysis: str | None
    significance: str  # "low", "medium", "high"
    change_type: str  # CHANGE_TYPE_CONTENT or CHANGE_TYPE_PRICE
    old_price: float | None
    new_price: float | None
    price_delta: float | None
    price_delta_pct: float | None
    notified: bool
    detected_at: datetime
    old_snapshot_id: int | None = None
    new_snapshot_id: int | None = None
