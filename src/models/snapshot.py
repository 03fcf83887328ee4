# src/models/snapshot.py

"""Immutable page snapshot model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Snapshot:
    """One capture of a monitored page's content and price."""

    id: int
    page_id: int
    raw_html: str
    normalized_text: str
    fingerprint: str
    price_value: float | None
    price_raw: str | None
    currency: str | None
    captured_at: datetime
