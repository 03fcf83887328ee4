# src/models/page.py

"""Competitor and monitored page models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Competitor:
    """A competitor whose pages are monitored."""

    id: int
    name: str
    website_url: str
    alert_recipient: str | None
    active: bool
    created_at: datetime


@dataclass
class MonitoredPage:
    """A single URL watched for content and price changes."""

    id: int
    competitor_id: int
    url: str
    label: str
    active: bool
    created_at: datetime
    last_checked: datetime | None = None
    competitor_name: str = ""

    @property
    def display_name(self) -> str:
        """Label used in summaries, alerts and analyzer prompts."""
        if self.competitor_name:
            return f"{self.competitor_name} - {self.label}"
        return self.label
