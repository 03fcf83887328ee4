# src/services/notifier.py

"""Alert dispatch for detected changes."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException

from src.config.settings import Settings

logger = logging.getLogger("pagewatch.notifier")

_SIGNIFICANCE_EMOJI: dict[str, str] = {
    "high": ":red_circle:",
    "medium": ":large_orange_circle:",
    "low": ":large_green_circle:",
}

# Slack rejects section text longer than 3000 chars
_MAX_SECTION_TEXT = 2900


@dataclass
class ChangeNotification:
    """What an alert needs to know about one change."""

    change_id: int
    page_label: str
    page_url: str
    significance: str
    summary: str
    analysis: str | None
    detected_at: datetime


@dataclass
class NotifyResult:
    """Outcome of an alert dispatch."""

    sent: bool
    reason: str | None = None


class BaseNotifier(ABC):
    """Alert transport contract consumed by the page monitor."""

    @abstractmethod
    def send_alert(
        self,
        changes: list[ChangeNotification],
        recipient: str | None,
    ) -> NotifyResult:
        """Deliver *changes* to *recipient*; never raises on delivery failure."""
        ...


def build_subject(changes: list[ChangeNotification]) -> str:
    """Headline for an alert batch, flagging high-priority changes."""
    high = [c for c in changes if c.significance == "high"]
    if high:
        return (
            f"[URGENT] {len(high)} high-priority competitor "
            "change(s) detected"
        )
    return f"{len(changes)} competitor change(s) detected"


def _truncate(text: str) -> str:
    if len(text) <= _MAX_SECTION_TEXT:
        return text
    return text[:_MAX_SECTION_TEXT].rstrip() + "…"


def build_payload(changes: list[ChangeNotification]) -> dict[str, Any]:
    """Slack Block Kit payload with one section per change."""
    subject = build_subject(changes)
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": subject[:150]},
        },
    ]
    for change in changes:
        emoji = _SIGNIFICANCE_EMOJI.get(change.significance, ":white_circle:")
        lines = [
            f"{emoji} *{change.page_label}* "
            f"({change.significance.upper()})",
            f"<{change.page_url}>",
            change.summary or "No details available",
        ]
        if change.analysis:
            lines.extend(["", change.analysis])
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": _truncate("\n".join(lines))},
        })
        blocks.append({
            "type": "context",
            "elements": [{
                "type": "mrkdwn",
                "text": (
                    "Detected "
                    f"{change.detected_at.strftime('%Y-%m-%d %H:%M')}"
                ),
            }],
        })
    return {"text": subject, "blocks": blocks}


class WebhookNotifier(BaseNotifier):
    """Post alerts to a Slack-compatible incoming webhook.

    The *recipient* passed to :meth:`send_alert` is the webhook URL.
    """

    def __init__(
        self,
        timeout: int | None = None,
        session: Any = None,
    ) -> None:
        self.settings = Settings()
        self.timeout = timeout or self.settings.NOTIFIER_TIMEOUT
        self.session: Any = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def send_alert(
        self,
        changes: list[ChangeNotification],
        recipient: str | None,
    ) -> NotifyResult:
        logger.debug("send_alert called with %d change(s)", len(changes))
        if not changes:
            return NotifyResult(sent=False, reason="no_changes")
        if not recipient:
            logger.info("Alert skipped: no recipient configured")
            return NotifyResult(sent=False, reason="no_recipient")

        try:
            resp = self.session.post(
                recipient,
                json=build_payload(changes),
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error("Failed to send alert: %s", exc)
            return NotifyResult(sent=False, reason=str(exc))

        if not 200 <= resp.status_code < 300:
            logger.error("Alert webhook returned HTTP %d", resp.status_code)
            return NotifyResult(
                sent=False, reason=f"HTTP {resp.status_code}",
            )

        logger.info("Alert sent for %d change(s)", len(changes))
        return NotifyResult(sent=True)
