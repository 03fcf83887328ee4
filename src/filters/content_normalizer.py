# src/filters/content_normalizer.py

"""Reduce raw page HTML to stable, diffable text plus a fingerprint."""

import hashlib
import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from src.config.settings import Settings

logger = logging.getLogger("pagewatch.normalizer")

# Structural noise removed before text extraction
_NOISE_SELECTOR = (
    "script, style, noscript, iframe, svg, nav, footer, header, "
    "aside, .ad, .ads, .advertisement"
)

# Tried in order; the first match becomes the content root
_MAIN_SELECTORS: list[str] = [
    "main",
    "article",
    '[role="main"]',
    ".content",
    "#content",
    ".main-content",
    "#main",
]


@dataclass(frozen=True)
class PageContent:
    """Normalised view of one fetched page."""

    raw_html: str
    normalized_text: str
    fingerprint: str


def normalize_text(text: str) -> str:
    """Trim every line, drop blank ones, and rejoin with newlines."""
    lines = (line.strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def fingerprint(text: str, length: int | None = None) -> str:
    """Short SHA-256 hex digest used as a content equality check."""
    size = length or Settings.FINGERPRINT_LENGTH
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:size]


def _select_main_content(soup: BeautifulSoup) -> Tag | BeautifulSoup:
    for selector in _MAIN_SELECTORS:
        found = soup.select_one(selector)
        if found is not None:
            logger.debug("Main content matched '%s'", selector)
            return found
    body = soup.body
    return body if body is not None else soup


def extract_text(raw_html: str) -> str:
    """Extract normalised readable text from the page's main content."""
    soup = BeautifulSoup(raw_html, "lxml")
    for element in soup.select(_NOISE_SELECTOR):
        # Nested matches die with their already-removed ancestor
        if not element.decomposed:
            element.decompose()
    root = _select_main_content(soup)
    return normalize_text(root.get_text("\n"))


def normalize_content(raw_html: str) -> PageContent:
    """Build the :class:`PageContent` for a freshly fetched page."""
    text = extract_text(raw_html)
    return PageContent(
        raw_html=raw_html,
        normalized_text=text,
        fingerprint=fingerprint(text),
    )
