# src/scrapers/page_fetcher.py

"""HTML fetcher for monitored competitor pages."""

import logging
from dataclasses import dataclass
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException, Timeout

from src.config.settings import Settings
from src.models.errors import (
    FetchError,
    FetchTimeoutError,
    NetworkError,
)

logger = logging.getLogger("pagewatch.fetcher")

# Statuses that usually mean a bot challenge rather than a dead page
_CHALLENGE_STATUSES: frozenset[int] = frozenset({403, 503})


@dataclass
class FetchResponse:
    """Raw HTML returned for a URL."""

    url: str
    html: str
    status: int


@dataclass
class FetchOutcome:
    """Per-URL result of :meth:`PageFetcher.fetch_many`."""

    url: str
    response: FetchResponse | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        """True when the URL was fetched."""
        return self.response is not None


class PageFetcher:
    """Fetch raw HTML with a browser-impersonating session.

    A single attempt is made per call. Timeouts abort the
    underlying libcurl transfer and surface as
    :class:`FetchTimeoutError`; everything else that prevents a
    usable page surfaces as :class:`NetworkError`. Retrying is the
    batch scheduler's job.
    """

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def __init__(
        self,
        timeout: float | None = None,
        session: Any = None,
    ) -> None:
        self.settings = Settings()
        self.timeout: float = (
            timeout
            if timeout is not None
            else self.settings.REQUEST_TIMEOUT
        )
        self.session: Any = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def _validate_response(self, text: str) -> bool:
        """Check for Cloudflare challenge pages and CAPTCHA indicators."""
        lower = text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                logger.warning(
                    "Cloudflare challenge detected (marker: '%s')",
                    marker,
                )
                return False

        # Skip the keyword scan on content-rich pages to avoid
        # false positives from footer text
        has_body_content = (
            "<body" in lower and len(text) > 5000
        )
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    logger.warning(
                        "CAPTCHA keyword '%s' detected", keyword,
                    )
                    return False
        return True

    def _fetch_cloudscraper(
        self, url: str, timeout: float,
    ) -> FetchResponse | None:
        """Single fallback attempt through cloudscraper's JS solver."""
        logger.info(
            "Challenge served for %s, falling back to cloudscraper",
            url,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=timeout,
            )
        except Exception as exc:
            logger.warning(
                "cloudscraper fallback failed for %s: %s",
                url,
                exc,
                exc_info=True,
            )
            return None

        status = int(resp.status_code)
        text = str(resp.text)
        if 200 <= status < 300 and self._validate_response(text):
            return FetchResponse(url=url, html=text, status=status)
        logger.warning(
            "cloudscraper fallback returned HTTP %d for %s",
            status,
            url,
        )
        return None

    def fetch(
        self, url: str, timeout: float | None = None,
    ) -> FetchResponse:
        """Fetch *url* and return its HTML.

        Raises:
            FetchTimeoutError: The request exceeded *timeout* seconds.
            NetworkError: Connection failure, bot challenge, or a
                non-2xx status.
        """
        effective_timeout = (
            timeout if timeout is not None else self.timeout
        )
        logger.debug(
            "Fetching %s (timeout=%ss)", url, effective_timeout,
        )
        try:
            resp = self.session.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=effective_timeout,
                allow_redirects=True,
            )
        except Timeout as exc:
            raise FetchTimeoutError(
                url, f"Request timeout after {effective_timeout}s",
            ) from exc
        except RequestException as exc:
            raise NetworkError(
                url, f"Request failed: {exc}",
            ) from exc

        status = int(resp.status_code)
        text = str(resp.text)
        ok = 200 <= status < 300
        valid = ok and self._validate_response(text)

        if not valid and (ok or status in _CHALLENGE_STATUSES):
            fallback = self._fetch_cloudscraper(url, effective_timeout)
            if fallback is not None:
                return fallback

        if not ok:
            raise NetworkError(url, f"HTTP {status}", status=status)
        if not valid:
            raise NetworkError(
                url, "Bot challenge page served", status=status,
            )

        logger.debug(
            "Fetched %s: HTTP %d, %d bytes", url, status, len(text),
        )
        return FetchResponse(url=url, html=text, status=status)

    def fetch_many(
        self, urls: list[str], timeout: float | None = None,
    ) -> list[FetchOutcome]:
        """Fetch several URLs sequentially, isolating failures.

        Returns one outcome per URL in input order.
        """
        outcomes: list[FetchOutcome] = []
        for url in urls:
            try:
                outcomes.append(
                    FetchOutcome(url=url, response=self.fetch(url, timeout))
                )
            except FetchError as exc:
                logger.warning("Fetch failed for %s: %s", url, exc)
                outcomes.append(FetchOutcome(url=url, error=str(exc)))
        return outcomes
