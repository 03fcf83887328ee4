# src/services/analyzer.py

"""LLM-backed qualitative analysis of detected changes.

The analyzer is an enrichment step: every failure (missing API key,
timeout, API error) degrades to an ``unknown`` verdict with a
placeholder text instead of propagating.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from openai import OpenAI, OpenAIError

from src.config.settings import Settings
from src.filters.differ import DiffResult, format_diff_for_analysis
from src.filters.price_delta import (
    DIRECTION_DECREASE,
    DIRECTION_INCREASE,
    PriceDelta,
    format_price,
    format_price_change,
    price_significance,
)
from src.models.errors import AnalyzerUnavailable

logger = logging.getLogger("pagewatch.analyzer")

SIGNIFICANCE_UNKNOWN = "unknown"

_SIGNIFICANCE_RE = re.compile(
    r"significance:\**\s*\**\s*(high|medium|low)", re.IGNORECASE,
)

_RESPONSE_FORMAT = """\
IMPORTANT: Start your response with a QUICK INSIGHT section, then provide detailed analysis.

Format your response exactly like this:

QUICK INSIGHT:
- Verdict: (max 12 words summarizing what happened)
- Significance: LOW/MEDIUM/HIGH
- Next step: (max 16 words suggesting what to consider)

DETAILED ANALYSIS:
"""

_CONTENT_PROMPT = """\
You are a competitive intelligence analyst. Analyze the following changes \
detected on a competitor's website and provide strategic insights.

COMPETITOR: {label}
URL: {url}

CHANGES DETECTED:
{diff_text}

CHANGE STATISTICS:
- Lines added: {added}
- Lines removed: {removed}
- Change ratio: {ratio:.1f}%{price_context}

{response_format}
1. WHAT CHANGED: Brief summary of the actual changes
2. WHAT IT MEANS: Strategic implications (new products, pricing changes, messaging shifts, etc.)
3. SIGNIFICANCE: Rate as HIGH, MEDIUM, or LOW with brief justification
4. CONSIDERATIONS: Key factors to weigh when deciding how to respond \
(do NOT tell the user what to do - help them decide)

Keep your response focused and actionable. Avoid speculation beyond what the \
evidence supports."""

_PRICE_PROMPT = """\
You are a competitive intelligence analyst specializing in pricing strategy. \
Analyze the following price change detected on a competitor's website.

COMPETITOR: {label}
URL: {url}

PRICE CHANGE DETECTED:
- Direction: Price {direction}
- Old price: {old_price}
- New price: {new_price}
- Change amount: {amount}
- Change percent: {percent}{currency_line}

{response_format}
1. WHAT CHANGED: Summarize the price change
2. WHAT IT MIGHT MEAN: Possible reasons (market conditions, competitive pressure, promotions, etc.)
3. SIGNIFICANCE: Rate as HIGH, MEDIUM, or LOW based on magnitude and likely strategic importance
4. CONSIDERATIONS: Key factors to weigh when deciding how to respond

Acknowledge uncertainty where appropriate; this is a single data point."""


@dataclass(frozen=True)
class AnalysisResult:
    """Analyzer output: free text plus a significance verdict."""

    text: str
    significance: str  # "high", "medium", "low" or "unknown"


def analysis_unavailable(reason: str) -> AnalysisResult:
    """Sentinel result used whenever the analyzer cannot answer."""
    return AnalysisResult(
        text=f"AI analysis unavailable - {reason}",
        significance=SIGNIFICANCE_UNKNOWN,
    )


def parse_significance(text: str) -> str | None:
    """Return the first ``Significance: X`` verdict in *text*, if any."""
    match = _SIGNIFICANCE_RE.search(text)
    return match.group(1).lower() if match else None


def _money(value: float | None, currency: str | None) -> str:
    return format_price(value, currency) if value is not None else "unknown"


class BaseAnalyzer(ABC):
    """Qualitative analysis contract consumed by the page monitor."""

    @abstractmethod
    def analyze(
        self,
        page_label: str,
        url: str,
        diff: DiffResult,
        price_delta: PriceDelta | None = None,
        currency: str | None = None,
    ) -> AnalysisResult:
        """Assess a content change (optionally with a price move)."""
        ...

    @abstractmethod
    def analyze_price_change(
        self,
        page_label: str,
        url: str,
        price_delta: PriceDelta,
        currency: str | None = None,
    ) -> AnalysisResult:
        """Assess a price move on an otherwise unchanged page."""
        ...


class OpenAIAnalyzer(BaseAnalyzer):
    """Analyzer backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        client: Any = None,
    ) -> None:
        self.settings = Settings()
        self.api_key = (
            api_key if api_key is not None else self.settings.OPENAI_API_KEY
        )
        self.model = model or self.settings.ANALYZER_MODEL
        self.timeout = timeout or self.settings.ANALYZER_TIMEOUT
        self._client: Any = client

    def _get_client(self) -> Any:
        """Create the OpenAI client lazily on first use."""
        if self._client is None:
            if not self.api_key:
                raise AnalyzerUnavailable("API key not configured")
            self._client = OpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def _complete(self, prompt: str) -> str:
        """Send *prompt* and return the response text.

        Raises:
            AnalyzerUnavailable: No credentials, or the API call failed.
        """
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.settings.ANALYZER_MAX_TOKENS,
                temperature=self.settings.ANALYZER_TEMPERATURE,
            )
        except OpenAIError as exc:
            raise AnalyzerUnavailable(f"API error: {exc}") from exc
        text = response.choices[0].message.content or ""
        logger.info("Analysis received (%d chars)", len(text))
        return text

    def analyze(
        self,
        page_label: str,
        url: str,
        diff: DiffResult,
        price_delta: PriceDelta | None = None,
        currency: str | None = None,
    ) -> AnalysisResult:
        price_context = ""
        if price_delta is not None and price_delta.is_meaningful:
            price_context = (
                "\n\nPRICE CHANGE DETECTED:\n"
                f"{format_price_change(price_delta, currency)}\n"
                f"- Old price: {_money(price_delta.old_price, currency)}\n"
                f"- New price: {_money(price_delta.new_price, currency)}"
            )
        prompt = _CONTENT_PROMPT.format(
            label=page_label,
            url=url,
            diff_text=format_diff_for_analysis(diff),
            added=diff.added_count,
            removed=diff.removed_count,
            ratio=diff.change_ratio * 100,
            price_context=price_context,
            response_format=_RESPONSE_FORMAT,
        )

        logger.info("Requesting content analysis for %s", page_label)
        try:
            text = self._complete(prompt)
        except AnalyzerUnavailable as exc:
            logger.warning("Analysis unavailable for %s: %s", page_label, exc)
            return analysis_unavailable(str(exc))

        significance = parse_significance(text) or "medium"
        logger.info("Analyzer significance for %s: %s", page_label, significance)
        return AnalysisResult(text=text, significance=significance)

    def analyze_price_change(
        self,
        page_label: str,
        url: str,
        price_delta: PriceDelta,
        currency: str | None = None,
    ) -> AnalysisResult:
        if price_delta.direction == DIRECTION_INCREASE:
            direction = "increased"
        elif price_delta.direction == DIRECTION_DECREASE:
            direction = "decreased"
        else:
            direction = "changed"

        prompt = _PRICE_PROMPT.format(
            label=page_label,
            url=url,
            direction=direction,
            old_price=_money(price_delta.old_price, currency),
            new_price=_money(price_delta.new_price, currency),
            amount=_money(price_delta.delta_amount, currency),
            percent=(
                f"{abs(price_delta.delta_percent):.1f}%"
                if price_delta.delta_percent is not None
                else "unknown"
            ),
            currency_line=f"\n- Currency: {currency}" if currency else "",
            response_format=_RESPONSE_FORMAT,
        )

        logger.info("Requesting price analysis for %s", page_label)
        try:
            text = self._complete(prompt)
        except AnalyzerUnavailable as exc:
            logger.warning("Analysis unavailable for %s: %s", page_label, exc)
            return analysis_unavailable(str(exc))

        significance = (
            parse_significance(text) or price_significance(price_delta)
        )
        return AnalysisResult(text=text, significance=significance)
