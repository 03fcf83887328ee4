# src/filters/price_delta.py

"""Decide whether a price movement between two checks is worth reporting."""

import logging
from dataclasses import dataclass

from src.config.settings import Settings
from src.filters.price_extractor import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    CONFIDENCE_NONE,
    CURRENCY_SYMBOLS,
)

logger = logging.getLogger("pagewatch.price")

DIRECTION_INCREASE = "increase"
DIRECTION_DECREASE = "decrease"
DIRECTION_UNCHANGED = "unchanged"
DIRECTION_UNKNOWN = "unknown"

# Magnitude cut-offs for price-driven significance
HIGH_PERCENT = 10.0
MEDIUM_PERCENT = 5.0


@dataclass(frozen=True)
class PriceThresholds:
    """Minimum movement, either relative or absolute, that counts."""

    min_percent_change: float = Settings.MIN_PERCENT_CHANGE
    min_amount_change: float = Settings.MIN_AMOUNT_CHANGE


@dataclass(frozen=True)
class AdjustedThresholds(PriceThresholds):
    """Thresholds after accounting for extraction confidence."""

    should_alert: bool = True


@dataclass(frozen=True)
class PriceDelta:
    """Comparison of two price observations."""

    old_price: float | None
    new_price: float | None
    delta_amount: float | None
    delta_percent: float | None
    is_meaningful: bool
    direction: str

    @property
    def is_appearance(self) -> bool:
        """A price showed up where there was none."""
        return self.old_price is None and self.new_price is not None

    @property
    def is_disappearance(self) -> bool:
        """A previously seen price is gone."""
        return self.old_price is not None and self.new_price is None


@dataclass(frozen=True)
class PriceDecision:
    """Delta plus the policy that judged it."""

    delta: PriceDelta
    thresholds: AdjustedThresholds
    confidence: str

    @property
    def should_emit(self) -> bool:
        """True when this movement may produce a price alert."""
        return self.delta.is_meaningful and self.thresholds.should_alert


def confidence_adjusted_thresholds(
    confidence: str,
    base: PriceThresholds | None = None,
) -> AdjustedThresholds:
    """Tighten or disable alerting based on extraction confidence.

    ``high``/``medium`` keep *base*; ``low`` raises the floor to at
    least 5% / $2; ``none`` disables price alerts entirely.
    """
    thresholds = base or PriceThresholds()

    if confidence in (CONFIDENCE_HIGH, CONFIDENCE_MEDIUM):
        return AdjustedThresholds(
            min_percent_change=thresholds.min_percent_change,
            min_amount_change=thresholds.min_amount_change,
            should_alert=True,
        )
    if confidence == CONFIDENCE_LOW:
        return AdjustedThresholds(
            min_percent_change=max(
                thresholds.min_percent_change,
                Settings.LOW_CONFIDENCE_MIN_PERCENT,
            ),
            min_amount_change=max(
                thresholds.min_amount_change,
                Settings.LOW_CONFIDENCE_MIN_AMOUNT,
            ),
            should_alert=True,
        )
    if confidence == CONFIDENCE_NONE:
        return AdjustedThresholds(
            min_percent_change=thresholds.min_percent_change,
            min_amount_change=thresholds.min_amount_change,
            should_alert=False,
        )
    raise ValueError(f"Unknown price confidence: {confidence!r}")


def compute_price_delta(
    old_price: float | None,
    new_price: float | None,
    thresholds: PriceThresholds | None = None,
) -> PriceDelta:
    """Compare two prices under *thresholds*.

    An appearing or disappearing price is always meaningful with
    direction ``unknown``; two missing prices never are.
    """
    config = thresholds or PriceThresholds()

    if old_price is None or new_price is None:
        return PriceDelta(
            old_price=old_price,
            new_price=new_price,
            delta_amount=None,
            delta_percent=None,
            is_meaningful=not (old_price is None and new_price is None),
            direction=DIRECTION_UNKNOWN,
        )

    delta_amount = new_price - old_price
    delta_percent = (
        delta_amount / old_price * 100 if old_price != 0 else None
    )
    abs_percent = abs(delta_percent) if delta_percent is not None else 0.0

    is_meaningful = (
        abs(delta_amount) >= config.min_amount_change
        or abs_percent >= config.min_percent_change
    )

    if delta_amount > 0:
        direction = DIRECTION_INCREASE
    elif delta_amount < 0:
        direction = DIRECTION_DECREASE
    else:
        direction = DIRECTION_UNCHANGED

    return PriceDelta(
        old_price=old_price,
        new_price=new_price,
        delta_amount=delta_amount,
        delta_percent=delta_percent,
        is_meaningful=is_meaningful,
        direction=direction,
    )


def evaluate_price_change(
    old_price: float | None,
    new_price: float | None,
    confidence: str,
    base: PriceThresholds | None = None,
) -> PriceDecision:
    """Compute the delta under confidence-adjusted thresholds."""
    adjusted = confidence_adjusted_thresholds(confidence, base)
    delta = compute_price_delta(old_price, new_price, adjusted)
    decision = PriceDecision(
        delta=delta, thresholds=adjusted, confidence=confidence,
    )
    if delta.is_meaningful and not adjusted.should_alert:
        logger.info(
            "Price movement %s -> %s suppressed (%s confidence)",
            old_price,
            new_price,
            confidence,
        )
    return decision


def price_significance(delta: PriceDelta) -> str:
    """Significance of a price-only change from its magnitude."""
    if delta.delta_percent is None:
        return "medium"
    magnitude = abs(delta.delta_percent)
    if magnitude >= HIGH_PERCENT:
        return "high"
    if magnitude >= MEDIUM_PERCENT:
        return "medium"
    return "low"


def format_price(value: float, currency: str | None = None) -> str:
    """Render an absolute amount with its currency symbol."""
    if currency:
        symbol = next(
            (s for s, code in CURRENCY_SYMBOLS.items() if code == currency),
            f"{currency} ",
        )
    else:
        symbol = "$"
    return f"{symbol}{abs(value):,.2f}"


def format_price_change(
    delta: PriceDelta, currency: str | None = None,
) -> str:
    """Human readable one-liner for a price delta."""
    if delta.direction == DIRECTION_UNKNOWN:
        if delta.is_appearance and delta.new_price is not None:
            return f"Price detected: {format_price(delta.new_price, currency)}"
        if delta.is_disappearance and delta.old_price is not None:
            return (
                "Price no longer detected (was "
                f"{format_price(delta.old_price, currency)})"
            )
        return "Price change unknown"

    if delta.direction == DIRECTION_UNCHANGED:
        return "Price unchanged"

    sign = "+" if delta.direction == DIRECTION_INCREASE else "-"
    amount = (
        format_price(delta.delta_amount, currency)
        if delta.delta_amount is not None
        else "?"
    )
    percent = (
        f"{abs(delta.delta_percent):.1f}%"
        if delta.delta_percent is not None
        else "?"
    )
    return f"Price {delta.direction}: {sign}{amount} ({sign}{percent})"
