"""
Live Engine — Trend Analyzer
─────────────────────────────
Derives direction, percentage change, volatility class and a naive
next-period prediction from a value series.

  1. change %     = (last - first) / first * 100
  2. direction    = up  if change >  +2
                    down if change < -2
                    stable otherwise           (noise rejection, not zero)
  3. volatility   = pstdev(values) / mean(values)
                    < 0.05 low · 0.05–0.1 medium · > 0.1 high
  4. next value   = last + change/100 * last * dampening
  5. confidence   = clamp(1 - 2 * volatility, 0.5, 1.0)

Fewer than two points is "insufficient data", not an error:
stable, 0 %, confidence 0.5.

Usage:
    from live_engine.analytics.trend import compute_trend
    result = compute_trend([100, 105, 112])   # up, 12.0 %, low
"""

import statistics
from typing import Iterable, List, Optional, Union

from live_engine.config import TrendPolicy
from live_engine.models.market import PriceTrend
from live_engine.models.series import (
    DOWN, HIGH, LOW, MEDIUM, STABLE, UP, DataPoint, Prediction, TrendResult,
)

SeriesLike = Iterable[Union[DataPoint, float, int]]

DEFAULT_POLICY = TrendPolicy()

# market-facing labels for the same three directions
MARKET_LABELS = {UP: "bullish", DOWN: "bearish", STABLE: "sideways"}


def _values(series: SeriesLike) -> List[float]:
    out = []
    for point in series:
        value = point.value if isinstance(point, DataPoint) else point
        out.append(float(value))
    return out


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class TrendAnalyzer:

    def __init__(self, policy: Optional[TrendPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def direction(self, percentage_change: float) -> str:
        if percentage_change > self.policy.direction_pct:
            return UP
        if percentage_change < -self.policy.direction_pct:
            return DOWN
        return STABLE

    def volatility_class(self, volatility: float) -> str:
        if volatility < self.policy.volatility_low:
            return LOW
        if volatility <= self.policy.volatility_high:
            return MEDIUM
        return HIGH

    def compute(self, series: SeriesLike) -> TrendResult:
        values = _values(series)
        if len(values) < 2:
            last = values[-1] if values else 0.0
            return TrendResult(
                direction=STABLE, percentage_change=0.0,
                volatility_class=LOW, volatility=0.0,
                prediction=Prediction(next_value=last,
                                      confidence=self.policy.min_confidence),
                points=len(values),
            )

        first, last = values[0], values[-1]
        pct = (last - first) / first * 100 if first else 0.0

        mean = statistics.fmean(values)
        volatility = statistics.pstdev(values) / mean if mean else 0.0
        volatility = abs(volatility)

        next_value = last + (pct / 100 * last * self.policy.dampening)
        confidence = _clamp(1 - 2 * volatility,
                            self.policy.min_confidence, self.policy.max_confidence)

        return TrendResult(
            direction=self.direction(pct),
            percentage_change=pct,
            volatility_class=self.volatility_class(volatility),
            volatility=round(volatility, 6),
            prediction=Prediction(next_value=round(next_value, 2),
                                  confidence=round(confidence, 2)),
            points=len(values),
        )

    def price_trend(self, history: List[DataPoint]) -> PriceTrend:
        """Collapse a price history into the per-record trend badge."""
        result = self.compute(history)
        change = history[-1].value - history[0].value if len(history) >= 2 else 0.0
        span_days = (history[-1].timestamp - history[0].timestamp) / 86400 if len(history) >= 2 else 0
        if span_days <= 1:
            duration = "day"
        elif span_days <= 7:
            duration = "week"
        else:
            duration = "month"
        return PriceTrend(
            change=round(change, 2),
            percentage=result.percentage_change,
            direction=result.direction,
            duration=duration,
        )


def compute_trend(series: SeriesLike, policy: Optional[TrendPolicy] = None) -> TrendResult:
    return TrendAnalyzer(policy).compute(series)
