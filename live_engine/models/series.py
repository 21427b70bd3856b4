from dataclasses import dataclass, asdict
from typing import Optional

UP     = "up"
DOWN   = "down"
STABLE = "stable"

LOW    = "low"
MEDIUM = "medium"
HIGH   = "high"


@dataclass(frozen=True)
class DataPoint:
    timestamp: float
    value:     float
    volume:    Optional[float] = None


@dataclass(frozen=True)
class Prediction:
    next_value: float
    confidence: float


@dataclass(frozen=True)
class TrendResult:
    """Derived from one series; recomputed on every refresh, never edited."""
    direction:         str      # up | down | stable
    percentage_change: float
    volatility_class:  str      # low | medium | high
    volatility:        float    # coefficient of variation
    prediction:        Prediction
    points:            int = 0

    def to_dict(self) -> dict:
        return asdict(self)
