"""
Normalised market (mandi price) snapshot and the derived market views.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from live_engine.models.series import DataPoint, TrendResult
from live_engine.models.topic import LIVE


@dataclass
class PriceRange:
    min:     float
    max:     float
    modal:   float
    average: float


@dataclass
class PriceTrend:
    change:     float
    percentage: float
    direction:  str       # up | down | stable
    duration:   str       # day | week | month


@dataclass
class Volume:
    arrival: float
    sold:    float
    unsold:  float


@dataclass
class MarketPrice:
    id:            str
    commodity:     str
    variety:       str
    market:        str
    state:         str
    district:      str
    price:         PriceRange
    volume:        Volume
    arrival_date:  str
    last_updated:  str
    quality:       str
    market_status: str
    unit:          str = "Quintal"
    trend:         Optional[PriceTrend] = None
    price_history: List[DataPoint] = field(default_factory=list)


@dataclass
class MarketSnapshot:
    prices:     List[MarketPrice]
    fetched_at: float
    source:     str = LIVE

    def for_commodity(self, commodity: str) -> List[MarketPrice]:
        c = commodity.lower()
        return [p for p in self.prices if p.commodity.lower() == c]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MarketTrend:
    commodity: str
    timeframe: str                 # daily | weekly | monthly | yearly
    data:      List[DataPoint]
    trend:     str                 # bullish | bearish | sideways
    analysis:  TrendResult

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BestMarket:
    name:     str
    state:    str
    price:    float
    distance: Optional[float] = None


@dataclass
class MarketInsight:
    commodity:          str
    insights:           List[str]
    recommendations:    List[str]
    best_time_to_sell:  str
    best_markets:       List[BestMarket]
    seasonal_pattern:   Dict[str, object]

    def to_dict(self) -> dict:
        return asdict(self)
