from .alert import Alert
from .market import (
    BestMarket, MarketInsight, MarketPrice, MarketSnapshot, MarketTrend,
    PriceRange, PriceTrend, Volume,
)
from .series import DataPoint, Prediction, TrendResult
from .topic import CACHED, LIVE, MARKET, SYNTHETIC, WEATHER, Location, Topic
from .weather import (
    AgriculturalData, AirQuality, CurrentConditions, DailyForecast,
    HourlyForecast, WeatherSnapshot,
)

__all__ = [
    "Alert", "BestMarket", "MarketInsight", "MarketPrice", "MarketSnapshot",
    "MarketTrend", "PriceRange", "PriceTrend", "Volume", "DataPoint",
    "Prediction", "TrendResult", "CACHED", "LIVE", "MARKET", "SYNTHETIC",
    "WEATHER", "Location", "Topic", "AgriculturalData", "AirQuality",
    "CurrentConditions", "DailyForecast", "HourlyForecast", "WeatherSnapshot",
]
