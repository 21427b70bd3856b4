"""
Live Engine
─────────────────────────────
Weather + mandi price synchronisation with TTL caching, live polling,
trend analytics and threshold alerts.

    from live_engine import Engine, Location

    engine = Engine()
    snapshot = await engine.get_weather(Location(19.076, 72.8777, "Mumbai"))
"""

from .config import AlertThresholds, Settings, TrendPolicy
from .engine import Engine, FetchOutcome
from .errors import (
    ConfigurationError, FetchError, LiveDataError, MalformedResponseError, NetworkError,
)
from .models import Location, Topic

__all__ = [
    "Engine", "FetchOutcome", "Settings", "AlertThresholds", "TrendPolicy",
    "LiveDataError", "FetchError", "NetworkError", "MalformedResponseError",
    "ConfigurationError", "Location", "Topic",
]
