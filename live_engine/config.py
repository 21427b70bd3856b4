"""
Live Engine — Configuration
────────────────────────────
Environment-driven settings plus the alert / trend policy constants.

Environment variables (.env is loaded by app.py):
    WEATHER_API_KEY          = <openweathermap key>   (missing or demo_key → synthetic)
    WEATHER_API_URL          = https://api.openweathermap.org/data/2.5
    MARKET_API_KEY           = <data.gov.in key>      (missing or demo_key → synthetic)
    MARKET_API_URL           = https://api.data.gov.in/resource
    MARKET_RESOURCE_ID       = 9ef84268-d588-465a-a308-a864a43d0070
    WEATHER_REFRESH_INTERVAL = 300      # seconds, also the weather TTL
    MARKET_REFRESH_INTERVAL  = 600      # seconds, also the market TTL
    FETCH_TIMEOUT            = 10       # seconds per upstream fetch
    CACHE_MAX_ENTRIES        = 256      # LRU bound on the TTL cache
    ENGINE_SEED              = <int>    # optional, makes synthetic data repeatable
    MARKET_TIMEZONE          = Asia/Kolkata   # wall clock for mandi hours and the diurnal curve
"""

import os
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from live_engine.cache.ttl_config import POLL_INTERVAL

DEMO_KEY = "demo_key"

DEFAULT_WEATHER_URL  = "https://api.openweathermap.org/data/2.5"
DEFAULT_MARKET_URL   = "https://api.data.gov.in/resource"
DEFAULT_RESOURCE_ID  = "9ef84268-d588-465a-a308-a864a43d0070"
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_CACHE_ENTRIES = 256
DEFAULT_TIMEZONE     = "Asia/Kolkata"


# ── Alert policy ──────────────────────────────────────────────
# All comparisons are strict: a value sitting exactly on a threshold
# never raises an alert.

@dataclass(frozen=True)
class AlertThresholds:
    price_spike_pct:      float = 15.0    # |change| above this → spike / drop
    price_severe_pct:     float = 25.0    # |change| above this → severity high
    high_demand_ratio:    float = 0.9     # sold / arrival
    low_supply_floor:     float = 50.0    # arrival volume (quintals)
    frost_temp_c:         float = 5.0
    heat_stress_temp_c:   float = 35.0
    strong_wind_kmh:      float = 30.0
    heavy_rain_mm_h:      float = 10.0


# ── Trend policy ──────────────────────────────────────────────

@dataclass(frozen=True)
class TrendPolicy:
    direction_pct:    float = 2.0     # |change| at or below this is "stable"
    volatility_low:   float = 0.05    # CV below → low
    volatility_high:  float = 0.1     # CV above → high, in between → medium
    dampening:        float = 0.1     # discount on the naive extrapolation
    min_confidence:   float = 0.5
    max_confidence:   float = 1.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    weather_api_key:    str = ""
    weather_api_url:    str = DEFAULT_WEATHER_URL
    market_api_key:     str = ""
    market_api_url:     str = DEFAULT_MARKET_URL
    market_resource_id: str = DEFAULT_RESOURCE_ID
    weather_interval_s: float = POLL_INTERVAL["weather"]
    market_interval_s:  float = POLL_INTERVAL["market"]
    fetch_timeout_s:    float = DEFAULT_FETCH_TIMEOUT
    cache_max_entries:  Optional[int] = DEFAULT_CACHE_ENTRIES
    seed:               Optional[int] = None
    timezone:           str = DEFAULT_TIMEZONE

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            weather_api_key    = os.getenv("WEATHER_API_KEY", "").strip(),
            weather_api_url    = os.getenv("WEATHER_API_URL", DEFAULT_WEATHER_URL).rstrip("/"),
            market_api_key     = os.getenv("MARKET_API_KEY", "").strip(),
            market_api_url     = os.getenv("MARKET_API_URL", DEFAULT_MARKET_URL).rstrip("/"),
            market_resource_id = os.getenv("MARKET_RESOURCE_ID", DEFAULT_RESOURCE_ID).strip(),
            weather_interval_s = _env_float("WEATHER_REFRESH_INTERVAL", POLL_INTERVAL["weather"]),
            market_interval_s  = _env_float("MARKET_REFRESH_INTERVAL", POLL_INTERVAL["market"]),
            fetch_timeout_s    = _env_float("FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
            cache_max_entries  = _env_int("CACHE_MAX_ENTRIES", DEFAULT_CACHE_ENTRIES),
            seed               = _env_int("ENGINE_SEED", None),
            timezone           = os.getenv("MARKET_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE,
        )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def interval_for(self, domain: str) -> float:
        return self.weather_interval_s if domain == "weather" else self.market_interval_s


def is_configured(api_key: str) -> bool:
    """A key counts only if present and not the demo placeholder."""
    return bool(api_key) and api_key != DEMO_KEY
