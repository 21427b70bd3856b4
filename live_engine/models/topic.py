"""
Live Engine — Topics
─────────────────────
A Topic is a data domain plus the parameter tuple that scopes it:

    weather@19.0760,72.8777
    market@commodities=Onion,Rice;states=Maharashtra
    market@all

Topic.key is both the cache key and the scheduler job id.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Tuple

WEATHER = "weather"
MARKET  = "market"
DOMAINS = (WEATHER, MARKET)

# Where a snapshot came from; drives the UI's connectivity indicator
LIVE      = "live"
SYNTHETIC = "synthetic"
CACHED    = "cached"


@dataclass(frozen=True)
class Location:
    lat:     float
    lon:     float
    name:    str = "Your Location"
    state:   str = ""
    country: str = "IN"


def _clean(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not values:
        return ()
    return tuple(sorted({v.strip() for v in values if v and v.strip()}))


@dataclass(frozen=True)
class Topic:
    domain:   str
    params:   Tuple[Tuple[str, Any], ...] = ()
    # carried along for fetchers, not part of the identity
    location: Optional[Location] = field(default=None, compare=False)

    def __post_init__(self):
        if self.domain not in DOMAINS:
            raise ValueError(f"Unknown domain {self.domain!r}")

    @classmethod
    def weather(cls, location: Location) -> "Topic":
        params = (("lat", round(float(location.lat), 4)),
                  ("lon", round(float(location.lon), 4)))
        return cls(WEATHER, params, location)

    @classmethod
    def market(cls, commodities: Optional[Iterable[str]] = None,
               states: Optional[Iterable[str]] = None,
               markets: Optional[Iterable[str]] = None) -> "Topic":
        params = tuple(
            (name, values) for name, values in (
                ("commodities", _clean(commodities)),
                ("states",      _clean(states)),
                ("markets",     _clean(markets)),
            ) if values
        )
        return cls(MARKET, params)

    def param(self, name: str, default: Any = None) -> Any:
        for key, value in self.params:
            if key == name:
                return value
        return default

    @property
    def key(self) -> str:
        if self.domain == WEATHER:
            return f"weather@{self.param('lat'):.4f},{self.param('lon'):.4f}"
        if not self.params:
            return "market@all"
        body = ";".join(f"{k}={','.join(v)}" for k, v in self.params)
        return f"market@{body}"

    def __str__(self) -> str:
        return self.key
