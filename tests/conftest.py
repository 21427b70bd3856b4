"""
Pytest configuration and shared fixtures for live_engine tests.

Everything time- or randomness-dependent is injected: FakeClock drives
the cache / alerts / synthetic timestamps and a seeded random.Random
makes synthetic snapshots repeatable.
"""

import asyncio
import random
from typing import List, Optional

import pytest

from live_engine import Engine, Settings
from live_engine.analytics import agro
from live_engine.errors import NetworkError
from live_engine.fetchers.market import MarketFetcher
from live_engine.fetchers.weather import WeatherFetcher
from live_engine.models.market import MarketPrice, MarketSnapshot, PriceRange, PriceTrend, Volume
from live_engine.models.series import DataPoint
from live_engine.models.topic import LIVE, MARKET, WEATHER, Location
from live_engine.models.weather import CurrentConditions, WeatherSnapshot

# Tuesday 2023-11-14 22:13:20 UTC
START_TS = 1_700_000_000.0

MUMBAI = Location(lat=19.076, lon=72.8777, name="Mumbai", state="Maharashtra")


class FakeClock:
    def __init__(self, start: float = START_TS):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedMixin:
    """
    Replaces fetch_live with a script. Each call pops the next response:
    an exception instance is raised, anything else is returned. When the
    script runs out, NetworkError is raised. Set `gate` to an
    asyncio.Event to hold fetches in flight until it is set.
    """

    def __init__(self, *args, responses=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.responses = list(responses)
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None

    @property
    def configured(self) -> bool:
        return True

    async def fetch_live(self, topic, previous=None):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            raise NetworkError("scripted upstream down", topic.key)
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class ScriptedMarketFetcher(ScriptedMixin, MarketFetcher):
    pass


class ScriptedWeatherFetcher(ScriptedMixin, WeatherFetcher):
    pass


# ── Factories ─────────────────────────────────────────────────

def make_price(id: str = "apmc_onion_1", commodity: str = "Onion", modal: float = 2000,
               arrival: float = 300, sold: float = 200, market: str = "APMC Pune",
               state: str = "Maharashtra", pct: Optional[float] = None,
               history: Optional[List[float]] = None) -> MarketPrice:
    points = [DataPoint(timestamp=START_TS - 86400 * (len(history) - 1 - i), value=v)
              for i, v in enumerate(history or [])]
    return MarketPrice(
        id=id,
        commodity=commodity,
        variety="Common",
        market=market,
        state=state,
        district="Pune",
        price=PriceRange(min=modal * 0.9, max=modal * 1.1, modal=modal, average=modal),
        volume=Volume(arrival=arrival, sold=sold, unsold=arrival - sold),
        arrival_date="2023-11-14",
        last_updated="2023-11-14T22:00:00+00:00",
        quality="Average",
        market_status="Open",
        trend=PriceTrend(change=0, percentage=pct, direction="stable", duration="day")
        if pct is not None else None,
        price_history=points,
    )


def make_market(prices: Optional[List[MarketPrice]] = None, fetched_at: float = START_TS,
                source: str = LIVE) -> MarketSnapshot:
    return MarketSnapshot(prices=prices if prices is not None else [make_price()],
                          fetched_at=fetched_at, source=source)


def make_weather(temp: float = 25.0, humidity: float = 60.0, wind: float = 10.0,
                 rain: float = 0.0, location: Location = MUMBAI,
                 fetched_at: float = START_TS, source: str = LIVE) -> WeatherSnapshot:
    current = CurrentConditions(
        temp=temp, humidity=humidity, wind_speed=wind, wind_direction=180,
        description="clear sky", condition="Clear", icon="01d", rainfall=rain,
        feels_like=temp, visibility=10, uv=5, pressure=1012, cloud_cover=10,
        dew_point=agro.dew_point(temp, humidity),
        heat_index=agro.heat_index(temp, humidity),
        wind_chill=agro.wind_chill(temp, wind),
        gust_speed=wind,
    )
    return WeatherSnapshot(
        location=location,
        current=current,
        agricultural=agro.agricultural_data(temp, humidity, wind, 0.5),
        fetched_at=fetched_at,
        source=source,
    )


# ── Fixtures ──────────────────────────────────────────────────

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def settings() -> Settings:
    """No API keys: both domains are unconfigured."""
    return Settings(fetch_timeout_s=0.5)


@pytest.fixture
async def engine_factory(settings, clock):
    """Build engines that are shut down inside the test's event loop."""
    engines = []

    def make(market_responses=None, weather_responses=None, seed: int = 42,
             settings_override: Optional[Settings] = None, **kwargs) -> Engine:
        rng = random.Random(seed)
        s = settings_override or settings
        fetchers = None
        if market_responses is not None or weather_responses is not None:
            fetchers = {
                MARKET:  ScriptedMarketFetcher(s, rng=rng, clock=clock,
                                               responses=market_responses or ()),
                WEATHER: ScriptedWeatherFetcher(s, rng=rng, clock=clock,
                                                responses=weather_responses or ()),
            }
        engine = Engine(s, clock=clock, rng=rng, fetchers=fetchers, **kwargs)
        engines.append(engine)
        return engine

    yield make

    for engine in engines:
        await engine.aclose()
