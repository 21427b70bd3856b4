"""
Tests for the live adapters and the shared HTTP helper.

Upstream HTTP is served by httpx.MockTransport; no network access.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import httpx
import pytest

from live_engine.config import Settings
from live_engine.errors import ConfigurationError, MalformedResponseError, NetworkError
from live_engine.fetchers.http import get_json
from live_engine.fetchers.market import MarketFetcher
from live_engine.fetchers.weather import WeatherFetcher, parse_forecast
from live_engine.models.market import MarketSnapshot
from live_engine.models.topic import LIVE, SYNTHETIC, Topic

from conftest import MUMBAI, START_TS, make_price

ONION = Topic.market(["Onion"])

CURRENT = {
    "name": "Mumbai",
    "main": {"temp": 31.2, "humidity": 70, "feels_like": 35, "pressure": 1008},
    "wind": {"speed": 5, "deg": 270},
    "weather": [{"main": "Clouds", "description": "broken clouds", "icon": "04d"}],
    "rain": {"1h": 2.5},
    "visibility": 8000,
    "clouds": {"all": 75},
}

FORECAST = {
    "list": [
        {
            "dt": int(START_TS) + 3 * 3600 * i,
            "main": {"temp": 28 + i % 4, "humidity": 65, "pressure": 1010},
            "weather": [{"description": "light rain", "icon": "10d"}],
            "wind": {"speed": 4},
            "rain": {"3h": 1.2},
            "pop": 0.4,
        }
        for i in range(16)
    ]
}

AIR = {"list": [{"main": {"aqi": 2}, "components": {"pm2_5": 12.5, "pm10": 30, "o3": 60}}]}

RECORDS = [
    {
        "state": "Maharashtra", "district": "Pune", "market": "Pune APMC",
        "commodity": "Onion", "variety": "Red", "arrival_date": "14/11/2023",
        "min_price": "1800", "max_price": "2400", "modal_price": "2100", "arrivals": "40",
    },
    {"state": "Maharashtra", "market": "Lasalgaon", "commodity": "Onion", "modal_price": "n/a"},
]


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _weather_handler(forecast_status=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        path = request.url.path
        if path.endswith("/weather"):
            return httpx.Response(200, json=CURRENT)
        if path.endswith("/forecast"):
            return httpx.Response(forecast_status, json=FORECAST)
        if path.endswith("/air_pollution"):
            return httpx.Response(200, json=AIR)
        return httpx.Response(404)
    return handler


@pytest.fixture
def weather_settings():
    return Settings(weather_api_key="k", weather_api_url="https://weather.test")


@pytest.fixture
def market_settings():
    return Settings(market_api_key="k", market_api_url="https://market.test/resource",
                    market_resource_id="abc")


class TestWeatherFetcher:

    @pytest.mark.asyncio
    async def test_parses_current_forecast_and_air(self, weather_settings, clock):
        seen = []
        async with _client(_weather_handler(seen=seen)) as client:
            fetcher = WeatherFetcher(weather_settings, client=client, clock=clock, retry_delay=0)
            snapshot = await fetcher.fetch_live(Topic.weather(MUMBAI))

        c = snapshot.current
        assert snapshot.source == LIVE
        assert c.temp == 31.2
        assert c.wind_speed == 18.0          # 5 m/s
        assert c.rainfall == 2.5
        assert c.visibility == 8.0
        assert snapshot.location.name == "Mumbai"
        assert len(snapshot.hourly) == 16
        assert 2 <= len(snapshot.daily) <= 7
        assert snapshot.air_quality.quality == "Moderate"
        assert all(r.url.params["appid"] == "k" for r in seen)

    @pytest.mark.asyncio
    async def test_optional_blocks_degrade(self, weather_settings, clock):
        async with _client(_weather_handler(forecast_status=500)) as client:
            fetcher = WeatherFetcher(weather_settings, client=client, clock=clock,
                                     retry_attempts=1, retry_delay=0)
            snapshot = await fetcher.fetch_live(Topic.weather(MUMBAI))

        assert snapshot.hourly == [] and snapshot.daily == []
        assert snapshot.air_quality is not None

    @pytest.mark.asyncio
    async def test_schema_drift_is_malformed(self, weather_settings, clock):
        def handler(request):
            return httpx.Response(200, json={"temperature": 30})

        async with _client(handler) as client:
            fetcher = WeatherFetcher(weather_settings, client=client, clock=clock, retry_delay=0)
            with pytest.raises(MalformedResponseError):
                await fetcher.fetch_live(Topic.weather(MUMBAI))

    @pytest.mark.parametrize("drift", [
        {"wind": {"speed": 5, "deg": "NE"}},
        {"wind": {"speed": 5, "gust": "strong"}},
        {"weather": ["Clouds"]},
        {"visibility": "far"},
        {"main": {"temp": 31, "humidity": 70, "pressure": "high"}},
    ])
    @pytest.mark.asyncio
    async def test_drifted_optional_fields_are_malformed(self, weather_settings, clock, drift):
        body = {**CURRENT, **drift}

        async with _client(lambda request: httpx.Response(200, json=body)) as client:
            fetcher = WeatherFetcher(weather_settings, client=client, clock=clock, retry_delay=0)
            with pytest.raises(MalformedResponseError):
                await fetcher.fetch_live(Topic.weather(MUMBAI))

    def test_forecast_days_follow_local_date(self):
        # 20:00 UTC is 01:30 the next day in IST
        late = int(datetime(2023, 11, 14, 20, 0, tzinfo=timezone.utc).timestamp())
        data = {"list": [{"dt": late, "main": {"temp": 25}}]}

        hourly, daily = parse_forecast(data, ZoneInfo("Asia/Kolkata"))

        assert daily[0].date == "2023-11-15"
        assert hourly[0].time.startswith("2023-11-15T01:30")

    @pytest.mark.asyncio
    async def test_rejected_key_is_configuration_error(self, weather_settings, clock):
        async with _client(lambda request: httpx.Response(401)) as client:
            fetcher = WeatherFetcher(weather_settings, client=client, clock=clock, retry_delay=0)
            with pytest.raises(ConfigurationError) as exc:
                await fetcher.fetch_live(Topic.weather(MUMBAI))
        assert exc.value.topic_key == Topic.weather(MUMBAI).key

    @pytest.mark.parametrize("key", ["", "demo_key"])
    @pytest.mark.asyncio
    async def test_unconfigured_never_calls_upstream(self, key, clock):
        calls = []
        async with _client(lambda request: calls.append(request) or httpx.Response(200)) as client:
            fetcher = WeatherFetcher(Settings(weather_api_key=key), client=client, clock=clock)
            assert fetcher.configured is False
            with pytest.raises(ConfigurationError):
                await fetcher.fetch_live(Topic.weather(MUMBAI))
        assert calls == []


class TestMarketFetcher:

    @pytest.mark.asyncio
    async def test_parses_records_and_skips_bad_ones(self, market_settings, clock, caplog):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"records": RECORDS})

        async with _client(handler) as client:
            fetcher = MarketFetcher(market_settings, client=client, clock=clock, retry_delay=0)
            snapshot = await fetcher.fetch_live(ONION)

        (price,) = snapshot.prices
        assert price.id == "Pune-APMC_Onion_Red"
        assert price.price.modal == 2100
        assert price.price.average == 2100
        assert price.volume.arrival == 40
        assert price.volume.sold == 32
        assert price.quality == "Average"
        assert len(price.price_history) == 1
        assert "Skipping malformed market record" in caplog.text

        params = seen[0].url.params
        assert seen[0].url.path == "/resource/abc"
        assert params["api-key"] == "k"
        assert params["filters[commodity]"] == "Onion"

    @pytest.mark.asyncio
    async def test_history_extends_previous_live_record(self, market_settings, clock):
        previous = MarketSnapshot(
            prices=[make_price(id="Pune-APMC_Onion_Red", history=[1900, 2000])],
            fetched_at=START_TS - 600,
        )
        async with _client(lambda r: httpx.Response(200, json={"records": RECORDS[:1]})) as client:
            fetcher = MarketFetcher(market_settings, client=client, clock=clock, retry_delay=0)
            clock.advance(3600)
            snapshot = await fetcher.fetch_live(ONION, previous)

        assert [p.value for p in snapshot.prices[0].price_history] == [1900, 2000, 2100]

    @pytest.mark.asyncio
    async def test_synthetic_history_is_not_extended(self, market_settings, clock):
        previous = MarketSnapshot(
            prices=[make_price(id="Pune-APMC_Onion_Red", history=[1900, 2000])],
            fetched_at=START_TS, source=SYNTHETIC,
        )
        async with _client(lambda r: httpx.Response(200, json={"records": RECORDS[:1]})) as client:
            fetcher = MarketFetcher(market_settings, client=client, clock=clock, retry_delay=0)
            snapshot = await fetcher.fetch_live(ONION, previous)

        assert [p.value for p in snapshot.prices[0].price_history] == [2100]

    def test_history_is_capped(self):
        long = make_price(id="x", history=list(range(1, 40)))
        fresh = make_price(id="x", modal=99)
        MarketFetcher.extend_history([fresh], MarketSnapshot([long], START_TS),
                                     datetime.fromtimestamp(START_TS + 86400, tz=timezone.utc))
        assert len(fresh.price_history) == 31
        assert fresh.price_history[-1].value == 99

    @pytest.mark.parametrize("body", [{"records": RECORDS[1:]}, {"message": "quota"}, ["x"]])
    @pytest.mark.asyncio
    async def test_unusable_payload_is_malformed(self, market_settings, clock, body):
        async with _client(lambda r: httpx.Response(200, json=body)) as client:
            fetcher = MarketFetcher(market_settings, client=client, clock=clock, retry_delay=0)
            with pytest.raises(MalformedResponseError):
                await fetcher.fetch_live(ONION)

    @pytest.mark.asyncio
    async def test_empty_records_is_a_valid_empty_snapshot(self, market_settings, clock):
        async with _client(lambda r: httpx.Response(200, json={"records": []})) as client:
            fetcher = MarketFetcher(market_settings, client=client, clock=clock, retry_delay=0)
            snapshot = await fetcher.fetch_live(ONION)
        assert snapshot.prices == []

    def test_multi_value_filters_are_applied_locally(self, market_settings):
        fetcher = MarketFetcher(market_settings)
        params = fetcher.query_params(Topic.market(["Onion", "Rice"], ["Punjab"]))

        assert "filters[commodity]" not in params
        assert params["filters[state]"] == "Punjab"


class TestGetJson:

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await get_json(client, "https://up.test/x", attempts=3, delay=0)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await get_json(client, "https://up.test/x", attempts=3, delay=0)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self):
        responses = [httpx.Response(429), httpx.Response(200, json={"ok": True})]

        async with _client(lambda r: responses.pop(0)) as client:
            assert await get_json(client, "https://up.test/x", attempts=2, delay=0) == {"ok": True}

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(MalformedResponseError):
                await get_json(client, "https://up.test/x", delay=0)

    @pytest.mark.parametrize("exc", [httpx.ConnectError, httpx.ReadTimeout])
    @pytest.mark.asyncio
    async def test_transport_failures(self, exc):
        def handler(request):
            raise exc("down", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await get_json(client, "https://up.test/x", attempts=2, delay=0)
