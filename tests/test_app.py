"""Tests for the FastAPI service surface, run against an engine with no upstream keys."""

import random

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import create_app
from live_engine import Engine, Settings


@pytest.fixture
def client():
    app = create_app(lambda: Engine(Settings(), rng=random.Random(1)))
    with TestClient(app) as c:
        yield c


class TestHealth:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "healthy"
        assert body["poller"]["topics"] == []


class TestWeatherEndpoints:

    def test_weather_falls_back_to_synthetic(self, client):
        r = client.get("/api/weather", params={"lat": 19.076, "lon": 72.8777, "name": "Mumbai"})
        assert r.status_code == 200
        body = r.json()
        assert body["weather"]["source"] == "synthetic"
        assert body["weather"]["location"]["name"] == "Mumbai"
        assert isinstance(body["alerts"], list)
        assert body["recommendations"]

    @pytest.mark.parametrize("params", [{}, {"lat": 19.0}, {"lat": 120, "lon": 10}])
    def test_bad_coordinates(self, client, params):
        assert client.get("/api/weather", params=params).status_code == 400

    def test_crop_suitability(self, client):
        r = client.get("/api/weather/crop/rice", params={"lat": 19.0, "lon": 72.8})
        assert r.status_code == 200
        assert r.json()["crop"] == "rice"


class TestMarketEndpoints:

    def test_market_prices(self, client):
        r = client.get("/api/market", params={"commodities": "Onion, Rice"})
        assert r.status_code == 200
        body = r.json()
        assert body["topic"] == "market@commodities=Onion,Rice"
        assert {p["commodity"] for p in body["market"]["prices"]} == {"Onion", "Rice"}
        assert all(p["trend"]["direction"] in {"up", "down", "stable"}
                   for p in body["market"]["prices"])

    def test_too_many_commodities(self, client):
        many = ",".join(f"C{i}" for i in range(21))
        assert client.get("/api/market", params={"commodities": many}).status_code == 400

    def test_trend(self, client):
        r = client.get("/api/market/Onion/trend", params={"timeframe": "monthly"})
        assert r.status_code == 200
        body = r.json()
        assert len(body["data"]) == 31
        assert body["trend"] in {"bullish", "bearish", "sideways"}

    def test_trend_rejects_unknown_timeframe(self, client):
        assert client.get("/api/market/Onion/trend",
                          params={"timeframe": "hourly"}).status_code == 400

    def test_insights_with_location(self, client):
        r = client.get("/api/market/Onion/insights", params={"lat": 19.0, "lon": 72.8})
        assert r.status_code == 200
        markets = r.json()["best_markets"]
        assert markets and all(m["distance"] is not None for m in markets)

    def test_compare(self, client):
        r = client.get("/api/market/Onion/compare")
        assert r.status_code == 200
        assert r.json()["markets"][0]["rank"] == 1

    def test_calendar(self, client):
        r = client.get("/api/market/calendar")
        assert r.status_code == 200
        assert len(r.json()["upcoming"]) == 7


class TestLiveEndpoints:

    def test_start_then_stop(self, client):
        r = client.post("/api/live/market/start", params={"commodities": "Onion", "interval": 60})
        assert r.status_code == 200
        assert r.json()["status"] == "armed"
        assert r.json()["interval_s"] == 60

        r = client.post("/api/live/market/start", params={"commodities": "Onion", "interval": 60})
        assert r.json()["generation"] == 2
        assert len(client.get("/health").json()["poller"]["jobs"]) == 1

        r = client.post("/api/live/market/stop", params={"commodities": "Onion"})
        assert r.json()["status"] == "stopped"

    def test_unknown_domain(self, client):
        assert client.post("/api/live/stocks/start").status_code == 400

    def test_websocket_streams_current_snapshot(self, client):
        with client.websocket_connect("/ws/market?commodities=Onion") as ws:
            message = ws.receive_json()

        assert message["type"] == "snapshot"
        assert message["topic"] == "market@commodities=Onion"
        assert {p["commodity"] for p in message["data"]["prices"]} == {"Onion"}

    def test_websocket_rejects_bad_domain(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/stocks") as ws:
                ws.receive_json()

    def test_websocket_leaves_explicitly_started_polling_armed(self, client):
        client.post("/api/live/market/start", params={"commodities": "Onion", "interval": 60})

        with client.websocket_connect("/ws/market?commodities=Onion") as ws:
            ws.receive_json()

        (state,) = client.get("/health").json()["poller"]["topics"]
        assert state["status"] == "armed"

    def test_websocket_stops_polling_it_started(self, client):
        with client.websocket_connect("/ws/market?commodities=Onion") as ws:
            ws.receive_json()

        (state,) = client.get("/health").json()["poller"]["topics"]
        assert state["status"] == "stopped"
