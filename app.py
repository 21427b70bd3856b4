import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Callable, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from live_engine import Engine, Location, Topic
from live_engine.fetchers.synthetic import TIMEFRAMES
from live_engine.models.topic import DOMAINS, MARKET, WEATHER

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
log = logging.getLogger("le.api")

MAX_COMMODITIES = 20


def _split(raw: Optional[str]) -> List[str]:
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


def _location(lat: Optional[float], lon: Optional[float], name: Optional[str] = None) -> Location:
    if lat is None or lon is None:
        raise HTTPException(400, "lat and lon are required")
    if not -90 <= lat <= 90 or not -180 <= lon <= 180:
        raise HTTPException(400, f"Invalid coordinates: {lat}, {lon}")
    return Location(lat=lat, lon=lon, name=name or "Your Location")


def _market_topic(commodities: Optional[str], states: Optional[str] = None,
                  markets: Optional[str] = None) -> Topic:
    names = _split(commodities)
    if len(names) > MAX_COMMODITIES:
        raise HTTPException(400, f"Maximum {MAX_COMMODITIES} commodities per request")
    return Topic.market(names, _split(states), _split(markets))


def _topic(domain: str, lat=None, lon=None, name=None,
           commodities=None, states=None, markets=None) -> Topic:
    if domain == WEATHER:
        return Topic.weather(_location(lat, lon, name))
    if domain == MARKET:
        return _market_topic(commodities, states, markets)
    raise HTTPException(400, f"Unknown domain {domain!r} - expected one of {list(DOMAINS)}")


def _engine(request: Request) -> Engine:
    return request.app.state.engine


def create_app(engine_factory: Optional[Callable[[], Engine]] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = (engine_factory or Engine)()
        app.state.engine = engine
        app.state.ws_armed = set()    # topic keys armed by a WebSocket, not by /api/live
        log.info("Engine ready")
        yield
        await engine.aclose()

    app = FastAPI(
        title="Farm Live Engine",
        description="Live weather and mandi prices with trends and alerts. "
                    "Falls back to synthetic data when upstream keys are missing.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"status": "ok", "docs": "/docs", "api": "/api/market?commodities=Onion"}

    @app.get("/health")
    async def health(request: Request):
        engine = _engine(request)
        return {
            "status": "healthy",
            "timestamp": int(time.time()),
            **engine.status(),
        }

    # ── Weather ───────────────────────────────────────────────
    @app.get("/api/weather", tags=["Weather"])
    async def get_weather(
        request: Request,
        lat: Optional[float] = Query(None),
        lon: Optional[float] = Query(None),
        name: Optional[str] = Query(None),
        force: bool = Query(False, description="Bypass the cache"),
    ):
        engine = _engine(request)
        topic = Topic.weather(_location(lat, lon, name))
        snapshot = await engine.get(topic, force_refresh=force)
        return {
            "weather": snapshot.to_dict(),
            "alerts": [a.to_dict() for a in engine.latest_alerts(topic)],
            "recommendations": await engine.agricultural_recommendations(topic.location),
        }

    @app.get("/api/weather/crop/{crop}", tags=["Weather"])
    async def get_crop_suitability(
        request: Request, crop: str,
        lat: Optional[float] = Query(None),
        lon: Optional[float] = Query(None),
    ):
        return await _engine(request).crop_suitability(_location(lat, lon), crop)

    # ── Market ────────────────────────────────────────────────
    @app.get("/api/market", tags=["Market"])
    async def get_market(
        request: Request,
        commodities: Optional[str] = Query(None, description="Comma-separated e.g. Onion,Rice"),
        states: Optional[str] = Query(None),
        markets: Optional[str] = Query(None),
        force: bool = Query(False, description="Bypass the cache"),
    ):
        engine = _engine(request)
        topic = _market_topic(commodities, states, markets)
        snapshot = await engine.get(topic, force_refresh=force)
        return {
            "topic": topic.key,
            "market": snapshot.to_dict(),
            "alerts": [a.to_dict() for a in engine.latest_alerts(topic)],
        }

    @app.get("/api/market/calendar", tags=["Market"])
    async def get_calendar(request: Request):
        return _engine(request).market_calendar()

    @app.get("/api/market/{commodity}/trend", tags=["Market"])
    async def get_trend(request: Request, commodity: str,
                        timeframe: str = Query("weekly")):
        if timeframe not in TIMEFRAMES:
            raise HTTPException(400, f"timeframe must be one of {sorted(TIMEFRAMES)}")
        trend = await _engine(request).get_market_trend(commodity, timeframe)
        return trend.to_dict()

    @app.get("/api/market/{commodity}/insights", tags=["Market"])
    async def get_insights(request: Request, commodity: str,
                           lat: Optional[float] = Query(None),
                           lon: Optional[float] = Query(None)):
        location = _location(lat, lon) if lat is not None or lon is not None else None
        result = await _engine(request).get_market_insights(commodity, location)
        return result.to_dict()

    @app.get("/api/market/{commodity}/compare", tags=["Market"])
    async def get_comparison(request: Request, commodity: str):
        return await _engine(request).compare_prices_across_markets(commodity)

    # ── Live updates ──────────────────────────────────────────
    @app.post("/api/live/{domain}/start", tags=["Live"])
    async def start_live(
        request: Request, domain: str,
        lat: Optional[float] = Query(None),
        lon: Optional[float] = Query(None),
        commodities: Optional[str] = Query(None),
        states: Optional[str] = Query(None),
        markets: Optional[str] = Query(None),
        interval: Optional[float] = Query(None, gt=0, description="Seconds between polls"),
    ):
        topic = _topic(domain, lat, lon, None, commodities, states, markets)
        request.app.state.ws_armed.discard(topic.key)
        state = _engine(request).start_live_updates(topic, interval)
        return state.to_dict()

    @app.post("/api/live/{domain}/stop", tags=["Live"])
    async def stop_live(
        request: Request, domain: str,
        lat: Optional[float] = Query(None),
        lon: Optional[float] = Query(None),
        commodities: Optional[str] = Query(None),
        states: Optional[str] = Query(None),
        markets: Optional[str] = Query(None),
    ):
        topic = _topic(domain, lat, lon, None, commodities, states, markets)
        request.app.state.ws_armed.discard(topic.key)
        return _engine(request).stop_live_updates(topic).to_dict()

    @app.websocket("/ws/{domain}")
    async def websocket_live(websocket: WebSocket, domain: str):
        engine: Engine = websocket.app.state.engine
        ws_armed: set = websocket.app.state.ws_armed
        q = websocket.query_params
        try:
            topic = _topic(
                domain,
                float(q["lat"]) if "lat" in q else None,
                float(q["lon"]) if "lon" in q else None,
                q.get("name"), q.get("commodities"), q.get("states"), q.get("markets"),
            )
        except (HTTPException, ValueError) as e:
            await websocket.close(code=1008, reason=str(getattr(e, "detail", e)))
            return

        await websocket.accept()
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = engine.subscribe(
            topic, lambda snap: queue.put_nowait({"type": "snapshot", "data": snap.to_dict()}))
        unsubscribe_alerts = engine.subscribe_alerts(
            topic, lambda alerts: queue.put_nowait(
                {"type": "alerts", "data": [a.to_dict() for a in alerts]}))

        async def pump():
            while True:
                message = await queue.get()
                message["topic"] = topic.key
                await websocket.send_json(message)

        sender = asyncio.create_task(pump())
        try:
            current = await engine.get(topic)
            queue.put_nowait({"type": "snapshot", "data": current.to_dict()})
            if not engine.poller.is_armed(topic):
                engine.start_live_updates(topic)
                ws_armed.add(topic.key)
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            log.info(f"WS disconnected: {topic.key}")
        except Exception as e:
            log.error(f"WS error for {topic.key}: {e}")
        finally:
            sender.cancel()
            unsubscribe()
            unsubscribe_alerts()
            if engine.registry.count(topic) == 0 and topic.key in ws_armed:
                ws_armed.discard(topic.key)
                engine.stop_live_updates(topic)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("app:app", host="0.0.0.0", port=port, reload=False, log_level="info")
