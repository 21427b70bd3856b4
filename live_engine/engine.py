"""
Live Engine — Engine
═══════════════════════════════════════════════════════════════════════

One Engine owns one TTL cache, one data registry, one alert registry,
one poller and one fetcher per domain. Nothing is process-global, so
several engines (one per test, say) can coexist.

Request path
────────────
    get(topic)
      └─ cache.get(topic.key)              fresh → return it
           └─ _acquire(topic)              miss / stale / force
                ├─ fetch_live              bounded by FETCH_TIMEOUT
                ├─ NetworkError / timeout  → synthesize
                ├─ ConfigurationError      → synthesize, domain pinned
                │                            to synthetic, warned once
                └─ MalformedResponseError  → previous value (source=cached),
                                             else synthesize
           └─ _apply(topic, outcome)
                ├─ per-price trends        (market)
                ├─ cache.put               (not for retained values)
                ├─ alerts.evaluate
                └─ registry.notify         only while the topic is armed

Live updates
────────────
start_live_updates(topic) arms a poller job that runs _acquire then
_apply every interval. A tick never raises; the poller discards results
from superseded generations before _apply sees them.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from live_engine.analytics import agro, insights
from live_engine.analytics.alerts import AlertGenerator
from live_engine.analytics.trend import MARKET_LABELS, TrendAnalyzer
from live_engine.cache.ttl_config import TTL
from live_engine.cache.ttl_store import TTLCache
from live_engine.config import AlertThresholds, Settings, TrendPolicy
from live_engine.errors import ConfigurationError, MalformedResponseError, NetworkError
from live_engine.fetchers.base import Fetcher
from live_engine.fetchers.market import MarketFetcher
from live_engine.fetchers.synthetic import TIMEFRAMES, base_price, trend_series
from live_engine.fetchers.weather import WeatherFetcher
from live_engine.models.alert import Alert
from live_engine.models.market import MarketInsight, MarketSnapshot, MarketTrend
from live_engine.models.topic import CACHED, LIVE, MARKET, SYNTHETIC, WEATHER, Location, Topic
from live_engine.models.weather import WeatherSnapshot
from live_engine.orchestrator.poller import Poller, TopicState
from live_engine.orchestrator.registry import SubscriptionRegistry

log = logging.getLogger("le.engine")

RETAINED = "retained"


@dataclass
class FetchOutcome:
    snapshot: Any
    origin:   str      # live | synthetic | retained


class Engine:

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        fetchers: Optional[Dict[str, Fetcher]] = None,
        thresholds: Optional[AlertThresholds] = None,
        trend_policy: Optional[TrendPolicy] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.clock = clock
        self.rng = rng or random.Random(self.settings.seed)

        self.cache = TTLCache(
            default_ttl=TTL["weather"],
            clock=clock,
            max_entries=self.settings.cache_max_entries,
        )
        self.registry = SubscriptionRegistry("data")
        self.alert_registry = SubscriptionRegistry("alerts")
        self.trends = TrendAnalyzer(trend_policy)
        self.alerts = AlertGenerator(thresholds, clock=clock)
        self.fetchers: Dict[str, Fetcher] = fetchers or {
            WEATHER: WeatherFetcher(self.settings, rng=self.rng, clock=clock),
            MARKET:  MarketFetcher(self.settings, rng=self.rng, clock=clock),
        }
        self.poller = Poller(self._acquire, self._apply, scheduler=scheduler, clock=clock)

        self._synthetic_only: Set[str] = set()
        self._latest_alerts: Dict[str, Tuple[Alert, ...]] = {}

    # ── Helpers ───────────────────────────────────────────────
    def now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=self.settings.tz)

    def ttl_for(self, domain: str) -> float:
        return self.settings.interval_for(domain)

    def is_synthetic_only(self, domain: str) -> bool:
        return domain in self._synthetic_only

    def _route_synthetic(self, domain: str, reason: Exception):
        if domain in self._synthetic_only:
            return
        self._synthetic_only.add(domain)
        log.warning(f"{domain}: {reason} — serving synthetic data for this engine's lifetime")

    # ═════════════════════════════════════════════════════════════
    # FETCH PIPELINE
    # ═════════════════════════════════════════════════════════════
    async def _acquire(self, topic: Topic) -> FetchOutcome:
        """Best available snapshot for a topic. Never raises on upstream trouble."""
        fetcher = self.fetchers[topic.domain]
        entry = self.cache.peek(topic.key)
        previous = entry.payload if entry is not None else None

        if not fetcher.configured:
            self._route_synthetic(topic.domain, ConfigurationError("credentials missing", topic.key))

        if topic.domain not in self._synthetic_only:
            try:
                snapshot = await asyncio.wait_for(
                    fetcher.fetch_live(topic, previous),
                    timeout=self.settings.fetch_timeout_s,
                )
                return FetchOutcome(snapshot, LIVE)
            except asyncio.TimeoutError:
                e = NetworkError(f"timed out after {self.settings.fetch_timeout_s:g}s", topic.key)
                log.warning(f"{topic.key}: {e} — synthetic fallback")
            except ConfigurationError as e:
                self._route_synthetic(topic.domain, e)
            except MalformedResponseError as e:
                if previous is not None:
                    log.warning(f"{topic.key}: {e} — keeping previous value")
                    return FetchOutcome(replace(previous, source=CACHED), RETAINED)
                log.warning(f"{topic.key}: {e} — nothing cached, synthetic fallback")
            except NetworkError as e:
                log.warning(f"{topic.key}: {e} — synthetic fallback")
            except Exception:
                log.exception(f"{topic.key}: unexpected fetch failure — synthetic fallback")

        return FetchOutcome(fetcher.synthesize(topic, previous), SYNTHETIC)

    def _apply(self, topic: Topic, outcome: FetchOutcome) -> Any:
        snapshot = outcome.snapshot
        if outcome.origin != RETAINED:
            if isinstance(snapshot, MarketSnapshot):
                for price in snapshot.prices:
                    price.trend = self.trends.price_trend(price.price_history)
            self.cache.put(topic.key, snapshot)

        alerts = self.alerts.evaluate(snapshot)
        self._latest_alerts[topic.key] = alerts

        if self.poller.is_armed(topic):
            delivered = self.registry.notify(topic, snapshot)
            if alerts:
                self.alert_registry.notify(topic, alerts)
            log.debug(f"{topic.key}: {outcome.origin} snapshot → {delivered} subscriber(s)")
        return snapshot

    async def get(self, topic: Topic, force_refresh: bool = False) -> Any:
        if not force_refresh:
            cached = self.cache.get(topic.key, ttl=self.ttl_for(topic.domain))
            if cached is not None:
                return cached
        outcome = await self._acquire(topic)
        return self._apply(topic, outcome)

    async def get_weather(self, location: Location, force_refresh: bool = False) -> WeatherSnapshot:
        return await self.get(Topic.weather(location), force_refresh)

    async def get_market_prices(self, commodities: Optional[Iterable[str]] = None,
                                states: Optional[Iterable[str]] = None,
                                markets: Optional[Iterable[str]] = None,
                                force_refresh: bool = False) -> MarketSnapshot:
        return await self.get(Topic.market(commodities, states, markets), force_refresh)

    def latest_alerts(self, topic: Topic) -> Tuple[Alert, ...]:
        return self._latest_alerts.get(topic.key, ())

    # ═════════════════════════════════════════════════════════════
    # SUBSCRIPTIONS / LIVE UPDATES
    # ═════════════════════════════════════════════════════════════
    def subscribe(self, topic: Topic, callback: Callable[[Any], Any]) -> Callable[[], bool]:
        return self.registry.subscribe(topic, callback)

    def subscribe_alerts(self, topic: Topic,
                         callback: Callable[[Tuple[Alert, ...]], Any]) -> Callable[[], bool]:
        return self.alert_registry.subscribe(topic, callback)

    def start_live_updates(self, topic: Topic, interval_s: Optional[float] = None) -> TopicState:
        if interval_s is None:
            interval_s = self.settings.interval_for(topic.domain)
        return self.poller.start(topic, interval_s)

    def stop_live_updates(self, topic: Topic) -> TopicState:
        return self.poller.stop(topic)

    # ═════════════════════════════════════════════════════════════
    # MARKET VIEWS
    # ═════════════════════════════════════════════════════════════
    async def get_market_trend(self, commodity: str, timeframe: str = "weekly") -> MarketTrend:
        if timeframe not in TIMEFRAMES:
            raise ValueError(f"timeframe must be one of {sorted(TIMEFRAMES)}, got {timeframe!r}")
        key = f"trend@{commodity.strip().lower()}:{timeframe}"
        cached = self.cache.get(key, ttl=TTL["trend"])
        if cached is not None:
            return cached

        snapshot = await self.get_market_prices([commodity])
        prices = snapshot.for_commodity(commodity)
        base = prices[0].price.modal if prices else base_price(commodity)

        series = trend_series(base, timeframe, self.rng, self.now())
        analysis = self.trends.compute(series)
        result = MarketTrend(
            commodity=commodity,
            timeframe=timeframe,
            data=series,
            trend=MARKET_LABELS[analysis.direction],
            analysis=analysis,
        )
        self.cache.put(key, result)
        return result

    async def get_market_insights(self, commodity: str,
                                  location: Optional[Location] = None) -> MarketInsight:
        snapshot = await self.get_market_prices([commodity])
        trend = await self.get_market_trend(commodity, "monthly")
        return insights.build_insights(commodity, snapshot.for_commodity(commodity), trend, location)

    async def compare_prices_across_markets(self, commodity: str) -> dict:
        snapshot = await self.get_market_prices([commodity])
        return insights.compare_markets(commodity, snapshot.for_commodity(commodity))

    def market_calendar(self) -> dict:
        return insights.market_calendar(self.now())

    # ═════════════════════════════════════════════════════════════
    # WEATHER VIEWS
    # ═════════════════════════════════════════════════════════════
    async def agricultural_recommendations(self, location: Location) -> List[str]:
        return agro.recommendations(await self.get_weather(location))

    async def crop_suitability(self, location: Location, crop: str) -> dict:
        return agro.crop_suitability(await self.get_weather(location), crop)

    # ── Lifecycle ─────────────────────────────────────────────
    def status(self) -> dict:
        return {
            "cache":          self.cache.stats(),
            "poller":         self.poller.status(),
            "synthetic_only": sorted(self._synthetic_only),
            "subscribers":    {k: self.registry.count(k) for k in self.registry.topics()},
        }

    async def aclose(self):
        self.poller.shutdown()
        self.registry.clear()
        self.alert_registry.clear()
        for fetcher in self.fetchers.values():
            await fetcher.aclose()
        log.info("Engine closed")
