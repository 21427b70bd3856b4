"""
Live Engine — Market Adapter
─────────────────────────────
data.gov.in mandi price resource:

  GET {MARKET_API_URL}/{MARKET_RESOURCE_ID}
      ?api-key=...&format=json&limit=100
      &filters[commodity]=Onion&filters[state]=Maharashtra

Each record → MarketPrice. Records that cannot be parsed are skipped
with a warning; a response with no usable "records" list at all is a
MalformedResponseError.

The upstream only reports today's price. Price history is accumulated
across polls: each record extends the matching record of the previous
snapshot, keeping the last HISTORY_POINTS points.
"""

import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

from live_engine.analytics.insights import market_status, quality_grade
from live_engine.config import Settings, is_configured
from live_engine.errors import ConfigurationError, FetchError, MalformedResponseError
from live_engine.fetchers.base import Fetcher
from live_engine.fetchers.http import get_json
from live_engine.fetchers.synthetic import synthesize_prices
from live_engine.models.market import MarketPrice, MarketSnapshot, PriceRange, Volume
from live_engine.models.series import DataPoint
from live_engine.models.topic import LIVE, MARKET, SYNTHETIC, Topic

log = logging.getLogger("le.fetchers.market")

PAGE_LIMIT      = 100
HISTORY_POINTS  = 31
SOLD_SHARE      = 0.8       # upstream reports arrivals only

FILTER_FIELDS = {
    "commodities": "commodity",
    "states":      "state",
    "markets":     "market",
}


def _slug(*parts: str) -> str:
    return "_".join(re.sub(r"\s+", "-", (p or "").strip()) for p in parts)


def _num(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class MarketFetcher(Fetcher):

    def __init__(self, settings: Optional[Settings] = None, **kwargs):
        settings = settings or Settings()
        kwargs.setdefault("tz", settings.tz)
        super().__init__(**kwargs)
        self.settings = settings

    @property
    def domain(self) -> str:
        return MARKET

    @property
    def configured(self) -> bool:
        return is_configured(self.settings.market_api_key)

    def query_params(self, topic: Topic) -> dict:
        params = {
            "api-key": self.settings.market_api_key,
            "format":  "json",
            "limit":   PAGE_LIMIT,
        }
        # data.gov.in filters take one value per field; several values
        # are fetched unfiltered and narrowed locally
        for name, field_name in FILTER_FIELDS.items():
            values = topic.param(name) or ()
            if len(values) == 1:
                params[f"filters[{field_name}]"] = values[0]
        return params

    async def fetch_live(self, topic: Topic, previous: Optional[MarketSnapshot] = None) -> MarketSnapshot:
        if not self.configured:
            raise ConfigurationError("MARKET_API_KEY missing", topic.key)

        url = f"{self.settings.market_api_url}/{self.settings.market_resource_id}"
        client = await self.client()
        try:
            body = await get_json(client, url, params=self.query_params(topic),
                                  attempts=self.retry_attempts, delay=self.retry_delay)
        except FetchError as e:
            e.topic_key = e.topic_key or topic.key
            raise

        records = body.get("records") if isinstance(body, dict) else None
        if not isinstance(records, list):
            raise MalformedResponseError("Response has no 'records' list", topic.key)

        now = self.now()
        prices = self.parse_records(records, now)
        if records and not prices:
            raise MalformedResponseError(f"All {len(records)} records malformed", topic.key)

        prices = [p for p in prices if _matches(topic, p)]
        self.extend_history(prices, previous, now)
        log.info(f"{topic.key}: {len(prices)} live price record(s)")
        return MarketSnapshot(prices=prices, fetched_at=self.clock(), source=LIVE)

    def parse_records(self, records: List[dict], now: datetime) -> List[MarketPrice]:
        out: List[MarketPrice] = []
        status = market_status(now)
        for record in records:
            try:
                out.append(self.parse_record(record, now, status))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                log.warning(f"Skipping malformed market record: {e!r}")
        return out

    @staticmethod
    def parse_record(record: dict, now: datetime, status: str) -> MarketPrice:
        commodity = record["commodity"].strip()
        market = (record.get("market") or "Unknown Market").strip()
        variety = (record.get("variety") or "Common").strip()
        modal = float(record["modal_price"])
        lo = _num(record.get("min_price"), modal)
        hi = _num(record.get("max_price"), modal)
        arrival = _num(record.get("arrivals"))
        sold = round(arrival * SOLD_SHARE, 2)

        return MarketPrice(
            id=_slug(market, commodity, variety),
            commodity=commodity,
            variety=variety,
            market=market,
            state=(record.get("state") or "Unknown State").strip(),
            district=(record.get("district") or "Unknown District").strip(),
            price=PriceRange(min=lo, max=hi, modal=modal, average=(lo + hi) / 2),
            volume=Volume(arrival=arrival, sold=sold, unsold=round(arrival - sold, 2)),
            arrival_date=record.get("arrival_date") or now.date().isoformat(),
            last_updated=now.isoformat(),
            quality=quality_grade(modal),
            market_status=status,
        )

    @staticmethod
    def extend_history(prices: List[MarketPrice], previous: Optional[MarketSnapshot],
                       now: datetime):
        prior: Dict[str, List[DataPoint]] = {}
        # synthetic histories are fiction; never splice live points onto them
        if previous is not None and previous.source != SYNTHETIC:
            prior = {p.id: p.price_history for p in previous.prices}
        ts = now.timestamp()
        for p in prices:
            history = list(prior.get(p.id, ()))
            if history and history[-1].timestamp >= ts:
                history.pop()
            history.append(DataPoint(timestamp=ts, value=p.price.modal,
                                     volume=p.volume.arrival))
            p.price_history = history[-HISTORY_POINTS:]

    def synthesize(self, topic: Topic, previous: Optional[MarketSnapshot] = None) -> MarketSnapshot:
        now = self.now()
        prices = synthesize_prices(topic.param("commodities"), self.rng, now,
                                   states=topic.param("states"))
        markets = topic.param("markets")
        if markets:
            for i, p in enumerate(prices):
                p.market = markets[i % len(markets)]
        return MarketSnapshot(prices=prices, fetched_at=now.timestamp(), source=SYNTHETIC)


def _matches(topic: Topic, price: MarketPrice) -> bool:
    for name, attr in FILTER_FIELDS.items():
        wanted = topic.param(name)
        if wanted and getattr(price, attr).lower() not in {w.lower() for w in wanted}:
            return False
    return True
