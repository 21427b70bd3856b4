"""
Live Engine — Fetcher Base
───────────────────────────
Every domain adapter inherits from Fetcher.

Subclasses implement:
  - domain: str
  - configured: bool            credentials present and usable
  - fetch_live(topic, previous) normalised snapshot, or raise FetchError
  - synthesize(topic, previous) plausible stand-in; must never raise

The Engine decides when to call which; adapters only know their upstream.
"""

import random
import time
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import httpx

from live_engine.config import DEFAULT_TIMEZONE
from live_engine.fetchers.http import RETRY_ATTEMPTS, RETRY_DELAY
from live_engine.models.topic import Topic


class Fetcher(ABC):

    def __init__(self, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time,
                 client: Optional[httpx.AsyncClient] = None,
                 retry_attempts: int = RETRY_ATTEMPTS,
                 retry_delay: float = RETRY_DELAY,
                 tz: Optional[tzinfo] = None):
        self.rng = rng or random.Random()
        self.clock = clock
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.tz = tz or ZoneInfo(DEFAULT_TIMEZONE)
        self._client = client
        self._owns_client = client is None

    @property
    @abstractmethod
    def domain(self) -> str: ...

    @property
    def configured(self) -> bool:
        return True

    @abstractmethod
    async def fetch_live(self, topic: Topic, previous: Optional[Any] = None) -> Any: ...

    @abstractmethod
    def synthesize(self, topic: Topic, previous: Optional[Any] = None) -> Any: ...

    def now(self) -> datetime:
        """Local wall-clock time; market hours and the diurnal curve read .hour."""
        return datetime.fromtimestamp(self.clock(), tz=self.tz)

    async def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
            self._owns_client = True
        return self._client

    async def aclose(self):
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
