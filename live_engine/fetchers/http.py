"""
Shared HTTP GET for the live adapters.

Maps transport outcomes onto the engine's error taxonomy:
  timeout / connection failure / 5xx   → NetworkError (after retries)
  429                                  → back off, retry, then NetworkError
  401 / 403                            → ConfigurationError (no retry)
  other non-2xx                        → NetworkError
  body that is not JSON                → MalformedResponseError
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from live_engine.errors import ConfigurationError, MalformedResponseError, NetworkError

log = logging.getLogger("le.fetchers.http")

REQUEST_TIMEOUT = 10
RETRY_ATTEMPTS  = 2
RETRY_DELAY     = 1.0

HEADERS = {
    "User-Agent": "farm-live-engine/1.0",
    "Accept": "application/json",
}


async def get_json(client: httpx.AsyncClient, url: str, params: Optional[dict] = None,
                   attempts: int = RETRY_ATTEMPTS, delay: float = RETRY_DELAY,
                   timeout: float = REQUEST_TIMEOUT) -> Any:
    last_error = "no attempt made"
    for attempt in range(max(1, attempts)):
        try:
            r = await client.get(url, params=params, headers=HEADERS, timeout=timeout)
        except httpx.TimeoutException:
            last_error = "timeout"
            log.warning(f"Timeout (attempt {attempt + 1}): {url[:60]}")
        except httpx.HTTPError as e:
            last_error = str(e) or e.__class__.__name__
            log.warning(f"Transport error (attempt {attempt + 1}): {last_error}")
        else:
            if r.status_code in (401, 403):
                raise ConfigurationError(f"HTTP {r.status_code} from {url[:60]} - check API key")
            if 200 <= r.status_code < 300:
                try:
                    return r.json()
                except ValueError as e:
                    raise MalformedResponseError(f"Non-JSON body from {url[:60]}: {e}")
            last_error = f"HTTP {r.status_code}"
            if r.status_code == 429:
                wait = delay * (attempt + 1) * 2
                log.warning(f"Rate limited — waiting {wait}s")
                await asyncio.sleep(wait)
                continue
            log.warning(f"HTTP {r.status_code} from {url[:60]}")
            if r.status_code < 500:
                break
        if attempt < attempts - 1:
            await asyncio.sleep(delay)
    raise NetworkError(f"{url[:60]} unavailable: {last_error}")
