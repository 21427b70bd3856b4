"""
Live Engine — Error Taxonomy
─────────────────────────────
Everything the fetch pipeline can raise derives from LiveDataError.

  NetworkError            upstream unreachable, timed out, or non-2xx
                          → synthetic fallback for this fetch only
  MalformedResponseError  payload did not match the expected schema
                          → previous cached value kept, else synthetic
  ConfigurationError      missing / invalid credentials
                          → domain routed to synthetic for the engine's lifetime

None of these escape a poller tick.
"""

from typing import Optional


class LiveDataError(Exception):
    """Base class for engine errors."""


class FetchError(LiveDataError):

    def __init__(self, message: str, topic_key: Optional[str] = None):
        super().__init__(message)
        self.topic_key = topic_key

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} [{self.topic_key}]" if self.topic_key else base


class NetworkError(FetchError):
    pass


class MalformedResponseError(FetchError):
    pass


class ConfigurationError(FetchError):
    pass
