"""
Live Engine — Subscription Registry
────────────────────────────────────
topic key → set of callbacks.

subscribe() hands back an unsubscribe callable; calling it twice is a
no-op. notify() fans a payload out to every subscriber of one topic,
isolating callback failures: a raising callback is logged and skipped,
the rest still receive the payload.

notify() iterates over a snapshot of the subscriber list, so a callback
may unsubscribe itself (or others) mid-delivery.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Union

from live_engine.models.topic import Topic

Callback = Callable[[Any], Any]
TopicLike = Union[Topic, str]


@dataclass(frozen=True)
class Subscription:
    id:        str
    topic_key: str
    callback:  Callback


def _key(topic: TopicLike) -> str:
    return topic.key if isinstance(topic, Topic) else str(topic)


class SubscriptionRegistry:

    def __init__(self, name: str = "data"):
        self.name = name
        self.log = logging.getLogger(f"le.registry.{name}")
        self._subs: Dict[str, Dict[str, Subscription]] = {}

    def subscribe(self, topic: TopicLike, callback: Callback) -> Callable[[], bool]:
        key = _key(topic)
        sub = Subscription(id=uuid.uuid4().hex, topic_key=key, callback=callback)
        self._subs.setdefault(key, {})[sub.id] = sub
        self.log.debug(f"+ {key} ({self.count(key)} subscriber(s))")
        return lambda: self.unsubscribe(sub.id)

    def unsubscribe(self, subscription_id: str) -> bool:
        for key, subs in list(self._subs.items()):
            if subscription_id in subs:
                del subs[subscription_id]
                if not subs:
                    del self._subs[key]
                self.log.debug(f"- {key} ({self.count(key)} subscriber(s))")
                return True
        return False

    def notify(self, topic: TopicLike, data: Any) -> int:
        key = _key(topic)
        delivered = 0
        for sub in list(self._subs.get(key, {}).values()):
            try:
                sub.callback(data)
                delivered += 1
            except Exception:
                self.log.exception(f"Subscriber {sub.id[:8]} on {key} raised — skipped")
        return delivered

    def count(self, topic: TopicLike) -> int:
        return len(self._subs.get(_key(topic), {}))

    def topics(self) -> List[str]:
        return list(self._subs)

    def clear(self):
        self._subs.clear()
