"""
Live Engine — Poller
═══════════════════════════════════════════════════════════════════════

One APScheduler interval job per armed topic. The job id is the topic
key, so arming the same topic twice replaces the job instead of
stacking a second timer.

Per-topic state machine
───────────────────────

    idle ──start──▶ armed ──tick──▶ refreshing ──done──▶ armed
                      │  ▲                │
                      │  └────start───────┤  (generation += 1)
                      ▼                   ▼
                   stopped ◀─────stop─────┘  (generation += 1)

Generation tokens
─────────────────
Every start() and stop() bumps the topic's generation. A tick records
the generation it began under; when its fetch completes it only applies
the result if the generation is unchanged. A fetch that was already in
flight when the topic was stopped (or re-armed) is discarded silently.

Failure isolation
─────────────────
A tick never raises into the scheduler. Exceptions are logged and
counted, the topic stays armed, and the next interval tries again.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from live_engine.cache.ttl_config import MISFIRE_GRACE_S
from live_engine.models.topic import Topic

log = logging.getLogger("le.poller")

IDLE       = "idle"
ARMED      = "armed"
REFRESHING = "refreshing"
STOPPED    = "stopped"

FetchFn = Callable[[Topic], Awaitable[Any]]
ApplyFn = Callable[[Topic, Any], Any]


@dataclass
class TopicState:
    topic:        Topic
    status:       str = IDLE
    generation:   int = 0
    interval_s:   float = 0.0
    in_flight:    bool = False
    ticks:        int = 0
    failures:     int = 0
    discarded:    int = 0
    last_tick_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "topic":        self.topic.key,
            "status":       self.status,
            "generation":   self.generation,
            "interval_s":   self.interval_s,
            "ticks":        self.ticks,
            "failures":     self.failures,
            "discarded":    self.discarded,
            "last_tick_at": self.last_tick_at,
        }


class Poller:

    def __init__(self, fetch: FetchFn, apply: ApplyFn,
                 scheduler: Optional[AsyncIOScheduler] = None,
                 clock: Callable[[], float] = time.time):
        self._fetch = fetch
        self._apply = apply
        self._clock = clock
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._states: Dict[str, TopicState] = {}
        self._closing = False

    # ── State queries ─────────────────────────────────────────
    def state(self, topic: Topic) -> TopicState:
        st = self._states.get(topic.key)
        if st is None:
            st = self._states[topic.key] = TopicState(topic=topic)
        return st

    def is_armed(self, topic: Topic) -> bool:
        st = self._states.get(topic.key)
        return st is not None and st.status in (ARMED, REFRESHING)

    def is_current(self, topic: Topic, generation: int) -> bool:
        return self.state(topic).generation == generation

    def armed_topics(self):
        return [st.topic for st in self._states.values() if st.status in (ARMED, REFRESHING)]

    # ── Control ───────────────────────────────────────────────
    def start(self, topic: Topic, interval_s: float) -> TopicState:
        if interval_s <= 0:
            raise ValueError(f"interval must be positive, got {interval_s}")
        st = self.state(topic)
        st.generation += 1
        st.interval_s = float(interval_s)
        st.status = REFRESHING if st.in_flight else ARMED

        if not self.scheduler.running:
            self.scheduler.start()
            self._closing = False

        self.scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=interval_s),
            args                = [topic.key],
            id                  = topic.key,
            name                = f"poll {topic.key}",
            max_instances       = 1,
            coalesce            = True,
            misfire_grace_time  = MISFIRE_GRACE_S,
            replace_existing    = True,
        )
        log.info(f"Armed {topic.key} every {interval_s:g}s (gen {st.generation})")
        return st

    def stop(self, topic: Topic) -> TopicState:
        st = self.state(topic)
        if st.status in (IDLE, STOPPED):
            return st
        st.generation += 1
        st.status = STOPPED
        try:
            self.scheduler.remove_job(topic.key)
        except JobLookupError:
            pass
        log.info(f"Stopped {topic.key} (gen {st.generation})")
        return st

    # ── Tick ──────────────────────────────────────────────────
    async def tick(self, key: str) -> bool:
        """Run one refresh. Returns True only if the result was applied."""
        st = self._states.get(key)
        if st is None or st.status != ARMED:
            return False

        generation = st.generation
        topic = st.topic
        st.status = REFRESHING
        st.in_flight = True
        st.ticks += 1
        st.last_tick_at = self._clock()
        try:
            result = await self._fetch(topic)
            if st.generation != generation:
                st.discarded += 1
                log.debug(f"{key}: discarding result from gen {generation} "
                          f"(now gen {st.generation})")
                return False
            self._apply(topic, result)
            return True
        except Exception as e:
            st.failures += 1
            log.error(f"{key}: refresh failed — {e!r}")
            return False
        finally:
            st.in_flight = False
            if st.status == REFRESHING:
                st.status = ARMED

    # ── Lifecycle ─────────────────────────────────────────────
    def shutdown(self):
        for st in self._states.values():
            if st.status in (ARMED, REFRESHING):
                st.generation += 1
                st.status = STOPPED
        # AsyncIOScheduler defers shutdown onto the loop; request it once
        if self.scheduler.running and not self._closing:
            self._closing = True
            self.scheduler.shutdown(wait=False)
            log.info("Poller stopped")

    def status(self) -> dict:
        jobs = []
        if self.scheduler.running and not self._closing:
            for job in self.scheduler.get_jobs():
                nxt = job.next_run_time
                jobs.append({"id": job.id, "next_run": nxt.isoformat() if nxt else None})
        return {
            "running": self.scheduler.running and not self._closing,
            "topics":  [st.to_dict() for st in self._states.values()],
            "jobs":    jobs,
        }
