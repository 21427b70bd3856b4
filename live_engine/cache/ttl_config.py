"""
Live Engine — TTL Configuration
────────────────────────────────
Single source of truth for cache durations and poll cadence.
A topic's cache entry expires on the same cadence its poller refreshes it.
"""

# ── Per domain TTL (seconds) ──────────────────────────────────

TTL = {
    "weather": 5 * 60,      # observations move slowly; 5 minutes
    "market":  10 * 60,     # mandi boards update a few times a day
    "trend":   10 * 60,     # derived series follow the market cadence
}

# ── Default live-update intervals (seconds) ───────────────────
POLL_INTERVAL = {
    "weather": TTL["weather"],
    "market":  TTL["market"],
}

# APScheduler: how late a tick may start before it is skipped
MISFIRE_GRACE_S = 30
