"""
Live Engine — Market Insights
──────────────────────────────
Pure functions over market snapshots: quality grading, market hours,
calendar, cross-market comparison and the sell-side insight summary.
Nothing here fetches; the Engine hands in the data.
"""

import math
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from live_engine.models.market import (
    BestMarket, MarketInsight, MarketPrice, MarketTrend,
)
from live_engine.models.series import DOWN, UP
from live_engine.models.topic import Location

EARTH_RADIUS_KM = 6371.0
TRADING_HOURS   = "06:00 - 18:00"

SEASONAL_PEAK = ["March", "April", "October", "November"]
SEASONAL_LOW  = ["June", "July", "August"]

# Approximate state centroids, for distance-to-market estimates
STATE_CENTROIDS: Dict[str, Tuple[float, float]] = {
    "Maharashtra":    (19.75, 75.71),
    "Uttar Pradesh":  (26.85, 80.91),
    "Madhya Pradesh": (22.97, 78.66),
    "Gujarat":        (22.26, 71.19),
    "Rajasthan":      (27.02, 74.22),
    "Karnataka":      (15.32, 75.71),
    "Andhra Pradesh": (15.91, 79.74),
    "Telangana":      (18.11, 79.02),
    "Tamil Nadu":     (11.13, 78.66),
    "West Bengal":    (22.99, 87.86),
    "Punjab":         (31.15, 75.34),
    "Haryana":        (29.06, 76.09),
}


def haversine_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    lat1, lon1 = map(math.radians, a)
    lat2, lon2 = map(math.radians, b)
    dlat, dlon = lat2 - lat1, lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def quality_grade(modal_price: float) -> str:
    if modal_price > 5000:
        return "Premium"
    if modal_price > 3000:
        return "Good"
    if modal_price > 1500:
        return "Average"
    return "Below Average"


def market_status(now: datetime) -> str:
    """Mandis close on Sundays and outside 06:00–18:59 local time; pass a localized `now`."""
    if now.weekday() == 6 or now.hour > 18 or now.hour < 6:
        return "Closed"
    return "Open"


def market_calendar(now: datetime, days: int = 7) -> dict:
    upcoming = []
    for i in range(1, days + 1):
        day = now + timedelta(days=i)
        closed = day.weekday() == 6
        entry = {"date": day.date().isoformat(), "status": "Closed" if closed else "Open"}
        if closed:
            entry["note"] = "Sunday - Weekly holiday"
        upcoming.append(entry)
    return {
        "today": {
            "date":          now.date().isoformat(),
            "status":        market_status(now),
            "trading_hours": TRADING_HOURS,
        },
        "upcoming": upcoming,
    }


def best_time_to_sell(trend: Optional[MarketTrend]) -> str:
    if trend is None:
        return "Monitor market conditions"
    if trend.trend == "bullish":
        return "Wait for 1-2 weeks - prices are rising"
    if trend.trend == "bearish":
        return "Sell immediately - prices are falling"
    return "Current time is good for selling"


def distance_to_market(location: Optional[Location], state: str) -> Optional[float]:
    if location is None or state not in STATE_CENTROIDS:
        return None
    return round(haversine_km((location.lat, location.lon), STATE_CENTROIDS[state]), 1)


def build_insights(commodity: str, prices: List[MarketPrice],
                   trend: Optional[MarketTrend],
                   location: Optional[Location] = None) -> MarketInsight:
    insights: List[str] = []
    recs: List[str] = []

    if prices:
        modals = [p.price.modal for p in prices]
        avg = sum(modals) / len(modals)
        insights.append(f"Average {commodity} price across markets: ₹{avg:.0f} per quintal")
        insights.append(f"Price range: ₹{min(modals):g} - ₹{max(modals):g} per quintal")
    else:
        avg = 0.0
        insights.append(f"No market data available for {commodity}")

    if trend is not None:
        a = trend.analysis
        insights.append(f"Market trend: {trend.trend} with {a.volatility_class} volatility")
        insights.append(f"Price prediction for next period: ₹{a.prediction.next_value:.0f} "
                        f"({a.prediction.confidence * 100:.0f}% confidence)")

    current = prices[0].trend.direction if prices and prices[0].trend else "stable"
    if current == UP:
        recs.append("Consider selling if you have stock - prices are rising")
        recs.append("Monitor market closely for peak selling opportunity")
    elif current == DOWN:
        recs.append("Hold stock if possible - prices are declining")
        recs.append("Look for alternative markets with better prices")
    else:
        recs.append("Stable market conditions - good time for planned sales")

    ranked = sorted(prices, key=lambda p: p.price.modal, reverse=True)[:5]
    best = [
        BestMarket(name=p.market, state=p.state, price=p.price.modal,
                   distance=distance_to_market(location, p.state))
        for p in ranked
    ]

    return MarketInsight(
        commodity=commodity,
        insights=insights,
        recommendations=recs,
        best_time_to_sell=best_time_to_sell(trend),
        best_markets=best,
        seasonal_pattern={
            "peak_months":   SEASONAL_PEAK,
            "low_months":    SEASONAL_LOW,
            "average_price": round(avg, 2),
        },
    )


def compare_markets(commodity: str, prices: List[MarketPrice]) -> dict:
    if not prices:
        return {"commodity": commodity, "markets": [],
                "insights": [f"No market data available for {commodity}"]}

    avg = sum(p.price.modal for p in prices) / len(prices)
    ranked = sorted(prices, key=lambda p: p.price.modal, reverse=True)
    markets = [
        {
            "market": p.market,
            "state":  p.state,
            "price":  p.price.modal,
            "rank":   i + 1,
            "percentage_difference": round((p.price.modal - avg) / avg * 100, 2) if avg else 0.0,
        }
        for i, p in enumerate(ranked)
    ]
    best, worst = markets[0], markets[-1]
    spread = best["price"] - worst["price"]
    spread_pct = spread / worst["price"] * 100 if worst["price"] else 0.0
    return {
        "commodity": commodity,
        "markets":   markets,
        "insights": [
            f"Best market: {best['market']} (₹{best['price']:g}/quintal)",
            f"Lowest market: {worst['market']} (₹{worst['price']:g}/quintal)",
            f"Price difference: ₹{spread:g}/quintal ({spread_pct:.1f}%)",
        ],
    }
