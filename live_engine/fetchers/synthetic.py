"""
Live Engine — Synthetic Data
─────────────────────────────
Plausible stand-ins used when the upstream is down or unconfigured.
This is the last resort: nothing in here may raise.

Weather
  temperature  diurnal sine around 25 °C (min ~03:00, max ~15:00) ± noise,
               clamped to 15–35 °C
  humidity     40–95 %
  wind         0–25 km/h
  rain         ~30 % chance of a light shower (≤ 5 mm)

Market
  price        base_price(commodity) * (1 + uniform(-10 %, +10 %))
  volume       arrival 100–600 quintals, 60–95 % of it sold
  history      31 daily points converging on today's price

All randomness comes from the injected random.Random; pass a seeded
instance to get repeatable output.
"""

import math
import random
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from live_engine.analytics import agro
from live_engine.analytics.insights import market_status, quality_grade
from live_engine.models.market import MarketPrice, PriceRange, Volume
from live_engine.models.series import DataPoint
from live_engine.models.topic import SYNTHETIC, Location
from live_engine.models.weather import (
    AirQuality, CurrentConditions, DailyForecast, HourlyForecast, WeatherSnapshot,
)

TEMP_FLOOR_C   = 15.0
TEMP_CEILING_C = 35.0
TEMP_MEAN_C    = 25.0
TEMP_SWING_C   = 10.0
TEMP_NOISE_C   = 2.0

PRICE_JITTER   = 0.10
HISTORY_DAYS   = 30
DEFAULT_BASE_PRICE = 2000

DEFAULT_COMMODITIES = [
    "Rice", "Wheat", "Cotton", "Sugarcane", "Onion", "Tomato",
    "Potato", "Soybean", "Mustard", "Groundnut", "Maize", "Bajra",
]

STATES = [
    "Maharashtra", "Uttar Pradesh", "Madhya Pradesh", "Gujarat",
    "Rajasthan", "Karnataka", "Andhra Pradesh", "Telangana",
    "Tamil Nadu", "West Bengal", "Punjab", "Haryana",
]

MARKET_KINDS = [
    "APMC Market", "Mandi", "Wholesale Market", "Regulated Market",
    "Farmers Market", "Cooperative Market",
]

# ₹ per quintal
BASE_PRICES = {
    "Rice": 3000, "Wheat": 2200, "Cotton": 6000, "Sugarcane": 350,
    "Onion": 1500, "Tomato": 2000, "Potato": 1200, "Soybean": 4500,
    "Mustard": 5500, "Groundnut": 5000, "Maize": 1800, "Bajra": 2000,
}

VARIETIES = {
    "Rice":      ["Basmati", "Non-Basmati", "Parboiled", "Brown Rice"],
    "Wheat":     ["Sharbati", "Lokwan", "Durum", "Emmer"],
    "Cotton":    ["Long Staple", "Medium Staple", "Short Staple"],
    "Sugarcane": ["Co-86032", "Co-0238", "Co-62175"],
    "Onion":     ["Nasik Red", "Bangalore Rose", "Pusa Red"],
    "Tomato":    ["Hybrid", "Desi", "Cherry", "Roma"],
    "Potato":    ["Chipsona", "Kufri Jyoti", "Kufri Pukhraj"],
    "Soybean":   ["JS-335", "JS-9305", "MACS-450"],
    "Mustard":   ["Pusa Bold", "Kranti", "Varuna"],
    "Groundnut": ["TMV-2", "JL-24", "TAG-24"],
}

DESCRIPTIONS = [
    "clear sky", "few clouds", "scattered clouds", "broken clouds",
    "light rain", "moderate rain", "heavy rain", "thunderstorm",
    "mist", "fog", "overcast clouds",
]

MOON_PHASES = [
    "New Moon", "Waxing Crescent", "First Quarter", "Waxing Gibbous",
    "Full Moon", "Waning Gibbous", "Last Quarter", "Waning Crescent",
]

AQI_LEVELS = [
    "Good", "Moderate", "Unhealthy for Sensitive Groups",
    "Unhealthy", "Very Unhealthy", "Hazardous",
]

# timeframe → (periods, step)
TIMEFRAMES = {
    "daily":   (24, timedelta(hours=1)),
    "weekly":  (7,  timedelta(days=1)),
    "monthly": (30, timedelta(days=1)),
    "yearly":  (12, timedelta(days=30)),
}


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def base_price(commodity: str) -> float:
    for name, price in BASE_PRICES.items():
        if name.lower() == (commodity or "").strip().lower():
            return price
    return DEFAULT_BASE_PRICE


def diurnal_temperature(now: datetime, rng: random.Random) -> float:
    # reads the wall clock of `now`; callers pass local time
    hour = now.hour + now.minute / 60
    curve = TEMP_MEAN_C + TEMP_SWING_C * math.sin(2 * math.pi * (hour - 9) / 24)
    return round(_clamp(curve + rng.uniform(-TEMP_NOISE_C, TEMP_NOISE_C),
                        TEMP_FLOOR_C, TEMP_CEILING_C), 1)


# ══════════════════════════════════════════════════════════════
# WEATHER
# ══════════════════════════════════════════════════════════════
def synthesize_weather(location: Optional[Location], rng: random.Random,
                       now: datetime) -> WeatherSnapshot:
    location = location or Location(lat=0.0, lon=0.0)
    temp = diurnal_temperature(now, rng)
    humidity = round(rng.uniform(40, 95))
    wind = round(rng.uniform(0, 25), 1)
    rain = round(rng.uniform(0, 5), 1) if rng.random() > 0.7 else 0.0

    current = CurrentConditions(
        temp=temp,
        humidity=humidity,
        wind_speed=wind,
        wind_direction=round(rng.uniform(0, 360)),
        description=rng.choice(DESCRIPTIONS),
        condition="Rain" if rain else "Clear",
        icon="10d" if rain else "01d",
        rainfall=rain,
        feels_like=round(temp + rng.uniform(-2, 2)),
        visibility=round(rng.uniform(8, 15), 1),
        uv=round(rng.uniform(0, 11)),
        pressure=round(rng.uniform(1010, 1030)),
        cloud_cover=round(rng.uniform(0, 100)),
        dew_point=agro.dew_point(temp, humidity),
        heat_index=agro.heat_index(temp, humidity),
        wind_chill=agro.wind_chill(temp, wind),
        gust_speed=round(wind + rng.uniform(0, 10), 1),
    )

    soil_moisture = rng.uniform(0.3, 0.7)
    agricultural = agro.agricultural_data(
        temp, humidity, wind, soil_moisture,
        soil_temperature=temp + rng.uniform(-2, 2),
        et_noise=rng.uniform(0, 2),
    )

    return WeatherSnapshot(
        location=location,
        current=current,
        agricultural=agricultural,
        fetched_at=now.timestamp(),
        source=SYNTHETIC,
        hourly=_hourly(rng, now),
        daily=_daily(rng, now),
        air_quality=_air_quality(rng),
    )


def _hourly(rng: random.Random, now: datetime, hours: int = 24) -> List[HourlyForecast]:
    out = []
    for i in range(hours):
        t = now + timedelta(hours=i)
        out.append(HourlyForecast(
            time=t.isoformat(),
            temp=diurnal_temperature(t, rng),
            humidity=round(rng.uniform(50, 90)),
            rainfall=round(rng.uniform(0, 3), 1) if rng.random() > 0.8 else 0.0,
            description=rng.choice(DESCRIPTIONS),
            icon="01d",
            wind_speed=round(rng.uniform(5, 15)),
            pressure=round(rng.uniform(1010, 1030)),
            cloud_cover=round(rng.uniform(0, 100)),
            chance_of_rain=round(rng.uniform(0, 100)),
        ))
    return out


def _daily(rng: random.Random, now: datetime, days: int = 7) -> List[DailyForecast]:
    out = []
    for i in range(days):
        d = now + timedelta(days=i)
        mid = TEMP_MEAN_C + math.sin(i / 7 * 2 * math.pi) * 5
        out.append(DailyForecast(
            date=d.date().isoformat(),
            temp_max=round(_clamp(mid + 5 + rng.uniform(0, 5), TEMP_FLOOR_C, TEMP_CEILING_C)),
            temp_min=round(_clamp(mid - 5 - rng.uniform(0, 5), TEMP_FLOOR_C, TEMP_CEILING_C)),
            humidity=round(rng.uniform(60, 90)),
            rainfall=round(rng.uniform(0, 10), 1) if rng.random() > 0.6 else 0.0,
            description=rng.choice(DESCRIPTIONS),
            icon="01d",
            wind_speed=round(rng.uniform(5, 20)),
            sunrise="06:30",
            sunset="18:30",
            moon_phase=MOON_PHASES[i % len(MOON_PHASES)],
            chance_of_rain=round(rng.uniform(0, 100)),
        ))
    return out


def _air_quality(rng: random.Random) -> AirQuality:
    aqi = rng.randint(1, 5)
    return AirQuality(
        aqi=aqi,
        pm25=round(rng.uniform(0, 100)),
        pm10=round(rng.uniform(0, 150)),
        co=round(rng.uniform(0, 1000)),
        no2=round(rng.uniform(0, 100)),
        so2=round(rng.uniform(0, 50)),
        o3=round(rng.uniform(0, 200)),
        quality=AQI_LEVELS[aqi - 1],
    )


# ══════════════════════════════════════════════════════════════
# MARKET
# ══════════════════════════════════════════════════════════════
def synthesize_prices(commodities: Optional[Iterable[str]], rng: random.Random,
                      now: datetime, markets_per_commodity: int = 3,
                      states: Optional[Iterable[str]] = None) -> List[MarketPrice]:
    names = [c for c in (commodities or ()) if c] or DEFAULT_COMMODITIES
    state_pool = [s for s in (states or ()) if s] or STATES
    status = market_status(now)
    out: List[MarketPrice] = []

    for commodity in names:
        current = round(base_price(commodity) * (1 + rng.uniform(-PRICE_JITTER, PRICE_JITTER)))
        for j in range(markets_per_commodity):
            state = rng.choice(state_pool)
            market = f"{rng.choice(MARKET_KINDS)} {state}"
            arrival = round(rng.uniform(100, 600))
            sold = round(arrival * rng.uniform(0.6, 0.95))
            out.append(MarketPrice(
                id=f"{commodity}_{state}_{j}".replace(" ", "-"),
                commodity=commodity,
                variety=rng.choice(VARIETIES.get(commodity, ["Common"])),
                market=market,
                state=state,
                district=f"District {j + 1}",
                price=PriceRange(
                    min=round(current * 0.9),
                    max=round(current * 1.1),
                    modal=current,
                    average=current,
                ),
                volume=Volume(arrival=arrival, sold=sold, unsold=arrival - sold),
                arrival_date=(now - timedelta(seconds=rng.uniform(0, 86400))).date().isoformat(),
                last_updated=(now - timedelta(seconds=rng.uniform(0, 3600))).isoformat(),
                quality=quality_grade(current),
                market_status=status,
                price_history=price_history(current, rng, now),
            ))
    return out


def price_history(current: float, rng: random.Random, now: datetime,
                  days: int = HISTORY_DAYS) -> List[DataPoint]:
    """Daily points that wander up to ±5 % in the past and land on today's price."""
    out = []
    for i in range(days, -1, -1):
        when = now - timedelta(days=i)
        variation = rng.uniform(-0.05, 0.05)
        value = round(current * (1 + variation * (i / days)))
        out.append(DataPoint(timestamp=when.timestamp(), value=value))
    return out


def trend_series(base: float, timeframe: str, rng: random.Random,
                 now: datetime) -> List[DataPoint]:
    """One cycle of a ±10 % sine with ±2.5 % noise, sampled over the timeframe."""
    periods, step = TIMEFRAMES.get(timeframe, TIMEFRAMES["weekly"])
    out = []
    for i in range(periods, -1, -1):
        when = now - step * i
        wave = math.sin((periods - i) / periods * math.pi * 2) * 0.1
        noise = rng.uniform(-0.025, 0.025)
        out.append(DataPoint(
            timestamp=when.timestamp(),
            value=round(base * (1 + wave + noise)),
            volume=round(rng.uniform(100, 500)),
        ))
    return out
