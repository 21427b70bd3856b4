"""
Live Engine — Weather Adapter
──────────────────────────────
OpenWeatherMap-style upstream, three calls in parallel:

  /weather         current conditions       (required)
  /forecast        3-hourly, 5 days         (optional, hourly + daily blocks)
  /air_pollution   AQI + components         (optional)

Only the current-conditions call decides success. The optional blocks
degrade to empty / synthetic without failing the fetch.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone, tzinfo
from typing import List, Optional

from live_engine.analytics import agro
from live_engine.config import Settings, is_configured
from live_engine.errors import ConfigurationError, FetchError, MalformedResponseError
from live_engine.fetchers.base import Fetcher
from live_engine.fetchers.http import get_json
from live_engine.fetchers.synthetic import AQI_LEVELS, synthesize_weather
from live_engine.models.topic import LIVE, WEATHER, Location, Topic
from live_engine.models.weather import (
    AirQuality, CurrentConditions, DailyForecast, HourlyForecast, WeatherSnapshot,
)

log = logging.getLogger("le.fetchers.weather")

MS_TO_KMH = 3.6


class WeatherFetcher(Fetcher):

    def __init__(self, settings: Optional[Settings] = None, **kwargs):
        settings = settings or Settings()
        kwargs.setdefault("tz", settings.tz)
        super().__init__(**kwargs)
        self.settings = settings

    @property
    def domain(self) -> str:
        return WEATHER

    @property
    def configured(self) -> bool:
        return is_configured(self.settings.weather_api_key)

    async def fetch_live(self, topic: Topic, previous: Optional[WeatherSnapshot] = None) -> WeatherSnapshot:
        if not self.configured:
            raise ConfigurationError("WEATHER_API_KEY missing", topic.key)

        location = topic.location or Location(lat=topic.param("lat"), lon=topic.param("lon"))
        base = self.settings.weather_api_url
        params = {"lat": location.lat, "lon": location.lon, "appid": self.settings.weather_api_key}
        client = await self.client()

        def _call(path: str, extra: Optional[dict] = None):
            return get_json(client, f"{base}/{path}", params={**params, **(extra or {})},
                            attempts=self.retry_attempts, delay=self.retry_delay)

        current, forecast, air = await asyncio.gather(
            _call("weather", {"units": "metric"}),
            _call("forecast", {"units": "metric"}),
            _call("air_pollution"),
            return_exceptions=True,
        )
        if isinstance(current, BaseException):
            if isinstance(current, FetchError):
                current.topic_key = current.topic_key or topic.key
            raise current

        snapshot = parse_current(current, location, self.clock())
        if isinstance(forecast, dict):
            snapshot.hourly, snapshot.daily = parse_forecast(forecast, self.tz)
        else:
            log.warning(f"{topic.key}: forecast unavailable ({forecast})")
        if isinstance(air, dict):
            snapshot.air_quality = parse_air_quality(air)
        else:
            log.warning(f"{topic.key}: air quality unavailable ({air})")
        return snapshot

    def synthesize(self, topic: Topic, previous: Optional[WeatherSnapshot] = None) -> WeatherSnapshot:
        location = topic.location or Location(lat=topic.param("lat", 0.0), lon=topic.param("lon", 0.0))
        return synthesize_weather(location, self.rng, self.now())


# ══════════════════════════════════════════════════════════════
# PARSERS
# ══════════════════════════════════════════════════════════════
def parse_current(data: dict, location: Location, fetched_at: float) -> WeatherSnapshot:
    try:
        main = data["main"]
        wind = data.get("wind") or {}
        weather = (data.get("weather") or [{}])[0]
        temp = float(main["temp"])
        humidity = float(main["humidity"])
        wind_kmh = float(wind.get("speed", 0)) * MS_TO_KMH
        rain = float((data.get("rain") or {}).get("1h", 0))
        gust = wind.get("gust")
        current = CurrentConditions(
            temp=round(temp, 1),
            humidity=humidity,
            wind_speed=round(wind_kmh, 1),
            wind_direction=float(wind.get("deg") or 0),
            description=weather.get("description", ""),
            condition=weather.get("main", ""),
            icon=weather.get("icon", ""),
            rainfall=rain,
            feels_like=round(float(main.get("feels_like", temp))),
            visibility=float(data.get("visibility", 10000)) / 1000,
            uv=0.0,
            pressure=float(main.get("pressure", 0)),
            cloud_cover=float((data.get("clouds") or {}).get("all", 0)),
            dew_point=agro.dew_point(temp, humidity),
            heat_index=agro.heat_index(temp, humidity),
            wind_chill=agro.wind_chill(temp, wind_kmh),
            gust_speed=round(float(gust) * MS_TO_KMH if gust else wind_kmh, 1),
        )
        name = data.get("name")
    except (KeyError, TypeError, ValueError, IndexError, AttributeError) as e:
        raise MalformedResponseError(f"Unexpected current-weather payload: {e!r}")

    moisture = agro.estimate_soil_moisture(humidity, rain)
    location = Location(
        lat=location.lat, lon=location.lon,
        name=location.name if location.name != "Your Location" else name or location.name,
        state=location.state, country=location.country,
    )
    return WeatherSnapshot(
        location=location,
        current=current,
        agricultural=agro.agricultural_data(temp, humidity, wind_kmh, moisture),
        fetched_at=fetched_at,
        source=LIVE,
    )


def parse_forecast(data: dict, tz: tzinfo = timezone.utc):
    """3-hourly list → (next 24 entries as hourly, up to 7 daily rollups by local date)."""
    items = data.get("list") or []
    hourly: List[HourlyForecast] = []
    by_day: "OrderedDict[str, list]" = OrderedDict()
    for item in items:
        try:
            ts = datetime.fromtimestamp(int(item["dt"]), tz=tz)
            main = item["main"]
            weather = (item.get("weather") or [{}])[0]
            entry = {
                "time":           ts,
                "temp":           float(main["temp"]),
                "humidity":       float(main.get("humidity", 0)),
                "rainfall":       float((item.get("rain") or {}).get("3h", 0)),
                "description":    weather.get("description", ""),
                "icon":           weather.get("icon", ""),
                "wind_speed":     float((item.get("wind") or {}).get("speed", 0)) * MS_TO_KMH,
                "pressure":       float(main.get("pressure", 0)),
                "cloud_cover":    float((item.get("clouds") or {}).get("all", 0)),
                "chance_of_rain": float(item.get("pop", 0)) * 100,
            }
        except (KeyError, TypeError, ValueError, IndexError, AttributeError) as e:
            log.warning(f"Skipping malformed forecast entry: {e!r}")
            continue
        if len(hourly) < 24:
            hourly.append(HourlyForecast(
                time=entry["time"].isoformat(),
                temp=round(entry["temp"]),
                humidity=entry["humidity"],
                rainfall=entry["rainfall"],
                description=entry["description"],
                icon=entry["icon"],
                wind_speed=round(entry["wind_speed"], 1),
                pressure=entry["pressure"],
                cloud_cover=entry["cloud_cover"],
                chance_of_rain=round(entry["chance_of_rain"]),
            ))
        by_day.setdefault(entry["time"].date().isoformat(), []).append(entry)

    daily: List[DailyForecast] = []
    for day, entries in list(by_day.items())[:7]:
        temps = [e["temp"] for e in entries]
        daily.append(DailyForecast(
            date=day,
            temp_max=round(max(temps)),
            temp_min=round(min(temps)),
            humidity=round(sum(e["humidity"] for e in entries) / len(entries)),
            rainfall=round(sum(e["rainfall"] for e in entries), 1),
            description=entries[0]["description"],
            icon=entries[0]["icon"],
            wind_speed=round(sum(e["wind_speed"] for e in entries) / len(entries), 1),
            sunrise="06:30",
            sunset="18:30",
            moon_phase="",
            chance_of_rain=round(max(e["chance_of_rain"] for e in entries)),
        ))
    return hourly, daily


def parse_air_quality(data: dict) -> Optional[AirQuality]:
    try:
        entry = data["list"][0]
        aqi = int(entry["main"]["aqi"])
        comp = entry.get("components") or {}
        return AirQuality(
            aqi=aqi,
            pm25=float(comp.get("pm2_5", 0)),
            pm10=float(comp.get("pm10", 0)),
            co=float(comp.get("co", 0)),
            no2=float(comp.get("no2", 0)),
            so2=float(comp.get("so2", 0)),
            o3=float(comp.get("o3", 0)),
            quality=AQI_LEVELS[max(0, min(aqi - 1, len(AQI_LEVELS) - 1))],
        )
    except (KeyError, TypeError, ValueError, IndexError, AttributeError) as e:
        log.warning(f"Malformed air-quality payload: {e!r}")
        return None
