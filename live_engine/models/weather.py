"""
Normalised weather snapshot. The live adapter and the synthetic generator
both produce exactly this shape, whatever the upstream schema looks like.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional

from live_engine.models.topic import Location, LIVE


@dataclass
class CurrentConditions:
    temp:           float     # °C
    humidity:       float     # %
    wind_speed:     float     # km/h
    wind_direction: float     # degrees
    description:    str
    condition:      str
    icon:           str
    rainfall:       float     # mm over the last hour
    feels_like:     float
    visibility:     float     # km
    uv:             float
    pressure:       float     # hPa
    cloud_cover:    float     # %
    dew_point:      float
    heat_index:     float
    wind_chill:     float
    gust_speed:     float     # km/h


@dataclass
class HourlyForecast:
    time:           str
    temp:           float
    humidity:       float
    rainfall:       float
    description:    str
    icon:           str
    wind_speed:     float
    pressure:       float
    cloud_cover:    float
    chance_of_rain: float


@dataclass
class DailyForecast:
    date:           str
    temp_max:       float
    temp_min:       float
    humidity:       float
    rainfall:       float
    description:    str
    icon:           str
    wind_speed:     float
    sunrise:        str
    sunset:         str
    moon_phase:     str
    chance_of_rain: float


@dataclass
class AirQuality:
    aqi:     int
    pm25:    float
    pm10:    float
    co:      float
    no2:     float
    so2:     float
    o3:      float
    quality: str


@dataclass
class AgriculturalData:
    soil_moisture:       float    # 0..1
    soil_temperature:    float
    evapotranspiration:  float
    growing_degree_day:  float
    frost_risk:          bool
    heat_stress:         bool
    irrigation_advice:   str
    spraying_conditions: str


@dataclass
class WeatherSnapshot:
    location:     Location
    current:      CurrentConditions
    agricultural: AgriculturalData
    fetched_at:   float
    source:       str = LIVE
    hourly:       List[HourlyForecast] = field(default_factory=list)
    daily:        List[DailyForecast] = field(default_factory=list)
    air_quality:  Optional[AirQuality] = None

    def to_dict(self) -> dict:
        return asdict(self)
