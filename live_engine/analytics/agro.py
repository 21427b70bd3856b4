"""
Live Engine — Agronomy Calculator
──────────────────────────────────
Weather-derived indices and field advice:
  - Dew point (Magnus)
  - Heat index (Rothfusz; only at or above 27 °C)
  - Wind chill (only at or below 10 °C with wind ≥ 4.8 km/h)
  - Spraying-condition score
  - Agricultural block (soil, ET, GDD, frost / heat flags)
  - Recommendations and crop suitability for a snapshot
"""

import math
from typing import Dict, List, Optional

from live_engine.models.weather import AgriculturalData, WeatherSnapshot

FROST_RISK_C  = 5.0
HEAT_STRESS_C = 35.0
GDD_BASE_C    = 10.0

# Simplified requirements; unknown crops fall back to wheat
CROP_REQUIREMENTS: Dict[str, Dict[str, float]] = {
    "rice":      {"temp_min": 20, "temp_max": 35, "humidity_min": 70, "soil_moisture_min": 0.6},
    "wheat":     {"temp_min": 15, "temp_max": 25, "humidity_min": 50, "soil_moisture_min": 0.4},
    "cotton":    {"temp_min": 25, "temp_max": 35, "humidity_min": 60, "soil_moisture_min": 0.5},
    "sugarcane": {"temp_min": 20, "temp_max": 30, "humidity_min": 75, "soil_moisture_min": 0.7},
    "tomato":    {"temp_min": 18, "temp_max": 28, "humidity_min": 60, "soil_moisture_min": 0.5},
    "onion":     {"temp_min": 15, "temp_max": 25, "humidity_min": 50, "soil_moisture_min": 0.4},
}


def dew_point(temp: float, humidity: float) -> float:
    a, b = 17.27, 237.7
    humidity = max(humidity, 1.0)
    alpha = (a * temp) / (b + temp) + math.log(humidity / 100)
    return round((b * alpha) / (a - alpha))


def heat_index(temp: float, humidity: float) -> float:
    if temp < 27:
        return temp
    # Rothfusz regression is defined in °F
    t, rh = temp * 9 / 5 + 32, humidity
    hi = (-42.379 + 2.04901523 * t + 10.14333127 * rh - 0.22475541 * t * rh
          - 0.00683783 * t * t - 0.05481717 * rh * rh + 0.00122874 * t * t * rh
          + 0.00085282 * t * rh * rh - 0.00000199 * t * t * rh * rh)
    return round((hi - 32) * 5 / 9)


def wind_chill(temp: float, wind_kmh: float) -> float:
    if temp > 10 or wind_kmh < 4.8:
        return temp
    v = wind_kmh ** 0.16
    return round(13.12 + 0.6215 * temp - 11.37 * v + 0.3965 * temp * v)


def spraying_conditions(temp: float, humidity: float, wind_kmh: float) -> str:
    score = 0
    # temperature, ideal 15–25 °C
    if 15 <= temp <= 25:
        score += 2
    elif 10 <= temp <= 30:
        score += 1
    # humidity, ideal 50–80 %
    if 50 <= humidity <= 80:
        score += 2
    elif 40 <= humidity <= 90:
        score += 1
    # wind, ideal below 10 km/h
    if wind_kmh < 10:
        score += 2
    elif wind_kmh < 15:
        score += 1

    if score >= 5:
        return "Excellent"
    if score >= 4:
        return "Good"
    if score >= 2:
        return "Fair"
    if score >= 1:
        return "Poor"
    return "Not Recommended"


def irrigation_advice(soil_moisture: float) -> str:
    if soil_moisture < 0.3:
        return "Irrigation needed"
    if soil_moisture > 0.7:
        return "Adequate moisture"
    return "Monitor soil moisture"


def estimate_soil_moisture(humidity: float, rainfall_mm: float) -> float:
    """Rough proxy used when the upstream has no soil sensor data."""
    return round(max(0.0, min(1.0, 0.15 + humidity / 250 + rainfall_mm * 0.04)), 3)


def agricultural_data(temp: float, humidity: float, wind_kmh: float,
                      soil_moisture: float, soil_temperature: Optional[float] = None,
                      et_noise: float = 0.0) -> AgriculturalData:
    return AgriculturalData(
        soil_moisture=round(soil_moisture, 3),
        soil_temperature=round(temp if soil_temperature is None else soil_temperature, 1),
        evapotranspiration=round(max(0.0, (temp - GDD_BASE_C) * 0.1 + et_noise), 2),
        growing_degree_day=round(max(0.0, temp - GDD_BASE_C), 1),
        frost_risk=temp < FROST_RISK_C,
        heat_stress=temp > HEAT_STRESS_C,
        irrigation_advice=irrigation_advice(soil_moisture),
        spraying_conditions=spraying_conditions(temp, humidity, wind_kmh),
    )


def recommendations(snapshot: WeatherSnapshot) -> List[str]:
    current, agri = snapshot.current, snapshot.agricultural
    out: List[str] = []

    if current.temp > 35:
        out.append("High temperature: increase irrigation frequency and provide shade to sensitive crops")
    elif current.temp < 10:
        out.append("Low temperature: protect crops from cold damage and consider frost protection measures")

    if current.humidity > 85:
        out.append("High humidity: monitor for fungal diseases and ensure good air circulation")
    elif current.humidity < 40:
        out.append("Low humidity: increase irrigation and consider mulching to retain soil moisture")

    if current.wind_speed > 25:
        out.append("Strong winds: provide support to tall crops and avoid spraying operations")

    if agri.soil_moisture < 0.3:
        out.append("Low soil moisture: schedule irrigation soon")
    elif agri.soil_moisture > 0.8:
        out.append("High soil moisture: ensure proper drainage to prevent waterlogging")

    out.append(f"Spraying conditions: {agri.spraying_conditions.lower()}")

    if agri.heat_stress:
        out.append("Heat stress risk: provide shade and increase water supply")
    if agri.frost_risk:
        out.append("Frost risk: cover sensitive plants and use frost protection methods")
    return out


def crop_suitability(snapshot: WeatherSnapshot, crop: str) -> dict:
    """
    Score 0–100 in four 25-point checks: temperature band, humidity floor,
    soil moisture floor, and absence of frost / heat stress.
    Suitable at 75 or above.
    """
    current, agri = snapshot.current, snapshot.agricultural
    req = CROP_REQUIREMENTS.get(crop.lower().strip(), CROP_REQUIREMENTS["wheat"])
    score = 0
    notes: List[str] = []

    if req["temp_min"] <= current.temp <= req["temp_max"]:
        score += 25
    else:
        notes.append(f"Temperature ({current.temp:g}°C) is outside optimal range "
                     f"({req['temp_min']:g}-{req['temp_max']:g}°C)")

    if current.humidity >= req["humidity_min"]:
        score += 25
    else:
        notes.append(f"Humidity ({current.humidity:g}%) is below optimal level "
                     f"({req['humidity_min']:g}%+)")

    if agri.soil_moisture >= req["soil_moisture_min"]:
        score += 25
    else:
        notes.append(f"Soil moisture ({agri.soil_moisture * 100:.1f}%) is below optimal level "
                     f"({req['soil_moisture_min'] * 100:g}%+)")

    if not agri.frost_risk and not agri.heat_stress:
        score += 25
    else:
        if agri.frost_risk:
            notes.append("Frost risk detected")
        if agri.heat_stress:
            notes.append("Heat stress conditions")

    return {"crop": crop, "suitable": score >= 75, "score": score, "recommendations": notes}
