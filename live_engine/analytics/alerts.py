"""
Live Engine — Alert Generator
──────────────────────────────
Evaluates a fetched dataset against fixed thresholds and emits typed,
severity-tagged alerts. Every rule is evaluated independently per item,
so one item may raise zero, one or several alerts.

Market rules (per price record)
  price_spike   change >  15 %        high if > 25 %, else medium
  price_drop    change < -15 %        high if < -25 %, else medium
  high_demand   sold / arrival > 0.9  medium
  low_supply    arrival < 50          medium

Weather rules (current conditions)
  frost         temp < 5 °C           severe
  heat_stress   temp > 35 °C          moderate
  strong_wind   wind > 30 km/h        moderate
  heavy_rain    rain > 10 mm/h        moderate

All comparisons are strict. Alerts are stamped with the generation they
were derived from and are never edited afterwards.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Tuple, Union

from live_engine.config import AlertThresholds
from live_engine.models.alert import (
    FROST, HEAT_STRESS, HEAVY_RAIN, HIGH_DEMAND, LOW_SUPPLY, PRICE_DROP,
    PRICE_SPIKE, SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_MODERATE,
    SEVERITY_SEVERE, STRONG_WIND, Alert,
)
from live_engine.models.market import MarketPrice, MarketSnapshot
from live_engine.models.weather import WeatherSnapshot

log = logging.getLogger("le.alerts")

Dataset = Union[MarketSnapshot, WeatherSnapshot, Iterable[MarketPrice]]


class AlertGenerator:

    def __init__(self, thresholds: Optional[AlertThresholds] = None,
                 clock: Callable[[], float] = time.time):
        self.thresholds = thresholds or AlertThresholds()
        self._clock = clock

    def evaluate(self, dataset: Dataset) -> Tuple[Alert, ...]:
        if isinstance(dataset, WeatherSnapshot):
            alerts = self.evaluate_weather(dataset)
        elif isinstance(dataset, MarketSnapshot):
            alerts = self.evaluate_prices(dataset.prices, dataset.fetched_at)
        else:
            alerts = self.evaluate_prices(list(dataset))
        if alerts:
            log.info(f"{len(alerts)} alert(s): {sorted({a.type for a in alerts})}")
        return tuple(alerts)

    # ── Market ────────────────────────────────────────────────
    def evaluate_prices(self, prices: Iterable[MarketPrice],
                        generation_ts: Optional[float] = None) -> List[Alert]:
        now = self._clock()
        stamp = int(generation_ts if generation_ts is not None else now)
        t = self.thresholds
        alerts: List[Alert] = []

        for p in prices:
            pct = p.trend.percentage if p.trend else 0.0

            if pct > t.price_spike_pct:
                alerts.append(Alert(
                    id=f"spike_{p.id}_{stamp}", type=PRICE_SPIKE, subject=p.commodity,
                    message=f"{p.commodity} price increased by {pct:.1f}% in {p.market}",
                    severity=SEVERITY_HIGH if pct > t.price_severe_pct else SEVERITY_MEDIUM,
                    timestamp=now, action_required=True,
                ))

            if pct < -t.price_spike_pct:
                alerts.append(Alert(
                    id=f"drop_{p.id}_{stamp}", type=PRICE_DROP, subject=p.commodity,
                    message=f"{p.commodity} price dropped by {abs(pct):.1f}% in {p.market}",
                    severity=SEVERITY_HIGH if pct < -t.price_severe_pct else SEVERITY_MEDIUM,
                    timestamp=now, action_required=True,
                ))

            arrival = p.volume.arrival
            if arrival > 0 and p.volume.sold / arrival > t.high_demand_ratio:
                alerts.append(Alert(
                    id=f"demand_{p.id}_{stamp}", type=HIGH_DEMAND, subject=p.commodity,
                    message=(f"High demand for {p.commodity} in {p.market} - "
                             f"{p.volume.sold / arrival * 100:.1f}% sold"),
                    severity=SEVERITY_MEDIUM, timestamp=now, action_required=False,
                ))

            if arrival < t.low_supply_floor:
                alerts.append(Alert(
                    id=f"supply_{p.id}_{stamp}", type=LOW_SUPPLY, subject=p.commodity,
                    message=(f"Low supply of {p.commodity} in {p.market} - "
                             f"only {arrival:g} {p.unit.lower()}s arrived"),
                    severity=SEVERITY_MEDIUM, timestamp=now, action_required=False,
                ))

        return alerts

    # ── Weather ───────────────────────────────────────────────
    def evaluate_weather(self, snapshot: WeatherSnapshot) -> List[Alert]:
        now = self._clock()
        stamp = int(snapshot.fetched_at)
        where = snapshot.location.name
        c = snapshot.current
        t = self.thresholds
        alerts: List[Alert] = []

        if c.temp < t.frost_temp_c:
            alerts.append(Alert(
                id=f"frost_{where}_{stamp}", type=FROST, subject="temperature",
                message=(f"Frost warning in {where}: {c.temp:.1f}°C. "
                         "Protect crops from frost damage."),
                severity=SEVERITY_SEVERE, timestamp=now, action_required=True,
            ))

        if c.temp > t.heat_stress_temp_c:
            alerts.append(Alert(
                id=f"heat_{where}_{stamp}", type=HEAT_STRESS, subject="temperature",
                message=(f"High temperature in {where}: {c.temp:.1f}°C. Provide shade "
                         "to sensitive crops and increase irrigation."),
                severity=SEVERITY_MODERATE, timestamp=now, action_required=True,
            ))

        if c.wind_speed > t.strong_wind_kmh:
            alerts.append(Alert(
                id=f"wind_{where}_{stamp}", type=STRONG_WIND, subject="wind_speed",
                message=(f"Strong wind in {where}: {c.wind_speed:.0f} km/h. "
                         "Secure crops and delay spraying operations."),
                severity=SEVERITY_MODERATE, timestamp=now, action_required=True,
            ))

        if c.rainfall > t.heavy_rain_mm_h:
            alerts.append(Alert(
                id=f"rain_{where}_{stamp}", type=HEAVY_RAIN, subject="rainfall",
                message=(f"Heavy rain in {where}: {c.rainfall:.1f} mm/h. "
                         "Ensure proper field drainage."),
                severity=SEVERITY_MODERATE, timestamp=now, action_required=True,
            ))

        return alerts
