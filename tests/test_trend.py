"""Tests for the trend analyzer."""

import pytest

from live_engine.analytics.trend import TrendAnalyzer, compute_trend
from live_engine.config import TrendPolicy
from live_engine.models.series import DOWN, HIGH, LOW, MEDIUM, STABLE, UP, DataPoint


class TestComputeTrend:

    def test_rising_series(self):
        result = compute_trend([100, 105, 112])

        assert result.percentage_change == pytest.approx(12.0)
        assert result.direction == UP
        assert result.volatility_class == LOW
        # 112 + 12 % of 112 damped by 0.1
        assert result.prediction.next_value == pytest.approx(113.34)
        assert result.prediction.confidence == pytest.approx(0.91)
        assert result.points == 3

    def test_falling_series(self):
        result = compute_trend([100, 90])

        assert result.direction == DOWN
        assert result.percentage_change == pytest.approx(-10.0)
        assert result.prediction.next_value == pytest.approx(89.1)

    def test_accepts_datapoints(self):
        series = [DataPoint(timestamp=i, value=v) for i, v in enumerate([100, 105, 112])]
        assert compute_trend(series) == compute_trend([100, 105, 112])

    @pytest.mark.parametrize("series", [[], [42]])
    def test_insufficient_data_is_not_an_error(self, series):
        result = compute_trend(series)

        assert result.direction == STABLE
        assert result.percentage_change == 0
        assert result.prediction.confidence == 0.5
        assert result.prediction.next_value == (series[-1] if series else 0)

    def test_zero_first_value(self):
        result = compute_trend([0, 50])
        assert result.percentage_change == 0
        assert result.direction == STABLE

    def test_confidence_floor(self):
        result = compute_trend([10, 100, 5, 200])
        assert result.volatility_class == HIGH
        assert result.prediction.confidence == 0.5

    def test_policy_override(self):
        result = compute_trend([100, 105], TrendPolicy(direction_pct=10))
        assert result.direction == STABLE


class TestThresholds:

    @pytest.mark.parametrize("pct,expected", [
        (2.0, STABLE), (2.01, UP), (-2.0, STABLE), (-2.01, DOWN), (0.0, STABLE),
    ])
    def test_direction_is_strict(self, pct, expected):
        assert TrendAnalyzer().direction(pct) == expected

    @pytest.mark.parametrize("cv,expected", [
        (0.0, LOW), (0.049, LOW), (0.05, MEDIUM), (0.1, MEDIUM), (0.1001, HIGH),
    ])
    def test_volatility_buckets(self, cv, expected):
        assert TrendAnalyzer().volatility_class(cv) == expected


class TestPriceTrend:

    def test_month_long_history(self):
        history = [DataPoint(timestamp=86400 * i, value=100 + i) for i in range(31)]
        trend = TrendAnalyzer().price_trend(history)

        assert trend.direction == UP
        assert trend.change == 30
        assert trend.percentage == pytest.approx(30.0)
        assert trend.duration == "month"

    def test_single_point_history(self):
        trend = TrendAnalyzer().price_trend([DataPoint(timestamp=0, value=100)])

        assert trend.direction == STABLE
        assert trend.change == 0
        assert trend.duration == "day"

    def test_empty_history(self):
        trend = TrendAnalyzer().price_trend([])
        assert trend.direction == STABLE
        assert trend.percentage == 0
