"""Tests for weight trend, overtraining and period summaries."""

from __future__ import annotations

from datetime import timedelta

import pytest

from app.engine.models import PeriodTrend, ReportPeriod, RiskLevel, Trend, TrendDirection
from app.engine.trends import analyze_overtraining, analyze_weight_trend, summarize_weight_period

from tests.conftest import TODAY, stat, workout


def days_ago(n: int):
    return TODAY - timedelta(days=n)


# ---------------------------------------------------------------------------
# Weight trend
# ---------------------------------------------------------------------------


class TestWeightTrend:
    def test_stagnant(self):
        entries = [stat(days_ago(14), 70.0), stat(days_ago(7), 70.05), stat(TODAY, 70.1)]
        t = analyze_weight_trend(entries, 14, as_of=TODAY)
        assert t.has_data
        assert t.data_points == 3
        assert t.days_between == 14
        assert t.is_stagnant is True
        assert t.is_rapid_gain is False
        assert t.direction == TrendDirection.stable
        assert t.classification == Trend.stagnant

    def test_classification_serialized(self):
        t = analyze_weight_trend([stat(days_ago(14), 70.0), stat(TODAY, 70.15)], 14, as_of=TODAY)
        assert t.model_dump(mode="json")["classification"] == "stagnant"

    def test_no_classification_without_data(self):
        t = analyze_weight_trend([stat(TODAY, 70.0)], 14, as_of=TODAY)
        assert t.model_dump(mode="json")["classification"] is None

    def test_rapid_gain(self):
        entries = [stat(days_ago(14), 70.0), stat(days_ago(7), 71.0), stat(TODAY, 72.6)]
        t = analyze_weight_trend(entries, 14, as_of=TODAY)
        assert t.weekly_rate == pytest.approx(1.3)
        assert t.is_rapid_gain is True
        assert t.is_stagnant is False
        assert t.direction == TrendDirection.gaining
        assert t.classification == Trend.rapid_gain

    def test_steady_gain(self):
        entries = [stat(days_ago(14), 70.0), stat(TODAY, 71.0)]
        t = analyze_weight_trend(entries, 14, as_of=TODAY)
        assert t.classification == Trend.gaining
        assert t.weekly_rate == pytest.approx(0.5)

    def test_losing_is_also_stagnant(self):
        entries = [stat(days_ago(10), 71.0), stat(TODAY, 70.0)]
        t = analyze_weight_trend(entries, 14, as_of=TODAY)
        assert t.direction == TrendDirection.losing
        assert t.is_stagnant is True

    def test_short_window_never_stagnant(self):
        entries = [stat(days_ago(6), 70.0), stat(TODAY, 70.0)]
        t = analyze_weight_trend(entries, 7, as_of=TODAY)
        assert t.is_stagnant is False
        assert t.classification == Trend.stable

    def test_insufficient_data(self):
        t = analyze_weight_trend([stat(TODAY, 70.0)], 14, as_of=TODAY)
        assert t.has_data is False
        assert t.data_points == 1
        assert t.classification is None

    def test_same_day_entries_have_zero_rate(self):
        t = analyze_weight_trend([stat(TODAY, 70.0), stat(TODAY, 70.4)], 14)
        assert t.days_between == 0
        assert t.weekly_rate == 0.0

    def test_entries_outside_window_ignored(self):
        entries = [stat(days_ago(30), 60.0), stat(days_ago(14), 70.0), stat(TODAY, 70.1)]
        t = analyze_weight_trend(entries, 14, as_of=TODAY)
        assert t.data_points == 2
        assert t.oldest_weight == 70.0

    def test_unsorted_input(self):
        entries = [stat(TODAY, 72.6), stat(days_ago(14), 70.0)]
        t = analyze_weight_trend(entries, 14, as_of=TODAY)
        assert t.weight_change == pytest.approx(2.6)


# ---------------------------------------------------------------------------
# Overtraining
# ---------------------------------------------------------------------------


class TestOvertraining:
    def test_daily_high_intensity(self):
        entries = [workout(days_ago(i), "high") for i in range(7)]
        o = analyze_overtraining(entries, 7, as_of=TODAY)
        assert o.total_workouts == 7
        assert o.high_intensity_workouts == 7
        assert o.max_consecutive_high_intensity == 7
        assert o.indicators.high_frequency
        assert o.indicators.excessive_high_intensity
        assert o.indicators.consecutive_high_intensity
        assert not o.indicators.long_average_duration
        assert o.overtraining_score == 3
        assert o.overtraining_detected is True
        assert o.risk_level == RiskLevel.high
        assert o.recommendation == "Reduce workout volume and add rest days"

    def test_five_of_seven_high_with_three_in_a_row(self):
        # Oldest to newest: H H L H H H L
        pattern = ["high", "high", "light", "high", "high", "high", "light"]
        entries = [workout(days_ago(6 - i), intensity) for i, intensity in enumerate(pattern)]
        o = analyze_overtraining(entries, 7, as_of=TODAY)
        assert o.total_workouts == 7
        assert o.high_intensity_workouts == 5
        assert o.max_consecutive_high_intensity == 3
        assert o.indicators.high_frequency is True
        assert o.indicators.excessive_high_intensity is True
        assert o.indicators.long_average_duration is False
        assert o.indicators.consecutive_high_intensity is True
        assert o.overtraining_score == 3
        assert o.risk_level == RiskLevel.high

    def test_four_high_is_not_excessive(self):
        pattern = ["high", "light", "high", "light", "high", "light", "high"]
        entries = [workout(days_ago(6 - i), intensity) for i, intensity in enumerate(pattern)]
        o = analyze_overtraining(entries, 7, as_of=TODAY)
        assert o.high_intensity_workouts == 4
        assert o.indicators.excessive_high_intensity is False
        assert o.indicators.consecutive_high_intensity is False
        assert o.overtraining_score == 1
        assert o.overtraining_detected is False

    def test_moderate_risk(self):
        entries = [
            workout(days_ago(6), "high", 130),
            workout(days_ago(5), "high", 130),
            workout(days_ago(4), "high", 130),
            workout(days_ago(2), "light", 130),
            workout(days_ago(1), "light", 130),
        ]
        o = analyze_overtraining(entries, 7, as_of=TODAY)
        assert o.overtraining_score == 2
        assert o.risk_level == RiskLevel.moderate
        assert o.overtraining_detected is True

    def test_consecutive_run_uses_date_order(self):
        entries = [
            workout(days_ago(1), "high"),
            workout(days_ago(3), "high"),
            workout(days_ago(2), "light"),
            workout(days_ago(4), "high"),
        ]
        o = analyze_overtraining(entries, 7, as_of=TODAY)
        assert o.max_consecutive_high_intensity == 2

    def test_single_indicator_is_low_risk(self):
        entries = [workout(days_ago(i), "moderate") for i in range(7)]
        o = analyze_overtraining(entries, 7, as_of=TODAY)
        assert o.overtraining_score == 1
        assert o.overtraining_detected is False
        assert o.risk_level == RiskLevel.low
        assert o.recommendation == "Continue current workout plan"

    def test_no_workouts(self):
        o = analyze_overtraining([], 7, as_of=TODAY)
        assert o.has_data is False
        assert o.overtraining_detected is False


# ---------------------------------------------------------------------------
# Period summary
# ---------------------------------------------------------------------------


class TestSummarizeWeightPeriod:
    def test_weekly_gaining(self):
        w = summarize_weight_period([stat(days_ago(6), 70.0), stat(TODAY, 70.6)], ReportPeriod.weekly, TODAY)
        assert w.days == 7
        assert w.trend == PeriodTrend.gaining
        assert w.weight_change == 0.6
        assert w.change_per_week == 0.7
        assert w.average_weight == 70.3
        assert w.consistency == 29

    def test_rapid_loss(self):
        w = summarize_weight_period([stat(days_ago(2), 72.0), stat(TODAY, 71.0)], ReportPeriod.weekly, TODAY)
        assert w.trend == PeriodTrend.rapid_loss
        assert w.change_per_week == -3.5

    def test_monthly_stable(self):
        entries = [stat(days_ago(20), 70.0), stat(days_ago(10), 70.2), stat(TODAY, 70.1)]
        w = summarize_weight_period(entries, ReportPeriod.monthly, TODAY)
        assert w.days == 30
        assert w.trend == PeriodTrend.stable

    def test_no_data(self):
        w = summarize_weight_period([], ReportPeriod.monthly, TODAY)
        assert w.trend == PeriodTrend.insufficient_data
        assert w.data_points == 0
        assert w.average_weight is None
        assert w.consistency == 0

    def test_single_point_is_stable(self):
        w = summarize_weight_period([stat(TODAY, 70.0)], ReportPeriod.weekly, TODAY)
        assert w.trend == PeriodTrend.stable
        assert w.change_per_week == 0.0
