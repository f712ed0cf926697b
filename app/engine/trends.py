"""Trend analysis — weight trend, overtraining indicators, period summaries.

Pure functions over already-loaded log entries. Insufficient data is a
normal result (has_data=False / insufficient_data), never an error.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable

from app.engine.calc_config import DEFAULT_TREND_THRESHOLDS, TrendThresholds
from app.engine.calculation import round_half_up
from app.engine.models import (
    BodyStatsEntry,
    OvertrainingAnalysis,
    OvertrainingIndicators,
    PeriodTrend,
    ReportPeriod,
    RiskLevel,
    TrendDirection,
    WeightProgress,
    WeightTrend,
    WorkoutIntensity,
    WorkoutLogEntry,
)

logger = logging.getLogger(__name__)

PERIOD_DAYS: dict[ReportPeriod, int] = {
    ReportPeriod.weekly: 7,
    ReportPeriod.monthly: 30,
}


def _within(entries: Iterable, window_days: int, as_of: date | None) -> list:
    if as_of is None:
        return list(entries)
    start = as_of - timedelta(days=window_days)
    return [e for e in entries if start <= e.date <= as_of]


# ---------------------------------------------------------------------------
# Weight trend
# ---------------------------------------------------------------------------


def _direction(change: float, thresholds: TrendThresholds) -> TrendDirection:
    if change > thresholds.gaining_change_kg:
        return TrendDirection.gaining
    if change < thresholds.losing_change_kg:
        return TrendDirection.losing
    return TrendDirection.stable


def analyze_weight_trend(
    entries: Iterable[BodyStatsEntry],
    window_days: int = 14,
    as_of: date | None = None,
    thresholds: TrendThresholds = DEFAULT_TREND_THRESHOLDS,
) -> WeightTrend:
    """Weight change across the window, oldest vs. latest entry.

    Stagnation requires a full stagnation window (>= 14 days by default)
    regardless of how many entries it holds.
    """
    points = sorted(_within(entries, window_days, as_of), key=lambda e: e.date)
    if len(points) < 2:
        return WeightTrend(
            has_data=False,
            data_points=len(points),
            message="Insufficient data for trend analysis",
            window_days=window_days,
        )

    oldest, latest = points[0], points[-1]
    change = latest.weight - oldest.weight
    days_between = (latest.date - oldest.date).days
    weekly_rate = change / days_between * 7 if days_between > 0 else 0.0

    trend = WeightTrend(
        has_data=True,
        data_points=len(points),
        window_days=window_days,
        oldest_weight=oldest.weight,
        latest_weight=latest.weight,
        weight_change=change,
        days_between=days_between,
        weekly_rate=weekly_rate,
        is_stagnant=window_days >= thresholds.stagnation_min_window_days
        and change < thresholds.stagnation_max_change_kg,
        is_rapid_gain=weekly_rate > thresholds.rapid_gain_weekly_kg,
        direction=_direction(change, thresholds),
    )
    logger.debug(
        "Weight trend: points=%s change=%.2f days=%s weekly_rate=%.2f stagnant=%s rapid=%s",
        trend.data_points,
        change,
        days_between,
        weekly_rate,
        trend.is_stagnant,
        trend.is_rapid_gain,
    )
    return trend


# ---------------------------------------------------------------------------
# Overtraining
# ---------------------------------------------------------------------------


def _longest_high_run(workouts: list[WorkoutLogEntry]) -> int:
    run = best = 0
    for w in workouts:
        if w.intensity == WorkoutIntensity.high:
            run += 1
            best = max(best, run)
        else:
            run = 0
    return best


def _risk_level(score: int) -> RiskLevel:
    if score >= 3:
        return RiskLevel.high
    if score >= 2:
        return RiskLevel.moderate
    return RiskLevel.low


def analyze_overtraining(
    entries: Iterable[WorkoutLogEntry],
    window_days: int = 7,
    as_of: date | None = None,
    thresholds: TrendThresholds = DEFAULT_TREND_THRESHOLDS,
) -> OvertrainingAnalysis:
    """Four boolean indicators over the window; two or more means overtraining."""
    # Stable sort keeps same-day sessions in their logged order
    workouts = sorted(_within(entries, window_days, as_of), key=lambda w: w.date)
    if not workouts:
        return OvertrainingAnalysis(has_data=False, message="No workout data available")

    total = len(workouts)
    high = sum(1 for w in workouts if w.intensity == WorkoutIntensity.high)
    avg_duration = sum(w.duration for w in workouts) / total
    longest_run = _longest_high_run(workouts)

    indicators = OvertrainingIndicators(
        high_frequency=total > thresholds.max_workouts,
        excessive_high_intensity=high >= thresholds.max_high_intensity,
        long_average_duration=avg_duration > thresholds.max_average_duration_min,
        consecutive_high_intensity=longest_run >= thresholds.max_consecutive_high,
    )
    score = indicators.count()
    detected = score >= 2

    logger.debug(
        "Overtraining: workouts=%s high=%s avg_duration=%.1f run=%s score=%s",
        total,
        high,
        avg_duration,
        longest_run,
        score,
    )
    return OvertrainingAnalysis(
        has_data=True,
        total_workouts=total,
        high_intensity_workouts=high,
        average_duration=avg_duration,
        max_consecutive_high_intensity=longest_run,
        indicators=indicators,
        overtraining_score=score,
        overtraining_detected=detected,
        risk_level=_risk_level(score),
        recommendation="Reduce workout volume and add rest days" if detected else "Continue current workout plan",
    )


# ---------------------------------------------------------------------------
# Period summary (progress reports)
# ---------------------------------------------------------------------------


def summarize_weight_period(
    entries: Iterable[BodyStatsEntry],
    period: ReportPeriod,
    as_of: date | None = None,
    thresholds: TrendThresholds = DEFAULT_TREND_THRESHOLDS,
) -> WeightProgress:
    days = PERIOD_DAYS[period]
    points = sorted(_within(entries, days, as_of), key=lambda e: e.date)

    if not points:
        return WeightProgress(timeframe=period, days=days)

    weights = [p.weight for p in points]
    start, end = weights[0], weights[-1]
    change = end - start
    span = (points[-1].date - points[0].date).days
    change_per_week = change / span * 7 if span > 0 else 0.0

    if abs(change) < thresholds.period_stable_kg:
        trend = PeriodTrend.stable
    elif change > 0:
        trend = PeriodTrend.rapid_gain if change_per_week > thresholds.period_rapid_weekly_kg else PeriodTrend.gaining
    else:
        trend = PeriodTrend.rapid_loss if change_per_week < -thresholds.period_rapid_weekly_kg else PeriodTrend.losing

    return WeightProgress(
        timeframe=period,
        days=days,
        data_points=len(points),
        trend=trend,
        average_weight=round(sum(weights) / len(weights), 1),
        weight_change=round(change, 1),
        change_per_week=round(change_per_week, 2),
        start_weight=round(start, 1),
        end_weight=round(end, 1),
        consistency=round_half_up(len(points) / days * 100),
    )
