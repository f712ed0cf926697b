"""Engine orchestration — load logs, run the pure analyzers, assemble results.

Reads fan out concurrently, one session per read, under a single timeout.
A timed-out or failed read aborts the whole operation; no partial analysis
is ever returned or persisted.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.engine import calculation, connector, decisions, scoring, trends
from app.engine.errors import LogReadTimeout, NotFound
from app.engine.models import (
    AdaptiveAnalysis,
    CalorieLogEntry,
    CaloriePlan,
    ProgressReport,
    ReportPeriod,
    UserRecord,
)

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


def _today(now: datetime, tz_name: str | None = None) -> date:
    return now.astimezone(ZoneInfo(tz_name or settings.default_tz)).date()


async def _read(factory: SessionFactory, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    async with factory() as session:
        return await fn(session, *args)


async def _fan_out(*reads: Awaitable[Any]) -> list[Any]:
    try:
        return await asyncio.wait_for(asyncio.gather(*reads), timeout=settings.log_read_timeout_s)
    except asyncio.TimeoutError:
        raise LogReadTimeout(f"Log reads did not finish within {settings.log_read_timeout_s}s")


def _require(user: UserRecord | None, user_id: str) -> UserRecord:
    if user is None:
        raise NotFound(f"User not found: {user_id}")
    return user


# ---------------------------------------------------------------------------
# Adaptive analysis
# ---------------------------------------------------------------------------


async def run_adaptive_analysis(factory: SessionFactory, user_id: str, now: datetime) -> AdaptiveAnalysis:
    """Weight trend + overtraining + decision for one user. Read-only."""
    today = _today(now)
    weight_window = settings.stagnation_window_days
    workout_window = settings.overtraining_window_days

    user, stats, workouts = await _fan_out(
        _read(factory, connector.fetch_user, user_id),
        _read(factory, connector.fetch_body_stats, user_id, today - timedelta(days=weight_window), today),
        _read(factory, connector.fetch_workout_logs, user_id, today - timedelta(days=workout_window), today),
    )
    user = _require(user, user_id)

    trend = trends.analyze_weight_trend(stats, weight_window, as_of=today)
    overtraining = trends.analyze_overtraining(workouts, workout_window, as_of=today)
    carbs = user.calculations.macro_targets.carbs if user.calculations else None
    decision = decisions.decide(trend, overtraining, user.profile.goal_intensity, carbs)

    logger.info(
        "Analysis completed for user %s: adaptation_needed=%s calories=%s overtraining=%s",
        user_id,
        decision.needed,
        decision.changes.calorie_adjustment,
        overtraining.overtraining_detected,
    )
    return AdaptiveAnalysis(
        user_id=user_id,
        timestamp=now,
        trend=trend,
        overtraining=overtraining,
        recommendations=decision.recommendations,
        adaptation_needed=decision.needed,
        trigger=decision.trigger,
        summary=decision.reasoning,
    )


# ---------------------------------------------------------------------------
# Progress report
# ---------------------------------------------------------------------------


async def build_progress_report(
    factory: SessionFactory,
    user_id: str,
    period: ReportPeriod,
    now: datetime,
) -> ProgressReport:
    today = _today(now)
    window = settings.consistency_window_days
    period_start = now - timedelta(days=trends.PERIOD_DAYS[period])

    user, stats, workouts, calorie_logs, met_dates, adaptations = await _fan_out(
        _read(factory, connector.fetch_user, user_id),
        _read(factory, connector.fetch_body_stats, user_id),
        _read(factory, connector.fetch_workout_logs, user_id),
        _read(factory, connector.fetch_calorie_logs, user_id, today - timedelta(days=window), today),
        _read(factory, connector.fetch_calorie_streak, user_id),
        _read(factory, connector.fetch_adaptations_in_range, user_id, period_start, now),
    )
    _require(user, user_id)

    inputs = scoring.ProgressInputs(
        body_stats=stats,
        workouts=workouts,
        calorie_logs=calorie_logs,
        current_streak=scoring.calorie_streak(met_dates, today),
        adaptations=adaptations,
        consistency_window_days=window,
    )
    report = scoring.generate_progress_report(inputs, period, now)
    logger.info("Progress report for user %s: period=%s score=%s", user_id, period.value, report.progress_score)
    return report


# ---------------------------------------------------------------------------
# Target recalculation
# ---------------------------------------------------------------------------


async def recalculate_user_targets(factory: SessionFactory, user_id: str, now: datetime) -> CaloriePlan:
    """Recompute the calorie plan from the stored profile and persist the new state."""
    async with factory() as session:
        user = _require(await connector.fetch_user(session, user_id), user_id)
        plan = calculation.compute_calorie_plan(user.profile)
        state = calculation.calculation_state_from_plan(plan, now)
        await connector.write_user_calculation_state(session, user_id, state)
        await session.commit()

    logger.info("Targets recalculated for user %s: target_calories=%s", user_id, plan.target_calories)
    return plan


# ---------------------------------------------------------------------------
# Calorie logging
# ---------------------------------------------------------------------------


async def log_calories(factory: SessionFactory, user_id: str, entry: CalorieLogEntry) -> CalorieLogEntry:
    """Derive totals and target_met against the user's current target, then persist."""
    async with factory() as session:
        user = _require(await connector.fetch_user(session, user_id), user_id)
        target = user.calculations.target_calories if user.calculations else None
        entry = calculation.evaluate_calorie_log(entry.model_copy(update={"user_id": user_id}), target)
        await connector.save_calorie_log(session, entry)
        await session.commit()

    logger.debug(
        "Calorie log saved for user %s on %s: calories=%s target_met=%s",
        user_id,
        entry.date,
        entry.daily_totals.calories,
        entry.target_met,
    )
    return entry
