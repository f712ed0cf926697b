"""Adaptation ledger — record creation, exactly-once application, outcomes.

A record is applied by a conditional write on the record row
(applied = false -> true) together with the user state write, in one
transaction. Losing the race means the record is skipped, never applied
twice. A per-user lock serialises applies inside this process.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timedelta

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.engine import builders, connector, scoring
from app.engine.builders import SessionFactory
from app.engine.calculation import target_bounds
from app.engine.errors import InvalidInput, NotFound
from app.engine.models import (
    AdaptationChanges,
    AdaptationRecord,
    AdaptationResults,
    AdaptiveAnalysis,
    EffectivenessScore,
    MacroTargets,
    UserCalculationState,
)

logger = logging.getLogger(__name__)

# Entries drop out once no apply holds or awaits the lock
_user_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()


def _lock_for(user_id: str) -> asyncio.Lock:
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = _user_locks[user_id] = asyncio.Lock()
    return lock


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def apply_adaptation(record: AdaptationRecord, state: UserCalculationState, now: datetime) -> UserCalculationState:
    """New calculation state with the record's deltas applied.

    The target stays within [max(tdee, 1200), tdee + 1000] and macros never
    go negative. An already-applied record leaves the state untouched.
    """
    if record.applied:
        return state

    changes = record.changes
    lower, upper = target_bounds(state.tdee)
    target = min(max(state.target_calories + changes.calorie_adjustment, lower), upper)

    macros = changes.macro_adjustments
    current = state.macro_targets
    return UserCalculationState(
        bmr=state.bmr,
        tdee=state.tdee,
        target_calories=target,
        macro_targets=MacroTargets(
            protein=max(0.0, current.protein + macros.protein),
            carbs=max(0.0, current.carbs + macros.carbs),
            fat=max(0.0, current.fat + macros.fat),
        ),
        last_calculated=now,
    )


def build_record(
    user_id: str,
    analysis: AdaptiveAnalysis,
    now: datetime,
    effective_delay: timedelta = timedelta(hours=24),
) -> AdaptationRecord | None:
    if not analysis.adaptation_needed:
        return None
    recs = analysis.recommendations
    try:
        return AdaptationRecord(
            user_id=user_id,
            date=now,
            trigger=analysis.trigger,
            changes=AdaptationChanges(
                calorie_adjustment=recs.calorie_adjustment,
                macro_adjustments=recs.macro_adjustments,
                workout_adjustments=recs.workout_adjustments,
            ),
            reasoning=analysis.summary,
            effective_date=now + effective_delay,
        )
    except ValidationError as exc:
        raise InvalidInput(f"Invalid adaptation record: {exc.errors()[0]['msg']}") from exc


def needs_adaptive_analysis(last_record_date: datetime | None, now: datetime, cadence_days: int = 7) -> bool:
    """True when no adaptation exists yet or the last one is older than the cadence."""
    if last_record_date is None:
        return True
    return now - last_record_date > timedelta(days=cadence_days)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def create_adaptation(
    factory: SessionFactory,
    user_id: str,
    now: datetime,
) -> tuple[AdaptiveAnalysis, AdaptationRecord | None]:
    """Analyse the user and persist a pending record when an adaptation is needed."""
    analysis = await builders.run_adaptive_analysis(factory, user_id, now)
    record = build_record(
        user_id,
        analysis,
        now,
        timedelta(hours=settings.adaptation_effective_delay_hours),
    )
    if record is None:
        logger.debug("No adaptation needed for user %s", user_id)
        return analysis, None

    async with factory() as session:
        await connector.save_adaptation(session, record)
        await session.commit()

    logger.info(
        "Adaptation created for user %s: id=%s trigger=%s calories=%s",
        user_id,
        record.id,
        record.trigger.value,
        record.changes.calorie_adjustment,
    )
    return analysis, record


async def analysis_due(factory: SessionFactory, user_id: str, now: datetime) -> bool:
    async with factory() as session:
        if await connector.fetch_user(session, user_id) is None:
            raise NotFound(f"User not found: {user_id}")
        latest = await connector.fetch_latest_adaptation(session, user_id)
    return needs_adaptive_analysis(latest.date if latest else None, now, settings.analysis_cadence_days)


async def _apply_one(factory: SessionFactory, record: AdaptationRecord, now: datetime) -> AdaptationRecord | None:
    """Claim and apply one record. None when skipped or every attempt failed."""
    attempts = max(1, settings.apply_max_attempts)
    for attempt in range(1, attempts + 1):
        async with factory() as session:
            try:
                if not await connector.mark_applied(session, record.id, now):
                    await session.rollback()
                    logger.info("Adaptation %s already applied, skipping", record.id)
                    return None

                state = await connector.read_user_calculation_state(session, record.user_id, for_update=True)
                if state is None:
                    await session.rollback()
                    logger.warning("User %s has no calculated targets, adaptation %s left pending", record.user_id, record.id)
                    return None

                new_state = apply_adaptation(record, state, now)
                await connector.write_user_calculation_state(session, record.user_id, new_state)
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                logger.warning(
                    "Apply attempt %s/%s failed for adaptation %s", attempt, attempts, record.id, exc_info=True
                )
                if attempt < attempts:
                    await asyncio.sleep(settings.apply_retry_backoff_s * attempt)
                continue

        logger.info(
            "Adaptation applied for user %s: id=%s trigger=%s target_calories=%s",
            record.user_id,
            record.id,
            record.trigger.value,
            new_state.target_calories,
        )
        return record.model_copy(update={"applied": True, "applied_at": now})

    logger.error("Failed to apply adaptation %s after %s attempts; left pending", record.id, attempts)
    return None


async def apply_pending_adaptations(factory: SessionFactory, user_id: str, now: datetime) -> list[AdaptationRecord]:
    """Apply every pending record already in effect, oldest first.

    A record that cannot be applied stays pending and does not block the rest.
    """
    async with _lock_for(user_id):
        async with factory() as session:
            if await connector.fetch_user(session, user_id) is None:
                raise NotFound(f"User not found: {user_id}")
            pending = await connector.fetch_pending_adaptations(session, user_id, now)

        if not pending:
            logger.debug("No pending adaptations for user %s", user_id)
            return []

        applied: list[AdaptationRecord] = []
        for record in pending:
            result = await _apply_one(factory, record, now)
            if result is not None:
                applied.append(result)
        return applied


async def record_outcome(
    factory: SessionFactory,
    record_id: str,
    results: AdaptationResults,
    now: datetime,
) -> EffectivenessScore:
    """Attach observed results to an applied record and score it."""
    if results.evaluation_date is None:
        results = results.model_copy(update={"evaluation_date": now})

    async with factory() as session:
        record = await connector.fetch_adaptation(session, record_id)
        if record is None:
            raise NotFound(f"Adaptation not found: {record_id}")
        if not record.applied or not await connector.attach_results(session, record_id, results):
            await session.rollback()
            raise InvalidInput("Results can only be recorded for an applied adaptation")
        await session.commit()

    score = scoring.score_effectiveness(record.trigger, results)
    logger.info("Outcome recorded for adaptation %s: effectiveness=%s", record_id, score.effectiveness)
    return score
