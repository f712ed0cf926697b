"""Database connector — async access to users, logs and adaptation records.

Tables:
  users               id, profile (JSONB), calculations (JSONB, nullable)
  body_stats          id, user_id, date, weight, body_fat, measurements (JSONB)
  calorie_logs        id, user_id, date, meals (JSONB), daily_totals (JSONB), target_met
  workout_logs        id, user_id, date, plan, exercises (JSONB), duration, intensity
  adaptation_records  id, user_id, date, trigger, changes (JSONB), reasoning,
                      effective_date, applied, applied_at, results (JSONB)

Read functions return parsed models and an empty list / None when nothing
matches. Database errors propagate to the caller.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from app.engine.models import (
    AdaptationRecord,
    AdaptationResults,
    BodyStatsEntry,
    CalorieLogEntry,
    UserCalculationState,
    UserProfile,
    UserRecord,
    WorkoutLogEntry,
)

CALORIE_STREAK_SCAN_LIMIT = 100


def _json(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _rows(result) -> list[dict[str, Any]]:
    columns = result.keys()
    return [dict(zip(columns, r)) for r in result.fetchall()]


def _one(result) -> dict[str, Any] | None:
    row = result.fetchone()
    if row is None:
        return None
    return dict(zip(result.keys(), row))


def _range_clause(query: str, params: dict[str, Any], start: date | None, end: date | None) -> str:
    if start is not None:
        query += " AND date >= :start"
        params["start"] = start
    if end is not None:
        query += " AND date <= :end"
        params["end"] = end
    return query


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def fetch_user(session: AsyncSession, user_id: str) -> UserRecord | None:
    result = await session.execute(
        text("SELECT id, profile, calculations FROM users WHERE id = :user_id"),
        {"user_id": user_id},
    )
    row = _one(result)
    if row is None:
        return None
    calculations = _json(row["calculations"])
    return UserRecord(
        id=str(row["id"]),
        profile=UserProfile.model_validate(_json(row["profile"])),
        calculations=UserCalculationState.model_validate(calculations) if calculations else None,
    )


async def read_user_calculation_state(
    session: AsyncSession,
    user_id: str,
    for_update: bool = False,
) -> UserCalculationState | None:
    """Current calculation state; FOR UPDATE locks the user row until commit."""
    query = "SELECT calculations FROM users WHERE id = :user_id"
    if for_update:
        query += " FOR UPDATE"
    result = await session.execute(text(query), {"user_id": user_id})
    row = _one(result)
    if row is None or not row["calculations"]:
        return None
    return UserCalculationState.model_validate(_json(row["calculations"]))


async def write_user_calculation_state(
    session: AsyncSession,
    user_id: str,
    state: UserCalculationState,
) -> None:
    stmt = text("UPDATE users SET calculations = :calculations WHERE id = :user_id").bindparams(
        bindparam("calculations", type_=JSONB)
    )
    await session.execute(stmt, {"user_id": user_id, "calculations": state.model_dump(mode="json")})


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


async def fetch_body_stats(
    session: AsyncSession,
    user_id: str,
    start: date | None = None,
    end: date | None = None,
) -> list[BodyStatsEntry]:
    """Weigh-ins for a user in [start, end], ascending by date. No bounds = full history."""
    params: dict[str, Any] = {"user_id": user_id}
    query = "SELECT user_id, date, weight, body_fat, measurements FROM body_stats WHERE user_id = :user_id"
    query = _range_clause(query, params, start, end) + " ORDER BY date"

    result = await session.execute(text(query), params)
    entries = []
    for row in _rows(result):
        row["measurements"] = _json(row["measurements"])
        entries.append(BodyStatsEntry.model_validate(row))
    return entries


async def fetch_workout_logs(
    session: AsyncSession,
    user_id: str,
    start: date | None = None,
    end: date | None = None,
) -> list[WorkoutLogEntry]:
    params: dict[str, Any] = {"user_id": user_id}
    query = (
        "SELECT user_id, date, plan, exercises, duration, intensity "
        "FROM workout_logs WHERE user_id = :user_id"
    )
    query = _range_clause(query, params, start, end) + " ORDER BY date, id"

    result = await session.execute(text(query), params)
    entries = []
    for row in _rows(result):
        row["exercises"] = _json(row["exercises"]) or []
        entries.append(WorkoutLogEntry.model_validate(row))
    return entries


async def fetch_calorie_logs(
    session: AsyncSession,
    user_id: str,
    start: date | None = None,
    end: date | None = None,
) -> list[CalorieLogEntry]:
    params: dict[str, Any] = {"user_id": user_id}
    query = (
        "SELECT user_id, date, meals, daily_totals, target_met "
        "FROM calorie_logs WHERE user_id = :user_id"
    )
    query = _range_clause(query, params, start, end) + " ORDER BY date"

    result = await session.execute(text(query), params)
    entries = []
    for row in _rows(result):
        row["meals"] = _json(row["meals"]) or []
        row["daily_totals"] = _json(row["daily_totals"]) or {}
        entries.append(CalorieLogEntry.model_validate(row))
    return entries


async def fetch_calorie_streak(session: AsyncSession, user_id: str) -> list[date]:
    """Most recent target-met dates, newest first, capped at the scan limit."""
    result = await session.execute(
        text(
            "SELECT date FROM calorie_logs "
            "WHERE user_id = :user_id AND target_met = true "
            "ORDER BY date DESC LIMIT :limit"
        ),
        {"user_id": user_id, "limit": CALORIE_STREAK_SCAN_LIMIT},
    )
    return [r["date"] for r in _rows(result)]


async def save_calorie_log(session: AsyncSession, entry: CalorieLogEntry) -> None:
    stmt = text(
        "INSERT INTO calorie_logs (user_id, date, meals, daily_totals, target_met) "
        "VALUES (:user_id, :date, :meals, :daily_totals, :target_met)"
    ).bindparams(bindparam("meals", type_=JSONB), bindparam("daily_totals", type_=JSONB))
    await session.execute(
        stmt,
        {
            "user_id": entry.user_id,
            "date": entry.date,
            "meals": [m.model_dump(mode="json") for m in entry.meals],
            "daily_totals": entry.daily_totals.model_dump(mode="json"),
            "target_met": entry.target_met,
        },
    )


# ---------------------------------------------------------------------------
# Adaptation records
# ---------------------------------------------------------------------------

_RECORD_COLUMNS = "id, user_id, date, trigger, changes, reasoning, effective_date, applied, applied_at, results"


def _record(row: dict[str, Any]) -> AdaptationRecord:
    row = dict(row)
    row["id"] = str(row["id"])
    row["changes"] = _json(row["changes"])
    row["results"] = _json(row["results"])
    return AdaptationRecord.model_validate(row)


async def fetch_adaptation(session: AsyncSession, record_id: str) -> AdaptationRecord | None:
    result = await session.execute(
        text(f"SELECT {_RECORD_COLUMNS} FROM adaptation_records WHERE id = :record_id"),
        {"record_id": record_id},
    )
    row = _one(result)
    return _record(row) if row else None


async def fetch_pending_adaptations(
    session: AsyncSession,
    user_id: str,
    now: datetime,
) -> list[AdaptationRecord]:
    """Unapplied records already in effect, oldest first."""
    result = await session.execute(
        text(
            f"SELECT {_RECORD_COLUMNS} FROM adaptation_records "
            "WHERE user_id = :user_id AND applied = false AND effective_date <= :now "
            "ORDER BY date"
        ),
        {"user_id": user_id, "now": now},
    )
    return [_record(r) for r in _rows(result)]


async def fetch_adaptations_in_range(
    session: AsyncSession,
    user_id: str,
    start: datetime,
    end: datetime,
) -> list[AdaptationRecord]:
    result = await session.execute(
        text(
            f"SELECT {_RECORD_COLUMNS} FROM adaptation_records "
            "WHERE user_id = :user_id AND date >= :start AND date <= :end "
            "ORDER BY date DESC"
        ),
        {"user_id": user_id, "start": start, "end": end},
    )
    return [_record(r) for r in _rows(result)]


async def fetch_latest_adaptation(session: AsyncSession, user_id: str) -> AdaptationRecord | None:
    result = await session.execute(
        text(
            f"SELECT {_RECORD_COLUMNS} FROM adaptation_records "
            "WHERE user_id = :user_id ORDER BY date DESC LIMIT 1"
        ),
        {"user_id": user_id},
    )
    row = _one(result)
    return _record(row) if row else None


async def save_adaptation(session: AsyncSession, record: AdaptationRecord) -> None:
    stmt = text(
        "INSERT INTO adaptation_records "
        "(id, user_id, date, trigger, changes, reasoning, effective_date, applied, applied_at, results) "
        "VALUES (:id, :user_id, :date, :trigger, :changes, :reasoning, :effective_date, :applied, :applied_at, :results)"
    ).bindparams(bindparam("changes", type_=JSONB), bindparam("results", type_=JSONB))
    await session.execute(
        stmt,
        {
            "id": record.id,
            "user_id": record.user_id,
            "date": record.date,
            "trigger": record.trigger.value,
            "changes": record.changes.model_dump(mode="json"),
            "reasoning": record.reasoning,
            "effective_date": record.effective_date,
            "applied": record.applied,
            "applied_at": record.applied_at,
            "results": record.results.model_dump(mode="json") if record.results else None,
        },
    )


async def mark_applied(session: AsyncSession, record_id: str, applied_at: datetime) -> bool:
    """Claim a pending record. False when it was already applied (or is gone)."""
    result = await session.execute(
        text(
            "UPDATE adaptation_records SET applied = true, applied_at = :applied_at "
            "WHERE id = :record_id AND applied = false"
        ),
        {"record_id": record_id, "applied_at": applied_at},
    )
    return result.rowcount == 1


async def attach_results(session: AsyncSession, record_id: str, results: AdaptationResults) -> bool:
    """Store outcome metrics on an applied record. False when the record is not applied."""
    stmt = text(
        "UPDATE adaptation_records SET results = :results "
        "WHERE id = :record_id AND applied = true"
    ).bindparams(bindparam("results", type_=JSONB))
    result = await session.execute(stmt, {"record_id": record_id, "results": results.model_dump(mode="json")})
    return result.rowcount == 1
