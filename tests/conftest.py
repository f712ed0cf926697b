"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app.db import get_session_factory
from app.engine.models import (
    AdaptationChanges,
    AdaptationRecord,
    AdaptationTrigger,
    BodyStatsEntry,
    CalorieLogEntry,
    DailyTotals,
    Exercise,
    MacroAdjustments,
    MacroTargets,
    UserCalculationState,
    UserProfile,
    UserRecord,
    WorkoutIntensity,
    WorkoutLogEntry,
    WorkoutPlan,
)
from app.main import app

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


# ---------------------------------------------------------------------------
# Fake DB session (no real Postgres needed)
# ---------------------------------------------------------------------------

class FakeSession:
    """Minimal stand-in for AsyncSession; counts commits and rollbacks."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, rowcount: int = 1):
        self._rows = rows or []
        self.rowcount = rowcount
        self.executed: list[tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, stmt, params=None):
        self.executed.append((str(stmt), params))
        return FakeResult(self._rows, self.rowcount)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class FakeResult:
    def __init__(self, rows: list[dict[str, Any]], rowcount: int = 1):
        self._rows = rows
        self._keys = list(rows[0].keys()) if rows else []
        self.rowcount = rowcount

    def keys(self):
        return self._keys

    def fetchall(self):
        return [tuple(r[k] for k in self._keys) for r in self._rows]

    def fetchone(self):
        rows = self.fetchall()
        return rows[0] if rows else None


class FakeSessionFactory:
    """Callable like async_sessionmaker; every call hands out the same FakeSession."""

    def __init__(self, session: FakeSession | None = None):
        self.session = session or FakeSession()
        self.opened = 0

    def __call__(self) -> FakeSession:
        self.opened += 1
        return self.session


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def fake_session():
    """Return a FakeSession with no rows (override _rows in tests if needed)."""
    return FakeSession()


@pytest.fixture()
def session_factory(fake_session):
    return FakeSessionFactory(fake_session)


@pytest.fixture()
def override_session(session_factory):
    """Override the FastAPI dependency so no real DB is needed."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield session_factory
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_session):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Builders for models and rows
# ---------------------------------------------------------------------------

def make_profile(**overrides: Any) -> UserProfile:
    data: dict[str, Any] = {
        "age": 25,
        "sex": "male",
        "height_cm": 175,
        "current_weight_kg": 70,
        "activity_level": "moderate",
        "goal_intensity": "moderate",
        "protein_preference": "moderate",
    }
    data.update(overrides)
    return UserProfile.model_validate(data)


def make_state(target: int = 3000, tdee: float = 2600.0, carbs: float = 375.0) -> UserCalculationState:
    return UserCalculationState(
        bmr=1673.75,
        tdee=tdee,
        target_calories=target,
        macro_targets=MacroTargets(protein=187.5, carbs=carbs, fat=83.3),
        last_calculated=NOW - timedelta(days=10),
    )


def make_user(user_id: str = "u1", calculated: bool = True, **profile: Any) -> UserRecord:
    return UserRecord(
        id=user_id,
        profile=make_profile(**profile),
        calculations=make_state() if calculated else None,
    )


def stat(d: date, weight: float) -> BodyStatsEntry:
    return BodyStatsEntry(user_id="u1", date=d, weight=weight)


def workout(
    d: date,
    intensity: str = "moderate",
    duration: float = 60,
    plan: str = "full-body",
    personal_record: bool = False,
) -> WorkoutLogEntry:
    return WorkoutLogEntry(
        user_id="u1",
        date=d,
        plan=WorkoutPlan(plan),
        exercises=[Exercise(name="Squat", total_volume=2000, personal_record=personal_record)],
        duration=duration,
        intensity=WorkoutIntensity(intensity),
    )


def calorie_log(d: date, calories: float = 3000, target_met: bool = True) -> CalorieLogEntry:
    return CalorieLogEntry(
        user_id="u1",
        date=d,
        daily_totals=DailyTotals(calories=calories, protein=180, carbs=380, fat=85),
        target_met=target_met,
    )


def make_record(
    record_id: str = "rec-1",
    calories: int = 125,
    carbs: int = 19,
    trigger: AdaptationTrigger = AdaptationTrigger.weight_stagnation,
    applied: bool = False,
    created: datetime | None = None,
) -> AdaptationRecord:
    created = created or NOW - timedelta(days=2)
    return AdaptationRecord(
        id=record_id,
        user_id="u1",
        date=created,
        trigger=trigger,
        changes=AdaptationChanges(
            calorie_adjustment=calories,
            macro_adjustments=MacroAdjustments(carbs=carbs),
        ),
        reasoning="Weight has remained stable.",
        effective_date=created + timedelta(hours=24),
        applied=applied,
        applied_at=created + timedelta(hours=24) if applied else None,
    )


def make_user_row(user_id: str = "u1", calculated: bool = True) -> dict[str, Any]:
    """Helper to build a fake users row dict (JSONB columns as dicts)."""
    user = make_user(user_id, calculated)
    return {
        "id": user_id,
        "profile": user.profile.model_dump(mode="json"),
        "calculations": user.calculations.model_dump(mode="json") if user.calculations else None,
    }
