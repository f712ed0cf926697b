"""Tests for row parsing and conditional writes in the connector."""

from __future__ import annotations

import json

import pytest

from app.engine import connector
from app.engine.models import AdaptationResults

from tests.conftest import NOW, TODAY, FakeSession, calorie_log, make_record, make_state, make_user_row


class TestUsers:
    @pytest.mark.asyncio
    async def test_fetch_user_parses_jsonb(self):
        session = FakeSession([make_user_row()])
        user = await connector.fetch_user(session, "u1")
        assert user.id == "u1"
        assert user.profile.age == 25
        assert user.calculations.target_calories == 3000

    @pytest.mark.asyncio
    async def test_fetch_user_accepts_json_strings(self):
        row = make_user_row()
        row["profile"] = json.dumps(row["profile"])
        row["calculations"] = json.dumps(row["calculations"])
        user = await connector.fetch_user(FakeSession([row]), "u1")
        assert user.calculations.macro_targets.carbs == 375.0

    @pytest.mark.asyncio
    async def test_fetch_user_missing(self):
        assert await connector.fetch_user(FakeSession(), "ghost") is None

    @pytest.mark.asyncio
    async def test_state_for_update(self):
        session = FakeSession([make_user_row()])
        state = await connector.read_user_calculation_state(session, "u1", for_update=True)
        assert state.target_calories == 3000
        assert session.executed[0][0].endswith("FOR UPDATE")

    @pytest.mark.asyncio
    async def test_state_not_calculated(self):
        session = FakeSession([make_user_row(calculated=False)])
        assert await connector.read_user_calculation_state(session, "u1") is None

    @pytest.mark.asyncio
    async def test_write_state(self):
        session = FakeSession()
        await connector.write_user_calculation_state(session, "u1", make_state(target=3125))
        _, params = session.executed[0]
        assert params["calculations"]["target_calories"] == 3125


class TestLogs:
    @pytest.mark.asyncio
    async def test_body_stats_range(self):
        session = FakeSession([{"user_id": "u1", "date": TODAY, "weight": 70.0, "body_fat": None, "measurements": None}])
        stats = await connector.fetch_body_stats(session, "u1", TODAY, TODAY)
        assert stats[0].weight == 70.0
        sql, params = session.executed[0]
        assert "date >= :start" in sql and "date <= :end" in sql
        assert params["start"] == TODAY

    @pytest.mark.asyncio
    async def test_body_stats_full_history(self):
        session = FakeSession()
        await connector.fetch_body_stats(session, "u1")
        sql, params = session.executed[0]
        assert ":start" not in sql
        assert "start" not in params

    @pytest.mark.asyncio
    async def test_workout_exercises_from_json(self):
        row = {
            "user_id": "u1",
            "date": TODAY,
            "plan": "full-body",
            "exercises": json.dumps([{"name": "Squat", "total_volume": 1500, "personal_record": True}]),
            "duration": 45,
            "intensity": "high",
        }
        logs = await connector.fetch_workout_logs(FakeSession([row]), "u1")
        assert logs[0].exercises[0].personal_record is True

    @pytest.mark.asyncio
    async def test_save_calorie_log(self):
        session = FakeSession()
        await connector.save_calorie_log(session, calorie_log(TODAY, calories=2950))
        sql, params = session.executed[0]
        assert sql.startswith("INSERT INTO calorie_logs")
        assert params["daily_totals"]["calories"] == 2950
        assert params["target_met"] is True
        assert params["meals"] == []


class TestAdaptationRecords:
    @pytest.mark.asyncio
    async def test_save_serializes_changes(self):
        session = FakeSession()
        await connector.save_adaptation(session, make_record())
        _, params = session.executed[0]
        assert params["changes"]["calorie_adjustment"] == 125
        assert params["trigger"] == "weight_stagnation"
        assert params["results"] is None

    @pytest.mark.asyncio
    async def test_mark_applied_claims_once(self):
        assert await connector.mark_applied(FakeSession(rowcount=1), "rec-1", NOW) is True
        assert await connector.mark_applied(FakeSession(rowcount=0), "rec-1", NOW) is False

    @pytest.mark.asyncio
    async def test_attach_results_requires_applied(self):
        results = AdaptationResults(user_satisfaction=4)
        assert await connector.attach_results(FakeSession(rowcount=0), "rec-1", results) is False

    @pytest.mark.asyncio
    async def test_record_round_trip_from_row(self):
        rec = make_record(applied=True)
        row = rec.model_dump(mode="json")
        row["changes"] = json.dumps(row["changes"])
        session = FakeSession([row])
        fetched = await connector.fetch_adaptation(session, "rec-1")
        assert fetched.id == "rec-1"
        assert fetched.applied is True
        assert fetched.changes.macro_adjustments.carbs == 19
