"""Stateless calculator endpoints — no database access."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.auth import verify_api_key
from app.engine import calculation, decisions, trends
from app.engine.errors import EngineError
from app.engine.models import (
    CalorieAdjustmentRequest,
    CaloriePlan,
    MacroAdjustmentRequest,
    MacroAdjustments,
    OvertrainingAnalysis,
    OvertrainingRequest,
    UserProfile,
    WeightTrend,
    WeightTrendRequest,
    WorkoutAdjustmentRequest,
    WorkoutAdjustments,
)
from app.engine.router import http_error

router = APIRouter(prefix="/engine", tags=["calculators"])


@router.post("/calculate", response_model=CaloriePlan)
async def calculate(
    profile: UserProfile,
    _: str = Depends(verify_api_key),
) -> CaloriePlan:
    try:
        return calculation.compute_calorie_plan(profile)
    except EngineError as exc:
        raise http_error(exc)


@router.post("/trends/weight", response_model=WeightTrend)
async def weight_trend(
    body: WeightTrendRequest,
    _: str = Depends(verify_api_key),
) -> WeightTrend:
    return trends.analyze_weight_trend(body.entries, body.window_days, as_of=body.as_of)


@router.post("/trends/overtraining", response_model=OvertrainingAnalysis)
async def overtraining(
    body: OvertrainingRequest,
    _: str = Depends(verify_api_key),
) -> OvertrainingAnalysis:
    return trends.analyze_overtraining(body.entries, body.window_days, as_of=body.as_of)


@router.post("/adjustments/calories")
async def calorie_adjustment(
    body: CalorieAdjustmentRequest,
    _: str = Depends(verify_api_key),
) -> dict[str, int]:
    return {"calorie_adjustment": decisions.calculate_calorie_adjustment(body.trend, body.goal_intensity)}


@router.post("/adjustments/macros", response_model=MacroAdjustments)
async def macro_adjustments(
    body: MacroAdjustmentRequest,
    _: str = Depends(verify_api_key),
) -> MacroAdjustments:
    try:
        return decisions.calculate_macro_adjustments(body.trend, body.current_carbs)
    except EngineError as exc:
        raise http_error(exc)


@router.post("/adjustments/workout", response_model=WorkoutAdjustments)
async def workout_adjustments(
    body: WorkoutAdjustmentRequest,
    _: str = Depends(verify_api_key),
) -> WorkoutAdjustments:
    return decisions.calculate_workout_adjustments(body.overtraining, body.trend)
