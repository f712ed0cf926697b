"""Engine HTTP router — per-user analysis and the adaptation lifecycle."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from app.auth import verify_api_key
from app.db import get_session_factory
from app.engine import builders, ledger
from app.engine.builders import SessionFactory
from app.engine.errors import EngineError, InvalidInput, LogReadTimeout, NotFound
from app.engine.models import (
    AdaptationRecord,
    AdaptationResponse,
    AdaptationResults,
    AdaptiveAnalysis,
    AnalysisDue,
    CalorieLogEntry,
    CaloriePlan,
    EffectivenessScore,
)

router = APIRouter(prefix="/engine", tags=["engine"])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def http_error(exc: EngineError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidInput):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, LogReadTimeout):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


# ---------------------------------------------------------------------------
# /engine/users/{user_id}/...
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/analysis", response_model=AdaptiveAnalysis)
async def get_analysis(
    user_id: str,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
) -> AdaptiveAnalysis:
    try:
        return await builders.run_adaptive_analysis(factory, user_id, _now())
    except EngineError as exc:
        raise http_error(exc)


@router.get("/users/{user_id}/analysis/due", response_model=AnalysisDue)
async def get_analysis_due(
    user_id: str,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
) -> AnalysisDue:
    try:
        due = await ledger.analysis_due(factory, user_id, _now())
    except EngineError as exc:
        raise http_error(exc)
    return AnalysisDue(user_id=user_id, due=due)


@router.post("/users/{user_id}/adaptations", response_model=AdaptationResponse)
async def create_adaptation(
    user_id: str,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
) -> AdaptationResponse:
    try:
        analysis, record = await ledger.create_adaptation(factory, user_id, _now())
    except EngineError as exc:
        raise http_error(exc)
    return AdaptationResponse(analysis=analysis, adaptation=record)


@router.post("/users/{user_id}/adaptations/apply", response_model=list[AdaptationRecord])
async def apply_adaptations(
    user_id: str,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
) -> list[AdaptationRecord]:
    try:
        return await ledger.apply_pending_adaptations(factory, user_id, _now())
    except EngineError as exc:
        raise http_error(exc)


@router.post("/users/{user_id}/recalculate", response_model=CaloriePlan)
async def recalculate(
    user_id: str,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
) -> CaloriePlan:
    try:
        return await builders.recalculate_user_targets(factory, user_id, _now())
    except EngineError as exc:
        raise http_error(exc)


@router.post("/users/{user_id}/calorie-logs", response_model=CalorieLogEntry)
async def log_calories(
    user_id: str,
    entry: CalorieLogEntry,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
) -> CalorieLogEntry:
    try:
        return await builders.log_calories(factory, user_id, entry)
    except EngineError as exc:
        raise http_error(exc)


# ---------------------------------------------------------------------------
# /engine/adaptations/{record_id}/results
# ---------------------------------------------------------------------------


@router.post("/adaptations/{record_id}/results", response_model=EffectivenessScore)
async def record_results(
    record_id: str,
    results: AdaptationResults,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
) -> EffectivenessScore:
    try:
        return await ledger.record_outcome(factory, record_id, results, _now())
    except EngineError as exc:
        raise http_error(exc)
