"""Progress report endpoint."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from app.auth import verify_api_key
from app.db import get_session_factory
from app.engine import builders
from app.engine.builders import SessionFactory
from app.engine.errors import EngineError
from app.engine.models import ProgressReport, ReportPeriod
from app.engine.router import http_error

router = APIRouter(prefix="/engine", tags=["progress"])


@router.get("/users/{user_id}/progress", response_model=ProgressReport)
async def get_progress(
    user_id: str,
    factory: SessionFactory = Depends(get_session_factory),
    _: str = Depends(verify_api_key),
    period: ReportPeriod = Query(default=ReportPeriod.monthly, description="weekly or monthly"),
) -> ProgressReport:
    try:
        return await builders.build_progress_report(factory, user_id, period, datetime.now(timezone.utc))
    except EngineError as exc:
        raise http_error(exc)
