import logging

from fastapi import FastAPI

from app.config import settings
from app.engine.calc_router import router as calc_router
from app.engine.progress_router import router as progress_router
from app.engine.router import router as engine_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Adaptive Progress Engine", version="0.1.0")
app.include_router(engine_router)
app.include_router(calc_router)
app.include_router(progress_router)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "engine": {
            "calculate": "/engine/calculate",
            "weight_trend": "/engine/trends/weight",
            "overtraining": "/engine/trends/overtraining",
            "adjustments": "/engine/adjustments/{calories|macros|workout}",
            "analysis": "/engine/users/{id}/analysis",
            "analysis_due": "/engine/users/{id}/analysis/due",
            "adaptations": "/engine/users/{id}/adaptations",
            "apply": "/engine/users/{id}/adaptations/apply",
            "recalculate": "/engine/users/{id}/recalculate",
            "calorie_logs": "/engine/users/{id}/calorie-logs",
            "results": "/engine/adaptations/{id}/results",
            "progress": "/engine/users/{id}/progress?period=weekly|monthly",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
