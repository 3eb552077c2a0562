"""Liveness and readiness endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from clinical_search.dependencies import get_health_checker
from clinical_search.models.health import HealthReport
from clinical_search.services.health_checker import HealthChecker

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness: the process is up. Does not touch the cluster."""
    return {"status": "healthy"}


@router.get(
    "/api/v1/readiness",
    response_model=HealthReport,
    responses={503: {"model": HealthReport}},
)
async def readiness(
    checker: HealthChecker = Depends(get_health_checker),
) -> HealthReport | JSONResponse:
    """Full readiness report; 503 when any check failed."""
    report = await checker.run_all()
    if not report.passed:
        return JSONResponse(status_code=503, content=report.model_dump(mode="json"))
    return report
