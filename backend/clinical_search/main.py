"""FastAPI application entry point."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from clinical_search.config import settings
from clinical_search.dependencies import reset_services
from clinical_search.errors import (
    ClinicalSearchError,
    ClusterUnavailableError,
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingError,
    RequestTimeoutError,
    UnknownIndexError,
    UnsupportedIndexError,
    ValidationError,
)
from clinical_search.logging_config import configure_logging
from clinical_search.models.schemas import ErrorDetail
from clinical_search.routers.health import router as health_router
from clinical_search.routers.patients import router as patients_router
from clinical_search.routers.search import router as search_router
from clinical_search.services.cluster import close_es_client

configure_logging(settings.debug)

logger = logging.getLogger(__name__)

# Most specific first: InvalidEnumValueError is a ValidationError.
ERROR_STATUS: list[tuple[type[ClinicalSearchError], int]] = [
    (ValidationError, 422),
    (UnknownIndexError, 404),
    (DocumentNotFoundError, 404),
    (UnsupportedIndexError, 400),
    (RequestTimeoutError, 504),
    (ClusterUnavailableError, 503),
    (ConfigurationError, 503),
    (EmbeddingError, 502),
]


def status_for(exc: ClinicalSearchError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


async def service_error_handler(
    request: Request, exc: ClinicalSearchError
) -> JSONResponse:
    """Render service errors as ``ErrorDetail`` bodies."""
    status = status_for(exc)
    if status >= 500:
        logger.error(
            "%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message
        )
    return JSONResponse(
        status_code=status,
        content={
            "detail": ErrorDetail(code=exc.code, message=exc.message).model_dump()
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_es_client()
    reset_services()


app = FastAPI(
    title="Clinical Search",
    description="Clinical search index service over Elasticsearch",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(ClinicalSearchError, service_error_handler)

app.include_router(health_router)
app.include_router(patients_router)
app.include_router(search_router)
