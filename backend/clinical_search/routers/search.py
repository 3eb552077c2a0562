"""Generic read-only search endpoints over the clinical indices."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from clinical_search.dependencies import get_query_service
from clinical_search.models.schemas import ErrorDetail
from clinical_search.models.search import SearchHit
from clinical_search.services.query_service import QueryService

router = APIRouter(prefix="/api/v1/indices", tags=["search"])


@router.get("/{index}/filter", response_model=list[SearchHit])
async def filter_documents(
    index: str,
    field: str,
    value: str,
    size: int = Query(default=100, ge=1, le=1000),
    query: QueryService = Depends(get_query_service),
) -> list[SearchHit]:
    return await query.filter_by(index, field, value, size=size)


@router.get("/{index}/similar", response_model=list[SearchHit])
async def similar_documents(
    index: str,
    q: str = Query(min_length=1),
    k: int = Query(default=10, ge=1, le=100),
    query: QueryService = Depends(get_query_service),
) -> list[SearchHit]:
    return await query.find_similar(index, q, k=k)


@router.get("/{index}/documents/{doc_id}", response_model=SearchHit)
async def get_document(
    index: str,
    doc_id: str,
    query: QueryService = Depends(get_query_service),
) -> SearchHit:
    hit = await query.find_by_id(index, doc_id)
    if hit is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="DOCUMENT_NOT_FOUND",
                message=f"Document {doc_id} not found in {index}",
            ).model_dump(),
        )
    return hit
