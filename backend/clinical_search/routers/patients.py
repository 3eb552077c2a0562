"""Patient API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from clinical_search.dependencies import get_document_writer, get_query_service
from clinical_search.models.documents import PatientDocument
from clinical_search.models.index_schemas import PATIENTS
from clinical_search.models.schemas import ErrorDetail, WriteResponse
from clinical_search.models.search import SearchHit
from clinical_search.services.document_writer import DocumentWriter
from clinical_search.services.query_service import QueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/patients", tags=["patients"])


@router.put("", response_model=WriteResponse)
async def upsert_patient(
    patient: PatientDocument,
    writer: DocumentWriter = Depends(get_document_writer),
) -> WriteResponse:
    doc_id = await writer.write_patient(patient)
    return WriteResponse(index=PATIENTS, id=doc_id)


@router.get("/{patient_id}", response_model=SearchHit)
async def get_patient(
    patient_id: str,
    query: QueryService = Depends(get_query_service),
) -> SearchHit:
    hit = await query.find_by_id(PATIENTS, patient_id)
    if hit is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="PATIENT_NOT_FOUND",
                message=f"Patient with ID {patient_id} not found",
            ).model_dump(),
        )
    return hit


@router.post("/{patient_id}/deactivate", response_model=WriteResponse)
async def deactivate_patient(
    patient_id: str,
    writer: DocumentWriter = Depends(get_document_writer),
) -> WriteResponse:
    logger.info("Deactivating patient %s", patient_id)
    await writer.deactivate_patient(patient_id)
    return WriteResponse(index=PATIENTS, id=patient_id)
