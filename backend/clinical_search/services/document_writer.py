"""Document writer: validate, embed and upsert domain records.

This is the only write path into the clinical indices. A write is a single
``index`` (or, for patients, ``update`` with ``upsert``) call carrying the
complete document with a freshly computed vector, so a failed or cancelled
call never leaves a partial document behind.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any, TypeVar

from elasticsearch import AsyncElasticsearch, NotFoundError
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from clinical_search.config import Settings, settings as default_settings
from clinical_search.errors import (
    DocumentNotFoundError,
    InvalidEnumValueError,
    UnknownIndexError,
    ValidationError,
)
from clinical_search.models.documents import (
    AgentLogDocument,
    AppointmentDocument,
    MedicalCaseDocument,
    MedicalRecordDocument,
    PatientDocument,
)
from clinical_search.models.index_schemas import (
    AGENT_LOGS,
    APPOINTMENTS,
    MEDICAL_CASES,
    MEDICAL_RECORDS,
    PATIENTS,
    IndexSchema,
    build_registry,
)
from clinical_search.services.embedding_service import Embedder
from clinical_search.services.retry import call_with_retry

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Deterministic agent-log ids: replaying the same log entry is a no-op.
AGENT_LOG_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "agent-logs.clinical-search")

PATIENT_LIFECYCLE_FIELDS = frozenset({"created_at", "active"})


def _coerce(model: type[ModelT], doc: ModelT | dict[str, Any]) -> ModelT:
    if isinstance(doc, model):
        return doc
    try:
        return model.model_validate(doc)
    except ModelValidationError as e:
        raise ValidationError(
            f"Invalid {model.__name__}: {e.errors(include_url=False)}"
        ) from e


class DocumentWriter:
    def __init__(
        self,
        client: AsyncElasticsearch,
        embedder: Embedder,
        registry: dict[str, IndexSchema] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._client = client
        self._embedder = embedder
        self._settings = settings or default_settings
        self.registry = registry or build_registry(self._settings.embedding_dimensions)

    def _schema(self, name: str) -> IndexSchema:
        try:
            return self.registry[name]
        except KeyError:
            raise UnknownIndexError(name) from None

    # --- Validation ---

    def validate(self, schema: IndexSchema, body: dict[str, Any]) -> None:
        """Required-field and enumeration checks against the registry."""
        for name in schema.required_fields:
            value = body.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(
                    f"{schema.name}: required field '{name}' is missing or empty"
                )
        for name, allowed in schema.enum_fields.items():
            value = body.get(name)
            if value is not None and value not in allowed:
                raise InvalidEnumValueError(name, value, allowed)

    def _check_vector(self, schema: IndexSchema, vector: list[float]) -> None:
        if len(vector) != schema.dims:
            raise ValidationError(
                f"{schema.name}: '{schema.vector_field}' has {len(vector)} "
                f"dimensions, expected {schema.dims}"
            )

    async def _attach_vector(self, schema: IndexSchema, body: dict[str, Any]) -> None:
        # Always re-embed: a vector read back with the document may be stale.
        vector = await self._embedder.embed_document(body[schema.vector_source])
        self._check_vector(schema, vector)
        body[schema.vector_field] = list(vector)

    # --- Write path ---

    async def _write(
        self, index: str, doc: BaseModel, keep: frozenset[str] = frozenset()
    ) -> str:
        """Upsert ``doc`` as one call.

        Fields in ``keep`` are written only when the document is new; an
        existing document keeps its stored values for them.
        """
        schema = self._schema(index)
        body = doc.model_dump(mode="json")
        self.validate(schema, body)
        if schema.has_vector:
            await self._attach_vector(schema, body)
        doc_id = schema.document_id(body)

        if keep:
            partial = {k: v for k, v in body.items() if k not in keep}
            await call_with_retry(
                f"upsert {index}/{doc_id}",
                lambda: self._client.update(
                    index=index,
                    id=doc_id,
                    doc=partial,
                    upsert=body,
                    refresh=self._settings.index_refresh,
                ),
                settings=self._settings,
            )
        else:
            await call_with_retry(
                f"index {index}/{doc_id}",
                lambda: self._client.index(
                    index=index,
                    id=doc_id,
                    document=body,
                    refresh=self._settings.index_refresh,
                ),
                settings=self._settings,
            )
        logger.info("Upserted %s/%s", index, doc_id)
        return doc_id

    async def write_patient(self, patient: PatientDocument | dict[str, Any]) -> str:
        """Upsert a patient, re-embedding its symptoms.

        On an existing patient, ``created_at`` and ``active`` keep their stored
        values unless the caller set them explicitly.
        """
        doc = _coerce(PatientDocument, patient)
        keep = PATIENT_LIFECYCLE_FIELDS - doc.model_fields_set
        doc = doc.model_copy(
            update={"updated_at": datetime.datetime.now(datetime.UTC)}
        )
        return await self._write(PATIENTS, doc, keep=keep)

    async def write_appointment(
        self, appointment: AppointmentDocument | dict[str, Any]
    ) -> str:
        return await self._write(
            APPOINTMENTS, _coerce(AppointmentDocument, appointment)
        )

    async def write_medical_record(
        self, record: MedicalRecordDocument | dict[str, Any]
    ) -> str:
        """Store one version of a record; earlier versions are left untouched."""
        return await self._write(
            MEDICAL_RECORDS, _coerce(MedicalRecordDocument, record)
        )

    async def write_medical_case(
        self, case: MedicalCaseDocument | dict[str, Any]
    ) -> str:
        return await self._write(MEDICAL_CASES, _coerce(MedicalCaseDocument, case))

    async def write_agent_log(self, log: AgentLogDocument | dict[str, Any]) -> str:
        doc = _coerce(AgentLogDocument, log)
        if not doc.log_id:
            key = f"{doc.agent}|{doc.activity}|{doc.timestamp.isoformat()}"
            doc = doc.model_copy(
                update={"log_id": str(uuid.uuid5(AGENT_LOG_NAMESPACE, key))}
            )
        return await self._write(AGENT_LOGS, doc)

    async def deactivate_patient(self, patient_id: str) -> None:
        """Mark a patient inactive. Patients are never deleted."""
        now = datetime.datetime.now(datetime.UTC).isoformat()
        try:
            await call_with_retry(
                f"deactivate {PATIENTS}/{patient_id}",
                lambda: self._client.update(
                    index=PATIENTS,
                    id=patient_id,
                    doc={"active": False, "updated_at": now},
                    refresh=self._settings.index_refresh,
                ),
                settings=self._settings,
            )
        except NotFoundError:
            raise DocumentNotFoundError(PATIENTS, patient_id) from None
        logger.info("Deactivated patient %s", patient_id)
