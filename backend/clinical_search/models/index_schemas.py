"""Declarative registry of the clinical indices and their mappings.

The Schema Manager creates and verifies indices from this registry, the
Document Writer validates documents against it, and the Query Service uses
it to resolve id, vector and enumerated fields. Nothing else declares
mapping knowledge.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from clinical_search.models.documents import (
    AgentLogDocument,
    AppointmentDocument,
    MedicalCaseDocument,
    MedicalRecordDocument,
    PatientDocument,
)

PATIENTS = "patients"
APPOINTMENTS = "appointments"
MEDICAL_RECORDS = "medical_records"
MEDICAL_CASES = "medical_cases"
AGENT_LOGS = "agent_logs"

INDEX_NAMES = (PATIENTS, APPOINTMENTS, MEDICAL_RECORDS, MEDICAL_CASES, AGENT_LOGS)

DEPARTMENTS = frozenset(
    {
        "Cardiology",
        "Dermatology",
        "Emergency",
        "Endocrinology",
        "ENT",
        "Gastroenterology",
        "General Medicine",
        "Internal Medicine",
        "Nephrology",
        "Neurology",
        "Oncology",
        "Ophthalmology",
        "Orthopedics",
        "Pediatrics",
        "Psychiatry",
        "Pulmonology",
        "Radiology",
    }
)

SEVERITIES = frozenset({"low", "medium", "high", "critical"})

APPOINTMENT_STATUSES = frozenset(
    {
        "available",
        "reserved",
        "scheduled",
        "confirmed",
        "rescheduled",
        "cancelled",
        "completed",
        "no_show",
    }
)

# Field types that support exact-match term filters.
FILTERABLE_TYPES = frozenset({"keyword", "integer", "long", "boolean", "date"})


@dataclass(frozen=True)
class IndexSchema:
    name: str
    id_field: str
    properties: dict[str, dict[str, Any]]
    document_model: type[BaseModel]
    required_fields: tuple[str, ...] = ()
    enum_fields: dict[str, frozenset[str]] = field(default_factory=dict)
    vector_field: str | None = None
    vector_source: str | None = None
    dims: int | None = None
    versioned: bool = False
    expects_data: bool = False

    @property
    def has_vector(self) -> bool:
        return self.vector_field is not None

    def mapping(self) -> dict[str, Any]:
        """Full index mapping, including the dense vector field if any."""
        properties = copy.deepcopy(self.properties)
        if self.vector_field:
            properties[self.vector_field] = {
                "type": "dense_vector",
                "dims": self.dims,
                "index": True,
                "similarity": "cosine",
            }
        return {"properties": properties}

    def field_type(self, name: str) -> str | None:
        if name == self.vector_field:
            return "dense_vector"
        spec = self.properties.get(name)
        return spec.get("type") if spec else None

    def document_id(self, doc: dict[str, Any]) -> str:
        if self.versioned:
            return f"{doc[self.id_field]}:v{doc['version']}"
        return str(doc[self.id_field])


def build_registry(dims: int) -> dict[str, IndexSchema]:
    """Build the index registry for a given embedding dimensionality."""
    schemas = [
        IndexSchema(
            name=PATIENTS,
            id_field="patient_id",
            document_model=PatientDocument,
            properties={
                "patient_id": {"type": "keyword"},
                "name": {"type": "text"},
                "age": {"type": "integer"},
                "gender": {"type": "keyword"},
                "symptoms": {"type": "text"},
                "medical_history": {"type": "keyword"},
                "allergies": {"type": "keyword"},
                "medications": {"type": "keyword"},
                "active": {"type": "boolean"},
                "created_at": {"type": "date"},
                "updated_at": {"type": "date"},
            },
            required_fields=("patient_id", "symptoms"),
            vector_field="symptoms_vector",
            vector_source="symptoms",
            dims=dims,
            expects_data=True,
        ),
        IndexSchema(
            name=APPOINTMENTS,
            id_field="appointment_id",
            document_model=AppointmentDocument,
            properties={
                "appointment_id": {"type": "keyword"},
                "patient_id": {"type": "keyword"},
                "doctor_id": {"type": "keyword"},
                "doctor_name": {"type": "text"},
                "department": {"type": "keyword"},
                "date": {"type": "date"},
                "time_slot": {"type": "keyword"},
                "duration": {"type": "integer"},
                "status": {"type": "keyword"},
                "reason": {"type": "text"},
                "created_at": {"type": "date"},
            },
            required_fields=("appointment_id", "doctor_name", "department"),
            enum_fields={"department": DEPARTMENTS, "status": APPOINTMENT_STATUSES},
            expects_data=True,
        ),
        IndexSchema(
            name=MEDICAL_RECORDS,
            id_field="record_id",
            document_model=MedicalRecordDocument,
            properties={
                "record_id": {"type": "keyword"},
                "version": {"type": "integer"},
                "patient_id": {"type": "keyword"},
                "visit_date": {"type": "date"},
                "diagnosis": {"type": "text"},
                "treatment": {"type": "text"},
                "prescriptions": {"type": "keyword"},
                "lab_results": {"type": "object", "enabled": False},
                "notes": {"type": "text"},
                "severity": {"type": "keyword"},
                "created_at": {"type": "date"},
            },
            required_fields=("record_id", "patient_id", "notes"),
            enum_fields={"severity": SEVERITIES},
            vector_field="notes_vector",
            vector_source="notes",
            dims=dims,
            versioned=True,
        ),
        IndexSchema(
            name=MEDICAL_CASES,
            id_field="case_id",
            document_model=MedicalCaseDocument,
            properties={
                "case_id": {"type": "keyword"},
                "version": {"type": "integer"},
                "patient_id": {"type": "keyword"},
                "symptoms": {"type": "text"},
                "diagnosis": {"type": "text"},
                "department": {"type": "keyword"},
                "severity": {"type": "keyword"},
                "outcome": {"type": "text"},
                "created_at": {"type": "date"},
            },
            required_fields=("case_id", "symptoms", "department", "severity"),
            enum_fields={"department": DEPARTMENTS, "severity": SEVERITIES},
            vector_field="symptoms_vector",
            vector_source="symptoms",
            dims=dims,
            versioned=True,
            expects_data=True,
        ),
        IndexSchema(
            name=AGENT_LOGS,
            id_field="log_id",
            document_model=AgentLogDocument,
            properties={
                "log_id": {"type": "keyword"},
                "agent": {"type": "keyword"},
                "activity": {"type": "keyword"},
                "input": {"type": "object", "enabled": False},
                "output": {"type": "object", "enabled": False},
                "data": {"type": "object", "enabled": False},
                "timestamp": {"type": "date"},
            },
            required_fields=("agent", "activity"),
        ),
    ]
    return {s.name: s for s in schemas}
