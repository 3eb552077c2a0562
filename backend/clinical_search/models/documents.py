"""Pydantic models for the denormalized search documents."""

from __future__ import annotations

import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class PatientDocument(BaseModel):
    """A patient as indexed in ``patients``.

    Extra demographic fields are kept and stored as-is. Patients are never
    deleted; ``active`` is cleared instead.
    """

    model_config = ConfigDict(extra="allow")

    patient_id: str
    name: str
    symptoms: str
    symptoms_vector: list[float] | None = None
    age: int | None = None
    gender: str | None = None
    medical_history: list[str] = []
    allergies: list[str] = []
    medications: list[str] = []
    active: bool = True
    created_at: datetime.datetime = Field(default_factory=_now)
    updated_at: datetime.datetime = Field(default_factory=_now)


class AppointmentDocument(BaseModel):
    appointment_id: str
    patient_id: str
    doctor_name: str
    department: str
    date: datetime.datetime
    doctor_id: str | None = None
    time_slot: str | None = None
    duration: int | None = None
    status: str = "scheduled"
    reason: str | None = None
    created_at: datetime.datetime = Field(default_factory=_now)


class MedicalRecordDocument(BaseModel):
    """One version of an encounter record. Corrections carry a higher version."""

    record_id: str
    patient_id: str
    notes: str
    version: int = Field(default=1, ge=1)
    notes_vector: list[float] | None = None
    visit_date: datetime.datetime | None = None
    diagnosis: str | None = None
    treatment: str | None = None
    prescriptions: list[str] = []
    lab_results: dict[str, Any] = {}
    severity: str | None = None
    created_at: datetime.datetime = Field(default_factory=_now)


class MedicalCaseDocument(BaseModel):
    case_id: str
    symptoms: str
    diagnosis: str
    department: str
    severity: str
    version: int = Field(default=1, ge=1)
    symptoms_vector: list[float] | None = None
    patient_id: str | None = None
    outcome: str | None = None
    created_at: datetime.datetime = Field(default_factory=_now)


class AgentLogDocument(BaseModel):
    """Write-once record of an automated agent action."""

    agent: str
    activity: str
    input: dict[str, Any] = {}
    output: dict[str, Any] = {}
    data: dict[str, Any] = {}
    timestamp: datetime.datetime = Field(default_factory=_now)
    log_id: str | None = None
