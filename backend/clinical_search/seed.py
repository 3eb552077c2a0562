"""Sample clinical documents for a fresh cluster.

Idempotent: every document is upserted by its id, so re-running the seed
does not duplicate anything.
"""

from __future__ import annotations

import datetime

from clinical_search.models.documents import (
    AppointmentDocument,
    MedicalCaseDocument,
    PatientDocument,
)
from clinical_search.services.document_writer import DocumentWriter

PATIENTS = [
    PatientDocument(
        patient_id="P001",
        name="John Smith",
        age=45,
        gender="male",
        symptoms="chest pain, shortness of breath, dizziness",
        medical_history=["hypertension", "diabetes"],
        allergies=["penicillin"],
        medications=["metformin", "lisinopril"],
    ),
    PatientDocument(
        patient_id="P002",
        name="Sarah Johnson",
        age=32,
        gender="female",
        symptoms="severe headache, nausea, sensitivity to light",
        medical_history=["migraine"],
        allergies=[],
        medications=["sumatriptan"],
    ),
    PatientDocument(
        patient_id="P003",
        name="Michael Brown",
        age=58,
        gender="male",
        symptoms="joint pain, stiffness, swelling in knees",
        medical_history=["arthritis"],
        allergies=["aspirin"],
        medications=["ibuprofen", "glucosamine"],
    ),
]

MEDICAL_CASES = [
    MedicalCaseDocument(
        case_id="C001",
        symptoms="chest pain, shortness of breath",
        diagnosis="Angina",
        department="Cardiology",
        severity="high",
        outcome="Treated with medication, scheduled for stress test",
    ),
    MedicalCaseDocument(
        case_id="C002",
        symptoms="severe headache, nausea, light sensitivity",
        diagnosis="Migraine",
        department="Neurology",
        severity="medium",
        outcome="Prescribed sumatriptan, advised rest",
    ),
    MedicalCaseDocument(
        case_id="C003",
        symptoms="joint pain, stiffness, swelling",
        diagnosis="Osteoarthritis",
        department="Orthopedics",
        severity="medium",
        outcome="Physical therapy recommended, pain management",
    ),
]


def sample_appointments(
    now: datetime.datetime | None = None,
) -> list[AppointmentDocument]:
    """Upcoming appointments relative to ``now``."""
    now = now or datetime.datetime.now(datetime.UTC)
    return [
        AppointmentDocument(
            appointment_id="A001",
            patient_id="P001",
            doctor_id="D001",
            doctor_name="Dr. Emily Carter",
            department="Cardiology",
            date=now + datetime.timedelta(days=1),
            time_slot="09:00",
            duration=30,
            status="confirmed",
            reason="Follow-up for chest pain",
        ),
        AppointmentDocument(
            appointment_id="A002",
            patient_id="P002",
            doctor_id="D002",
            doctor_name="Dr. James Wilson",
            department="Neurology",
            date=now + datetime.timedelta(days=2),
            time_slot="14:00",
            duration=45,
            status="confirmed",
            reason="Migraine consultation",
        ),
    ]


async def seed(writer: DocumentWriter) -> dict[str, int]:
    """Write the sample documents. Returns the number written per index."""
    for patient in PATIENTS:
        await writer.write_patient(patient)
    appointments = sample_appointments()
    for appointment in appointments:
        await writer.write_appointment(appointment)
    for case in MEDICAL_CASES:
        await writer.write_medical_case(case)
    return {
        "patients": len(PATIENTS),
        "appointments": len(appointments),
        "medical_cases": len(MEDICAL_CASES),
    }
