# app/services/clinical_service.py
import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import Conflict, InvalidTransition, NotFound, PermissionDenied, ValidationFailed
from app.models.appointment import Appointment
from app.models.clinical import MedicalRecord, Medication, Prescription
from app.models.enums import (
    AppointmentStatus, MedicationStatus, NotificationType, PrescriptionStatus, RecordType, Role,
)
from app.models.user import User
from app.services import notification_service

logger = logging.getLogger(__name__)

VITAL_FIELDS = ("blood_pressure", "heart_rate", "temperature", "respiratory_rate", "oxygen_saturation", "weight", "height")

MEDICATION_TRANSITIONS = {
    MedicationStatus.ACTIVE: frozenset({MedicationStatus.DISCONTINUED, MedicationStatus.COMPLETED}),
    MedicationStatus.DISCONTINUED: frozenset(),
    MedicationStatus.COMPLETED: frozenset(),
}


def compute_bmi(weight, height) -> Optional[Decimal]:
    """BMI from weight in kg and height in cm, rounded to two places."""
    if not weight or not height:
        return None
    metres = Decimal(str(height)) / Decimal(100)
    value = Decimal(str(weight)) / (metres * metres)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ---------------- Medical records ----------------

def _check_record_appointment(db: Session, patient: User, appointment_id: Optional[int]):
    if appointment_id is None:
        return None
    appt = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appt is None or appt.patient_id != patient.id:
        raise ValidationFailed.field("appointment_id", "The appointment does not belong to this patient.")
    if appt.status != AppointmentStatus.COMPLETED.value:
        raise ValidationFailed.field("appointment_id", "Records can only be attached to completed appointments.")
    return appt


def create_record(db: Session, author: User, patient: User, data: dict) -> MedicalRecord:
    appt = _check_record_appointment(db, patient, data.get("appointment_id"))
    record = MedicalRecord(
        patient_id=patient.id,
        doctor_id=author.id if author.role_enum == Role.DOCTOR else (appt.doctor_id if appt else None),
        appointment_id=appt.id if appt else None,
        visit_date=data.get("visit_date") or (appt.date if appt else date.today()),
        type=RecordType(data.get("type") or RecordType.CONSULTATION).value,
        diagnosis=data.get("diagnosis"),
        treatment=data.get("treatment"),
        notes=data.get("notes"),
        created_by=author.id,
    )
    for field in VITAL_FIELDS:
        setattr(record, field, data.get(field))
    record.bmi = compute_bmi(record.weight, record.height)
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(f"📋 Medical record {record.id} ({record.type}) for patient {patient.id} by user {author.id}")
    return record


def record_vitals(db: Session, author: User, patient: User, data: dict) -> MedicalRecord:
    if not any(data.get(f) is not None for f in VITAL_FIELDS):
        raise ValidationFailed.field("vitals", "At least one vital sign is required.")
    return create_record(db, author, patient, {**data, "type": RecordType.VITALS})


def patient_records(db: Session, patient_id: int, type_: Optional[str] = None) -> List[MedicalRecord]:
    query = db.query(MedicalRecord).filter(MedicalRecord.patient_id == patient_id)
    if type_:
        query = query.filter(MedicalRecord.type == type_)
    return query.order_by(MedicalRecord.visit_date.desc(), MedicalRecord.id.desc()).all()


def get_record(db: Session, viewer: User, record_id: int) -> MedicalRecord:
    record = db.query(MedicalRecord).filter(MedicalRecord.id == record_id).first()
    if record is None:
        raise NotFound("Medical record not found")
    if viewer.role_enum.is_patient and record.patient_id != viewer.id:
        raise PermissionDenied("You cannot access this record")
    return record


def vitals_history(db: Session, patient_id: int, limit: int = 20) -> List[MedicalRecord]:
    return (
        db.query(MedicalRecord)
        .filter(
            MedicalRecord.patient_id == patient_id,
            or_(*(getattr(MedicalRecord, f).isnot(None) for f in VITAL_FIELDS)),
        )
        .order_by(MedicalRecord.visit_date.desc(), MedicalRecord.id.desc())
        .limit(limit)
        .all()
    )


# ---------------- Prescriptions ----------------

def _overlaps(a_start: date, a_end: Optional[date], b_start: date, b_end: Optional[date]) -> bool:
    return a_start <= (b_end or date.max) and b_start <= (a_end or date.max)


def _similar(a: str, b: str) -> bool:
    a, b = a.strip().lower(), b.strip().lower()
    return a in b or b in a


def find_conflicts(db: Session, patient_id: int, medications: List[dict]) -> List[dict]:
    """Active medications of the patient that overlap a new one by name and dates."""
    active = (
        db.query(Medication)
        .filter(Medication.patient_id == patient_id, Medication.status == MedicationStatus.ACTIVE.value)
        .all()
    )
    conflicts = []
    for new in medications:
        for existing in active:
            names = [n for n in (existing.name, existing.generic_name) if n]
            if not any(_similar(new["name"], n) for n in names):
                continue
            if _overlaps(new["start_date"], new.get("end_date"), existing.start_date, existing.end_date):
                conflicts.append({
                    "medication": new["name"],
                    "conflicts_with": existing.name,
                    "existing_medication_id": existing.id,
                    "existing_start_date": existing.start_date.isoformat(),
                    "existing_end_date": existing.end_date.isoformat() if existing.end_date else None,
                })
    return conflicts


def create_prescription(db: Session, doctor: User, patient: User, data: dict) -> Prescription:
    meds = data["medications"]
    if not meds:
        raise ValidationFailed.field("medications", "At least one medication is required.")
    conflicts = find_conflicts(db, patient.id, meds)
    if conflicts and not data.get("force"):
        raise Conflict("Potential medication conflicts detected", conflicts=conflicts)

    rx = Prescription(patient_id=patient.id, doctor_id=doctor.id, notes=data.get("notes"),
                      status=PrescriptionStatus.ACTIVE.value)
    for med in meds:
        rx.medications.append(Medication(
            name=med["name"],
            generic_name=med.get("generic_name"),
            dosage=med["dosage"],
            frequency=med.get("frequency"),
            instructions=med.get("instructions"),
            start_date=med["start_date"],
            end_date=med.get("end_date"),
            status=MedicationStatus.ACTIVE.value,
            patient_id=patient.id,
            created_by=doctor.id,
        ))
    db.add(rx)
    db.flush()
    notification_service.notify(
        db, patient.id, NotificationType.PRESCRIPTION_READY, "Prescription ready",
        f"{doctor.full_title} prescribed {', '.join(m['name'] for m in meds)}.", {"prescription_id": rx.id},
    )
    db.commit()
    db.refresh(rx)
    logger.info(
        f"💊 Prescription {rx.id} for patient {patient.id} by doctor {doctor.id}"
        + (f" (forced past {len(conflicts)} conflict(s))" if conflicts else "")
    )
    return rx


def doctor_prescriptions(db: Session, doctor: User, status: Optional[str] = None) -> List[Prescription]:
    query = db.query(Prescription).filter(Prescription.doctor_id == doctor.id)
    if status:
        query = query.filter(Prescription.status == status)
    return query.order_by(Prescription.created_at.desc(), Prescription.id.desc()).all()


def patient_prescriptions(db: Session, patient_id: int) -> List[Prescription]:
    return (
        db.query(Prescription)
        .filter(Prescription.patient_id == patient_id)
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .all()
    )


# ---------------- Medications ----------------

def get_medication(db: Session, medication_id: int) -> Medication:
    med = db.query(Medication).filter(Medication.id == medication_id).first()
    if med is None:
        raise NotFound("Medication not found")
    return med


def list_medications(db: Session, patient_id: Optional[int] = None, status: Optional[str] = None) -> List[Medication]:
    query = db.query(Medication)
    if patient_id is not None:
        query = query.filter(Medication.patient_id == patient_id)
    if status:
        query = query.filter(Medication.status == status)
    return query.order_by(Medication.start_date.desc(), Medication.id.desc()).all()


def add_medication(db: Session, author: User, patient: User, data: dict) -> Medication:
    if data.get("prescription_id") is not None:
        rx = db.query(Prescription).filter(Prescription.id == data["prescription_id"]).first()
        if rx is None or rx.patient_id != patient.id:
            raise ValidationFailed.field("prescription_id", "The prescription does not belong to this patient.")
    med = Medication(
        name=data["name"],
        generic_name=data.get("generic_name"),
        dosage=data["dosage"],
        frequency=data.get("frequency"),
        instructions=data.get("instructions"),
        start_date=data["start_date"],
        end_date=data.get("end_date"),
        status=MedicationStatus.ACTIVE.value,
        patient_id=patient.id,
        prescription_id=data.get("prescription_id"),
        created_by=author.id,
    )
    db.add(med)
    db.commit()
    db.refresh(med)
    logger.info(f"💊 Medication {med.id} ({med.name}) added for patient {patient.id} by user {author.id}")
    return med


def update_medication(db: Session, author: User, med: Medication, changes: dict) -> Medication:
    if "status" in changes and changes["status"] is not None:
        target = MedicationStatus(changes["status"])
        current = MedicationStatus(med.status)
        if target != current:
            if target not in MEDICATION_TRANSITIONS[current]:
                raise InvalidTransition(f"Cannot change a medication from {current.value} to {target.value}.")
            med.status = target.value
    for field in ("dosage", "frequency", "instructions"):
        if changes.get(field) is not None:
            setattr(med, field, changes[field])
    if "end_date" in changes:
        end = changes["end_date"]
        if end is not None and end < med.start_date:
            raise ValidationFailed.field("end_date", "The end date must be on or after the start date.")
        med.end_date = end
    db.commit()
    db.refresh(med)
    logger.info(f"💊 Medication {med.id} updated by user {author.id}: {sorted(changes)}")
    return med


def delete_medication(db: Session, author: User, med: Medication):
    logger.info(f"💊 Medication {med.id} deleted by user {author.id}")
    db.delete(med)
    db.commit()


def record_administration(db: Session, author: User, med: Medication, when: Optional[datetime] = None) -> Medication:
    if med.status != MedicationStatus.ACTIVE.value:
        raise InvalidTransition("Only active medications can be administered.")
    med.administered_at = when or datetime.utcnow()
    med.administered_by = author.id
    db.commit()
    db.refresh(med)
    logger.info(f"💉 Medication {med.id} administered by user {author.id}")
    return med


def medication_schedule(db: Session, day: date) -> List[Medication]:
    candidates = (
        db.query(Medication)
        .filter(Medication.status == MedicationStatus.ACTIVE.value, Medication.start_date <= day)
        .order_by(Medication.patient_id, Medication.name)
        .all()
    )
    return [m for m in candidates if m.is_due_on(day)]
