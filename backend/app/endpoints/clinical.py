# app/endpoints/clinical.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import require_roles
from app.models.appointment_models import (
    AppointmentCancel, AppointmentConfirm, AppointmentCreate, AppointmentReject, AppointmentReschedule,
    AppointmentUpdate, AssignDoctorRequest, ResolveReassignmentRequest,
)
from app.models.auth_models import ProfileUpdate
from app.models.clinical_models import MedicalCardUpdate, MedicationCreate, MedicationUpdate, VitalsCreate
from app.models.enums import AppointmentStatus, Role, Urgency
from app.models.user import User
from app.services import (
    appointment_service, availability_service, clinical_service, dashboard_service, profile_service, user_service,
)
from app.services.serializers import (
    appointment_to_dict, medication_to_dict, record_to_dict, user_summary, user_to_dict,
)

router = APIRouter(prefix="/clinical", tags=["clinical"])
current_staff = require_roles(Role.CLINICAL_STAFF)


@router.get("/dashboard")
def dashboard(staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    return dashboard_service.clinical_dashboard(db)


# ---------------- Doctors ----------------

@router.get("/doctors")
def doctors(staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    return {"doctors": [user_to_dict(d) for d in availability_service.active_doctors(db)]}


@router.get("/available-doctors")
def available_doctors(date: date, time: Optional[str] = None, specialization: Optional[str] = None,
                      staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    found = availability_service.available_doctors(db, date, time, specialization)
    return {"date": date.isoformat(), "time": time, "doctors": [user_summary(d) for d in found]}


# ---------------- Patients ----------------

@router.get("/patients")
def patients(search: Optional[str] = None, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    return {"patients": [user_to_dict(p) for p in user_service.list_patients(db, search)]}


@router.put("/patients/{patient_id}")
def update_patient(patient_id: int, payload: ProfileUpdate, staff: User = Depends(current_staff),
                   db: Session = Depends(get_db)):
    patient = profile_service.get_patient(db, patient_id)
    data = profile_service.update_profile(db, patient, payload.model_dump(exclude_unset=True))
    return {"message": "Patient updated successfully", "patient": data}


@router.get("/patients/{patient_id}/medical-card")
def medical_card(patient_id: int, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    patient = profile_service.get_patient(db, patient_id)
    return {"patient": user_summary(patient), "medical_card": profile_service.medical_card_to_dict(patient)}


@router.put("/patients/{patient_id}/medical-card")
def update_medical_card(patient_id: int, payload: MedicalCardUpdate, staff: User = Depends(current_staff),
                        db: Session = Depends(get_db)):
    patient = profile_service.get_patient(db, patient_id)
    card = profile_service.update_medical_card(db, staff, patient, payload.model_dump(exclude_unset=True))
    return {"message": "Medical card updated successfully", "medical_card": card}


@router.post("/patients/{patient_id}/vitals", status_code=201)
def record_vitals(patient_id: int, payload: VitalsCreate, staff: User = Depends(current_staff),
                  db: Session = Depends(get_db)):
    patient = profile_service.get_patient(db, patient_id)
    record = clinical_service.record_vitals(db, staff, patient, payload.model_dump())
    return {"message": "Vital signs recorded successfully", "record": record_to_dict(record)}


@router.get("/patients/{patient_id}/vitals")
def vitals_history(patient_id: int, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    patient = profile_service.get_patient(db, patient_id)
    return {"vitals": [record_to_dict(r) for r in clinical_service.vitals_history(db, patient.id)]}


@router.get("/medical-records/{record_id}")
def medical_record(record_id: int, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    return {"record": record_to_dict(clinical_service.get_record(db, staff, record_id))}


# ---------------- Appointments ----------------

@router.get("/appointments")
def appointments(status: Optional[AppointmentStatus] = None, date_from: Optional[date] = None,
                 date_to: Optional[date] = None, doctor_id: Optional[int] = None, urgency: Optional[Urgency] = None,
                 staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    rows = appointment_service.list_appointments(
        db, staff, status=status.value if status else None, date_from=date_from, date_to=date_to,
        doctor_id=doctor_id, urgency=urgency.value if urgency else None,
    )
    return {"appointments": [appointment_to_dict(a) for a in rows]}


@router.post("/appointments", status_code=201)
def schedule_appointment(payload: AppointmentCreate, staff: User = Depends(current_staff),
                         db: Session = Depends(get_db)):
    appt = appointment_service.create(db, staff, payload.model_dump())
    return {"message": "Appointment scheduled successfully", "appointment": appointment_to_dict(appt)}


@router.get("/appointments/reassignment-queue")
def reassignment_queue(staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    rows = appointment_service.reassignment_queue(db)
    return {"appointments": [appointment_to_dict(a) for a in rows], "total": len(rows)}


@router.put("/appointments/{appointment_id}")
def update_appointment(appointment_id: int, payload: AppointmentUpdate, staff: User = Depends(current_staff),
                       db: Session = Depends(get_db)):
    appt = appointment_service.get_appointment(db, appointment_id)
    appt = appointment_service.update(db, staff, appt, payload.model_dump(exclude_unset=True))
    return {"message": "Appointment updated successfully", "appointment": appointment_to_dict(appt)}


@router.delete("/appointments/{appointment_id}")
def delete_appointment(appointment_id: int, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    appt = appointment_service.cancel(db, staff, appointment_service.get_appointment(db, appointment_id))
    return {"message": "Appointment cancelled successfully", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/confirm")
def confirm(appointment_id: int, payload: Optional[AppointmentConfirm] = None, staff: User = Depends(current_staff),
            db: Session = Depends(get_db)):
    appt = appointment_service.get_appointment(db, appointment_id)
    appt = appointment_service.confirm(
        db, staff, appt, doctor_id=payload.doctor_id if payload else None, notes=payload.notes if payload else None
    )
    return {"message": "Appointment confirmed successfully", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/reject")
def reject(appointment_id: int, payload: AppointmentReject, staff: User = Depends(current_staff),
           db: Session = Depends(get_db)):
    appt = appointment_service.reject(db, staff, appointment_service.get_appointment(db, appointment_id), payload.reason)
    return {"message": "Appointment rejected", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/cancel")
def cancel(appointment_id: int, payload: AppointmentCancel, staff: User = Depends(current_staff),
           db: Session = Depends(get_db)):
    appt = appointment_service.get_appointment(db, appointment_id)
    appt = appointment_service.cancel(db, staff, appt, payload.reason, payload.request_reassignment)
    return {"message": "Appointment cancelled successfully", "appointment": appointment_to_dict(appt)}


@router.put("/appointments/{appointment_id}/reschedule")
def reschedule(appointment_id: int, payload: AppointmentReschedule, staff: User = Depends(current_staff),
               db: Session = Depends(get_db)):
    appt = appointment_service.get_appointment(db, appointment_id)
    appt = appointment_service.reschedule(
        db, staff, appt, payload.date, payload.time, payload.reason,
        is_holiday_override=payload.is_holiday_override, override_reason=payload.override_reason,
    )
    return {"message": "Appointment rescheduled successfully", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/assign-doctor")
def assign_doctor(appointment_id: int, payload: AssignDoctorRequest, staff: User = Depends(current_staff),
                  db: Session = Depends(get_db)):
    appt = appointment_service.get_appointment(db, appointment_id)
    appt = appointment_service.assign_doctor(db, staff, appt, payload.doctor_id, payload.notes)
    return {"message": "Doctor assigned successfully", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/resolve-reassignment")
def resolve_reassignment(appointment_id: int, payload: ResolveReassignmentRequest,
                         staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    appt = appointment_service.get_appointment(db, appointment_id)
    replacement = payload.replacement.model_dump() if payload.replacement else None
    appt, new_appt = appointment_service.resolve_reassignment(db, staff, appt, payload.notes, replacement)
    return {
        "message": "Reassignment resolved",
        "appointment": appointment_to_dict(appt),
        "replacement": appointment_to_dict(new_appt) if new_appt else None,
    }


# ---------------- Medications ----------------

@router.get("/medications")
def medications(patient_id: Optional[int] = None, status: Optional[str] = None,
                staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    return {"medications": [medication_to_dict(m) for m in clinical_service.list_medications(db, patient_id, status)]}


@router.post("/medications", status_code=201)
def add_medication(payload: MedicationCreate, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    patient = profile_service.get_patient(db, payload.patient_id)
    med = clinical_service.add_medication(db, staff, patient, payload.model_dump())
    return {"message": "Medication added successfully", "medication": medication_to_dict(med)}


@router.get("/medication-schedule")
def medication_schedule(day: Optional[date] = None, staff: User = Depends(current_staff),
                        db: Session = Depends(get_db)):
    day = day or date.today()
    return {"date": day.isoformat(),
            "medications": [medication_to_dict(m) for m in clinical_service.medication_schedule(db, day)]}


@router.put("/medications/{medication_id}")
def update_medication(medication_id: int, payload: MedicationUpdate, staff: User = Depends(current_staff),
                      db: Session = Depends(get_db)):
    med = clinical_service.get_medication(db, medication_id)
    med = clinical_service.update_medication(db, staff, med, payload.model_dump(exclude_unset=True))
    return {"message": "Medication updated successfully", "medication": medication_to_dict(med)}


@router.delete("/medications/{medication_id}")
def delete_medication(medication_id: int, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    clinical_service.delete_medication(db, staff, clinical_service.get_medication(db, medication_id))
    return {"message": "Medication deleted successfully"}


@router.post("/medications/{medication_id}/administer")
def administer(medication_id: int, staff: User = Depends(current_staff), db: Session = Depends(get_db)):
    med = clinical_service.record_administration(db, staff, clinical_service.get_medication(db, medication_id))
    return {"message": "Medication administration recorded", "medication": medication_to_dict(med)}
