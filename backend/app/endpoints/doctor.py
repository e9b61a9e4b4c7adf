# app/endpoints/doctor.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import require_roles
from app.exceptions import PermissionDenied
from app.models.admin_models import AvailabilityUpdate
from app.models.appointment_models import (
    AppointmentCancel, AppointmentConfirm, AppointmentCreate, AppointmentReject, AppointmentReschedule,
    AppointmentUpdate,
)
from app.models.clinical_models import MedicalRecordCreate, PrescriptionCreate
from app.models.enums import AppointmentStatus, Role
from app.models.user import User
from app.services import (
    appointment_service, clinical_service, dashboard_service, holiday_service, profile_service, user_service,
)
from app.services.serializers import (
    appointment_to_dict, prescription_to_dict, record_to_dict, schedule_to_dict, user_to_dict,
)

router = APIRouter(prefix="/doctor", tags=["doctor"])
current_doctor = require_roles(Role.DOCTOR)


def _patient_for(db: Session, doctor: User, patient_id: int) -> User:
    patient = profile_service.get_patient(db, patient_id)
    if patient not in user_service.list_patients(db, doctor=doctor):
        raise PermissionDenied("This patient is not under your care")
    return patient


@router.get("/dashboard")
def dashboard(doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    return dashboard_service.doctor_dashboard(db, doctor)


@router.get("/statistics")
def statistics(doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    return dashboard_service.doctor_statistics(db, doctor)


# ---------------- Patients ----------------

@router.get("/patients")
def patients(search: Optional[str] = None, doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    return {"patients": [user_to_dict(p) for p in user_service.list_patients(db, search, doctor=doctor)]}


@router.get("/patients/{patient_id}")
def patient_detail(patient_id: int, doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    patient = _patient_for(db, doctor, patient_id)
    return {
        "patient": profile_service.profile_to_dict(patient),
        "records": [record_to_dict(r) for r in clinical_service.patient_records(db, patient.id)],
        "appointments": [
            appointment_to_dict(a) for a in appointment_service.list_appointments(db, doctor, patient_id=patient.id)
        ],
    }


@router.post("/patients/{patient_id}/assign")
def assign_patient(patient_id: int, doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    patient = user_service.assign_patient(db, doctor, profile_service.get_patient(db, patient_id))
    return {"message": "Patient assigned successfully", "patient": user_to_dict(patient)}


@router.get("/patients/{patient_id}/records")
def patient_records(patient_id: int, doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    patient = _patient_for(db, doctor, patient_id)
    return {"records": [record_to_dict(r) for r in clinical_service.patient_records(db, patient.id)]}


@router.post("/patients/{patient_id}/records", status_code=201)
def create_record(patient_id: int, payload: MedicalRecordCreate, doctor: User = Depends(current_doctor),
                  db: Session = Depends(get_db)):
    patient = _patient_for(db, doctor, patient_id)
    record = clinical_service.create_record(db, doctor, patient, payload.model_dump())
    return {"message": "Medical record created successfully", "record": record_to_dict(record)}


# ---------------- Appointments ----------------

@router.get("/appointments")
def appointments(status: Optional[AppointmentStatus] = None, doctor: User = Depends(current_doctor),
                 db: Session = Depends(get_db)):
    rows = appointment_service.list_appointments(db, doctor, status=status.value if status else None)
    return {"appointments": [appointment_to_dict(a) for a in rows]}


@router.post("/appointments", status_code=201)
def create_appointment(payload: AppointmentCreate, doctor: User = Depends(current_doctor),
                       db: Session = Depends(get_db)):
    appt = appointment_service.create(db, doctor, payload.model_dump())
    return {"message": "Appointment scheduled successfully", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/confirm")
def confirm(appointment_id: int, payload: Optional[AppointmentConfirm] = None, doctor: User = Depends(current_doctor),
            db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, doctor, appointment_id)
    appt = appointment_service.confirm(db, doctor, appt, notes=payload.notes if payload else None)
    return {"message": "Appointment confirmed successfully", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/reject")
def reject(appointment_id: int, payload: AppointmentReject, doctor: User = Depends(current_doctor),
           db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, doctor, appointment_id)
    appt = appointment_service.reject(db, doctor, appt, payload.reason)
    return {"message": "Appointment rejected", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/complete")
def complete(appointment_id: int, doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, doctor, appointment_id)
    appt = appointment_service.finish(db, doctor, appt, AppointmentStatus.COMPLETED)
    return {"message": "Appointment completed", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/no-show")
def no_show(appointment_id: int, doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, doctor, appointment_id)
    appt = appointment_service.finish(db, doctor, appt, AppointmentStatus.NO_SHOW)
    return {"message": "Appointment marked as no-show", "appointment": appointment_to_dict(appt)}


@router.put("/appointments/{appointment_id}/status")
def update_status(appointment_id: int, payload: AppointmentUpdate, doctor: User = Depends(current_doctor),
                  db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, doctor, appointment_id)
    appt = appointment_service.update(db, doctor, appt, payload.model_dump(exclude_unset=True))
    return {"message": "Appointment updated successfully", "appointment": appointment_to_dict(appt)}


@router.put("/appointments/{appointment_id}/reschedule")
def reschedule(appointment_id: int, payload: AppointmentReschedule, doctor: User = Depends(current_doctor),
               db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, doctor, appointment_id)
    appt = appointment_service.reschedule(db, doctor, appt, payload.date, payload.time, payload.reason)
    return {"message": "Appointment rescheduled successfully", "appointment": appointment_to_dict(appt)}


@router.post("/appointments/{appointment_id}/cancel")
def cancel(appointment_id: int, payload: AppointmentCancel, doctor: User = Depends(current_doctor),
           db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, doctor, appointment_id)
    appt = appointment_service.cancel(db, doctor, appt, payload.reason, payload.request_reassignment)
    return {"message": "Appointment cancelled successfully", "appointment": appointment_to_dict(appt)}


# ---------------- Prescriptions ----------------

@router.get("/prescriptions")
def prescriptions(status: Optional[str] = None, doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    return {"prescriptions": [prescription_to_dict(p) for p in clinical_service.doctor_prescriptions(db, doctor, status)]}


@router.post("/prescriptions", status_code=201)
def create_prescription(payload: PrescriptionCreate, doctor: User = Depends(current_doctor),
                        db: Session = Depends(get_db)):
    patient = profile_service.get_patient(db, payload.patient_id)
    rx = clinical_service.create_prescription(db, doctor, patient, payload.model_dump())
    return {"message": "Prescription created successfully", "prescription": prescription_to_dict(rx)}


# ---------------- Availability ----------------

@router.get("/availability")
def get_availability(doctor: User = Depends(current_doctor)):
    return {
        "available_days": doctor.available_days or [],
        "working_hours_start": doctor.working_hours_start,
        "working_hours_end": doctor.working_hours_end,
        "is_available": doctor.is_available,
    }


@router.put("/availability")
def update_availability(payload: AvailabilityUpdate, doctor: User = Depends(current_doctor),
                        db: Session = Depends(get_db)):
    doctor = holiday_service.update_doctor_availability(db, doctor, payload.model_dump())
    return {
        "message": "Availability updated successfully",
        "available_days": doctor.available_days,
        "working_hours_start": doctor.working_hours_start,
        "working_hours_end": doctor.working_hours_end,
        "schedule": schedule_to_dict(doctor.schedule),
    }


@router.get("/schedule")
def schedule(doctor: User = Depends(current_doctor), db: Session = Depends(get_db)):
    upcoming = [
        a for a in appointment_service.list_appointments(db, doctor)
        if a.status in (AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value)
    ]
    upcoming.sort(key=lambda a: (a.date, a.time))
    return {
        "schedule": schedule_to_dict(doctor.schedule) if doctor.schedule else None,
        "appointments": [appointment_to_dict(a) for a in upcoming],
    }
