# app/endpoints/patients.py
"""Self-service routes shared by the two patient roles (students and academic staff)."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import require_roles
from app.exceptions import ValidationFailed
from app.models.appointment_models import AppointmentCancel, AppointmentCreate, AppointmentReschedule
from app.models.enums import AppointmentStatus, Role
from app.models.user import User
from app.services import (
    appointment_service, availability_service, clinical_service, dashboard_service,
)
from app.services.serializers import (
    appointment_to_dict, medication_to_dict, prescription_to_dict, record_to_dict, user_summary,
)


def build_patient_router(prefix: str, role: Role) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[role.value])
    current_patient = require_roles(role)

    @router.get("/dashboard")
    def dashboard(user: User = Depends(current_patient), db: Session = Depends(get_db)):
        return dashboard_service.patient_dashboard(db, user)

    @router.get("/appointments")
    def my_appointments(status: Optional[AppointmentStatus] = None, user: User = Depends(current_patient),
                        db: Session = Depends(get_db)):
        rows = appointment_service.list_appointments(db, user, status=status.value if status else None)
        return {"appointments": [appointment_to_dict(a) for a in rows]}

    @router.post("/appointments", status_code=201)
    def schedule(payload: AppointmentCreate, user: User = Depends(current_patient), db: Session = Depends(get_db)):
        appt = appointment_service.create(db, user, payload.model_dump())
        return {"message": "Appointment scheduled successfully", "appointment": appointment_to_dict(appt)}

    @router.put("/appointments/{appointment_id}/reschedule")
    def reschedule(appointment_id: int, payload: AppointmentReschedule, user: User = Depends(current_patient),
                   db: Session = Depends(get_db)):
        appt = appointment_service.get_visible(db, user, appointment_id)
        appt = appointment_service.reschedule(db, user, appt, payload.date, payload.time, payload.reason)
        return {"message": "Appointment rescheduled successfully", "appointment": appointment_to_dict(appt)}

    @router.post("/appointments/{appointment_id}/cancel")
    def cancel(appointment_id: int, payload: AppointmentCancel, user: User = Depends(current_patient),
               db: Session = Depends(get_db)):
        appt = appointment_service.get_visible(db, user, appointment_id)
        appt = appointment_service.cancel(db, user, appt, payload.reason, payload.request_reassignment)
        return {"message": "Appointment cancelled successfully", "appointment": appointment_to_dict(appt)}

    @router.get("/doctors")
    def doctors(user: User = Depends(current_patient), db: Session = Depends(get_db)):
        return {"doctors": [user_summary(d) for d in availability_service.active_doctors(db)]}

    @router.get("/doctor-availability")
    def doctor_availability(date: date, time: Optional[str] = None, specialization: Optional[str] = None,
                            user: User = Depends(current_patient), db: Session = Depends(get_db)):
        availability_service.check_window(date)
        doctors = availability_service.available_doctors(db, date, time, specialization)
        return {"date": date.isoformat(), "time": time, "doctors": [user_summary(d) for d in doctors]}

    @router.get("/available-slots")
    def available_slots(date: date, doctor_id: Optional[int] = None, user: User = Depends(current_patient),
                        db: Session = Depends(get_db)):
        doctor = None
        if doctor_id is not None:
            doctor = next((d for d in availability_service.active_doctors(db) if d.id == doctor_id), None)
            if doctor is None:
                raise ValidationFailed.field("doctor_id", "The selected doctor is not available.")
        return availability_service.available_slots(db, date, doctor)

    @router.get("/medical-history")
    def medical_history(user: User = Depends(current_patient), db: Session = Depends(get_db)):
        return {
            "records": [record_to_dict(r) for r in clinical_service.patient_records(db, user.id)],
            "prescriptions": [prescription_to_dict(p) for p in clinical_service.patient_prescriptions(db, user.id)],
            "medications": [medication_to_dict(m) for m in clinical_service.list_medications(db, patient_id=user.id)],
        }

    return router


student_router = build_patient_router("/student", Role.STUDENT)
academic_staff_router = build_patient_router("/academic-staff", Role.ACADEMIC_STAFF)
