# app/endpoints/appointments.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import ADMINS, get_current_user, require_roles
from app.models.appointment_models import AppointmentCreate, AppointmentUpdate
from app.models.enums import AppointmentStatus, Role, Urgency
from app.models.user import User
from app.services import appointment_service
from app.services.serializers import appointment_to_dict

router = APIRouter(prefix="/appointments", tags=["appointments"])

can_book = require_roles(Role.STUDENT, Role.ACADEMIC_STAFF, Role.DOCTOR, Role.CLINICAL_STAFF)
can_mutate = require_roles(Role.DOCTOR, Role.CLINICAL_STAFF, *ADMINS)


@router.get("")
def list_appointments(
    status: Optional[AppointmentStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    doctor_id: Optional[int] = None,
    urgency: Optional[Urgency] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = appointment_service.list_appointments(
        db, user,
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
        doctor_id=doctor_id,
        urgency=urgency.value if urgency else None,
    )
    return {"appointments": [appointment_to_dict(a) for a in rows], "total": len(rows)}


@router.post("", status_code=201)
def create_appointment(payload: AppointmentCreate, user: User = Depends(can_book), db: Session = Depends(get_db)):
    appt = appointment_service.create(db, user, payload.model_dump())
    return {"message": "Appointment scheduled successfully", "appointment": appointment_to_dict(appt)}


@router.get("/{appointment_id}")
def get_appointment(appointment_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"appointment": appointment_to_dict(appointment_service.get_visible(db, user, appointment_id))}


@router.put("/{appointment_id}")
def update_appointment(appointment_id: int, payload: AppointmentUpdate, user: User = Depends(can_mutate),
                       db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, user, appointment_id)
    appt = appointment_service.update(db, user, appt, payload.model_dump(exclude_unset=True))
    return {"message": "Appointment updated successfully", "appointment": appointment_to_dict(appt)}


@router.delete("/{appointment_id}")
def cancel_appointment(appointment_id: int, reason: Optional[str] = None, user: User = Depends(can_mutate),
                       db: Session = Depends(get_db)):
    appt = appointment_service.get_visible(db, user, appointment_id)
    appt = appointment_service.cancel(db, user, appt, reason)
    return {"message": "Appointment cancelled successfully", "appointment": appointment_to_dict(appt)}
