# app/models/appointment_models.py
import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import AppointmentStatus, AppointmentType, Urgency

TIME_PATTERN = r"^\d{2}:\d{2}$"


class AppointmentCreate(BaseModel):
    date: dt.date
    time: str = Field(..., pattern=TIME_PATTERN)
    reason: str = Field(..., min_length=1, max_length=1000)
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None
    specialization: Optional[str] = None
    type: AppointmentType = AppointmentType.CONSULTATION
    urgency: Urgency = Urgency.NORMAL
    notes: Optional[str] = None
    is_holiday_override: bool = False
    override_reason: Optional[str] = Field(None, max_length=255)


class AppointmentReschedule(BaseModel):
    date: dt.date
    time: str = Field(..., pattern=TIME_PATTERN)
    reason: Optional[str] = Field(None, max_length=500)
    is_holiday_override: bool = False
    override_reason: Optional[str] = Field(None, max_length=255)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None
    request_reassignment: bool = False


class AppointmentReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class AppointmentConfirm(BaseModel):
    doctor_id: Optional[int] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None
    urgency: Optional[Urgency] = None
    date: Optional[dt.date] = None
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    reason: Optional[str] = Field(None, max_length=500)


class AssignDoctorRequest(BaseModel):
    doctor_id: int
    notes: Optional[str] = None


class ResolveReassignmentRequest(BaseModel):
    notes: Optional[str] = None
    replacement: Optional[AppointmentCreate] = None
