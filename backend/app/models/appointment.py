# app/models/appointment.py
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.enums import AppointmentStatus, AppointmentType, TERMINAL_STATUSES, Urgency


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_status_date", "status", "date"),
        Index("ix_appointments_patient_date", "patient_id", "date"),
        Index("ix_appointments_doctor_slot", "doctor_id", "date", "time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # None = any available doctor
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # "HH:MM", one of TIME_SLOTS
    type = Column(String(30), nullable=False, default=AppointmentType.CONSULTATION.value)
    specialization = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value)
    urgency = Column(String(20), nullable=False, default=Urgency.NORMAL.value)
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)

    assigned_at = Column(DateTime, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)
    reschedule_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    is_holiday_override = Column(Boolean, nullable=False, default=False)
    override_reason = Column(String(255), nullable=True)
    blocked_by_holiday_id = Column(Integer, ForeignKey("academic_holidays.id", ondelete="SET NULL"), nullable=True)

    needs_reassignment = Column(Boolean, nullable=False, default=False)
    reassignment_notes = Column(Text, nullable=True)
    reassigned_at = Column(DateTime, nullable=True)
    reassigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    patient = relationship("User", foreign_keys=[patient_id])
    doctor = relationship("User", foreign_keys=[doctor_id])
    blocked_by_holiday = relationship("AcademicHoliday")

    @property
    def status_enum(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_STATUSES

    @property
    def starts_at(self) -> datetime:
        hour, minute = (int(p) for p in self.time.split(":"))
        return datetime(self.date.year, self.date.month, self.date.day, hour, minute)

    def __repr__(self):
        return f"<Appointment {self.id} {self.date} {self.time} {self.status}>"
