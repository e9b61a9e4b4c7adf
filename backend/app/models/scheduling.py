# app/models/scheduling.py
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.enums import HolidayScope, StaffType, WEEKDAY_NAMES


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), unique=True, nullable=False)
    code = Column(String(20), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(30), nullable=False, default="medical")
    is_active = Column(Boolean, nullable=False, default=True)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="department_ref")
    schedules = relationship("StaffSchedule", back_populates="department")


class AcademicHoliday(Base):
    __tablename__ = "academic_holidays"
    __table_args__ = (
        Index("ix_holiday_range", "start_date", "end_date"),
        Index("ix_holiday_year_active", "academic_year", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    type = Column(String(30), nullable=False)
    affects_staff_type = Column(String(20), nullable=False, default=HolidayScope.ALL.value)
    affected_departments = Column(JSON, nullable=True)  # department ids, empty = all
    blocks_appointments = Column(Boolean, nullable=False, default=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_pattern = Column(String(20), nullable=True)
    academic_year = Column(Integer, nullable=False)
    source = Column(String(30), nullable=False, default="manual")
    external_id = Column(String(255), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def is_active_on(self, day: date) -> bool:
        return bool(self.is_active) and self.start_date <= day <= self.end_date

    def affects_department(self, department_id) -> bool:
        if not self.affected_departments:
            return True
        return department_id in self.affected_departments

    def affects_staff(self, staff_type: str) -> bool:
        return self.affects_staff_type == HolidayScope.ALL.value or self.affects_staff_type == staff_type

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1


class StaffSchedule(Base):
    """Weekly working template for a staff member. working_days holds ISO weekdays (1=Mon .. 7=Sun)."""

    __tablename__ = "staff_schedules"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    staff_type = Column(String(20), nullable=False, default=StaffType.CLINICAL.value)
    working_days = Column(JSON, nullable=False, default=lambda: [1, 2, 3, 4, 5])
    working_hours_start = Column(String(5), nullable=False, default="08:00")
    working_hours_end = Column(String(5), nullable=False, default="17:00")
    custom_availability = Column(JSON, nullable=True)
    follows_academic_calendar = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="schedule")
    department = relationship("Department", back_populates="schedules")

    def is_available_on(self, day: date) -> bool:
        return bool(self.is_active) and day.isoweekday() in (self.working_days or [])

    @property
    def working_day_names(self):
        return [WEEKDAY_NAMES[d - 1] for d in sorted(self.working_days or [])]
