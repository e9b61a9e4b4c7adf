# app/models/admin_models.py
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.models.enums import (
    DepartmentType, HolidayScope, HolidayType, NotificationType, Role, StaffType, UserStatus,
)

HOUR_PATTERN = r"^\d{2}:\d{2}$"


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role
    phone: Optional[str] = None
    student_id: Optional[str] = None
    staff_no: Optional[str] = None
    medical_license_number: Optional[str] = None
    specialization: Optional[str] = None
    department: Optional[str] = None
    department_id: Optional[int] = None
    faculty: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE


class StatusUpdate(BaseModel):
    status: UserStatus


class PermissionsAssign(BaseModel):
    permissions: List[str]


class DepartmentIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    type: DepartmentType = DepartmentType.MEDICAL
    is_active: bool = True
    metadata: Optional[Dict[str, Any]] = None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = None
    type: Optional[DepartmentType] = None
    is_active: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class HolidayIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: date
    end_date: date
    type: HolidayType
    affects_staff_type: HolidayScope = HolidayScope.ALL
    affected_departments: List[int] = Field(default_factory=list)
    blocks_appointments: bool = True
    is_recurring: bool = False
    recurrence_pattern: Optional[Literal["yearly", "monthly", "weekly"]] = None
    academic_year: Optional[int] = None
    is_active: bool = True

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class HolidayUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[HolidayType] = None
    affects_staff_type: Optional[HolidayScope] = None
    affected_departments: Optional[List[int]] = None
    blocks_appointments: Optional[bool] = None
    is_active: Optional[bool] = None


class StaffScheduleIn(BaseModel):
    department_id: Optional[int] = None
    staff_type: StaffType = StaffType.CLINICAL
    working_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    working_hours_start: str = Field("08:00", pattern=HOUR_PATTERN)
    working_hours_end: str = Field("17:00", pattern=HOUR_PATTERN)
    custom_availability: Optional[Dict[str, Any]] = None
    follows_academic_calendar: bool = True
    is_active: bool = True

    @model_validator(mode="after")
    def check_schedule(self):
        if any(d < 1 or d > 7 for d in self.working_days):
            raise ValueError("working_days must be ISO weekday numbers 1-7")
        if self.working_hours_end <= self.working_hours_start:
            raise ValueError("working_hours_end must be after working_hours_start")
        return self


class AvailabilityUpdate(BaseModel):
    available_days: List[Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]]
    working_hours_start: str = Field(..., pattern=HOUR_PATTERN)
    working_hours_end: str = Field(..., pattern=HOUR_PATTERN)
    is_available: bool = True

    @model_validator(mode="after")
    def check_hours(self):
        if self.working_hours_end <= self.working_hours_start:
            raise ValueError("working_hours_end must be after working_hours_start")
        return self


class BulkNotification(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.SYSTEM
    role: Optional[Role] = None
    data: Optional[Dict[str, Any]] = None
