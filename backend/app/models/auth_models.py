# app/models/auth_models.py
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    password_confirmation: str
    role: Literal["student", "academic_staff"]
    phone: Optional[str] = None
    student_id: Optional[str] = None
    staff_no: Optional[str] = None
    department: Optional[str] = None
    faculty: Optional[str] = None
    date_of_birth: Optional[date] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    token: str
    password: str
    password_confirmation: str


class ProfileUpdate(BaseModel):
    # user columns
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None
    department: Optional[str] = None
    faculty: Optional[str] = None
    specialization: Optional[str] = None
    bio: Optional[str] = None
    # profile columns
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    blood_type: Optional[Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    emergency_contact_email: Optional[EmailStr] = None
    allergies: Optional[str] = None
    has_known_allergies: Optional[bool] = None
    allergies_uncertain: Optional[bool] = None
    addictions: Optional[str] = None
    medical_history: Optional[str] = None

    @field_validator("name", "has_known_allergies", "allergies_uncertain")
    @classmethod
    def not_null(cls, value, info):
        # may be omitted, but the columns are NOT NULL
        if value is None:
            raise ValueError(f"The {info.field_name} field cannot be null.")
        return value
