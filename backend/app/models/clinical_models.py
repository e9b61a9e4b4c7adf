# app/models/clinical_models.py
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from app.models.enums import MedicationStatus, RecordType


class VitalsIn(BaseModel):
    blood_pressure: Optional[str] = Field(None, max_length=20)
    heart_rate: Optional[str] = Field(None, max_length=20)
    temperature: Optional[str] = Field(None, max_length=20)
    respiratory_rate: Optional[str] = Field(None, max_length=20)
    oxygen_saturation: Optional[str] = Field(None, max_length=20)
    weight: Optional[Decimal] = Field(None, gt=0, lt=1000)  # kg
    height: Optional[Decimal] = Field(None, gt=0, lt=300)  # cm


class MedicalRecordCreate(VitalsIn):
    visit_date: Optional[date] = None
    type: RecordType = RecordType.CONSULTATION
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    notes: Optional[str] = None
    appointment_id: Optional[int] = None


class VitalsCreate(VitalsIn):
    notes: Optional[str] = None
    appointment_id: Optional[int] = None


class MedicationIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: Optional[str] = None
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: Optional[str] = None
    instructions: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class MedicationCreate(MedicationIn):
    patient_id: int
    prescription_id: Optional[int] = None


class MedicationUpdate(BaseModel):
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    instructions: Optional[str] = None
    end_date: Optional[date] = None
    status: Optional[MedicationStatus] = None


class PrescriptionCreate(BaseModel):
    patient_id: int
    notes: Optional[str] = None
    medications: List[MedicationIn] = Field(..., min_length=1)
    force: bool = False


class MedicalCardUpdate(BaseModel):
    emergency_contact: Optional[Dict[str, Any]] = None
    medical_history: Optional[List[Any]] = None
    current_medications: Optional[List[Any]] = None
    allergies: Optional[List[Any]] = None
    previous_conditions: Optional[List[Any]] = None
    family_history: Optional[List[Any]] = None
    insurance_info: Optional[Dict[str, Any]] = None
