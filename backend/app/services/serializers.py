# app/services/serializers.py
from datetime import date
from decimal import Decimal


def _iso(value):
    return value.isoformat() if value is not None else None


def _num(value):
    if value is None:
        return None
    return float(value) if isinstance(value, Decimal) else value


def user_summary(user) -> dict:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "full_title": user.full_title,
        "specialization": user.specialization,
    }


def user_to_dict(user) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "role_label": user.role_enum.label,
        "status": user.status,
        "phone": user.phone,
        "student_id": user.student_id,
        "staff_no": user.staff_no,
        "medical_license_number": user.medical_license_number,
        "specialization": user.specialization,
        "faculty": user.faculty,
        "department": user.department,
        "department_id": user.department_id,
        "doctor_id": user.doctor_id,
        "assigned_doctor": user_summary(user.assigned_doctor),
        "display_identifier": user.display_identifier,
        "full_title": user.full_title,
        "available_days": user.available_days,
        "working_hours_start": user.working_hours_start,
        "working_hours_end": user.working_hours_end,
        "is_available": user.is_available,
        "years_of_experience": user.years_of_experience,
        "bio": user.bio,
        "email_verified_at": _iso(user.email_verified_at),
        "last_login": _iso(user.last_login),
        "created_at": _iso(user.created_at),
    }


def appointment_to_dict(appt) -> dict:
    return {
        "id": appt.id,
        "patient_id": appt.patient_id,
        "doctor_id": appt.doctor_id,
        "patient": user_summary(appt.patient),
        "doctor": user_summary(appt.doctor),
        "date": _iso(appt.date),
        "time": appt.time,
        "type": appt.type,
        "specialization": appt.specialization,
        "status": appt.status,
        "urgency": appt.urgency,
        "reason": appt.reason,
        "notes": appt.notes,
        "assigned_at": _iso(appt.assigned_at),
        "confirmed_at": _iso(appt.confirmed_at),
        "rejected_at": _iso(appt.rejected_at),
        "rejection_reason": appt.rejection_reason,
        "rescheduled_at": _iso(appt.rescheduled_at),
        "reschedule_reason": appt.reschedule_reason,
        "cancelled_at": _iso(appt.cancelled_at),
        "cancelled_by": appt.cancelled_by,
        "cancellation_reason": appt.cancellation_reason,
        "is_holiday_override": appt.is_holiday_override,
        "override_reason": appt.override_reason,
        "blocked_by_holiday_id": appt.blocked_by_holiday_id,
        "needs_reassignment": appt.needs_reassignment,
        "reassignment_notes": appt.reassignment_notes,
        "reassigned_at": _iso(appt.reassigned_at),
        "reassigned_by": appt.reassigned_by,
        "created_by": appt.created_by,
        "created_at": _iso(appt.created_at),
        "updated_at": _iso(appt.updated_at),
    }


def department_to_dict(dept) -> dict:
    return {
        "id": dept.id,
        "name": dept.name,
        "code": dept.code,
        "description": dept.description,
        "type": dept.type,
        "is_active": dept.is_active,
        "metadata": dept.meta,
        "user_count": len(dept.users),
    }


def holiday_to_dict(holiday) -> dict:
    return {
        "id": holiday.id,
        "name": holiday.name,
        "description": holiday.description,
        "start_date": _iso(holiday.start_date),
        "end_date": _iso(holiday.end_date),
        "duration_days": holiday.duration_days,
        "type": holiday.type,
        "affects_staff_type": holiday.affects_staff_type,
        "affected_departments": holiday.affected_departments or [],
        "blocks_appointments": holiday.blocks_appointments,
        "is_recurring": holiday.is_recurring,
        "recurrence_pattern": holiday.recurrence_pattern,
        "academic_year": holiday.academic_year,
        "source": holiday.source,
        "external_id": holiday.external_id,
        "is_active": holiday.is_active,
        "active_today": holiday.is_active_on(date.today()),
    }


def schedule_to_dict(schedule) -> dict:
    return {
        "id": schedule.id,
        "user_id": schedule.user_id,
        "department_id": schedule.department_id,
        "staff_type": schedule.staff_type,
        "working_days": sorted(schedule.working_days or []),
        "working_day_names": schedule.working_day_names,
        "working_hours_start": schedule.working_hours_start,
        "working_hours_end": schedule.working_hours_end,
        "custom_availability": schedule.custom_availability,
        "follows_academic_calendar": schedule.follows_academic_calendar,
        "is_active": schedule.is_active,
        "available_today": schedule.is_available_on(date.today()),
    }


def record_to_dict(record) -> dict:
    return {
        "id": record.id,
        "patient_id": record.patient_id,
        "doctor_id": record.doctor_id,
        "doctor": user_summary(record.doctor),
        "appointment_id": record.appointment_id,
        "visit_date": _iso(record.visit_date),
        "type": record.type,
        "diagnosis": record.diagnosis,
        "treatment": record.treatment,
        "notes": record.notes,
        "vitals": {
            "blood_pressure": record.blood_pressure,
            "heart_rate": record.heart_rate,
            "temperature": record.temperature,
            "respiratory_rate": record.respiratory_rate,
            "oxygen_saturation": record.oxygen_saturation,
            "weight": _num(record.weight),
            "height": _num(record.height),
            "bmi": _num(record.bmi),
        },
        "created_by": record.created_by,
        "created_at": _iso(record.created_at),
    }


def medication_to_dict(med) -> dict:
    return {
        "id": med.id,
        "name": med.name,
        "generic_name": med.generic_name,
        "dosage": med.dosage,
        "frequency": med.frequency,
        "instructions": med.instructions,
        "start_date": _iso(med.start_date),
        "end_date": _iso(med.end_date),
        "status": med.status,
        "patient_id": med.patient_id,
        "prescription_id": med.prescription_id,
        "administered_at": _iso(med.administered_at),
        "administered_by": med.administered_by,
    }


def prescription_to_dict(rx) -> dict:
    return {
        "id": rx.id,
        "patient_id": rx.patient_id,
        "doctor_id": rx.doctor_id,
        "doctor": user_summary(rx.doctor),
        "notes": rx.notes,
        "status": rx.status,
        "medications": [medication_to_dict(m) for m in rx.medications],
        "created_at": _iso(rx.created_at),
    }
