# app/services/dashboard_service.py
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.appointment import Appointment
from app.models.clinical import MedicalRecord
from app.models.enums import AppointmentStatus, Urgency
from app.models.user import User
from app.services import availability_service, notification_service
from app.services.appointment_service import reassignment_queue
from app.services.profile_service import missing_profile_fields
from app.services.serializers import appointment_to_dict

S = AppointmentStatus


def _counts(query, column) -> dict:
    return {key: count for key, count in query.with_entities(column, func.count(Appointment.id)).group_by(column)}


def _month_start(today: date) -> date:
    return today.replace(day=1)


def _next_month_start(today: date) -> date:
    if today.month == 12:
        return date(today.year + 1, 1, 1)
    return date(today.year, today.month + 1, 1)


def patient_dashboard(db: Session, user: User, today: date = None) -> dict:
    today = today or date.today()
    upcoming = (
        db.query(Appointment)
        .filter(
            Appointment.patient_id == user.id,
            Appointment.date >= today,
            Appointment.status.in_([S.SCHEDULED.value, S.CONFIRMED.value]),
        )
        .order_by(Appointment.date, Appointment.time)
        .all()
    )
    last_checkup = (
        db.query(func.max(Appointment.date))
        .filter(Appointment.patient_id == user.id, Appointment.status == S.COMPLETED.value)
        .scalar()
    )
    missing = missing_profile_fields(user)
    return {
        "user": {"id": user.id, "name": user.name, "role": user.role, "identifier": user.display_identifier},
        "profile_complete": not missing,
        "missing_fields": missing,
        "upcoming_appointments": len(upcoming),
        "next_appointment": appointment_to_dict(upcoming[0]) if upcoming else None,
        "last_checkup": last_checkup.isoformat() if last_checkup else None,
        "unread_notifications": notification_service.unread_count(db, user),
    }


def doctor_dashboard(db: Session, doctor: User, today: date = None) -> dict:
    today = today or date.today()
    mine = db.query(Appointment).filter(Appointment.doctor_id == doctor.id)
    todays = mine.filter(Appointment.date == today).order_by(Appointment.time).all()
    pending = mine.filter(Appointment.status == S.SCHEDULED.value, Appointment.date >= today).count()
    seen_this_month = (
        mine.filter(Appointment.status == S.COMPLETED.value, Appointment.date >= _month_start(today))
        .with_entities(func.count(func.distinct(Appointment.patient_id)))
        .scalar()
    )
    return {
        "today_appointments": [appointment_to_dict(a) for a in todays],
        "pending_confirmations": pending,
        "patients_seen_this_month": seen_this_month or 0,
        "unread_notifications": notification_service.unread_count(db, doctor),
    }


def doctor_statistics(db: Session, doctor: User) -> dict:
    mine = db.query(Appointment).filter(Appointment.doctor_id == doctor.id)
    records = db.query(MedicalRecord).filter(MedicalRecord.doctor_id == doctor.id).count()
    return {
        "total_appointments": mine.count(),
        "by_status": {s.value: 0 for s in S} | _counts(mine, Appointment.status),
        "by_urgency": {u.value: 0 for u in Urgency} | _counts(mine, Appointment.urgency),
        "medical_records": records,
    }


def clinical_dashboard(db: Session, today: date = None) -> dict:
    today = today or date.today()
    todays = db.query(Appointment).filter(Appointment.date == today)
    queue = (
        todays.filter(Appointment.status.in_([S.SCHEDULED.value, S.CONFIRMED.value]))
        .order_by(Appointment.time)
        .all()
    )
    urgent = (
        db.query(Appointment)
        .filter(
            Appointment.date >= today,
            Appointment.urgency.in_([Urgency.URGENT.value, Urgency.EMERGENCY.value]),
            Appointment.status.in_([S.SCHEDULED.value, S.CONFIRMED.value]),
        )
        .order_by(Appointment.date, Appointment.time)
        .all()
    )
    pending_requests = (
        db.query(Appointment)
        .filter(Appointment.status == S.SCHEDULED.value, Appointment.date >= today)
        .count()
    )
    return {
        "today_by_status": {s.value: 0 for s in S} | _counts(todays, Appointment.status),
        "urgent_cases": [appointment_to_dict(a) for a in urgent],
        "patient_queue": [appointment_to_dict(a) for a in queue],
        "pending_requests": pending_requests,
        "reassignment_queue": len(reassignment_queue(db)),
    }


def admin_dashboard(db: Session, today: date = None) -> dict:
    today = today or date.today()
    by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    by_status = dict(db.query(User.status, func.count(User.id)).group_by(User.status).all())
    appts = db.query(Appointment)
    return {
        "users": {"total": sum(by_role.values()), "by_role": by_role, "by_status": by_status},
        "appointments": {
            "total": appts.count(),
            "by_status": {s.value: 0 for s in S} | _counts(appts, Appointment.status),
            "this_month": appts.filter(Appointment.date >= _month_start(today), Appointment.date < _next_month_start(today)).count(),
            "today": appts.filter(Appointment.date == today).count(),
        },
        "active_holidays": [
            {"id": h.id, "name": h.name, "end_date": h.end_date.isoformat()}
            for h in availability_service.active_holidays(db, today)
        ],
    }
