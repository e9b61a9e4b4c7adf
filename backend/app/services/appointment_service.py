# app/services/appointment_service.py
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.config import PATIENT_RESCHEDULE_MIN_HOURS
from app.exceptions import InvalidTransition, NotFound, PermissionDenied, ValidationFailed
from app.models.appointment import Appointment
from app.models.enums import AppointmentStatus, AppointmentType, NotificationType, Role, Urgency, UserStatus
from app.models.user import User
from app.services import availability_service, notification_service
from app.services.permissions import Permission, has_permission
from app.services.profile_service import missing_profile_fields

logger = logging.getLogger(__name__)

S = AppointmentStatus

TRANSITIONS = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(appt: Appointment, target: AppointmentStatus):
    current = appt.status_enum
    if not can_transition(current, target):
        if appt.is_terminal:
            raise InvalidTransition(f"A {current.value} appointment can no longer be changed.")
        raise InvalidTransition(f"Cannot change an appointment from {current.value} to {target.value}.")


# ---------------- Lookup / visibility ----------------

def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appt = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appt is None:
        raise NotFound("Appointment not found")
    return appt


def can_view(user: User, appt: Appointment) -> bool:
    role = user.role_enum
    if role.is_patient:
        return appt.patient_id == user.id
    if role == Role.DOCTOR:
        return appt.doctor_id in (user.id, None)
    return True


def get_visible(db: Session, user: User, appointment_id: int) -> Appointment:
    appt = get_appointment(db, appointment_id)
    if not can_view(user, appt):
        raise PermissionDenied("You cannot access this appointment")
    return appt


def list_appointments(db: Session, user: User, status: Optional[str] = None, date_from: Optional[date] = None,
                      date_to: Optional[date] = None, doctor_id: Optional[int] = None,
                      urgency: Optional[str] = None, patient_id: Optional[int] = None):
    query = db.query(Appointment)
    role = user.role_enum
    if role.is_patient:
        query = query.filter(Appointment.patient_id == user.id)
    elif role == Role.DOCTOR:
        query = query.filter(Appointment.doctor_id == user.id)
    elif doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if patient_id is not None and not role.is_patient:
        query = query.filter(Appointment.patient_id == patient_id)
    if status:
        query = query.filter(Appointment.status == S(status).value)
    if urgency:
        query = query.filter(Appointment.urgency == urgency)
    if date_from:
        query = query.filter(Appointment.date >= date_from)
    if date_to:
        query = query.filter(Appointment.date <= date_to)
    return query.order_by(Appointment.date.desc(), Appointment.time.desc()).all()


def has_pending(db: Session, patient_id: int, exclude_id: Optional[int] = None, today: Optional[date] = None) -> bool:
    """A pending appointment is one still scheduled for today or later."""
    today = today or date.today()
    query = db.query(Appointment).filter(
        Appointment.patient_id == patient_id,
        Appointment.status == S.SCHEDULED.value,
        Appointment.date >= today,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return db.query(query.exists()).scalar()


# ---------------- Guards ----------------

def _require(actor: User, permission: Permission):
    if not has_permission(actor, permission):
        raise PermissionDenied()


def _require_complete_profile(patient: User):
    missing = missing_profile_fields(patient)
    if missing:
        raise ValidationFailed(
            "Please complete your profile before booking appointments.",
            {"profile": [f"Missing: {', '.join(missing)}"]},
        )


def _require_doctor_owns(actor: User, appt: Appointment):
    if actor.role_enum == Role.DOCTOR and appt.doctor_id != actor.id:
        raise PermissionDenied("This appointment is not assigned to you")


def _load_doctor(db: Session, doctor_id: int) -> User:
    doctor = db.query(User).filter(User.id == doctor_id, User.role == Role.DOCTOR.value).first()
    if doctor is None:
        raise ValidationFailed.field("doctor_id", "The selected doctor does not exist.")
    if doctor.status != UserStatus.ACTIVE.value or not doctor.is_available:
        raise ValidationFailed.field("doctor_id", "The selected doctor is not available.")
    return doctor


def _load_patient(db: Session, patient_id: Optional[int]) -> User:
    if patient_id is None:
        raise ValidationFailed.field("patient_id", "The patient id field is required.")
    patient = db.query(User).filter(User.id == patient_id).first()
    if patient is None or not patient.role_enum.is_patient:
        raise ValidationFailed.field("patient_id", "The selected patient is invalid.")
    if not patient.is_active:
        raise ValidationFailed.field("patient_id", "The selected patient account is not active.")
    return patient


def _holiday_override_requested(actor: User, requested: bool, reason: Optional[str]) -> bool:
    if not requested:
        return False
    _require(actor, Permission.OVERRIDE_HOLIDAYS)
    if not reason or not reason.strip():
        raise ValidationFailed.field("override_reason", "A reason is required to override a holiday.")
    return True


def _notify_parties(db: Session, actor: User, appt: Appointment, type_: NotificationType, title: str, message: str):
    for user_id in {appt.patient_id, appt.doctor_id} - {actor.id, None}:
        notification_service.notify(db, user_id, type_, title, message, {"appointment_id": appt.id})


def _slot_text(appt: Appointment) -> str:
    return f"{appt.date.isoformat()} at {appt.time}"


# ---------------- Create ----------------

def create(db: Session, actor: User, data: dict, today: Optional[date] = None, commit: bool = True) -> Appointment:
    """Book an appointment for the actor (patients) or for `patient_id` (staff)."""
    today = today or date.today()
    _require(actor, Permission.SCHEDULE_APPOINTMENTS)
    role = actor.role_enum

    if role.is_patient:
        if data.get("patient_id") not in (None, actor.id):
            raise PermissionDenied("Patients can only book appointments for themselves")
        patient = actor
        _require_complete_profile(patient)
    else:
        patient = _load_patient(db, data.get("patient_id"))

    if has_pending(db, patient.id, today=today):
        raise ValidationFailed.field(
            "appointment",
            "You already have a pending appointment. Please wait for it to be processed or cancel it first."
            if role.is_patient else "This patient already has a pending appointment.",
        )

    appt_type = AppointmentType(data.get("type") or AppointmentType.CONSULTATION)
    day = data["date"]
    if appt_type == AppointmentType.WALK_IN:
        if role not in (Role.CLINICAL_STAFF, Role.ADMIN, Role.SUPERADMIN):
            raise ValidationFailed.field("type", "Only clinical staff can register walk-in patients.")
        if day != today:
            raise ValidationFailed.field("date", "Walk-in appointments must be for today.")

    if data.get("doctor_id") is not None:
        doctor = _load_doctor(db, data["doctor_id"])
    elif data.get("specialization"):
        availability_service.check_window(day, today)
        availability_service.check_slot_format(data["time"])
        doctor = availability_service.pick_doctor_for_specialization(db, day, data["time"], data["specialization"])
    elif role == Role.DOCTOR:
        doctor = actor
    else:
        doctor = None

    override = _holiday_override_requested(actor, data.get("is_holiday_override", False), data.get("override_reason"))
    holiday = availability_service.validate_booking(
        db, day, data["time"], doctor, allow_holiday_override=override, today=today
    )

    now = datetime.utcnow()
    appt = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id if doctor else None,
        date=day,
        time=data["time"],
        type=appt_type.value,
        specialization=data.get("specialization") or (doctor.specialization if doctor else None),
        status=S.SCHEDULED.value,
        urgency=Urgency(data.get("urgency") or Urgency.NORMAL).value,
        reason=data["reason"],
        notes=data.get("notes"),
        assigned_at=now if doctor else None,
        is_holiday_override=holiday is not None,
        override_reason=data.get("override_reason") if holiday is not None else None,
        blocked_by_holiday_id=holiday.id if holiday is not None else None,
        created_by=actor.id,
    )
    db.add(appt)
    db.flush()

    if doctor is not None and doctor.id != actor.id:
        notification_service.notify(
            db, doctor.id, NotificationType.APPOINTMENT_REQUESTED, "New appointment request",
            f"{patient.name} requested an appointment on {_slot_text(appt)}.", {"appointment_id": appt.id},
        )
    if doctor is not None and not role.is_patient:
        notification_service.notify(
            db, patient.id, NotificationType.APPOINTMENT_ASSIGNED, "Appointment scheduled",
            f"You have been booked with {doctor.full_title} on {_slot_text(appt)}.", {"appointment_id": appt.id},
        )
    if commit:
        db.commit()
        db.refresh(appt)
    logger.info(
        f"📅 Appointment {appt.id} created by user {actor.id} for patient {patient.id} "
        f"on {_slot_text(appt)} (doctor={appt.doctor_id}, override={appt.is_holiday_override})"
    )
    return appt


# ---------------- Transitions ----------------

def confirm(db: Session, actor: User, appt: Appointment, doctor_id: Optional[int] = None,
            notes: Optional[str] = None, commit: bool = True) -> Appointment:
    _require(actor, Permission.CONFIRM_APPOINTMENTS)
    check_transition(appt, S.CONFIRMED)
    now = datetime.utcnow()

    if actor.role_enum == Role.DOCTOR:
        if appt.doctor_id not in (None, actor.id):
            raise PermissionDenied("This appointment is not assigned to you")
        new_doctor = actor if appt.doctor_id is None else None
    elif doctor_id is not None and doctor_id != appt.doctor_id:
        new_doctor = _load_doctor(db, doctor_id)
    else:
        new_doctor = None

    if new_doctor is not None:
        if availability_service.slot_taken(db, new_doctor.id, appt.date, appt.time, exclude_id=appt.id):
            raise ValidationFailed.field("doctor_id", f"{new_doctor.full_title} is already booked at that time.")
        appt.doctor_id = new_doctor.id
        appt.doctor = new_doctor
        appt.assigned_at = now

    appt.status = S.CONFIRMED.value
    appt.confirmed_at = now
    if notes:
        appt.notes = notes
    doctor_text = f" with {appt.doctor.full_title}" if appt.doctor is not None else ""
    notification_service.notify(
        db, appt.patient_id, NotificationType.APPOINTMENT_CONFIRMED, "Appointment confirmed",
        f"Your appointment on {_slot_text(appt)}{doctor_text} has been confirmed.", {"appointment_id": appt.id},
    )
    if commit:
        db.commit()
        db.refresh(appt)
    logger.info(f"✅ Appointment {appt.id} confirmed by user {actor.id}")
    return appt


def reject(db: Session, actor: User, appt: Appointment, reason: str, commit: bool = True) -> Appointment:
    _require(actor, Permission.REJECT_APPOINTMENTS)
    if not reason or not reason.strip():
        raise ValidationFailed.field("reason", "A rejection reason is required.")
    if appt.status_enum != S.SCHEDULED:
        raise InvalidTransition("Only pending appointment requests can be rejected.")
    if actor.role_enum == Role.DOCTOR and appt.doctor_id not in (None, actor.id):
        raise PermissionDenied("This appointment is not assigned to you")
    check_transition(appt, S.CANCELLED)

    now = datetime.utcnow()
    appt.status = S.CANCELLED.value
    appt.rejected_at = now
    appt.rejection_reason = reason
    appt.cancelled_at = now
    appt.cancelled_by = actor.id
    notification_service.notify(
        db, appt.patient_id, NotificationType.APPOINTMENT_REJECTED, "Appointment request declined",
        f"Your appointment request for {_slot_text(appt)} was declined: {reason}", {"appointment_id": appt.id},
    )
    if commit:
        db.commit()
        db.refresh(appt)
    logger.info(f"⛔ Appointment {appt.id} rejected by user {actor.id}: {reason}")
    return appt


def cancel(db: Session, actor: User, appt: Appointment, reason: Optional[str] = None,
           request_reassignment: bool = False, commit: bool = True) -> Appointment:
    if actor.role_enum.is_patient:
        if appt.patient_id != actor.id:
            raise PermissionDenied("You can only cancel your own appointments")
        _require(actor, Permission.CANCEL_OWN_APPOINTMENTS)
    else:
        _require(actor, Permission.CANCEL_APPOINTMENTS)
        _require_doctor_owns(actor, appt)
    check_transition(appt, S.CANCELLED)

    appt.status = S.CANCELLED.value
    appt.cancelled_at = datetime.utcnow()
    appt.cancelled_by = actor.id
    appt.cancellation_reason = reason
    if appt.doctor_id is not None and (actor.id == appt.doctor_id or request_reassignment):
        appt.needs_reassignment = True

    _notify_parties(
        db, actor, appt, NotificationType.APPOINTMENT_CANCELLED, "Appointment cancelled",
        f"The appointment on {_slot_text(appt)} was cancelled" + (f": {reason}" if reason else "."),
    )
    if commit:
        db.commit()
        db.refresh(appt)
    logger.info(
        f"🗑️ Appointment {appt.id} cancelled by user {actor.id} (needs_reassignment={appt.needs_reassignment})"
    )
    return appt


def finish(db: Session, actor: User, appt: Appointment, target: AppointmentStatus, commit: bool = True) -> Appointment:
    """Mark an appointment completed or no_show."""
    if target not in (S.COMPLETED, S.NO_SHOW):
        raise InvalidTransition(f"Cannot finish an appointment as {target.value}.")
    _require(actor, Permission.COMPLETE_APPOINTMENTS)
    _require_doctor_owns(actor, appt)
    check_transition(appt, target)
    appt.status = target.value
    if target == S.COMPLETED:
        notification_service.notify(
            db, appt.patient_id, NotificationType.APPOINTMENT_COMPLETED, "Appointment completed",
            f"Your appointment on {_slot_text(appt)} has been completed.", {"appointment_id": appt.id},
        )
    if commit:
        db.commit()
        db.refresh(appt)
    logger.info(f"🏁 Appointment {appt.id} marked {target.value} by user {actor.id}")
    return appt


def set_status(db: Session, actor: User, appt: Appointment, target: AppointmentStatus,
               reason: Optional[str] = None, commit: bool = True) -> Appointment:
    if target == S.CONFIRMED:
        return confirm(db, actor, appt, commit=commit)
    if target == S.CANCELLED:
        return cancel(db, actor, appt, reason, commit=commit)
    if target in (S.COMPLETED, S.NO_SHOW):
        return finish(db, actor, appt, target, commit=commit)
    check_transition(appt, target)
    return appt


def reschedule(db: Session, actor: User, appt: Appointment, day: date, time: str, reason: Optional[str] = None,
               is_holiday_override: bool = False, override_reason: Optional[str] = None,
               now: Optional[datetime] = None, commit: bool = True) -> Appointment:
    now = now or datetime.now()
    if actor.role_enum.is_patient:
        if appt.patient_id != actor.id:
            raise PermissionDenied("You can only reschedule your own appointments")
        _require(actor, Permission.RESCHEDULE_OWN_APPOINTMENTS)
        _require_complete_profile(actor)
        if appt.starts_at - now < timedelta(hours=PATIENT_RESCHEDULE_MIN_HOURS):
            raise ValidationFailed.field(
                "date",
                f"Appointments can only be rescheduled at least {PATIENT_RESCHEDULE_MIN_HOURS} hours in advance.",
            )
    else:
        _require(actor, Permission.RESCHEDULE_APPOINTMENTS)
        _require_doctor_owns(actor, appt)
    if appt.is_terminal:
        raise InvalidTransition(f"A {appt.status} appointment cannot be rescheduled.")

    override = _holiday_override_requested(actor, is_holiday_override, override_reason)
    holiday = availability_service.validate_booking(
        db, day, time, appt.doctor, allow_holiday_override=override, exclude_id=appt.id, today=now.date()
    )

    previous = _slot_text(appt)
    appt.date = day
    appt.time = time
    appt.rescheduled_at = datetime.utcnow()
    appt.reschedule_reason = reason
    appt.is_holiday_override = holiday is not None
    appt.override_reason = override_reason if holiday is not None else None
    appt.blocked_by_holiday_id = holiday.id if holiday is not None else None
    _notify_parties(
        db, actor, appt, NotificationType.APPOINTMENT_RESCHEDULED, "Appointment rescheduled",
        f"The appointment on {previous} was moved to {_slot_text(appt)}.",
    )
    if commit:
        db.commit()
        db.refresh(appt)
    logger.info(f"🔁 Appointment {appt.id} rescheduled by user {actor.id}: {previous} -> {_slot_text(appt)}")
    return appt


def update(db: Session, actor: User, appt: Appointment, changes: dict) -> Appointment:
    """Generic staff update: notes, urgency, date/time and status in one commit."""
    if appt.is_terminal and changes:
        raise InvalidTransition(f"A {appt.status} appointment can no longer be changed.")
    if "notes" in changes:
        appt.notes = changes["notes"]
    if changes.get("urgency"):
        appt.urgency = Urgency(changes["urgency"]).value
    if changes.get("date") or changes.get("time"):
        reschedule(
            db, actor, appt, changes.get("date") or appt.date, changes.get("time") or appt.time,
            reason=changes.get("reason"), commit=False,
        )
    if changes.get("status") and S(changes["status"]) != appt.status_enum:
        set_status(db, actor, appt, S(changes["status"]), reason=changes.get("reason"), commit=False)
    db.commit()
    db.refresh(appt)
    return appt


# ---------------- Assignment ----------------

def assign_doctor(db: Session, actor: User, appt: Appointment, doctor_id: int,
                  notes: Optional[str] = None) -> Appointment:
    _require(actor, Permission.ASSIGN_DOCTORS)
    if appt.is_terminal:
        raise InvalidTransition(f"Cannot assign a doctor to a {appt.status} appointment.")
    doctor = _load_doctor(db, doctor_id)
    if doctor.id == appt.doctor_id:
        raise ValidationFailed.field("doctor_id", "This doctor is already assigned to the appointment.")
    availability_service.validate_booking(
        db, appt.date, appt.time, doctor, allow_holiday_override=appt.is_holiday_override,
        exclude_id=appt.id, today=min(appt.date, date.today()),
    )

    now = datetime.utcnow()
    previous_id = appt.doctor_id
    if previous_id is None:
        appt.assigned_at = now
    else:
        appt.reassigned_at = now
        appt.reassigned_by = actor.id
        appt.reassignment_notes = notes
    appt.doctor_id = doctor.id
    appt.doctor = doctor
    appt.needs_reassignment = False

    notification_service.notify(
        db, appt.patient_id, NotificationType.APPOINTMENT_ASSIGNED, "Doctor assigned",
        f"{doctor.full_title} will see you on {_slot_text(appt)}.", {"appointment_id": appt.id},
    )
    notification_service.notify(
        db, doctor.id, NotificationType.APPOINTMENT_REQUESTED, "New appointment assigned",
        f"You have been assigned an appointment on {_slot_text(appt)}.", {"appointment_id": appt.id},
    )
    db.commit()
    db.refresh(appt)
    logger.info(f"👩‍⚕️ Appointment {appt.id} doctor {previous_id} -> {doctor.id} by user {actor.id}")
    return appt


def reassignment_queue(db: Session):
    return (
        db.query(Appointment)
        .filter(Appointment.needs_reassignment.is_(True), Appointment.status == S.CANCELLED.value)
        .order_by(Appointment.date, Appointment.time)
        .all()
    )


def resolve_reassignment(db: Session, actor: User, appt: Appointment, notes: Optional[str] = None,
                         replacement: Optional[dict] = None):
    """Clear the reassignment flag, optionally booking a replacement in the same commit."""
    _require(actor, Permission.ASSIGN_DOCTORS)
    if not appt.needs_reassignment:
        raise ValidationFailed.field("appointment", "This appointment is not awaiting reassignment.")
    new_appt = None
    if replacement:
        new_appt = create(db, actor, {**replacement, "patient_id": appt.patient_id}, commit=False)
    appt.needs_reassignment = False
    appt.reassignment_notes = notes
    appt.reassigned_at = datetime.utcnow()
    appt.reassigned_by = actor.id
    db.commit()
    db.refresh(appt)
    if new_appt is not None:
        db.refresh(new_appt)
    logger.info(f"🧩 Reassignment of appointment {appt.id} resolved by user {actor.id} (replacement={new_appt and new_appt.id})")
    return appt, new_appt
