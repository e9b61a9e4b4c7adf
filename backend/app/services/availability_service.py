# app/services/availability_service.py
import logging
from datetime import date
from typing import List, Optional, Set

from rapidfuzz import fuzz, process, utils
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import MAX_BOOKING_DATE, TIME_SLOTS
from app.exceptions import ValidationFailed
from app.models.appointment import Appointment
from app.models.enums import ACTIVE_STATUSES, Role, StaffType, UserStatus, WEEKDAY_NAMES
from app.models.scheduling import AcademicHoliday
from app.models.user import User
from app.services import settings_service

logger = logging.getLogger(__name__)

SPECIALIZATION_CUTOFF = 80


# ---------------- Working days ----------------

def clinic_open_days(db: Session) -> Set[int]:
    return settings_service.get_clinic_settings(db).open_weekdays()


def working_days_for(db: Session, doctor: Optional[User]) -> Set[int]:
    """ISO weekdays bookable for a doctor (or for the clinic when doctor is None)."""
    if doctor is None:
        return clinic_open_days(db)
    schedule = doctor.schedule
    if schedule is not None:
        return set(schedule.working_days or []) if schedule.is_active else set()
    if doctor.available_days:
        return {WEEKDAY_NAMES.index(name) + 1 for name in doctor.available_days if name in WEEKDAY_NAMES}
    return clinic_open_days(db)


# ---------------- Holidays ----------------

def blocking_holiday(db: Session, day: date, doctor: Optional[User] = None) -> Optional[AcademicHoliday]:
    """First active blocking holiday covering `day` that applies to the doctor (or the clinic)."""
    schedule = doctor.schedule if doctor is not None else None
    if schedule is not None and not schedule.follows_academic_calendar:
        return None
    staff_type = schedule.staff_type if schedule is not None else StaffType.CLINICAL.value
    department_id = None
    if schedule is not None and schedule.department_id:
        department_id = schedule.department_id
    elif doctor is not None:
        department_id = doctor.department_id

    candidates = (
        db.query(AcademicHoliday)
        .filter(
            AcademicHoliday.is_active.is_(True),
            AcademicHoliday.blocks_appointments.is_(True),
            AcademicHoliday.start_date <= day,
            AcademicHoliday.end_date >= day,
        )
        .order_by(AcademicHoliday.start_date, AcademicHoliday.id)
        .all()
    )
    for holiday in candidates:
        if holiday.affects_staff(staff_type) and holiday.affects_department(department_id):
            return holiday
    return None


def active_holidays(db: Session, day: Optional[date] = None) -> List[AcademicHoliday]:
    day = day or date.today()
    return (
        db.query(AcademicHoliday)
        .filter(AcademicHoliday.is_active.is_(True), AcademicHoliday.start_date <= day, AcademicHoliday.end_date >= day)
        .order_by(AcademicHoliday.start_date)
        .all()
    )


# ---------------- Checks ----------------

def check_window(day: date, today: Optional[date] = None):
    today = today or date.today()
    if day < today:
        raise ValidationFailed.field("date", "The appointment date cannot be in the past.")
    if day > MAX_BOOKING_DATE:
        raise ValidationFailed.field(
            "date", f"Appointments cannot be booked after {MAX_BOOKING_DATE.isoformat()}."
        )


def check_slot_format(time: str):
    if time not in TIME_SLOTS:
        raise ValidationFailed.field("time", f"The time must be one of: {', '.join(TIME_SLOTS)}.")


def slot_taken(db: Session, doctor_id: Optional[int], day: date, time: str, exclude_id: Optional[int] = None) -> bool:
    if doctor_id is None:
        return False
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == day,
        Appointment.time == time,
        Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return db.query(query.exists()).scalar()


def validate_booking(db: Session, day: date, time: str, doctor: Optional[User] = None,
                     allow_holiday_override: bool = False, exclude_id: Optional[int] = None,
                     today: Optional[date] = None) -> Optional[AcademicHoliday]:
    """Run every availability rule for a booking.

    Returns the holiday that was overridden (or None). Raises ValidationFailed on
    the first rule that fails; nothing is written.
    """
    check_window(day, today)
    check_slot_format(time)

    if day.isoweekday() not in working_days_for(db, doctor):
        who = doctor.full_title if doctor is not None else "The clinic"
        raise ValidationFailed.field("date", f"{who} is not available on {WEEKDAY_NAMES[day.weekday()]}s.")

    holiday = blocking_holiday(db, day, doctor)
    if holiday is not None and not allow_holiday_override:
        raise ValidationFailed.field(
            "date", f"Appointments are not available on {day.isoformat()} due to {holiday.name}."
        )

    if doctor is not None and slot_taken(db, doctor.id, day, time, exclude_id):
        raise ValidationFailed.field("time", f"The {time} slot on {day.isoformat()} is already booked.")
    return holiday


def is_bookable_day(db: Session, day: date, doctor: Optional[User] = None) -> Optional[str]:
    """None when the day is bookable, else the reason it is not."""
    try:
        check_window(day)
    except ValidationFailed as e:
        return e.message
    if day.isoweekday() not in working_days_for(db, doctor):
        return f"Not a working day ({WEEKDAY_NAMES[day.weekday()]})"
    holiday = blocking_holiday(db, day, doctor)
    if holiday is not None:
        return f"Blocked by {holiday.name}"
    return None


# ---------------- Queries ----------------

def available_slots(db: Session, day: date, doctor: Optional[User] = None) -> dict:
    reason = is_bookable_day(db, day, doctor)
    if reason is not None:
        return {"date": day.isoformat(), "doctor_id": doctor.id if doctor else None, "slots": [], "reason": reason}
    booked = set()
    if doctor is not None:
        booked = {
            t for (t,) in db.query(Appointment.time).filter(
                Appointment.doctor_id == doctor.id,
                Appointment.date == day,
                Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
        }
    return {
        "date": day.isoformat(),
        "doctor_id": doctor.id if doctor else None,
        "slots": [t for t in TIME_SLOTS if t not in booked],
        "booked": sorted(booked),
        "reason": None,
    }


def active_doctors(db: Session):
    return (
        db.query(User)
        .filter(User.role == Role.DOCTOR.value, User.status == UserStatus.ACTIVE.value, User.is_available.is_(True))
        .order_by(User.name)
        .all()
    )


def match_specialization(db: Session, wanted: str) -> Optional[str]:
    """Closest known doctor specialization to `wanted`, or None below the cutoff."""
    known = sorted({d.specialization for d in active_doctors(db) if d.specialization})
    if not known or not wanted:
        return None
    best = process.extractOne(
        wanted, known, scorer=fuzz.WRatio, processor=utils.default_process, score_cutoff=SPECIALIZATION_CUTOFF
    )
    return best[0] if best else None


def available_doctors(db: Session, day: date, time: Optional[str] = None,
                      specialization: Optional[str] = None) -> List[User]:
    """Active doctors bookable on `day` (and free at `time`), least busy that day first."""
    doctors = active_doctors(db)
    if specialization:
        matched = match_specialization(db, specialization)
        if matched is None:
            return []
        doctors = [d for d in doctors if d.specialization == matched]
    if time is not None:
        check_slot_format(time)

    load = dict(
        db.query(Appointment.doctor_id, func.count(Appointment.id))
        .filter(Appointment.date == day, Appointment.status.in_([s.value for s in ACTIVE_STATUSES]))
        .group_by(Appointment.doctor_id)
        .all()
    )
    free = []
    for doctor in doctors:
        if is_bookable_day(db, day, doctor) is not None:
            continue
        if time is not None and slot_taken(db, doctor.id, day, time):
            continue
        free.append(doctor)
    free.sort(key=lambda d: (load.get(d.id, 0), d.name))
    return free


def pick_doctor_for_specialization(db: Session, day: date, time: str, specialization: str) -> User:
    matched = match_specialization(db, specialization)
    if matched is None:
        raise ValidationFailed.field("specialization", f"No doctors found for specialization '{specialization}'.")
    candidates = available_doctors(db, day, time, matched)
    if not candidates:
        raise ValidationFailed.field(
            "specialization", f"No {matched} doctor is available on {day.isoformat()} at {time}."
        )
    logger.info(f"🔎 '{specialization}' matched '{matched}', picked doctor {candidates[0].id}")
    return candidates[0]
