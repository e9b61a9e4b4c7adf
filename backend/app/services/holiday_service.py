# app/services/holiday_service.py
import logging
from typing import List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from app.exceptions import Conflict, NotFound, ValidationFailed
from app.models.enums import DepartmentType, HolidayScope, HolidayType, Role, StaffType, WEEKDAY_NAMES
from app.models.scheduling import AcademicHoliday, Department, StaffSchedule
from app.models.user import User

logger = logging.getLogger(__name__)

REQUIRED_CSV_COLUMNS = {"name", "start_date", "end_date", "type"}
TRUE_STRINGS = {"1", "true", "yes", "y"}


# ---------------- Holidays ----------------

def list_holidays(db: Session, year: Optional[int] = None, active_only: bool = False) -> List[AcademicHoliday]:
    query = db.query(AcademicHoliday)
    if year is not None:
        query = query.filter(AcademicHoliday.academic_year == year)
    if active_only:
        query = query.filter(AcademicHoliday.is_active.is_(True))
    return query.order_by(AcademicHoliday.start_date).all()


def get_holiday(db: Session, holiday_id: int) -> AcademicHoliday:
    holiday = db.query(AcademicHoliday).filter(AcademicHoliday.id == holiday_id).first()
    if holiday is None:
        raise NotFound("Holiday not found")
    return holiday


def _enum_values(data: dict) -> dict:
    out = dict(data)
    for key, enum_cls in (("type", HolidayType), ("affects_staff_type", HolidayScope)):
        if out.get(key) is not None:
            out[key] = enum_cls(out[key]).value
    return out


def create_holiday(db: Session, data: dict, source: str = "manual") -> AcademicHoliday:
    data = _enum_values(data)
    holiday = AcademicHoliday(
        **{k: v for k, v in data.items() if k != "academic_year"},
        academic_year=data.get("academic_year") or data["start_date"].year,
        source=source,
    )
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    logger.info(f"🎓 Holiday {holiday.id} '{holiday.name}' {holiday.start_date}..{holiday.end_date} created")
    return holiday


def update_holiday(db: Session, holiday: AcademicHoliday, changes: dict) -> AcademicHoliday:
    changes = _enum_values(changes)
    start = changes.get("start_date") or holiday.start_date
    end = changes.get("end_date") or holiday.end_date
    if end < start:
        raise ValidationFailed.field("end_date", "The end date must be on or after the start date.")
    for field, value in changes.items():
        setattr(holiday, field, value)
    db.commit()
    db.refresh(holiday)
    logger.info(f"🎓 Holiday {holiday.id} updated: {sorted(changes)}")
    return holiday


def delete_holiday(db: Session, holiday: AcademicHoliday):
    logger.info(f"🎓 Holiday {holiday.id} '{holiday.name}' deleted")
    db.delete(holiday)
    db.commit()


def _flag(value, default: bool) -> bool:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_STRINGS


def _text(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def import_holidays_csv(db: Session, file_obj) -> dict:
    """Import holidays from CSV. Rows whose external_id already exists update that holiday."""
    try:
        df = pd.read_csv(file_obj)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.warning(f"⚠️ Rejected unreadable holiday CSV: {e}")
        raise ValidationFailed.field("file", "The file is empty or is not a readable CSV.")
    df.columns = [c.strip().lower() for c in df.columns]
    missing = REQUIRED_CSV_COLUMNS - set(df.columns)
    if missing:
        raise ValidationFailed.field("file", f"CSV must contain columns: {', '.join(sorted(missing))}")

    df["start_date"] = pd.to_datetime(df["start_date"], errors="coerce")
    df["end_date"] = pd.to_datetime(df["end_date"], errors="coerce")

    created, updated, errors = 0, 0, []
    seen = {}  # external_id -> holiday touched earlier in this file
    for idx, row in df.iterrows():
        line = idx + 2  # header is line 1
        if pd.isna(row["start_date"]) or pd.isna(row["end_date"]):
            errors.append(f"Line {line}: invalid date")
            continue
        start, end = row["start_date"].date(), row["end_date"].date()
        if end < start:
            errors.append(f"Line {line}: end_date before start_date")
            continue
        try:
            kind = HolidayType(str(row["type"]).strip()).value
            scope = HolidayScope(_text(row.get("affects_staff_type")) or HolidayScope.ALL.value).value
        except ValueError as e:
            errors.append(f"Line {line}: {e}")
            continue
        name = _text(row["name"])
        if not name:
            errors.append(f"Line {line}: name is required")
            continue

        values = {
            "name": name,
            "description": _text(row.get("description")),
            "start_date": start,
            "end_date": end,
            "type": kind,
            "affects_staff_type": scope,
            "blocks_appointments": _flag(row.get("blocks_appointments"), True),
            "academic_year": start.year,
        }
        external_id = _text(row.get("external_id"))
        holiday = None
        if external_id:
            holiday = seen.get(external_id) or (
                db.query(AcademicHoliday).filter(AcademicHoliday.external_id == external_id).first()
            )
        if holiday is not None:
            for field, value in values.items():
                setattr(holiday, field, value)
            updated += 1
        else:
            holiday = AcademicHoliday(**values, external_id=external_id, source="csv_import", is_active=True)
            db.add(holiday)
            created += 1
        if external_id:
            seen[external_id] = holiday

    db.commit()
    logger.info(f"📥 Holiday CSV import: {created} created, {updated} updated, {len(errors)} skipped")
    return {"created": created, "updated": updated, "errors": errors, "total_rows": len(df)}


# ---------------- Departments ----------------

def list_departments(db: Session, active_only: bool = False) -> List[Department]:
    query = db.query(Department)
    if active_only:
        query = query.filter(Department.is_active.is_(True))
    return query.order_by(Department.name).all()


def get_department(db: Session, department_id: int) -> Department:
    dept = db.query(Department).filter(Department.id == department_id).first()
    if dept is None:
        raise NotFound("Department not found")
    return dept


def _check_department_unique(db: Session, name: Optional[str], code: Optional[str], exclude_id: Optional[int] = None):
    for column, value in (("name", name), ("code", code)):
        if value is None:
            continue
        query = db.query(Department).filter(getattr(Department, column) == value)
        if exclude_id is not None:
            query = query.filter(Department.id != exclude_id)
        if query.first():
            raise Conflict(f"The department {column} has already been taken.",
                           {column: [f"The {column} has already been taken."]})


def create_department(db: Session, data: dict) -> Department:
    _check_department_unique(db, data["name"], data["code"])
    dept = Department(
        name=data["name"],
        code=data["code"],
        description=data.get("description"),
        type=DepartmentType(data.get("type") or DepartmentType.MEDICAL).value,
        is_active=data.get("is_active", True),
        meta=data.get("metadata"),
    )
    db.add(dept)
    db.commit()
    db.refresh(dept)
    logger.info(f"🏢 Department {dept.id} '{dept.name}' created")
    return dept


def update_department(db: Session, dept: Department, changes: dict) -> Department:
    _check_department_unique(db, changes.get("name"), changes.get("code"), exclude_id=dept.id)
    for field, value in changes.items():
        if field == "metadata":
            dept.meta = value
        elif field == "type" and value is not None:
            dept.type = DepartmentType(value).value
        else:
            setattr(dept, field, value)
    db.commit()
    db.refresh(dept)
    logger.info(f"🏢 Department {dept.id} updated: {sorted(changes)}")
    return dept


def delete_department(db: Session, dept: Department):
    if dept.users:
        raise Conflict(f"Cannot delete a department with {len(dept.users)} assigned user(s).")
    logger.info(f"🏢 Department {dept.id} '{dept.name}' deleted")
    db.delete(dept)
    db.commit()


# ---------------- Staff schedules ----------------

def upsert_schedule(db: Session, user: User, data: dict) -> StaffSchedule:
    if user.role_enum == Role.STUDENT:
        raise ValidationFailed.field("user_id", "Schedules can only be set for staff members.")
    if data.get("department_id") is not None:
        get_department(db, data["department_id"])
    schedule = user.schedule
    if schedule is None:
        schedule = StaffSchedule(user_id=user.id)
        user.schedule = schedule
    for field, value in data.items():
        if field == "staff_type" and value is not None:
            value = StaffType(value).value
        setattr(schedule, field, value)
    db.commit()
    db.refresh(schedule)
    logger.info(f"🗓️ Schedule for user {user.id} set to days {schedule.working_days}")
    return schedule


def update_doctor_availability(db: Session, doctor: User, data: dict) -> User:
    """Doctor self-service availability; keeps the StaffSchedule in step with the user columns."""
    days = list(dict.fromkeys(data["available_days"]))
    doctor.available_days = days
    doctor.working_hours_start = data["working_hours_start"]
    doctor.working_hours_end = data["working_hours_end"]
    doctor.is_available = data.get("is_available", True)

    schedule = doctor.schedule
    if schedule is None:
        schedule = StaffSchedule(user_id=doctor.id, staff_type=StaffType.CLINICAL.value,
                                 department_id=doctor.department_id)
        doctor.schedule = schedule
    schedule.working_days = sorted(WEEKDAY_NAMES.index(d) + 1 for d in days)
    schedule.working_hours_start = data["working_hours_start"]
    schedule.working_hours_end = data["working_hours_end"]
    db.commit()
    db.refresh(doctor)
    logger.info(f"🗓️ Doctor {doctor.id} availability: {days} {doctor.working_hours_start}-{doctor.working_hours_end}")
    return doctor
