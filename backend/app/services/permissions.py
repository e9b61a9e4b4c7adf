# app/services/permissions.py
import enum
import logging
from typing import Iterable, List

from app.exceptions import ValidationFailed
from app.models.enums import Role

logger = logging.getLogger(__name__)


class Permission(str, enum.Enum):
    VIEW_OWN_PROFILE = "view_own_profile"
    UPDATE_OWN_PROFILE = "update_own_profile"
    VIEW_MEDICAL_HISTORY = "view_medical_history"
    SCHEDULE_APPOINTMENTS = "schedule_appointments"
    RESCHEDULE_OWN_APPOINTMENTS = "reschedule_own_appointments"
    CANCEL_OWN_APPOINTMENTS = "cancel_own_appointments"
    VIEW_DOCTOR_AVAILABILITY = "view_doctor_availability"
    VIEW_PATIENTS = "view_patients"
    MANAGE_PATIENTS = "manage_patients"
    UPDATE_PATIENT_INFO = "update_patient_info"
    VIEW_MEDICAL_RECORDS = "view_medical_records"
    CREATE_MEDICAL_RECORDS = "create_medical_records"
    PRESCRIBE_MEDICATION = "prescribe_medication"
    MANAGE_MEDICATIONS = "manage_medications"
    CONFIRM_APPOINTMENTS = "confirm_appointments"
    REJECT_APPOINTMENTS = "reject_appointments"
    RESCHEDULE_APPOINTMENTS = "reschedule_appointments"
    CANCEL_APPOINTMENTS = "cancel_appointments"
    COMPLETE_APPOINTMENTS = "complete_appointments"
    ASSIGN_DOCTORS = "assign_doctors"
    OVERRIDE_HOLIDAYS = "override_holidays"
    MANAGE_AVAILABILITY = "manage_availability"
    MANAGE_USERS = "manage_users"
    MANAGE_ROLES = "manage_roles"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_HOLIDAYS = "manage_holidays"
    VIEW_SYSTEM_LOGS = "view_system_logs"


_PATIENT = frozenset({
    Permission.VIEW_OWN_PROFILE,
    Permission.UPDATE_OWN_PROFILE,
    Permission.VIEW_MEDICAL_HISTORY,
    Permission.SCHEDULE_APPOINTMENTS,
    Permission.RESCHEDULE_OWN_APPOINTMENTS,
    Permission.CANCEL_OWN_APPOINTMENTS,
    Permission.VIEW_DOCTOR_AVAILABILITY,
})

_APPOINTMENT_HANDLING = frozenset({
    Permission.SCHEDULE_APPOINTMENTS,
    Permission.CONFIRM_APPOINTMENTS,
    Permission.REJECT_APPOINTMENTS,
    Permission.RESCHEDULE_APPOINTMENTS,
    Permission.CANCEL_APPOINTMENTS,
    Permission.COMPLETE_APPOINTMENTS,
})

ROLE_PERMISSIONS = {
    Role.STUDENT: _PATIENT,
    Role.ACADEMIC_STAFF: _PATIENT,
    Role.DOCTOR: _APPOINTMENT_HANDLING | {
        Permission.VIEW_OWN_PROFILE,
        Permission.UPDATE_OWN_PROFILE,
        Permission.VIEW_PATIENTS,
        Permission.MANAGE_PATIENTS,
        Permission.VIEW_MEDICAL_RECORDS,
        Permission.CREATE_MEDICAL_RECORDS,
        Permission.PRESCRIBE_MEDICATION,
        Permission.MANAGE_AVAILABILITY,
    },
    Role.CLINICAL_STAFF: _APPOINTMENT_HANDLING | {
        Permission.VIEW_OWN_PROFILE,
        Permission.UPDATE_OWN_PROFILE,
        Permission.VIEW_PATIENTS,
        Permission.UPDATE_PATIENT_INFO,
        Permission.VIEW_MEDICAL_RECORDS,
        Permission.ASSIGN_DOCTORS,
        Permission.OVERRIDE_HOLIDAYS,
        Permission.MANAGE_MEDICATIONS,
    },
    Role.ADMIN: frozenset(Permission),
    Role.SUPERADMIN: frozenset(Permission),
}


def parse_permissions(values: Iterable[str]) -> List[Permission]:
    """Turn raw strings into Permission members, rejecting anything unknown."""
    parsed, unknown = [], []
    for value in values:
        try:
            perm = Permission(value)
        except ValueError:
            unknown.append(value)
            continue
        if perm not in parsed:
            parsed.append(perm)
    if unknown:
        raise ValidationFailed(
            "Unknown permissions",
            {"permissions": [f"Unknown permission: {u}" for u in unknown]},
        )
    return parsed


def user_overrides(user) -> frozenset:
    # Stored overrides were validated on assignment; stale names are ignored.
    known = {p.value for p in Permission}
    return frozenset(Permission(p) for p in (user.permissions or []) if p in known)


def has_permission(user, permission: Permission) -> bool:
    role = user.role_enum
    if role.is_admin:
        return True
    return permission in ROLE_PERMISSIONS[role] or permission in user_overrides(user)


def all_permissions(user) -> List[str]:
    perms = ROLE_PERMISSIONS[user.role_enum] | user_overrides(user)
    return sorted(p.value for p in perms)


def assign_permissions(db, user, values: Iterable[str]):
    perms = parse_permissions(values)
    user.permissions = [p.value for p in perms]
    db.commit()
    db.refresh(user)
    logger.info(f"🔑 Permission overrides for user {user.id} set to {user.permissions}")
    return user


def role_catalogue() -> List[dict]:
    return [
        {"value": role.value, "label": role.label, "permissions": sorted(p.value for p in ROLE_PERMISSIONS[role])}
        for role in Role
    ]
