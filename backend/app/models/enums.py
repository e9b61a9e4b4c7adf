# app/models/enums.py
import enum


class Role(str, enum.Enum):
    STUDENT = "student"
    DOCTOR = "doctor"
    CLINICAL_STAFF = "clinical_staff"
    ACADEMIC_STAFF = "academic_staff"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]

    @property
    def is_patient(self) -> bool:
        return self in PATIENT_ROLES

    @property
    def is_admin(self) -> bool:
        return self in (Role.ADMIN, Role.SUPERADMIN)


ROLE_LABELS = {
    Role.STUDENT: "Student",
    Role.DOCTOR: "Doctor",
    Role.CLINICAL_STAFF: "Clinical Staff",
    Role.ACADEMIC_STAFF: "Academic Staff",
    Role.ADMIN: "Administrator",
    Role.SUPERADMIN: "Super Administrator",
}

PATIENT_ROLES = frozenset({Role.STUDENT, Role.ACADEMIC_STAFF})
STAFF_ROLES = frozenset({Role.DOCTOR, Role.CLINICAL_STAFF})


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING_VERIFICATION = "pending_verification"
    ARCHIVED = "archived"


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})
ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


class Urgency(str, enum.Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class AppointmentType(str, enum.Enum):
    CONSULTATION = "consultation"
    WALK_IN = "walk_in"
    FOLLOW_UP = "follow_up"
    STUDENT_REQUEST = "student_request"


class StaffType(str, enum.Enum):
    ACADEMIC = "academic"
    CLINICAL = "clinical"
    ADMINISTRATIVE = "administrative"


class HolidayType(str, enum.Enum):
    SEMESTER_BREAK = "semester_break"
    EXAM_PERIOD = "exam_period"
    REGISTRATION_PERIOD = "registration_period"
    NATIONAL_HOLIDAY = "national_holiday"
    UNIVERSITY_CLOSURE = "university_closure"
    MAINTENANCE = "maintenance"


class HolidayScope(str, enum.Enum):
    ALL = "all"
    ACADEMIC = "academic"
    CLINICAL = "clinical"
    NONE = "none"


class DepartmentType(str, enum.Enum):
    MEDICAL = "medical"
    ACADEMIC = "academic"
    ADMINISTRATIVE = "administrative"


class RecordType(str, enum.Enum):
    CONSULTATION = "consultation"
    VACCINATION = "vaccination"
    LAB_RESULT = "lab_result"
    VITALS = "vitals"
    FOLLOW_UP = "follow_up"


class PrescriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MedicationStatus(str, enum.Enum):
    ACTIVE = "active"
    DISCONTINUED = "discontinued"
    COMPLETED = "completed"


class NotificationType(str, enum.Enum):
    APPOINTMENT_ASSIGNED = "appointment_assigned"
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_REJECTED = "appointment_rejected"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_COMPLETED = "appointment_completed"
    APPOINTMENT_REQUESTED = "appointment_requested"
    PRESCRIPTION_READY = "prescription_ready"
    FOLLOW_UP_REQUIRED = "follow_up_required"
    SYSTEM = "system"


WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
