# app/models/settings_models.py
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Section(BaseModel):
    # Unknown keys are rejected so typos surface on update, not on first use.
    model_config = ConfigDict(extra="forbid")


class GeneralSettings(_Section):
    site_name: str = "University Health System"
    site_description: str = "Comprehensive university Health platform"
    timezone: str = "UTC+3"
    default_language: str = "en"
    maintenance_mode: bool = False
    registration_enabled: bool = True
    email_verification_required: bool = True


class AuthenticationSettings(_Section):
    password_min_length: int = Field(8, ge=6, le=128)
    password_require_uppercase: bool = True
    password_require_lowercase: bool = True
    password_require_numbers: bool = True
    password_require_symbols: bool = False
    session_timeout: int = Field(1440, ge=1)
    max_login_attempts: int = Field(5, ge=1)
    lockout_duration: int = Field(15, ge=0)
    two_factor_enabled: bool = False


class EmailSettings(_Section):
    smtp_host: str = ""
    smtp_port: int = Field(587, ge=1, le=65535)
    smtp_encryption: Literal["tls", "ssl", "none"] = "tls"
    from_address: str = ""
    from_name: str = ""


class FileUploadSettings(_Section):
    max_file_size: int = Field(10240, ge=1)  # KB
    allowed_extensions: List[str] = Field(default_factory=lambda: ["pdf", "doc", "docx", "jpg", "png"])
    upload_path: str = "/uploads/"
    antivirus_enabled: bool = True


class SecuritySettings(_Section):
    force_https: bool = True
    csrf_protection: bool = True
    rate_limiting_enabled: bool = True
    ip_whitelist_enabled: bool = False
    audit_logging_enabled: bool = True
    password_history_count: int = Field(5, ge=0)


class BackupSettings(_Section):
    automatic_backups: bool = True
    backup_frequency: Literal["daily", "weekly", "monthly"] = "daily"
    backup_retention_days: int = Field(30, ge=1)
    backup_location: str = ""
    last_backup: Optional[str] = None


class SystemSettingsModel(BaseModel):
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    authentication: AuthenticationSettings = Field(default_factory=AuthenticationSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    file_uploads: FileUploadSettings = Field(default_factory=FileUploadSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)


SECTION_MODELS = {
    "general": GeneralSettings,
    "authentication": AuthenticationSettings,
    "email": EmailSettings,
    "file_uploads": FileUploadSettings,
    "security": SecuritySettings,
    "backup": BackupSettings,
}


class SettingsUpdate(BaseModel):
    """Partial update; only the sections present are replaced."""

    general: Optional[dict] = None
    authentication: Optional[dict] = None
    email: Optional[dict] = None
    file_uploads: Optional[dict] = None
    security: Optional[dict] = None
    backup: Optional[dict] = None


# ---------------- Clinic settings ----------------

DayName = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class ClinicHours(BaseModel):
    day: DayName
    open_time: str = ""
    close_time: str = ""
    is_closed: bool = False

    @model_validator(mode="after")
    def check_hours(self):
        if not self.is_closed:
            if not self.open_time or not self.close_time:
                raise ValueError(f"{self.day}: open_time and close_time are required when open")
            if self.open_time >= self.close_time:
                raise ValueError(f"{self.day}: close_time must be after open_time")
        return self


class AppointmentTip(BaseModel):
    title: str
    description: str
    order: int = 0


class EmergencyContact(BaseModel):
    name: str
    phone: str
    order: int = 0


def _default_hours():
    hours = [ClinicHours(day=d, open_time="08:00", close_time="17:00")
             for d in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")]
    hours.append(ClinicHours(day="Saturday", open_time="09:00", close_time="13:00"))
    hours.append(ClinicHours(day="Sunday", is_closed=True))
    return hours


def _default_tips():
    return [
        AppointmentTip(title="Arrive early", description="Please arrive 15 minutes before your scheduled time.", order=1),
        AppointmentTip(title="Bring documents", description="Don't forget your student ID and medical card.", order=2),
        AppointmentTip(title="Cancellation", description="Cancel at least 24 hours in advance if you can't make it.", order=3),
    ]


def _default_contacts():
    return [
        EmergencyContact(name="Campus Emergency", phone="+90 392 630 1010", order=1),
        EmergencyContact(name="Ambulance", phone="112", order=2),
        EmergencyContact(name="Clinic Reception", phone="+90 392 630 1234", order=3),
    ]


class ClinicSettingsModel(BaseModel):
    clinic_hours: List[ClinicHours] = Field(default_factory=_default_hours)
    appointment_tips: List[AppointmentTip] = Field(default_factory=_default_tips)
    emergency_contacts: List[EmergencyContact] = Field(default_factory=_default_contacts)

    @model_validator(mode="after")
    def unique_days(self):
        days = [h.day for h in self.clinic_hours]
        if len(days) != len(set(days)):
            raise ValueError("clinic_hours must list each day at most once")
        return self

    def open_weekdays(self) -> set:
        """ISO weekday numbers the clinic is open on."""
        names = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
        return {names.index(h.day) + 1 for h in self.clinic_hours if not h.is_closed}
