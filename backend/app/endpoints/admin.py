# app/endpoints/admin.py
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import ADMINS, require_permission, require_roles
from app.exceptions import ValidationFailed
from app.models.admin_models import (
    BulkNotification, DepartmentIn, DepartmentUpdate, HolidayIn, HolidayUpdate, PermissionsAssign,
    StaffScheduleIn, StatusUpdate, UserCreate,
)
from app.models.enums import Role
from app.models.settings_models import ClinicSettingsModel, SettingsUpdate
from app.models.user import User
from app.services import (
    dashboard_service, holiday_service, notification_service, settings_service, user_service,
)
from app.services.permissions import Permission, all_permissions, assign_permissions, role_catalogue
from app.services.serializers import department_to_dict, holiday_to_dict, schedule_to_dict, user_to_dict

router = APIRouter(prefix="/admin", tags=["admin"])
current_admin = require_roles(*ADMINS)

# Superadmins are managed from /superadmin only.
MANAGEABLE_ROLES = [r for r in Role if r not in ADMINS]


@router.get("/dashboard")
def dashboard(admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    return dashboard_service.admin_dashboard(db)


# ---------------- Users ----------------

@router.get("/users")
def list_users(role: Optional[Role] = None, status: Optional[str] = None, search: Optional[str] = None,
               page: int = 1, per_page: int = 15,
               admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    return user_service.list_users(
        db, role=role.value if role else None, status=status, search=search, page=page, per_page=per_page,
        roles=MANAGEABLE_ROLES,
    )


@router.post("/users", status_code=201)
def create_user(payload: UserCreate, admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    user = user_service.create_user(db, admin, payload.model_dump())
    return {"message": "User created successfully", "user": user_to_dict(user)}


@router.get("/users/{user_id}")
def get_user(user_id: int, admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    user = user_service.get_user(db, user_id)
    return {"user": user_to_dict(user), "permissions": all_permissions(user)}


@router.put("/users/{user_id}/status")
def update_status(user_id: int, payload: StatusUpdate, admin: User = Depends(current_admin),
                  db: Session = Depends(get_db)):
    user = user_service.update_status(db, admin, user_service.get_user(db, user_id), payload.status)
    return {"message": "User status updated successfully", "user": user_to_dict(user)}


@router.put("/users/{user_id}/permissions")
def update_permissions(user_id: int, payload: PermissionsAssign,
                       admin: User = Depends(require_permission(Permission.MANAGE_ROLES)),
                       db: Session = Depends(get_db)):
    user = assign_permissions(db, user_service.get_user(db, user_id), payload.permissions)
    return {"message": "Permissions updated successfully", "user": user_to_dict(user),
            "permissions": all_permissions(user)}


@router.delete("/users/{user_id}")
def delete_user(user_id: int, admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    result = user_service.delete_user(db, admin, user_service.get_user(db, user_id))
    message = "User deleted successfully" if result["deleted"] else "User has appointment history and was archived"
    return {"message": message, **result}


@router.get("/roles")
def roles(admin: User = Depends(current_admin)):
    return {"roles": role_catalogue()}


# ---------------- Settings ----------------

@router.get("/settings")
def get_settings(admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    return settings_service.load_settings(db).model_dump(mode="json")


@router.put("/settings")
def update_settings(payload: SettingsUpdate, admin: User = Depends(require_permission(Permission.MANAGE_SETTINGS)),
                    db: Session = Depends(get_db)):
    settings = settings_service.update_sections(db, payload.model_dump(exclude_none=True))
    return {"message": "Settings updated successfully", "settings": settings.model_dump(mode="json")}


@router.post("/settings/reset")
def reset_settings(section: Optional[str] = None,
                   admin: User = Depends(require_permission(Permission.MANAGE_SETTINGS)),
                   db: Session = Depends(get_db)):
    settings = settings_service.reset(db, section)
    return {"message": "Settings reset to defaults", "settings": settings.model_dump(mode="json")}


@router.put("/clinic-settings")
def update_clinic_settings(payload: ClinicSettingsModel,
                           admin: User = Depends(require_permission(Permission.MANAGE_SETTINGS)),
                           db: Session = Depends(get_db)):
    settings = settings_service.update_clinic_settings(db, payload.model_dump(mode="json"))
    return {"message": "Clinic settings updated successfully", "settings": settings.model_dump(mode="json")}


# ---------------- Departments ----------------

@router.get("/departments")
def departments(active_only: bool = False, admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    return {"departments": [department_to_dict(d) for d in holiday_service.list_departments(db, active_only)]}


@router.post("/departments", status_code=201)
def create_department(payload: DepartmentIn, admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    dept = holiday_service.create_department(db, payload.model_dump())
    return {"message": "Department created successfully", "department": department_to_dict(dept)}


@router.put("/departments/{department_id}")
def update_department(department_id: int, payload: DepartmentUpdate, admin: User = Depends(current_admin),
                      db: Session = Depends(get_db)):
    dept = holiday_service.get_department(db, department_id)
    dept = holiday_service.update_department(db, dept, payload.model_dump(exclude_unset=True))
    return {"message": "Department updated successfully", "department": department_to_dict(dept)}


@router.delete("/departments/{department_id}")
def delete_department(department_id: int, admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    holiday_service.delete_department(db, holiday_service.get_department(db, department_id))
    return {"message": "Department deleted successfully"}


# ---------------- Holidays ----------------

holiday_admin = require_permission(Permission.MANAGE_HOLIDAYS)


@router.get("/holidays")
def holidays(year: Optional[int] = None, active_only: bool = False, admin: User = Depends(current_admin),
             db: Session = Depends(get_db)):
    return {"holidays": [holiday_to_dict(h) for h in holiday_service.list_holidays(db, year, active_only)]}


@router.post("/holidays", status_code=201)
def create_holiday(payload: HolidayIn, admin: User = Depends(holiday_admin), db: Session = Depends(get_db)):
    holiday = holiday_service.create_holiday(db, payload.model_dump())
    return {"message": "Holiday created successfully", "holiday": holiday_to_dict(holiday)}


@router.post("/holidays/import")
def import_holidays(file: UploadFile = File(...), admin: User = Depends(holiday_admin),
                    db: Session = Depends(get_db)):
    if not file.filename.endswith(".csv"):
        raise ValidationFailed.field("file", "Only CSV files are allowed.")
    result = holiday_service.import_holidays_csv(db, file.file)
    return {"message": "Holidays imported", **result}


@router.put("/holidays/{holiday_id}")
def update_holiday(holiday_id: int, payload: HolidayUpdate, admin: User = Depends(holiday_admin),
                   db: Session = Depends(get_db)):
    holiday = holiday_service.get_holiday(db, holiday_id)
    holiday = holiday_service.update_holiday(db, holiday, payload.model_dump(exclude_unset=True))
    return {"message": "Holiday updated successfully", "holiday": holiday_to_dict(holiday)}


@router.delete("/holidays/{holiday_id}")
def delete_holiday(holiday_id: int, admin: User = Depends(holiday_admin), db: Session = Depends(get_db)):
    holiday_service.delete_holiday(db, holiday_service.get_holiday(db, holiday_id))
    return {"message": "Holiday deleted successfully"}


# ---------------- Staff schedules ----------------

@router.get("/staff-schedules/{user_id}")
def get_schedule(user_id: int, admin: User = Depends(current_admin), db: Session = Depends(get_db)):
    user = user_service.get_user(db, user_id)
    return {"schedule": schedule_to_dict(user.schedule) if user.schedule else None}


@router.put("/staff-schedules/{user_id}")
def upsert_schedule(user_id: int, payload: StaffScheduleIn, admin: User = Depends(current_admin),
                    db: Session = Depends(get_db)):
    schedule = holiday_service.upsert_schedule(db, user_service.get_user(db, user_id), payload.model_dump())
    return {"message": "Schedule saved successfully", "schedule": schedule_to_dict(schedule)}


# ---------------- Notifications ----------------

@router.post("/notifications", status_code=201)
def send_notifications(payload: BulkNotification, admin: User = Depends(current_admin),
                       db: Session = Depends(get_db)):
    count = notification_service.send_bulk(db, admin, payload.model_dump())
    return {"message": f"Notification sent to {count} user(s)", "recipients": count}
