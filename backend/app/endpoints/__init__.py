# app/endpoints/__init__.py

# Import routers from each endpoint file
from .admin import router as admin
from .appointments import router as appointments
from .auth import router as auth
from .clinical import router as clinical
from .doctor import router as doctor
from .notifications import router as notifications
from .patients import academic_staff_router as academic_staff, student_router as student
from .public import router as public
from .superadmin import router as superadmin

__all__ = [
    "admin", "appointments", "auth", "clinical", "doctor",
    "notifications", "academic_staff", "student", "public", "superadmin",
]
