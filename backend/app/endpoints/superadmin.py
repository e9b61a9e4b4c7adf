# app/endpoints/superadmin.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import require_roles
from app.models.admin_models import UserCreate
from app.models.enums import Role, UserStatus
from app.models.user import User
from app.services import user_service
from app.services.serializers import user_to_dict

router = APIRouter(prefix="/superadmin", tags=["superadmin"])
current_superadmin = require_roles(Role.SUPERADMIN)


@router.get("/users")
def list_users(role: Optional[Role] = None, status: Optional[str] = None, search: Optional[str] = None,
               page: int = 1, per_page: int = 15,
               superadmin: User = Depends(current_superadmin), db: Session = Depends(get_db)):
    return user_service.list_users(
        db, role=role.value if role else None, status=status, search=search, page=page, per_page=per_page,
    )


@router.post("/users", status_code=201)
def create_user(payload: UserCreate, superadmin: User = Depends(current_superadmin), db: Session = Depends(get_db)):
    user = user_service.create_user(db, superadmin, payload.model_dump())
    return {"message": "User created successfully", "user": user_to_dict(user)}


@router.delete("/users/{user_id}")
def delete_user(user_id: int, superadmin: User = Depends(current_superadmin), db: Session = Depends(get_db)):
    result = user_service.delete_user(db, superadmin, user_service.get_user(db, user_id))
    message = "User deleted successfully" if result["deleted"] else "User has appointment history and was archived"
    return {"message": message, **result}


@router.get("/pending-users")
def pending_users(superadmin: User = Depends(current_superadmin), db: Session = Depends(get_db)):
    return user_service.list_users(db, status=UserStatus.PENDING_VERIFICATION.value, per_page=100)


@router.post("/users/{user_id}/approve")
def approve(user_id: int, superadmin: User = Depends(current_superadmin), db: Session = Depends(get_db)):
    user = user_service.approve_user(db, superadmin, user_service.get_user(db, user_id))
    return {"message": "User approved", "user": user_to_dict(user)}


@router.post("/users/{user_id}/reject")
def reject(user_id: int, superadmin: User = Depends(current_superadmin), db: Session = Depends(get_db)):
    user = user_service.reject_user(db, superadmin, user_service.get_user(db, user_id))
    return {"message": "User rejected", "user": user_to_dict(user)}


@router.post("/users/{user_id}/toggle-status")
def toggle_status(user_id: int, superadmin: User = Depends(current_superadmin), db: Session = Depends(get_db)):
    user = user_service.toggle_active(db, superadmin, user_service.get_user(db, user_id))
    return {"message": f"User is now {user.status}", "user": user_to_dict(user)}
