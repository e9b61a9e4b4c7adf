# app/endpoints/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.endpoints.deps import get_current_user, get_token_pair
from app.models.auth_models import (
    ForgotPasswordRequest, LoginRequest, ProfileUpdate, RegisterRequest, ResetPasswordRequest,
)
from app.models.user import User
from app.services import auth_service, profile_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    return {"message": "Registration successful", **auth_service.register(db, payload.model_dump())}


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return {"message": "Login successful", **auth_service.login(db, payload.email, payload.password)}


@router.post("/logout")
def logout(pair=Depends(get_token_pair), db: Session = Depends(get_db)):
    auth_service.revoke_token(db, pair[1])
    return {"message": "Logged out successfully"}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    return auth_service.forgot_password(db, payload.email)


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    return auth_service.reset_password(db, payload.model_dump())


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"user": profile_service.profile_to_dict(user)}


@router.put("/profile")
def update_profile(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = profile_service.update_profile(db, user, payload.model_dump(exclude_unset=True))
    return {"message": "Profile updated successfully", "user": data}
