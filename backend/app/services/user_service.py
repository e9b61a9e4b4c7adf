# app/services/user_service.py
import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import NotFound, PermissionDenied, ValidationFailed
from app.models.appointment import Appointment
from app.models.enums import PATIENT_ROLES, Role, UserStatus
from app.models.user import User
from app.services.auth_service import ensure_unique_identity, hash_password
from app.services.serializers import user_to_dict

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def list_users(db: Session, role: Optional[str] = None, status: Optional[str] = None, search: Optional[str] = None,
               page: int = 1, per_page: int = 15, roles=None) -> dict:
    if page < 1 or per_page < 1 or per_page > MAX_PER_PAGE:
        raise ValidationFailed.field("per_page", f"page must be >= 1 and per_page between 1 and {MAX_PER_PAGE}.")
    query = db.query(User)
    if roles is not None:
        query = query.filter(User.role.in_([Role(r).value for r in roles]))
    if role:
        query = query.filter(User.role == Role(role).value)
    if status:
        query = query.filter(User.status == UserStatus(status).value)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like), User.student_id.ilike(like)))
    total = query.count()
    rows = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        "data": [user_to_dict(u) for u in rows],
        "total": total,
        "page": page,
        "per_page": per_page,
        "last_page": max(1, math.ceil(total / per_page)),
    }


def _guard_target(actor: User, target: User):
    if target.id == actor.id:
        raise PermissionDenied("You cannot perform this action on your own account")
    if target.role_enum.is_admin and actor.role_enum != Role.SUPERADMIN:
        raise PermissionDenied("Only a super administrator can manage administrators")


def create_user(db: Session, actor: User, data: dict) -> User:
    role = Role(data["role"])
    if role == Role.SUPERADMIN or (role == Role.ADMIN and actor.role_enum != Role.SUPERADMIN):
        raise PermissionDenied(f"You cannot create {role.label} accounts")
    if role == Role.STUDENT and not data.get("student_id"):
        raise ValidationFailed.field("student_id", "The student id field is required for students.")
    if role == Role.DOCTOR and not data.get("specialization"):
        raise ValidationFailed.field("specialization", "The specialization field is required for doctors.")
    ensure_unique_identity(db, data["email"], data.get("student_id"), data.get("staff_no"))

    user = User(
        name=data["name"],
        email=data["email"].lower(),
        password_hash=hash_password(data["password"]),
        role=role.value,
        status=UserStatus(data.get("status") or UserStatus.ACTIVE).value,
        phone=data.get("phone"),
        student_id=data.get("student_id"),
        staff_no=data.get("staff_no"),
        medical_license_number=data.get("medical_license_number"),
        specialization=data.get("specialization"),
        department=data.get("department"),
        department_id=data.get("department_id"),
        faculty=data.get("faculty"),
        permissions=[],
        email_verified_at=datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"👤 User {user.id} ({user.role}) created by user {actor.id}")
    return user


def update_status(db: Session, actor: User, user: User, status) -> User:
    _guard_target(actor, user)
    user.status = UserStatus(status).value
    db.commit()
    db.refresh(user)
    logger.info(f"👤 User {user.id} status set to {user.status} by user {actor.id}")
    return user


def delete_user(db: Session, actor: User, user: User) -> dict:
    """Delete a user; users with appointment history are archived instead."""
    _guard_target(actor, user)
    if user.role_enum == Role.DOCTOR:
        unassigned = db.query(User).filter(User.doctor_id == user.id).update({User.doctor_id: None})
        if unassigned:
            logger.info(f"👤 {unassigned} patient(s) unassigned from doctor {user.id}")
    has_history = db.query(
        db.query(Appointment)
        .filter(or_(Appointment.patient_id == user.id, Appointment.doctor_id == user.id))
        .exists()
    ).scalar()
    if has_history:
        user.status = UserStatus.ARCHIVED.value
        db.commit()
        logger.info(f"👤 User {user.id} archived by user {actor.id} (has appointments)")
        return {"deleted": False, "archived": True}
    db.delete(user)
    db.commit()
    logger.info(f"👤 User {user.id} deleted by user {actor.id}")
    return {"deleted": True, "archived": False}


# ---------------- Superadmin approvals ----------------

def approve_user(db: Session, actor: User, user: User) -> User:
    if user.status != UserStatus.PENDING_VERIFICATION.value:
        raise ValidationFailed.field("status", "Only pending users can be approved.")
    user.status = UserStatus.ACTIVE.value
    user.email_verified_at = user.email_verified_at or datetime.utcnow()
    db.commit()
    db.refresh(user)
    logger.info(f"👤 User {user.id} approved by user {actor.id}")
    return user


def reject_user(db: Session, actor: User, user: User) -> User:
    if user.status != UserStatus.PENDING_VERIFICATION.value:
        raise ValidationFailed.field("status", "Only pending users can be rejected.")
    user.status = UserStatus.ARCHIVED.value
    db.commit()
    db.refresh(user)
    logger.info(f"👤 User {user.id} rejected by user {actor.id}")
    return user


def toggle_active(db: Session, actor: User, user: User) -> User:
    _guard_target(actor, user)
    if user.status not in (UserStatus.ACTIVE.value, UserStatus.INACTIVE.value):
        raise ValidationFailed.field("status", f"A {user.status} account cannot be toggled.")
    user.status = UserStatus.INACTIVE.value if user.is_active else UserStatus.ACTIVE.value
    db.commit()
    db.refresh(user)
    logger.info(f"👤 User {user.id} toggled to {user.status} by user {actor.id}")
    return user


# ---------------- Patients ----------------

def list_patients(db: Session, search: Optional[str] = None, doctor: Optional[User] = None):
    query = db.query(User).filter(User.role.in_([r.value for r in PATIENT_ROLES]))
    if doctor is not None:
        seen = db.query(Appointment.patient_id).filter(Appointment.doctor_id == doctor.id)
        query = query.filter(or_(User.doctor_id == doctor.id, User.id.in_(seen)))
    if search:
        like = f"%{search}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like), User.student_id.ilike(like)))
    return query.order_by(User.name).all()


def assign_patient(db: Session, doctor: User, patient: User) -> User:
    patient.doctor_id = doctor.id
    db.commit()
    db.refresh(patient)
    logger.info(f"🩺 Patient {patient.id} assigned to doctor {doctor.id}")
    return patient
