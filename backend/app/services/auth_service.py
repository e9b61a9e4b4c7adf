# app/services/auth_service.py
import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.config import RESET_TOKEN_TTL_MINUTES, TOKEN_TTL_DAYS, UNIVERSITY_EMAIL_DOMAINS
from app.exceptions import AuthenticationFailed, Conflict, PermissionDenied, ValidationFailed
from app.models.enums import NotificationType, Role, UserStatus
from app.models.user import ApiToken, PasswordResetToken, Profile, User
from app.services import notification_service, settings_service
from app.services.permissions import all_permissions
from app.services.serializers import user_to_dict

logger = logging.getLogger(__name__)


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(user: User, password: str) -> bool:
    return check_password_hash(user.password_hash, password)


def password_errors(db: Session, password: str, confirmation: Optional[str] = None):
    """Check a password against the authentication settings; returns a list of messages."""
    rules = settings_service.load_settings(db).authentication
    problems = []
    if len(password) < rules.password_min_length:
        problems.append(f"The password must be at least {rules.password_min_length} characters.")
    if rules.password_require_uppercase and not re.search(r"[A-Z]", password):
        problems.append("The password must contain an uppercase letter.")
    if rules.password_require_lowercase and not re.search(r"[a-z]", password):
        problems.append("The password must contain a lowercase letter.")
    if rules.password_require_numbers and not re.search(r"\d", password):
        problems.append("The password must contain a number.")
    if rules.password_require_symbols and not re.search(r"[^A-Za-z0-9]", password):
        problems.append("The password must contain a symbol.")
    if confirmation is not None and confirmation != password:
        problems.append("The password confirmation does not match.")
    return problems


def is_university_email(email: str) -> bool:
    domain = email.rsplit("@", 1)[-1].lower()
    return any(domain == d or domain.endswith("." + d) for d in UNIVERSITY_EMAIL_DOMAINS)


# ---------------- Tokens ----------------

def issue_token(db: Session, user: User, name: str = "api-token") -> str:
    plain = secrets.token_urlsafe(40)
    db.add(ApiToken(
        user_id=user.id,
        token_hash=_digest(plain),
        name=name,
        expires_at=datetime.utcnow() + timedelta(days=TOKEN_TTL_DAYS),
    ))
    return plain


def authenticate_token(db: Session, plain: str) -> Tuple[User, ApiToken]:
    token = db.query(ApiToken).filter(ApiToken.token_hash == _digest(plain)).first()
    if token is None:
        raise AuthenticationFailed("Invalid token")
    if token.expires_at < datetime.utcnow():
        db.delete(token)
        db.commit()
        raise AuthenticationFailed("Token expired")
    token.last_used_at = datetime.utcnow()
    db.commit()
    return token.user, token


def revoke_token(db: Session, token: ApiToken):
    user_id = token.user_id
    db.delete(token)
    db.commit()
    logger.info(f"👋 User {user_id} logged out")


def auth_payload(user: User, token: str) -> dict:
    return {"user": user_to_dict(user), "token": token, "permissions": all_permissions(user)}


# ---------------- Register / login ----------------

def register(db: Session, data: dict) -> dict:
    if not settings_service.get(db, "general.registration_enabled", True):
        raise PermissionDenied("Registration is currently disabled")

    errors = {}
    email = data["email"].lower()
    role = Role(data["role"])
    if not is_university_email(email):
        errors["email"] = ["Please use your university email address."]

    problems = password_errors(db, data["password"], data.get("password_confirmation"))
    if problems:
        errors["password"] = problems

    if role == Role.STUDENT:
        student_id = (data.get("student_id") or "").strip()
        if not student_id:
            errors["student_id"] = ["The student id field is required."]
        elif not student_id.isdigit():
            errors["student_id"] = ["The student id must be numeric."]
    else:
        staff_no = (data.get("staff_no") or "").strip()
        if not staff_no:
            errors["staff_no"] = ["The staff number field is required."]
        if not data.get("faculty"):
            errors["faculty"] = ["The faculty field is required."]

    if errors:
        raise ValidationFailed(errors=errors)
    if role == Role.STUDENT:
        ensure_unique_identity(db, email, student_id=data["student_id"].strip())
    else:
        ensure_unique_identity(db, email, staff_no=data["staff_no"].strip())

    user = User(
        name=data["name"],
        email=email,
        password_hash=hash_password(data["password"]),
        role=role.value,
        status=UserStatus.ACTIVE.value,
        phone=data.get("phone"),
        student_id=data["student_id"].strip() if role == Role.STUDENT else None,
        staff_no=data["staff_no"].strip() if role == Role.ACADEMIC_STAFF else None,
        department=data.get("department"),
        faculty=data.get("faculty"),
        permissions=[],
    )
    db.add(user)
    db.flush()
    if data.get("date_of_birth"):
        db.add(Profile(user_id=user.id, date_of_birth=data["date_of_birth"]))
    notification_service.notify(
        db, user.id, NotificationType.SYSTEM,
        "Welcome to the University Health Center",
        "Your account has been created. Complete your profile to book appointments.",
    )
    token = issue_token(db, user)
    db.commit()
    db.refresh(user)
    logger.info(f"🆕 Registered {user.role} {user.email} (id={user.id})")
    return auth_payload(user, token)


def login(db: Session, email: str, password: str) -> dict:
    user = db.query(User).filter(User.email == email.lower()).first()
    if user is None or not verify_password(user, password):
        logger.info(f"🚫 Failed login for {email}")
        raise AuthenticationFailed("Invalid credentials")
    if not user.is_active:
        raise PermissionDenied(f"Account is {user.status.replace('_', ' ')}")
    user.last_login = datetime.utcnow()
    token = issue_token(db, user)
    db.commit()
    db.refresh(user)
    logger.info(f"🔓 User {user.id} logged in")
    return auth_payload(user, token)


FORGOT_PASSWORD_MESSAGE = "If that email exists, a password reset link has been sent."


def forgot_password(db: Session, email: str) -> dict:
    email = email.lower()
    user = db.query(User).filter(User.email == email).first()
    if user is not None:
        db.query(PasswordResetToken).filter(PasswordResetToken.email == email).delete()
        plain = secrets.token_urlsafe(32)
        db.add(PasswordResetToken(
            email=email,
            token_hash=_digest(plain),
            expires_at=datetime.utcnow() + timedelta(minutes=RESET_TOKEN_TTL_MINUTES),
        ))
        db.commit()
        logger.info(f"✉️ Password reset token for {email}: {plain}")
    return {"message": FORGOT_PASSWORD_MESSAGE}


def reset_password(db: Session, data: dict) -> dict:
    email = data["email"].lower()
    entry = (
        db.query(PasswordResetToken)
        .filter(PasswordResetToken.email == email, PasswordResetToken.token_hash == _digest(data["token"]))
        .first()
    )
    if entry is None or entry.expires_at < datetime.utcnow():
        raise ValidationFailed.field("token", "This password reset token is invalid or has expired.")
    problems = password_errors(db, data["password"], data.get("password_confirmation"))
    if problems:
        raise ValidationFailed(errors={"password": problems})
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise ValidationFailed.field("email", "We can't find a user with that email address.")
    user.password_hash = hash_password(data["password"])
    db.query(PasswordResetToken).filter(PasswordResetToken.email == email).delete()
    # existing sessions end with the old password
    db.query(ApiToken).filter(ApiToken.user_id == user.id).delete()
    db.commit()
    logger.info(f"🔐 Password reset for user {user.id}")
    return {"message": "Your password has been reset."}


def ensure_unique_identity(db: Session, email: str, student_id=None, staff_no=None):
    if db.query(User).filter(User.email == email.lower()).first():
        raise Conflict("The email has already been taken.", {"email": ["The email has already been taken."]})
    if student_id and db.query(User).filter(User.student_id == student_id).first():
        raise Conflict("The student id has already been taken.", {"student_id": ["The student id has already been taken."]})
    if staff_no and db.query(User).filter(User.staff_no == staff_no).first():
        raise Conflict("The staff number has already been taken.", {"staff_no": ["The staff number has already been taken."]})
