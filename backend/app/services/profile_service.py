# app/services/profile_service.py
import logging
from datetime import date
from typing import List

from sqlalchemy.orm import Session

from app.config import MIN_STUDENT_AGE
from app.exceptions import NotFound, ValidationFailed
from app.models.clinical import MedicalCard
from app.models.enums import Role
from app.models.user import Profile, User
from app.services.permissions import all_permissions
from app.services.serializers import user_to_dict

logger = logging.getLogger(__name__)

USER_FIELDS = ("name", "phone", "department", "faculty", "specialization", "bio")
PROFILE_FIELDS = (
    "date_of_birth", "gender", "blood_type",
    "emergency_contact_name", "emergency_contact_phone",
    "emergency_contact_relationship", "emergency_contact_email",
    "allergies", "has_known_allergies", "allergies_uncertain",
    "addictions", "medical_history",
)

# (field, lives on the user row)
REQUIRED_FIELDS = (
    ("name", True),
    ("email", True),
    ("department", True),
    ("phone", True),
    ("date_of_birth", False),
    ("gender", False),
    ("blood_type", False),
    ("emergency_contact_name", False),
    ("emergency_contact_phone", False),
)


def _present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def missing_profile_fields(user: User) -> List[str]:
    profile = user.profile
    missing = []
    for field, on_user in REQUIRED_FIELDS:
        source = user if on_user else profile
        if source is None or not _present(getattr(source, field, None)):
            missing.append(field)
    return missing


def profile_complete(user: User) -> bool:
    return not missing_profile_fields(user)


def age_on(born: date, today: date) -> int:
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def profile_to_dict(user: User) -> dict:
    data = user_to_dict(user)
    profile = user.profile
    for field in PROFILE_FIELDS:
        value = getattr(profile, field) if profile is not None else None
        if field == "date_of_birth" and value is not None:
            value = value.isoformat()
        data[field] = value
    data["permissions"] = all_permissions(user)
    data["missing_fields"] = missing_profile_fields(user)
    data["profile_complete"] = not data["missing_fields"]
    return data


def update_profile(db: Session, user: User, changes: dict) -> dict:
    """Apply a partial profile update. Values are stored exactly as given."""
    born = changes.get("date_of_birth")
    if born is not None:
        today = date.today()
        if born >= today:
            raise ValidationFailed.field("date_of_birth", "The date of birth must be a date before today.")
        if user.role_enum == Role.STUDENT and age_on(born, today) < MIN_STUDENT_AGE:
            raise ValidationFailed.field("date_of_birth", f"Students must be at least {MIN_STUDENT_AGE} years old.")

    for field in USER_FIELDS:
        if field in changes:
            setattr(user, field, changes[field])

    profile_changes = {f: changes[f] for f in PROFILE_FIELDS if f in changes}
    if profile_changes:
        if user.profile is None:
            user.profile = Profile(user_id=user.id)
        for field, value in profile_changes.items():
            setattr(user.profile, field, value)

    db.commit()
    db.refresh(user)
    logger.info(f"📝 Profile updated for user {user.id}: {sorted(changes)}")
    return profile_to_dict(user)


# ---------------- Medical card ----------------

def get_patient(db: Session, patient_id: int) -> User:
    patient = db.query(User).filter(User.id == patient_id).first()
    if patient is None or not patient.role_enum.is_patient:
        raise NotFound("Patient not found")
    return patient


def medical_card_to_dict(patient: User) -> dict:
    card = patient.medical_card
    data = {"patient_id": patient.id}
    for section in MedicalCard.SECTIONS:
        data[section] = getattr(card, section) if card is not None else None
    data["updated_at"] = card.updated_at.isoformat() if card is not None and card.updated_at else None
    return data


def update_medical_card(db: Session, editor: User, patient: User, changes: dict) -> dict:
    if patient.medical_card is None:
        patient.medical_card = MedicalCard(user_id=patient.id)
    for section in MedicalCard.SECTIONS:
        if section in changes:
            setattr(patient.medical_card, section, changes[section])
    db.commit()
    db.refresh(patient)
    logger.info(f"🩺 Medical card of patient {patient.id} updated by user {editor.id}")
    return medical_card_to_dict(patient)
