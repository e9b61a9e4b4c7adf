# app/services/settings_service.py
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.exceptions import SettingsError, ValidationFailed, field_errors
from app.models.settings import ClinicSettings, SystemSetting
from app.models.settings_models import SECTION_MODELS, ClinicSettingsModel, SystemSettingsModel
from app.services.redis_client import cache_delete, cache_get, cache_set

logger = logging.getLogger(__name__)

SETTINGS_CACHE_KEY = "system_settings"
CLINIC_CACHE_KEY = "clinic_settings"


# ---------------- System settings ----------------

def get_instance(db: Session) -> SystemSetting:
    """Return the single settings row, creating it with defaults if missing."""
    row = db.query(SystemSetting).order_by(SystemSetting.id).first()
    if row is None:
        defaults = SystemSettingsModel().model_dump(mode="json")
        row = SystemSetting(id=1, **defaults)
        db.add(row)
        db.flush()
        logger.info("⚙️ Created default system settings")
    return row


def _parse_row(row: SystemSetting) -> SystemSettingsModel:
    data = {section: getattr(row, section) or {} for section in SECTION_MODELS}
    try:
        return SystemSettingsModel.model_validate(data)
    except ValidationError as e:
        raise SettingsError(errors=field_errors(e.errors()))


def load_settings(db: Session) -> SystemSettingsModel:
    cached = cache_get(SETTINGS_CACHE_KEY)
    if cached is not None:
        try:
            return SystemSettingsModel.model_validate(cached)
        except ValidationError:
            logger.warning("⚠️ Cached settings did not validate, reloading from the database")
            cache_delete(SETTINGS_CACHE_KEY)
    settings = _parse_row(get_instance(db))
    cache_set(SETTINGS_CACHE_KEY, settings.model_dump(mode="json"))
    return settings


def get(db: Session, key: str, default: Any = None) -> Any:
    """Dot-path lookup, e.g. get(db, "general.registration_enabled")."""
    section, _, name = key.partition(".")
    if section not in SECTION_MODELS:
        return default
    value = getattr(load_settings(db), section)
    if not name:
        return value
    return getattr(value, name, default)


def update_sections(db: Session, updates: Dict[str, Optional[dict]]) -> SystemSettingsModel:
    """Validate every given section against its model, then persist them in one commit."""
    current = _parse_row(get_instance(db))
    validated = {}
    errors = {}
    for section, values in updates.items():
        if values is None:
            continue
        model = SECTION_MODELS.get(section)
        if model is None:
            errors[section] = [f"Unknown settings section: {section}"]
            continue
        merged = {**getattr(current, section).model_dump(), **values}
        try:
            validated[section] = model.model_validate(merged)
        except ValidationError as e:
            errors.update(field_errors(e.errors(), prefix=section))
    if errors:
        raise ValidationFailed(errors=errors)

    row = get_instance(db)
    for section, value in validated.items():
        setattr(row, section, value.model_dump(mode="json"))
    db.commit()
    cache_delete(SETTINGS_CACHE_KEY)
    logger.info(f"⚙️ Settings updated: {', '.join(sorted(validated)) or 'nothing'}")
    return _parse_row(row)


def update_section(db: Session, section: str, values: dict) -> SystemSettingsModel:
    return update_sections(db, {section: values})


def reset(db: Session, section: Optional[str] = None) -> SystemSettingsModel:
    defaults = SystemSettingsModel()
    if section is not None and section not in SECTION_MODELS:
        raise ValidationFailed.field("section", f"Unknown settings section: {section}")
    row = get_instance(db)
    for name in ([section] if section else SECTION_MODELS):
        setattr(row, name, getattr(defaults, name).model_dump(mode="json"))
    db.commit()
    cache_delete(SETTINGS_CACHE_KEY)
    logger.info(f"⚙️ Settings reset to defaults ({section or 'all sections'})")
    return _parse_row(row)


# ---------------- Clinic settings ----------------

def _clinic_row(db: Session) -> ClinicSettings:
    row = db.query(ClinicSettings).order_by(ClinicSettings.id).first()
    if row is None:
        row = ClinicSettings(id=1, settings_data=ClinicSettingsModel().model_dump(mode="json"))
        db.add(row)
        db.flush()
        logger.info("🏥 Created default clinic settings")
    return row


def get_clinic_settings(db: Session) -> ClinicSettingsModel:
    cached = cache_get(CLINIC_CACHE_KEY)
    if cached is not None:
        try:
            return ClinicSettingsModel.model_validate(cached)
        except ValidationError:
            cache_delete(CLINIC_CACHE_KEY)
    row = _clinic_row(db)
    try:
        settings = ClinicSettingsModel.model_validate(row.settings_data or {})
    except ValidationError as e:
        raise SettingsError("Stored clinic settings are malformed", field_errors(e.errors()))
    cache_set(CLINIC_CACHE_KEY, settings.model_dump(mode="json"))
    return settings


def update_clinic_settings(db: Session, payload: dict) -> ClinicSettingsModel:
    current = get_clinic_settings(db).model_dump(mode="json")
    current.update({k: v for k, v in payload.items() if v is not None})
    try:
        settings = ClinicSettingsModel.model_validate(current)
    except ValidationError as e:
        raise ValidationFailed(errors=field_errors(e.errors()))
    row = _clinic_row(db)
    row.settings_data = settings.model_dump(mode="json")
    db.commit()
    cache_delete(CLINIC_CACHE_KEY)
    logger.info("🏥 Clinic settings updated")
    return settings
