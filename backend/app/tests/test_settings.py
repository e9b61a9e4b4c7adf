# tests/test_settings.py
import json

import pytest
import redis

from app.exceptions import SettingsError, ValidationFailed
from app.models.settings import SystemSetting
from app.services import redis_client, settings_service


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex

    def delete(self, key):
        self.store.pop(key, None)


class BrokenRedis:
    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError("connection refused")

    get = set = delete = _fail


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "get_client", lambda: fake)
    return fake


def test_singleton_created_with_defaults(db_session):
    first = settings_service.get_instance(db_session)
    second = settings_service.get_instance(db_session)
    assert first.id == second.id == 1
    assert db_session.query(SystemSetting).count() == 1

    settings = settings_service.load_settings(db_session)
    assert settings.authentication.password_min_length == 8
    assert settings.general.registration_enabled is True


def test_default_rows_do_not_commit_pending_changes(db_session, student):
    original_phone = student.phone
    student.phone = "+90 555 999 0000"

    settings_service.get_instance(db_session)
    settings_service.get_clinic_settings(db_session)
    db_session.rollback()

    assert student.phone == original_phone
    assert db_session.query(SystemSetting).count() == 0


def test_dot_path_lookup(db_session):
    assert settings_service.get(db_session, "general.site_name") == "University Health System"
    assert settings_service.get(db_session, "nope.key", "fallback") == "fallback"
    assert settings_service.get(db_session, "general.unknown", 42) == 42


def test_update_validates_and_persists(db_session):
    settings_service.update_section(db_session, "authentication", {"password_min_length": 12})
    assert settings_service.get(db_session, "authentication.password_min_length") == 12
    # untouched keys of the section keep their values
    assert settings_service.get(db_session, "authentication.password_require_numbers") is True


def test_invalid_update_writes_nothing(db_session):
    with pytest.raises(ValidationFailed) as exc:
        settings_service.update_sections(db_session, {
            "general": {"site_name": "Campus Clinic"},
            "authentication": {"password_min_length": 2},
        })
    assert "authentication.password_min_length" in exc.value.errors
    assert settings_service.get(db_session, "general.site_name") == "University Health System"


def test_unknown_key_and_section_rejected(db_session):
    with pytest.raises(ValidationFailed) as exc:
        settings_service.update_sections(db_session, {"general": {"colour": "blue"}, "theme": {"dark": True}})
    assert "general.colour" in exc.value.errors
    assert "theme" in exc.value.errors


def test_reset_single_section(db_session):
    settings_service.update_sections(db_session, {
        "general": {"site_name": "Campus Clinic"},
        "backup": {"backup_frequency": "weekly"},
    })
    settings_service.reset(db_session, "general")
    assert settings_service.get(db_session, "general.site_name") == "University Health System"
    assert settings_service.get(db_session, "backup.backup_frequency") == "weekly"


def test_malformed_stored_settings_raise(db_session):
    row = settings_service.get_instance(db_session)
    row.authentication = {"password_min_length": "many"}
    db_session.commit()
    with pytest.raises(SettingsError) as exc:
        settings_service.load_settings(db_session)
    assert exc.value.status_code == 500
    assert "authentication.password_min_length" in exc.value.errors


def test_settings_are_cached_and_invalidated(db_session, fake_redis):
    settings_service.load_settings(db_session)
    cached = json.loads(fake_redis.store[settings_service.SETTINGS_CACHE_KEY])
    assert cached["general"]["site_name"] == "University Health System"
    assert fake_redis.expiry[settings_service.SETTINGS_CACHE_KEY] > 0

    settings_service.update_section(db_session, "general", {"site_name": "Campus Clinic"})
    assert settings_service.SETTINGS_CACHE_KEY not in fake_redis.store
    assert settings_service.get(db_session, "general.site_name") == "Campus Clinic"


def test_redis_failure_falls_back_to_database(db_session, monkeypatch):
    monkeypatch.setattr(redis_client, "get_client", lambda: BrokenRedis())
    settings = settings_service.load_settings(db_session)
    assert settings.general.site_name == "University Health System"


# ---------------- Clinic settings ----------------

def test_clinic_defaults(db_session):
    clinic = settings_service.get_clinic_settings(db_session)
    assert clinic.open_weekdays() == {1, 2, 3, 4, 5, 6}
    assert len(clinic.emergency_contacts) == 3


def test_clinic_hours_close_before_open_rejected(db_session):
    with pytest.raises(ValidationFailed):
        settings_service.update_clinic_settings(db_session, {
            "clinic_hours": [{"day": "Monday", "open_time": "17:00", "close_time": "08:00"}],
        })


def test_clinic_hours_duplicate_day_rejected(db_session):
    hours = [{"day": "Monday", "open_time": "08:00", "close_time": "12:00"}] * 2
    with pytest.raises(ValidationFailed):
        settings_service.update_clinic_settings(db_session, {"clinic_hours": hours})


def test_closing_a_day_changes_open_weekdays(db_session):
    settings_service.update_clinic_settings(db_session, {
        "clinic_hours": [
            {"day": "Monday", "open_time": "08:00", "close_time": "17:00"},
            {"day": "Saturday", "is_closed": True},
        ],
    })
    assert settings_service.get_clinic_settings(db_session).open_weekdays() == {1}


def test_admin_settings_endpoints(client, admin, student, auth_headers):
    resp = client.put("/admin/settings", json={"general": {"site_name": "Campus Clinic"}}, headers=auth_headers(admin))
    assert resp.status_code == 200

    resp = client.get("/admin/settings", headers=auth_headers(student))
    assert resp.status_code == 403
