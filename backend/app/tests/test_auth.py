# tests/test_auth.py
from datetime import date, datetime, timedelta

import pytest

from app.exceptions import AuthenticationFailed, Conflict, PermissionDenied, ValidationFailed
from app.models.enums import Role
from app.models.user import ApiToken, PasswordResetToken, User
from app.services import auth_service, profile_service, settings_service
from helpers import PASSWORD


def _registration(**overrides):
    data = {
        "name": "Ada Student",
        "email": "ada@university.edu",
        "password": "Passw0rdX",
        "password_confirmation": "Passw0rdX",
        "role": "student",
        "student_id": "20240999",
        "department": "Computer Engineering",
    }
    data.update(overrides)
    return data


def test_register_student_returns_token(db_session):
    result = auth_service.register(db_session, _registration())
    assert result["token"]
    assert result["user"]["role"] == "student"
    assert "schedule_appointments" in result["permissions"]
    user = db_session.query(User).filter(User.email == "ada@university.edu").one()
    assert user.password_hash != "Passw0rdX"
    assert auth_service.authenticate_token(db_session, result["token"])[0].id == user.id


def test_register_rejects_non_university_email(db_session):
    with pytest.raises(ValidationFailed) as exc:
        auth_service.register(db_session, _registration(email="ada@gmail.com"))
    assert "email" in exc.value.errors


def test_register_password_rules_follow_settings(db_session):
    with pytest.raises(ValidationFailed) as exc:
        auth_service.register(db_session, _registration(password="short", password_confirmation="short"))
    assert "password" in exc.value.errors

    settings_service.update_section(db_session, "authentication", {
        "password_min_length": 6, "password_require_uppercase": False, "password_require_numbers": False,
    })
    auth_service.register(db_session, _registration(password="simple", password_confirmation="simple"))


def test_register_confirmation_mismatch(db_session):
    with pytest.raises(ValidationFailed) as exc:
        auth_service.register(db_session, _registration(password_confirmation="Different1"))
    assert any("confirmation" in m for m in exc.value.errors["password"])


def test_register_academic_staff_needs_staff_no_and_faculty(db_session):
    with pytest.raises(ValidationFailed) as exc:
        auth_service.register(db_session, _registration(role="academic_staff", student_id=None))
    assert {"staff_no", "faculty"} <= set(exc.value.errors)


def test_register_duplicates_conflict(db_session):
    auth_service.register(db_session, _registration())
    with pytest.raises(Conflict) as exc:
        auth_service.register(db_session, _registration(student_id="20241000"))
    assert "email" in exc.value.errors
    with pytest.raises(Conflict) as exc:
        auth_service.register(db_session, _registration(email="bob@university.edu"))
    assert "student_id" in exc.value.errors


def test_register_disabled(db_session):
    settings_service.update_section(db_session, "general", {"registration_enabled": False})
    with pytest.raises(PermissionDenied):
        auth_service.register(db_session, _registration())


def test_login_and_inactive_account(db_session, student):
    result = auth_service.login(db_session, student.email.upper(), PASSWORD)
    assert result["user"]["id"] == student.id
    assert student.last_login is not None

    with pytest.raises(AuthenticationFailed):
        auth_service.login(db_session, student.email, "wrong-password")

    student.status = "inactive"
    db_session.commit()
    with pytest.raises(PermissionDenied):
        auth_service.login(db_session, student.email, PASSWORD)


def test_expired_token_is_removed(db_session, student):
    plain = auth_service.issue_token(db_session, student)
    db_session.commit()
    token = db_session.query(ApiToken).filter(ApiToken.user_id == student.id).one()
    token.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db_session.commit()

    with pytest.raises(AuthenticationFailed):
        auth_service.authenticate_token(db_session, plain)
    assert db_session.query(ApiToken).filter(ApiToken.user_id == student.id).count() == 0


def test_password_reset_flow(db_session, student, monkeypatch):
    monkeypatch.setattr(auth_service.secrets, "token_urlsafe", lambda n: "known-reset-token")
    unknown = auth_service.forgot_password(db_session, "nobody@university.edu")
    known = auth_service.forgot_password(db_session, student.email)
    assert unknown == known
    assert db_session.query(PasswordResetToken).count() == 1

    with pytest.raises(ValidationFailed):
        auth_service.reset_password(db_session, {
            "email": student.email, "token": "wrong", "password": "NewPass123", "password_confirmation": "NewPass123",
        })
    auth_service.reset_password(db_session, {
        "email": student.email, "token": "known-reset-token",
        "password": "NewPass123", "password_confirmation": "NewPass123",
    })
    assert auth_service.verify_password(student, "NewPass123")
    assert db_session.query(PasswordResetToken).count() == 0


# ---------------- Profile ----------------

def test_missing_fields_listed(db_session, make_user):
    user = make_user(Role.STUDENT, complete_profile=False)
    missing = profile_service.missing_profile_fields(user)
    assert "date_of_birth" in missing and "blood_type" in missing
    assert "name" not in missing


def test_profile_update_completes_profile(db_session, make_user):
    user = make_user(Role.STUDENT, complete_profile=False)
    data = profile_service.update_profile(db_session, user, {
        "date_of_birth": date(2001, 2, 3),
        "gender": "male",
        "blood_type": "O-",
        "emergency_contact_name": "Sam Doe",
        "emergency_contact_phone": "+90 555 333 4444",
        "allergies": "Penicillin",
    })
    assert data["profile_complete"] is True
    assert data["missing_fields"] == []
    assert data["allergies"] == "Penicillin"
    assert data["date_of_birth"] == "2001-02-03"


def test_student_age_minimum(db_session, student):
    too_young = date(date.today().year - 10, 1, 1)
    with pytest.raises(ValidationFailed):
        profile_service.update_profile(db_session, student, {"date_of_birth": too_young})


def test_profile_roundtrip_over_http(client, student, auth_headers):
    headers = auth_headers(student)
    resp = client.put("/auth/profile", json={"phone": "+90 555 999 8888", "medical_history": "Asthma"}, headers=headers)
    assert resp.status_code == 200

    user = client.get("/auth/profile", headers=headers).json()["user"]
    assert user["phone"] == "+90 555 999 8888"
    assert user["medical_history"] == "Asthma"
    assert user["blood_type"] == "A+"


@pytest.mark.parametrize("field", ["name", "has_known_allergies", "allergies_uncertain"])
def test_profile_rejects_null_for_required_columns(client, student, auth_headers, field):
    headers = auth_headers(student)
    resp = client.put("/auth/profile", json={field: None}, headers=headers)
    assert resp.status_code == 422
    assert field in resp.json()["errors"]

    user = client.get("/auth/profile", headers=headers).json()["user"]
    assert user["name"] == student.name


def test_register_and_login_over_http(client):
    resp = client.post("/auth/register", json=_registration())
    assert resp.status_code == 201
    token = resp.json()["token"]

    resp = client.post("/auth/login", json={"email": "ada@university.edu", "password": "Passw0rdX"})
    assert resp.status_code == 200

    headers = {"Authorization": f"Bearer {token}"}
    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/profile", headers=headers).status_code == 401
