# tests/test_api.py
from datetime import date

from app.models.enums import Role
from helpers import next_weekday


def _book(client, headers, **fields):
    body = {"date": next_weekday(1).isoformat(), "time": "10:00", "reason": "Sore throat"}
    body.update(fields)
    return client.post("/student/appointments", json=body, headers=headers)


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    resp = client.get("/health")
    assert resp.status_code == 200


def test_public_clinic_settings(client):
    resp = client.get("/clinic-settings")
    assert resp.status_code == 200
    days = {h["day"]: h for h in resp.json()["clinic_hours"]}
    assert days["Sunday"]["is_closed"] is True


def test_missing_token_is_401(client):
    resp = client.get("/student/appointments")
    assert resp.status_code == 401
    assert resp.json() == {"message": "Unauthenticated"}


def test_garbage_token_is_401(client):
    resp = client.get("/student/appointments", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_wrong_role_is_403(client, student, auth_headers):
    resp = client.get("/clinical/dashboard", headers=auth_headers(student))
    assert resp.status_code == 403
    assert "message" in resp.json()


def test_request_validation_envelope(client, student, auth_headers):
    resp = client.post("/student/appointments", json={"date": "not-a-date", "time": "9am"}, headers=auth_headers(student))
    assert resp.status_code == 422
    body = resp.json()
    assert body["message"] == "Validation failed"
    assert {"date", "time", "reason"} <= set(body["errors"])


def test_booking_window_last_day_allowed(client, student, auth_headers):
    resp = _book(client, auth_headers(student), date="2030-12-31")
    assert resp.status_code == 201
    assert resp.json()["appointment"]["status"] == "scheduled"


def test_booking_after_window_rejected(client, student, auth_headers):
    resp = _book(client, auth_headers(student), date="2031-01-01")
    assert resp.status_code == 422
    assert "date" in resp.json()["errors"]


def test_incomplete_profile_cannot_book(client, make_user, auth_headers):
    patient = make_user(Role.STUDENT, complete_profile=False)
    resp = _book(client, auth_headers(patient))
    assert resp.status_code == 422
    assert resp.json()["message"] == "Please complete your profile before booking appointments."
    assert "profile" in resp.json()["errors"]


def test_sunday_is_closed(client, student, auth_headers):
    resp = _book(client, auth_headers(student), date=next_weekday(7).isoformat())
    assert resp.status_code == 422


def test_confirm_then_patient_cancel(client, student, clinical_staff, doctor, auth_headers):
    patient_headers = auth_headers(student)
    appt = _book(client, patient_headers, doctor_id=doctor.id).json()["appointment"]

    resp = client.post(f"/clinical/appointments/{appt['id']}/confirm", headers=auth_headers(clinical_staff))
    assert resp.status_code == 200
    confirmed = resp.json()["appointment"]
    assert confirmed["status"] == "confirmed"
    assert confirmed["confirmed_at"] is not None

    unread = client.get("/notifications", params={"read": "false"}, headers=patient_headers).json()
    assert any(n["type"] == "appointment_confirmed" for n in unread["notifications"])

    resp = client.post(
        f"/student/appointments/{appt['id']}/cancel",
        json={"reason": "Recovered", "request_reassignment": True},
        headers=patient_headers,
    )
    assert resp.status_code == 200
    cancelled = resp.json()["appointment"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancelled_by"] == student.id
    assert cancelled["needs_reassignment"] is True

    resp = client.post(f"/clinical/appointments/{appt['id']}/confirm", headers=auth_headers(clinical_staff))
    assert resp.status_code == 409


def test_student_cannot_see_others_appointment(client, make_user, auth_headers):
    owner, other = make_user(Role.STUDENT), make_user(Role.STUDENT)
    appt = _book(client, auth_headers(owner)).json()["appointment"]
    resp = client.get(f"/appointments/{appt['id']}", headers=auth_headers(other))
    assert resp.status_code == 403


def test_unknown_appointment_is_404(client, clinical_staff, auth_headers):
    resp = client.get("/appointments/999999", headers=auth_headers(clinical_staff))
    assert resp.status_code == 404
    assert resp.json() == {"message": "Appointment not found"}


def test_doctor_completes_and_writes_record(client, student, doctor, auth_headers):
    appt = _book(client, auth_headers(student), doctor_id=doctor.id).json()["appointment"]
    headers = auth_headers(doctor)

    assert client.post(f"/doctor/appointments/{appt['id']}/confirm", headers=headers).status_code == 200
    resp = client.post(f"/doctor/appointments/{appt['id']}/complete", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["appointment"]["status"] == "completed"

    resp = client.post(
        f"/doctor/patients/{student.id}/records",
        json={"appointment_id": appt["id"], "diagnosis": "Pharyngitis", "weight": 70, "height": 175},
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["record"]["vitals"]["bmi"] == 22.86


def test_available_slots_endpoint(client, student, auth_headers):
    monday = next_weekday(1)
    resp = client.get("/student/available-slots", params={"date": monday.isoformat()}, headers=auth_headers(student))
    assert resp.status_code == 200
    assert resp.json()["slots"][0] == "09:00"


def test_admin_user_listing_forbidden_for_doctor(client, doctor, auth_headers):
    assert client.get("/admin/users", headers=auth_headers(doctor)).status_code == 403


def test_admin_creates_user(client, admin, auth_headers):
    resp = client.post("/admin/users", json={
        "name": "New Doctor",
        "email": "newdoc@university.edu",
        "password": "Passw0rdX",
        "role": "doctor",
        "specialization": "Dermatology",
        "medical_license_number": "LIC-900",
    }, headers=auth_headers(admin))
    assert resp.status_code == 201
    assert resp.json()["user"]["role"] == "doctor"


def test_academic_staff_router(client, make_user, auth_headers):
    lecturer = make_user(Role.ACADEMIC_STAFF)
    resp = client.get("/academic-staff/dashboard", headers=auth_headers(lecturer))
    assert resp.status_code == 200
    assert client.get("/student/dashboard", headers=auth_headers(lecturer)).status_code == 403


def test_roles_catalogue(client):
    roles = {r["value"]: r["label"] for r in client.get("/roles").json()["roles"]}
    assert roles["clinical_staff"] == "Clinical Staff"
    assert "superadmin" in roles


def test_window_boundary_constant():
    from app.config import MAX_BOOKING_DATE
    assert MAX_BOOKING_DATE == date(2030, 12, 31)


def test_dashboards_render_for_each_role(client, student, doctor, clinical_staff, admin, auth_headers):
    _book(client, auth_headers(student), doctor_id=doctor.id)
    for path, user in (
        ("/student/dashboard", student),
        ("/doctor/dashboard", doctor),
        ("/doctor/statistics", doctor),
        ("/clinical/dashboard", clinical_staff),
        ("/admin/dashboard", admin),
    ):
        resp = client.get(path, headers=auth_headers(user))
        assert resp.status_code == 200, path

    dash = client.get("/student/dashboard", headers=auth_headers(student)).json()
    assert dash["upcoming_appointments"] == 1
    assert dash["profile_complete"] is True


def test_staff_reschedule_through_generic_update(client, student, doctor, clinical_staff, auth_headers):
    appt = _book(client, auth_headers(student), doctor_id=doctor.id).json()["appointment"]
    new_day = next_weekday(3)

    resp = client.put(
        f"/appointments/{appt['id']}",
        json={"date": new_day.isoformat(), "time": "11:00", "reason": "Doctor in surgery"},
        headers=auth_headers(clinical_staff),
    )
    assert resp.status_code == 200
    moved = resp.json()["appointment"]
    assert moved["date"] == new_day.isoformat()
    assert moved["time"] == "11:00"
    assert moved["status"] == "scheduled"
    assert moved["rescheduled_at"] is not None
    assert moved["reschedule_reason"] == "Doctor in surgery"

    notes = client.get("/notifications", headers=auth_headers(student)).json()["notifications"]
    assert any(n["type"] == "appointment_rescheduled" for n in notes)


def test_generic_update_applies_status_notes_urgency_and_slot(client, student, doctor, clinical_staff, auth_headers):
    appt = _book(client, auth_headers(student), doctor_id=doctor.id).json()["appointment"]
    new_day = next_weekday(3)

    resp = client.put(
        f"/appointments/{appt['id']}",
        json={"status": "confirmed", "notes": "Bring inhaler", "urgency": "high",
              "date": new_day.isoformat(), "time": "09:30"},
        headers=auth_headers(clinical_staff),
    )
    assert resp.status_code == 200
    updated = resp.json()["appointment"]
    assert updated["status"] == "confirmed"
    assert updated["confirmed_at"] is not None
    assert updated["notes"] == "Bring inhaler"
    assert updated["urgency"] == "high"
    assert (updated["date"], updated["time"]) == (new_day.isoformat(), "09:30")


def test_generic_update_rejects_undeclared_transition(client, student, clinical_staff, auth_headers):
    appt = _book(client, auth_headers(student)).json()["appointment"]
    resp = client.put(f"/appointments/{appt['id']}", json={"status": "completed"}, headers=auth_headers(clinical_staff))
    assert resp.status_code == 409


def test_failed_generic_update_keeps_prior_state(client, student, clinical_staff, auth_headers):
    appt = _book(client, auth_headers(student)).json()["appointment"]
    headers = auth_headers(clinical_staff)

    resp = client.put(
        f"/appointments/{appt['id']}",
        json={"notes": "Moved to Sunday", "date": next_weekday(7).isoformat()},
        headers=headers,
    )
    assert resp.status_code == 422
    assert "date" in resp.json()["errors"]

    current = client.get(f"/appointments/{appt['id']}", headers=headers).json()["appointment"]
    assert current["notes"] is None
    assert current["date"] == appt["date"]


def test_delete_cancels_and_terminal_appointment_is_frozen(client, student, clinical_staff, auth_headers):
    appt = _book(client, auth_headers(student)).json()["appointment"]
    headers = auth_headers(clinical_staff)

    resp = client.delete(f"/appointments/{appt['id']}", params={"reason": "Clinic closed"}, headers=headers)
    assert resp.status_code == 200
    cancelled = resp.json()["appointment"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancellation_reason"] == "Clinic closed"
    assert cancelled["cancelled_by"] == clinical_staff.id

    # the row is kept
    assert client.get(f"/appointments/{appt['id']}", headers=headers).json()["appointment"]["status"] == "cancelled"

    assert client.put(f"/appointments/{appt['id']}", json={"notes": "late"}, headers=headers).status_code == 409
    assert client.delete(f"/appointments/{appt['id']}", headers=headers).status_code == 409


def test_patients_cannot_use_generic_mutations(client, student, auth_headers):
    headers = auth_headers(student)
    appt = _book(client, headers).json()["appointment"]
    assert client.put(f"/appointments/{appt['id']}", json={"notes": "x"}, headers=headers).status_code == 403
    assert client.delete(f"/appointments/{appt['id']}", headers=headers).status_code == 403
