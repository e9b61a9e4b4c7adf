# tests/test_clinical.py
from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.exceptions import Conflict, InvalidTransition, ValidationFailed
from app.models.clinical import Medication
from app.models.enums import MedicationStatus, NotificationType
from app.models.notification import Notification
from app.services import appointment_service, clinical_service
from helpers import next_weekday


def _rx(name="Amoxicillin", start=None, end=None, **extra):
    start = start or date.today()
    return {"name": name, "dosage": "500mg", "frequency": "3x daily", "start_date": start,
            "end_date": end or start + timedelta(days=7), **extra}


@pytest.mark.parametrize("weight,height,expected", [
    (70, 175, Decimal("22.86")),
    (50.5, 160, Decimal("19.73")),
    (None, 170, None),
    (80, 0, None),
])
def test_compute_bmi(weight, height, expected):
    assert clinical_service.compute_bmi(weight, height) == expected


def test_record_stores_bmi(db_session, doctor, student):
    record = clinical_service.create_record(db_session, doctor, student, {
        "diagnosis": "Check-up", "weight": 70, "height": 175, "heart_rate": 72,
    })
    assert record.bmi == Decimal("22.86")
    assert record.doctor_id == doctor.id
    assert clinical_service.vitals_history(db_session, student.id) == [record]


def test_record_requires_completed_appointment(db_session, doctor, student):
    appt = appointment_service.create(db_session, student, {
        "date": next_weekday(1), "time": "09:00", "reason": "Cough", "doctor_id": doctor.id,
    })
    with pytest.raises(ValidationFailed):
        clinical_service.create_record(db_session, doctor, student, {"appointment_id": appt.id})


def test_vitals_need_a_measurement(db_session, clinical_staff, student):
    with pytest.raises(ValidationFailed):
        clinical_service.record_vitals(db_session, clinical_staff, student, {"notes": "nothing measured"})
    record = clinical_service.record_vitals(db_session, clinical_staff, student, {"temperature": 37.2})
    assert record.type == "vitals"


def test_prescription_creates_medications_and_notifies(db_session, doctor, student):
    rx = clinical_service.create_prescription(db_session, doctor, student, {"medications": [_rx(), _rx("Ibuprofen")]})
    assert {m.name for m in rx.medications} == {"Amoxicillin", "Ibuprofen"}
    assert all(m.patient_id == student.id for m in rx.medications)
    note = db_session.query(Notification).filter(Notification.user_id == student.id).one()
    assert note.type == NotificationType.PRESCRIPTION_READY.value


def test_prescription_conflict_and_force(db_session, doctor, student):
    clinical_service.create_prescription(db_session, doctor, student, {"medications": [_rx()]})

    with pytest.raises(Conflict) as exc:
        clinical_service.create_prescription(db_session, doctor, student, {"medications": [_rx("amoxicillin")]})
    assert exc.value.conflicts[0]["conflicts_with"] == "Amoxicillin"
    assert exc.value.to_dict()["conflicts"]

    clinical_service.create_prescription(db_session, doctor, student, {"medications": [_rx("amoxicillin")], "force": True})
    assert db_session.query(Medication).filter(Medication.patient_id == student.id).count() == 2


def test_non_overlapping_dates_do_not_conflict(db_session, doctor, student):
    clinical_service.create_prescription(db_session, doctor, student, {"medications": [_rx()]})
    later = date.today() + timedelta(days=30)
    assert clinical_service.find_conflicts(db_session, student.id, [_rx(start=later)]) == []


def test_medication_transitions(db_session, clinical_staff, student):
    med = clinical_service.add_medication(db_session, clinical_staff, student, _rx("Paracetamol"))
    clinical_service.update_medication(db_session, clinical_staff, med, {"status": "discontinued"})
    assert med.status == MedicationStatus.DISCONTINUED.value

    with pytest.raises(InvalidTransition):
        clinical_service.update_medication(db_session, clinical_staff, med, {"status": "active"})
    with pytest.raises(InvalidTransition):
        clinical_service.record_administration(db_session, clinical_staff, med)


def test_medication_end_before_start_rejected(db_session, clinical_staff, student):
    med = clinical_service.add_medication(db_session, clinical_staff, student, _rx("Paracetamol"))
    with pytest.raises(ValidationFailed):
        clinical_service.update_medication(db_session, clinical_staff, med, {"end_date": med.start_date - timedelta(days=1)})


def test_medication_schedule(db_session, clinical_staff, student):
    today = date.today()
    due = clinical_service.add_medication(db_session, clinical_staff, student, _rx("Vitamin D", start=today))
    clinical_service.add_medication(db_session, clinical_staff, student, _rx("Future", start=today + timedelta(days=3)))
    assert clinical_service.medication_schedule(db_session, today) == [due]

    clinical_service.record_administration(db_session, clinical_staff, due)
    assert due.administered_by == clinical_staff.id
