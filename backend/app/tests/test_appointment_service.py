# tests/test_appointment_service.py
from datetime import date, datetime, timedelta

import pytest

from app.exceptions import InvalidTransition, PermissionDenied, ValidationFailed
from app.models.appointment import Appointment
from app.models.enums import AppointmentStatus, NotificationType, Role
from app.models.notification import Notification
from app.models.scheduling import AcademicHoliday
from app.services import appointment_service
from app.services.appointment_service import TRANSITIONS, can_transition
from helpers import next_weekday

S = AppointmentStatus


def _book(db, actor, **fields):
    data = {"date": next_weekday(1), "time": "09:00", "reason": "Persistent headache"}
    data.update(fields)
    return appointment_service.create(db, actor, data)


def _notes_for(db, user, type_):
    return db.query(Notification).filter(Notification.user_id == user.id, Notification.type == type_.value).all()


# ---------------- Transition table ----------------

@pytest.mark.parametrize("current,target", [
    (S.SCHEDULED, S.CONFIRMED),
    (S.SCHEDULED, S.CANCELLED),
    (S.CONFIRMED, S.COMPLETED),
    (S.CONFIRMED, S.CANCELLED),
    (S.CONFIRMED, S.NO_SHOW),
])
def test_declared_transitions_are_allowed(current, target):
    assert can_transition(current, target)


def test_only_declared_transitions_are_reachable():
    allowed = {(c, t) for c, targets in TRANSITIONS.items() for t in targets}
    for current in S:
        for target in S:
            assert can_transition(current, target) == ((current, target) in allowed)


def test_terminal_statuses_have_no_exit():
    for status in (S.COMPLETED, S.CANCELLED, S.NO_SHOW):
        assert TRANSITIONS[status] == frozenset()


# ---------------- Create ----------------

def test_patient_books_for_themselves(db_session, student):
    appt = _book(db_session, student)
    assert appt.patient_id == student.id
    assert appt.status == S.SCHEDULED.value
    assert appt.urgency == "normal"
    assert appt.doctor_id is None


def test_incomplete_profile_blocks_booking(db_session, make_user):
    patient = make_user(Role.STUDENT, complete_profile=False)
    with pytest.raises(ValidationFailed) as exc:
        _book(db_session, patient)
    assert "profile" in exc.value.errors
    assert db_session.query(Appointment).count() == 0


def test_second_pending_appointment_rejected(db_session, student):
    _book(db_session, student)
    with pytest.raises(ValidationFailed) as exc:
        _book(db_session, student, date=next_weekday(2))
    assert "appointment" in exc.value.errors


def test_confirmed_appointment_is_not_pending(db_session, student, clinical_staff):
    appt = _book(db_session, student)
    appointment_service.confirm(db_session, clinical_staff, appt)
    _book(db_session, student, date=next_weekday(2))


def test_holiday_blocks_creation_without_row(db_session, student):
    monday = next_weekday(1)
    db_session.add(AcademicHoliday(name="Closure", start_date=monday, end_date=monday, type="university_closure",
                                   academic_year=monday.year))
    db_session.commit()
    with pytest.raises(ValidationFailed):
        _book(db_session, student, date=monday)
    assert db_session.query(Appointment).count() == 0


def test_patient_cannot_override_holiday(db_session, student):
    with pytest.raises(PermissionDenied):
        _book(db_session, student, is_holiday_override=True, override_reason="please")


def test_clinical_staff_override_records_holiday(db_session, student, clinical_staff):
    monday = next_weekday(1)
    holiday = AcademicHoliday(name="Closure", start_date=monday, end_date=monday, type="university_closure",
                              academic_year=monday.year)
    db_session.add(holiday)
    db_session.commit()

    appt = _book(db_session, clinical_staff, patient_id=student.id, date=monday,
                 is_holiday_override=True, override_reason="Urgent follow-up")
    assert appt.is_holiday_override
    assert appt.blocked_by_holiday_id == holiday.id


def test_staff_must_name_a_patient(db_session, clinical_staff):
    with pytest.raises(ValidationFailed) as exc:
        _book(db_session, clinical_staff)
    assert "patient_id" in exc.value.errors


def test_doctor_booking_assigns_themselves(db_session, doctor, student):
    appt = _book(db_session, doctor, patient_id=student.id)
    assert appt.doctor_id == doctor.id
    assert appt.assigned_at is not None
    assert _notes_for(db_session, student, NotificationType.APPOINTMENT_ASSIGNED)


def test_booking_with_doctor_notifies_doctor(db_session, student, doctor):
    _book(db_session, student, doctor_id=doctor.id)
    assert len(_notes_for(db_session, doctor, NotificationType.APPOINTMENT_REQUESTED)) == 1


def test_double_booking_same_doctor_slot_rejected(db_session, make_user, doctor):
    first, second = make_user(Role.STUDENT), make_user(Role.STUDENT)
    _book(db_session, first, doctor_id=doctor.id)
    with pytest.raises(ValidationFailed) as exc:
        _book(db_session, second, doctor_id=doctor.id)
    assert "time" in exc.value.errors


def test_specialization_picks_matching_doctor(db_session, student, make_user):
    cardio = make_user(Role.DOCTOR, specialization="Cardiology")
    appt = _book(db_session, student, specialization="cardio logy")
    assert appt.doctor_id == cardio.id


def test_walk_in_requires_today_and_clinical_staff(db_session, student, clinical_staff, doctor):
    with pytest.raises(ValidationFailed):
        _book(db_session, student, type="walk_in")
    with pytest.raises(ValidationFailed) as exc:
        _book(db_session, clinical_staff, patient_id=student.id, type="walk_in")
    assert "date" in exc.value.errors


# ---------------- Confirm / reject ----------------

def test_patient_cannot_confirm(db_session, student):
    appt = _book(db_session, student)
    with pytest.raises(PermissionDenied):
        appointment_service.confirm(db_session, student, appt)


def test_clinical_staff_confirms_and_notifies(db_session, student, clinical_staff):
    appt = _book(db_session, student)
    appointment_service.confirm(db_session, clinical_staff, appt)

    assert appt.status == S.CONFIRMED.value
    assert appt.confirmed_at is not None
    assert len(_notes_for(db_session, student, NotificationType.APPOINTMENT_CONFIRMED)) == 1


def test_doctor_confirming_unassigned_takes_it(db_session, student, doctor):
    appt = _book(db_session, student)
    appointment_service.confirm(db_session, doctor, appt)
    assert appt.doctor_id == doctor.id
    assert appt.assigned_at is not None


def test_doctor_cannot_confirm_colleagues_appointment(db_session, student, make_user):
    mine, theirs = make_user(Role.DOCTOR), make_user(Role.DOCTOR)
    appt = _book(db_session, student, doctor_id=theirs.id)
    with pytest.raises(PermissionDenied):
        appointment_service.confirm(db_session, mine, appt)


def test_confirm_twice_is_invalid(db_session, student, clinical_staff):
    appt = _book(db_session, student)
    appointment_service.confirm(db_session, clinical_staff, appt)
    with pytest.raises(InvalidTransition):
        appointment_service.confirm(db_session, clinical_staff, appt)


def test_reject_requires_reason_and_pending(db_session, student, clinical_staff):
    appt = _book(db_session, student)
    with pytest.raises(ValidationFailed):
        appointment_service.reject(db_session, clinical_staff, appt, "  ")

    appointment_service.reject(db_session, clinical_staff, appt, "No doctors that day")
    assert appt.status == S.CANCELLED.value
    assert appt.rejection_reason == "No doctors that day"
    assert appt.rejected_at is not None
    assert _notes_for(db_session, student, NotificationType.APPOINTMENT_REJECTED)


# ---------------- Cancel ----------------

def test_patient_cancel_of_confirmed_with_doctor(db_session, student, doctor, clinical_staff):
    appt = _book(db_session, student, doctor_id=doctor.id)
    appointment_service.confirm(db_session, clinical_staff, appt)

    appointment_service.cancel(db_session, student, appt, "Feeling better", request_reassignment=True)
    assert appt.status == S.CANCELLED.value
    assert appt.cancelled_at is not None
    assert appt.cancelled_by == student.id
    assert appt.needs_reassignment is True
    assert _notes_for(db_session, doctor, NotificationType.APPOINTMENT_CANCELLED)


def test_doctor_cancel_flags_reassignment(db_session, student, doctor):
    appt = _book(db_session, student, doctor_id=doctor.id)
    appointment_service.cancel(db_session, doctor, appt, "Conference")
    assert appt.needs_reassignment is True


def test_cancel_without_doctor_never_flags(db_session, student):
    appt = _book(db_session, student)
    appointment_service.cancel(db_session, student, appt, request_reassignment=True)
    assert appt.needs_reassignment is False


def test_other_patient_cannot_cancel(db_session, student, make_user):
    appt = _book(db_session, student)
    with pytest.raises(PermissionDenied):
        appointment_service.cancel(db_session, make_user(Role.STUDENT), appt)


def test_terminal_appointment_cannot_be_cancelled(db_session, student):
    appt = _book(db_session, student)
    appointment_service.cancel(db_session, student, appt)
    with pytest.raises(InvalidTransition):
        appointment_service.cancel(db_session, student, appt)


# ---------------- Finish ----------------

def test_complete_requires_confirmed(db_session, student, doctor):
    appt = _book(db_session, student, doctor_id=doctor.id)
    with pytest.raises(InvalidTransition):
        appointment_service.finish(db_session, doctor, appt, S.COMPLETED)

    appointment_service.confirm(db_session, doctor, appt)
    appointment_service.finish(db_session, doctor, appt, S.COMPLETED)
    assert appt.status == S.COMPLETED.value
    assert _notes_for(db_session, student, NotificationType.APPOINTMENT_COMPLETED)


def test_completed_cannot_return_to_scheduled(db_session, student, doctor):
    appt = _book(db_session, student, doctor_id=doctor.id)
    appointment_service.confirm(db_session, doctor, appt)
    appointment_service.finish(db_session, doctor, appt, S.COMPLETED)
    with pytest.raises(InvalidTransition):
        appointment_service.set_status(db_session, doctor, appt, S.SCHEDULED)


def test_no_show_from_confirmed(db_session, student, doctor):
    appt = _book(db_session, student, doctor_id=doctor.id)
    appointment_service.confirm(db_session, doctor, appt)
    appointment_service.set_status(db_session, doctor, appt, S.NO_SHOW)
    assert appt.status == S.NO_SHOW.value


def test_patient_cannot_complete(db_session, student):
    appt = _book(db_session, student)
    with pytest.raises(PermissionDenied):
        appointment_service.finish(db_session, student, appt, S.COMPLETED)


# ---------------- Reschedule ----------------

def test_patient_reschedule_keeps_status_and_stamps(db_session, student):
    appt = _book(db_session, student)
    now = datetime.combine(appt.date - timedelta(days=2), datetime.min.time())
    new_day = next_weekday(3, appt.date)

    appointment_service.reschedule(db_session, student, appt, new_day, "14:30", "Exam clash", now=now)
    assert (appt.date, appt.time) == (new_day, "14:30")
    assert appt.status == S.SCHEDULED.value
    assert appt.rescheduled_at is not None
    assert appt.reschedule_reason == "Exam clash"


def test_patient_reschedule_within_24_hours_rejected(db_session, student):
    appt = _book(db_session, student)
    now = appt.starts_at - timedelta(hours=23)
    with pytest.raises(ValidationFailed):
        appointment_service.reschedule(db_session, student, appt, next_weekday(3, appt.date), "09:00", now=now)


def test_staff_reschedule_is_exempt_from_24_hours(db_session, student, clinical_staff):
    appt = _book(db_session, student)
    now = appt.starts_at - timedelta(hours=1)
    appointment_service.reschedule(db_session, clinical_staff, appt, appt.date, "11:30", now=now)
    assert appt.time == "11:30"


def test_reschedule_revalidates_weekday(db_session, student, clinical_staff):
    appt = _book(db_session, student)
    with pytest.raises(ValidationFailed):
        appointment_service.reschedule(db_session, clinical_staff, appt, next_weekday(7), "09:00")
    assert appt.time == "09:00"


def test_reschedule_terminal_rejected(db_session, student, clinical_staff):
    appt = _book(db_session, student)
    appointment_service.cancel(db_session, student, appt)
    with pytest.raises(InvalidTransition):
        appointment_service.reschedule(db_session, clinical_staff, appt, next_weekday(2), "09:00")


# ---------------- Assignment ----------------

def test_assign_then_reassign(db_session, student, clinical_staff, make_user):
    first, second = make_user(Role.DOCTOR), make_user(Role.DOCTOR)
    appt = _book(db_session, student)

    appointment_service.assign_doctor(db_session, clinical_staff, appt, first.id)
    assert appt.doctor_id == first.id and appt.assigned_at is not None and appt.reassigned_at is None

    appointment_service.assign_doctor(db_session, clinical_staff, appt, second.id, "First doctor on leave")
    assert appt.doctor_id == second.id
    assert appt.reassigned_by == clinical_staff.id
    assert appt.reassignment_notes == "First doctor on leave"


def test_assign_checks_new_doctor_slot(db_session, make_user, clinical_staff, doctor):
    a, b = make_user(Role.STUDENT), make_user(Role.STUDENT)
    _book(db_session, a, doctor_id=doctor.id)
    appt = _book(db_session, b)
    with pytest.raises(ValidationFailed):
        appointment_service.assign_doctor(db_session, clinical_staff, appt, doctor.id)


def test_reassignment_queue_and_resolve(db_session, student, doctor, clinical_staff, make_user):
    appt = _book(db_session, student, doctor_id=doctor.id)
    appointment_service.cancel(db_session, doctor, appt, "Sick leave")
    assert appointment_service.reassignment_queue(db_session) == [appt]

    other = make_user(Role.DOCTOR)
    _, replacement = appointment_service.resolve_reassignment(
        db_session, clinical_staff, appt, "Moved to colleague",
        {"date": appt.date, "time": appt.time, "reason": appt.reason, "doctor_id": other.id},
    )
    assert appointment_service.reassignment_queue(db_session) == []
    assert replacement.doctor_id == other.id
    assert replacement.patient_id == student.id


def test_list_is_role_scoped(db_session, make_user, doctor, clinical_staff):
    a, b = make_user(Role.STUDENT), make_user(Role.STUDENT)
    mine = _book(db_session, a, doctor_id=doctor.id)
    _book(db_session, b)

    assert appointment_service.list_appointments(db_session, a) == [mine]
    assert appointment_service.list_appointments(db_session, doctor) == [mine]
    assert len(appointment_service.list_appointments(db_session, clinical_staff)) == 2


def test_has_pending_ignores_past_dates(db_session, student):
    db_session.add(Appointment(patient_id=student.id, date=date.today() - timedelta(days=3), time="09:00",
                               reason="old", status="scheduled"))
    db_session.commit()
    assert not appointment_service.has_pending(db_session, student.id)
