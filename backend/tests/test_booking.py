"""Tests for booking and rescheduling."""

from datetime import date, datetime, timedelta
from pathlib import Path
import sys

import pytest
import pytz

sys.path.append(str(Path(__file__).resolve().parents[1]))
from examdesk.domain.errors import BookingError, NotFound  # noqa: E402
from examdesk.domain.models import (  # noqa: E402
    Actor,
    AppointmentStatus,
    BlockedDate,
    ExamSettings,
)
from examdesk.notifications.fanout import Notifier  # noqa: E402
from examdesk.scheduling.booking import (  # noqa: E402
    BookingRequest,
    BookingService,
    plan_booking,
    plan_reschedule,
)
from examdesk.storage.bus import InboxKey  # noqa: E402

TZ = pytz.timezone("Europe/Chisinau")
NOW = datetime(2026, 2, 2, 8, 0, tzinfo=pytz.UTC)
MONDAY = date(2026, 2, 9)
WEDNESDAY = date(2026, 2, 4)


def _request(**overrides) -> BookingRequest:
    values = dict(full_name="Ion Popescu", id_or_phone="069123456", date=MONDAY, slot_id="slot1")
    values.update(overrides)
    return BookingRequest(**values)


def _plan(settings=None, appointments=(), now=NOW, **overrides):
    return plan_booking(settings or ExamSettings(), list(appointments), _request(**overrides), now, TZ, code="AP-2026-12345")


def test_plan_booking_creates_pending_appointment() -> None:
    appointment = _plan(user_email=" ion@example.com ", full_name="  Ion Popescu ")

    assert appointment.status == AppointmentStatus.pending
    assert appointment.full_name == "Ion Popescu"
    assert appointment.user_email == "ion@example.com"
    assert (appointment.slot_start, appointment.slot_end) == ("12:00", "12:30")
    assert appointment.appointment_code == "AP-2026-12345"
    assert appointment.reschedule_count == 0


def test_plan_booking_accepts_slot_times() -> None:
    appointment = _plan(slot_id=None, slot_start="15:00", slot_end="15:30")

    assert appointment.interval == "15:00-15:30"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"full_name": "Io"}, "full_name"),
        ({"id_or_phone": "12345"}, "id_or_phone"),
        ({"date": date(2026, 2, 10)}, "date"),
        ({"slot_id": "slot9"}, "slot"),
    ],
)
def test_plan_booking_rejects_bad_input(overrides, field) -> None:
    with pytest.raises(BookingError) as excinfo:
        _plan(**overrides)

    assert excinfo.value.field == field


def test_plan_booking_rejects_blocked_day() -> None:
    settings = ExamSettings(blocked_dates=[BlockedDate(date=MONDAY, note="Elections")])

    with pytest.raises(BookingError, match="Elections"):
        _plan(settings)


def test_plan_booking_rejects_full_day(make_appointment) -> None:
    settings = ExamSettings(appointments_per_day=1)

    with pytest.raises(BookingError, match="daily limit of 1"):
        _plan(settings, [make_appointment(MONDAY, "13:00", "13:30")])


def test_plan_booking_rejects_taken_slot(make_appointment) -> None:
    with pytest.raises(BookingError, match="no longer available"):
        _plan(appointments=[make_appointment(MONDAY)])


def test_plan_booking_enforces_lead_time() -> None:
    # slot1 on Wednesday starts at 10:00 UTC
    with pytest.raises(BookingError, match="24 hours"):
        _plan(date=WEDNESDAY, now=datetime(2026, 2, 3, 11, 0, tzinfo=pytz.UTC))

    appointment = _plan(date=WEDNESDAY, now=datetime(2026, 2, 3, 10, 0, tzinfo=pytz.UTC))
    assert appointment.date == WEDNESDAY


def test_plan_booking_enforces_rejection_cooldown(make_appointment) -> None:
    rejected = make_appointment(
        WEDNESDAY,
        id_or_phone="069123456",
        status=AppointmentStatus.rejected,
        updated_at=NOW - timedelta(days=1),
    )

    with pytest.raises(BookingError, match="rejected"):
        _plan(appointments=[rejected])

    assert _plan(ExamSettings(rejection_cooldown_days=0), [rejected]).date == MONDAY


def test_plan_reschedule_closes_original_and_links_replacement(make_appointment, new_id) -> None:
    original = make_appointment(MONDAY, status=AppointmentStatus.approved, reschedule_count=1)

    closed, replacement = plan_reschedule(
        ExamSettings(), [original], original.id, WEDNESDAY, "13:00", "13:30", Actor.user, NOW, TZ, new_id
    )

    assert closed.id == original.id
    assert closed.status == AppointmentStatus.cancelled
    assert closed.status_reason == "Rescheduled"
    assert closed.cancelled_by == Actor.user
    assert replacement.id == "appointment-1"
    assert replacement.previous_appointment_id == original.id
    assert replacement.reschedule_count == 2
    assert replacement.status == AppointmentStatus.approved
    assert replacement.appointment_code == original.appointment_code
    assert (replacement.date, replacement.interval) == (WEDNESDAY, "13:00-13:30")


def test_plan_reschedule_respects_limit_and_missing_ids(make_appointment) -> None:
    original = make_appointment(MONDAY, reschedule_count=2)

    with pytest.raises(BookingError, match="limit of 2"):
        plan_reschedule(ExamSettings(), [original], original.id, WEDNESDAY, "13:00", "13:30", Actor.user, NOW, TZ)
    with pytest.raises(NotFound):
        plan_reschedule(ExamSettings(), [original], "missing", WEDNESDAY, "13:00", "13:30", Actor.user, NOW, TZ)


def test_admin_reschedule_skips_lead_time(make_appointment) -> None:
    original = make_appointment(MONDAY)
    late = datetime(2026, 2, 4, 9, 0, tzinfo=pytz.UTC)

    with pytest.raises(BookingError, match="in advance"):
        plan_reschedule(ExamSettings(), [original], original.id, WEDNESDAY, "12:00", "12:30", Actor.user, late, TZ)

    _, replacement = plan_reschedule(
        ExamSettings(), [original], original.id, WEDNESDAY, "12:00", "12:30", Actor.admin, late, TZ
    )
    assert replacement.date == WEDNESDAY


def test_rescheduling_within_the_same_full_day(make_appointment) -> None:
    settings = ExamSettings(appointments_per_day=1)
    original = make_appointment(MONDAY)

    _, replacement = plan_reschedule(settings, [original], original.id, MONDAY, "15:00", "15:30", Actor.user, NOW, TZ)

    assert replacement.interval == "15:00-15:30"


def test_booking_service_writes_and_notifies(store, new_id) -> None:
    notifier = Notifier(store, builtin_admin="admin@electoral.md", new_id=new_id)
    service = BookingService(store, notifier, new_id)

    appointment = service.book(_request(user_email="ion@example.com"))

    assert [a.id for a in store.read_appointments()] == [appointment.id]
    user_inbox = store.read_inbox(InboxKey("user", "ion@example.com"))
    admin_inbox = store.read_inbox(InboxKey("admin", "admin@electoral.md"))
    assert user_inbox[0].title == "Appointment registered"
    assert admin_inbox[0].tag == f"admin-appointment-created-{appointment.appointment_code}-admin@electoral.md"
    log = store.read_sent_notifications()
    assert log[0].target == "admins"
    assert log[0].recipient_count == 1


def test_booking_service_reschedule_checks_owner(store, new_id) -> None:
    service = BookingService(store, Notifier(store, new_id=new_id), new_id)
    appointment = service.book(_request(user_email="ion@example.com"))

    with pytest.raises(NotFound):
        service.reschedule(appointment.id, WEDNESDAY, "13:00", "13:30", user_email="other@example.com")

    replacement = service.reschedule(appointment.id, WEDNESDAY, "13:00", "13:30", user_email="ION@example.com")

    stored = {a.id: a for a in store.read_appointments()}
    assert stored[appointment.id].status == AppointmentStatus.cancelled
    assert stored[replacement.id].previous_appointment_id == appointment.id
    assert store.read_sent_notifications()[0].title == "Appointment rescheduled"
