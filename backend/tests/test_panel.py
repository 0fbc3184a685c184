"""Tests for the live admin session."""

from datetime import date
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))
from examdesk.admin.panel import AdminPanel  # noqa: E402
from examdesk.domain.models import AppointmentStatus, ExamSettings  # noqa: E402
from examdesk.domain.schemas import (  # noqa: E402
    AdminQuestionInput,
    AdminTestInput,
    SendNotificationInput,
)
from examdesk.notifications.fanout import Notifier  # noqa: E402
from examdesk.scheduling.booking import BookingRequest, BookingService  # noqa: E402
from examdesk.storage.backends import MemoryBackend  # noqa: E402
from examdesk.storage.bus import InboxKey  # noqa: E402
from examdesk.storage.store import Store  # noqa: E402

MONDAY = date(2026, 2, 9)
WEDNESDAY = date(2026, 2, 4)


def _panel(store, new_id) -> AdminPanel:
    return AdminPanel(store, Notifier(store, builtin_admin="admin@electoral.md", new_id=new_id), new_id)


def test_accepted_actions_are_persisted(store, new_id) -> None:
    panel = _panel(store, new_id)

    result = panel.create_test(
        AdminTestInput(title="Legislatie", questions=[AdminQuestionInput(text="Q?", options=["a", "b"])])
    )

    assert result.ok
    assert [test.id for test in store.read_tests()] == [result.entity_id]


def test_rejected_actions_leave_state_and_store_alone(store, new_id) -> None:
    panel = _panel(store, new_id)
    before = panel.state

    result = panel.update_settings(ExamSettings(passing_threshold=0))

    assert not result.ok
    assert "between 1 and 100" in result.error
    assert panel.state is before
    assert store.backend.get("examSettings") is None


class SettingsWriteFails(MemoryBackend):
    def set(self, key: str, raw: str) -> None:
        if key == "examSettings":
            raise OSError("disk full")
        super().set(key, raw)


def test_failed_write_keeps_state_in_line_with_the_store(store, new_id) -> None:
    broken = Store(SettingsWriteFails(), tz=store.tz, clock=store.clock)
    panel = _panel(broken, new_id)

    result = panel.update_settings(ExamSettings(passing_threshold=50))

    assert not result.ok
    assert "Could not save" in result.error
    assert panel.state.settings.passing_threshold == 70
    assert broken.read_settings().passing_threshold == 70


def test_missing_target_is_reported(store, new_id) -> None:
    result = _panel(store, new_id).delete_test("test-404")

    assert not result.ok
    assert result.not_found


def test_send_to_all_counts_every_account_and_the_builtin_admin(store, new_id, make_user) -> None:
    store.write_users([make_user(1), make_user(2), make_user(3), make_user(4), make_user(5, role="admin")])
    panel = _panel(store, new_id)

    result = panel.send_notification(SendNotificationInput(target="all", title=" Info ", message="Rooms changed"))

    assert result.ok
    assert result.recipient_count == 6
    log = store.read_sent_notifications()
    assert (log[0].id, log[0].title, log[0].recipient_count) == (result.entity_id, "Info", 6)
    assert store.read_inbox(InboxKey("admin", "admin@electoral.md"))[0].message == "Rooms changed"
    assert store.read_inbox(InboxKey("admin", "user5@example.com"))
    assert store.read_inbox(InboxKey("user", "user3@example.com"))


def test_send_requires_text_and_email(store, new_id) -> None:
    panel = _panel(store, new_id)

    assert not panel.send_notification(SendNotificationInput(target="all", title=" ", message="x")).ok
    missing = panel.send_notification(SendNotificationInput(target="email", title="t", message="m"))
    assert missing.error == "Add the recipient email."
    assert store.read_sent_notifications() == []


def test_panel_reloads_after_candidate_booking(store, new_id) -> None:
    panel = _panel(store, new_id)
    booking = BookingService(store, panel.notifier, new_id)

    appointment = booking.book(
        BookingRequest(full_name="Ion Popescu", id_or_phone="069123456", date=MONDAY, slot_id="slot2")
    )

    assert [a.id for a in panel.state.appointments] == [appointment.id]
    assert panel.state.sent_notifications[0].target == "admins"


def test_closed_panel_stops_reloading(store, new_id, make_appointment) -> None:
    panel = _panel(store, new_id)
    panel.close()

    store.write_appointments([make_appointment(MONDAY)])

    assert panel.state.appointments == ()


def test_status_change_notifies_the_candidate(store, new_id, make_user, make_appointment) -> None:
    store.write_users([make_user(1, full_name="Ion Popescu")])
    store.write_appointments([make_appointment(MONDAY)])
    panel = _panel(store, new_id)

    result = panel.update_appointment_status("appt-1", AppointmentStatus.rejected, reason="Missing ID")

    assert result.ok
    assert store.read_appointments()[0].status == AppointmentStatus.rejected
    inbox = store.read_inbox(InboxKey("user", "user1@example.com"))
    assert inbox[0].title == "Appointment status updated"
    assert "Missing ID" in inbox[0].message


def test_admin_reschedule_adds_linked_record(store, new_id, make_appointment) -> None:
    store.write_appointments([make_appointment(MONDAY, user_email="ion@example.com")])
    panel = _panel(store, new_id)

    result = panel.reschedule_appointment("appt-1", WEDNESDAY, "15:00", "15:30")

    assert result.ok
    stored = store.read_appointments()
    assert stored[0].id == result.entity_id
    assert stored[0].previous_appointment_id == "appt-1"
    assert stored[1].status == AppointmentStatus.cancelled
    assert store.read_inbox(InboxKey("user", "ion@example.com"))[0].title == "Appointment rescheduled"


def test_configure_day_updates_overrides(store, new_id) -> None:
    panel = _panel(store, new_id)

    bad = panel.configure_day(MONDAY, slot_lines="noon")
    good = panel.configure_day(MONDAY, blocked=True, note="Audit", capacity=4, slot_lines="09:00-09:30")

    assert not bad.ok
    assert good.ok
    settings = store.read_settings()
    assert settings.blocked_dates[0].note == "Audit"
    assert settings.capacity_overrides[0].appointments_per_day == 4
    assert settings.slot_overrides[0].slots[0].interval == "09:00-09:30"
