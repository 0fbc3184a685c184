"""Live admin session: reducer state + store writes + notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Mapping, Optional

from ..domain.errors import NotFound, ValidationFailure
from ..domain.ids import IdFactory, create_id
from ..domain.models import Actor, AppointmentStatus, ExamSettings
from ..domain.schemas import AdminTestInput, SendNotificationInput
from ..notifications.fanout import Notifier
from ..scheduling.day_config import configure_day
from ..storage.bus import ChangeEvent, CollectionChanged
from ..storage.store import ADMIN_COLLECTION_KEYS, Store
from .reducer import (
    AdminAction,
    AdminState,
    CreateTest,
    DeleteTest,
    Hydrate,
    LogSentNotification,
    PatchAppointment,
    RescheduleAppointment,
    SetAppointmentStatus,
    ToggleUserBlock,
    UpdateSettings,
    UpdateTest,
    apply,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    error: Optional[str] = None
    not_found: bool = False
    entity_id: Optional[str] = None
    recipient_count: int = 0


class AdminPanel:
    """Holds the canonical admin state and is the writer of its collections.

    Changes made to those collections by other writers (candidate bookings,
    automatic admin notifications) arrive through the store's change bus and
    trigger a reload.
    """

    def __init__(self, store: Store, notifier: Optional[Notifier] = None, new_id: IdFactory = create_id) -> None:
        self.store = store
        self.notifier = notifier or Notifier(store, new_id=new_id)
        self.new_id = new_id
        self._writing = False
        self.state = self.load_state()
        self._unsubscribe = store.bus.subscribe(self._on_change)

    def load_state(self) -> AdminState:
        return AdminState(
            tests=tuple(self.store.read_tests()),
            settings=self.store.read_settings(),
            users=tuple(self.store.read_users()),
            appointments=tuple(self.store.read_appointments()),
            sent_notifications=tuple(self.store.read_sent_notifications()),
            quiz_history=tuple(self.store.read_quiz_history()),
        )

    def refresh(self) -> None:
        self.state = apply(self.state, Hydrate(self.load_state()))

    def close(self) -> None:
        self._unsubscribe()

    def _on_change(self, event: ChangeEvent) -> None:
        if self._writing:
            return
        if isinstance(event, CollectionChanged) and event.key in ADMIN_COLLECTION_KEYS:
            self.refresh()

    def _persist(self, previous: AdminState, current: AdminState) -> None:
        writers = {
            "tests": self.store.write_tests,
            "settings": self.store.write_settings,
            "users": self.store.write_users,
            "appointments": self.store.write_appointments,
            "sent_notifications": self.store.write_sent_notifications,
        }
        self._writing = True
        try:
            for item in fields(AdminState):
                value = getattr(current, item.name)
                if item.name in writers and value is not getattr(previous, item.name):
                    writers[item.name](value)
                    logger.debug("Collection written", extra={"storage_key": item.name})
        finally:
            self._writing = False

    def dispatch(self, action: AdminAction) -> DispatchResult:
        """Apply ``action``; validation and not-found problems come back in the result."""
        name = type(action).__name__
        previous = self.state
        try:
            current = apply(previous, action, now=self.store.clock(), new_id=self.new_id, tz=self.store.tz)
        except ValidationFailure as exc:
            logger.info("Admin action rejected: %s", exc.message, extra={"action": name})
            return DispatchResult(ok=False, error=exc.message)
        except NotFound as exc:
            logger.warning("Admin action target missing: %s", exc, extra={"action": name})
            return DispatchResult(ok=False, error=str(exc), not_found=True)

        if not isinstance(action, Hydrate):
            try:
                self._persist(previous, current)
            except OSError:
                logger.exception("Admin action not saved", extra={"action": name})
                # earlier collections may already be written; mirror whatever landed
                self.refresh()
                return DispatchResult(ok=False, error="Could not save changes. Try again.")
        self.state = current
        logger.info("Admin action applied", extra={"action": name})
        return DispatchResult(ok=True, entity_id=self._after(action, current))

    def _after(self, action: AdminAction, current: AdminState) -> Optional[str]:
        if isinstance(action, CreateTest):
            return current.tests[0].id
        if isinstance(action, SetAppointmentStatus):
            appointment = next(a for a in current.appointments if a.id == action.id)
            self.notifier.notify_appointment_status_changed(appointment, users=current.users)
            return appointment.id
        if isinstance(action, RescheduleAppointment):
            replacement = current.appointments[0]
            self.notifier.notify_appointment_rescheduled(replacement)
            return replacement.id
        if isinstance(action, LogSentNotification):
            return action.entry.id
        return getattr(action, "id", None)

    # Convenience wrappers used by the HTTP layer.

    def create_test(self, data: AdminTestInput) -> DispatchResult:
        return self.dispatch(CreateTest(data))

    def update_test(self, test_id: str, data: AdminTestInput) -> DispatchResult:
        return self.dispatch(UpdateTest(test_id, data))

    def delete_test(self, test_id: str) -> DispatchResult:
        return self.dispatch(DeleteTest(test_id))

    def update_settings(self, settings: ExamSettings) -> DispatchResult:
        return self.dispatch(UpdateSettings(settings))

    def toggle_user_blocked(self, user_id: str) -> DispatchResult:
        return self.dispatch(ToggleUserBlock(user_id))

    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        reason: Optional[str] = None,
        admin_note: Optional[str] = None,
        cancelled_by: Optional[Actor] = None,
    ) -> DispatchResult:
        return self.dispatch(SetAppointmentStatus(appointment_id, status, reason, admin_note, cancelled_by))

    def update_appointment(self, appointment_id: str, patch: Mapping[str, Any]) -> DispatchResult:
        return self.dispatch(PatchAppointment(appointment_id, dict(patch)))

    def reschedule_appointment(
        self, appointment_id: str, day: date, slot_start: str, slot_end: str
    ) -> DispatchResult:
        return self.dispatch(RescheduleAppointment(appointment_id, day, slot_start, slot_end, Actor.admin))

    def configure_day(self, day: date, **overrides: Any) -> DispatchResult:
        try:
            settings = configure_day(self.state.settings, day, **overrides)
        except ValidationFailure as exc:
            return DispatchResult(ok=False, error=exc.message)
        return self.dispatch(UpdateSettings(settings))

    def send_notification(self, data: SendNotificationInput) -> DispatchResult:
        if not data.title.strip() or not data.message.strip():
            return DispatchResult(ok=False, error="Fill in the notification title and message.")
        if data.target == "email" and not data.target_email:
            return DispatchResult(ok=False, error="Add the recipient email.")
        entry = self.notifier.send(
            data.target, data.title, data.message, data.target_email, users=self.state.users
        )
        result = self.dispatch(LogSentNotification(entry))
        return DispatchResult(ok=result.ok, entity_id=entry.id, recipient_count=entry.recipient_count)
