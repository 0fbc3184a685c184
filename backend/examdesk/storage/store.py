"""Typed access to the JSON collections kept in a key-value backend."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from ..core.clock import Clock, utcnow
from ..core.config import settings as app_settings
from ..domain.models import (
    AdminAppointmentRecord,
    AdminTest,
    AdminUserRecord,
    AppNotification,
    ExamSettings,
    QuizHistoryRecord,
    Record,
    SentNotificationLog,
    SessionUser,
)
from . import codecs
from .backends import KeyValueBackend
from .bus import ChangeBus, CollectionChanged, InboxChanged, InboxKey

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOG_CAP = 100


class StorageKeys:
    tests = "adminTests"
    settings = "examSettings"
    users = "users"
    appointments = "appointments"
    quiz_history = "quizHistory"
    sent_notifications = "adminSentNotifications"
    auth_user = "authUser"
    auth_token = "authToken"


ADMIN_COLLECTION_KEYS = frozenset(
    {
        StorageKeys.tests,
        StorageKeys.settings,
        StorageKeys.users,
        StorageKeys.appointments,
        StorageKeys.quiz_history,
        StorageKeys.sent_notifications,
    }
)


class Store:
    """Reads fail soft to defaults; every write is announced on the bus."""

    def __init__(
        self,
        backend: KeyValueBackend,
        bus: Optional[ChangeBus] = None,
        tz=None,
        clock: Clock = utcnow,
    ) -> None:
        self.backend = backend
        self.bus = bus or ChangeBus()
        self.tz = tz or app_settings.timezone
        self.clock = clock

    # raw access

    def read_json(self, key: str) -> Any:
        try:
            raw = self.backend.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except ValueError:
            # UnicodeDecodeError from undecodable file blobs lands here too
            logger.warning("Discarding malformed JSON", extra={"storage_key": key})
            return None

    def _put(self, key: str, value: Any) -> None:
        self.backend.set(key, json.dumps(value, ensure_ascii=False))

    def _write_collection(self, key: str, records: Sequence[Record]) -> None:
        self._put(key, [record.dump() for record in records])
        self.bus.publish(CollectionChanged(key))

    def _read_list(self, key: str, normalize: Callable[[Any, int], T]) -> List[T]:
        value = self.read_json(key)
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Expected a list, found %s", type(value).__name__, extra={"storage_key": key})
            return []
        return [normalize(item, index) for index, item in enumerate(value)]

    # admin collections

    def read_tests(self) -> List[AdminTest]:
        now = self.clock()
        return self._read_list(StorageKeys.tests, lambda raw, i: codecs.normalize_test(raw, i, now))

    def write_tests(self, tests: Sequence[AdminTest]) -> None:
        self._write_collection(StorageKeys.tests, tests)

    def read_settings(self) -> ExamSettings:
        value = self.read_json(StorageKeys.settings)
        if value is not None and not isinstance(value, dict):
            logger.warning("Expected an object for settings", extra={"storage_key": StorageKeys.settings})
        return codecs.normalize_settings(value)

    def write_settings(self, exam_settings: ExamSettings) -> None:
        self._put(StorageKeys.settings, exam_settings.dump())
        self.bus.publish(CollectionChanged(StorageKeys.settings))

    def read_users(self) -> List[AdminUserRecord]:
        now = self.clock()
        return self._read_list(StorageKeys.users, lambda raw, i: codecs.normalize_user(raw, i, now))

    def write_users(self, users: Sequence[AdminUserRecord]) -> None:
        self._write_collection(StorageKeys.users, users)

    def read_appointments(self) -> List[AdminAppointmentRecord]:
        now = self.clock()
        return self._read_list(
            StorageKeys.appointments,
            lambda raw, i: codecs.normalize_appointment(raw, i, now, self.tz),
        )

    def write_appointments(self, appointments: Sequence[AdminAppointmentRecord]) -> None:
        self._write_collection(StorageKeys.appointments, appointments)

    def read_quiz_history(self) -> List[QuizHistoryRecord]:
        now = self.clock()
        return self._read_list(StorageKeys.quiz_history, lambda raw, i: codecs.normalize_quiz_entry(raw, i, now))

    def write_quiz_history(self, history: Sequence[QuizHistoryRecord]) -> None:
        self._write_collection(StorageKeys.quiz_history, history)

    def read_sent_notifications(self) -> List[SentNotificationLog]:
        now = self.clock()
        return self._read_list(
            StorageKeys.sent_notifications, lambda raw, i: codecs.normalize_sent_log(raw, i, now)
        )

    def write_sent_notifications(self, logs: Sequence[SentNotificationLog]) -> None:
        self._write_collection(StorageKeys.sent_notifications, list(logs)[:LOG_CAP])

    def append_sent_notification(self, entry: SentNotificationLog) -> None:
        self.write_sent_notifications([entry, *self.read_sent_notifications()])

    # per-recipient inboxes

    def read_inbox(self, inbox: InboxKey) -> List[AppNotification]:
        now = self.clock()
        return self._read_list(inbox.storage_key, lambda raw, i: codecs.normalize_notification(raw, i, now))

    def write_inbox(self, inbox: InboxKey, notifications: Sequence[AppNotification]) -> None:
        self._put(inbox.storage_key, [item.dump() for item in notifications])
        self.bus.publish(InboxChanged(inbox))

    # session

    def read_session(self) -> Optional[SessionUser]:
        return codecs.normalize_session_user(self.read_json(StorageKeys.auth_user))

    def read_token(self) -> Optional[str]:
        token = self.backend.get(StorageKeys.auth_token)
        return token or None

    def write_session(self, user: SessionUser, token: str) -> None:
        self._put(StorageKeys.auth_user, user.dump())
        self.backend.set(StorageKeys.auth_token, token)
        self.bus.publish(CollectionChanged(StorageKeys.auth_user))

    def clear_session(self) -> None:
        self.backend.delete(StorageKeys.auth_user)
        self.backend.delete(StorageKeys.auth_token)
        self.bus.publish(CollectionChanged(StorageKeys.auth_user))
