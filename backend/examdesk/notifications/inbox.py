"""Per-recipient notification inboxes."""

from __future__ import annotations

from typing import List

from ..domain.models import AppNotification
from ..storage.bus import InboxKey

INBOX_CAP = 100


class Inbox:
    def __init__(self, store) -> None:
        self.store = store

    def read(self, key: InboxKey) -> List[AppNotification]:
        return self.store.read_inbox(key)

    def append(self, key: InboxKey, notification: AppNotification) -> bool:
        """Prepend ``notification``; returns False when its tag is already present."""
        existing = self.store.read_inbox(key)
        if notification.tag and any(item.tag == notification.tag for item in existing):
            return False
        self.store.write_inbox(key, [notification, *existing][:INBOX_CAP])
        return True

    def mark_read(self, key: InboxKey, notification_id: str) -> None:
        items = self.store.read_inbox(key)
        if any(item.id == notification_id and not item.read for item in items):
            self.store.write_inbox(
                key,
                [item.model_copy(update={"read": True}) if item.id == notification_id else item for item in items],
            )

    def mark_all_read(self, key: InboxKey) -> None:
        items = self.store.read_inbox(key)
        if any(not item.read for item in items):
            self.store.write_inbox(key, [item.model_copy(update={"read": True}) for item in items])

    def unread_count(self, key: InboxKey) -> int:
        return sum(1 for item in self.store.read_inbox(key) if not item.read)
