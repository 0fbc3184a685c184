"""In-process change notifications for the key-value store.

Listeners are called synchronously, in subscription order, right after the
write that triggered them. They receive the event only and are expected to
re-read whatever collection they care about.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple, Union

from ..domain.models import Role


@dataclass(frozen=True)
class InboxKey:
    """Address of one recipient's notification inbox."""

    role: Role
    email: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))

    @property
    def storage_key(self) -> str:
        return f"notifications_{self.role.value}_{self.email}"


@dataclass(frozen=True)
class CollectionChanged:
    key: str


@dataclass(frozen=True)
class InboxChanged:
    inbox: InboxKey


ChangeEvent = Union[CollectionChanged, InboxChanged]
Listener = Callable[[ChangeEvent], None]
Topic = Union[str, InboxKey]
Unsubscribe = Callable[[], None]


def topic_of(event: ChangeEvent) -> Topic:
    if isinstance(event, InboxChanged):
        return event.inbox
    return event.key


class ChangeBus:
    """Typed publish/subscribe keyed by collection key or inbox."""

    def __init__(self) -> None:
        self._topic_listeners: Dict[Topic, List[Tuple[int, Listener]]] = {}
        self._listeners: List[Tuple[int, Listener]] = []
        self._next_token = 0

    def _register(self, bucket: List[Tuple[int, Listener]], callback: Listener) -> Unsubscribe:
        token = self._next_token
        self._next_token += 1
        bucket.append((token, callback))

        def unsubscribe() -> None:
            bucket[:] = [entry for entry in bucket if entry[0] != token]

        return unsubscribe

    def on_change(self, key: Topic, callback: Listener) -> Unsubscribe:
        """Call ``callback`` whenever ``key`` is written."""
        bucket = self._topic_listeners.setdefault(key, [])
        return self._register(bucket, callback)

    def subscribe(self, callback: Listener) -> Unsubscribe:
        """Call ``callback`` for every change event."""
        return self._register(self._listeners, callback)

    def publish(self, event: ChangeEvent) -> None:
        targeted = list(self._topic_listeners.get(topic_of(event), ()))
        everyone = list(self._listeners)
        for _, callback in sorted(targeted + everyone, key=lambda entry: entry[0]):
            callback(event)
