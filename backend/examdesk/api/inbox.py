"""Notification inbox and quiz-result endpoints for signed-in accounts."""

from fastapi import APIRouter, Depends

from ..domain.models import QuizHistoryRecord, Role
from ..notifications.fanout import Notifier
from ..quiz.history import record_quiz_attempt
from ..storage.bus import InboxKey
from ..storage.store import Store
from .deps import get_notifier, get_store

router = APIRouter(tags=["inbox"])


@router.get("/inbox/{role}/{email}")
def read_inbox(role: Role, email: str, notifier: Notifier = Depends(get_notifier)) -> dict:
    key = InboxKey(role, email)
    items = notifier.inbox.read(key)
    return {
        "unread": sum(1 for item in items if not item.read),
        "items": [item.dump() for item in items],
    }


@router.post("/inbox/{role}/{email}/read-all", status_code=204)
def mark_all_read(role: Role, email: str, notifier: Notifier = Depends(get_notifier)) -> None:
    notifier.inbox.mark_all_read(InboxKey(role, email))


@router.post("/inbox/{role}/{email}/{notification_id}/read", status_code=204)
def mark_read(role: Role, email: str, notification_id: str, notifier: Notifier = Depends(get_notifier)) -> None:
    notifier.inbox.mark_read(InboxKey(role, email), notification_id)


@router.post("/quiz/attempts", status_code=201)
def quiz_attempt(
    body: QuizHistoryRecord,
    store: Store = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    passed = record_quiz_attempt(store, notifier, body)
    return {"passed": passed}
