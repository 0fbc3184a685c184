"""Append-only record of completed quiz attempts."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..domain.models import QuizHistoryRecord

logger = logging.getLogger(__name__)


def record_quiz_attempt(store, notifier, record: QuizHistoryRecord, passing_threshold: Optional[int] = None) -> bool:
    """Store ``record`` as the newest attempt and notify its owner.

    Returns whether the attempt passed. The threshold defaults to the
    configured exam passing threshold.
    """
    if passing_threshold is None:
        passing_threshold = store.read_settings().passing_threshold
    store.write_quiz_history([record, *store.read_quiz_history()])
    passed = record.score >= passing_threshold
    logger.info("Quiz attempt recorded", extra={"action": "quiz/completed"})
    notifier.notify_quiz_completed(record.user_email, record.category_title, record.score, passed)
    return passed


def history_for_user(records: Sequence[QuizHistoryRecord], email: str) -> List[QuizHistoryRecord]:
    wanted = email.strip().lower()
    return [record for record in records if (record.user_email or "").lower() == wanted]
