"""Tolerant decoding of stored records.

Each ``normalize_*`` function accepts whatever JSON value was found in the
store and returns a well-formed record, filling defaults for missing or
malformed fields so that older or partially written blobs stay loadable.
None of them raise on bad input.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from typing import Any, Dict, List, Optional

import pytz

from ..domain.models import (
    CLOCK_TIME_RE,
    Actor,
    AdminAppointmentRecord,
    AdminQuestion,
    AdminTest,
    AdminUserRecord,
    AppNotification,
    AppointmentStatus,
    BlockedDate,
    CapacityOverride,
    ChapterStat,
    ExamSettings,
    NotificationTarget,
    QuizHistoryRecord,
    QuizMode,
    Role,
    SentNotificationLog,
    SessionUser,
    SlotOverride,
    TimeSlot,
)

DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DEFAULT_SETTINGS = ExamSettings()


def _mapping(raw: Any) -> Dict[str, Any]:
    return raw if isinstance(raw, dict) else {}


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _positive_int(value: Any, default: int) -> int:
    number = _number(value)
    if number is None or number <= 0:
        return default
    return int(number)


def _non_negative_int(value: Any, default: int) -> int:
    number = _number(value)
    if number is None or number < 0:
        return default
    return int(number)


def _member(enum_type, value: Any, default=None):
    if isinstance(value, str) and value in enum_type._value2member_map_:
        return enum_type(value)
    return default


def _clock(value: Any, default: str) -> str:
    return value if isinstance(value, str) and CLOCK_TIME_RE.match(value) else default


def _optional_int(value: Any) -> Optional[int]:
    number = _number(value)
    return None if number is None else int(number)


def parse_timestamp(value: Any) -> Optional[dt.datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = dt.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=pytz.UTC)
    return parsed


def _timestamp(value: Any, now: dt.datetime) -> dt.datetime:
    return parse_timestamp(value) or now


def to_date_key(value: Any, tz) -> Optional[dt.date]:
    """Calendar date of ``value`` in the exam time zone.

    Accepts ``date`` objects, ``YYYY-MM-DD`` strings and full ISO timestamps
    (older records stored the local midnight of the exam day as a UTC instant).
    """
    if isinstance(value, dt.datetime):
        return value.astimezone(tz).date() if value.tzinfo else value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if DATE_KEY_RE.match(text):
        try:
            return dt.date.fromisoformat(text)
        except ValueError:
            return None
    try:
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.astimezone(tz).date() if parsed.tzinfo else parsed.date()


def _date_prefix(value: Any) -> Optional[dt.date]:
    text = str(value or "")[:10]
    if not DATE_KEY_RE.match(text):
        return None
    try:
        return dt.date.fromisoformat(text)
    except ValueError:
        return None


def normalize_time_slot(raw: Any, index: int) -> Optional[TimeSlot]:
    item = _mapping(raw)
    start = str(item.get("startTime") or "")
    end = str(item.get("endTime") or "")
    if not CLOCK_TIME_RE.match(start) or not CLOCK_TIME_RE.match(end) or start >= end:
        return None
    available = item.get("available")
    return TimeSlot(
        id=str(item.get("id") or f"slot-{index + 1}"),
        start_time=start,
        end_time=end,
        available=available if isinstance(available, bool) else True,
    )


def normalize_settings(raw: Any) -> ExamSettings:
    if not isinstance(raw, dict):
        return DEFAULT_SETTINGS
    base = DEFAULT_SETTINGS

    blocked: List[BlockedDate] = []
    if isinstance(raw.get("blockedDates"), list):
        for item in raw["blockedDates"]:
            item = _mapping(item)
            day = _date_prefix(item.get("date"))
            if day is not None:
                blocked.append(BlockedDate(date=day, note=_text(item.get("note"))))

    capacity: List[CapacityOverride] = []
    if isinstance(raw.get("capacityOverrides"), list):
        for item in raw["capacityOverrides"]:
            item = _mapping(item)
            day = _date_prefix(item.get("date"))
            per_day = _positive_int(item.get("appointmentsPerDay"), 0)
            if day is not None and per_day > 0:
                capacity.append(CapacityOverride(date=day, appointments_per_day=per_day))

    slot_overrides: List[SlotOverride] = []
    if isinstance(raw.get("slotOverrides"), list):
        for item in raw["slotOverrides"]:
            item = _mapping(item)
            day = _date_prefix(item.get("date"))
            raw_slots = item.get("slots") if isinstance(item.get("slots"), list) else []
            slots = [
                slot
                for slot in (normalize_time_slot(s, i) for i, s in enumerate(raw_slots))
                if slot is not None
            ]
            if day is not None and slots:
                slot_overrides.append(SlotOverride(date=day, slots=slots))

    return ExamSettings(
        test_duration_minutes=_positive_int(raw.get("testDurationMinutes"), base.test_duration_minutes),
        passing_threshold=_positive_int(raw.get("passingThreshold"), base.passing_threshold),
        appointments_per_day=_positive_int(raw.get("appointmentsPerDay"), base.appointments_per_day),
        appointment_lead_time_hours=_non_negative_int(
            raw.get("appointmentLeadTimeHours"), base.appointment_lead_time_hours
        ),
        max_reschedules_per_user=_non_negative_int(
            raw.get("maxReschedulesPerUser"), base.max_reschedules_per_user
        ),
        rejection_cooldown_days=_non_negative_int(
            raw.get("rejectionCooldownDays"), base.rejection_cooldown_days
        ),
        appointment_location=_text(raw.get("appointmentLocation")) or base.appointment_location,
        appointment_room=_text(raw.get("appointmentRoom")) or base.appointment_room,
        blocked_dates=blocked,
        capacity_overrides=capacity,
        slot_overrides=slot_overrides,
    )


def normalize_test(raw: Any, index: int, now: dt.datetime) -> AdminTest:
    item = _mapping(raw)
    test_id = str(item.get("id") or f"test-{index + 1}")
    questions = []
    if isinstance(item.get("questions"), list):
        for q_index, question in enumerate(item["questions"]):
            question = _mapping(question)
            options = question.get("options")
            answer = question.get("correctAnswer")
            questions.append(
                AdminQuestion(
                    id=str(question.get("id") or f"{test_id}-q-{q_index + 1}"),
                    text=str(question.get("text") or ""),
                    options=[str(option or "") for option in options]
                    if isinstance(options, list)
                    else ["", "", "", ""],
                    correct_answer=answer
                    if isinstance(answer, int) and not isinstance(answer, bool)
                    else 0,
                )
            )
    return AdminTest(
        id=test_id,
        title=str(item.get("title") or "New test"),
        description=str(item.get("description") or ""),
        duration_minutes=_positive_int(item.get("durationMinutes"), DEFAULT_SETTINGS.test_duration_minutes),
        passing_score=_positive_int(item.get("passingScore"), DEFAULT_SETTINGS.passing_threshold),
        questions=questions,
        created_at=_timestamp(item.get("createdAt"), now),
        updated_at=_timestamp(item.get("updatedAt"), now),
    )


def normalize_user(raw: Any, index: int, now: dt.datetime) -> AdminUserRecord:
    item = _mapping(raw)
    return AdminUserRecord(
        id=str(item.get("id") or f"user-{index + 1}"),
        email=str(item.get("email") or ""),
        full_name=str(item.get("fullName") or item.get("name") or "User"),
        role=Role.admin if item.get("role") == "admin" else Role.user,
        created_at=_timestamp(item.get("createdAt"), now),
        is_blocked=bool(item.get("isBlocked")),
        last_login_at=parse_timestamp(item.get("lastLoginAt")),
    )


def normalize_appointment(raw: Any, index: int, now: dt.datetime, tz) -> AdminAppointmentRecord:
    item = _mapping(raw)
    status = item.get("status")
    cancelled_by = item.get("cancelledBy")
    return AdminAppointmentRecord(
        id=str(item.get("id") or f"appointment-{index + 1}"),
        appointment_code=_text(item.get("appointmentCode")) or f"AP-{index + 1:04d}",
        full_name=str(item.get("fullName") or ""),
        id_or_phone=str(item.get("idOrPhone") or ""),
        user_email=_text(item.get("userEmail")),
        date=to_date_key(item.get("date"), tz) or now.astimezone(tz).date(),
        slot_start=_clock(item.get("slotStart"), "00:00"),
        slot_end=_clock(item.get("slotEnd"), "00:30"),
        status=_member(AppointmentStatus, status, AppointmentStatus.pending),
        status_reason=_text(item.get("statusReason")),
        admin_note=_text(item.get("adminNote")),
        cancelled_by=_member(Actor, cancelled_by),
        previous_appointment_id=_text(item.get("previousAppointmentId")),
        reschedule_count=_non_negative_int(item.get("rescheduleCount"), 0),
        created_at=_timestamp(item.get("createdAt"), now),
        updated_at=parse_timestamp(item.get("updatedAt")),
    )


def normalize_quiz_entry(raw: Any, index: int, now: dt.datetime) -> QuizHistoryRecord:
    item = _mapping(raw)
    mode = item.get("mode")
    chapters = None
    if isinstance(item.get("chapterStats"), list):
        chapters = []
        for chapter in item["chapterStats"]:
            chapter = _mapping(chapter)
            stat = ChapterStat(
                chapter_id=str(chapter.get("chapterId") or "general"),
                chapter_title=str(chapter.get("chapterTitle") or "General"),
                total=_optional_int(chapter.get("total")) or 0,
                correct=_optional_int(chapter.get("correct")) or 0,
                accuracy=_number(chapter.get("accuracy")) or 0.0,
            )
            if stat.total > 0:
                chapters.append(stat)
    return QuizHistoryRecord(
        category_id=str(item.get("categoryId") or "unknown"),
        category_title=str(item.get("categoryTitle") or "Test"),
        score=_number(item.get("score")) or 0.0,
        mode=_member(QuizMode, mode),
        total_questions=_optional_int(item.get("totalQuestions")),
        correct_answers=_optional_int(item.get("correctAnswers")),
        wrong_answers=_optional_int(item.get("wrongAnswers")),
        unanswered=_optional_int(item.get("unanswered")),
        time_taken=_optional_int(item.get("timeTaken")),
        duration_seconds=_optional_int(item.get("durationSeconds")),
        chapter_stats=chapters,
        completed_at=_timestamp(item.get("completedAt"), now),
        user_email=_text(item.get("userEmail")),
        user_name=_text(item.get("userName")),
    )


def normalize_sent_log(raw: Any, index: int, now: dt.datetime) -> SentNotificationLog:
    item = _mapping(raw)
    target = item.get("target")
    return SentNotificationLog(
        id=str(item.get("id") or f"sent-log-{index + 1}"),
        target=_member(NotificationTarget, target, NotificationTarget.all),
        title=str(item.get("title") or ""),
        message=str(item.get("message") or ""),
        target_email=_text(item.get("targetEmail")),
        sent_at=_timestamp(item.get("sentAt"), now),
        recipient_count=_non_negative_int(item.get("recipientCount"), 0),
    )


def normalize_notification(raw: Any, index: int, now: dt.datetime) -> AppNotification:
    item = _mapping(raw)
    return AppNotification(
        id=str(item.get("id") or f"notif-{int(now.timestamp() * 1000)}-{index}"),
        title=str(item.get("title") or ""),
        message=str(item.get("message") or ""),
        created_at=_timestamp(item.get("createdAt"), now),
        read=bool(item.get("read")),
        link=_text(item.get("link")),
        tag=_text(item.get("tag")),
    )


def normalize_session_user(raw: Any) -> Optional[SessionUser]:
    item = _mapping(raw)
    email = _text(item.get("email"))
    if email is None:
        return None
    return SessionUser(
        id=str(item.get("id") or email),
        email=email,
        full_name=str(item.get("fullName") or item.get("name") or "User"),
        role=Role.admin if item.get("role") == "admin" else Role.user,
    )
