"""Persisted domain records.

Every collection in the key-value store is a list of one of these models
(or, for settings, a single instance). JSON keys are camelCase, Python
attributes are snake_case. Records are frozen; state transitions produce
new instances via ``model_copy(update=...)``.
"""

import datetime as dt
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class AppointmentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class Role(str, Enum):
    user = "user"
    admin = "admin"


class Actor(str, Enum):
    """Who cancelled (or rescheduled) an appointment."""

    user = "user"
    admin = "admin"


class NotificationTarget(str, Enum):
    all = "all"
    users = "users"
    admins = "admins"
    email = "email"


class QuizMode(str, Enum):
    training = "training"
    exam = "exam"


OCCUPYING_STATUSES = frozenset({AppointmentStatus.pending, AppointmentStatus.approved})


# 24-hour HH:MM
CLOCK_TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


class Record(BaseModel):
    """Base for stored records: camelCase on the wire, immutable in memory."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TimeSlot(Record):
    """A bookable interval within an exam day.

    Example:
        >>> TimeSlot(id="slot1", start_time="12:00", end_time="12:30")
    """

    id: str
    start_time: str
    end_time: str
    available: bool = True

    @property
    def interval(self) -> str:
        return f"{self.start_time}-{self.end_time}"


DEFAULT_TIME_SLOTS: List[TimeSlot] = [
    TimeSlot(id="slot1", start_time="12:00", end_time="12:30"),
    TimeSlot(id="slot2", start_time="13:00", end_time="13:30"),
    TimeSlot(id="slot3", start_time="15:00", end_time="15:30"),
]


class BlockedDate(Record):
    date: dt.date
    note: Optional[str] = None


class CapacityOverride(Record):
    date: dt.date
    appointments_per_day: int


class SlotOverride(Record):
    date: dt.date
    slots: List[TimeSlot]


class ExamSettings(Record):
    """Process-wide exam and booking configuration.

    Example:
        >>> ExamSettings(appointments_per_day=10)
    """

    test_duration_minutes: int = 30
    passing_threshold: int = 70
    appointments_per_day: int = 30
    appointment_lead_time_hours: int = 24
    max_reschedules_per_user: int = 2
    rejection_cooldown_days: int = 2
    appointment_location: str = "Centrul de Instruire Continuă"
    appointment_room: str = "Sală A-12"
    blocked_dates: List[BlockedDate] = Field(default_factory=list)
    capacity_overrides: List[CapacityOverride] = Field(default_factory=list)
    slot_overrides: List[SlotOverride] = Field(default_factory=list)


class AdminQuestion(Record):
    id: str
    text: str
    options: List[str]
    correct_answer: int = 0


class AdminTest(Record):
    """A named assessment managed from the back office.

    Example:
        >>> AdminTest(
        ...     id="test_1",
        ...     title="Legislatie electorala",
        ...     description="",
        ...     duration_minutes=30,
        ...     passing_score=70,
        ...     questions=[],
        ...     created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        ...     updated_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        ... )
    """

    id: str
    title: str
    description: str = ""
    duration_minutes: int = 30
    passing_score: int = 70
    questions: List[AdminQuestion] = Field(default_factory=list)
    created_at: dt.datetime
    updated_at: dt.datetime


class AdminUserRecord(Record):
    id: str
    email: str
    full_name: str
    role: Role = Role.user
    created_at: dt.datetime
    is_blocked: bool = False
    last_login_at: Optional[dt.datetime] = None


class AdminAppointmentRecord(Record):
    """One exam booking.

    ``appointment_code`` is a display label; ``id`` is the key.
    """

    id: str
    appointment_code: str
    full_name: str
    id_or_phone: str
    user_email: Optional[str] = None
    date: dt.date
    slot_start: str
    slot_end: str
    status: AppointmentStatus = AppointmentStatus.pending
    status_reason: Optional[str] = None
    admin_note: Optional[str] = None
    cancelled_by: Optional[Actor] = None
    previous_appointment_id: Optional[str] = None
    reschedule_count: int = 0
    created_at: dt.datetime
    updated_at: Optional[dt.datetime] = None

    @property
    def interval(self) -> str:
        return f"{self.slot_start}-{self.slot_end}"

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES


class ChapterStat(Record):
    chapter_id: str
    chapter_title: str
    total: int
    correct: int
    accuracy: float


class QuizHistoryRecord(Record):
    category_id: str
    category_title: str
    score: float
    mode: Optional[QuizMode] = None
    total_questions: Optional[int] = None
    correct_answers: Optional[int] = None
    wrong_answers: Optional[int] = None
    unanswered: Optional[int] = None
    time_taken: Optional[int] = None
    duration_seconds: Optional[int] = None
    chapter_stats: Optional[List[ChapterStat]] = None
    completed_at: dt.datetime
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class SentNotificationLog(Record):
    id: str
    target: NotificationTarget = NotificationTarget.all
    title: str
    message: str
    target_email: Optional[str] = None
    sent_at: dt.datetime
    recipient_count: int = 0


class AppNotification(Record):
    id: str
    title: str
    message: str
    created_at: dt.datetime
    read: bool = False
    link: Optional[str] = None
    tag: Optional[str] = None


class SessionUser(Record):
    """Snapshot of the signed-in account kept under ``authUser``."""

    id: str
    email: str
    full_name: str
    role: Role = Role.user
