"""Admin back-office state and its transitions.

``apply`` is the single pure transition function: it takes the current
``AdminState`` and one action and returns the next state, or raises
``ValidationFailure`` / ``NotFound`` without producing a partial result.
Collections an action does not touch are carried over by identity, which is
how the live session decides what to write back to the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ..core.clock import utcnow
from ..core.config import settings as app_settings
from ..domain.errors import NotFound, ValidationFailure
from ..domain.ids import IdFactory, create_id
from ..domain.models import (
    CLOCK_TIME_RE,
    Actor,
    AdminAppointmentRecord,
    AdminQuestion,
    AdminTest,
    AdminUserRecord,
    AppointmentStatus,
    ExamSettings,
    QuizHistoryRecord,
    SentNotificationLog,
)
from ..domain.schemas import AdminQuestionInput, AdminTestInput
from ..scheduling.booking import apply_reschedule, plan_reschedule
from ..storage.store import LOG_CAP


@dataclass(frozen=True)
class AdminState:
    tests: Tuple[AdminTest, ...] = ()
    settings: ExamSettings = field(default_factory=ExamSettings)
    users: Tuple[AdminUserRecord, ...] = ()
    appointments: Tuple[AdminAppointmentRecord, ...] = ()
    sent_notifications: Tuple[SentNotificationLog, ...] = ()
    quiz_history: Tuple[QuizHistoryRecord, ...] = ()


# Actions


@dataclass(frozen=True)
class Hydrate:
    state: AdminState


@dataclass(frozen=True)
class CreateTest:
    data: AdminTestInput


@dataclass(frozen=True)
class UpdateTest:
    id: str
    data: AdminTestInput


@dataclass(frozen=True)
class DeleteTest:
    id: str


@dataclass(frozen=True)
class UpdateSettings:
    settings: ExamSettings


@dataclass(frozen=True)
class ToggleUserBlock:
    id: str


@dataclass(frozen=True)
class SetAppointmentStatus:
    id: str
    status: AppointmentStatus
    reason: Optional[str] = None
    admin_note: Optional[str] = None
    cancelled_by: Optional[Actor] = None


@dataclass(frozen=True)
class PatchAppointment:
    id: str
    patch: Mapping[str, Any]


@dataclass(frozen=True)
class RescheduleAppointment:
    id: str
    date: date
    slot_start: str
    slot_end: str
    actor: Actor = Actor.admin


@dataclass(frozen=True)
class LogSentNotification:
    entry: SentNotificationLog


AdminAction = Union[
    Hydrate,
    CreateTest,
    UpdateTest,
    DeleteTest,
    UpdateSettings,
    ToggleUserBlock,
    SetAppointmentStatus,
    PatchAppointment,
    RescheduleAppointment,
    LogSentNotification,
]


# Validation


def validate_test_input(data: AdminTestInput) -> Optional[str]:
    """Return the first problem with a test editor payload, or None."""
    if not data.title.strip():
        return "Test title is required."
    if not 1 <= data.duration_minutes <= 180:
        return "Test duration must be between 1 and 180 minutes."
    if not 1 <= data.passing_score <= 100:
        return "Passing score must be between 1 and 100."
    if not data.questions:
        return "Add at least one question."
    for number, question in enumerate(data.questions, start=1):
        if not question.text.strip():
            return f"Question {number} has no text."
        if not question.options or any(not option.strip() for option in question.options):
            return f"Question {number} must have all options filled in."
        if not 0 <= question.correct_answer < len(question.options):
            return f"Select the correct option for question {number}."
    return None


SETTINGS_BOUNDS = (
    ("test_duration_minutes", 1, 180),
    ("passing_threshold", 1, 100),
    ("appointments_per_day", 1, None),
    ("appointment_lead_time_hours", 0, 720),
    ("max_reschedules_per_user", 0, 20),
    ("rejection_cooldown_days", 0, 365),
)


def validate_settings(settings: ExamSettings) -> Optional[str]:
    for name, low, high in SETTINGS_BOUNDS:
        value = getattr(settings, name)
        if value < low or (high is not None and value > high):
            limit = f"between {low} and {high}" if high is not None else f"at least {low}"
            return f"{name.replace('_', ' ').capitalize()} must be {limit}."
    for override in settings.capacity_overrides:
        if override.appointments_per_day < 1:
            return f"Capacity for {override.date.isoformat()} must be at least 1."
    for override in settings.slot_overrides:
        if not override.slots:
            return f"Slot override for {override.date.isoformat()} has no slots."
        for slot in override.slots:
            if not _valid_interval(slot.start_time, slot.end_time):
                return f"Invalid slot {slot.interval} on {override.date.isoformat()}."
    return None


def _valid_interval(start: str, end: str) -> bool:
    return bool(CLOCK_TIME_RE.match(start) and CLOCK_TIME_RE.match(end)) and start < end


def normalize_questions(questions: Sequence[AdminQuestionInput], test_id: str) -> List[AdminQuestion]:
    return [
        AdminQuestion(
            id=question.id or f"{test_id}-q-{index}",
            text=question.text.strip(),
            options=[option.strip() for option in question.options],
            correct_answer=question.correct_answer,
        )
        for index, question in enumerate(questions, start=1)
    ]


def _index_of(items: Sequence[Any], item_id: str, kind: str) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    raise NotFound(kind, item_id)


def _replace_at(items: Tuple[Any, ...], index: int, item: Any) -> Tuple[Any, ...]:
    return items[:index] + (item,) + items[index + 1 :]


PATCHABLE_FIELDS = frozenset(AdminAppointmentRecord.model_fields) - {"id", "created_at"}
FIELD_BY_ALIAS = {info.alias or name: name for name, info in AdminAppointmentRecord.model_fields.items()}


def apply(
    state: AdminState,
    action: AdminAction,
    now: Optional[datetime] = None,
    new_id: IdFactory = create_id,
    tz=None,
) -> AdminState:
    now = now or utcnow()

    if isinstance(action, Hydrate):
        return action.state

    if isinstance(action, CreateTest):
        problem = validate_test_input(action.data)
        if problem:
            raise ValidationFailure(problem, field="test")
        test_id = new_id("test")
        test = AdminTest(
            id=test_id,
            title=action.data.title.strip(),
            description=action.data.description.strip(),
            duration_minutes=action.data.duration_minutes,
            passing_score=action.data.passing_score,
            questions=normalize_questions(action.data.questions, test_id),
            created_at=now,
            updated_at=now,
        )
        return replace(state, tests=(test,) + state.tests)

    if isinstance(action, UpdateTest):
        index = _index_of(state.tests, action.id, "test")
        problem = validate_test_input(action.data)
        if problem:
            raise ValidationFailure(problem, field="test")
        current = state.tests[index]
        updated = current.model_copy(
            update={
                "title": action.data.title.strip(),
                "description": action.data.description.strip(),
                "duration_minutes": action.data.duration_minutes,
                "passing_score": action.data.passing_score,
                "questions": normalize_questions(action.data.questions, current.id),
                "updated_at": now,
            }
        )
        return replace(state, tests=_replace_at(state.tests, index, updated))

    if isinstance(action, DeleteTest):
        index = _index_of(state.tests, action.id, "test")
        return replace(state, tests=state.tests[:index] + state.tests[index + 1 :])

    if isinstance(action, UpdateSettings):
        problem = validate_settings(action.settings)
        if problem:
            raise ValidationFailure(problem, field="settings")
        return replace(state, settings=action.settings)

    if isinstance(action, ToggleUserBlock):
        index = _index_of(state.users, action.id, "user")
        user = state.users[index]
        return replace(
            state,
            users=_replace_at(state.users, index, user.model_copy(update={"is_blocked": not user.is_blocked})),
        )

    if isinstance(action, SetAppointmentStatus):
        index = _index_of(state.appointments, action.id, "appointment")
        status = AppointmentStatus(action.status)
        update = {
            "status": status,
            "status_reason": (action.reason or "").strip() or None,
            "cancelled_by": Actor(action.cancelled_by or Actor.admin)
            if status == AppointmentStatus.cancelled
            else None,
            "updated_at": now,
        }
        if action.admin_note is not None:
            update["admin_note"] = action.admin_note.strip() or None
        updated = state.appointments[index].model_copy(update=update)
        return replace(state, appointments=_replace_at(state.appointments, index, updated))

    if isinstance(action, PatchAppointment):
        index = _index_of(state.appointments, action.id, "appointment")
        patch = {FIELD_BY_ALIAS.get(key, key): value for key, value in action.patch.items()}
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationFailure(f"Unknown appointment fields: {', '.join(sorted(unknown))}.", field="patch")
        current = state.appointments[index]
        try:
            updated = AdminAppointmentRecord.model_validate(
                {**current.model_dump(), **patch, "updated_at": now}
            )
        except ValidationError as exc:
            raise ValidationFailure(f"Invalid appointment patch: {exc.errors()[0]['msg']}.", field="patch") from exc
        if {"slot_start", "slot_end"} & set(patch) and not _valid_interval(updated.slot_start, updated.slot_end):
            raise ValidationFailure("Slot times must be HH:MM with the start before the end.", field="patch")
        limit = state.settings.max_reschedules_per_user
        if "reschedule_count" in patch and not 0 <= updated.reschedule_count <= limit:
            raise ValidationFailure(f"Reschedule count must be between 0 and {limit}.", field="patch")
        return replace(state, appointments=_replace_at(state.appointments, index, updated))

    if isinstance(action, RescheduleAppointment):
        closed, replacement = plan_reschedule(
            state.settings,
            state.appointments,
            action.id,
            action.date,
            action.slot_start,
            action.slot_end,
            action.actor,
            now,
            tz or app_settings.timezone,
            new_id,
        )
        return replace(state, appointments=tuple(apply_reschedule(state.appointments, closed, replacement)))

    if isinstance(action, LogSentNotification):
        return replace(state, sent_notifications=((action.entry,) + state.sent_notifications)[:LOG_CAP])

    raise TypeError(f"Unsupported admin action: {action!r}")
