"""Scheduling rules for exam appointments.

Everything here is a pure function of ``ExamSettings``, the current
appointment list and a calendar date. Capacity is accounted per day: once a
day holds as many pending/approved appointments as its capacity, none of its
slots can be booked, whatever their individual state.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Sequence, Union

from ..core.clock import utcnow
from ..domain.models import (
    DEFAULT_TIME_SLOTS,
    AdminAppointmentRecord,
    AppointmentStatus,
    BlockedDate,
    ExamSettings,
    TimeSlot,
)

DateLike = Union[date, str]

# Monday, Wednesday, Friday
ALLOWED_WEEKDAYS = frozenset({0, 2, 4})
DEFAULT_LOOKAHEAD_DAYS = 180
DEFAULT_ELIGIBLE_COUNT = 14


def as_day(value: DateLike) -> date:
    """Accept a ``date`` or a ``YYYY-MM-DD`` key."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def is_allowed_day(day: DateLike) -> bool:
    return as_day(day).weekday() in ALLOWED_WEEKDAYS


def blocked_entry(settings: ExamSettings, day: DateLike) -> Optional[BlockedDate]:
    key = as_day(day)
    return next((item for item in settings.blocked_dates if item.date == key), None)


def is_date_blocked(settings: ExamSettings, day: DateLike) -> bool:
    return blocked_entry(settings, day) is not None


def daily_capacity(settings: ExamSettings, day: DateLike) -> int:
    key = as_day(day)
    for item in settings.capacity_overrides:
        if item.date == key:
            return item.appointments_per_day
    return settings.appointments_per_day


def slot_template(settings: ExamSettings, day: DateLike) -> List[TimeSlot]:
    key = as_day(day)
    override = next((item for item in settings.slot_overrides if item.date == key), None)
    if override is None or not override.slots:
        return list(DEFAULT_TIME_SLOTS)
    return list(override.slots)


def appointments_on(
    appointments: Sequence[AdminAppointmentRecord],
    day: DateLike,
    exclude_id: Optional[str] = None,
) -> List[AdminAppointmentRecord]:
    key = as_day(day)
    return [
        appointment
        for appointment in appointments
        if appointment.date == key and appointment.id != exclude_id
    ]


def occupying_appointments(
    appointments: Sequence[AdminAppointmentRecord],
    day: DateLike,
    exclude_id: Optional[str] = None,
) -> List[AdminAppointmentRecord]:
    """Pending or approved appointments holding capacity on ``day``."""
    return [a for a in appointments_on(appointments, day, exclude_id) if a.is_occupying]


def available_slots(
    settings: ExamSettings,
    appointments: Sequence[AdminAppointmentRecord],
    day: DateLike,
    exclude_id: Optional[str] = None,
) -> List[TimeSlot]:
    """The day's slot template with ``available`` recomputed.

    ``exclude_id`` leaves one appointment out of the occupancy count, which is
    what a reschedule of that appointment needs.
    """
    occupying = occupying_appointments(appointments, day, exclude_id)
    taken = {appointment.interval for appointment in occupying}
    day_open = not is_date_blocked(settings, day) and len(occupying) < daily_capacity(settings, day)
    return [
        slot.model_copy(update={"available": day_open and slot.available and slot.interval not in taken})
        for slot in slot_template(settings, day)
    ]


def find_slot(
    slots: Sequence[TimeSlot],
    slot_id: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> Optional[TimeSlot]:
    for slot in slots:
        if slot_id is not None and slot.id == slot_id:
            return slot
        if slot_id is None and slot.start_time == start_time and slot.end_time == end_time:
            return slot
    return None


def exam_datetime(day: DateLike, slot_start: str, tz) -> datetime:
    """Aware datetime at which the slot starts in the exam time zone."""
    naive = datetime.combine(as_day(day), time.fromisoformat(slot_start))
    return tz.localize(naive)


def lead_time_satisfied(settings: ExamSettings, exam_at: datetime, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return exam_at - now >= timedelta(hours=settings.appointment_lead_time_hours)


def can_reschedule(settings: ExamSettings, appointment: AdminAppointmentRecord) -> bool:
    return (
        appointment.is_occupying
        and appointment.reschedule_count < settings.max_reschedules_per_user
    )


def rejection_cooldown_until(
    settings: ExamSettings,
    appointments: Sequence[AdminAppointmentRecord],
    user_email: Optional[str] = None,
    id_or_phone: Optional[str] = None,
) -> Optional[datetime]:
    """End of the booking cooldown after this person's latest rejection."""
    if settings.rejection_cooldown_days <= 0:
        return None
    email = (user_email or "").strip().lower()
    contact = (id_or_phone or "").strip()
    rejected_at = [
        appointment.updated_at or appointment.created_at
        for appointment in appointments
        if appointment.status == AppointmentStatus.rejected
        and (
            (email and (appointment.user_email or "").lower() == email)
            or (contact and appointment.id_or_phone.strip() == contact)
        )
    ]
    if not rejected_at:
        return None
    return max(rejected_at) + timedelta(days=settings.rejection_cooldown_days)


@dataclass(frozen=True)
class EligibleDay:
    day: date
    date_key: str
    blocked: bool
    blocked_note: Optional[str]
    capacity: int
    occupied: int
    remaining: int


class EligibleDates:
    """Allowed exam days from ``start`` up to ``until``, at most ``count`` of them.

    Iterating again starts over from ``start``; each pass reads the settings
    and appointments it was built with.
    """

    def __init__(
        self,
        settings: ExamSettings,
        appointments: Sequence[AdminAppointmentRecord],
        start: date,
        until: date,
        count: int,
    ) -> None:
        self.settings = settings
        self.appointments = list(appointments)
        self.start = start
        self.until = until
        self.count = count

    def __iter__(self) -> Iterator[EligibleDay]:
        produced = 0
        cursor = self.start
        while cursor <= self.until and produced < self.count:
            if is_allowed_day(cursor):
                capacity = daily_capacity(self.settings, cursor)
                occupied = len(occupying_appointments(self.appointments, cursor))
                entry = blocked_entry(self.settings, cursor)
                yield EligibleDay(
                    day=cursor,
                    date_key=cursor.isoformat(),
                    blocked=entry is not None,
                    blocked_note=entry.note if entry else None,
                    capacity=capacity,
                    occupied=occupied,
                    remaining=max(0, capacity - occupied),
                )
                produced += 1
            cursor += timedelta(days=1)


def next_eligible_dates(
    settings: ExamSettings,
    appointments: Sequence[AdminAppointmentRecord],
    start_date: Optional[DateLike] = None,
    max_date: Optional[DateLike] = None,
    count: int = DEFAULT_ELIGIBLE_COUNT,
    tz=None,
) -> EligibleDates:
    if start_date is None:
        now = utcnow()
        start = (now.astimezone(tz) if tz is not None else now).date()
    else:
        start = as_day(start_date)
    until = as_day(max_date) if max_date is not None else start + timedelta(days=DEFAULT_LOOKAHEAD_DAYS)
    return EligibleDates(settings, appointments, start, until, count)


def generate_appointment_code(now: Optional[datetime] = None, rng: random.Random = random) -> str:
    """Display code ``AP-<year>-<5 digits>``; uniqueness is not checked."""
    year = (now or utcnow()).year
    return f"AP-{year}-{rng.randint(10000, 99999)}"
