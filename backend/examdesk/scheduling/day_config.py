"""Per-date overrides edited from the appointments back office."""

from __future__ import annotations

import re
from datetime import date
from typing import List, Optional

from ..domain.errors import DayConfigError
from ..domain.models import (
    CLOCK_TIME_RE,
    BlockedDate,
    CapacityOverride,
    ExamSettings,
    SlotOverride,
    TimeSlot,
)
from .rules import DateLike, as_day

SLOT_LINE_RE = re.compile(r"^(\d{2}:\d{2})\s*-\s*(\d{2}:\d{2})$")


def parse_slot_lines(text: str, day: DateLike) -> List[TimeSlot]:
    """Parse ``HH:MM-HH:MM`` lines into a sorted, de-duplicated slot list."""
    key = as_day(day).isoformat()
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        raise DayConfigError("Add at least one slot or turn the slot override off.", field="slots")

    by_interval = {}
    for index, line in enumerate(lines):
        match = SLOT_LINE_RE.match(line)
        if (
            not match
            or not all(CLOCK_TIME_RE.match(part) for part in match.groups())
            or match.group(1) >= match.group(2)
        ):
            raise DayConfigError(
                f"Invalid slot {line!r}; use lines of the form HH:MM-HH:MM.", field="slots"
            )
        start, end = match.groups()
        by_interval[f"{start}-{end}"] = TimeSlot(
            id=f"slot-{key}-{index + 1}", start_time=start, end_time=end
        )
    return [by_interval[interval] for interval in sorted(by_interval)]


def configure_day(
    settings: ExamSettings,
    day: DateLike,
    blocked: bool = False,
    note: Optional[str] = None,
    capacity: Optional[int] = None,
    slot_lines: Optional[str] = None,
    location: Optional[str] = None,
    room: Optional[str] = None,
) -> ExamSettings:
    """Settings with ``day``'s overrides replaced.

    ``capacity=None`` and ``slot_lines=None`` remove the respective override;
    ``blocked=False`` unblocks the day.
    """
    key: date = as_day(day)

    blocked_dates = [item for item in settings.blocked_dates if item.date != key]
    if blocked:
        blocked_dates.append(BlockedDate(date=key, note=(note or "").strip() or None))

    capacity_overrides = [item for item in settings.capacity_overrides if item.date != key]
    if capacity is not None:
        capacity_overrides.append(
            CapacityOverride(date=key, appointments_per_day=max(1, int(capacity)))
        )

    slot_overrides = [item for item in settings.slot_overrides if item.date != key]
    if slot_lines is not None:
        slot_overrides.append(SlotOverride(date=key, slots=parse_slot_lines(slot_lines, key)))

    return settings.model_copy(
        update={
            "appointment_location": (location or "").strip() or settings.appointment_location,
            "appointment_room": (room or "").strip() or settings.appointment_room,
            "blocked_dates": sorted(blocked_dates, key=lambda item: item.date),
            "capacity_overrides": sorted(capacity_overrides, key=lambda item: item.date),
            "slot_overrides": sorted(slot_overrides, key=lambda item: item.date),
        }
    )
