"""Shared fixtures: an in-memory store on a fixed clock."""

from datetime import datetime
import itertools
from pathlib import Path
import sys

import pytest
import pytz

sys.path.append(str(Path(__file__).resolve().parents[1]))
from examdesk.domain.models import AdminAppointmentRecord, AdminUserRecord  # noqa: E402
from examdesk.storage.backends import MemoryBackend  # noqa: E402
from examdesk.storage.store import Store  # noqa: E402

EXAM_TZ = pytz.timezone("Europe/Chisinau")
# Monday 2026-02-02, 10:00 in Chisinau
NOW = datetime(2026, 2, 2, 8, 0, tzinfo=pytz.UTC)


def sequential_ids():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


@pytest.fixture
def new_id():
    return sequential_ids()


@pytest.fixture
def store() -> Store:
    return Store(MemoryBackend(), tz=EXAM_TZ, clock=lambda: NOW)


@pytest.fixture
def make_appointment():
    counter = itertools.count(1)

    def build(day, slot_start="12:00", slot_end="12:30", **overrides) -> AdminAppointmentRecord:
        number = next(counter)
        values = dict(
            id=f"appt-{number}",
            appointment_code=f"AP-2026-{10000 + number}",
            full_name="Ion Popescu",
            id_or_phone=f"0691234{number:02d}",
            date=day,
            slot_start=slot_start,
            slot_end=slot_end,
            created_at=NOW,
        )
        values.update(overrides)
        return AdminAppointmentRecord(**values)

    return build


@pytest.fixture
def make_user():
    def build(number: int, role: str = "user", **overrides) -> AdminUserRecord:
        values = dict(
            id=f"user-{number}",
            email=f"user{number}@example.com",
            full_name=f"User Number {number}",
            role=role,
            created_at=NOW,
        )
        values.update(overrides)
        return AdminUserRecord(**values)

    return build
