"""Read-only availability endpoints used by the booking form."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..domain.schemas import EligibleDayOut
from ..scheduling import rules
from ..storage.store import Store
from .deps import get_store

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("/days", response_model=List[EligibleDayOut])
def eligible_days(
    start: Optional[date] = None,
    until: Optional[date] = None,
    count: int = Query(rules.DEFAULT_ELIGIBLE_COUNT, ge=1, le=60),
    store: Store = Depends(get_store),
) -> List[EligibleDayOut]:
    days = rules.next_eligible_dates(
        store.read_settings(), store.read_appointments(), start, until, count, tz=store.tz
    )
    return [
        EligibleDayOut(
            date=item.day,
            blocked=item.blocked,
            blocked_note=item.blocked_note,
            capacity=item.capacity,
            occupied=item.occupied,
            remaining=item.remaining,
        )
        for item in days
    ]


@router.get("/days/{day}/slots")
def day_slots(day: date, exclude_id: Optional[str] = None, store: Store = Depends(get_store)) -> dict:
    settings = store.read_settings()
    appointments = store.read_appointments()
    entry = rules.blocked_entry(settings, day)
    return {
        "date": day.isoformat(),
        "allowed": rules.is_allowed_day(day),
        "blocked": entry is not None,
        "blockedNote": entry.note if entry else None,
        "capacity": rules.daily_capacity(settings, day),
        "occupied": len(rules.occupying_appointments(appointments, day, exclude_id)),
        "slots": [slot.dump() for slot in rules.available_slots(settings, appointments, day, exclude_id)],
    }
