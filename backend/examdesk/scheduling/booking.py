"""Booking and rescheduling of exam appointments.

``plan_booking`` and ``plan_reschedule`` are pure: they validate against the
rules engine and return the records to store. ``BookingService`` is the
candidate-facing writer that reads the latest state, plans, writes the
``appointments`` collection and sends the notifications.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from ..domain.errors import BookingError, NotFound
from ..domain.ids import IdFactory, create_id
from ..domain.models import (
    Actor,
    AdminAppointmentRecord,
    AppointmentStatus,
    ExamSettings,
    TimeSlot,
)
from . import rules

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
MIN_CONTACT_LENGTH = 6
RESCHEDULED_REASON = "Rescheduled"


@dataclass(frozen=True)
class BookingRequest:
    full_name: str
    id_or_phone: str
    date: date
    slot_id: Optional[str] = None
    slot_start: Optional[str] = None
    slot_end: Optional[str] = None
    user_email: Optional[str] = None


def _pick_slot(
    settings: ExamSettings,
    appointments: Sequence[AdminAppointmentRecord],
    day: date,
    slot_id: Optional[str],
    slot_start: Optional[str],
    slot_end: Optional[str],
    exclude_id: Optional[str] = None,
) -> TimeSlot:
    slots = rules.available_slots(settings, appointments, day, exclude_id=exclude_id)
    slot = rules.find_slot(slots, slot_id, slot_start, slot_end)
    if slot is None:
        raise BookingError("Please select one of the listed time slots.", field="slot")
    if not slot.available:
        raise BookingError("The selected time slot is no longer available.", field="slot")
    return slot


def _check_day(settings: ExamSettings, day: date) -> None:
    if not rules.is_allowed_day(day):
        raise BookingError("Please select a Monday, Wednesday or Friday.", field="date")
    entry = rules.blocked_entry(settings, day)
    if entry is not None:
        note = f" ({entry.note})" if entry.note else ""
        raise BookingError(f"The selected day is not available for exams{note}.", field="date")


def _check_lead_time(settings: ExamSettings, day: date, slot: TimeSlot, now: datetime, tz) -> None:
    exam_at = rules.exam_datetime(day, slot.start_time, tz)
    if not rules.lead_time_satisfied(settings, exam_at, now):
        raise BookingError(
            f"Appointments must be made at least {settings.appointment_lead_time_hours} hours in advance.",
            field="slot",
        )


def plan_booking(
    settings: ExamSettings,
    appointments: Sequence[AdminAppointmentRecord],
    request: BookingRequest,
    now: datetime,
    tz,
    new_id: IdFactory = create_id,
    code: Optional[str] = None,
) -> AdminAppointmentRecord:
    """Validate ``request`` and return the new pending appointment."""
    full_name = request.full_name.strip()
    contact = request.id_or_phone.strip()
    if len(full_name) < MIN_NAME_LENGTH:
        raise BookingError("Full name must have at least 3 characters.", field="full_name")
    if len(contact) < MIN_CONTACT_LENGTH:
        raise BookingError("Please enter a valid ID number or phone number.", field="id_or_phone")

    day = request.date
    _check_day(settings, day)

    cooldown_end = rules.rejection_cooldown_until(settings, appointments, request.user_email, contact)
    if cooldown_end is not None and now < cooldown_end:
        raise BookingError(
            f"A recent request was rejected; you can book again after {cooldown_end:%Y-%m-%d %H:%M} UTC.",
            field="date",
        )

    capacity = rules.daily_capacity(settings, day)
    if len(rules.occupying_appointments(appointments, day)) >= capacity:
        raise BookingError(f"The daily limit of {capacity} appointments has been reached.", field="date")

    slot = _pick_slot(settings, appointments, day, request.slot_id, request.slot_start, request.slot_end)
    _check_lead_time(settings, day, slot, now, tz)

    return AdminAppointmentRecord(
        id=new_id("appointment"),
        appointment_code=code or rules.generate_appointment_code(now),
        full_name=full_name,
        id_or_phone=contact,
        user_email=(request.user_email or "").strip() or None,
        date=day,
        slot_start=slot.start_time,
        slot_end=slot.end_time,
        status=AppointmentStatus.pending,
        created_at=now,
    )


def plan_reschedule(
    settings: ExamSettings,
    appointments: Sequence[AdminAppointmentRecord],
    appointment_id: str,
    day: date,
    slot_start: str,
    slot_end: str,
    actor: Actor,
    now: datetime,
    tz,
    new_id: IdFactory = create_id,
) -> Tuple[AdminAppointmentRecord, AdminAppointmentRecord]:
    """Return ``(closed_original, replacement)`` for moving an appointment.

    The original is cancelled so it stops holding capacity; the replacement
    carries the same code and status, links back to the original and counts
    one more reschedule.
    """
    original = next((a for a in appointments if a.id == appointment_id), None)
    if original is None:
        raise NotFound("appointment", appointment_id)
    if not original.is_occupying:
        raise BookingError("Only pending or approved appointments can be rescheduled.", field="status")
    if not rules.can_reschedule(settings, original):
        raise BookingError(
            f"The limit of {settings.max_reschedules_per_user} reschedules has been reached.",
            field="reschedule_count",
        )

    _check_day(settings, day)
    slot = _pick_slot(settings, appointments, day, None, slot_start, slot_end, exclude_id=original.id)
    if Actor(actor) == Actor.user:
        _check_lead_time(settings, day, slot, now, tz)

    closed = original.model_copy(
        update={
            "status": AppointmentStatus.cancelled,
            "status_reason": RESCHEDULED_REASON,
            "cancelled_by": Actor(actor),
            "updated_at": now,
        }
    )
    replacement = original.model_copy(
        update={
            "id": new_id("appointment"),
            "date": day,
            "slot_start": slot.start_time,
            "slot_end": slot.end_time,
            "status_reason": None,
            "cancelled_by": None,
            "previous_appointment_id": original.id,
            "reschedule_count": original.reschedule_count + 1,
            "created_at": now,
            "updated_at": now,
        }
    )
    return closed, replacement


def apply_reschedule(
    appointments: Sequence[AdminAppointmentRecord],
    closed: AdminAppointmentRecord,
    replacement: AdminAppointmentRecord,
) -> List[AdminAppointmentRecord]:
    updated = [closed if a.id == closed.id else a for a in appointments]
    return [replacement, *updated]


class BookingService:
    """Candidate-side writer for the ``appointments`` collection."""

    def __init__(self, store, notifier, new_id: IdFactory = create_id) -> None:
        self.store = store
        self.notifier = notifier
        self.new_id = new_id

    def book(self, request: BookingRequest) -> AdminAppointmentRecord:
        settings = self.store.read_settings()
        appointments = self.store.read_appointments()
        now = self.store.clock()
        appointment = plan_booking(settings, appointments, request, now, self.store.tz, self.new_id)
        self.store.write_appointments([appointment, *appointments])
        logger.info(
            "Appointment booked",
            extra={"appointment_id": appointment.id, "action": "appointment/create"},
        )
        self.notifier.notify_appointment_created(appointment)
        return appointment

    def reschedule(
        self,
        appointment_id: str,
        day: date,
        slot_start: str,
        slot_end: str,
        user_email: Optional[str] = None,
    ) -> AdminAppointmentRecord:
        """Move the caller's own appointment; ``user_email`` must match when given."""
        settings = self.store.read_settings()
        appointments = self.store.read_appointments()
        if user_email:
            owned = next((a for a in appointments if a.id == appointment_id), None)
            if owned is not None and (owned.user_email or "").lower() != user_email.strip().lower():
                raise NotFound("appointment", appointment_id)
        now = self.store.clock()
        closed, replacement = plan_reschedule(
            settings,
            appointments,
            appointment_id,
            day,
            slot_start,
            slot_end,
            Actor.user,
            now,
            self.store.tz,
            self.new_id,
        )
        self.store.write_appointments(apply_reschedule(appointments, closed, replacement))
        logger.info(
            "Appointment rescheduled by candidate",
            extra={"appointment_id": replacement.id, "action": "appointment/reschedule"},
        )
        self.notifier.notify_appointment_rescheduled(replacement, notify_admins=True)
        return replacement
