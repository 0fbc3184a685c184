"""Pydantic models used for request and response bodies.

Business validation (ranges, required question text, ...) is performed by
the admin reducer and the booking rules so that the same messages reach
every caller; these models only fix the shape of the payloads.
"""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, EmailStr

from .models import Actor, AppointmentStatus, NotificationTarget
from ..scheduling.booking import BookingRequest


class AdminQuestionInput(BaseModel):
    """Question as submitted from the test editor.

    Example:
        >>> AdminQuestionInput(text="Q?", options=["a", "b", "c", "d"], correct_answer=1)
    """

    id: Optional[str] = None
    text: str
    options: List[str]
    correct_answer: int = 0

    class Config:
        frozen = True


class AdminTestInput(BaseModel):
    """Test editor payload used for both create and update.

    Example:
        >>> AdminTestInput(
        ...     title="Codul electoral",
        ...     questions=[AdminQuestionInput(text="Q?", options=["a", "b"], correct_answer=0)],
        ... )
    """

    title: str
    description: str = ""
    duration_minutes: int = 30
    passing_score: int = 70
    questions: List[AdminQuestionInput] = []

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "title": "Codul electoral",
                "description": "Capitolul I",
                "duration_minutes": 30,
                "passing_score": 70,
                "questions": [
                    {
                        "text": "Cine organizeaza alegerile?",
                        "options": ["CEC", "Guvernul", "Parlamentul", "Primaria"],
                        "correct_answer": 0,
                    }
                ],
            }
        }


class SendNotificationInput(BaseModel):
    """Manual notification sent from the back office.

    Example:
        >>> SendNotificationInput(target="all", title="Hello", message="Exam rooms changed")
    """

    target: NotificationTarget
    title: str
    message: str
    target_email: Optional[EmailStr] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {"target": "email", "title": "Reminder", "message": "Bring your ID", "target_email": "a@example.com"}
        }


class AppointmentRequest(BaseModel):
    """Candidate booking form.

    Either ``slot_id`` or the ``slot_start``/``slot_end`` pair selects the slot.
    """

    full_name: str
    id_or_phone: str
    date: dt.date
    slot_id: Optional[str] = None
    slot_start: Optional[str] = None
    slot_end: Optional[str] = None
    user_email: Optional[EmailStr] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "full_name": "Ion Popescu",
                "id_or_phone": "069123456",
                "date": "2026-02-09",
                "slot_id": "slot1",
            }
        }

    def to_booking(self, fallback_email: Optional[str] = None) -> BookingRequest:
        return BookingRequest(
            full_name=self.full_name,
            id_or_phone=self.id_or_phone,
            date=self.date,
            slot_id=self.slot_id,
            slot_start=self.slot_start,
            slot_end=self.slot_end,
            user_email=self.user_email or fallback_email,
        )


class RescheduleRequest(BaseModel):
    date: dt.date
    slot_start: str
    slot_end: str
    user_email: Optional[EmailStr] = None

    class Config:
        frozen = True


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus
    reason: Optional[str] = None
    admin_note: Optional[str] = None
    cancelled_by: Optional[Actor] = None

    class Config:
        frozen = True


class DayConfigRequest(BaseModel):
    """Overrides for one calendar date; omitted fields remove the override."""

    blocked: bool = False
    note: Optional[str] = None
    capacity: Optional[int] = None
    slot_lines: Optional[str] = None
    location: Optional[str] = None
    room: Optional[str] = None

    class Config:
        frozen = True


class EligibleDayOut(BaseModel):
    date: dt.date
    blocked: bool
    blocked_note: Optional[str] = None
    capacity: int
    occupied: int
    remaining: int
