"""Candidate-facing booking endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from ..domain.errors import BookingError, NotFound
from ..domain.schemas import AppointmentRequest, RescheduleRequest
from ..scheduling.booking import BookingService
from ..storage.store import Store
from .deps import get_booking, get_store

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _booking_error(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=400, detail={"field": exc.field, "message": exc.message})


@router.post("", status_code=201)
def book(
    body: AppointmentRequest,
    booking: BookingService = Depends(get_booking),
    store: Store = Depends(get_store),
) -> dict:
    session = store.read_session()
    try:
        appointment = booking.book(body.to_booking(session.email if session else None))
    except BookingError as exc:
        raise _booking_error(exc) from exc
    return appointment.dump()


@router.post("/{appointment_id}/reschedule")
def reschedule(
    appointment_id: str,
    body: RescheduleRequest,
    booking: BookingService = Depends(get_booking),
    store: Store = Depends(get_store),
) -> dict:
    session = store.read_session()
    owner = body.user_email or (session.email if session else None)
    try:
        appointment = booking.reschedule(appointment_id, body.date, body.slot_start, body.slot_end, owner)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BookingError as exc:
        raise _booking_error(exc) from exc
    return appointment.dump()
