"""Back-office endpoints. Every mutation goes through the admin panel."""

from datetime import date
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Response

from ..admin.panel import AdminPanel
from ..domain.models import ExamSettings
from ..domain.schemas import (
    AdminTestInput,
    DayConfigRequest,
    RescheduleRequest,
    SendNotificationInput,
    StatusChangeRequest,
)
from .deps import get_panel, unwrap

router = APIRouter(prefix="/admin", tags=["admin"])


def _find(items, item_id: str):
    return next(item for item in items if item.id == item_id)


@router.get("/state")
def admin_state(panel: AdminPanel = Depends(get_panel)) -> Dict[str, Any]:
    state = panel.state
    return {
        "tests": [test.dump() for test in state.tests],
        "settings": state.settings.dump(),
        "users": [user.dump() for user in state.users],
        "appointments": [appointment.dump() for appointment in state.appointments],
        "sentNotifications": [entry.dump() for entry in state.sent_notifications],
        "quizHistory": [entry.dump() for entry in state.quiz_history],
    }


@router.post("/tests", status_code=201)
def create_test(body: AdminTestInput, panel: AdminPanel = Depends(get_panel)) -> dict:
    result = unwrap(panel.create_test(body))
    return _find(panel.state.tests, result.entity_id).dump()


@router.put("/tests/{test_id}")
def update_test(test_id: str, body: AdminTestInput, panel: AdminPanel = Depends(get_panel)) -> dict:
    unwrap(panel.update_test(test_id, body))
    return _find(panel.state.tests, test_id).dump()


@router.delete("/tests/{test_id}", status_code=204)
def delete_test(test_id: str, panel: AdminPanel = Depends(get_panel)) -> Response:
    unwrap(panel.delete_test(test_id))
    return Response(status_code=204)


@router.put("/settings")
def update_settings(body: ExamSettings, panel: AdminPanel = Depends(get_panel)) -> dict:
    unwrap(panel.update_settings(body))
    return panel.state.settings.dump()


@router.put("/days/{day}")
def configure_day(day: date, body: DayConfigRequest, panel: AdminPanel = Depends(get_panel)) -> dict:
    unwrap(panel.configure_day(day, **body.model_dump()))
    return panel.state.settings.dump()


@router.post("/users/{user_id}/toggle-block")
def toggle_user_block(user_id: str, panel: AdminPanel = Depends(get_panel)) -> dict:
    unwrap(panel.toggle_user_blocked(user_id))
    return _find(panel.state.users, user_id).dump()


@router.post("/appointments/{appointment_id}/status")
def change_status(
    appointment_id: str, body: StatusChangeRequest, panel: AdminPanel = Depends(get_panel)
) -> dict:
    unwrap(
        panel.update_appointment_status(
            appointment_id, body.status, body.reason, body.admin_note, body.cancelled_by
        )
    )
    return _find(panel.state.appointments, appointment_id).dump()


@router.patch("/appointments/{appointment_id}")
def patch_appointment(
    appointment_id: str,
    patch: Dict[str, Any] = Body(...),
    panel: AdminPanel = Depends(get_panel),
) -> dict:
    unwrap(panel.update_appointment(appointment_id, patch))
    return _find(panel.state.appointments, appointment_id).dump()


@router.post("/appointments/{appointment_id}/reschedule")
def reschedule(
    appointment_id: str, body: RescheduleRequest, panel: AdminPanel = Depends(get_panel)
) -> dict:
    result = unwrap(panel.reschedule_appointment(appointment_id, body.date, body.slot_start, body.slot_end))
    return _find(panel.state.appointments, result.entity_id).dump()


@router.post("/notifications", status_code=201)
def send_notification(body: SendNotificationInput, panel: AdminPanel = Depends(get_panel)) -> dict:
    result = unwrap(panel.send_notification(body))
    return {"id": result.entity_id, "recipientCount": result.recipient_count}
