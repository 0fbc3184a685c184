"""Request dependencies resolving the services attached to the app."""

from fastapi import HTTPException, Request

from ..admin.panel import AdminPanel, DispatchResult
from ..notifications.fanout import Notifier
from ..scheduling.booking import BookingService
from ..storage.store import Store


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_panel(request: Request) -> AdminPanel:
    return request.app.state.panel


def get_booking(request: Request) -> BookingService:
    return request.app.state.booking


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def unwrap(result: DispatchResult) -> DispatchResult:
    """Turn a rejected dispatch into the matching HTTP error."""
    if result.ok:
        return result
    raise HTTPException(status_code=404 if result.not_found else 422, detail=result.error)
