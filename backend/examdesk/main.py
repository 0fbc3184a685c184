"""Application entry point."""

from typing import Optional

from fastapi import FastAPI

from .admin.panel import AdminPanel
from .api import api_router
from .core.config import settings
from .core.logging import RequestIDMiddleware, init_logging
from .notifications.fanout import Notifier
from .scheduling.booking import BookingService
from .storage.backends import backend_from_settings
from .storage.store import Store


def create_app(store: Optional[Store] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``store`` defaults to the backend selected by ``STORAGE_BACKEND``; tests
    pass their own in-memory store.
    """
    init_logging(settings.LOG_LEVEL)

    store = store or Store(backend_from_settings(settings))
    notifier = Notifier(store, builtin_admin=settings.BUILTIN_ADMIN_EMAIL)

    app = FastAPI(title="examdesk")
    app.state.store = store
    app.state.notifier = notifier
    app.state.panel = AdminPanel(store, notifier)
    app.state.booking = BookingService(store, notifier)
    app.add_middleware(RequestIDMiddleware)
    app.include_router(api_router)
    return app


app = create_app()
