"""HTTP routers."""

from fastapi import APIRouter

from . import admin, appointments, health, inbox, schedule

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(schedule.router)
api_router.include_router(appointments.router)
api_router.include_router(admin.router)
api_router.include_router(inbox.router)
