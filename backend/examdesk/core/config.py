"""Application configuration utilities."""

from __future__ import annotations

import os
from functools import lru_cache

import pytz
from pydantic import BaseModel


class Settings(BaseModel):
    DATA_DIR: str = ".examdesk-data"
    STORAGE_BACKEND: str = "memory"
    LOG_LEVEL: str = "INFO"
    EXAM_TZ: str = "Europe/Chisinau"
    BUILTIN_ADMIN_EMAIL: str = "admin@electoral.md"

    @property
    def timezone(self):
        return pytz.timezone(self.EXAM_TZ)


@lru_cache
def get_settings() -> Settings:
    return Settings(
        DATA_DIR=os.getenv("DATA_DIR", ".examdesk-data"),
        STORAGE_BACKEND=os.getenv("STORAGE_BACKEND", "memory").strip().lower(),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        EXAM_TZ=os.getenv("EXAM_TZ", "Europe/Chisinau"),
        BUILTIN_ADMIN_EMAIL=os.getenv("BUILTIN_ADMIN_EMAIL", "admin@electoral.md"),
    )


settings = get_settings()
