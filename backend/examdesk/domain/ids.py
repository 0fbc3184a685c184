"""Identifier helpers shared by the reducer, booking and notifications."""

import random
import time
from typing import Callable

IdFactory = Callable[[str], str]


def create_id(prefix: str) -> str:
    """Return ``<prefix>-<epoch millis>-<random suffix>``."""
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 99999)}"
