"""Wall-clock access, injectable for tests."""

from datetime import datetime
from typing import Callable

import pytz

UTC = pytz.UTC

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=UTC)
