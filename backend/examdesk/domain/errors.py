"""Error types raised by the scheduling and admin core."""

from typing import Optional


class ValidationFailure(ValueError):
    """Input rejected by a business rule; ``message`` is shown to the user."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class BookingError(ValidationFailure):
    pass


class DayConfigError(ValidationFailure):
    pass


class NotFound(LookupError):
    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind} {item_id!r} not found")
        self.kind = kind
        self.item_id = item_id
