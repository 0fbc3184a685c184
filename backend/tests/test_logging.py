"""Tests for JSON log formatting and configuration."""

import json
import logging
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))
from examdesk.core.config import Settings  # noqa: E402
from examdesk.core.logging import JsonFormatter, RequestIDFilter, request_id_ctx  # noqa: E402


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("examdesk.test", logging.INFO, __file__, 1, "Appointment %s", ("booked",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context_fields() -> None:
    token = request_id_ctx.set("req-1")
    try:
        record = _record(appointment_id="appointment-1", action="appointment/create", unrelated="x")
        RequestIDFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
    finally:
        request_id_ctx.reset(token)

    assert payload == {
        "level": "INFO",
        "logger": "examdesk.test",
        "message": "Appointment booked",
        "request_id": "req-1",
        "action": "appointment/create",
        "appointment_id": "appointment-1",
    }


def test_settings_expose_the_exam_time_zone() -> None:
    settings = Settings(EXAM_TZ="Europe/Bucharest")

    assert settings.timezone.zone == "Europe/Bucharest"
    assert Settings().STORAGE_BACKEND == "memory"
