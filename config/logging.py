"""Single-line JSON log formatter, selected with LOG_FORMAT=json."""

from __future__ import annotations

import json
import logging

# Context fields passed through ``extra=`` by the riyaaz services.
CONTEXT_FIELDS = ("classroom_id", "student_id", "teacher_id")


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in CONTEXT_FIELDS:
            if hasattr(record, attr):
                entry[attr] = getattr(record, attr)
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)
