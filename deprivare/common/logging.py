"""JSON logging with stable schema."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from deprivare.common.constants import JSON_LOG_FIELDS
from deprivare.common.fs import ensure_dir
from deprivare.common.time_utils import utc_timestamp_iso

LOGGER_NAME = "deprivare"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "run_id": getattr(record, "run_id", None),
            "command": getattr(record, "command", None),
            "dataset": getattr(record, "dataset", None),
            "event": getattr(record, "event", None),
            "status": getattr(record, "status", None),
            "duration_ms": getattr(record, "duration_ms", None),
            "rows_in": getattr(record, "rows_in", None),
            "rows_out": getattr(record, "rows_out", None),
            "error_code": getattr(record, "error_code", None),
            "message": record.getMessage(),
        }
        for field in JSON_LOG_FIELDS:
            payload.setdefault(field, None)
        return json.dumps(payload, ensure_ascii=False)


def build_logger(run_id: str, level: str = "INFO", log_path: Path | None = None) -> logging.Logger:
    logger = logging.getLogger(f"{LOGGER_NAME}.{run_id}")
    logger.setLevel(level.upper())
    logger.handlers.clear()

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    logger.addHandler(stream)

    if log_path is not None:
        ensure_dir(log_path.parent)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(JsonLineFormatter())
        logger.addHandler(file_handler)

    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def log_event(logger: logging.Logger, message: str, **event_fields: Any) -> None:
    logger.info(message, extra=event_fields)
