"""Logging setup for import runs.

Plain text on a terminal; JSON lines (python-json-logger) when the run's
output is collected by a log pipeline. Every record carries the name of the
pipeline stage it was emitted from, including records from the API clients
and from tasks a stage fans out to.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

# Set by Pipeline.run for the duration of each stage
current_stage: ContextVar[str | None] = ContextVar("current_stage", default=None)


class StageFilter(logging.Filter):
    """Inject the running stage name into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.stage = current_stage.get() or "-"
        return True


class ImportJsonFormatter(JsonFormatter):
    """JSON formatter that reports the level as ``severity``.

    ``stage`` is dropped outside of a pipeline run instead of being sent
    as a placeholder.
    """

    def add_fields(
        self,
        log_record: dict[str, object],
        record: logging.LogRecord,
        message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["severity"] = record.levelname
        log_record.pop("levelname", None)
        if log_record.get("stage") in (None, "-"):
            log_record.pop("stage", None)


def setup_logging(*, level: str = "INFO", json: bool = False) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.addFilter(StageFilter())
    if json:
        handler.setFormatter(ImportJsonFormatter(
            fmt="%(asctime)s %(message)s %(name)s %(stage)s",
            rename_fields={"name": "logger", "asctime": "time"},
        ))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s [%(stage)s] %(name)s  %(message)s",
            datefmt="%H:%M:%S",
        ))

    root.addHandler(handler)

    # Request lines from httpx are noise next to the pipeline's own logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
