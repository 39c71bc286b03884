"""
Logging for engine runs.

Every recommendation batch and backtest runs under a short run ID held in a
context variable, so concurrent runs stay separable in the log stream:

    with bind_run_id() as run_id:
        logger.info("scoring")   # -> {"run_id": "<run_id>", ...}

Output is JSON lines (`log_format=json`) or one readable line per record
(`log_format=text`), chosen by settings unless overridden in `setup_logging`.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO, Any, Dict, Iterator, Optional

from .config import settings


run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

# Libraries that log every HTTP round trip at INFO
NOISY_LOGGERS = ("yfinance", "peewee", "urllib3")

_HANDLER_NAME = "tradelens"


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def bind_run_id(run_id: Optional[str] = None) -> Iterator[str]:
    """Tag every record logged inside the block with one run ID."""
    run_id = run_id or new_run_id()
    token = run_id_var.set(run_id)
    try:
        yield run_id
    finally:
        run_id_var.reset(token)


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            payload["run_id"] = run_id

        payload.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            payload["location"] = f"{record.filename}:{record.lineno} in {record.funcName}"

        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Readable single-line records; context fields trail as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        run_id = run_id_var.get()
        prefix = f"[{run_id[:8]}] " if run_id else ""
        stamp = _record_time(record).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{stamp} {record.levelname:8} {prefix}{record.name}: {record.getMessage()}"

        fields = {
            key: value
            for key, value in (getattr(record, "extra_fields", None) or {}).items()
            if key != "run_id"
        }
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """
    Install the tradelens handler on the root logger.

    Safe to call repeatedly: a handler installed by an earlier call is
    replaced, handlers owned by anyone else are left alone.
    """
    level_name = (level or settings.log_level).upper()
    fmt = (log_format or settings.log_format).lower()

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level_name)
    handler.setFormatter(StructuredFormatter() if fmt == "json" else TextFormatter())

    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler


def get_logger(name: str) -> logging.Logger:
    """Logger under the tradelens namespace."""
    return logging.getLogger(f"tradelens.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Attaches fixed context (and the active run ID) to every record."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        fields = dict(kwargs.get("extra") or {})
        fields.update(self.extra or {})
        run_id = run_id_var.get()
        if run_id:
            fields["run_id"] = run_id
        kwargs["extra"] = {"extra_fields": fields}
        return msg, kwargs
