"""
Structured logging for the data-access layer.

One JSON object per line on stdout. Commit, dispatch and health-probe
records share a small set of context fields (Unit of Work id, entity
type, event type, retry attempt, latency) so they can be joined later.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO


# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
})

CONTEXT_FIELDS = (
    "unit_of_work_id",
    "entity_type",
    "event_type",
    "attempt",
    "latency_ms",
)

# Library loggers held at WARNING whatever the root level is.
# SQL echo goes through Settings.echo_sql instead.
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "asyncio")

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
PLAIN_DATEFMT = "%Y-%m-%dT%H:%M:%S"


class JSONFormatter(logging.Formatter):
    """
    Render a LogRecord as a single JSON line.

    Keys: timestamp (ISO 8601, UTC), level, message, logger, then any
    context field that was set, the traceback under ``exception``, and
    finally whatever else the caller passed through ``extra=``. Values
    json cannot encode are stringified.

    Example output:
        {"timestamp": "2025-11-24T10:30:00.123456+00:00", "level": "DEBUG",
         "message": "Unit of work committed (2 staged rows)",
         "logger": "hybridrepo.repositories.unit_of_work", "unit_of_work_id": "3f2c..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = dict(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            message=record.getMessage(),
            logger=record.name,
        )

        payload.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)

        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            payload[key] = value

        return json.dumps(payload, default=str)


def _make_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter()
    return logging.Formatter(PLAIN_FORMAT, datefmt=PLAIN_DATEFMT)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route all logging to one stream handler on the root logger.

    Existing root handlers are dropped, so calling this twice does not
    duplicate output. Run it once at process start, typically with
    ``Settings.log_level`` and ``Settings.log_json``.

    Args:
        level: Level name; unknown names fall back to INFO
        json_format: JSON lines when True, a plain text layout otherwise
        stream: Target stream, stdout by default
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(_make_formatter(json_format))

    root = logging.getLogger()
    while root.handlers:
        root.removeHandler(root.handlers[0])
    root.addHandler(handler)
    root.setLevel(resolved)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    unit_of_work_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    event_type: Optional[str] = None,
    attempt: Optional[int] = None,
    **extra_fields: Any
) -> None:
    """
    Emit ``message`` at ``level`` with the context fields that are not None.

    Example:
        log_with_context(logger, "debug", "Unit of work committed",
                         unit_of_work_id=uow.id, entity_type="Order")
    """
    context = {
        "unit_of_work_id": unit_of_work_id,
        "entity_type": entity_type,
        "event_type": event_type,
        "attempt": attempt,
    }
    extra = {key: value for key, value in context.items() if value is not None}
    extra.update(extra_fields)

    logger.log(logging.getLevelName(level.upper()), message, extra=extra)
