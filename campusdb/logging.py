"""Loguru configuration for campusdb.

Failures are logged once, where they are detected, so each record has to
say which operation and which table or procedure it belongs to:

- ``operation_var`` holds the running operation (set by ``operation_context``)
- ``entity`` is bound per call with ``logger.bind(entity=...)``
- ``request_id`` / ``user_id`` are optional caller context

The console format prints ``operation/entity`` next to the level. With
``json_logs`` every record is a single JSON object carrying the same fields.

Example:
    >>> from campusdb.logging import logger, operation_context
    >>> with operation_context("fetch_friends"):
    ...     logger.bind(entity="friendships").warning("No rows")
    12:00:00.000 | WARNING  | fetch_friends/friendships | No rows
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from campusdb.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[scope]}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time} | {level} | {extra[scope]} | {message}"


# =============================================================================
# Record Patching
# =============================================================================


def _scope(record: dict[str, Any]) -> str:
    operation = operation_var.get()
    entity = record["extra"].get("entity")
    if operation and entity:
        return f"{operation}/{entity}"
    return operation or entity or f"{record['name']}:{record['function']}"


def serialize(record: dict[str, Any]) -> str:
    """Render a record as one JSON line.

    Context variables are included when set; values bound with
    ``logger.bind()`` are merged in as top-level keys.
    """
    payload: dict[str, Any] = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "source": f"{record['name']}:{record['function']}:{record['line']}",
    }
    payload.update({k: v for k, v in get_request_context().items() if v})
    payload.update({k: v for k, v in record["extra"].items() if k != "scope"})

    if exc := record["exception"]:
        payload["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }

    return json.dumps(payload, default=str)


def patching(record: dict[str, Any]) -> None:
    """Attach the scope label and the JSON rendering to ``record``."""
    record["extra"]["scope"] = _scope(record)
    record["serialized"] = serialize(record)


def _json_format(record: dict[str, Any]) -> str:
    return "{serialized}\n"


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Replace Loguru's handlers with the campusdb sinks.

    Args:
        level: Minimum log level
        json_logs: Emit JSON lines instead of the console format
        log_file: Also write to this file (rotated at 50 MB, kept 14 days)
        colorize: Colour the console format

    Returns:
        The patched logger every campusdb module logs through
    """
    loguru_logger.remove()
    loguru_logger.configure(extra={"scope": "-"})
    patched = loguru_logger.patch(patching)

    patched.add(
        sys.stderr,
        level=level,
        format=_json_format if json_logs else CONSOLE_FORMAT,
        colorize=colorize and not json_logs,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched.add(
            log_file,
            level=level,
            format=_json_format if json_logs else FILE_FORMAT,
            rotation="50 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
        )

    return patched


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.log_file,
    colorize=not settings.log_json,
)


# =============================================================================
# Context Helpers
# =============================================================================


def set_request_context(
    request_id: str | None = None,
    user_id: str | None = None,
    operation: str | None = None,
) -> None:
    """Set caller context for the current task; ``None`` leaves a value as is."""
    if request_id is not None:
        request_id_var.set(request_id)
    if user_id is not None:
        user_id_var.set(user_id)
    if operation is not None:
        operation_var.set(operation)


def clear_request_context() -> None:
    request_id_var.set(None)
    user_id_var.set(None)
    operation_var.set(None)


def get_request_context() -> dict[str, str | None]:
    return {
        "request_id": request_id_var.get(),
        "user_id": user_id_var.get(),
        "operation": operation_var.get(),
    }


@contextmanager
def operation_context(operation: str) -> Iterator[None]:
    """Scope ``operation_var`` to a block, restoring the previous value on exit.

    Tasks created inside the block copy the context, so fan-out lookups log
    under the operation that spawned them.
    """
    token = operation_var.set(operation)
    try:
        yield
    finally:
        operation_var.reset(token)


__all__ = [
    "logger",
    "request_id_var",
    "user_id_var",
    "operation_var",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "operation_context",
    "setup_logging",
    "serialize",
]
