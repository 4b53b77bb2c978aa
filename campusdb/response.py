"""Response normalization for backend calls.

Every data-access operation returns a :class:`Result`: ``data`` on success,
``error`` on failure, never both. Three kinds of failure are folded into
the same shape:

- transport failures (the call raised)
- backend-reported errors (the response carried a populated ``error``)
- procedure-level failures (a ``*_safe`` procedure answered
  ``{"success": false}``), surfaced as :class:`ProcedureError`

Mapping and validation errors raised while transforming rows are treated
like any other failure of the operation.

Example:
    >>> result = await handle_response(
    ...     client.table("tags").select("*").execute(),
    ...     operation="fetch_tags",
    ...     entity="tags",
    ... )
    >>> if result.ok:
    ...     print(len(result.data))
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from campusdb.interfaces import BackendClient, BackendResponse
from campusdb.logging import logger, operation_context
from campusdb.models import ProcedureEnvelope

T = TypeVar("T")


# =============================================================================
# Result Envelope
# =============================================================================


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Two-field outcome of a backend operation.

    ``error is None`` is the only success test; an empty list in ``data`` is
    a successful result.
    """

    data: T | None = None
    error: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> "Result[T]":
        return cls(data=data, error=None)

    @classmethod
    def failure(cls, error: Any) -> "Result[T]":
        return cls(data=None, error=error)


class ProcedureError(Exception):
    """A remote procedure ran but reported ``success: false``.

    Attributes:
        procedure: Name of the remote procedure
        message: Message reported by the procedure, or the caller's default
    """

    def __init__(self, message: str, procedure: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.procedure = procedure


# =============================================================================
# Normalizer
# =============================================================================


def error_message(error: Any) -> str:
    """Best-effort human readable message for any error value."""
    message = getattr(error, "message", None)
    if message:
        return str(message)
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(error)


def _split(response: BackendResponse | dict[str, Any] | None) -> tuple[Any, Any]:
    """Pull ``(data, error)`` out of an SDK response object or a plain dict."""
    if response is None:
        return None, None
    if isinstance(response, dict):
        return response.get("data"), response.get("error")
    return getattr(response, "data", None), getattr(response, "error", None)


async def handle_response(
    call: Awaitable[Any],
    *,
    operation: str,
    entity: str | None = None,
    transform: Callable[[Any], T] | None = None,
) -> Result[T]:
    """Await a backend call and normalize its outcome.

    Args:
        call: Pending backend call (usually ``builder.execute()``)
        operation: Operation name used in log records
        entity: Table or procedure the call targets
        transform: Optional mapping applied to ``data`` on success

    Returns:
        ``Result`` with either ``data`` or ``error`` populated. Never raises
        except for task cancellation.
    """
    log = logger.bind(entity=entity)

    with operation_context(operation):
        try:
            data, error = _split(await call)
            if error is not None:
                log.error(f"Backend error in {operation}: {error_message(error)}")
                return Result.failure(error)
            if transform is not None:
                data = transform(data)
            return Result.success(data)
        except asyncio.CancelledError:
            raise
        except ValidationError as exc:
            log.error(f"Unexpected row shape in {operation}: {exc.error_count()} error(s)")
            return Result.failure(exc)
        except Exception as exc:
            log.error(f"Request failed in {operation}: {error_message(exc)}")
            return Result.failure(exc)


# =============================================================================
# Safe Procedure Envelopes
# =============================================================================


def unwrap_envelope(
    payload: Any,
    *,
    procedure: str,
    default_message: str,
    allow_empty: bool = False,
) -> dict[str, Any]:
    """Validate a ``{success, error, ...}`` payload and return the rest.

    Args:
        payload: Value returned by the procedure
        procedure: Procedure name, for error messages
        default_message: Message used when the procedure reports no reason
        allow_empty: Treat a null result as success with an empty payload

    Raises:
        ProcedureError: If the procedure reported failure or returned nothing
        pydantic.ValidationError: If the payload is not an envelope
    """
    if payload is None:
        if allow_empty:
            return {}
        raise ProcedureError(f"{procedure} returned no result", procedure=procedure)

    envelope = ProcedureEnvelope.model_validate(payload)
    if not envelope.success:
        raise ProcedureError(envelope.error or default_message, procedure=procedure)
    return envelope.payload


async def call_procedure(
    client: BackendClient,
    procedure: str,
    params: dict[str, Any],
    *,
    operation: str,
    default_message: str,
    transform: Callable[[dict[str, Any]], T] | None = None,
    allow_empty: bool = False,
) -> Result[T]:
    """Invoke a ``*_safe`` procedure and surface both layers of failure.

    A transport or backend error is returned untouched without inspecting
    the payload. A ``success: false`` payload becomes a ``ProcedureError``
    carrying the procedure's message, or ``default_message`` if it gave none.

    Args:
        client: Backend handle
        procedure: Procedure name
        params: Named procedure arguments
        operation: Operation name used in log records
        default_message: Message used when the procedure reports no reason
        transform: Optional mapping applied to the unwrapped payload
        allow_empty: Accept a null result (procedures declared as returning void)

    Returns:
        ``Result`` carrying the payload (envelope minus ``success``/``error``)
    """
    raw = await handle_response(
        client.rpc(procedure, params).execute(),
        operation=operation,
        entity=procedure,
    )
    if not raw.ok:
        return Result.failure(raw.error)

    with operation_context(operation):
        try:
            payload = unwrap_envelope(
                raw.data,
                procedure=procedure,
                default_message=default_message,
                allow_empty=allow_empty,
            )
            return Result.success(transform(payload) if transform else payload)
        except ProcedureError as exc:
            logger.bind(entity=procedure).warning(
                f"{procedure} rejected {operation}: {exc.message}"
            )
            return Result.failure(exc)
        except ValidationError as exc:
            logger.bind(entity=procedure).error(
                f"Unexpected payload from {procedure}: {exc.error_count()} error(s)"
            )
            return Result.failure(exc)


__all__ = [
    "Result",
    "ProcedureError",
    "handle_response",
    "call_procedure",
    "unwrap_envelope",
    "error_message",
]
