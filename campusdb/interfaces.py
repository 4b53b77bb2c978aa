"""Protocol interfaces for dependency injection.

``CampusService`` only needs an object that can start table queries and
remote-procedure calls. ``supabase.AsyncClient`` satisfies these protocols
structurally, and so does the recording fake used in the test suite, so
neither has to inherit from anything.

Example:
    >>> from campusdb.interfaces import BackendClient
    >>> from supabase import AsyncClient
    >>> def accepts(client: BackendClient) -> None: ...
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class BackendResponse(Protocol):
    """Result of executing a query: the returned rows or procedure value."""

    data: Any


@runtime_checkable
class ExecutableQuery(Protocol):
    """A fully built request, ready to be sent.

    Filter/modifier methods (``eq``, ``or_``, ``in_``, ``order``, ``limit``,
    ``single``...) return another builder; ``execute`` performs the round trip
    and raises on transport or backend failure.
    """

    async def execute(self) -> BackendResponse:
        ...


@runtime_checkable
class BackendClient(Protocol):
    """Handle to the hosted database.

    Implementations must be safe to share across tasks; this layer never
    mutates the handle.
    """

    def table(self, table_name: str) -> Any:
        """Start a query against ``table_name``.

        Returns:
            Request builder exposing ``select``, ``insert``, ``update`` and
            ``delete``
        """
        ...

    def rpc(self, fn: str, params: dict[str, Any] | None = None) -> ExecutableQuery:
        """Prepare a remote-procedure call.

        Args:
            fn: Procedure name
            params: Named arguments

        Returns:
            Query whose ``execute`` performs the call
        """
        ...
