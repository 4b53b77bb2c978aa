"""Pytest configuration and shared fixtures for campusdb tests."""

import os

# Settings are built at import time; give the backend binding credentials.
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key-1234567890")
os.environ.setdefault("ENVIRONMENT", "testing")

import asyncio
import sys
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generator

import pytest
from loguru import logger

from campusdb.logging import clear_request_context
from campusdb.service import CampusService


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru() -> Generator[None, None, None]:
    """Reset loguru handlers and request context around each test."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()
    clear_request_context()


@pytest.fixture
def log_messages() -> list[str]:
    """Collect formatted log lines emitted during the test."""
    messages: list[str] = []
    logger.add(lambda m: messages.append(str(m)), level="DEBUG", format="{level} {message}")
    return messages


# =============================================================================
# Recording Fake Backend
# =============================================================================


@dataclass
class FakeResponse:
    """Stand-in for the SDK's ``APIResponse``."""

    data: Any = None
    error: Any = None


class FakeQuery:
    """Records every builder call and answers ``execute`` from the backend routes."""

    def __init__(self, backend: "FakeBackend", target: str, kind: str, params: Any = None):
        self.backend = backend
        self.target = target
        self.kind = kind
        self.params = params
        self.calls: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str) -> Callable[..., "FakeQuery"]:
        if name.startswith("_"):
            raise AttributeError(name)

        def _chain(*args: Any, **kwargs: Any) -> "FakeQuery":
            self.calls.append((name, args, kwargs))
            return self

        return _chain

    def args_for(self, name: str) -> list[tuple]:
        return [args for call, args, _ in self.calls if call == name]

    def kwargs_for(self, name: str) -> list[dict]:
        return [kwargs for call, _, kwargs in self.calls if call == name]

    @property
    def method_names(self) -> list[str]:
        return [call for call, _, _ in self.calls]

    @property
    def eq_filters(self) -> dict[str, Any]:
        return {args[0]: args[1] for args in self.args_for("eq")}

    async def execute(self) -> FakeResponse:
        self.backend.executed.append(self)
        await asyncio.sleep(self.backend.latency(self))
        return self.backend.respond(self)


class FakeBackend:
    """In-memory backend handle satisfying ``BackendClient``.

    Routes are registered per table/procedure name. Several routes for the
    same target are consumed in order; the last one is reused.
    """

    def __init__(self) -> None:
        self.routes: dict[str, list[Callable[[FakeQuery], FakeResponse]]] = defaultdict(list)
        self.executed: list[FakeQuery] = []
        self.latency: Callable[[FakeQuery], float] = lambda query: 0

    def route(
        self,
        target: str,
        data: Any = None,
        *,
        error: Any = None,
        raises: BaseException | None = None,
        handler: Callable[[FakeQuery], Any] | None = None,
    ) -> "FakeBackend":
        def _respond(query: FakeQuery) -> FakeResponse:
            if raises is not None:
                raise raises
            if handler is not None:
                result = handler(query)
                return result if isinstance(result, FakeResponse) else FakeResponse(data=result)
            return FakeResponse(data=data, error=error)

        self.routes[target].append(_respond)
        return self

    def respond(self, query: FakeQuery) -> FakeResponse:
        handlers = self.routes.get(query.target)
        if not handlers:
            raise AssertionError(f"Unexpected call to {query.target}")
        handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        return handler(query)

    def table(self, table_name: str) -> FakeQuery:
        return FakeQuery(self, table_name, "table")

    def rpc(self, fn: str, params: dict[str, Any] | None = None) -> FakeQuery:
        return FakeQuery(self, fn, "rpc", params)

    def executed_for(self, target: str) -> list[FakeQuery]:
        return [q for q in self.executed if q.target == target]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def service(backend: FakeBackend) -> CampusService:
    return CampusService(backend)


# =============================================================================
# Mock Row Fixtures
# =============================================================================


@pytest.fixture
def session_row() -> dict[str, Any]:
    """A ``sessions`` row with the creator join, as PostgREST returns it."""
    return {
        "id": 42,
        "title": "Linear algebra study group",
        "description": "Going over problem set 3",
        "lat": 12.9716,
        "lng": 77.5946,
        "session_type": "study",
        "emoji": "📚",
        "event_time": "2024-03-01T15:30:00+00:00",
        "duration": 90,
        "status": "active",
        "creator_id": "user-1",
        "participants": ["user-1", "user-2"],
        "participant_roles": {"user-1": "offering", "user-2": "seeking"},
        "privacy": "public",
        "visible_to_tags": ["tag-1"],
        "help_category": None,
        "skill_tag": "math",
        "expected_outcome": None,
        "return_time": None,
        "urgency": None,
        "flow": None,
        "created_at": "2024-03-01T12:00:00+00:00",
        "creator": {"username": "alice"},
    }


@pytest.fixture
def profile_row() -> dict[str, Any]:
    return {
        "id": "user-2",
        "username": "bob",
        "branch": "CSE",
        "year": 3,
        "cookie_score": 17,
    }


@pytest.fixture
def tag_row() -> dict[str, Any]:
    return {
        "id": "tag-1",
        "name": "Lab partners",
        "color": "#16A34A",
        "emoji": "🧪",
        "creator_id": "user-1",
        "member_ids": ["user-2", "user-3"],
    }


@pytest.fixture
def notification_row() -> dict[str, Any]:
    return {
        "id": "notif-1",
        "type": "session_join",
        "recipient_id": "user-1",
        "actor_id": "user-2",
        "session_id": 42,
        "tag_id": None,
        "created_at": "2024-03-01T16:00:00+00:00",
        "is_read": False,
    }
