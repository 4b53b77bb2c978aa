"""campusdb - async data-access layer for the campus sessions backend.

This package wraps the hosted Supabase project behind one service object:
queries and safe remote procedures go out, camelCase view models come back,
and every operation answers with a ``Result`` instead of raising.

Example:
    >>> from campusdb import CampusService
    >>> import asyncio
    >>>
    >>> async def main():
    ...     service = await CampusService.connect()
    ...     result = await service.fetch_notifications("user-id")
    ...     if result.ok:
    ...         print(len(result.data), "notifications")
    >>>
    >>> asyncio.run(main())
"""

from campusdb.client import BackendConfigError, SupabaseBackend, get_backend
from campusdb.config import settings
from campusdb.models import (
    Conversation,
    DirectMessage,
    Friend,
    FriendRequest,
    Notification,
    ParticipantRole,
    Profile,
    Session,
    SessionMessage,
    SessionStatus,
    Tag,
    Vouch,
)
from campusdb.response import ProcedureError, Result
from campusdb.service import CampusService

__version__ = "0.1.0"

__all__ = [
    # Main components
    "CampusService",
    "SupabaseBackend",
    "get_backend",
    # Results & errors
    "Result",
    "ProcedureError",
    "BackendConfigError",
    # Configuration
    "settings",
    # View models
    "Session",
    "SessionStatus",
    "ParticipantRole",
    "SessionMessage",
    "Friend",
    "FriendRequest",
    "Profile",
    "Tag",
    "Notification",
    "Conversation",
    "DirectMessage",
    "Vouch",
]
