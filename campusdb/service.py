"""Domain operations over the hosted database.

``CampusService`` exposes one async method per use case. Each method builds
a PostgREST query or remote-procedure call on the injected backend handle,
funnels it through the response normalizer, and maps rows to view models.
Every method returns a :class:`~campusdb.response.Result` and never raises.

Three shapes recur:

- Direct queries: filter/sort, normalize, map each row
- Safe procedures: ``call_procedure`` checks the transport error first, then
  the procedure's own ``success`` flag
- Composites: ordered sub-steps that stop at the first failing step,
  without compensating for steps already completed

No operation retries, caches, or holds state besides the backend handle.

Example:
    >>> service = await CampusService.connect()
    >>> result = await service.fetch_active_sessions()
    >>> if result.ok:
    ...     for session in result.data:
    ...         print(session.title, session.creator.username)
"""

from typing import Any

from campusdb.client import SupabaseBackend, get_backend
from campusdb.config import settings
from campusdb.fanout import gather_bounded
from campusdb.interfaces import BackendClient
from campusdb.logging import logger, operation_context
from campusdb.mappers import (
    map_conversation,
    map_direct_message,
    map_friend,
    map_friend_request,
    map_membership,
    map_notification,
    map_profile,
    map_rows,
    map_session,
    map_session_message,
    map_tag,
    map_vouch,
    profile_update_to_row,
    session_draft_to_row,
    session_update_to_row,
    tag_draft_to_row,
    tag_update_to_row,
)
from campusdb.models import (
    Conversation,
    DirectMessage,
    Friend,
    FriendRequest,
    FriendshipRow,
    Notification,
    NotificationRow,
    ParticipantRole,
    Profile,
    ProfileUpdate,
    Session,
    SessionDraft,
    SessionMembership,
    SessionMessage,
    SessionStatus,
    SessionUpdate,
    Tag,
    TagDraft,
    TagUpdate,
    Vouch,
)
from campusdb.response import (
    ProcedureError,
    Result,
    call_procedure,
    error_message,
    handle_response,
)
from campusdb.types import (
    AcceptFriendRequestParams,
    ConversationParams,
    CreateNotificationParams,
    CreateVouchParams,
    JoinSessionParams,
    LeaveSessionParams,
    Row,
    VouchHistoryParams,
)
from campusdb.utils import any_of, array_literal

# =============================================================================
# Column Selections
# =============================================================================

SESSION_COLUMNS = "*, creator:profiles!creator_id(username)"
SESSION_MESSAGE_COLUMNS = "*, sender:profiles(username)"
FRIEND_COLUMNS = "id, username, branch, year, cookie_score"
FRIEND_REQUEST_COLUMNS = "id, from_user_id, to_user_id"
ACTOR_COLUMNS = "id, username"
SESSION_SUMMARY_COLUMNS = "id, title, emoji"
TAG_SUMMARY_COLUMNS = "id, name"


class CampusService:
    """Async data-access operations for sessions, friends, tags, and messaging.

    Args:
        client: Backend handle (``supabase.AsyncClient`` or any object
            satisfying :class:`~campusdb.interfaces.BackendClient`)
        notification_limit: Maximum notifications per fetch
        history_limit: Maximum closed sessions per history fetch
        search_limit: Maximum profiles per username search
        notification_concurrency: Cap on concurrent notification enrichments

    Example:
        >>> service = CampusService(fake_backend)
        >>> await service.remove_friend("u1", "u2")
        Result(data=True, error=None)
    """

    def __init__(
        self,
        client: BackendClient,
        *,
        notification_limit: int | None = None,
        history_limit: int | None = None,
        search_limit: int | None = None,
        notification_concurrency: int | None = None,
    ) -> None:
        self._client = client
        self.notification_limit = notification_limit or settings.notification_limit
        self.history_limit = history_limit or settings.history_limit
        self.search_limit = search_limit or settings.search_limit
        self.notification_concurrency = (
            notification_concurrency or settings.notification_concurrency
        )

    @classmethod
    async def connect(cls, backend: SupabaseBackend | None = None, **kwargs: Any) -> "CampusService":
        """Build a service over ``backend`` (the process-wide binding by default)."""
        backend = backend or get_backend()
        return cls(await backend.client(), **kwargs)

    @property
    def client(self) -> BackendClient:
        return self._client

    # =========================================================================
    # Sessions
    # =========================================================================

    async def fetch_active_sessions(self) -> Result[list[Session]]:
        """Fetch all active sessions, latest event first."""
        query = (
            self._client.table("sessions")
            .select(SESSION_COLUMNS)
            .eq("status", SessionStatus.ACTIVE.value)
            .order("event_time", desc=True)
        )
        return await handle_response(
            query.execute(),
            operation="fetch_active_sessions",
            entity="sessions",
            transform=map_rows(map_session),
        )

    async def create_session(self, draft: SessionDraft) -> Result[list[Session]]:
        """Insert a new session and return the stored row(s)."""
        query = self._client.table("sessions").insert([session_draft_to_row(draft)])
        return await handle_response(
            query.execute(),
            operation="create_session",
            entity="sessions",
            transform=map_rows(map_session),
        )

    async def update_session(self, session_id: int, update: SessionUpdate) -> Result[list[Session]]:
        """Apply a creator action (extend, close, hand over) to a session.

        Only the fields set on ``update`` are written.
        """
        query = (
            self._client.table("sessions")
            .update(session_update_to_row(update))
            .eq("id", session_id)
        )
        return await handle_response(
            query.execute(),
            operation="update_session",
            entity="sessions",
            transform=map_rows(map_session),
        )

    async def delete_session(self, session_id: int) -> Result[Any]:
        query = self._client.table("sessions").delete().eq("id", session_id)
        return await handle_response(
            query.execute(), operation="delete_session", entity="sessions"
        )

    async def join_session(
        self,
        session_id: int,
        user_id: str,
        role: ParticipantRole | str = ParticipantRole.PARTICIPANT,
    ) -> Result[SessionMembership]:
        """Join a session through ``join_session_safe``.

        Returns:
            The session's participant list and roles after the join
        """
        try:
            role = ParticipantRole(role)
        except ValueError as exc:
            logger.bind(entity="join_session_safe").error(f"Invalid role for join_session: {role!r}")
            return Result.failure(exc)

        params: JoinSessionParams = {
            "p_session_id": session_id,
            "p_user_id": user_id,
            "p_role": role.value,
        }
        return await call_procedure(
            self._client,
            "join_session_safe",
            dict(params),
            operation="join_session",
            default_message="Failed to join session",
            transform=map_membership,
        )

    async def leave_session(self, session_id: int, user_id: str) -> Result[dict[str, Any]]:
        params: LeaveSessionParams = {"p_session_id": session_id, "p_user_id": user_id}
        return await call_procedure(
            self._client,
            "leave_session_safe",
            dict(params),
            operation="leave_session",
            default_message="Failed to leave session",
        )

    async def fetch_user_session_history(self, user_id: str) -> Result[list[Session]]:
        """Fetch closed sessions the user created or took part in, newest first."""
        query = (
            self._client.table("sessions")
            .select(SESSION_COLUMNS)
            .or_(any_of(f"creator_id.eq.{user_id}", f"participants.cs.{array_literal(user_id)}"))
            .eq("status", SessionStatus.CLOSED.value)
            .order("event_time", desc=True)
            .limit(self.history_limit)
        )
        return await handle_response(
            query.execute(),
            operation="fetch_user_session_history",
            entity="sessions",
            transform=map_rows(map_session),
        )

    async def fetch_session_messages(self, session_id: int) -> Result[list[SessionMessage]]:
        """Fetch a session's chat, oldest message first."""
        query = (
            self._client.table("session_messages")
            .select(SESSION_MESSAGE_COLUMNS)
            .eq("session_id", session_id)
            .order("created_at", desc=False)
        )
        return await handle_response(
            query.execute(),
            operation="fetch_session_messages",
            entity="session_messages",
            transform=map_rows(map_session_message),
        )

    async def send_session_message(
        self, session_id: int, sender_id: str, text: str
    ) -> Result[list[SessionMessage]]:
        query = self._client.table("session_messages").insert(
            [{"session_id": session_id, "sender_id": sender_id, "text": text}]
        )
        return await handle_response(
            query.execute(),
            operation="send_session_message",
            entity="session_messages",
            transform=map_rows(map_session_message),
        )

    # =========================================================================
    # Vouching / Cookie Score
    # =========================================================================

    async def create_vouch(
        self, voucher_id: str, receiver_id: str, session_id: int, skill: str
    ) -> Result[dict[str, Any]]:
        """Vouch for another participant's skill through ``create_vouch_safe``."""
        params: CreateVouchParams = {
            "p_voucher_id": voucher_id,
            "p_receiver_id": receiver_id,
            "p_session_id": session_id,
            "p_skill": skill,
        }
        return await call_procedure(
            self._client,
            "create_vouch_safe",
            dict(params),
            operation="create_vouch",
            default_message="Failed to create vouch",
        )

    async def fetch_user_vouch_history(self, user_id: str) -> Result[list[Vouch]]:
        params: VouchHistoryParams = {"p_user_id": user_id}
        return await handle_response(
            self._client.rpc("get_user_vouch_history", dict(params)).execute(),
            operation="fetch_user_vouch_history",
            entity="get_user_vouch_history",
            transform=map_rows(map_vouch),
        )

    # =========================================================================
    # Friends & Social
    # =========================================================================

    async def fetch_friends(self, user_id: str) -> Result[list[Friend]]:
        """Fetch the user's friends.

        Looks up friendship rows first and batch-fetches the matching
        profiles second. No profile query is issued when the user has no
        friendships.
        """
        friendships = await handle_response(
            self._client.table("friendships")
            .select("friend_id")
            .eq("user_id", user_id)
            .execute(),
            operation="fetch_friends",
            entity="friendships",
            transform=map_rows(FriendshipRow.model_validate),
        )
        if not friendships.ok:
            return Result.failure(friendships.error)

        friend_ids = [row.friend_id for row in friendships.data or []]
        if not friend_ids:
            return Result.success([])

        return await handle_response(
            self._client.table("profiles")
            .select(FRIEND_COLUMNS)
            .in_("id", friend_ids)
            .execute(),
            operation="fetch_friends",
            entity="profiles",
            transform=map_rows(map_friend),
        )

    async def fetch_friend_requests(self, user_id: str) -> Result[list[FriendRequest]]:
        """Fetch friend requests the user sent or received."""
        query = (
            self._client.table("friend_requests")
            .select(FRIEND_REQUEST_COLUMNS)
            .or_(any_of(f"from_user_id.eq.{user_id}", f"to_user_id.eq.{user_id}"))
        )
        return await handle_response(
            query.execute(),
            operation="fetch_friend_requests",
            entity="friend_requests",
            transform=map_rows(map_friend_request),
        )

    async def send_friend_request(
        self, from_user_id: str, to_user_id: str
    ) -> Result[list[FriendRequest]]:
        query = self._client.table("friend_requests").insert(
            [{"from_user_id": from_user_id, "to_user_id": to_user_id}]
        )
        return await handle_response(
            query.execute(),
            operation="send_friend_request",
            entity="friend_requests",
            transform=map_rows(map_friend_request),
        )

    async def accept_friend_request(self, request_id: str) -> Result[bool]:
        """Accept a request through ``accept_friend_request``.

        The procedure may return nothing; an explicit ``success: false``
        envelope is still reported as a failure.
        """
        params: AcceptFriendRequestParams = {"request_id": request_id}
        return await call_procedure(
            self._client,
            "accept_friend_request",
            dict(params),
            operation="accept_friend_request",
            default_message="Failed to accept friend request",
            transform=lambda _payload: True,
            allow_empty=True,
        )

    async def reject_friend_request(self, request_id: str) -> Result[Any]:
        query = self._client.table("friend_requests").delete().eq("id", request_id)
        return await handle_response(
            query.execute(), operation="reject_friend_request", entity="friend_requests"
        )

    async def remove_friend(self, user_id: str, friend_id: str) -> Result[bool]:
        """Delete both directions of a friendship.

        The reverse direction is only attempted after the forward delete
        succeeded. A failure on the second delete leaves the first one in
        place.
        """
        for owner, other in ((user_id, friend_id), (friend_id, user_id)):
            result = await handle_response(
                self._client.table("friendships")
                .delete()
                .match({"user_id": owner, "friend_id": other})
                .execute(),
                operation="remove_friend",
                entity="friendships",
            )
            if not result.ok:
                return Result.failure(result.error)
        return Result.success(True)

    # =========================================================================
    # Tags
    # =========================================================================

    async def fetch_tags(self, user_id: str) -> Result[list[Tag]]:
        """Fetch tags the user created or belongs to."""
        query = (
            self._client.table("tags")
            .select("*")
            .or_(any_of(f"creator_id.eq.{user_id}", f"member_ids.cs.{array_literal(user_id)}"))
        )
        return await handle_response(
            query.execute(),
            operation="fetch_tags",
            entity="tags",
            transform=map_rows(map_tag),
        )

    async def create_tag(self, draft: TagDraft, user_id: str) -> Result[list[Tag]]:
        query = self._client.table("tags").insert([tag_draft_to_row(draft, user_id)])
        return await handle_response(
            query.execute(),
            operation="create_tag",
            entity="tags",
            transform=map_rows(map_tag),
        )

    async def update_tag(self, tag_id: str, update: TagUpdate) -> Result[list[Tag]]:
        query = self._client.table("tags").update(tag_update_to_row(update)).eq("id", tag_id)
        return await handle_response(
            query.execute(),
            operation="update_tag",
            entity="tags",
            transform=map_rows(map_tag),
        )

    async def delete_tag(self, tag_id: str) -> Result[Any]:
        query = self._client.table("tags").delete().eq("id", tag_id)
        return await handle_response(query.execute(), operation="delete_tag", entity="tags")

    # =========================================================================
    # User Profiles
    # =========================================================================

    async def fetch_profiles_by_ids(self, user_ids: list[str]) -> Result[list[Friend]]:
        query = self._client.table("profiles").select(FRIEND_COLUMNS).in_("id", user_ids)
        return await handle_response(
            query.execute(),
            operation="fetch_profiles_by_ids",
            entity="profiles",
            transform=map_rows(map_friend),
        )

    async def search_users(self, query_text: str, current_user_id: str) -> Result[list[Friend]]:
        """Case-insensitive username search that excludes the caller."""
        query = (
            self._client.table("profiles")
            .select(FRIEND_COLUMNS)
            .ilike("username", f"%{query_text}%")
            .neq("id", current_user_id)
            .limit(self.search_limit)
        )
        return await handle_response(
            query.execute(),
            operation="search_users",
            entity="profiles",
            transform=map_rows(map_friend),
        )

    async def update_user_profile(self, user_id: str, update: ProfileUpdate) -> Result[list[Profile]]:
        query = self._client.table("profiles").update(profile_update_to_row(update)).eq("id", user_id)
        return await handle_response(
            query.execute(),
            operation="update_user_profile",
            entity="profiles",
            transform=map_rows(map_profile),
        )

    # =========================================================================
    # Notifications
    # =========================================================================

    async def fetch_notifications(self, user_id: str) -> Result[list[Notification]]:
        """Fetch the user's latest notifications with related summaries.

        Rows are enriched concurrently (up to ``notification_concurrency`` at
        a time). Each row waits for its own actor, session, and tag lookups.
        A null reference skips its lookup. A lookup that fails is logged and
        leaves that summary unset.
        """
        rows = await handle_response(
            self._client.table("notifications")
            .select("*")
            .eq("recipient_id", user_id)
            .order("created_at", desc=True)
            .limit(self.notification_limit)
            .execute(),
            operation="fetch_notifications",
            entity="notifications",
            transform=map_rows(NotificationRow.model_validate),
        )
        if not rows.ok:
            return Result.failure(rows.error)

        with operation_context("fetch_notifications"):
            try:
                enriched = await gather_bounded(
                    rows.data or [], self._enrich_notification, self.notification_concurrency
                )
            except ExceptionGroup as group:
                error = group.exceptions[0]
                logger.bind(entity="notifications").error(
                    f"Enrichment failed in fetch_notifications: {error_message(error)}"
                )
                return Result.failure(error)
        return Result.success(enriched)

    async def _enrich_notification(self, row: NotificationRow) -> Notification:
        user = session = tag = None
        if row.actor_id is not None:
            user = await self._lookup("profiles", ACTOR_COLUMNS, row.actor_id)
        if row.session_id is not None:
            session = await self._lookup("sessions", SESSION_SUMMARY_COLUMNS, row.session_id)
        if row.tag_id is not None:
            tag = await self._lookup("tags", TAG_SUMMARY_COLUMNS, row.tag_id)
        return map_notification(row, user=user, session=session, tag=tag)

    async def _lookup(self, table: str, columns: str, key: str | int) -> Row | None:
        """Load one summary row by id; ``None`` (with a warning) if unavailable."""
        try:
            response = await (
                self._client.table(table).select(columns).eq("id", key).single().execute()
            )
        except Exception as exc:
            logger.bind(entity=table).warning(
                f"Could not load {table} {key} for notification: {error_message(exc)}"
            )
            return None
        return response.data or None

    async def mark_notification_as_read(self, notification_id: str) -> Result[Any]:
        query = self._client.table("notifications").update({"is_read": True}).eq("id", notification_id)
        return await handle_response(
            query.execute(), operation="mark_notification_as_read", entity="notifications"
        )

    async def mark_all_notifications_as_read(self, user_id: str) -> Result[Any]:
        """Mark every unread notification of the user as read."""
        query = (
            self._client.table("notifications")
            .update({"is_read": True})
            .eq("recipient_id", user_id)
            .eq("is_read", False)
        )
        return await handle_response(
            query.execute(), operation="mark_all_notifications_as_read", entity="notifications"
        )

    async def delete_notification(self, notification_id: str) -> Result[Any]:
        query = self._client.table("notifications").delete().eq("id", notification_id)
        return await handle_response(
            query.execute(), operation="delete_notification", entity="notifications"
        )

    async def create_notification(
        self,
        recipient_id: str,
        type: str,
        actor_id: str | None = None,
        session_id: int | None = None,
        tag_id: str | None = None,
    ) -> Result[dict[str, Any]]:
        """Create a notification through ``create_notification_safe``.

        Absent references are sent as null.
        """
        params: CreateNotificationParams = {
            "p_recipient_id": recipient_id,
            "p_type": type,
            "p_actor_id": actor_id,
            "p_session_id": session_id,
            "p_tag_id": tag_id,
        }
        return await call_procedure(
            self._client,
            "create_notification_safe",
            dict(params),
            operation="create_notification",
            default_message="Failed to create notification",
        )

    # =========================================================================
    # Direct Messages
    # =========================================================================

    async def fetch_conversations_for_user(self, user_id: str) -> Result[list[Conversation]]:
        """Fetch conversations the user participates in, most recent first.

        Messages and unread counts are not loaded here.
        """
        query = (
            self._client.table("conversations")
            .select("*")
            .contains("participant_ids", [user_id])
            .order("updated_at", desc=True)
        )
        return await handle_response(
            query.execute(),
            operation="fetch_conversations_for_user",
            entity="conversations",
            transform=map_rows(map_conversation),
        )

    async def fetch_messages_for_conversation(self, conversation_id: str) -> Result[list[DirectMessage]]:
        query = (
            self._client.table("direct_messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("timestamp", desc=False)
        )
        return await handle_response(
            query.execute(),
            operation="fetch_messages_for_conversation",
            entity="direct_messages",
            transform=map_rows(map_direct_message),
        )

    async def send_direct_message(
        self, conversation_id: str, sender_id: str, text: str
    ) -> Result[list[DirectMessage]]:
        query = self._client.table("direct_messages").insert(
            [{"conversation_id": conversation_id, "sender_id": sender_id, "text": text}]
        )
        return await handle_response(
            query.execute(),
            operation="send_direct_message",
            entity="direct_messages",
            transform=map_rows(map_direct_message),
        )

    async def get_or_create_conversation(self, user_id_1: str, user_id_2: str) -> Result[Conversation]:
        """Resolve the conversation between two users, creating it if needed.

        Calls ``get_or_create_conversation`` for the id, then loads the row.
        The row is not fetched if the procedure call fails.
        """
        params: ConversationParams = {"user_id_1": user_id_1, "user_id_2": user_id_2}
        resolved = await handle_response(
            self._client.rpc("get_or_create_conversation", dict(params)).execute(),
            operation="get_or_create_conversation",
            entity="get_or_create_conversation",
        )
        if not resolved.ok:
            return Result.failure(resolved.error)
        if resolved.data is None:
            error = ProcedureError(
                "get_or_create_conversation returned no id",
                procedure="get_or_create_conversation",
            )
            logger.bind(entity="get_or_create_conversation").error(error.message)
            return Result.failure(error)

        return await handle_response(
            self._client.table("conversations")
            .select("*")
            .eq("id", resolved.data)
            .single()
            .execute(),
            operation="get_or_create_conversation",
            entity="conversations",
            transform=map_conversation,
        )
