"""Unit tests for CampusService operations against a recording fake backend."""

from datetime import UTC, datetime

import pytest
from postgrest.exceptions import APIError
from pydantic import ValidationError

from campusdb.models import (
    ParticipantRole,
    ProfileUpdate,
    SessionDraft,
    SessionStatus,
    SessionUpdate,
    TagDraft,
    TagUpdate,
)
from campusdb.response import ProcedureError, Result
from campusdb.service import SESSION_COLUMNS, CampusService


class TestSessions:
    """Tests for session operations."""

    @pytest.mark.asyncio
    async def test_fetch_active_sessions(self, backend, service, session_row):
        backend.route("sessions", [session_row])

        result = await service.fetch_active_sessions()

        assert result.ok
        assert [s.id for s in result.data] == [42]
        query = backend.executed_for("sessions")[0]
        assert query.args_for("select") == [(SESSION_COLUMNS,)]
        assert query.eq_filters == {"status": "active"}
        assert query.args_for("order") == [("event_time",)]
        assert query.kwargs_for("order") == [{"desc": True}]

    @pytest.mark.asyncio
    async def test_fetch_active_sessions_empty(self, backend, service):
        """Test no rows is a successful empty list."""
        backend.route("sessions", None)

        assert await service.fetch_active_sessions() == Result.success([])

    @pytest.mark.asyncio
    async def test_fetch_active_sessions_transport_error(self, backend, service):
        error = APIError({"message": "connection reset"})
        backend.route("sessions", raises=error)

        result = await service.fetch_active_sessions()

        assert result.error is error
        assert result.data is None

    @pytest.mark.asyncio
    async def test_create_session(self, backend, service, session_row):
        """Test inserted rows come back without the creator join."""
        del session_row["creator"]
        backend.route("sessions", [session_row])
        draft = SessionDraft(
            title="Linear algebra study group",
            lat=12.9716,
            lng=77.5946,
            sessionType="study",
            eventTime=datetime(2024, 3, 1, 15, 30, tzinfo=UTC),
            duration=90,
            creatorId="user-1",
        )

        result = await service.create_session(draft)

        assert result.ok
        assert result.data[0].creator.username == "Unknown"
        (body,) = backend.executed_for("sessions")[0].args_for("insert")[0]
        assert body[0]["creator_id"] == "user-1"
        assert body[0]["event_time"] == "2024-03-01T15:30:00Z"

    @pytest.mark.asyncio
    async def test_update_session_only_sends_given_fields(self, backend, service, session_row):
        backend.route("sessions", [session_row])

        await service.update_session(42, SessionUpdate(status=SessionStatus.CLOSED))

        query = backend.executed_for("sessions")[0]
        assert query.args_for("update") == [({"status": "closed"},)]
        assert query.eq_filters == {"id": 42}

    @pytest.mark.asyncio
    async def test_delete_session(self, backend, service):
        backend.route("sessions", [])

        result = await service.delete_session(42)

        assert result.ok
        query = backend.executed_for("sessions")[0]
        assert "delete" in query.method_names
        assert query.eq_filters == {"id": 42}

    @pytest.mark.asyncio
    async def test_history_filters(self, backend, session_row):
        """Test history covers created or joined sessions, closed only, capped."""
        session_row["status"] = "closed"
        backend.route("sessions", [session_row])
        service = CampusService(backend, history_limit=5)

        result = await service.fetch_user_session_history("user-2")

        assert result.ok
        query = backend.executed_for("sessions")[0]
        assert query.args_for("or_") == [("creator_id.eq.user-2,participants.cs.{user-2}",)]
        assert query.eq_filters == {"status": "closed"}
        assert query.kwargs_for("order") == [{"desc": True}]
        assert query.args_for("limit") == [(5,)]

    @pytest.mark.asyncio
    async def test_session_messages_oldest_first(self, backend, service):
        backend.route(
            "session_messages",
            [
                {
                    "id": "m1",
                    "session_id": 42,
                    "sender_id": "user-1",
                    "text": "see you there",
                    "created_at": "2024-03-01T15:00:00Z",
                    "sender": {"username": "alice"},
                }
            ],
        )

        result = await service.fetch_session_messages(42)

        assert result.data[0].sender.username == "alice"
        query = backend.executed_for("session_messages")[0]
        assert query.eq_filters == {"session_id": 42}
        assert query.args_for("order") == [("created_at",)]
        assert query.kwargs_for("order") == [{"desc": False}]

    @pytest.mark.asyncio
    async def test_send_session_message(self, backend, service):
        backend.route(
            "session_messages",
            [{"id": "m2", "session_id": 42, "sender_id": "user-2", "text": "hi"}],
        )

        result = await service.send_session_message(42, "user-2", "hi")

        assert result.data[0].text == "hi"
        assert backend.executed_for("session_messages")[0].args_for("insert") == [
            ([{"session_id": 42, "sender_id": "user-2", "text": "hi"}],)
        ]


class TestMembership:
    """Tests for joining and leaving sessions."""

    @pytest.mark.asyncio
    async def test_join_session(self, backend, service):
        backend.route(
            "join_session_safe",
            {
                "success": True,
                "participants": ["user-1", "user-2"],
                "participant_roles": {"user-1": "offering", "user-2": "seeking"},
            },
        )

        result = await service.join_session(42, "user-2", ParticipantRole.SEEKING)

        assert result.ok
        assert result.data.participants == ["user-1", "user-2"]
        assert result.data.participantRoles["user-2"] == ParticipantRole.SEEKING
        assert backend.executed_for("join_session_safe")[0].params == {
            "p_session_id": 42,
            "p_user_id": "user-2",
            "p_role": "seeking",
        }

    @pytest.mark.asyncio
    async def test_join_session_default_role(self, backend, service):
        backend.route("join_session_safe", {"success": True})

        result = await service.join_session(42, "user-2")

        assert result.data.participants == []
        assert backend.executed_for("join_session_safe")[0].params["p_role"] == "participant"

    @pytest.mark.asyncio
    async def test_join_session_rejected(self, backend, service):
        """Test the procedure's own message is surfaced."""
        backend.route("join_session_safe", {"success": False, "error": "Session is full"})

        result = await service.join_session(42, "user-2")

        assert isinstance(result.error, ProcedureError)
        assert result.error.message == "Session is full"

    @pytest.mark.asyncio
    async def test_join_session_rejected_without_reason(self, backend, service):
        backend.route("join_session_safe", {"success": False})

        result = await service.join_session(42, "user-2")

        assert result.error.message == "Failed to join session"

    @pytest.mark.asyncio
    async def test_join_session_transport_error(self, backend, service):
        """Test a transport failure is returned as-is."""
        error = APIError({"message": "timeout"})
        backend.route("join_session_safe", raises=error)

        result = await service.join_session(42, "user-2")

        assert result.error is error

    @pytest.mark.asyncio
    async def test_join_session_invalid_role(self, backend, service):
        """Test an unknown role fails without calling the backend."""
        result = await service.join_session(42, "user-2", "spectator")

        assert isinstance(result.error, ValueError)
        assert backend.executed == []

    @pytest.mark.asyncio
    async def test_leave_session(self, backend, service):
        backend.route("leave_session_safe", {"success": True, "participants": ["user-1"]})

        result = await service.leave_session(42, "user-2")

        assert result == Result.success({"participants": ["user-1"]})

    @pytest.mark.asyncio
    async def test_leave_session_default_message(self, backend, service):
        backend.route("leave_session_safe", {"success": False, "error": None})

        result = await service.leave_session(42, "user-2")

        assert result.error.message == "Failed to leave session"


class TestVouches:
    """Tests for vouching."""

    @pytest.mark.asyncio
    async def test_create_vouch(self, backend, service):
        backend.route("create_vouch_safe", {"success": True, "points": 5})

        result = await service.create_vouch("user-1", "user-2", 42, "python")

        assert result.data == {"points": 5}
        assert backend.executed_for("create_vouch_safe")[0].params == {
            "p_voucher_id": "user-1",
            "p_receiver_id": "user-2",
            "p_session_id": 42,
            "p_skill": "python",
        }

    @pytest.mark.asyncio
    async def test_create_vouch_rejected(self, backend, service):
        backend.route("create_vouch_safe", {"success": False})

        result = await service.create_vouch("user-1", "user-1", 42, "python")

        assert result.error.message == "Failed to create vouch"

    @pytest.mark.asyncio
    async def test_vouch_history(self, backend, service):
        backend.route(
            "get_user_vouch_history",
            [
                {
                    "vouch_id": "v1",
                    "voucher_username": "alice",
                    "skill_name": "python",
                    "points_earned": 5,
                    "created_timestamp": "2024-03-01T10:00:00Z",
                }
            ],
        )

        result = await service.fetch_user_vouch_history("user-2")

        assert result.data[0].voucherUsername == "alice"
        assert backend.executed_for("get_user_vouch_history")[0].params == {"p_user_id": "user-2"}


class TestFriends:
    """Tests for friendship operations."""

    @pytest.mark.asyncio
    async def test_fetch_friends(self, backend, service, profile_row):
        backend.route("friendships", [{"friend_id": "user-2"}, {"friend_id": "user-3"}])
        backend.route("profiles", [profile_row])

        result = await service.fetch_friends("user-1")

        assert [f.username for f in result.data] == ["bob"]
        assert backend.executed_for("friendships")[0].eq_filters == {"user_id": "user-1"}
        assert backend.executed_for("profiles")[0].args_for("in_") == [
            ("id", ["user-2", "user-3"])
        ]

    @pytest.mark.asyncio
    async def test_fetch_friends_none_skips_profiles(self, backend, service):
        """Test no profile query is issued for a user without friendships."""
        backend.route("friendships", [])

        result = await service.fetch_friends("user-1")

        assert result == Result.success([])
        assert backend.executed_for("profiles") == []

    @pytest.mark.asyncio
    async def test_fetch_friends_error_skips_profiles(self, backend, service):
        error = APIError({"message": "permission denied"})
        backend.route("friendships", raises=error)

        result = await service.fetch_friends("user-1")

        assert result.error is error
        assert backend.executed_for("profiles") == []

    @pytest.mark.asyncio
    async def test_fetch_friends_malformed_row(self, backend, service):
        """Test a friendship row without friend_id fails instead of raising."""
        backend.route("friendships", [{"user_id": "user-1"}])

        result = await service.fetch_friends("user-1")

        assert result.data is None
        assert isinstance(result.error, ValidationError)
        assert backend.executed_for("profiles") == []

    @pytest.mark.asyncio
    async def test_fetch_friend_requests(self, backend, service):
        backend.route("friend_requests", [{"id": "r1", "from_user_id": "u2", "to_user_id": "u1"}])

        result = await service.fetch_friend_requests("u1")

        assert result.data[0].fromUserId == "u2"
        assert backend.executed_for("friend_requests")[0].args_for("or_") == [
            ("from_user_id.eq.u1,to_user_id.eq.u1",)
        ]

    @pytest.mark.asyncio
    async def test_send_friend_request(self, backend, service):
        backend.route("friend_requests", [{"id": "r1", "from_user_id": "u1", "to_user_id": "u2"}])

        result = await service.send_friend_request("u1", "u2")

        assert result.data[0].toUserId == "u2"

    @pytest.mark.asyncio
    async def test_accept_friend_request_void(self, backend, service):
        """Test a procedure that returns nothing counts as accepted."""
        backend.route("accept_friend_request", None)

        result = await service.accept_friend_request("r1")

        assert result == Result.success(True)
        assert backend.executed_for("accept_friend_request")[0].params == {"request_id": "r1"}

    @pytest.mark.asyncio
    async def test_accept_friend_request_rejected(self, backend, service):
        backend.route("accept_friend_request", {"success": False})

        result = await service.accept_friend_request("r1")

        assert result.error.message == "Failed to accept friend request"

    @pytest.mark.asyncio
    async def test_reject_friend_request(self, backend, service):
        backend.route("friend_requests", [])

        result = await service.reject_friend_request("r1")

        assert result.ok
        assert backend.executed_for("friend_requests")[0].eq_filters == {"id": "r1"}

    @pytest.mark.asyncio
    async def test_remove_friend_deletes_both_directions(self, backend, service):
        """Test both friendship rows are deleted, forward direction first."""
        backend.route("friendships", [])

        result = await service.remove_friend("user-1", "user-2")

        assert result == Result.success(True)
        deletes = backend.executed_for("friendships")
        assert [q.args_for("match") for q in deletes] == [
            [({"user_id": "user-1", "friend_id": "user-2"},)],
            [({"user_id": "user-2", "friend_id": "user-1"},)],
        ]

    @pytest.mark.asyncio
    async def test_remove_friend_stops_after_first_failure(self, backend, service):
        """Test the reverse delete is not attempted when the first one fails."""
        error = APIError({"message": "permission denied"})
        backend.route("friendships", raises=error)

        result = await service.remove_friend("user-1", "user-2")

        assert result.error is error
        assert len(backend.executed_for("friendships")) == 1

    @pytest.mark.asyncio
    async def test_remove_friend_second_delete_fails(self, backend, service):
        error = APIError({"message": "permission denied"})
        backend.route("friendships", [])
        backend.route("friendships", raises=error)

        result = await service.remove_friend("user-1", "user-2")

        assert result.error is error
        assert len(backend.executed_for("friendships")) == 2


class TestTags:
    """Tests for tag operations."""

    @pytest.mark.asyncio
    async def test_fetch_tags(self, backend, service, tag_row):
        backend.route("tags", [tag_row])

        result = await service.fetch_tags("user-2")

        assert result.data[0].name == "Lab partners"
        assert backend.executed_for("tags")[0].args_for("or_") == [
            ("creator_id.eq.user-2,member_ids.cs.{user-2}",)
        ]

    @pytest.mark.asyncio
    async def test_create_tag(self, backend, service, tag_row):
        tag_row["member_ids"] = []
        backend.route("tags", [tag_row])

        result = await service.create_tag(TagDraft(name="Lab partners"), "user-1")

        assert result.data[0].memberIds == []
        (body,) = backend.executed_for("tags")[0].args_for("insert")[0]
        assert body == [
            {
                "name": "Lab partners",
                "color": None,
                "emoji": None,
                "creator_id": "user-1",
                "member_ids": [],
            }
        ]

    @pytest.mark.asyncio
    async def test_update_tag(self, backend, service, tag_row):
        backend.route("tags", [tag_row])

        await service.update_tag("tag-1", TagUpdate(memberIds=["user-2"]))

        query = backend.executed_for("tags")[0]
        assert query.args_for("update") == [({"member_ids": ["user-2"]},)]
        assert query.eq_filters == {"id": "tag-1"}

    @pytest.mark.asyncio
    async def test_delete_tag(self, backend, service):
        backend.route("tags", [])

        assert (await service.delete_tag("tag-1")).ok


class TestProfiles:
    """Tests for profile lookups and updates."""

    @pytest.mark.asyncio
    async def test_fetch_profiles_by_ids(self, backend, service, profile_row):
        backend.route("profiles", [profile_row])

        result = await service.fetch_profiles_by_ids(["user-2"])

        assert result.data[0].id == "user-2"
        assert backend.executed_for("profiles")[0].args_for("in_") == [("id", ["user-2"])]

    @pytest.mark.asyncio
    async def test_search_users(self, backend, profile_row):
        """Test the search is case-insensitive, excludes the caller and is capped."""
        backend.route("profiles", [profile_row])
        service = CampusService(backend, search_limit=7)

        await service.search_users("bo", "user-1")

        query = backend.executed_for("profiles")[0]
        assert query.args_for("ilike") == [("username", "%bo%")]
        assert query.args_for("neq") == [("id", "user-1")]
        assert query.args_for("limit") == [(7,)]

    @pytest.mark.asyncio
    async def test_update_user_profile(self, backend, service):
        backend.route("profiles", [{"id": "user-1", "username": "alice", "bio": "hello"}])

        result = await service.update_user_profile("user-1", ProfileUpdate(bio="hello"))

        assert result.data[0].bio == "hello"
        query = backend.executed_for("profiles")[0]
        assert query.args_for("update")[0][0]["bio"] == "hello"
        assert query.eq_filters == {"id": "user-1"}


class TestNotifications:
    """Tests for notification operations."""

    @staticmethod
    def _route_summaries(backend):
        backend.route("profiles", handler=lambda q: {"id": q.eq_filters["id"], "username": "bob"})
        backend.route(
            "sessions",
            handler=lambda q: {"id": q.eq_filters["id"], "title": "Study", "emoji": "📚"},
        )
        backend.route("tags", handler=lambda q: {"id": q.eq_filters["id"], "name": "Lab"})

    @pytest.mark.asyncio
    async def test_fetch_notifications_enriched(self, backend, service, notification_row):
        backend.route("notifications", [notification_row])
        self._route_summaries(backend)

        result = await service.fetch_notifications("user-1")

        assert result.ok
        (notification,) = result.data
        assert notification.user.username == "bob"
        assert notification.session.id == 42
        assert notification.tag is None
        assert backend.executed_for("tags") == []

    @pytest.mark.asyncio
    async def test_fetch_notifications_query(self, backend):
        backend.route("notifications", [])
        service = CampusService(backend, notification_limit=10)

        result = await service.fetch_notifications("user-1")

        assert result == Result.success([])
        query = backend.executed_for("notifications")[0]
        assert query.eq_filters == {"recipient_id": "user-1"}
        assert query.args_for("order") == [("created_at",)]
        assert query.kwargs_for("order") == [{"desc": True}]
        assert query.args_for("limit") == [(10,)]

    @pytest.mark.asyncio
    async def test_lookups_skip_null_references(self, backend, service, notification_row):
        """Test a session-only notification issues only the session lookup."""
        notification_row.update(actor_id=None, session_id=42, tag_id=None)
        backend.route("notifications", [notification_row])
        self._route_summaries(backend)

        result = await service.fetch_notifications("user-1")

        (notification,) = result.data
        assert notification.user is None
        assert notification.session.title == "Study"
        assert backend.executed_for("profiles") == []
        assert len(backend.executed_for("sessions")) == 1

    @pytest.mark.asyncio
    async def test_enrichment_independent_and_ordered(self, backend, service, notification_row):
        """Test each row gets its own summaries and output keeps query order."""
        rows = [
            dict(notification_row, id="n1", actor_id="user-2", session_id=1, tag_id=None),
            dict(notification_row, id="n2", actor_id=None, session_id=2, tag_id=None),
            dict(notification_row, id="n3", actor_id="user-3", session_id=None, tag_id="tag-9"),
        ]
        backend.route("notifications", rows)
        self._route_summaries(backend)
        # The first row's lookups finish last
        backend.latency = lambda q: 0.02 if q.eq_filters.get("id") in ("user-2", 1) else 0

        result = await service.fetch_notifications("user-1")

        assert [n.id for n in result.data] == ["n1", "n2", "n3"]
        first, second, third = result.data
        assert (first.user.id, first.session.id, first.tag) == ("user-2", 1, None)
        assert (second.user, second.session.id, second.tag) == (None, 2, None)
        assert (third.user.id, third.session, third.tag.id) == ("user-3", None, "tag-9")

    @pytest.mark.asyncio
    async def test_failed_lookup_leaves_summary_unset(
        self, backend, service, notification_row, log_messages
    ):
        """Test a failing lookup is logged and does not fail the operation."""
        backend.route("notifications", [notification_row])
        backend.route("profiles", raises=APIError({"message": "no rows returned"}))
        backend.route("sessions", {"id": 42, "title": "Study", "emoji": None})

        result = await service.fetch_notifications("user-1")

        assert result.ok
        (notification,) = result.data
        assert notification.user is None
        assert notification.session.title == "Study"
        assert any(m.startswith("WARNING") and "no rows returned" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_malformed_summary_fails_operation(self, backend, service, notification_row):
        backend.route("notifications", [notification_row])
        backend.route("profiles", {"id": "user-2"})
        backend.route("sessions", {"id": 42, "title": "Study"})

        result = await service.fetch_notifications("user-1")

        assert not result.ok
        assert result.data is None

    @pytest.mark.asyncio
    async def test_fetch_notifications_error(self, backend, service):
        error = APIError({"message": "permission denied"})
        backend.route("notifications", raises=error)

        result = await service.fetch_notifications("user-1")

        assert result.error is error
        assert backend.executed_for("profiles") == []

    @pytest.mark.asyncio
    async def test_mark_notification_as_read(self, backend, service):
        backend.route("notifications", [])

        await service.mark_notification_as_read("n1")

        query = backend.executed_for("notifications")[0]
        assert query.args_for("update") == [({"is_read": True},)]
        assert query.eq_filters == {"id": "n1"}

    @pytest.mark.asyncio
    async def test_mark_all_notifications_as_read(self, backend, service):
        """Test only the user's unread notifications are updated."""
        backend.route("notifications", [])

        await service.mark_all_notifications_as_read("user-1")

        query = backend.executed_for("notifications")[0]
        assert query.args_for("eq") == [("recipient_id", "user-1"), ("is_read", False)]

    @pytest.mark.asyncio
    async def test_delete_notification(self, backend, service):
        backend.route("notifications", [])

        assert (await service.delete_notification("n1")).ok

    @pytest.mark.asyncio
    async def test_create_notification_nulls(self, backend, service):
        """Test absent references are sent as null."""
        backend.route("create_notification_safe", {"success": True, "notification_id": "n9"})

        result = await service.create_notification("user-1", "friend_request", actor_id="user-2")

        assert result.data == {"notification_id": "n9"}
        assert backend.executed_for("create_notification_safe")[0].params == {
            "p_recipient_id": "user-1",
            "p_type": "friend_request",
            "p_actor_id": "user-2",
            "p_session_id": None,
            "p_tag_id": None,
        }

    @pytest.mark.asyncio
    async def test_create_notification_rejected(self, backend, service):
        backend.route("create_notification_safe", {"success": False})

        result = await service.create_notification("user-1", "friend_request")

        assert result.error.message == "Failed to create notification"


class TestDirectMessages:
    """Tests for conversations and direct messages."""

    @pytest.mark.asyncio
    async def test_fetch_conversations(self, backend, service):
        backend.route("conversations", [{"id": "c1", "participant_ids": ["u1", "u2"]}])

        result = await service.fetch_conversations_for_user("u1")

        assert result.data[0].participantIds == ["u1", "u2"]
        assert result.data[0].messages == []
        query = backend.executed_for("conversations")[0]
        assert query.args_for("contains") == [("participant_ids", ["u1"])]
        assert query.args_for("order") == [("updated_at",)]
        assert query.kwargs_for("order") == [{"desc": True}]

    @pytest.mark.asyncio
    async def test_fetch_messages_oldest_first(self, backend, service):
        backend.route(
            "direct_messages",
            [{"id": "m1", "conversation_id": "c1", "sender_id": "u1", "text": "hi"}],
        )

        result = await service.fetch_messages_for_conversation("c1")

        assert result.data[0].senderId == "u1"
        query = backend.executed_for("direct_messages")[0]
        assert query.eq_filters == {"conversation_id": "c1"}
        assert query.kwargs_for("order") == [{"desc": False}]

    @pytest.mark.asyncio
    async def test_send_direct_message(self, backend, service):
        backend.route(
            "direct_messages",
            [{"id": "m2", "conversation_id": "c1", "sender_id": "u2", "text": "yo"}],
        )

        result = await service.send_direct_message("c1", "u2", "yo")

        assert result.data[0].text == "yo"

    @pytest.mark.asyncio
    async def test_get_or_create_conversation(self, backend, service):
        backend.route("get_or_create_conversation", "c1")
        backend.route("conversations", {"id": "c1", "participant_ids": ["u1", "u2"]})

        result = await service.get_or_create_conversation("u1", "u2")

        assert result.data.id == "c1"
        assert backend.executed_for("get_or_create_conversation")[0].params == {
            "user_id_1": "u1",
            "user_id_2": "u2",
        }
        query = backend.executed_for("conversations")[0]
        assert query.eq_filters == {"id": "c1"}
        assert "single" in query.method_names

    @pytest.mark.asyncio
    async def test_get_or_create_conversation_rpc_error(self, backend, service):
        """Test the conversation row is not loaded when the procedure fails."""
        error = APIError({"message": "function does not exist"})
        backend.route("get_or_create_conversation", raises=error)

        result = await service.get_or_create_conversation("u1", "u2")

        assert result.error is error
        assert backend.executed_for("conversations") == []

    @pytest.mark.asyncio
    async def test_get_or_create_conversation_no_id(self, backend, service):
        backend.route("get_or_create_conversation", None)

        result = await service.get_or_create_conversation("u1", "u2")

        assert isinstance(result.error, ProcedureError)
        assert backend.executed_for("conversations") == []
