"""Row mappers between backend shapes and view models.

Read direction: every ``map_*`` function validates one backend row through
its row model and returns the camelCase view model, substituting empty
containers for nullable array/object columns and a ``"Unknown"`` creator
for a missing profile join. Validation failures raise
``pydantic.ValidationError``; the response normalizer turns that into the
operation's error.

Write direction: ``*_to_row`` builders turn drafts and partial updates into
backend bodies.

All functions here are pure.
"""

from collections.abc import Callable, Iterable
from typing import TypeVar

from campusdb.models import (
    ConversationRow,
    Conversation,
    CreatorRow,
    CreatorSummary,
    DirectMessage,
    DirectMessageRow,
    Friend,
    FriendRequest,
    FriendRequestRow,
    MembershipPayload,
    Notification,
    NotificationActor,
    NotificationRow,
    NotificationSession,
    NotificationTag,
    Profile,
    ProfileRow,
    ProfileUpdate,
    Session,
    SessionDraft,
    SessionMembership,
    SessionMessage,
    SessionMessageRow,
    SessionRow,
    SessionUpdate,
    Tag,
    TagDraft,
    TagRow,
    TagUpdate,
    Vouch,
    VouchHistoryRow,
)
from campusdb.types import (
    ProfilePatch,
    Row,
    SessionInsert,
    SessionPatch,
    TagInsert,
    TagPatch,
)
from campusdb.utils import ensure_dict, ensure_list, format_iso

V = TypeVar("V")


def map_rows(mapper: Callable[[Row], V]) -> Callable[[Iterable[Row] | None], list[V]]:
    """Lift a single-row mapper to a list mapper.

    ``None`` maps to an empty list.
    """

    def _map(rows: Iterable[Row] | None) -> list[V]:
        return [mapper(row) for row in rows or []]

    return _map


def _creator(row: CreatorRow | None) -> CreatorSummary:
    if row is None or not row.username:
        return CreatorSummary()
    return CreatorSummary(username=row.username)


# =============================================================================
# Sessions
# =============================================================================


def map_session(row: Row) -> Session:
    """Map a ``sessions`` row (with optional creator join) to a ``Session``."""
    s = SessionRow.model_validate(row)
    return Session(
        id=s.id,
        title=s.title,
        description=s.description or "",
        lat=s.lat,
        lng=s.lng,
        sessionType=s.session_type,
        emoji=s.emoji,
        eventTime=s.event_time,
        duration=s.duration,
        status=s.status,
        creatorId=s.creator_id,
        participants=ensure_list(s.participants),
        participantRoles=ensure_dict(s.participant_roles),
        privacy=s.privacy,
        visibleToTags=ensure_list(s.visible_to_tags),
        helpCategory=s.help_category,
        skillTag=s.skill_tag,
        expectedOutcome=s.expected_outcome,
        returnTime=s.return_time,
        urgency=s.urgency,
        flow=s.flow,
        creator=_creator(s.creator),
    )


def map_membership(payload: Row) -> SessionMembership:
    m = MembershipPayload.model_validate(payload)
    return SessionMembership(
        participants=ensure_list(m.participants),
        participantRoles=ensure_dict(m.participant_roles),
    )


def session_draft_to_row(draft: SessionDraft) -> SessionInsert:
    """Build the ``sessions`` insert body for a new session."""
    return {
        "title": draft.title,
        "description": draft.description or "",
        "lat": draft.lat,
        "lng": draft.lng,
        "session_type": draft.sessionType,
        "emoji": draft.emoji,
        "event_time": format_iso(draft.eventTime),
        "duration": draft.duration,
        "status": str(draft.status),
        "creator_id": draft.creatorId,
        "participants": list(draft.participants),
        "participant_roles": {k: str(v) for k, v in draft.participantRoles.items()},
        "privacy": str(draft.privacy),
        "visible_to_tags": list(draft.visibleToTags),
        "help_category": draft.helpCategory,
        "skill_tag": draft.skillTag,
        "expected_outcome": draft.expectedOutcome,
        "return_time": format_iso(draft.returnTime),
        "urgency": draft.urgency,
        "flow": draft.flow,
    }


def session_update_to_row(update: SessionUpdate) -> SessionPatch:
    """Build a ``sessions`` update body containing only the provided fields."""
    patch: SessionPatch = {}
    if update.participants is not None:
        patch["participants"] = list(update.participants)
    if update.participantRoles is not None:
        patch["participant_roles"] = {
            k: str(v) for k, v in update.participantRoles.items()
        }
    if update.duration is not None:
        patch["duration"] = update.duration
    if update.status:
        patch["status"] = str(update.status)
    if update.creatorId:
        patch["creator_id"] = update.creatorId
    return patch


# =============================================================================
# Profiles & Friends
# =============================================================================


def map_friend(row: Row) -> Friend:
    p = ProfileRow.model_validate(row)
    return Friend(
        id=p.id,
        username=p.username,
        branch=p.branch,
        year=p.year,
        cookieScore=p.cookie_score or 0,
        mutualFriends=0,
    )


def map_profile(row: Row) -> Profile:
    p = ProfileRow.model_validate(row)
    return Profile(
        id=p.id,
        username=p.username,
        bio=p.bio,
        branch=p.branch,
        year=p.year,
        expertise=ensure_list(p.expertise),
        interests=ensure_list(p.interests),
        privacy=p.privacy,
        cookieScore=p.cookie_score or 0,
    )


def profile_update_to_row(update: ProfileUpdate) -> ProfilePatch:
    return {
        "bio": update.bio,
        "branch": update.branch,
        "year": update.year,
        "expertise": list(update.expertise),
        "interests": list(update.interests),
        "privacy": update.privacy,
    }


def map_friend_request(row: Row) -> FriendRequest:
    r = FriendRequestRow.model_validate(row)
    return FriendRequest(id=r.id, fromUserId=r.from_user_id, toUserId=r.to_user_id)


# =============================================================================
# Tags
# =============================================================================


def map_tag(row: Row) -> Tag:
    t = TagRow.model_validate(row)
    return Tag(
        id=t.id,
        name=t.name,
        color=t.color,
        emoji=t.emoji,
        memberIds=ensure_list(t.member_ids),
        creatorId=t.creator_id,
    )


def tag_draft_to_row(draft: TagDraft, creator_id: str) -> TagInsert:
    """New tags start with no members."""
    return {
        "name": draft.name,
        "color": draft.color,
        "emoji": draft.emoji,
        "creator_id": creator_id,
        "member_ids": [],
    }


def tag_update_to_row(update: TagUpdate) -> TagPatch:
    patch: TagPatch = {}
    if update.name:
        patch["name"] = update.name
    if update.color:
        patch["color"] = update.color
    if update.emoji:
        patch["emoji"] = update.emoji
    if update.memberIds is not None:
        patch["member_ids"] = list(update.memberIds)
    return patch


# =============================================================================
# Notifications
# =============================================================================


def map_notification(
    row: NotificationRow,
    user: Row | None = None,
    session: Row | None = None,
    tag: Row | None = None,
) -> Notification:
    """Assemble a ``Notification`` from its row and the looked-up summaries.

    Args:
        row: Validated notification row
        user: ``profiles`` row of the actor (``id``, ``username``), if loaded
        session: ``sessions`` row (``id``, ``title``, ``emoji``), if loaded
        tag: ``tags`` row (``id``, ``name``), if loaded
    """
    return Notification(
        id=row.id,
        type=row.type,
        user=NotificationActor.model_validate(user) if user else None,
        session=NotificationSession.model_validate(session) if session else None,
        tag=NotificationTag.model_validate(tag) if tag else None,
        timestamp=row.created_at,
        isRead=row.is_read,
    )


# =============================================================================
# Messaging
# =============================================================================


def map_conversation(row: Row) -> Conversation:
    c = ConversationRow.model_validate(row)
    return Conversation(id=c.id, participantIds=ensure_list(c.participant_ids))


def map_direct_message(row: Row) -> DirectMessage:
    m = DirectMessageRow.model_validate(row)
    return DirectMessage(
        id=m.id,
        conversationId=m.conversation_id,
        senderId=m.sender_id,
        text=m.text,
        timestamp=m.timestamp,
    )


def map_session_message(row: Row) -> SessionMessage:
    m = SessionMessageRow.model_validate(row)
    return SessionMessage(
        id=m.id,
        sessionId=m.session_id,
        senderId=m.sender_id,
        text=m.text,
        timestamp=m.created_at,
        sender=_creator(m.sender),
    )


# =============================================================================
# Vouches
# =============================================================================


def map_vouch(row: Row) -> Vouch:
    v = VouchHistoryRow.model_validate(row)
    return Vouch(
        id=v.vouch_id,
        voucherUsername=v.voucher_username,
        skill=v.skill_name,
        points=v.points_earned,
        timestamp=v.created_timestamp,
    )
