"""Type definitions for campusdb.

TypedDict definitions for the payloads this layer sends to the backend:
insert/update bodies and remote-procedure arguments. Rows coming back are
validated by the row models in ``campusdb.models`` instead.

Example:
    >>> from campusdb.types import JoinSessionParams
    >>> params: JoinSessionParams = {
    ...     "p_session_id": 42,
    ...     "p_user_id": "user-1",
    ...     "p_role": "participant",
    ... }
"""

from collections.abc import Mapping
from typing import Any, TypedDict

# A row exactly as PostgREST returns it
Row = Mapping[str, Any]


# =============================================================================
# Table Write Payloads
# =============================================================================


class SessionInsert(TypedDict):
    """Insert body for the ``sessions`` table."""

    title: str
    description: str
    lat: float
    lng: float
    session_type: str
    emoji: str | None
    event_time: str | None
    duration: int
    status: str
    creator_id: str
    participants: list[str]
    participant_roles: dict[str, str]
    privacy: str
    visible_to_tags: list[str]
    help_category: str | None
    skill_tag: str | None
    expected_outcome: str | None
    return_time: str | None
    urgency: str | None
    flow: str | None


class SessionPatch(TypedDict, total=False):
    """Update body for the ``sessions`` table; only provided keys are written."""

    participants: list[str]
    participant_roles: dict[str, str]
    duration: int
    status: str
    creator_id: str


class TagInsert(TypedDict):
    name: str
    color: str | None
    emoji: str | None
    creator_id: str
    member_ids: list[str]


class TagPatch(TypedDict, total=False):
    name: str
    color: str
    emoji: str
    member_ids: list[str]


class ProfilePatch(TypedDict):
    bio: str | None
    branch: str | None
    year: int | None
    expertise: list[str]
    interests: list[str]
    privacy: str | None


# =============================================================================
# Remote Procedure Arguments
# =============================================================================


class JoinSessionParams(TypedDict):
    p_session_id: int
    p_user_id: str
    p_role: str


class LeaveSessionParams(TypedDict):
    p_session_id: int
    p_user_id: str


class CreateVouchParams(TypedDict):
    p_voucher_id: str
    p_receiver_id: str
    p_session_id: int
    p_skill: str


class VouchHistoryParams(TypedDict):
    p_user_id: str


class AcceptFriendRequestParams(TypedDict):
    request_id: str


class CreateNotificationParams(TypedDict):
    """Arguments for ``create_notification_safe``; absent references are null."""

    p_recipient_id: str
    p_type: str
    p_actor_id: str | None
    p_session_id: int | None
    p_tag_id: str | None


class ConversationParams(TypedDict):
    user_id_1: str
    user_id_2: str
