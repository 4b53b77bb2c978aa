"""Data models for campusdb.

This module defines two families of Pydantic models:

1. Row models mirroring the backend's tables and procedure payloads
   (underscore-separated field names, exactly as PostgREST returns them)
2. View models handed to the application (camelCase field names)

Row models are the validation boundary: a row with an unexpected shape
(wrong type, unknown role or status) raises ``pydantic.ValidationError``
instead of leaking through. Nullable array/object columns stay ``None`` on
the row; ``campusdb.mappers`` substitutes empty containers.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from campusdb.utils import parse_datetime

# =============================================================================
# Section 1: Domain Enums
# =============================================================================


class SessionStatus(StrEnum):
    """Lifecycle status of a session."""

    ACTIVE = "active"
    CLOSED = "closed"


class ParticipantRole(StrEnum):
    """Role a participant holds within a session."""

    SEEKING = "seeking"
    OFFERING = "offering"
    PARTICIPANT = "participant"
    GIVER = "giver"


class PrivacyMode(StrEnum):
    """Known session/profile privacy modes."""

    PUBLIC = "public"
    PRIVATE = "private"
    TAGS = "tags"


# =============================================================================
# Section 2: Row Models (backend shapes)
# =============================================================================


class CreatorRow(BaseModel):
    """Embedded profile summary from a ``profiles`` join."""

    model_config = ConfigDict(extra="ignore")

    username: Optional[str] = None


class SessionRow(BaseModel):
    """Row from the ``sessions`` table, optionally with the creator join."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    description: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    session_type: Optional[str] = None
    emoji: Optional[str] = None
    event_time: Optional[datetime] = None
    duration: Optional[int] = None
    status: SessionStatus = SessionStatus.ACTIVE
    creator_id: Optional[str] = None
    participants: Optional[list[str]] = None
    participant_roles: Optional[dict[str, ParticipantRole]] = None
    privacy: Optional[str] = None
    visible_to_tags: Optional[list[str]] = None
    help_category: Optional[str] = None
    skill_tag: Optional[str] = None
    expected_outcome: Optional[str] = None
    return_time: Optional[datetime] = None
    urgency: Optional[str] = None
    flow: Optional[str] = None
    creator: Optional[CreatorRow] = None

    @field_validator("event_time", "return_time", mode="before")
    @classmethod
    def _coerce_times(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class ProfileRow(BaseModel):
    """Row from the ``profiles`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    username: str
    bio: Optional[str] = None
    branch: Optional[str] = None
    year: Optional[int] = None
    expertise: Optional[list[str]] = None
    interests: Optional[list[str]] = None
    privacy: Optional[str] = None
    cookie_score: Optional[int] = None


class FriendshipRow(BaseModel):
    """Row from the ``friendships`` table (one direction of a friendship)."""

    model_config = ConfigDict(extra="ignore")

    friend_id: str
    user_id: Optional[str] = None


class FriendRequestRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    from_user_id: str
    to_user_id: str


class TagRow(BaseModel):
    """Row from the ``tags`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    color: Optional[str] = None
    emoji: Optional[str] = None
    creator_id: Optional[str] = None
    member_ids: Optional[list[str]] = None


class NotificationRow(BaseModel):
    """Row from the ``notifications`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    recipient_id: Optional[str] = None
    actor_id: Optional[str] = None
    session_id: Optional[int] = None
    tag_id: Optional[str] = None
    created_at: Optional[datetime] = None
    is_read: bool = False

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class ConversationRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    participant_ids: Optional[list[str]] = None
    updated_at: Optional[datetime] = None

    @field_validator("updated_at", mode="before")
    @classmethod
    def _coerce_updated_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class DirectMessageRow(BaseModel):
    """Row from the ``direct_messages`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    conversation_id: str
    sender_id: str
    text: str
    timestamp: Optional[datetime] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class SessionMessageRow(BaseModel):
    """Row from the ``session_messages`` table with the sender join."""

    model_config = ConfigDict(extra="ignore")

    id: str
    session_id: int
    sender_id: str
    text: str
    created_at: Optional[datetime] = None
    sender: Optional[CreatorRow] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class VouchHistoryRow(BaseModel):
    """Row returned by the ``get_user_vouch_history`` procedure."""

    model_config = ConfigDict(extra="ignore")

    vouch_id: str
    voucher_username: str
    skill_name: str
    points_earned: int
    created_timestamp: Optional[datetime] = None

    @field_validator("created_timestamp", mode="before")
    @classmethod
    def _coerce_created(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class ProcedureEnvelope(BaseModel):
    """``{success, error, ...payload}`` object returned by the safe procedures."""

    model_config = ConfigDict(extra="allow")

    success: bool
    error: Optional[str] = None

    @property
    def payload(self) -> dict[str, Any]:
        """Everything the procedure returned besides the status fields."""
        return dict(self.model_extra or {})


class MembershipPayload(BaseModel):
    """Payload of a successful ``join_session_safe`` call."""

    model_config = ConfigDict(extra="ignore")

    participants: Optional[list[str]] = None
    participant_roles: Optional[dict[str, ParticipantRole]] = None


# =============================================================================
# Section 3: View Models (application shapes)
# =============================================================================


class CreatorSummary(BaseModel):
    """Username of a related profile; ``"Unknown"`` when the join is empty."""

    username: str = "Unknown"


class Session(BaseModel):
    """A scheduled or ad hoc activity with participants and roles.

    Attributes:
        id: Session identifier
        title: Display title
        description: Free-text description (empty string when unset)
        lat: Latitude
        lng: Longitude
        sessionType: Session type tag
        emoji: Display emoji
        eventTime: Scheduled start (UTC)
        duration: Duration in minutes
        status: ``active`` or ``closed``
        creatorId: Creator's user id
        participants: Participant user ids
        participantRoles: Participant id -> role
        privacy: Privacy mode
        visibleToTags: Tag ids the session is visible to
        helpCategory: Help category, for help sessions
        skillTag: Skill on offer or sought
        expectedOutcome: Expected outcome description
        returnTime: Expected return time (UTC)
        urgency: Urgency label
        flow: Flow label
        creator: Creator summary
    """

    id: int
    title: str
    description: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    sessionType: Optional[str] = None
    emoji: Optional[str] = None
    eventTime: Optional[datetime] = None
    duration: Optional[int] = None
    status: SessionStatus = SessionStatus.ACTIVE
    creatorId: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    participantRoles: dict[str, ParticipantRole] = Field(default_factory=dict)
    privacy: Optional[str] = None
    visibleToTags: list[str] = Field(default_factory=list)
    helpCategory: Optional[str] = None
    skillTag: Optional[str] = None
    expectedOutcome: Optional[str] = None
    returnTime: Optional[datetime] = None
    urgency: Optional[str] = None
    flow: Optional[str] = None
    creator: CreatorSummary = Field(default_factory=CreatorSummary)


class SessionMembership(BaseModel):
    """Participant list and roles after a successful join."""

    participants: list[str] = Field(default_factory=list)
    participantRoles: dict[str, ParticipantRole] = Field(default_factory=dict)


class SessionDraft(BaseModel):
    """Input for creating a session."""

    title: str
    description: str = ""
    lat: float
    lng: float
    sessionType: str
    emoji: Optional[str] = None
    eventTime: datetime
    duration: int
    status: SessionStatus = SessionStatus.ACTIVE
    creatorId: str
    participants: list[str] = Field(default_factory=list)
    participantRoles: dict[str, ParticipantRole] = Field(default_factory=dict)
    privacy: str = PrivacyMode.PUBLIC
    visibleToTags: list[str] = Field(default_factory=list)
    helpCategory: Optional[str] = None
    skillTag: Optional[str] = None
    expectedOutcome: Optional[str] = None
    returnTime: Optional[datetime] = None
    urgency: Optional[str] = None
    flow: Optional[str] = None


class SessionUpdate(BaseModel):
    """Partial update for creator actions (extend, close, hand over)."""

    participants: Optional[list[str]] = None
    participantRoles: Optional[dict[str, ParticipantRole]] = None
    duration: Optional[int] = None
    status: Optional[SessionStatus] = None
    creatorId: Optional[str] = None


class Friend(BaseModel):
    """Profile summary as shown in friend lists and search results.

    ``mutualFriends`` is not computed here and is always 0.
    """

    id: str
    username: str
    branch: Optional[str] = None
    year: Optional[int] = None
    cookieScore: int = 0
    mutualFriends: int = 0


class Profile(BaseModel):
    id: str
    username: str
    bio: Optional[str] = None
    branch: Optional[str] = None
    year: Optional[int] = None
    expertise: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    privacy: Optional[str] = None
    cookieScore: int = 0


class ProfileUpdate(BaseModel):
    """Editable profile fields. Every field is written, including ``None``."""

    bio: Optional[str] = None
    branch: Optional[str] = None
    year: Optional[int] = None
    expertise: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    privacy: Optional[str] = None


class FriendRequest(BaseModel):
    id: str
    fromUserId: str
    toUserId: str


class Tag(BaseModel):
    """A user-defined group of friends used for session visibility."""

    id: str
    name: str
    color: Optional[str] = None
    emoji: Optional[str] = None
    memberIds: list[str] = Field(default_factory=list)
    creatorId: Optional[str] = None


class TagDraft(BaseModel):
    name: str
    color: Optional[str] = None
    emoji: Optional[str] = None


class TagUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    emoji: Optional[str] = None
    memberIds: Optional[list[str]] = None


class NotificationActor(BaseModel):
    id: str
    username: str


class NotificationSession(BaseModel):
    id: int
    title: str
    emoji: Optional[str] = None


class NotificationTag(BaseModel):
    id: str
    name: str


class Notification(BaseModel):
    """A notification enriched with actor, session and tag summaries.

    Each summary is ``None`` when the notification carries no reference to
    that entity or the referenced row could not be loaded.
    """

    id: str
    type: str
    user: Optional[NotificationActor] = None
    session: Optional[NotificationSession] = None
    tag: Optional[NotificationTag] = None
    timestamp: Optional[datetime] = None
    isRead: bool = False


class Conversation(BaseModel):
    """Direct-message conversation; messages and unread count load separately."""

    id: str
    participantIds: list[str] = Field(default_factory=list)
    messages: list["DirectMessage"] = Field(default_factory=list)
    unreadCount: int = 0


class DirectMessage(BaseModel):
    id: str
    conversationId: str
    senderId: str
    text: str
    timestamp: Optional[datetime] = None


class SessionMessage(BaseModel):
    id: str
    sessionId: int
    senderId: str
    text: str
    timestamp: Optional[datetime] = None
    sender: CreatorSummary = Field(default_factory=CreatorSummary)


class Vouch(BaseModel):
    """An endorsement of a demonstrated skill within a session."""

    id: str
    voucherUsername: str
    skill: str
    points: int
    timestamp: Optional[datetime] = None


Conversation.model_rebuild()
