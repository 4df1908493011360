"""Domain models specific to chat interactions.

Includes the `Conversation` and `Message` entities, the tagged message
identifiers used for optimistic updates, and the immutable `SessionState`
aggregate owned by the conversation session.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

from chatlink.domain.models.common import AssistantID, ConversationID, UserID


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Delivery(str, enum.Enum):
    """Delivery status of a message shown in the session."""
    PENDING = "pending"      # Optimistic, waiting for the server
    DELIVERED = "delivered"  # Confirmed by the server
    FAILED = "failed"        # Send failed; kept so the user can see what was lost


@dataclass(frozen=True)
class OptimisticId:
    """Client-generated identifier of a message not yet confirmed by the server."""
    local_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    kind: str = field(default="optimistic", init=False)

    def __str__(self) -> str:
        return f"local:{self.local_id}"


@dataclass(frozen=True)
class ConfirmedId:
    """Server-assigned message identifier."""
    server_id: str
    kind: str = field(default="confirmed", init=False)

    def __str__(self) -> str:
        return self.server_id


MessageId = Union[OptimisticId, ConfirmedId]


@dataclass(frozen=True)
class AssistantSummary:
    """Display information about the assistant a conversation belongs to."""
    name: Optional[str] = None
    icon: Optional[str] = None
    color_theme: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional["AssistantSummary"]:
        if not data:
            return None
        return cls(name=data.get("name"), icon=data.get("icon"), color_theme=data.get("color_theme"))


@dataclass(frozen=True)
class Conversation:
    """Entity representing a chat conversation with one assistant."""
    id: ConversationID
    user_id: Optional[UserID] = None
    assistant_id: Optional[AssistantID] = None
    title: str = ""
    thread_ref: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    assistant_summary: Optional[AssistantSummary] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any], fallback_title: Optional[str] = None) -> "Conversation":
        """Builds a Conversation from the wire representation."""
        return cls(
            id=ConversationID(str(data["id"])),
            user_id=data.get("user_id"),
            assistant_id=data.get("assistant_id"),
            title=data.get("title") or fallback_title or "",
            thread_ref=data.get("thread_id"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at") or data.get("last_message_at"),
            assistant_summary=AssistantSummary.from_api(data.get("assistants") or data.get("assistant")),
            raw=dict(data),
        )

    def to_api(self) -> Dict[str, Any]:
        """Returns the wire representation, used for the persisted snapshot."""
        if self.raw:
            return dict(self.raw)
        return {
            "id": self.id,
            "user_id": self.user_id,
            "assistant_id": self.assistant_id,
            "title": self.title,
            "thread_id": self.thread_ref,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Message:
    """Entity representing a single message within a conversation."""
    id: MessageId
    conversation_id: ConversationID
    role: MessageRole
    content: str
    created_at: str = field(default_factory=utc_now_iso)
    delivery: Delivery = Delivery.DELIVERED

    @property
    def is_optimistic(self) -> bool:
        return isinstance(self.id, OptimisticId)

    @classmethod
    def optimistic(cls, conversation_id: ConversationID, content: str) -> "Message":
        """Creates a pending user message with a locally generated id."""
        return cls(
            id=OptimisticId(),
            conversation_id=conversation_id,
            role=MessageRole.USER,
            content=content,
            delivery=Delivery.PENDING,
        )

    @classmethod
    def from_api(cls, data: Dict[str, Any], conversation_id: Optional[str] = None) -> "Message":
        """Builds a confirmed Message from the wire representation."""
        return cls(
            id=ConfirmedId(str(data["id"])),
            conversation_id=ConversationID(str(data.get("conversation_id") or conversation_id or "")),
            role=MessageRole.USER if data.get("role", "user") == "user" else MessageRole.ASSISTANT,
            content=data.get("content") or "",
            created_at=data.get("created_at") or utc_now_iso(),
        )


class SessionErrorType(str, enum.Enum):
    GENERIC = "GENERIC"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    CONNECTIVITY = "CONNECTIVITY"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"


@dataclass(frozen=True)
class SessionError:
    """Error shown to the user. Subscription errors keep their full payload."""
    type: SessionErrorType
    message: str
    payload: Optional[Dict[str, Any]] = None

    @property
    def is_subscription_error(self) -> bool:
        return self.type in (SessionErrorType.NO_SUBSCRIPTION, SessionErrorType.SUBSCRIPTION_EXPIRED)


@dataclass(frozen=True)
class SessionFlags:
    loading: bool = False
    loading_messages: bool = False
    transitioning: bool = False
    typing: bool = False


class SessionPhase(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    TRANSITIONING = "transitioning"
    TYPING = "typing"
    ERROR = "error"


@dataclass(frozen=True)
class SessionState:
    """Aggregate root read by the UI; only the session manager produces new values."""
    conversations: Tuple[Conversation, ...] = ()
    current_conversation: Optional[Conversation] = None
    messages: Tuple[Message, ...] = ()
    flags: SessionFlags = field(default_factory=SessionFlags)
    error: Optional[SessionError] = None

    @property
    def phase(self) -> SessionPhase:
        """Current state-machine phase, derived from the error and flags."""
        if self.error is not None:
            return SessionPhase.ERROR
        if self.flags.typing:
            return SessionPhase.TYPING
        if self.flags.transitioning:
            return SessionPhase.TRANSITIONING
        if self.flags.loading or self.flags.loading_messages:
            return SessionPhase.LOADING
        return SessionPhase.IDLE

    @property
    def current_conversation_id(self) -> Optional[ConversationID]:
        return self.current_conversation.id if self.current_conversation else None

    def find_conversation(self, conversation_id: str) -> Optional[Conversation]:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None
