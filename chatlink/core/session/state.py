"""Session events and the pure reducer producing new `SessionState` values.

`reduce(state, event)` never performs I/O and never mutates its input; the
conversation session applies one event per state change and notifies its
listeners with the result.
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence

from chatlink.domain.models.chat import (
    Conversation,
    Delivery,
    Message,
    OptimisticId,
    SessionError,
    SessionState,
)


@dataclass(frozen=True)
class SessionEvent:
    """Base class for session state transitions."""
    pass


@dataclass(frozen=True)
class LoadingChanged(SessionEvent):
    value: bool


@dataclass(frozen=True)
class MessagesLoadingChanged(SessionEvent):
    value: bool


@dataclass(frozen=True)
class TransitioningChanged(SessionEvent):
    value: bool


@dataclass(frozen=True)
class TypingChanged(SessionEvent):
    value: bool


@dataclass(frozen=True)
class ErrorRaised(SessionEvent):
    error: SessionError


@dataclass(frozen=True)
class ErrorCleared(SessionEvent):
    pass


@dataclass(frozen=True)
class ConversationsReplaced(SessionEvent):
    conversations: Sequence[Conversation]


@dataclass(frozen=True)
class CurrentConversationSet(SessionEvent):
    conversation: Optional[Conversation]


@dataclass(frozen=True)
class ConversationAdded(SessionEvent):
    """A newly created conversation; it goes first in the list and becomes current."""
    conversation: Conversation


@dataclass(frozen=True)
class ConversationRemoved(SessionEvent):
    conversation_id: str


@dataclass(frozen=True)
class MessagesReplaced(SessionEvent):
    messages: Sequence[Message]


@dataclass(frozen=True)
class MessagesCleared(SessionEvent):
    pass


@dataclass(frozen=True)
class MessageAppended(SessionEvent):
    message: Message


@dataclass(frozen=True)
class OptimisticMessageReconciled(SessionEvent):
    """Replaces the optimistic entry with the server-confirmed messages."""
    local_id: OptimisticId
    confirmed: Sequence[Message]


@dataclass(frozen=True)
class OptimisticMessageFailed(SessionEvent):
    local_id: OptimisticId


@dataclass(frozen=True)
class SessionReset(SessionEvent):
    pass


def _without(messages: Sequence[Message], local_id: OptimisticId) -> tuple:
    return tuple(m for m in messages if m.id != local_id)


def reduce(state: SessionState, event: SessionEvent) -> SessionState:
    """Returns the state that results from applying event to state."""
    flags = state.flags

    if isinstance(event, LoadingChanged):
        return replace(state, flags=replace(flags, loading=event.value))
    if isinstance(event, MessagesLoadingChanged):
        return replace(state, flags=replace(flags, loading_messages=event.value))
    if isinstance(event, TransitioningChanged):
        return replace(state, flags=replace(flags, transitioning=event.value))
    if isinstance(event, TypingChanged):
        return replace(state, flags=replace(flags, typing=event.value))

    if isinstance(event, ErrorRaised):
        return replace(state, error=event.error)
    if isinstance(event, ErrorCleared):
        return replace(state, error=None)

    if isinstance(event, ConversationsReplaced):
        conversations = tuple(event.conversations)
        current = state.current_conversation
        if current is not None:
            # Keep the current conversation pointing at the freshest copy
            current = next((c for c in conversations if c.id == current.id), current)
        return replace(state, conversations=conversations, current_conversation=current)
    if isinstance(event, CurrentConversationSet):
        return replace(state, current_conversation=event.conversation)
    if isinstance(event, ConversationAdded):
        rest = tuple(c for c in state.conversations if c.id != event.conversation.id)
        return replace(
            state,
            conversations=(event.conversation,) + rest,
            current_conversation=event.conversation,
        )
    if isinstance(event, ConversationRemoved):
        conversations = tuple(c for c in state.conversations if c.id != event.conversation_id)
        if state.current_conversation_id == event.conversation_id:
            return replace(state, conversations=conversations, current_conversation=None, messages=())
        return replace(state, conversations=conversations)

    if isinstance(event, MessagesReplaced):
        return replace(state, messages=tuple(event.messages))
    if isinstance(event, MessagesCleared):
        return replace(state, messages=())
    if isinstance(event, MessageAppended):
        return replace(state, messages=state.messages + (event.message,))
    if isinstance(event, OptimisticMessageReconciled):
        return replace(state, messages=_without(state.messages, event.local_id) + tuple(event.confirmed))
    if isinstance(event, OptimisticMessageFailed):
        messages = tuple(
            replace(m, delivery=Delivery.FAILED) if m.id == event.local_id else m
            for m in state.messages
        )
        return replace(state, messages=messages)

    if isinstance(event, SessionReset):
        return SessionState()

    raise ValueError(f"Unknown session event: {event!r}")
