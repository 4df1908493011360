"""Conversation session: the effect driver around the session reducer.

Owns the `SessionState` of the signed-in user and performs the API calls
behind each user operation. Results of operations that were superseded
while awaiting the network are dropped without touching the state:

- selections, and creations that make a new conversation current, are
  fenced by the selection scope token;
- sends are fenced by the messaging scope token and by comparing the
  conversation they were issued for with the current one;
- message loads are fenced by the current conversation id.

Failures are re-expressed as `SessionError` values in `state.error`; a
superseded operation never writes an error.
"""

import logging
from typing import Any, Callable, List, Optional

from chatlink.core.api_service import ApiService
from chatlink.core.session.cancellation import CancellationToken, OperationScope
from chatlink.core.session.state import (
    ConversationAdded,
    ConversationRemoved,
    ConversationsReplaced,
    CurrentConversationSet,
    ErrorCleared,
    ErrorRaised,
    LoadingChanged,
    MessageAppended,
    MessagesCleared,
    MessagesLoadingChanged,
    MessagesReplaced,
    OptimisticMessageFailed,
    OptimisticMessageReconciled,
    SessionEvent,
    SessionReset,
    TransitioningChanged,
    TypingChanged,
    reduce,
)
from chatlink.domain.interfaces.auth import AuthTokenSource
from chatlink.domain.interfaces.snapshot_store import SnapshotStore
from chatlink.domain.models.chat import (
    Conversation,
    Message,
    SessionError,
    SessionErrorType,
    SessionState,
    utc_now_iso,
)
from chatlink.domain.models.common import AssistantID, ConversationID, ConversationSnapshot, UserID
from chatlink.domain.models.result import ErrorKind, Failure
from chatlink.infrastructure.http.errors import NOT_AUTHENTICATED_MESSAGE

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "conversations-cache"
CONVERSATION_NOT_FOUND_MESSAGE = "Conversation not found"
MALFORMED_RESPONSE_MESSAGE = "Unexpected response from the server. Please try again."

# Raised when a success envelope carries items the models cannot be built from
MALFORMED_DATA_ERRORS = (KeyError, TypeError, AttributeError)

StateListener = Callable[[SessionState], None]


def to_session_error(failure: Failure) -> SessionError:
    """Re-expresses a client failure as the error shown by the UI."""
    if failure.kind == ErrorKind.DOMAIN and failure.error_code in (
        SessionErrorType.NO_SUBSCRIPTION.value,
        SessionErrorType.SUBSCRIPTION_EXPIRED.value,
    ):
        return SessionError(SessionErrorType(failure.error_code), failure.error, failure.payload)
    if failure.kind == ErrorKind.AUTHENTICATION:
        if failure.status == 401:
            return SessionError(SessionErrorType.SESSION_EXPIRED, failure.error)
        return SessionError(SessionErrorType.UNAUTHENTICATED, failure.error)
    if failure.kind == ErrorKind.CONNECTIVITY:
        return SessionError(SessionErrorType.CONNECTIVITY, failure.error)
    return SessionError(SessionErrorType.GENERIC, failure.error)


class ConversationSession:
    """Manages the conversations and the active chat of one user."""

    def __init__(
        self,
        api_service: ApiService,
        token_source: AuthTokenSource,
        snapshot_store: Optional[SnapshotStore] = None,
        user_id: Optional[str] = None,
    ):
        """Initializes the ConversationSession.

        Args:
            api_service: Facade used for every remote operation.
            token_source: Consulted before creating a conversation.
            snapshot_store: Optional store for the persisted conversation list.
            user_id: The signed-in user; operations are ignored while None.
        """
        self.api = api_service
        self.token_source = token_source
        self.snapshot_store = snapshot_store
        self._user_id: Optional[UserID] = UserID(user_id) if user_id else None
        self._state = SessionState()
        self._listeners: List[StateListener] = []
        self._selection = OperationScope("selection")
        self._messaging = OperationScope("messaging")
        self._message_loads = 0
        logger.info("ConversationSession initialized.")

    # --- State access ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user_id(self) -> Optional[UserID]:
        return self._user_id

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Registers listener for every new state; returns a function removing it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, event: SessionEvent) -> None:
        self._state = reduce(self._state, event)
        logger.debug(f"Session event: {type(event).__name__} -> phase={self._state.phase.value}")
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"Session listener failed: {e}", exc_info=True)

    def set_user(self, user_id: Optional[str]) -> None:
        """Binds the session to a user; switching users resets the state."""
        new_user = UserID(user_id) if user_id else None
        if new_user == self._user_id:
            return
        logger.info(f"Session user changed: {self._user_id} -> {new_user}")
        self._cancel_all()
        self._user_id = new_user
        self._dispatch(SessionReset())

    def clear_error(self) -> None:
        if self._state.error is not None:
            self._dispatch(ErrorCleared())

    # --- Operations ---

    async def create_conversation(self, assistant_id: AssistantID, title: Optional[str] = None) -> Optional[Conversation]:
        """Creates a conversation and makes it current.

        Returns:
            The new Conversation, or None on failure (see `state.error`).
        """
        token = await self.token_source.current_token()
        if not self._user_id or not token:
            self._dispatch(ErrorRaised(SessionError(SessionErrorType.UNAUTHENTICATED, NOT_AUTHENTICATED_MESSAGE)))
            return None

        user = self._user_id
        self._cancel_all()
        # A creation takes over the current conversation like a selection does
        selection = self._selection.begin(None)
        self._dispatch(MessagesCleared())
        self._dispatch(ErrorCleared())
        self._dispatch(LoadingChanged(True))
        try:
            result = await self.api.create_conversation(assistant_id, title)
            if self._user_id != user:
                return None
            if not self._selection.is_latest(selection):
                logger.debug("Discarding created conversation: another conversation was selected meanwhile")
                return None
            if not result.success:
                logger.info(f"Creating a conversation with {assistant_id} failed: {result.error}")
                self._dispatch(ErrorRaised(to_session_error(result)))
                return None

            try:
                conversation = Conversation.from_api(result.data or {}, fallback_title=title)
            except MALFORMED_DATA_ERRORS as e:
                self._report_malformed("conversation", e)
                return None
            self._dispatch(ConversationAdded(conversation))
            self._write_snapshot()
            logger.info(f"Created conversation {conversation.id} with assistant {assistant_id}")
            return conversation
        finally:
            self._selection.finish(selection)
            if self._user_id == user:
                self._dispatch(LoadingChanged(False))

    async def load_conversations(self) -> None:
        """Loads the conversation list, painting the persisted snapshot first."""
        if not self._user_id:
            return
        user = self._user_id
        self._dispatch(LoadingChanged(True))
        try:
            seeded = self._seed_from_snapshot()
            result = await self.api.get_conversations()
            if self._user_id != user:
                return
            if result.success:
                try:
                    conversations = [Conversation.from_api(item) for item in result.data or []]
                except MALFORMED_DATA_ERRORS as e:
                    if not seeded:
                        self._dispatch(ConversationsReplaced([]))
                    self._report_malformed("conversation list", e)
                    return
                self._dispatch(ConversationsReplaced(conversations))
                self._write_snapshot()
                return
            logger.info(f"Loading conversations failed: {result.error}")
            if not seeded:
                self._dispatch(ConversationsReplaced([]))
            self._dispatch(ErrorRaised(to_session_error(result)))
        finally:
            if self._user_id == user:
                self._dispatch(LoadingChanged(False))

    async def select_conversation(self, conversation_id: ConversationID) -> None:
        """Makes conversation_id current and loads its messages.

        Selecting the current conversation, or the one already being
        selected, does nothing. Selecting another one supersedes the
        selection in progress.
        """
        if not self._user_id:
            return
        if conversation_id == self._state.current_conversation_id:
            logger.debug(f"Conversation {conversation_id} already selected")
            return
        running = self._selection.current
        if running is not None and not running.cancelled and running.conversation_id == conversation_id:
            logger.debug(f"Selection of {conversation_id} already in progress")
            return

        token = self._selection.begin(conversation_id)
        self._dispatch(TransitioningChanged(True))
        self._dispatch(MessagesCleared())
        self._dispatch(ErrorCleared())
        try:
            conversation = self._state.find_conversation(conversation_id)
            if conversation is None:
                result = await self.api.get_conversations(skip_cache=True)
                if not self._selection.is_latest(token):
                    return
                if result.success:
                    try:
                        conversations = [Conversation.from_api(item) for item in result.data or []]
                    except MALFORMED_DATA_ERRORS as e:
                        self._report_malformed("conversation list", e)
                        return
                    self._dispatch(ConversationsReplaced(conversations))
                    self._write_snapshot()
                    conversation = self._state.find_conversation(conversation_id)
                if conversation is None:
                    error = to_session_error(result) if isinstance(result, Failure) else SessionError(
                        SessionErrorType.GENERIC, CONVERSATION_NOT_FOUND_MESSAGE
                    )
                    self._dispatch(ErrorRaised(error))
                    return

            self._dispatch(CurrentConversationSet(conversation))
            await self._load_messages(conversation_id, token=token)
        finally:
            if self._selection.is_latest(token):
                self._dispatch(TransitioningChanged(False))
                self._selection.finish(token)

    async def load_messages(self, conversation_id: ConversationID, skip_cache: bool = False) -> bool:
        """Replaces the message list with the messages of conversation_id.

        Returns:
            True when the messages were applied to the state.
        """
        if not self._user_id:
            return False
        return await self._load_messages(conversation_id, skip_cache=skip_cache)

    async def send_message(self, content: str) -> Optional[Message]:
        """Sends content to the current conversation with an optimistic echo.

        Returns:
            The confirmed assistant message, or None when nothing was applied.
        """
        content = (content or "").strip()
        current = self._state.current_conversation
        if not self._user_id or not content or current is None:
            return None
        if self._state.flags.typing:
            logger.debug("Send ignored: a reply is already pending")
            return None

        conversation_id = current.id
        token = self._messaging.begin(conversation_id)
        optimistic = Message.optimistic(conversation_id, content)
        self._dispatch(MessageAppended(optimistic))
        self._dispatch(ErrorCleared())
        self._dispatch(TypingChanged(True))
        try:
            result = await self.api.send_message(conversation_id, content)
            if not self._is_current_send(token):
                logger.debug(f"Discarding reply for {conversation_id}: conversation changed")
                return None

            if not result.success:
                logger.info(f"Sending to {conversation_id} failed: {result.error}")
                self._dispatch(OptimisticMessageFailed(optimistic.id))
                self._dispatch(ErrorRaised(to_session_error(result)))
                return None

            data = result.data if isinstance(result.data, dict) else {}
            user_message = data.get("userMessage")
            assistant_message = data.get("assistantMessage")
            if not user_message:
                # No confirmed echo in the reply; reload the authoritative history
                self._dispatch(OptimisticMessageReconciled(optimistic.id, ()))
                await self._load_messages(conversation_id, skip_cache=True)
                return None

            try:
                confirmed = [Message.from_api(user_message, conversation_id)]
                reply = Message.from_api(assistant_message, conversation_id) if assistant_message else None
            except MALFORMED_DATA_ERRORS as e:
                self._dispatch(OptimisticMessageFailed(optimistic.id))
                self._report_malformed("message", e)
                return None
            if reply is not None:
                confirmed.append(reply)
            self._dispatch(OptimisticMessageReconciled(optimistic.id, confirmed))
            return reply
        finally:
            if self._messaging.is_latest(token):
                self._dispatch(TypingChanged(False))
                self._messaging.finish(token)

    async def delete_conversation(self, conversation_id: ConversationID) -> bool:
        """Deletes a conversation; deleting the current one clears the chat."""
        if not self._user_id:
            return False
        user = self._user_id
        result = await self.api.delete_conversation(conversation_id)
        if self._user_id != user:
            return False
        if not result.success:
            logger.info(f"Deleting conversation {conversation_id} failed: {result.error}")
            self._dispatch(ErrorRaised(to_session_error(result)))
            return False

        self._abandon_operations_on(conversation_id)
        self._dispatch(ConversationRemoved(conversation_id))
        self._write_snapshot()
        logger.info(f"Deleted conversation {conversation_id}")
        return True

    # --- Internals ---

    async def _load_messages(
        self,
        conversation_id: ConversationID,
        token: Optional[CancellationToken] = None,
        skip_cache: bool = False,
    ) -> bool:
        self._message_loads += 1
        self._dispatch(MessagesLoadingChanged(True))
        try:
            result = await self.api.get_messages(conversation_id, skip_cache=skip_cache)
            if token is not None and not self._selection.is_latest(token):
                return False
            if self._state.current_conversation_id != conversation_id:
                logger.debug(f"Discarding messages of {conversation_id}: no longer current")
                return False
            if not result.success:
                logger.info(f"Loading messages of {conversation_id} failed: {result.error}")
                self._dispatch(ErrorRaised(to_session_error(result)))
                return False
            try:
                messages = [Message.from_api(item, conversation_id) for item in result.data or []]
            except MALFORMED_DATA_ERRORS as e:
                self._report_malformed("message list", e)
                return False
            self._dispatch(MessagesReplaced(messages))
            return True
        finally:
            self._message_loads -= 1
            if self._message_loads == 0:
                self._dispatch(MessagesLoadingChanged(False))

    def _report_malformed(self, what: str, error: Exception) -> None:
        logger.warning(f"Malformed {what} in server response: {error!r}")
        self._dispatch(ErrorRaised(SessionError(SessionErrorType.CONNECTIVITY, MALFORMED_RESPONSE_MESSAGE)))

    def _is_current_send(self, token: CancellationToken) -> bool:
        return self._messaging.is_latest(token) and self._state.current_conversation_id == token.conversation_id

    def _cancel_all(self) -> None:
        self._selection.cancel()
        self._messaging.cancel()
        if self._state.flags.transitioning:
            self._dispatch(TransitioningChanged(False))
        if self._state.flags.typing:
            self._dispatch(TypingChanged(False))

    def _abandon_operations_on(self, conversation_id: ConversationID) -> None:
        selection = self._selection.current
        if selection is not None and selection.conversation_id == conversation_id:
            self._selection.cancel()
            self._dispatch(TransitioningChanged(False))
        sending = self._messaging.current
        if sending is not None and sending.conversation_id == conversation_id:
            self._messaging.cancel()
            self._dispatch(TypingChanged(False))

    # --- Persisted snapshot ---

    def _seed_from_snapshot(self) -> bool:
        if self.snapshot_store is None:
            return False
        try:
            snapshot: Any = self.snapshot_store.get(SNAPSHOT_KEY)
        except Exception as e:
            logger.warning(f"Could not read conversation snapshot: {e}")
            return False
        if not isinstance(snapshot, dict) or snapshot.get("userId") != self._user_id:
            return False
        try:
            conversations = [Conversation.from_api(item) for item in snapshot.get("conversations") or []]
        except MALFORMED_DATA_ERRORS as e:
            logger.warning(f"Ignoring malformed conversation snapshot: {e}")
            return False
        logger.debug(f"Painting {len(conversations)} conversations from snapshot")
        self._dispatch(ConversationsReplaced(conversations))
        return True

    def _write_snapshot(self) -> None:
        if self.snapshot_store is None or not self._user_id:
            return
        snapshot: ConversationSnapshot = {
            "conversations": [c.to_api() for c in self._state.conversations],
            "lastUpdated": utc_now_iso(),
            "userId": self._user_id,
        }
        try:
            self.snapshot_store.set(SNAPSHOT_KEY, snapshot)
        except Exception as e:
            logger.warning(f"Could not persist conversation snapshot: {e}")
