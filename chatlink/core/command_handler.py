"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the conversation session and the API service, rendering results
and session errors through the UserInterface.
"""

import asyncio
import logging
import shlex
from typing import Optional

from chatlink.core.api_service import ApiService
from chatlink.core.session.conversation_session import ConversationSession, to_session_error
from chatlink.domain.interfaces.user_interface import UserInterface
from chatlink.domain.models.common import AssistantID, ConversationID
from chatlink.domain.models.result import Failure

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")
CHAT_HELP = (
    "Commands: /list, /switch ID, /new ASSISTANT_ID [title], /delete ID, /clear-cache, /exit. "
    "Anything else is sent to the current conversation."
)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(self, session: ConversationSession, api_service: ApiService, ui: UserInterface):
        """Initializes the CommandHandler with required services."""
        self.session = session
        self.api = api_service
        self.ui = ui

    def _report_session_error(self) -> bool:
        """Shows and clears the session error; returns True if there was one."""
        error = self.session.state.error
        if error is None:
            return False
        self.ui.display_session_error(error)
        self.session.clear_error()
        return True

    def _report_failure(self, result: Failure) -> None:
        self.ui.display_session_error(to_session_error(result))

    def _require_user(self) -> bool:
        if self.session.user_id:
            return True
        self.ui.display_error("Not signed in. Set CHATLINK_API_TOKEN (and CHATLINK_USER_ID) and try again.")
        return False

    # --- Conversations ---

    async def handle_list_conversations(self) -> None:
        logger.info("Handling 'conversations' command")
        if not self._require_user():
            return
        await self.session.load_conversations()
        self._report_session_error()
        state = self.session.state
        self.ui.display_conversations(state.conversations, state.current_conversation_id)

    async def handle_new_conversation(self, assistant_id: str, title: Optional[str] = None) -> Optional[str]:
        logger.info(f"Handling 'new' command for assistant: {assistant_id}")
        conversation = await self.session.create_conversation(AssistantID(assistant_id), title)
        if conversation is None:
            self._report_session_error()
            return None
        self.ui.display_info(f"Created conversation {conversation.id} ({conversation.title or 'untitled'}).")
        return conversation.id

    async def handle_show_messages(self, conversation_id: str) -> None:
        logger.info(f"Handling 'messages' command for conversation: {conversation_id}")
        if not self._require_user():
            return
        await self.session.select_conversation(ConversationID(conversation_id))
        if self._report_session_error():
            return
        self.ui.display_messages(self.session.state.messages)

    async def handle_send(self, conversation_id: str, message: str) -> None:
        logger.info(f"Handling 'send' command for conversation: {conversation_id}")
        if not self._require_user():
            return
        await self.session.select_conversation(ConversationID(conversation_id))
        if self._report_session_error():
            return
        await self._send(message)

    async def handle_delete(self, conversation_id: str) -> None:
        logger.info(f"Handling 'delete' command for conversation: {conversation_id}")
        if not self._require_user():
            return
        if await self.session.delete_conversation(ConversationID(conversation_id)):
            self.ui.display_info(f"Conversation {conversation_id} deleted.")
        else:
            self._report_session_error()

    async def _send(self, message: str) -> None:
        if self.session.state.current_conversation is None:
            self.ui.display_warning("No conversation selected. Use /switch ID or /new ASSISTANT_ID.")
            return
        if not message.strip():
            return
        self.ui.display_output(message, title="You")
        self.ui.display_thinking()
        reply = await self.session.send_message(message)
        if self._report_session_error():
            return
        if reply is not None:
            self.ui.display_output(reply.content, title="Assistant")
        else:
            # Reply came back without a confirmed echo; show the reloaded history
            self.ui.display_messages(self.session.state.messages[-1:])

    # --- Interactive chat ---

    async def start_chat(self, conversation_id: Optional[str] = None) -> None:
        """Runs the interactive chat loop until /exit or end of input."""
        logger.info("Starting interactive chat session.")
        if not self._require_user():
            return
        await self.handle_list_conversations()
        if conversation_id:
            await self.handle_show_messages(conversation_id)
        self.ui.display_info(CHAT_HELP)

        while True:
            try:
                line = await asyncio.to_thread(self.ui.get_prompt, "You: ")
            except (EOFError, KeyboardInterrupt):
                logger.info("Chat input closed.")
                break
            line = line.strip()
            if not line:
                continue
            if line in EXIT_COMMANDS:
                break
            try:
                await self._dispatch_chat_line(line)
            except Exception as e:
                logger.error(f"Chat command failed: {e}", exc_info=True)
                self.ui.display_error(f"Command failed: {e}")
        logger.info("Interactive chat session ended.")

    async def _dispatch_chat_line(self, line: str) -> None:
        if not line.startswith("/"):
            await self._send(line)
            return

        parts = shlex.split(line)
        command, args = parts[0], parts[1:]
        if command == "/list":
            await self.handle_list_conversations()
        elif command == "/switch" and args:
            await self.handle_show_messages(args[0])
        elif command == "/new" and args:
            new_id = await self.handle_new_conversation(args[0], " ".join(args[1:]) or None)
            if new_id:
                self.ui.display_messages(self.session.state.messages)
        elif command == "/delete" and args:
            await self.handle_delete(args[0])
        elif command == "/clear-cache":
            await self.handle_clear_cache()
        else:
            self.ui.display_warning(CHAT_HELP)

    # --- Catalogue and account ---

    async def handle_list_assistants(self) -> None:
        logger.info("Handling 'assistants' command")
        result = await self.api.get_assistants()
        if isinstance(result, Failure):
            self._report_failure(result)
            return
        self.ui.display_assistants(result.data or [])

    async def handle_health(self) -> None:
        result = await self.api.get_health()
        if isinstance(result, Failure):
            self._report_failure(result)
            return
        status = result.data.get("status", "ok") if isinstance(result.data, dict) else "ok"
        self.ui.display_info(f"API is reachable (status: {status}).")

    async def handle_dashboard(self) -> None:
        logger.info("Handling 'dashboard' command")
        result = await self.api.get_dashboard_data()
        self.ui.display_dashboard(result.data or {})

    async def handle_clear_cache(self) -> None:
        """Handles /clear-cache in the chat loop; the cache lives only as long as the process."""
        removed = self.api.clear_cache()
        self.ui.display_info(f"Cleared {removed} cached responses.")
