"""Interface for interacting with the user (input/output).

Defines the contract for displaying conversations, messages, information,
warnings and errors, and for getting input from the user, allowing different
UI implementations (e.g., console, GUI).
"""

import abc
from typing import Any, Dict, Sequence

from chatlink.domain.models.chat import Conversation, Message, SessionError


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The text to display (rendered as Markdown where supported).
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def get_prompt(self, prompt_message: str = "You: ") -> str:
        """Gets input from the user synchronously.

        Note: For async contexts, the caller should wrap this in asyncio.to_thread.
        """
        pass

    @abc.abstractmethod
    def display_conversations(self, conversations: Sequence[Conversation], current_id: Any = None) -> None:
        """Displays the conversation list, highlighting the current one."""
        pass

    @abc.abstractmethod
    def display_messages(self, messages: Sequence[Message]) -> None:
        """Displays the messages of the current conversation."""
        pass

    def display_session_error(self, error: SessionError) -> None:
        """Displays a session error.

        Subscription-gated errors get a distinct affordance; by default every
        error is shown through display_error.
        """
        self.display_error(error.message)

    def display_assistants(self, assistants: Sequence[Dict[str, Any]]) -> None:
        """Displays the list of assistants."""
        pass

    def display_dashboard(self, dashboard: Dict[str, Any]) -> None:
        """Displays the aggregated assistants, subscriptions and packages."""
        pass

    def display_thinking(self, **kwargs: Any) -> None:
        """Displays an indicator while the assistant reply is pending."""
        pass
