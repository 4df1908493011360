import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chatlink.domain.interfaces.user_interface import UserInterface
from chatlink.domain.models.chat import Conversation, Delivery, Message, MessageRole, SessionError

logger = logging.getLogger(__name__)


def _short_time(timestamp: Optional[str]) -> str:
    """Formats an ISO timestamp as 'YYYY-MM-DD HH:MM'; unparseable values pass through."""
    if not timestamp:
        return ""
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return timestamp


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()
        self.last_sender = None

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays output text to the user, rendering Markdown.

        Args:
            output: The string to display.
            **kwargs: Additional arguments including:
                - title: The title/sender of the message (default: "Assistant")
                - timestamp: Timestamp shown in the header
                - style: Border style override for the panel
        """
        title = kwargs.get("title", "Assistant")
        timestamp = kwargs.get("timestamp") or datetime.now().strftime("%H:%M:%S")

        is_user = title.lower() in ("you", "user")
        style = kwargs.get("style") or ("green" if is_user else "blue")
        box_style = SIMPLE if is_user else ROUNDED

        if self.last_sender != title:
            self.console.print("")
        self.last_sender = title

        header = f"[bold white]{title}[/bold white] [dim]·[/dim] [dim white]{timestamp}[/dim white]"
        self.console.print(
            Panel(
                Markdown(str(output)),
                title=header,
                title_align="left",
                border_style=style,
                box=box_style,
                padding=(0, 1),
            )
        )

    def get_prompt(self, prompt_message: str = "You: ") -> str:
        """Gets a line of input from the user."""
        self.last_sender = None
        self.console.print("")
        return self.console.input(f"[bold green]{prompt_message}[/bold green]")

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_session_error(self, error: SessionError) -> None:
        """Displays a session error; subscription errors get their own panel with the server details."""
        if not error.is_subscription_error:
            self.display_error(error.message)
            return

        payload = error.payload or {}
        lines = [error.message]
        if payload.get("assistant_id"):
            lines.append(f"Assistant: {payload['assistant_id']}")
        if payload.get("expired_at"):
            lines.append(f"Expired at: {_short_time(payload['expired_at'])}")
        if payload.get("days_expired") is not None:
            lines.append(f"Days since expiry: {payload['days_expired']}")
        lines.append("Run 'chatlink assistants' to review available plans.")

        title = "Subscription expired" if error.type.value == "SUBSCRIPTION_EXPIRED" else "Subscription required"
        self.console.print(
            Panel(
                Text("\n".join(lines), style="white"),
                title=f"[bold magenta]{title}[/bold magenta]",
                border_style="magenta",
                box=HEAVY,
                padding=(0, 1),
            )
        )

    def display_conversations(self, conversations: Sequence[Conversation], current_id: Any = None) -> None:
        """Displays the conversation list as a table, marking the current conversation."""
        logger.debug(f"Displaying {len(conversations)} conversations")
        if not conversations:
            self.display_info("No conversations yet. Start one with 'chatlink new ASSISTANT_ID'.")
            return

        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("", width=1)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Assistant", style="bold")
        table.add_column("Updated", style="dim")

        for conversation in conversations:
            marker = "[bold green]>[/bold green]" if conversation.id == current_id else ""
            summary = conversation.assistant_summary
            assistant = (summary.name if summary and summary.name else None) or conversation.assistant_id or ""
            table.add_row(
                marker,
                conversation.id,
                conversation.title or "[dim]untitled[/dim]",
                str(assistant),
                _short_time(conversation.updated_at or conversation.created_at),
            )
        self.console.print(table)

    def display_messages(self, messages: Sequence[Message]) -> None:
        """Displays the messages of a conversation in order."""
        logger.debug(f"Displaying {len(messages)} messages")
        if not messages:
            self.display_info("No messages in this conversation yet.")
            return
        for message in messages:
            self.display_message(message)

    def display_message(self, message: Message) -> None:
        title = "You" if message.role == MessageRole.USER else "Assistant"
        style = None
        if message.delivery == Delivery.PENDING:
            title = f"{title} (sending)"
            style = "dim"
        elif message.delivery == Delivery.FAILED:
            title = f"{title} (not delivered)"
            style = "red"
        self.display_output(message.content, title=title, timestamp=_short_time(message.created_at), style=style)

    def display_assistants(self, assistants: Sequence[Dict[str, Any]]) -> None:
        if not assistants:
            self.display_info("No assistants available.")
            return
        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name", style="bold")
        table.add_column("Description", style="white")
        for assistant in assistants:
            table.add_row(
                str(assistant.get("id", "")),
                str(assistant.get("name", "")),
                str(assistant.get("description") or ""),
            )
        self.console.print(table)

    def display_dashboard(self, dashboard: Dict[str, Any]) -> None:
        """Displays a summary of assistants, subscriptions and packages."""
        table = Table(show_header=False, box=SIMPLE, border_style="cyan", padding=(0, 1))
        table.add_column("Item", style="bold cyan")
        table.add_column("Count", justify="right")
        for label, key in (("Assistants", "assistants"), ("Subscriptions", "subscriptions"), ("Packages", "packages")):
            table.add_row(label, str(len(dashboard.get(key) or [])))
        self.console.print(table)
        if dashboard.get("hasAuthErrors"):
            self.display_warning("Some data could not be loaded because you are not signed in.")

    def display_thinking(self, **kwargs: Any) -> None:
        message = kwargs.get("message", "Assistant is typing...")
        self.console.print(f"[dim cyan]{message}[/dim cyan]")
