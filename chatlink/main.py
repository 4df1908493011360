"""Main entry point for the chatlink application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from typing import Annotated, Any, Dict, Optional

import typer

from chatlink.core.api_service import ApiService
from chatlink.core.command_handler import CommandHandler
from chatlink.core.session.conversation_session import ConversationSession
from chatlink.infrastructure.auth.token_source import CallbackTokenSource
from chatlink.infrastructure.cache.response_cache import InMemoryResponseCache
from chatlink.infrastructure.cli.display import ConsoleDisplay
from chatlink.infrastructure.config.settings import (
    get_api_base_url,
    get_api_token,
    get_cache_ttl_seconds,
    get_config,
    get_log_level,
    get_max_retries,
    get_min_request_interval,
    get_request_timeout,
    get_retry_base_delay,
    get_snapshot_dir,
    get_user_id,
    load_configuration,
)
from chatlink.infrastructure.http.client import ResilientClient, log_event
from chatlink.infrastructure.http.transport import HttpxTransport
from chatlink.infrastructure.monitoring.logger_setup import level_from_name, setup_logging
from chatlink.infrastructure.persistence.snapshot_store import DiskSnapshotStore
from chatlink.infrastructure.resilience.api_retry import RetryPolicy
from chatlink.infrastructure.resilience.deduplicator import RequestDeduplicator
from chatlink.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SESSION_EXPIRED_WARNING = "Your session has expired. Update CHATLINK_API_TOKEN and sign in again."


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Load Configuration First
        load_configuration()
        setup_logging(log_level=level_from_name(get_log_level()), log_file=get_config("logging.file"))
        logger.info("Configuration and logging initialized.")

        # 2. Infrastructure adapters
        ui = ConsoleDisplay()
        dependencies["ui"] = ui
        dependencies["token_source"] = CallbackTokenSource(get_api_token)

        snapshot_dir = get_snapshot_dir()
        dependencies["snapshot_store"] = DiskSnapshotStore(snapshot_dir) if snapshot_dir else None

        # 3. Resilient client and its components
        dependencies["client"] = ResilientClient(
            base_url=get_api_base_url(),
            transport=HttpxTransport(timeout=get_request_timeout()),
            token_source=dependencies["token_source"],
            cache=InMemoryResponseCache(ttl_seconds=get_cache_ttl_seconds()),
            rate_limiter=RateLimiter(min_interval=get_min_request_interval(), event_listener=log_event),
            retry_policy=RetryPolicy(
                max_retries=get_max_retries(),
                base_delay=get_retry_base_delay(),
                event_listener=log_event,
            ),
            deduplicator=RequestDeduplicator(event_listener=log_event),
            on_session_invalidated=lambda: ui.display_warning(SESSION_EXPIRED_WARNING),
        )

        # 4. Core services
        dependencies["api_service"] = ApiService(dependencies["client"])
        dependencies["session"] = ConversationSession(
            api_service=dependencies["api_service"],
            token_source=dependencies["token_source"],
            snapshot_store=dependencies["snapshot_store"],
        )
        dependencies["command_handler"] = CommandHandler(
            session=dependencies["session"],
            api_service=dependencies["api_service"],
            ui=ui,
        )
        logger.info("All dependencies initialized successfully.")
        return dependencies

    except Exception as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        if "ui" in dependencies:
            dependencies["ui"].display_error(f"Application Initialization Failed: {e}")
        else:
            print(f"FATAL ERROR during initialization: {e}", file=sys.stderr)
        sys.exit(1)


_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    """Returns the wired dependencies, creating them on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def close_dependencies() -> None:
    """Releases resources held by the wired dependencies; the next command rewires."""
    global _dependencies
    if _dependencies is None:
        return
    store = _dependencies.get("snapshot_store")
    if store is not None:
        store.close()
    _dependencies = None


async def resolve_user(dependencies: Dict[str, Any]) -> Optional[str]:
    """Determines the signed-in user from configuration or the profile endpoint."""
    user_id = get_user_id()
    if user_id:
        return user_id
    if not await dependencies["token_source"].current_token():
        return None
    result = await dependencies["api_service"].get_profile()
    if not result.success or not isinstance(result.data, dict):
        logger.info(f"Could not resolve user from profile: {getattr(result, 'error', None)}")
        return None
    profile = result.data.get("user") if isinstance(result.data.get("user"), dict) else result.data
    return str(profile["id"]) if profile.get("id") else None


# --- Typer App Definition ---
app = typer.Typer(
    name="chatlink",
    help="chatlink: chat with your subscribed assistants from the terminal.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(coro_factory, needs_user: bool = True) -> None:
    """Runs an async command against the wired dependencies.

    Args:
        coro_factory: Called with the CommandHandler; returns the coroutine to run.
        needs_user: Bind the session to the signed-in user first.
    """
    dependencies = get_dependencies()
    handler: CommandHandler = dependencies["command_handler"]

    async def runner() -> None:
        try:
            if needs_user:
                dependencies["session"].set_user(await resolve_user(dependencies))
            await coro_factory(handler)
        finally:
            await dependencies["client"].aclose()

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        dependencies["ui"].display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)
    finally:
        close_dependencies()


# --- CLI Commands ---

ConversationArg = Annotated[str, typer.Argument(help="Conversation id.")]


@app.command()
def conversations():
    """List your conversations."""
    run_async(lambda handler: handler.handle_list_conversations())


@app.command()
def assistants():
    """List the available assistants."""
    run_async(lambda handler: handler.handle_list_assistants(), needs_user=False)


@app.command()
def new(
    assistant_id: Annotated[str, typer.Argument(help="Assistant to talk to.")],
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Conversation title.")] = None,
):
    """Start a new conversation with an assistant."""
    run_async(lambda handler: handler.handle_new_conversation(assistant_id, title))


@app.command()
def messages(conversation_id: ConversationArg):
    """Show the messages of a conversation."""
    run_async(lambda handler: handler.handle_show_messages(conversation_id))


@app.command()
def send(
    conversation_id: ConversationArg,
    message: Annotated[str, typer.Argument(help="Message to send.")],
):
    """Send a message to a conversation and print the reply."""
    run_async(lambda handler: handler.handle_send(conversation_id, message))


@app.command()
def delete(conversation_id: ConversationArg):
    """Delete a conversation."""
    run_async(lambda handler: handler.handle_delete(conversation_id))


@app.command()
def chat(
    conversation: Annotated[
        Optional[str], typer.Option("--conversation", "-c", help="Conversation to open first.")
    ] = None,
):
    """Start the interactive chat session."""
    run_async(lambda handler: handler.start_chat(conversation))


@app.command()
def health():
    """Check that the API is reachable."""
    run_async(lambda handler: handler.handle_health(), needs_user=False)


@app.command()
def dashboard():
    """Summarize assistants, subscriptions and packages."""
    run_async(lambda handler: handler.handle_dashboard(), needs_user=False)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
