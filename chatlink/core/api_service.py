"""Typed facade over the resilient client for the chat platform API.

Each method maps to one endpoint of the remote API and resolves to a
`Result`. Successful writes invalidate the cached reads they affect so the
next read observes the change.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from chatlink.domain.models.common import AssistantID, ConversationID
from chatlink.domain.models.result import ErrorKind, Failure, Result, Success
from chatlink.infrastructure.http.client import ResilientClient
from chatlink.infrastructure.http.errors import NOT_AUTHENTICATED_MESSAGE

logger = logging.getLogger(__name__)

CONVERSATIONS_ENDPOINT = "/chat/conversations"


class ApiService:
    """Endpoint methods for assistants, subscriptions, conversations and profile."""

    def __init__(self, client: ResilientClient):
        self.client = client
        logger.info("ApiService initialized.")

    # --- Assistants ---

    async def get_assistants(self) -> Result:
        # Public catalogue; the token is sent when present
        return await self.client.get("/assistants", require_auth=False)

    async def get_user_assistants(self) -> Result:
        return await self.client.get("/assistants/user")

    async def validate_assistant_access(self, assistant_id: AssistantID) -> Result:
        return await self.client.post(f"/assistants/{assistant_id}/validate-access")

    async def get_health(self) -> Result:
        return await self.client.get("/health", require_auth=False, skip_cache=True)

    # --- Subscriptions and packages ---

    async def get_subscriptions(self) -> Result:
        """Lists the user's subscriptions; fails fast with empty data when signed out."""
        token = await self.client.token_source.current_token()
        if not token:
            return Failure(error=NOT_AUTHENTICATED_MESSAGE, kind=ErrorKind.AUTHENTICATION, payload={"data": []})
        return await self.client.get("/subscriptions")

    async def get_user_packages(self) -> Result:
        return await self.client.get("/packages/user")

    async def create_subscription(self, assistant_id: AssistantID, plan: str) -> Result:
        result = await self.client.post("/subscriptions", {"assistantId": assistant_id, "plan": plan})
        if result.success:
            self._invalidate("/subscriptions", "/assistants/user")
        return result

    async def create_package(self, assistant_ids: List[AssistantID], plan: str) -> Result:
        result = await self.client.post("/packages", {"assistantIds": list(assistant_ids), "plan": plan})
        if result.success:
            self._invalidate("/packages", "/subscriptions", "/assistants/user")
        return result

    # --- Conversations ---

    async def create_conversation(self, assistant_id: AssistantID, title: Optional[str] = None) -> Result:
        body: Dict[str, Any] = {"assistant_id": assistant_id}
        if title:
            body["title"] = title
        result = await self.client.post(CONVERSATIONS_ENDPOINT, body)
        if result.success:
            self._invalidate(CONVERSATIONS_ENDPOINT)
        return result

    async def get_conversations(self, skip_cache: bool = False) -> Result:
        return await self.client.get(CONVERSATIONS_ENDPOINT, skip_cache=skip_cache)

    async def send_message(self, conversation_id: ConversationID, message: str) -> Result:
        result = await self.client.post(f"{CONVERSATIONS_ENDPOINT}/{conversation_id}/messages", {"message": message})
        if result.success:
            # Message history and the list ordering both change
            self._invalidate(f"{CONVERSATIONS_ENDPOINT}/{conversation_id}/messages", CONVERSATIONS_ENDPOINT)
        return result

    async def get_messages(self, conversation_id: ConversationID, skip_cache: bool = False) -> Result:
        return await self.client.get(f"{CONVERSATIONS_ENDPOINT}/{conversation_id}/messages", skip_cache=skip_cache)

    async def delete_conversation(self, conversation_id: ConversationID) -> Result:
        result = await self.client.delete(f"{CONVERSATIONS_ENDPOINT}/{conversation_id}")
        if result.success:
            self._invalidate(CONVERSATIONS_ENDPOINT)
        return result

    # --- Profile ---

    async def get_profile(self) -> Result:
        return await self.client.get("/auth/profile")

    async def update_profile(self, data: Dict[str, Any]) -> Result:
        result = await self.client.put("/auth/profile", data)
        if result.success:
            self._invalidate("/auth/profile")
        return result

    async def get_user_access(self) -> Result:
        return await self.client.get("/auth/access")

    # --- Aggregates ---

    async def get_dashboard_data(self) -> Result:
        """Loads assistants, subscriptions and packages concurrently.

        Partial failures degrade to empty lists; `hasAuthErrors` reports whether
        any part failed for lack of authentication.
        """
        results = await asyncio.gather(
            self.get_assistants(),
            self.get_subscriptions(),
            self.get_user_packages(),
            return_exceptions=True,
        )

        dashboard: Dict[str, Any] = {"hasAuthErrors": False}
        for name, result in zip(("assistants", "subscriptions", "packages"), results):
            if isinstance(result, BaseException):
                logger.error(f"Dashboard part '{name}' raised: {result}", exc_info=result)
                dashboard[name] = []
                continue
            if isinstance(result, Success):
                dashboard[name] = result.data or []
                continue
            logger.info(f"Dashboard part '{name}' unavailable: {result.error}")
            dashboard[name] = []
            if result.kind == ErrorKind.AUTHENTICATION:
                dashboard["hasAuthErrors"] = True
        return Success(data=dashboard)

    def clear_cache(self) -> int:
        return self.client.invalidate()

    def _invalidate(self, *endpoint_prefixes: str) -> None:
        removed = sum(self.client.invalidate_endpoint(prefix) for prefix in endpoint_prefixes)
        logger.debug(f"Invalidated {removed} cached responses for {endpoint_prefixes}")
