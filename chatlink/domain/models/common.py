"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like request keys,
conversation identifiers and wire payloads, ensuring consistency and type safety.
"""

import json
from typing import Any, Dict, List, NewType, Optional, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
UserID = NewType("UserID", str)                  # Authenticated user id
AssistantID = NewType("AssistantID", str)        # Assistant a conversation talks to
ConversationID = NewType("ConversationID", str)  # Server id of a conversation
Endpoint = NewType("Endpoint", str)              # Path relative to the API base URL, e.g. '/assistants'
BearerToken = NewType("BearerToken", str)

# === Caching / Resilience Context ===
RequestKey = NewType("RequestKey", str)          # Logical identity of a request
CachePrefix = NewType("CachePrefix", str)        # Prefix selecting a family of request keys

READ_METHODS = frozenset({"GET"})


def serialize_body(body: Any) -> Optional[str]:
    """Serializes a request body to canonical JSON (sorted keys, compact)."""
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def make_request_key(method: str, endpoint: str, body: Any = None) -> RequestKey:
    """Builds the request key shared by the cache, deduplicator, rate limiter and retry state.

    Identical logical requests always produce identical keys:
    ``"GET:/assistants"`` or ``"POST:/chat/conversations:{...}"``.
    """
    serialized = serialize_body(body)
    key = f"{method.upper()}:{endpoint}"
    if serialized:
        key = f"{key}:{serialized}"
    return RequestKey(key)


def is_read_method(method: str) -> bool:
    return method.upper() in READ_METHODS


# --- Structured Data ---

class ConversationSnapshot(TypedDict):
    """Persisted conversation list used to paint the UI before the network answers."""
    conversations: List[Dict[str, Any]]
    lastUpdated: Optional[str]
    userId: Optional[str]


SUBSCRIPTION_ERROR_CODES = frozenset({"SUBSCRIPTION_EXPIRED", "NO_SUBSCRIPTION"})
