"""Response Cache Implementation.

Provides the in-memory, TTL-bounded implementation of the ResponseCache
interface used by the resilient client.
Bounded Context: Cache Management
"""
