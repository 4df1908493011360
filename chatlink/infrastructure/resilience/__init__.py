"""API Resilience Implementations.

Contains the per-key rate limiter, the exponential-backoff retry policy
and the request deduplicator composed by the resilient client.
Bounded Context: API Resilience
"""
