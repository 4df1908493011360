"""Domain Event definitions.

Occurrences in the resilience layer (deferrals, retries, cache hits,
deduplicated calls, session invalidation) that listeners such as the
CLI or the logs can react to.
"""
