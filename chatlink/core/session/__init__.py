"""Conversation session: state reducer, cancellation scopes and the effect driver."""
