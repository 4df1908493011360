"""Snapshot stores backing the optimistic conversation list."""
