"""Bearer token sources."""
