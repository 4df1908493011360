"""Rich console rendering of conversations, messages and errors."""
