"""chatlink: terminal client for the assistant chat platform."""

__version__ = "1.0.0"
