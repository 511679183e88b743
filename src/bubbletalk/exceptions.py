"""Domain exception hierarchy for the bubbletalk chat client."""

from __future__ import annotations


class BubbleTalkError(RuntimeError):
    """Base class for all domain-level chat errors."""


class ModelConnectionError(BubbleTalkError):
    """Raised when the Ollama host cannot be reached."""


class ModelNotFoundError(BubbleTalkError):
    """Raised when the requested model is unavailable."""


class StreamingError(BubbleTalkError):
    """Raised when streaming fails for non-connectivity reasons."""


class ConfigValidationError(BubbleTalkError):
    """Raised when configuration cannot be validated safely."""


class HistoryStoreError(BubbleTalkError):
    """Raised when chat history or the session index cannot be read or written."""


class SessionNotFoundError(BubbleTalkError):
    """Raised when a session id is not present in the session index."""
