"""Top-level package for bubbletalk."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import BubbleTalkApp
    from .chat import ChatClient
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        BubbleTalkError,
        ConfigValidationError,
        HistoryStoreError,
        ModelConnectionError,
        ModelNotFoundError,
        SessionNotFoundError,
        StreamingError,
    )
    from .models import Message, Role, Session
    from .persistence import HistoryStore, SessionIndex
    from .session import ChatSession
    from .state import Mode

# Exported name -> defining submodule; resolved on first access so importing
# the package never pulls in Textual.
_EXPORTS: dict[str, str] = {
    "BubbleTalkApp": ".app",
    "ChatClient": ".chat",
    "ChatSession": ".session",
    "ensure_config_dir": ".config",
    "load_config": ".config",
    "BubbleTalkError": ".exceptions",
    "ConfigValidationError": ".exceptions",
    "HistoryStoreError": ".exceptions",
    "ModelConnectionError": ".exceptions",
    "ModelNotFoundError": ".exceptions",
    "SessionNotFoundError": ".exceptions",
    "StreamingError": ".exceptions",
    "HistoryStore": ".persistence",
    "SessionIndex": ".persistence",
    "Message": ".models",
    "Role": ".models",
    "Session": ".models",
    "Mode": ".state",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazily import exported symbols."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(module_name, __name__), name)
