"""Widget exports for the bubbletalk UI."""

from .prompt import PromptBox
from .transcript import TranscriptView

__all__ = ["PromptBox", "TranscriptView"]
