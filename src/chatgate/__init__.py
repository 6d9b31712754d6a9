"""chatgate - admission control and conversation memory in front of an LLM."""

__version__ = "1.0.0"

from .main import ChatGate

__all__ = ["ChatGate"]
