"""Core components for the chatgate engine."""

from .orchestrator import MessageOrchestrator, keep_typing

__all__ = ["MessageOrchestrator", "keep_typing"]
