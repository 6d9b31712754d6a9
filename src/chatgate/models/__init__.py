"""Data models for the chatgate engine."""

from .base import Decision, IncomingMessage, RejectReason
from .memory import (
    ConversationTurn,
    EmbeddingEntry,
    MessageRecord,
    Profile,
    ProfileUpdateState,
    UserState,
)

__all__ = [
    "Decision",
    "IncomingMessage",
    "RejectReason",
    "ConversationTurn",
    "EmbeddingEntry",
    "MessageRecord",
    "Profile",
    "ProfileUpdateState",
    "UserState",
]
