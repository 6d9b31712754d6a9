"""Service components for the chatgate engine."""

from .cooldown import CooldownTracker
from .embeddings import EmbeddingIndex, cosine_similarity
from .gate import IntakeGate
from .history import BoundedHistory
from .memory import ConversationMemory
from .profile import ProfileSynthesizer, SynthesisState
from .quota import DailyQuota
from .single_flight import SingleFlightGuard
from .store import UserStore
from .ttl_set import TTLSet

__all__ = [
    "BoundedHistory",
    "ConversationMemory",
    "CooldownTracker",
    "DailyQuota",
    "EmbeddingIndex",
    "IntakeGate",
    "ProfileSynthesizer",
    "SingleFlightGuard",
    "SynthesisState",
    "TTLSet",
    "UserStore",
    "cosine_similarity",
]
