"""Memory-related data models."""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

MAX_MESSAGES = 50
MAX_TURNS = 20
MAX_EMBEDDINGS = 200


def _now() -> float:
    return time.time()


@dataclass
class MessageRecord:
    """A raw message received from a user."""

    content: str
    timestamp: float = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageRecord":
        return cls(content=data["content"], timestamp=data["timestamp"])


@dataclass
class ConversationTurn:
    """A user message paired with the reply that answered it."""

    user_message: str
    agent_response: str
    timestamp: float = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userMessage": self.user_message,
            "agentResponse": self.agent_response,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        return cls(
            user_message=data["userMessage"],
            agent_response=data["agentResponse"],
            timestamp=data["timestamp"],
        )


@dataclass
class EmbeddingEntry:
    """A piece of text and its embedding vector."""

    text: str
    vector: List[float]
    timestamp: float = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "vector": list(self.vector), "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddingEntry":
        return cls(
            text=data["text"],
            vector=[float(v) for v in data["vector"]],
            timestamp=data["timestamp"],
        )


@dataclass
class Profile:
    """Structured facts about a user, synthesized from their conversation."""

    name: Optional[str] = None
    preferences: List[str] = field(default_factory=list)
    dislikes: List[str] = field(default_factory=list)
    facts: List[str] = field(default_factory=list)
    tone_tips: List[str] = field(default_factory=list)
    summary: str = ""
    last_updated: float = field(default_factory=_now)

    @classmethod
    def from_synthesis(cls, data: Dict[str, Any]) -> "Profile":
        """Build a profile from the JSON object returned by the backend.

        Missing keys become empty values; list entries are coerced to strings
        and blank ones dropped.
        """

        def _strings(value: Any) -> List[str]:
            if not isinstance(value, list):
                return []
            return [str(item).strip() for item in value if str(item).strip()]

        name = data.get("name")
        return cls(
            name=(str(name).strip() or None) if name else None,
            preferences=_strings(data.get("preferences")),
            dislikes=_strings(data.get("dislikes")),
            facts=_strings(data.get("facts")),
            tone_tips=_strings(data.get("toneTips")),
            summary=str(data.get("summary") or "").strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "preferences": list(self.preferences),
            "dislikes": list(self.dislikes),
            "facts": list(self.facts),
            "toneTips": list(self.tone_tips),
            "summary": self.summary,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            name=data.get("name"),
            preferences=list(data.get("preferences", [])),
            dislikes=list(data.get("dislikes", [])),
            facts=list(data.get("facts", [])),
            tone_tips=list(data.get("toneTips", [])),
            summary=data.get("summary", ""),
            last_updated=data["lastUpdated"],
        )


@dataclass
class ProfileUpdateState:
    """Cadence counters for profile synthesis."""

    last_updated: float = field(default_factory=_now)
    messages_since_update: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastUpdated": self.last_updated,
            "messagesSinceUpdate": self.messages_since_update,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileUpdateState":
        return cls(
            last_updated=data["lastUpdated"],
            messages_since_update=data.get("messagesSinceUpdate", 0),
        )


@dataclass
class UserState:
    """Everything remembered about one user's conversation."""

    messages: Deque[MessageRecord] = field(default_factory=lambda: deque(maxlen=MAX_MESSAGES))
    turns: Deque[ConversationTurn] = field(default_factory=lambda: deque(maxlen=MAX_TURNS))
    embeddings: Deque[EmbeddingEntry] = field(
        default_factory=lambda: deque(maxlen=MAX_EMBEDDINGS)
    )
    profile: Optional[Profile] = None
    profile_update: ProfileUpdateState = field(default_factory=ProfileUpdateState)
    created_at: float = field(default_factory=_now)

    @classmethod
    def empty(
        cls,
        max_messages: int = MAX_MESSAGES,
        max_turns: int = MAX_TURNS,
        max_embeddings: int = MAX_EMBEDDINGS,
    ) -> "UserState":
        """Create a blank state with the given capacities."""
        return cls(
            messages=deque(maxlen=max_messages),
            turns=deque(maxlen=max_turns),
            embeddings=deque(maxlen=max_embeddings),
        )

    @property
    def last_activity(self) -> float:
        """Timestamp of the newest message or turn, or creation time if none."""
        candidates = [self.created_at]
        if self.messages:
            candidates.append(self.messages[-1].timestamp)
        if self.turns:
            candidates.append(self.turns[-1].timestamp)
        return max(candidates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rawMessages": [m.to_dict() for m in self.messages],
            "conversations": [t.to_dict() for t in self.turns],
            "embeddings": [e.to_dict() for e in self.embeddings],
            "profile": self.profile.to_dict() if self.profile else None,
            "profileUpdate": self.profile_update.to_dict(),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        max_messages: int = MAX_MESSAGES,
        max_turns: int = MAX_TURNS,
        max_embeddings: int = MAX_EMBEDDINGS,
    ) -> "UserState":
        profile = data.get("profile")
        update = data.get("profileUpdate")
        return cls(
            messages=deque(
                (MessageRecord.from_dict(m) for m in data.get("rawMessages", [])),
                maxlen=max_messages,
            ),
            turns=deque(
                (ConversationTurn.from_dict(t) for t in data.get("conversations", [])),
                maxlen=max_turns,
            ),
            embeddings=deque(
                (EmbeddingEntry.from_dict(e) for e in data.get("embeddings", [])),
                maxlen=max_embeddings,
            ),
            profile=Profile.from_dict(profile) if profile else None,
            profile_update=(
                ProfileUpdateState.from_dict(update) if update else ProfileUpdateState()
            ),
            created_at=data.get("createdAt", _now()),
        )
