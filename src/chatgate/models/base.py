"""Base models for inbound events and admission decisions."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass
class IncomingMessage:
    """A chat message delivered by the transport."""

    id: str
    author_id: str
    content: str
    is_from_self: bool = False
    channel_id: Optional[str] = None
    mentions_self: bool = False


class RejectReason(str, Enum):
    """Why the intake gate turned a message away."""

    ALREADY_RESPONDED = "already_responded"
    ON_COOLDOWN = "on_cooldown"
    IN_FLIGHT = "in_flight"
    DUPLICATE_CONTENT = "duplicate_content"


@dataclass(frozen=True)
class Decision:
    """Outcome of an admission check.

    When ``admitted`` is true the caller holds the user's single-flight slot
    and must release it through the gate.
    """

    admitted: bool
    reason: Optional[RejectReason] = None
    remaining: float = 0.0  # seconds, only set for ON_COOLDOWN

    @classmethod
    def admit(cls) -> "Decision":
        return cls(admitted=True)

    @classmethod
    def reject(cls, reason: RejectReason, remaining: float = 0.0) -> "Decision":
        return cls(admitted=False, reason=reason, remaining=remaining)

    @property
    def rejected(self) -> bool:
        return not self.admitted
