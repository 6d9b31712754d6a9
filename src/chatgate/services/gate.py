"""Admission control in front of the generation backend."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from ..models.base import Decision, RejectReason
from .cooldown import CooldownTracker
from .single_flight import SingleFlightGuard
from .ttl_set import TTLSet

logger = logging.getLogger(__name__)

DEDUP_TTL_SECONDS = 10.0
RESPONDED_TTL_SECONDS = 30.0


class IntakeGate:
    """Decides whether an incoming message may proceed to generation.

    Checks run in a fixed order and the first match wins:

    1. message already answered (redelivery) -> ALREADY_RESPONDED
    2. user on cooldown -> ON_COOLDOWN
    3. user already has a message in flight -> IN_FLIGHT
    4. identical content answered moments ago -> DUPLICATE_CONTENT

    Only an admission mutates state: it takes the user's single-flight slot
    and marks the message responded before any await can happen.
    """

    def __init__(
        self,
        cooldown: Optional[CooldownTracker] = None,
        guard: Optional[SingleFlightGuard] = None,
        sent_content: Optional[TTLSet] = None,
        responded: Optional[TTLSet] = None,
    ):
        self.cooldown = cooldown or CooldownTracker()
        self.guard = guard or SingleFlightGuard()
        self.sent_content = sent_content or TTLSet(DEDUP_TTL_SECONDS)
        self.responded = responded or TTLSet(RESPONDED_TTL_SECONDS)

    def admit(self, user_id: str, content: str, message_id: str) -> Decision:
        """Run the admission checks for one message."""
        if message_id in self.responded:
            logger.info(f"Already responded to message {message_id}, ignoring duplicate")
            return Decision.reject(RejectReason.ALREADY_RESPONDED)

        remaining = self.cooldown.remaining(user_id)
        if remaining > 0:
            logger.info(f"User {user_id} on cooldown for {remaining:.2f}s")
            return Decision.reject(RejectReason.ON_COOLDOWN, remaining=remaining)

        if self.guard.is_held(user_id):
            logger.info(f"User {user_id} already has a message in flight")
            return Decision.reject(RejectReason.IN_FLIGHT)

        if content in self.sent_content:
            logger.info(f"Duplicate content from user {user_id}")
            return Decision.reject(RejectReason.DUPLICATE_CONTENT)

        # No await between the checks above and this acquire.
        self.guard.try_acquire(user_id)
        self.responded.add(message_id)
        return Decision.admit()

    def release(self, user_id: str) -> None:
        """Finish an admitted operation: start the cooldown, free the slot.

        Releasing a user with no slot held leaves their cooldown untouched.
        """
        if self.guard.is_held(user_id):
            self.cooldown.touch(user_id)
        self.guard.release(user_id)

    @contextmanager
    def admission(self, user_id: str, content: str, message_id: str) -> Iterator[Decision]:
        """Admit a message for the duration of a ``with`` block.

        An admitted slot is released when the block exits, whether it returns
        normally or raises.
        """
        decision = self.admit(user_id, content, message_id)
        try:
            yield decision
        finally:
            if decision.admitted:
                self.release(user_id)

    def mark_responded(self, message_id: str) -> None:
        self.responded.add(message_id)

    def mark_sent(self, content: str) -> None:
        self.sent_content.add(content)

    def sweep(self) -> None:
        """Drop expired dedup entries and stale cooldowns."""
        purged = self.sent_content.purge() + self.responded.purge()
        if purged:
            logger.debug(f"Purged {purged} expired dedup entries")
        self.cooldown.prune(self.cooldown.window_seconds * 2)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "in_flight": len(self.guard),
            "cooldowns": len(self.cooldown.last_action),
            "sent_content": len(self.sent_content),
            "responded": len(self.responded),
            "cooldown_seconds": self.cooldown.window_seconds,
        }
