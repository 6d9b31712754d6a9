"""Per-user in-flight marker."""

import logging
from typing import Set

logger = logging.getLogger(__name__)


class SingleFlightGuard:
    """Allows at most one operation per user at a time.

    This is a plain flag, not a lock: it is only correct on a single event
    loop, where ``try_acquire`` cannot be interleaved with another caller.
    """

    def __init__(self):
        self.in_flight: Set[str] = set()

    def try_acquire(self, user_id: str) -> bool:
        """Mark the user in flight; False if they already were."""
        if user_id in self.in_flight:
            return False
        self.in_flight.add(user_id)
        return True

    def release(self, user_id: str) -> None:
        """Clear the user's flag. Releasing an unheld flag is logged and ignored."""
        if user_id not in self.in_flight:
            logger.warning(f"Release of single-flight slot that was not held: {user_id}")
            return
        self.in_flight.discard(user_id)

    def is_held(self, user_id: str) -> bool:
        return user_id in self.in_flight

    def __len__(self) -> int:
        return len(self.in_flight)
