"""Per-user cooldown tracking."""

import logging
import time
from typing import Dict

logger = logging.getLogger(__name__)


class CooldownTracker:
    """Remembers when each user last completed an action."""

    def __init__(self, window_seconds: float = 3.0):
        self.window_seconds = window_seconds
        self.last_action: Dict[str, float] = {}

    def touch(self, user_id: str) -> None:
        """Record now as the user's last action time."""
        self.last_action[user_id] = time.time()

    def remaining(self, user_id: str) -> float:
        """Seconds left before the user is off cooldown; 0 for unseen users."""
        last = self.last_action.get(user_id)
        if last is None:
            return 0.0
        return max(0.0, self.window_seconds - (time.time() - last))

    def on_cooldown(self, user_id: str) -> bool:
        return self.remaining(user_id) > 0

    def prune(self, max_age_seconds: float) -> int:
        """Forget users whose last action is older than max_age_seconds."""
        now = time.time()
        stale = [uid for uid, last in self.last_action.items() if now - last > max_age_seconds]
        for user_id in stale:
            del self.last_action[user_id]

        if stale:
            logger.info(f"Cleaned up {len(stale)} old cooldowns")
        return len(stale)
