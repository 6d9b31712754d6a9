"""Set of keys that expire after a fixed time-to-live."""

import logging
import time
from typing import Dict

logger = logging.getLogger(__name__)


class TTLSet:
    """Keys with automatic expiry.

    Expired keys are dropped lazily when looked up and in bulk by ``purge``.
    Lookups never report an expired key, however long ago the last purge ran.
    """

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self.entries: Dict[str, float] = {}  # key -> expires_at

    def add(self, key: str) -> None:
        """Insert a key, refreshing its expiry if already present."""
        self.entries[key] = time.time() + self.ttl_seconds

    def contains(self, key: str) -> bool:
        """Check whether an unexpired entry exists for key."""
        expires_at = self.entries.get(key)
        if expires_at is None:
            return False

        if time.time() >= expires_at:
            del self.entries[key]
            return False
        return True

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        now = time.time()
        return sum(1 for expires_at in self.entries.values() if now < expires_at)

    def purge(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = time.time()
        expired = [key for key, expires_at in self.entries.items() if now >= expires_at]
        for key in expired:
            del self.entries[key]
        return len(expired)

    def clear(self) -> None:
        self.entries.clear()

    def get_stats(self) -> Dict[str, float]:
        return {"size": len(self), "stored": len(self.entries), "ttl_seconds": self.ttl_seconds}
