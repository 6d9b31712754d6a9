"""Daily budget of generation requests."""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict

logger = logging.getLogger(__name__)


class DailyQuota:
    """Counts generation requests and refuses more once the daily limit is hit.

    The counter resets the first time it is consulted on a new local date.
    """

    def __init__(self, limit: int = 45):
        self.limit = limit
        self.count = 0
        self.day: date = datetime.now().date()

    def _reset_if_new_day(self) -> None:
        today = datetime.now().date()
        if today != self.day:
            self.count = 0
            self.day = today
            logger.info("Daily request count reset")

    def can_proceed(self) -> bool:
        self._reset_if_new_day()
        return self.count < self.limit

    def increment(self) -> None:
        self._reset_if_new_day()
        self.count += 1
        logger.info(f"API requests today: {self.count}/{self.limit}")

    def exhaust(self) -> None:
        """Mark today's budget as spent, e.g. after the backend reported a quota error."""
        self._reset_if_new_day()
        self.count = self.limit

    def time_until_reset(self) -> str:
        now = datetime.now()
        tomorrow = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
        diff = tomorrow - now
        hours, remainder = divmod(int(diff.total_seconds()), 3600)
        return f"{hours} hours {remainder // 60} minutes"

    def get_stats(self) -> Dict[str, Any]:
        self._reset_if_new_day()
        return {"count": self.count, "limit": self.limit, "day": self.day.isoformat()}
