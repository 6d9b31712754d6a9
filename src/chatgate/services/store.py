"""Per-user state store with optional JSON persistence."""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Container, Dict, Optional, Union

from ..models.memory import MAX_EMBEDDINGS, MAX_MESSAGES, MAX_TURNS, UserState

logger = logging.getLogger(__name__)

INACTIVE_AFTER_SECONDS = 30 * 24 * 60 * 60


class UserStore:
    """Owns every user's conversation state.

    Users are created lazily on first access. With a ``path`` the whole map is
    loaded at ``init()``, saved every ``autosave_seconds`` while running and
    saved again at ``shutdown()``; without one the store is volatile.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        autosave_seconds: float = 30.0,
        max_messages: int = MAX_MESSAGES,
        max_turns: int = MAX_TURNS,
        max_embeddings: int = MAX_EMBEDDINGS,
    ):
        self.path = Path(path) if path else None
        self.autosave_seconds = autosave_seconds
        self.max_messages = max_messages
        self.max_turns = max_turns
        self.max_embeddings = max_embeddings
        self.users: Dict[str, UserState] = {}
        self._autosave_task: Optional[asyncio.Task] = None

    async def init(self) -> None:
        """Load persisted state and start autosaving."""
        self.load()
        if self.path and self.autosave_seconds > 0:
            self._autosave_task = asyncio.create_task(self._autosave_loop())

    async def shutdown(self) -> None:
        """Stop autosaving and write the final state."""
        if self._autosave_task:
            self._autosave_task.cancel()
            try:
                await self._autosave_task
            except asyncio.CancelledError:
                pass
            self._autosave_task = None
        self.save()
        logger.info("User store shut down")

    async def _autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(self.autosave_seconds)
            self.save()

    def get(self, user_id: str) -> Optional[UserState]:
        return self.users.get(user_id)

    def get_or_create(self, user_id: str) -> UserState:
        state = self.users.get(user_id)
        if state is None:
            state = UserState.empty(self.max_messages, self.max_turns, self.max_embeddings)
            self.users[user_id] = state
            logger.debug(f"Created state for user {user_id}")
        return state

    def __contains__(self, user_id: str) -> bool:
        return user_id in self.users

    def __len__(self) -> int:
        return len(self.users)

    def to_dict(self) -> Dict[str, Any]:
        return {user_id: state.to_dict() for user_id, state in self.users.items()}

    def load_dict(self, data: Dict[str, Any]) -> None:
        """Replace all state with the contents of a serialized map."""
        self.users = {
            user_id: UserState.from_dict(
                state, self.max_messages, self.max_turns, self.max_embeddings
            )
            for user_id, state in data.items()
        }

    def load(self) -> None:
        if not self.path or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            self.load_dict(data)
            logger.info(f"Loaded memory for {len(self.users)} users from {self.path}")
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Error loading memory from {self.path}: {e}")

    def save(self) -> None:
        if not self.path:
            return
        try:
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
            logger.debug(f"Memory saved to {self.path}")
        except OSError as e:
            logger.error(f"Error saving memory to {self.path}: {e}")

    def cleanup(
        self,
        max_idle_seconds: float = INACTIVE_AFTER_SECONDS,
        protected: Container[str] = (),
    ) -> int:
        """Drop users with no conversation activity for max_idle_seconds.

        Users listed in ``protected`` (those with a message in flight) are kept.
        """
        cutoff = time.time() - max_idle_seconds
        inactive = [
            user_id
            for user_id, state in self.users.items()
            if state.last_activity < cutoff and user_id not in protected
        ]
        for user_id in inactive:
            del self.users[user_id]

        if inactive:
            logger.info(f"Cleaned up {len(inactive)} inactive users from memory")
        return len(inactive)
