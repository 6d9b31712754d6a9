"""Memory service for conversation context."""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from ..models.memory import ConversationTurn, MessageRecord, Profile
from .embeddings import EmbeddingIndex
from .history import BoundedHistory
from .profile import ProfileSynthesizer
from .store import UserStore

logger = logging.getLogger(__name__)

CONTEXT_MESSAGES = 10
CONTEXT_TURNS = 5


class ConversationMemory:
    """Facade over history, embeddings and profile synthesis for one store."""

    def __init__(
        self,
        store: UserStore,
        history: BoundedHistory,
        embeddings: EmbeddingIndex,
        profiles: ProfileSynthesizer,
    ):
        self.store = store
        self.history = history
        self.embeddings = embeddings
        self.profiles = profiles
        self._background: Set[asyncio.Task] = set()

    def record(self, user_id: str, content: str) -> MessageRecord:
        """Remember an incoming message and kick off a profile refresh if due."""
        record = self.history.append_message(user_id, content)
        self.profiles.note_message(user_id)
        self._schedule_profile_update(user_id)
        return record

    def commit(self, user_id: str, message: str, response: str) -> ConversationTurn:
        """Remember a completed exchange. Embeddings are indexed separately."""
        return self.history.append_turn(user_id, message, response)

    def context_for(self, user_id: str) -> str:
        """Recent messages and turns formatted for prompt injection."""
        messages = self.history.recent_messages(user_id, CONTEXT_MESSAGES)
        turns = self.history.recent_turns(user_id, CONTEXT_TURNS)

        parts = []
        if messages:
            parts.append("Recent user messages (learn from these to understand the user):")
            parts.extend(f'[{i}] "{m.content}"' for i, m in enumerate(messages, start=1))
        if turns:
            parts.append("Recent conversation flow:")
            parts.extend(
                f'[{i}] User: "{t.user_message}" -> Assistant: "{t.agent_response}"'
                for i, t in enumerate(turns, start=1)
            )
        return "\n".join(parts)

    def previous(self, user_id: str) -> Optional[MessageRecord]:
        return self.history.previous(user_id)

    def get_user_profile(self, user_id: str) -> Optional[Profile]:
        return self.profiles.get_profile(user_id)

    def get_user_profile_text(self, user_id: str) -> str:
        return self.profiles.get_profile_text(user_id)

    def _schedule_profile_update(self, user_id: str) -> None:
        if not self.profiles.is_due(user_id):
            return
        try:
            task = asyncio.get_running_loop().create_task(self.profiles.maybe_update(user_id))
        except RuntimeError:
            logger.debug("No running event loop, skipping background profile update")
            return
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for background profile updates to finish."""
        if self._background:
            await asyncio.gather(*list(self._background))

    def get_stats(self, user_id: str) -> Dict[str, Any]:
        state = self.store.get(user_id)
        if state is None:
            return {"messages": 0, "turns": 0, "embeddings": 0, "has_profile": False}
        return {
            "messages": len(state.messages),
            "turns": len(state.turns),
            "embeddings": len(state.embeddings),
            "has_profile": state.profile is not None,
            "messages_since_profile_update": state.profile_update.messages_since_update,
        }
