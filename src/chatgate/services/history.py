"""Bounded per-user message and turn history."""

import logging
from typing import List, Optional

from ..models.memory import ConversationTurn, MessageRecord
from .store import UserStore

logger = logging.getLogger(__name__)


class BoundedHistory:
    """Fixed-capacity raw message and conversation turn history.

    Both sequences live on the user's state as bounded deques, so appending
    past capacity evicts the oldest item.
    """

    def __init__(self, store: UserStore):
        self.store = store

    def append_message(self, user_id: str, content: str) -> MessageRecord:
        record = MessageRecord(content=content)
        self.store.get_or_create(user_id).messages.append(record)
        logger.debug(f"Stored message for user {user_id}: {content[:50]}")
        return record

    def append_turn(self, user_id: str, message: str, response: str) -> ConversationTurn:
        turn = ConversationTurn(user_message=message, agent_response=response)
        self.store.get_or_create(user_id).turns.append(turn)
        return turn

    def recent_messages(self, user_id: str, n: int) -> List[MessageRecord]:
        """Last n raw messages, oldest first."""
        state = self.store.get(user_id)
        if state is None or n <= 0:
            return []
        return list(state.messages)[-n:]

    def recent_turns(self, user_id: str, n: int) -> List[ConversationTurn]:
        """Last n conversation turns, oldest first."""
        state = self.store.get(user_id)
        if state is None or n <= 0:
            return []
        return list(state.turns)[-n:]

    def previous(self, user_id: str) -> Optional[MessageRecord]:
        """The message before the most recent one.

        The most recent message is usually the one being handled right now.
        """
        state = self.store.get(user_id)
        if state is None or len(state.messages) < 2:
            return None
        return state.messages[-2]
