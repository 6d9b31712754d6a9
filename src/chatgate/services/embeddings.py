"""Per-user embedding index with cosine-similarity search."""

import logging
import math
from typing import Awaitable, Callable, List, Optional, Sequence

from ..models.memory import EmbeddingEntry
from .store import UserStore

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], Awaitable[List[float]]]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Empty or differently sized vectors score -1. A zero-norm vector makes the
    denominator 1 instead of 0.
    """
    if not a or not b or len(a) != len(b):
        return -1.0

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    denominator = norm_a * norm_b if norm_a and norm_b else 1.0
    return dot / denominator


class EmbeddingIndex:
    """Stores (text, vector) pairs per user and retrieves the closest texts."""

    def __init__(self, store: UserStore, embed: EmbedFn):
        self.store = store
        self.embed = embed

    async def _embed(self, text: str) -> Optional[List[float]]:
        try:
            vector = await self.embed(text)
        except Exception as e:
            logger.warning(f"Embedding failed: {type(e).__name__}: {e}")
            return None
        if not vector:
            logger.warning("Embedding backend returned an empty vector")
            return None
        return [float(v) for v in vector]

    async def index(self, user_id: str, text: str) -> bool:
        """Embed text and store it for the user.

        Returns False when embedding fails or the vector's size does not match
        the user's existing entries; nothing is stored in that case.
        """
        vector = await self._embed(text)
        if vector is None:
            return False

        entries = self.store.get_or_create(user_id).embeddings
        if entries and len(entries[-1].vector) != len(vector):
            logger.warning(
                f"Skipping embedding for user {user_id}: dimension {len(vector)} "
                f"does not match stored dimension {len(entries[-1].vector)}"
            )
            return False

        entries.append(EmbeddingEntry(text=text, vector=vector))
        return True

    async def search(self, user_id: str, query: str, top_k: int = 3) -> List[str]:
        """Texts most similar to query, best first.

        Equal scores are ordered newest first.
        """
        state = self.store.get(user_id)
        if state is None or not state.embeddings or top_k <= 0:
            return []

        query_vector = await self._embed(query)
        if query_vector is None:
            return []

        # Re-read after the await: the deque may have changed meanwhile.
        entries = list(state.embeddings)
        scored = [
            (cosine_similarity(query_vector, entry.vector), entry.timestamp, position, entry.text)
            for position, entry in enumerate(entries)
        ]
        scored.sort(key=lambda item: (item[0], item[1], item[2]), reverse=True)
        return [text for _, _, _, text in scored[:top_k]]

    def size(self, user_id: str) -> int:
        state = self.store.get(user_id)
        return len(state.embeddings) if state else 0
