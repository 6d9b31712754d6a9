"""Test fixtures for the chatgate tests."""

import asyncio
import json
import string
from typing import List, Optional
from unittest.mock import AsyncMock

from chatgate.models.base import IncomingMessage
from chatgate.providers.base import Backend
from chatgate.transport import Transport

PROFILE_JSON = json.dumps(
    {
        "name": "Linh",
        "preferences": ["green tea", "cats"],
        "dislikes": ["rain"],
        "facts": ["lives in Hanoi"],
        "toneTips": ["keep it casual"],
        "summary": "A cat lover from Hanoi.",
    }
)


def letter_vector(text: str) -> List[float]:
    """Letter-frequency vector: identical texts map to identical vectors."""
    lowered = text.lower()
    return [float(lowered.count(letter)) for letter in string.ascii_lowercase]


class FakeBackend(Backend):
    """Backend whose generate is an AsyncMock and whose embed counts letters."""

    def __init__(self, reply: str = "Test response"):
        self.generate = AsyncMock(return_value=reply)
        self.embed_calls = 0
        self.fail_embeddings = False
        self.embed_delay = 0.0

    @property
    def name(self) -> str:
        return "fake"

    async def generate(self, prompt: str) -> str:  # replaced by the AsyncMock instance
        raise NotImplementedError

    async def embed(self, text: str) -> List[float]:
        self.embed_calls += 1
        if self.embed_delay:
            await asyncio.sleep(self.embed_delay)
        if self.fail_embeddings:
            raise RuntimeError("embedding service down")
        return letter_vector(text)

    def is_available(self) -> bool:
        return True


class RecordingTransport(Transport):
    """Transport that remembers everything sent through it."""

    def __init__(self):
        self.replies: List[tuple] = []
        self.typing: List[Optional[str]] = []

    async def reply(self, event: IncomingMessage, text: str) -> None:
        self.replies.append((event.id, text))

    async def send_typing(self, channel_id: Optional[str]) -> None:
        self.typing.append(channel_id)


def make_message(
    message_id: str = "m1",
    author_id: str = "u1",
    content: str = "hi",
    **kwargs,
) -> IncomingMessage:
    return IncomingMessage(id=message_id, author_id=author_id, content=content, **kwargs)
