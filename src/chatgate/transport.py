"""Chat transports: the interface the engine replies through, and a stdio implementation."""

import asyncio
import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

from .models.base import IncomingMessage

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Delivers replies and typing signals back to the chat platform."""

    @abstractmethod
    async def reply(self, event: IncomingMessage, text: str) -> None:
        """Send a reply to the given message."""
        ...

    @abstractmethod
    async def send_typing(self, channel_id: Optional[str]) -> None:
        """Show a typing indicator. Advisory; may be called repeatedly."""
        ...


def parse_event(data: Dict[str, Any]) -> IncomingMessage:
    """Build an IncomingMessage from a decoded JSON event."""
    missing = [key for key in ("id", "author_id", "content") if key not in data]
    if missing:
        raise ValueError(f"Missing fields: {', '.join(missing)}")
    return IncomingMessage(
        id=str(data["id"]),
        author_id=str(data["author_id"]),
        content=str(data["content"]),
        is_from_self=bool(data.get("is_from_self", False)),
        channel_id=data.get("channel_id"),
        mentions_self=bool(data.get("mentions_self", False)),
    )


class StdioTransport(Transport):
    """JSON-lines transport over stdin/stdout.

    Each input line is one event object with ``id``, ``author_id`` and
    ``content``. Output lines are ``{"type": "reply", ...}`` or
    ``{"type": "typing", ...}`` objects.
    """

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

    def _write_message(self, message: dict) -> None:
        try:
            print(json.dumps(message, ensure_ascii=False), file=self.stdout, flush=True)
        except (OSError, ValueError) as e:
            logger.error(f"Error writing to stdout: {e}")

    async def reply(self, event: IncomingMessage, text: str) -> None:
        self._write_message(
            {
                "type": "reply",
                "in_reply_to": event.id,
                "author_id": event.author_id,
                "channel_id": event.channel_id,
                "text": text,
            }
        )

    async def send_typing(self, channel_id: Optional[str]) -> None:
        self._write_message({"type": "typing", "channel_id": channel_id})

    async def _read_line(self) -> Optional[str]:
        loop = asyncio.get_running_loop()
        line = await loop.run_in_executor(None, self.stdin.readline)
        if not line:
            return None
        return line.strip()

    async def events(self) -> AsyncIterator[IncomingMessage]:
        """Yield events from stdin until EOF. Malformed lines are logged and skipped."""
        while True:
            line = await self._read_line()
            if line is None:
                logger.info("EOF reached, shutting down")
                return
            if not line:
                continue

            try:
                yield parse_event(json.loads(line))
            except (ValueError, TypeError) as e:
                logger.warning(f"Ignoring malformed event: {e}")
