"""Orchestrator for admitting messages and producing replies."""

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

from ..config import Settings
from ..models.base import Decision, IncomingMessage, RejectReason
from ..providers.base import (
    Backend,
    BackendTransientError,
    InternalBackendError,
    RateLimitError,
)
from ..services.embeddings import EmbeddingIndex
from ..services.gate import IntakeGate
from ..services.memory import ConversationMemory
from ..services.quota import DailyQuota
from ..transport import Transport

logger = logging.getLogger(__name__)

PREVIOUS_MESSAGE_TRIGGERS = ("previous message", "tin nhắn trước", "câu trước")

FALLBACK_RESPONSE = (
    "😅 Sorry I'm having some technical issues right now. "
    "Could you try again in a few minutes?"
)


def rejection_message(decision: Decision) -> Optional[str]:
    """User-facing text for a rejection; None when the message is ignored silently."""
    if decision.reason == RejectReason.ON_COOLDOWN:
        seconds = max(1, math.ceil(decision.remaining))
        return (
            f"⏰ Sorry, I need {seconds} seconds to process your previous message. "
            "Please wait a moment!"
        )
    if decision.reason == RejectReason.IN_FLIGHT:
        return "💕 Hey there, I'm still processing your previous message. Please wait a moment!"
    if decision.reason == RejectReason.DUPLICATE_CONTENT:
        return (
            "🔄 Hey, I just received a similar message. "
            "Please wait for me to finish processing!"
        )
    return None


def asks_for_previous_message(content: str) -> bool:
    lowered = content.lower()
    return any(trigger in lowered for trigger in PREVIOUS_MESSAGE_TRIGGERS)


@asynccontextmanager
async def keep_typing(
    transport: Transport, channel_id: Optional[str], interval: float
) -> AsyncIterator[None]:
    """Send a typing signal now, then every ``interval`` seconds until the block exits."""

    async def _signal() -> None:
        try:
            await transport.send_typing(channel_id)
        except Exception as e:
            logger.debug(f"Typing signal failed: {e}")

    async def _loop() -> None:
        while True:
            await asyncio.sleep(interval)
            await _signal()

    await _signal()
    task = asyncio.create_task(_loop())
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class MessageOrchestrator:
    """Runs one inbound message through admission, memory and generation.

    Every message that is not silently ignored gets exactly one reply, and
    every admitted message releases its single-flight slot and starts the
    user's cooldown, including when generation fails.
    """

    def __init__(
        self,
        gate: IntakeGate,
        memory: ConversationMemory,
        embeddings: EmbeddingIndex,
        backend: Backend,
        quota: Optional[DailyQuota] = None,
        settings: Optional[Settings] = None,
    ):
        self.gate = gate
        self.memory = memory
        self.embeddings = embeddings
        self.backend = backend
        self.quota = quota or DailyQuota()
        self.settings = settings or Settings()

    def should_handle(self, event: IncomingMessage) -> bool:
        if event.is_from_self:
            logger.debug(f"Ignoring own message {event.id}")
            return False
        if self.settings.ignore_prefix and event.content.startswith(self.settings.ignore_prefix):
            logger.debug(f"Ignoring prefixed message {event.id}")
            return False
        channels = self.settings.channels
        if channels and event.channel_id not in channels and not event.mentions_self:
            logger.debug(f"Ignoring message {event.id} from non-monitored channel")
            return False
        return True

    async def handle_message(self, event: IncomingMessage, transport: Transport) -> Optional[str]:
        """Handle one inbound message and return the reply sent, if any."""
        if not self.should_handle(event):
            return None

        logger.info(f"Processing message {event.id} from user {event.author_id}")
        user_id = event.author_id

        with self.gate.admission(user_id, event.content, event.id) as decision:
            if decision.rejected:
                return await self._reject(event, decision, transport)

            async with keep_typing(
                transport, event.channel_id, self.settings.typing_interval_seconds
            ):
                reply, generated = await self._process(event)
            await transport.reply(event, reply)
            self.gate.mark_responded(event.id)

            if generated and self.settings.embeddings_enabled:
                await self.embeddings.index(user_id, event.content)
            return reply

    async def _reject(
        self, event: IncomingMessage, decision: Decision, transport: Transport
    ) -> Optional[str]:
        text = rejection_message(decision)
        if text is None:
            return None
        await transport.reply(event, text)
        self.gate.mark_responded(event.id)
        return text

    async def _process(self, event: IncomingMessage) -> Tuple[str, bool]:
        """Produce the reply text for an admitted message.

        The flag is True only when the text came from a successful generation.
        """
        user_id = event.author_id
        content = event.content
        self.memory.record(user_id, content)

        if asks_for_previous_message(content):
            previous = self.memory.previous(user_id)
            if previous is None:
                return "You don't have any previous messages, this is your first one.", False
            return f'Your previous message was: "{previous.content}"', False

        if not self.quota.can_proceed():
            return self._quota_message(), False

        try:
            prompt = await self.build_prompt(user_id, content)
            text = await self.backend.generate(prompt)
        except RateLimitError as e:
            logger.warning(f"Rate limited by backend: {e}")
            self.quota.exhaust()
            return self._quota_message(), False
        except BackendTransientError as e:
            logger.warning(f"Backend overloaded: {e}")
            return "😰 The server is overloaded, please try again in a few minutes!", False
        except InternalBackendError as e:
            logger.error(f"Backend internal error: {e}")
            return f"💕 {FALLBACK_RESPONSE}", False
        except Exception as e:
            logger.error(f"Error generating reply: {e}", exc_info=True)
            return f"❌ An error occurred: {e}", False

        self.gate.mark_sent(content)
        self.quota.increment()
        self.memory.commit(user_id, content, text)
        return text, True

    async def build_prompt(self, user_id: str, content: str) -> str:
        parts = [self.settings.persona]

        if self.memory.get_user_profile(user_id) is not None:
            profile_text = self.memory.get_user_profile_text(user_id)
            parts.append(f"What you know about this user:\n{profile_text}")

        context = self.memory.context_for(user_id)
        if context:
            parts.append(context)

        if self.settings.embeddings_enabled:
            related = await self.embeddings.search(user_id, content, self.settings.search_top_k)
            if related:
                parts.append(
                    "Earlier messages related to this one:\n"
                    + "\n".join(f"- {text}" for text in related)
                )

        parts.append(f"Please answer this message: {content}")
        return "\n\n".join(parts)

    def _quota_message(self) -> str:
        return (
            "😅 Sorry, I've reached my daily API quota! Please try again tomorrow.\n"
            f"⏰ Time remaining: {self.quota.time_until_reset()}"
        )
