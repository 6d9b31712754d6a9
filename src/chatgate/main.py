"""
Main entry point wiring the intake gate, conversation memory and a backend together.
"""

import asyncio
import logging
import sys
from typing import Optional, Set

from dotenv import load_dotenv

from .config import Settings
from .core.orchestrator import MessageOrchestrator
from .models.base import IncomingMessage
from .providers.base import Backend
from .providers.gemini import GeminiBackend
from .providers.openrouter import OpenRouterBackend
from .services.cooldown import CooldownTracker
from .services.embeddings import EmbeddingIndex
from .services.gate import IntakeGate
from .services.history import BoundedHistory
from .services.memory import ConversationMemory
from .services.profile import ProfileSynthesizer
from .services.quota import DailyQuota
from .services.store import UserStore
from .transport import StdioTransport, Transport

logger = logging.getLogger(__name__)

__version__ = "1.0.0"


def create_backend(settings: Settings) -> Backend:
    """Build the backend selected by the settings."""
    if settings.backend == "openrouter":
        return OpenRouterBackend(api_key=settings.openrouter_api_key)
    if settings.backend != "gemini":
        raise ValueError(f"Unknown backend: {settings.backend}")
    if not settings.gemini_api_key:
        raise ValueError("No GEMINI_API_KEY found in environment. Please check your .env file.")
    return GeminiBackend(
        api_key=settings.gemini_api_key,
        primary_model=settings.gemini_model_primary,
        fallback_model=settings.gemini_model_fallback,
        embedding_model=settings.gemini_embedding_model,
        timeout=settings.gemini_timeout_seconds,
    )


class ChatGate:
    """Owns every component and the background jobs for one process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Optional[Backend] = None,
        transport: Optional[Transport] = None,
    ):
        self.settings = settings or Settings()
        self.backend = backend or create_backend(self.settings)
        self.transport = transport or StdioTransport()

        self.store = UserStore(
            path=self.settings.memory_file, autosave_seconds=self.settings.autosave_seconds
        )
        self.gate = IntakeGate(cooldown=CooldownTracker(self.settings.cooldown_seconds))
        self.history = BoundedHistory(self.store)
        self.embeddings = EmbeddingIndex(self.store, self.backend.embed)
        self.quota = DailyQuota(self.settings.daily_limit)
        self.profiles = ProfileSynthesizer(
            self.store, self.history, self.backend.generate, quota=self.quota
        )
        self.memory = ConversationMemory(self.store, self.history, self.embeddings, self.profiles)
        self.orchestrator = MessageOrchestrator(
            gate=self.gate,
            memory=self.memory,
            embeddings=self.embeddings,
            backend=self.backend,
            quota=self.quota,
            settings=self.settings,
        )

        self._sweep_task: Optional[asyncio.Task] = None
        self._handlers: Set[asyncio.Task] = set()

    async def start(self) -> None:
        await self.store.init()
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Starting chatgate v{__version__} with backend {self.backend.name}")

    async def stop(self) -> None:
        if self._handlers:
            await asyncio.gather(*list(self._handlers), return_exceptions=True)
        await self.memory.drain()
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        await self.store.shutdown()
        logger.info("chatgate stopped")

    def sweep(self) -> None:
        """Expire dedup entries, stale cooldowns and long-inactive users."""
        self.gate.sweep()
        self.store.cleanup(protected=self.gate.guard.in_flight)
        stats = self.quota.get_stats()
        logger.info(f"Current API usage: {stats['count']}/{stats['limit']}")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_seconds)
            self.sweep()

    def dispatch(self, event: IncomingMessage) -> asyncio.Task:
        """Handle an event in the background so other users are not blocked."""
        task = asyncio.create_task(self._handle(event))
        self._handlers.add(task)
        task.add_done_callback(self._handlers.discard)
        return task

    async def _handle(self, event: IncomingMessage) -> None:
        try:
            await self.orchestrator.handle_message(event, self.transport)
        except Exception as e:
            logger.error(f"Error handling message {event.id}: {e}", exc_info=True)

    async def run(self) -> None:
        """Serve events from the stdio transport until EOF."""
        if not isinstance(self.transport, StdioTransport):
            raise TypeError("run() reads events from a StdioTransport")
        await self.start()
        try:
            async for event in self.transport.events():
                self.dispatch(event)
        finally:
            await self.stop()


def main():
    """Main entry point."""
    load_dotenv()
    settings = Settings.from_env()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        app = ChatGate(settings)
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
