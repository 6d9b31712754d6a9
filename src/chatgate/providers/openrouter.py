"""OpenRouter backend using the OpenAI-compatible API."""

import logging
import os
from typing import List, Optional

from openai import AsyncOpenAI

from .base import AuthenticationError, Backend, BackendFailure, classify_error, mean_pool

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterBackend(Backend):
    """Backend talking to OpenRouter through the OpenAI client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "google/gemini-2.5-flash",
        embedding_model: str = "openai/text-embedding-3-small",
        timeout: float = 60.0,
        app_name: str = "chatgate",
    ):
        """Initialize the OpenRouter backend.

        Args:
            api_key: OpenRouter API key. If None, reads from OPENROUTER_API_KEY env var.
            default_model: Model used for generation.
            embedding_model: Model used for embeddings.
            timeout: Request timeout in seconds.
            app_name: Application name for OpenRouter headers.
        """
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        self.default_model = default_model
        self.embedding_model = embedding_model
        self.timeout = timeout
        self.app_name = app_name
        self._client: Optional[AsyncOpenAI] = None

    @property
    def name(self) -> str:
        return "openrouter"

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client configured for OpenRouter."""
        if self._client is None:
            if not self.api_key:
                raise AuthenticationError(
                    "OpenRouter API key not configured. "
                    "Set OPENROUTER_API_KEY environment variable.",
                    provider=self.name,
                )
            self._client = AsyncOpenAI(
                base_url=OPENROUTER_BASE_URL,
                api_key=self.api_key,
                timeout=self.timeout,
                default_headers={"X-Title": self.app_name},
            )
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> str:
        logger.info(f"Generating with OpenRouter model: {self.default_model}")
        try:
            response = await self.client.chat.completions.create(
                model=self.default_model,
                messages=[{"role": "user", "content": prompt}],
            )
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error(f"OpenRouter error: {e}")
            raise classify_error(e, provider=self.name, model=self.default_model)

        if not response.choices:
            raise BackendFailure("OpenRouter returned no choices", provider=self.name)
        return response.choices[0].message.content or ""

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(model=self.embedding_model, input=text)
        except AuthenticationError:
            raise
        except Exception as e:
            raise classify_error(e, provider=self.name, model=self.embedding_model)

        embedding = response.data[0].embedding
        if embedding and isinstance(embedding[0], list):
            return mean_pool(embedding)
        return list(embedding)
