"""Gemini backend with primary/fallback model failover."""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .base import (
    Backend,
    BackendError,
    BackendFailure,
    InternalBackendError,
    OverloadedError,
    RateLimitError,
    classify_error,
    mean_pool,
)

logger = logging.getLogger(__name__)


def _to_backend_error(error: Exception, model_name: str) -> BackendError:
    message = f"{type(error).__name__}: {error}"
    if isinstance(error, (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)):
        return RateLimitError(message, provider="gemini", model=model_name)
    if isinstance(error, (google_exceptions.ServiceUnavailable, asyncio.TimeoutError)):
        return OverloadedError(message, provider="gemini", model=model_name)
    if isinstance(error, google_exceptions.InternalServerError):
        return InternalBackendError(message, provider="gemini", model=model_name)
    return classify_error(error, provider="gemini", model=model_name)


class GeminiBackend(Backend):
    """Generates with a primary Gemini model and fails over to a fallback model."""

    def __init__(
        self,
        api_key: str,
        primary_model: Optional[str] = None,
        fallback_model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        genai.configure(api_key=api_key)

        self.primary_model_name = primary_model or os.getenv(
            "GEMINI_MODEL_PRIMARY", "gemini-1.5-flash"
        )
        self.fallback_model_name = fallback_model or os.getenv("GEMINI_MODEL_FALLBACK", "")
        self.embedding_model_name = embedding_model or os.getenv(
            "GEMINI_EMBEDDING_MODEL", "models/text-embedding-004"
        )
        # Timeout configuration (in seconds)
        self.timeout = timeout or float(os.getenv("GEMINI_MODEL_TIMEOUT", "30000")) / 1000

        self._primary_model = self._initialize_model(self.primary_model_name, "Primary")
        self._fallback_model = (
            self._initialize_model(self.fallback_model_name, "Fallback")
            if self.fallback_model_name
            else None
        )

        self.primary_calls = 0
        self.fallback_calls = 0
        self.primary_failures = 0
        self.embed_calls = 0

    @property
    def name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return self._primary_model is not None or self._fallback_model is not None

    def _initialize_model(self, model_name: str, model_type: str):
        """Initialize a single model with error handling."""
        try:
            model = genai.GenerativeModel(model_name)
            logger.info(f"{model_type} model initialized: {model_name}")
            return model
        except Exception as e:
            logger.error(f"Failed to initialize {model_type} model {model_name}: {e}")
            return None

    async def _generate_with_timeout(self, model, prompt: str, timeout: float) -> str:
        response = await asyncio.wait_for(model.generate_content_async(prompt), timeout=timeout)
        try:
            return response.text
        except ValueError as e:
            # Raised when the candidate was blocked or has no text parts.
            raise BackendFailure(f"Empty or blocked response: {e}", provider=self.name)

    async def generate(self, prompt: str) -> str:
        """Generate text, trying the fallback model if the primary one fails."""
        last_error: Optional[BackendError] = None

        if self._primary_model:
            try:
                self.primary_calls += 1
                text = await self._generate_with_timeout(
                    self._primary_model, prompt, self.timeout
                )
                logger.debug("Primary model responded successfully")
                return text
            except Exception as e:
                self.primary_failures += 1
                last_error = _to_backend_error(e, self.primary_model_name)
                logger.warning(
                    f"Primary model failed (attempt {self.primary_failures}): {last_error}"
                )

        if self._fallback_model:
            try:
                self.fallback_calls += 1
                text = await self._generate_with_timeout(
                    self._fallback_model,
                    prompt,
                    self.timeout * 1.5,  # Give fallback more time
                )
                logger.info("Fallback model responded successfully")
                return text
            except Exception as e:
                last_error = _to_backend_error(e, self.fallback_model_name)
                logger.error(f"Fallback model also failed: {last_error}")

        if last_error is not None:
            raise last_error
        raise BackendFailure("No models available for content generation", provider=self.name)

    async def embed(self, text: str) -> List[float]:
        """Embed text with the configured embedding model."""
        self.embed_calls += 1
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                lambda: genai.embed_content(model=self.embedding_model_name, content=text),
            )
        except Exception as e:
            raise _to_backend_error(e, self.embedding_model_name)

        embedding = result["embedding"]
        if embedding and isinstance(embedding[0], (list, tuple)):
            return mean_pool(embedding)
        return [float(v) for v in embedding]

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics for the backend."""
        total_calls = self.primary_calls + self.fallback_calls
        primary_success_rate = (
            (self.primary_calls - self.primary_failures) / self.primary_calls
            if self.primary_calls > 0
            else 0
        )
        return {
            "primary_model": self.primary_model_name,
            "fallback_model": self.fallback_model_name,
            "embedding_model": self.embedding_model_name,
            "total_calls": total_calls,
            "primary_calls": self.primary_calls,
            "fallback_calls": self.fallback_calls,
            "primary_failures": self.primary_failures,
            "primary_success_rate": primary_success_rate,
            "embed_calls": self.embed_calls,
            "timeout_seconds": self.timeout,
        }
