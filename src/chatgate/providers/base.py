"""Base classes and errors for generation and embedding backends."""

from abc import ABC, abstractmethod
from typing import List, Sequence


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        model: str = "",
        is_retryable: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.is_retryable = is_retryable


class BackendTransientError(BackendError):
    """The backend is temporarily unable to serve; asking again later may work."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider, model, is_retryable=True)


class RateLimitError(BackendTransientError):
    """Raised when rate limited or out of quota."""


class OverloadedError(BackendTransientError):
    """Raised when the backend reports it is overloaded or unavailable."""


class BackendFailure(BackendError):
    """The backend failed or returned something unusable."""


class InternalBackendError(BackendFailure):
    """The backend reported an internal server error."""


class AuthenticationError(BackendFailure):
    """Raised when the backend is not configured with valid credentials."""


def classify_error(error: Exception, provider: str = "", model: str = "") -> BackendError:
    """Map an SDK exception onto the backend error taxonomy by its message."""
    if isinstance(error, BackendError):
        return error

    message = str(error)
    lowered = message.lower()
    if "429" in message or "quota" in lowered or "rate limit" in lowered:
        return RateLimitError(message, provider=provider, model=model)
    if "resource exhausted" in lowered or "resource_exhausted" in lowered:
        return RateLimitError(message, provider=provider, model=model)
    if "503" in message or "overloaded" in lowered or "unavailable" in lowered:
        return OverloadedError(message, provider=provider, model=model)
    if "500" in message or "internal" in lowered:
        return InternalBackendError(message, provider=provider, model=model)
    return BackendFailure(message, provider=provider, model=model)


def mean_pool(vectors: Sequence[Sequence[float]]) -> List[float]:
    """Average token-level vectors into a single vector."""
    if not vectors:
        return []
    width = len(vectors[0])
    return [sum(vector[i] for vector in vectors) / len(vectors) for i in range(width)]


class Backend(ABC):
    """A text-generation and embedding service."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name."""
        ...

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate text for a prompt.

        Raises:
            BackendTransientError: On rate limiting or overload.
            BackendFailure: On any other failure.
        """
        ...

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed text as a single flat vector."""
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend is configured."""
        ...
