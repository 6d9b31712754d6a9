"""Generation and embedding backends."""

from .base import (
    AuthenticationError,
    Backend,
    BackendError,
    BackendFailure,
    BackendTransientError,
    InternalBackendError,
    OverloadedError,
    RateLimitError,
    classify_error,
    mean_pool,
)
from .gemini import GeminiBackend
from .openrouter import OpenRouterBackend

__all__ = [
    "AuthenticationError",
    "Backend",
    "BackendError",
    "BackendFailure",
    "BackendTransientError",
    "InternalBackendError",
    "OverloadedError",
    "RateLimitError",
    "classify_error",
    "mean_pool",
    "GeminiBackend",
    "OpenRouterBackend",
]
