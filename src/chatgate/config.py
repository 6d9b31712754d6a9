"""Environment-driven configuration."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_PERSONA = (
    "You are a friendly chat companion. Answer the user's latest message once, "
    "in the same language they used."
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime settings; ``from_env`` reads them from environment variables."""

    backend: str = "gemini"
    gemini_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    gemini_model_primary: str = "gemini-1.5-flash"
    gemini_model_fallback: str = ""
    gemini_embedding_model: str = "models/text-embedding-004"
    gemini_timeout_seconds: float = 30.0
    cooldown_seconds: float = 3.0
    daily_limit: int = 45
    memory_file: Optional[str] = None
    autosave_seconds: float = 30.0
    sweep_seconds: float = 5 * 60
    typing_interval_seconds: float = 5.0
    ignore_prefix: str = "!"
    channels: List[str] = field(default_factory=list)
    persona: str = DEFAULT_PERSONA
    embeddings_enabled: bool = True
    search_top_k: int = 3
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        channels = os.getenv("CHATGATE_CHANNELS", "")
        return cls(
            backend=os.getenv("CHATGATE_BACKEND", "gemini").strip().lower(),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
            gemini_model_primary=os.getenv("GEMINI_MODEL_PRIMARY", "gemini-1.5-flash"),
            gemini_model_fallback=os.getenv("GEMINI_MODEL_FALLBACK", ""),
            gemini_embedding_model=os.getenv(
                "GEMINI_EMBEDDING_MODEL", "models/text-embedding-004"
            ),
            gemini_timeout_seconds=float(os.getenv("GEMINI_MODEL_TIMEOUT", "30000")) / 1000,
            cooldown_seconds=float(os.getenv("CHATGATE_COOLDOWN_MS", "3000")) / 1000,
            daily_limit=int(os.getenv("CHATGATE_DAILY_LIMIT", "45")),
            memory_file=os.getenv("CHATGATE_MEMORY_FILE") or None,
            autosave_seconds=float(os.getenv("CHATGATE_AUTOSAVE_SECONDS", "30")),
            ignore_prefix=os.getenv("CHATGATE_IGNORE_PREFIX", "!"),
            channels=[c.strip() for c in channels.split(",") if c.strip()],
            persona=os.getenv("CHATGATE_PERSONA", DEFAULT_PERSONA),
            embeddings_enabled=_env_bool("CHATGATE_EMBEDDINGS", True),
            search_top_k=int(os.getenv("CHATGATE_SEARCH_TOP_K", "3")),
            log_level=os.getenv("CHATGATE_LOG_LEVEL", "INFO").upper(),
        )
