import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from google.genai import types as genai_types  # type: ignore

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when a required setting (API key, model name) is missing."""


# Preference fields persisted between runs; everything else comes from code/env.
PERSISTED_FIELDS = (
    "chat_model",
    "embedding_model",
    "concurrency",
    "last_processed_file",
)


@dataclass
class Settings:
    """Centralized runtime configuration."""

    # Model configuration
    chat_model: str = "models/gemini-1.5-pro-latest"
    embedding_model: str = "models/text-embedding-004"
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"

    # Security / keys
    api_key_env: str = "GEMINI_API_KEY"
    api_key: Optional[str] = None

    # File system layout
    data_dir: Path = Path("data")
    cache_dir: Path = data_dir / "cache"
    preferences_path: Path = data_dir / "preferences.json"

    # Ingestion defaults
    concurrency: int = 10
    min_paragraph_chars: int = 100
    embedding_precision: int = 4
    # Pause before the cache lookup so the host finishes switching views.
    cache_search_delay: float = 1.0

    # Network
    request_timeout: float = 300.0
    retry_attempts: int = 3
    retry_initial_delay: float = 1.0
    retry_exp_base: float = 2.0
    retry_status_codes: List[int] = field(
        default_factory=lambda: [429, 500, 503, 504]
    )

    # Score each answer against the cached chunks
    score_answers: bool = True

    last_processed_file: Optional[str] = None

    extra: dict = field(default_factory=dict)

    def resolve_api_key(self) -> str:
        """Explicit key first, then the environment (populated from .env by the host)."""
        return self.api_key or os.environ.get(self.api_key_env, "")

    def require_api_key(self) -> str:
        api_key = self.resolve_api_key()
        if not api_key:
            raise ConfigurationError(
                f"Missing API key env var {self.api_key_env}. Set it in your shell or .env."
            )
        return api_key

    def retry_options(self) -> genai_types.HttpRetryOptions:
        """Retry policy for embedding requests."""
        return genai_types.HttpRetryOptions(
            attempts=max(1, self.retry_attempts),
            exp_base=self.retry_exp_base,
            initial_delay=self.retry_initial_delay,
            http_status_codes=list(self.retry_status_codes),
        )

    def load_preferences(self, path: Optional[Path] = None) -> "Settings":
        """
        Merge saved preferences over the current values.

        Unknown keys are ignored; a missing or unreadable file leaves defaults in place.
        """
        path = Path(path or self.preferences_path)
        if not path.exists():
            return self
        try:
            saved = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", path, exc)
            return self
        if not isinstance(saved, dict):
            return self
        for key in PERSISTED_FIELDS:
            if key in saved:
                setattr(self, key, saved[key])
        return self

    def save_preferences(self, path: Optional[Path] = None) -> None:
        path = Path(path or self.preferences_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: getattr(self, key) for key in PERSISTED_FIELDS}
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


settings = Settings()
