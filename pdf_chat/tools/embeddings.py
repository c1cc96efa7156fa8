"""
Fail-soft embedding client.

Uses the Gemini embedContent endpoint with a bounded retry for transient errors.
Any remaining failure is logged and reported as None so ingestion can continue
with partial coverage.
"""

import asyncio
import logging
import random
from typing import Callable, List, Optional

import aiohttp

from pdf_chat.config import Settings, settings as default_settings
from pdf_chat.tools.gemini import GeminiAPIError, GeminiClient

logger = logging.getLogger(__name__)

EMBEDDING_FAILED_NOTICE = "An embedding request failed. See logs for details."


class EmbeddingClient:
    """Minimal embedding function the pipeline and chat scoring call."""

    def __init__(
        self,
        client: GeminiClient = None,
        config: Settings = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or default_settings
        self.client = client or GeminiClient(self.config)
        self.notify = notify
        self.retry_config = self.config.retry_options()

    def _retryable(self, exc: Exception) -> bool:
        if isinstance(exc, GeminiAPIError):
            return exc.status in (self.retry_config.http_status_codes or [])
        return isinstance(exc, (aiohttp.ClientConnectionError, asyncio.TimeoutError))

    async def embed(self, text: str) -> Optional[List[float]]:
        """Return the embedding vector for ``text`` or None if the request failed."""
        attempt = 0
        while True:
            try:
                return await self.client.embed_content(text, model=self.config.embedding_model)
            except (GeminiAPIError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                attempt += 1
                if attempt < self.retry_config.attempts and self._retryable(exc):
                    delay = self.retry_config.initial_delay * (
                        self.retry_config.exp_base ** (attempt - 1)
                    )
                    # Add small jitter to avoid thundering herd.
                    if delay:
                        delay += random.uniform(0, 0.5)
                    logger.info("Embedding attempt %d failed (%s); retrying in %.1fs", attempt, exc, delay)
                    await asyncio.sleep(delay)
                    continue
                logger.error("Embedding API call failed: %s", exc)
                if self.notify:
                    self.notify(EMBEDDING_FAILED_NOTICE)
                return None
