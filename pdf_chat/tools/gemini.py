"""
Thin async client for the Gemini REST API (embedContent, generateContent, models).

Requests authenticate with the ``x-goog-api-key`` header. Non-2xx responses raise
GeminiAPIError; callers decide whether that is fatal.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from pdf_chat.config import ConfigurationError, Settings, settings as default_settings

logger = logging.getLogger(__name__)


class GeminiAPIError(Exception):
    """Non-success HTTP response from the Gemini API."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Gemini API error {status}: {message}")
        self.status = status
        self.message = message


@dataclass
class GenerationResult:
    """Parsed generateContent response: either an answer or a block."""

    text: Optional[str]
    block_reason: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return self.text is None


def embed_request_body(text: str) -> Dict[str, Any]:
    return {"content": {"parts": [{"text": text}]}}


def parse_embedding(payload: Dict[str, Any]) -> Optional[List[float]]:
    """Read ``embedding.values``; None when the field is absent or empty."""
    values = ((payload or {}).get("embedding") or {}).get("values")
    if not values:
        return None
    return [float(v) for v in values]


def parse_generation(payload: Dict[str, Any]) -> GenerationResult:
    """
    Read ``candidates[0].content.parts[0].text``.

    An empty or missing ``candidates`` list is a content block, reported with
    ``promptFeedback.blockReason`` when the API provides one.
    """
    candidates = (payload or {}).get("candidates") or []
    if not candidates:
        reason = ((payload or {}).get("promptFeedback") or {}).get("blockReason")
        return GenerationResult(text=None, block_reason=reason)
    try:
        text = candidates[0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError(f"Unexpected generateContent response shape: {exc}") from exc
    return GenerationResult(text=text)


class GeminiClient:
    """Async REST calls against ``{api_base}/{model}:method``."""

    def __init__(self, config: Settings = None):
        self.config = config or default_settings

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.require_api_key(),
        }

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.config.request_timeout)

    async def _request(self, method: str, url: str, body: Dict[str, Any] = None, params: Dict[str, str] = None) -> Dict[str, Any]:
        headers = self._headers()
        async with aiohttp.ClientSession(timeout=self._timeout()) as http:
            async with http.request(method, url, json=body, params=params, headers=headers) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise GeminiAPIError(response.status, detail[:500])
                return await response.json(content_type=None)

    async def embed_content(self, text: str, model: str = None) -> Optional[List[float]]:
        model = model or self.config.embedding_model
        if not model:
            raise ConfigurationError("Embedding model not selected.")
        url = f"{self.config.api_base}/{model}:embedContent"
        payload = await self._request("POST", url, body=embed_request_body(text))
        return parse_embedding(payload)

    async def generate_content(self, contents: List[Dict[str, Any]], model: str = None) -> GenerationResult:
        model = model or self.config.chat_model
        if not model:
            raise ConfigurationError("Chat model not selected.")
        url = f"{self.config.api_base}/{model}:generateContent"
        payload = await self._request("POST", url, body={"contents": contents})
        return parse_generation(payload)

    async def list_models(self, method: str = "generateContent") -> List[str]:
        """Names of the models that support ``method`` (generateContent or embedContent)."""
        names: List[str] = []
        params: Dict[str, str] = {"pageSize": "1000"}
        while True:
            payload = await self._request("GET", f"{self.config.api_base}/models", params=params)
            names.extend(select_models(payload, method))
            token = payload.get("nextPageToken")
            if not token:
                break
            params = {"pageSize": "1000", "pageToken": token}
        logger.debug("Found %d models supporting %s", len(names), method)
        return names


def select_models(payload: Dict[str, Any], method: str) -> List[str]:
    return [
        model["name"]
        for model in (payload or {}).get("models", [])
        if method in model.get("supportedGenerationMethods", [])
    ]
