import aiohttp
import pytest

from pdf_chat.config import ConfigurationError
from pdf_chat.tools.embeddings import EMBEDDING_FAILED_NOTICE, EmbeddingClient
from pdf_chat.tools.gemini import GeminiAPIError, parse_embedding


class ScriptedClient:
    """Plays back a list of outcomes: vectors are returned, exceptions raised."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def embed_content(self, text, model=None):
        self.calls.append((text, model))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.mark.asyncio
async def test_returns_vector_from_client(config):
    client = ScriptedClient([[0.1, 0.2]])
    embedder = EmbeddingClient(client, config)

    assert await embedder.embed("hello") == [0.1, 0.2]
    assert client.calls == [("hello", config.embedding_model)]


@pytest.mark.asyncio
async def test_persistent_server_error_returns_none_after_bounded_retries(config, notices):
    client = ScriptedClient([GeminiAPIError(503, "unavailable")])
    embedder = EmbeddingClient(client, config, notify=notices.append)

    assert await embedder.embed("hello") is None
    assert len(client.calls) == config.retry_attempts
    assert notices == [EMBEDDING_FAILED_NOTICE]


@pytest.mark.asyncio
async def test_transient_error_is_retried(config):
    client = ScriptedClient([GeminiAPIError(429, "slow down"), [1.0, 0.0]])
    embedder = EmbeddingClient(client, config)

    assert await embedder.embed("hello") == [1.0, 0.0]
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(config, notices):
    client = ScriptedClient([GeminiAPIError(400, "bad request")])
    embedder = EmbeddingClient(client, config, notify=notices.append)

    assert await embedder.embed("hello") is None
    assert len(client.calls) == 1
    assert notices == [EMBEDDING_FAILED_NOTICE]


@pytest.mark.asyncio
async def test_connection_errors_fail_soft(config):
    client = ScriptedClient([aiohttp.ClientConnectionError("refused")])
    embedder = EmbeddingClient(client, config)

    assert await embedder.embed("hello") is None
    assert len(client.calls) == config.retry_attempts


@pytest.mark.asyncio
async def test_single_attempt_when_retries_disabled(config):
    config.retry_attempts = 1
    client = ScriptedClient([GeminiAPIError(500, "oops")])
    embedder = EmbeddingClient(client, config)

    assert await embedder.embed("hello") is None
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_configuration_errors_propagate(config):
    client = ScriptedClient([ConfigurationError("Embedding model not selected.")])
    embedder = EmbeddingClient(client, config)

    with pytest.raises(ConfigurationError):
        await embedder.embed("hello")


@pytest.mark.asyncio
async def test_null_embedding_field_is_a_soft_failure(config, notices):
    client = ScriptedClient([parse_embedding({"embedding": None})])
    embedder = EmbeddingClient(client, config, notify=notices.append)

    assert await embedder.embed("hello") is None
    assert len(client.calls) == 1
