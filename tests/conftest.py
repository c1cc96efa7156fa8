import asyncio
from typing import List, Optional

import pytest

from pdf_chat.config import Settings
from pdf_chat.session.state import ActiveDocumentState
from pdf_chat.tools.cache_store import CacheStore

# 27 chars * 6 -> 161 chars after strip, comfortably above the 100-char cut-off.
LONG_PARAGRAPH = "Lorem ipsum dolor sit amet " * 6


def page_text(*pages: List[str]) -> str:
    """Build extractor-style output: one list of paragraphs per page."""
    out = ""
    for number, paragraphs in enumerate(pages, start=1):
        out += f"[Page {number}]\n" + "\n\n".join(paragraphs) + "\n\n"
    return out


class FakeEmbedder:
    """Records calls; returns a fixed vector unless the text is marked as failing."""

    def __init__(self, vector=(0.1, 0.2, 0.3), fail_texts=(), gate: Optional[asyncio.Event] = None):
        self.vector = list(vector)
        self.fail_texts = set(fail_texts)
        self.gate = gate
        self.calls: List[str] = []

    async def embed(self, text: str):
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if text in self.fail_texts:
            return None
        return list(self.vector)


class StateRecorder:
    def __init__(self, state: ActiveDocumentState):
        self.events = []
        state.add_listener(self)

    def __call__(self, state):
        self.events.append((state.status.value, state.progress, state.total))

    @property
    def statuses(self) -> List[str]:
        return [status for status, _, _ in self.events]


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        api_key="test-key",
        data_dir=tmp_path,
        cache_dir=tmp_path / "cache",
        preferences_path=tmp_path / "preferences.json",
        cache_search_delay=0,
        concurrency=2,
        retry_initial_delay=0,
    )


@pytest.fixture
def cache(config) -> CacheStore:
    return CacheStore(config.cache_dir, config.embedding_precision)


@pytest.fixture
def notices() -> List[str]:
    return []
