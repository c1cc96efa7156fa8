"""
PDF ingestion: extract text, chunk, embed, and cache for the active document.

States: idle -> searching_cache -> loading_cache -> complete on a cache hit, or
idle -> searching_cache -> reading -> chunking -> embedding -> complete on a miss.
Failures go through error and still end in complete.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from pdf_chat.config import Settings, settings as default_settings
from pdf_chat.session.state import ActiveDocumentState, IngestionStatus
from pdf_chat.tools.cache_store import CacheCorruptedError, CacheStore
from pdf_chat.tools.chunking import DocumentChunk, chunks_to_text, split_into_chunks
from pdf_chat.tools.embeddings import EmbeddingClient
from pdf_chat.tools.pdf_text import extract_pdf_text

logger = logging.getLogger(__name__)


class IngestionCancelled(Exception):
    """Raised at a suspension point of a run whose token was cancelled."""


class CancellationToken:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise IngestionCancelled()


@dataclass(frozen=True)
class DocumentHandle:
    """Identity of a PDF as the host knows it; ``path`` is also the cache identity."""

    path: str

    @property
    def name(self) -> str:
        return Path(self.path).stem


def read_document_bytes(document: DocumentHandle) -> bytes:
    return Path(document.path).read_bytes()


class IngestionPipeline:
    """Turn a document into an embedded, cached chunk set with observable progress."""

    def __init__(
        self,
        state: ActiveDocumentState,
        embedder: EmbeddingClient = None,
        cache: CacheStore = None,
        config: Settings = None,
        extract_text: Callable[..., str] = extract_pdf_text,
        read_binary: Callable[[DocumentHandle], bytes] = read_document_bytes,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.state = state
        self.config = config or default_settings
        self.notify = notify or (lambda message: None)
        self.embedder = embedder or EmbeddingClient(config=self.config, notify=self.notify)
        self.cache = cache or CacheStore(self.config.cache_dir, self.config.embedding_precision)
        self.extract_text = extract_text
        self.read_binary = read_binary
        self._token: Optional[CancellationToken] = None

    def cancel(self) -> bool:
        """Ask the in-flight run, if any, to stop at its next suspension point."""
        if self._token is None:
            return False
        self._token.cancel()
        return True

    async def ingest(self, document: DocumentHandle) -> None:
        # Check-and-set runs before the first await, so no other run can interleave.
        if self.state.ingesting:
            logger.info("Ignoring ingest(%s): another run is in progress", document.path)
            self.notify("Already processing a PDF. Please wait.")
            return
        self.state.ingesting = True

        if not self.config.resolve_api_key():
            self.notify("API key is not set.")
            self.state.ingesting = False
            return

        token = CancellationToken()
        self._token = token
        try:
            await self._run(document, token)
        except IngestionCancelled:
            logger.info("Ingestion of %s cancelled", document.path)
        except Exception:
            logger.exception("Failed to prepare %s", document.path)
            self.notify("Failed to prepare PDF. Check API key or logs.")
            self.state.emit(IngestionStatus.ERROR)
        finally:
            self.state.emit(IngestionStatus.COMPLETE)
            self.state.ingesting = False
            if self._token is token:
                self._token = None

    async def _run(self, document: DocumentHandle, token: CancellationToken) -> None:
        self.config.last_processed_file = document.path
        await asyncio.to_thread(self.config.save_preferences)

        self.state.emit(IngestionStatus.SEARCHING_CACHE)
        if self.config.cache_search_delay > 0:
            await asyncio.sleep(self.config.cache_search_delay)
        token.raise_if_cancelled()

        cached = await self._load_cache(document)
        token.raise_if_cancelled()
        if cached is not None:
            self.state.publish(chunks_to_text(cached), cached)
            self.notify(f"Embeddings for {document.name} loaded from cache.")
            return

        self.state.emit(IngestionStatus.READING)
        data = await asyncio.to_thread(self.read_binary, document)
        text = await asyncio.to_thread(self.extract_text, data, self.notify)
        token.raise_if_cancelled()
        self.state.publish(text, [])

        self.state.emit(IngestionStatus.CHUNKING)
        to_embed = split_into_chunks(text, self.config.min_paragraph_chars)
        if not to_embed:
            self.notify("No text content found in the PDF to analyze.")
            return
        self.notify(f"Generating embeddings for {len(to_embed)} text chunks...")

        embedded = await self._embed_chunks(to_embed, token)
        if not embedded:
            logger.warning("No chunk of %s could be embedded; nothing cached", document.path)
            return

        self.state.publish(text, embedded)
        self.notify(f"Ready to chat about {document.name}.")
        await asyncio.to_thread(self.cache.write, document.path, embedded)
        self.notify(f"Embeddings for {document.name} saved to cache.")

    async def _load_cache(self, document: DocumentHandle) -> Optional[List[DocumentChunk]]:
        if not await asyncio.to_thread(self.cache.exists, document.path):
            return None
        self.state.emit(IngestionStatus.LOADING_CACHE)
        try:
            return await asyncio.to_thread(self.cache.read, document.path)
        except CacheCorruptedError as exc:
            logger.error("Failed to load cache, reprocessing PDF: %s", exc)
            self.notify("Cache is corrupted, reprocessing PDF...")
            return None

    async def _embed_chunks(self, chunks: List[DocumentChunk], token: CancellationToken) -> List[DocumentChunk]:
        """
        Embed chunks in batches of ``concurrency`` requests issued together.

        Each batch is fully collected before the next starts, so progress only grows.
        Failed chunks are dropped; vectors whose length differs from the first
        accepted one are dropped too.
        """
        total = len(chunks)
        batch_size = max(1, self.config.concurrency)
        embedded: List[DocumentChunk] = []
        processed = 0
        self.state.emit(IngestionStatus.EMBEDDING, progress=0, total=total)

        for start in range(0, total, batch_size):
            batch = chunks[start:start + batch_size]
            vectors = await asyncio.gather(*(self.embedder.embed(c.text) for c in batch))
            token.raise_if_cancelled()
            for chunk, vector in zip(batch, vectors):
                if not vector:
                    continue
                if embedded and len(vector) != len(embedded[0].embedding):
                    logger.warning(
                        "Dropping chunk on page %d: embedding length %d != %d",
                        chunk.page, len(vector), len(embedded[0].embedding),
                    )
                    continue
                embedded.append(chunk.model_copy(update={"embedding": list(vector)}))
            processed += len(batch)
            self.state.emit(IngestionStatus.EMBEDDING, progress=processed, total=total)

        self.state.emit(IngestionStatus.EMBEDDING, progress=total, total=total)
        return embedded
