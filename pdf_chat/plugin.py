"""
Plugin facade: the surface the host application talks to.

The host reports active-view changes; the plugin decides whether to (re)ingest,
owns the active-document state, and hands chat surfaces a controller bound to it.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from pdf_chat.agents.conversation import ConversationController
from pdf_chat.config import Settings, settings as default_settings
from pdf_chat.session.state import ActiveDocumentState, IngestionStatus, StateListener
from pdf_chat.tools.cache_store import CacheStore
from pdf_chat.tools.chunking import DocumentChunk
from pdf_chat.tools.embeddings import EmbeddingClient
from pdf_chat.tools.gemini import GeminiClient
from pdf_chat.tools.ingest import DocumentHandle, IngestionPipeline, read_document_bytes
from pdf_chat.tools.pdf_text import extract_pdf_text

logger = logging.getLogger(__name__)

PDF_VIEW = "pdf"
CHAT_VIEW = "chat"
OTHER_VIEW = "other"


class PdfChatPlugin:
    """Wires extractor, embedder, cache and chat around one ActiveDocumentState."""

    def __init__(
        self,
        config: Settings = None,
        client: GeminiClient = None,
        embedder: EmbeddingClient = None,
        cache: CacheStore = None,
        extract_text: Callable[..., str] = extract_pdf_text,
        read_binary: Callable[[DocumentHandle], bytes] = read_document_bytes,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or default_settings
        self.notify = notify or (lambda message: logger.info("Notice: %s", message))
        self.client = client or GeminiClient(self.config)
        self.embedder = embedder or EmbeddingClient(self.client, self.config, self.notify)
        self.state = ActiveDocumentState()
        self.cache = cache or CacheStore(self.config.cache_dir, self.config.embedding_precision)
        self.cache.ensure_dir()
        self.pipeline = IngestionPipeline(
            self.state,
            embedder=self.embedder,
            cache=self.cache,
            config=self.config,
            extract_text=extract_text,
            read_binary=read_binary,
            notify=self.notify,
        )
        self._task: Optional[asyncio.Task] = None

    # -- inbound: host view lifecycle ---------------------------------------

    async def on_active_view_changed(self, view_kind: str, document: Optional[DocumentHandle] = None) -> None:
        if view_kind == PDF_VIEW:
            if document is not None and (
                self.config.last_processed_file != document.path or not self.state.text
            ):
                await self.ingest(document)
            return
        if view_kind == CHAT_VIEW:
            return
        # Any other view: drop the active document.
        if self.pipeline.cancel():
            logger.info("Cancelled in-flight ingestion after leaving the PDF view")
        if self.state.text:
            self.state.reset()
            self.config.last_processed_file = None
            await asyncio.to_thread(self.config.save_preferences)
            self.state.emit(IngestionStatus.IDLE)

    # -- outbound -----------------------------------------------------------

    async def ingest(self, document: DocumentHandle) -> None:
        await self.pipeline.ingest(document)

    def start_ingest(self, document: DocumentHandle) -> asyncio.Task:
        """Fire-and-forget ingestion; progress arrives through state listeners."""
        self._task = asyncio.get_running_loop().create_task(self.ingest(document))
        return self._task

    def register_state_listener(self, listener: StateListener) -> Callable[[], None]:
        return self.state.add_listener(listener)

    def get_active_text(self) -> str:
        return self.state.text

    def get_active_chunks(self) -> List[DocumentChunk]:
        return list(self.state.chunks)

    def is_ingesting(self) -> bool:
        return self.state.ingesting

    def ingestion_progress(self) -> Tuple[int, int]:
        return self.state.progress_snapshot()

    async def embed_text(self, text: str) -> Optional[List[float]]:
        return await self.embedder.embed(text)

    def open_chat(self) -> ConversationController:
        """Create a controller for a newly opened chat surface and attach it."""
        controller = ConversationController(
            self.state, client=self.client, embedder=self.embedder, config=self.config
        )
        controller.attach()
        return controller

    async def list_chat_models(self) -> List[str]:
        return await self.client.list_models("generateContent")

    async def list_embedding_models(self) -> List[str]:
        return await self.client.list_models("embedContent")
