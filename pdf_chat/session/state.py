"""
Active-document state shared between the ingestion pipeline and chat surfaces.

There is exactly one active document at a time. The pipeline is the only writer;
chat surfaces observe it through registered state listeners.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pdf_chat.tools.chunking import DocumentChunk

logger = logging.getLogger(__name__)


class IngestionStatus(str, Enum):
    IDLE = "idle"
    SEARCHING_CACHE = "searching_cache"
    LOADING_CACHE = "loading_cache"
    READING = "reading"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class IngestionState:
    status: IngestionStatus
    progress: Optional[int] = None
    total: Optional[int] = None


StateListener = Callable[[IngestionState], None]


class ActiveDocumentState:
    """Text, chunk set and ingestion flag for the currently active PDF."""

    def __init__(self):
        self.text: str = ""
        self.chunks: List[DocumentChunk] = []
        self.ingesting: bool = False
        self.progress: int = 0
        self.total: int = 0
        self.last_state: IngestionState = IngestionState(IngestionStatus.IDLE)
        self._listeners: List[StateListener] = []

    @property
    def has_document(self) -> bool:
        return bool(self.text)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def emit(self, status: IngestionStatus, progress: Optional[int] = None, total: Optional[int] = None) -> None:
        state = IngestionState(status=status, progress=progress, total=total)
        if progress is not None:
            self.progress = progress
        if total is not None:
            self.total = total
        self.last_state = state
        logger.debug("Ingestion state -> %s (%s/%s)", status.value, progress, total)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                # A broken surface must not stall ingestion.
                logger.exception("State listener %r failed", listener)

    def publish(self, text: str, chunks: List[DocumentChunk]) -> None:
        self.text = text
        self.chunks = list(chunks)

    def reset(self) -> None:
        self.text = ""
        self.chunks = []
        self.progress = 0
        self.total = 0

    def progress_snapshot(self) -> Tuple[int, int]:
        return self.progress, self.total


@dataclass(frozen=True)
class InputGate:
    """What a chat surface should show for a given ingestion state."""

    enabled: bool
    placeholder: str
    status_text: Optional[str] = None


WAIT_PLACEHOLDER = "Preprocessing the PDF, please wait."
OPEN_PDF_PLACEHOLDER = "Open a PDF to analyze."

_BUSY_TEXT = {
    IngestionStatus.SEARCHING_CACHE: "Searching the embedding cache...",
    IngestionStatus.LOADING_CACHE: "Loading embeddings from cache...",
    IngestionStatus.READING: "Reading the PDF...",
    IngestionStatus.CHUNKING: "Splitting text into chunks...",
}


def input_gate_for(state: IngestionState, has_document: bool) -> InputGate:
    """Map an ingestion state to the chat input's enablement and status line."""
    status = state.status
    if status in _BUSY_TEXT:
        return InputGate(False, WAIT_PLACEHOLDER, _BUSY_TEXT[status])
    if status is IngestionStatus.EMBEDDING:
        return InputGate(
            False,
            WAIT_PLACEHOLDER,
            f"Computing chunk embeddings - {state.progress or 0} / {state.total or 0} done",
        )
    if status is IngestionStatus.ERROR:
        return InputGate(
            False,
            "Preprocessing failed.",
            "An error occurred. Check the logs for details.",
        )
    if status is IngestionStatus.COMPLETE and has_document:
        return InputGate(True, "Ask a question about the PDF.", "Embeddings ready.")
    return InputGate(False, OPEN_PDF_PLACEHOLDER)
