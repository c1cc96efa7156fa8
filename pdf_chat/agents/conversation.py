"""
Conversation controller: multi-turn chat grounded in the active PDF.

Each user turn is appended optimistically and rolled back when the model returns
no candidates or the call fails. The request never repeats the new user turn as
plain history; it is re-sent once, prefixed with the system preamble that carries
the whole document text.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from pdf_chat.config import ConfigurationError, Settings, settings as default_settings
from pdf_chat.context.prompts import (
    ConversationTurn,
    ImageAttachment,
    TextPart,
    build_system_preamble,
)
from pdf_chat.session.state import (
    ActiveDocumentState,
    IngestionState,
    IngestionStatus,
    InputGate,
    input_gate_for,
)
from pdf_chat.tools.embeddings import EmbeddingClient
from pdf_chat.tools.gemini import GeminiAPIError, GeminiClient
from pdf_chat.tools.similarity import max_similarity

logger = logging.getLogger(__name__)

FAILED_MESSAGE = "The API call failed. See logs for details."


class TurnStatus(str, Enum):
    REJECTED = "rejected"
    ANSWERED = "answered"
    BLOCKED = "blocked"
    FAILED = "failed"


@dataclass
class TurnResult:
    status: TurnStatus
    message: str = ""
    answer: Optional[str] = None
    block_reason: Optional[str] = None
    similarity: Optional[float] = None

    @property
    def similarity_label(self) -> Optional[str]:
        if not self.similarity:
            return None
        return f"(max relevance: {self.similarity * 100:.1f}%)"


class ConversationController:
    """Holds turn history and runs one request/response cycle per user turn."""

    def __init__(
        self,
        document: ActiveDocumentState,
        client: GeminiClient = None,
        embedder: EmbeddingClient = None,
        config: Settings = None,
    ):
        self.document = document
        self.config = config or default_settings
        self.client = client or GeminiClient(self.config)
        self.embedder = embedder
        self.history: List[ConversationTurn] = []
        self.attached = False
        self.gate: InputGate = self._current_gate()
        self._unsubscribe: Optional[Callable[[], None]] = None

    # -- surface lifecycle -------------------------------------------------

    def attach(self) -> None:
        """Start observing ingestion state (the chat surface was opened)."""
        if self._unsubscribe is None:
            self._unsubscribe = self.document.add_listener(self.on_ingestion_state)
        self.attached = True
        self.gate = self._current_gate()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.attached = False

    def on_ingestion_state(self, state: IngestionState) -> None:
        self.gate = input_gate_for(state, self.document.has_document)

    @property
    def input_enabled(self) -> bool:
        return self.gate.enabled

    def _current_gate(self) -> InputGate:
        if self.document.ingesting:
            return input_gate_for(self.document.last_state, self.document.has_document)
        status = IngestionStatus.COMPLETE if self.document.has_document else IngestionStatus.IDLE
        return input_gate_for(IngestionState(status), self.document.has_document)

    # -- turns --------------------------------------------------------------

    def clear_history(self) -> None:
        self.history = []
        self.gate = self._current_gate()

    def build_request(self, prior: List[ConversationTurn], user_parts: List[Any]) -> List[Dict[str, Any]]:
        """Turns before the new user turn, plus preamble + user parts."""
        preamble = TextPart(text=build_system_preamble(self.document.text))
        grounded = ConversationTurn(role="user", parts=[preamble, *user_parts])
        return [turn.to_wire() for turn in prior] + [grounded.to_wire()]

    def _roll_back(self, turn: ConversationTurn) -> None:
        # identity, not equality: another in-flight turn may carry the same text
        self.history = [t for t in self.history if t is not turn]

    async def send_turn(self, text: str, image: Optional[ImageAttachment] = None) -> TurnResult:
        text = (text or "").strip()
        if (not text and image is None) or not self.input_enabled or not self.attached:
            return TurnResult(TurnStatus.REJECTED)

        parts: List[Any] = []
        if text:
            parts.append(TextPart(text=text))
        if image is not None:
            parts.append(image.to_part())
        prior = list(self.history)
        user_turn = ConversationTurn(role="user", parts=parts)
        self.history.append(user_turn)

        try:
            result = await self.client.generate_content(self.build_request(prior, parts))
        except (GeminiAPIError, ConfigurationError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.error("Chat request failed: %s", exc)
            self._roll_back(user_turn)
            return TurnResult(TurnStatus.FAILED, message=FAILED_MESSAGE)

        if result.blocked:
            self._roll_back(user_turn)
            reason = result.block_reason or "unknown"
            return TurnResult(
                TurnStatus.BLOCKED,
                message=f"The AI returned no response. (reason: {reason})",
                block_reason=result.block_reason,
            )

        answer = result.text
        self.history.append(ConversationTurn(role="model", parts=[TextPart(text=answer)]))
        similarity = await self._score_answer(answer)
        return TurnResult(TurnStatus.ANSWERED, message=answer, answer=answer, similarity=similarity)

    async def _score_answer(self, answer: str) -> Optional[float]:
        if not self.config.score_answers or self.embedder is None or not answer:
            return None
        try:
            vector = await self.embedder.embed(answer)
        except ConfigurationError as exc:
            logger.warning("Skipping answer scoring: %s", exc)
            return None
        if not vector:
            return None
        score = max_similarity(vector, self.document.chunks)
        return score if score > 0 else None
