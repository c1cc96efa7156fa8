"""
PDF text extraction: rebuild reading flow from positioned text fragments.

pdfplumber gives us words with their vertical position. Consecutive fragments are
joined with a space unless the vertical jump exceeds 1.2x the fragment height, in
which case a new text block (paragraph break) starts.
"""

import io
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import pdfplumber  # type: ignore

from pdf_chat.tools.chunking import page_marker

logger = logging.getLogger(__name__)

BLOCK_GAP_RATIO = 1.2


@dataclass(frozen=True)
class TextFragment:
    text: str
    top: float
    height: float


def reflow_fragments(fragments: Iterable[TextFragment]) -> str:
    """Join fragments into natural text with paragraph breaks between blocks."""
    page_text = ""
    last_top: Optional[float] = None
    for fragment in fragments:
        if last_top is not None and page_text:
            if abs(fragment.top - last_top) > fragment.height * BLOCK_GAP_RATIO:
                page_text += "\n\n"
            elif fragment.text.strip():
                page_text += " "
        page_text += fragment.text
        last_top = fragment.top
    return page_text


def _page_fragments(page) -> List[TextFragment]:
    words = page.extract_words(keep_blank_chars=True, use_text_flow=True)
    return [
        TextFragment(
            text=word["text"],
            top=float(word["top"]),
            height=float(word["bottom"]) - float(word["top"]),
        )
        for word in words
    ]


def extract_pdf_text(
    data: bytes, notify: Optional[Callable[[str], None]] = None
) -> str:
    """
    Return page-tagged text for a PDF, or "" if it cannot be parsed.

    Each page is emitted as ``[Page N]\\n<text>\\n\\n`` (1-based) so the chunker can
    recover page provenance.
    """
    try:
        full_text = ""
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page_index, page in enumerate(pdf.pages, start=1):
                page_text = reflow_fragments(_page_fragments(page))
                full_text += f"{page_marker(page_index)}{page_text.strip()}\n\n"
        return full_text
    except Exception as exc:
        # pdfminer raises a zoo of exception types for malformed input.
        logger.error("PDF parsing failed: %s", exc)
        if notify:
            notify("Failed to parse PDF.")
        return ""
