"""
Paragraph chunking of page-tagged text.

Input is the extractor's output: each page starts with a ``[Page N]`` marker line.
Paragraphs are separated by blank lines; short ones (headers, footers, page
numbers) are dropped because they make poor retrieval units.
"""

import re
from typing import List

from pydantic import BaseModel, Field

from pdf_chat.config import settings

PAGE_MARKER = "[Page {page}]\n"
PAGE_SPLIT_RE = re.compile(r"(\[Page \d+\]\n)")
PAGE_NUMBER_RE = re.compile(r"\[Page (\d+)\]")
PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


class DocumentChunk(BaseModel):
    """A paragraph of extracted text, its source page and (once embedded) its vector."""

    text: str = Field(min_length=1)
    page: int = Field(ge=0, description="1-based page number; 0 when unknown.")
    embedding: List[float] = Field(default_factory=list)


def page_marker(page: int) -> str:
    return PAGE_MARKER.format(page=page)


def split_into_chunks(full_text: str, min_chars: int = None) -> List[DocumentChunk]:
    """Split page-tagged text into paragraph chunks longer than ``min_chars``."""
    threshold = settings.min_paragraph_chars if min_chars is None else min_chars
    # re.split keeps the captured markers: [preamble, header, body, header, body, ...]
    pieces = PAGE_SPLIT_RE.split(full_text)[1:]
    chunks: List[DocumentChunk] = []
    for i in range(0, len(pieces), 2):
        header = pieces[i]
        body = pieces[i + 1] if i + 1 < len(pieces) else ""
        match = PAGE_NUMBER_RE.match(header)
        page = int(match.group(1)) if match else 0
        for paragraph in PARAGRAPH_SPLIT_RE.split(body):
            text = paragraph.strip()
            if len(text) > threshold:
                chunks.append(DocumentChunk(text=text, page=page))
    return chunks


def chunks_to_text(chunks: List[DocumentChunk]) -> str:
    """Rebuild page-tagged text from cached chunks (used after a cache hit)."""
    return "\n\n".join(f"{page_marker(c.page)}{c.text}" for c in chunks)
