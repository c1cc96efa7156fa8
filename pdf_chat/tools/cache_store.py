"""
Lightweight JSON cache of embedded chunks, one file per source document.

The file name is derived from the document path with every non-alphanumeric
character replaced, so distinct documents never share a cache entry.
"""

import json
import logging
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from pdf_chat.config import settings
from pdf_chat.tools.chunking import DocumentChunk

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9]")


class CacheCorruptedError(Exception):
    """The cache file exists but does not hold a valid record."""


class DocumentCacheRecord(BaseModel):
    chunks: List[DocumentChunk]


def cache_key(document_path: str) -> str:
    return f"{_UNSAFE_CHARS_RE.sub('_', document_path)}.json"


def round_embeddings(chunks: List[DocumentChunk], precision: int) -> List[DocumentChunk]:
    return [
        chunk.model_copy(update={"embedding": [round(v, precision) for v in chunk.embedding]})
        for chunk in chunks
    ]


def format_record(chunks: List[DocumentChunk]) -> str:
    """
    Serialize a record with one block per chunk and each embedding on a single line.

    Keeps large caches readable and diffable; the result is plain JSON.
    """
    blocks = []
    for chunk in chunks:
        values = ", ".join(repr(float(v)) for v in chunk.embedding)
        blocks.append(
            "    {\n"
            f"      \"text\": {json.dumps(chunk.text, ensure_ascii=False)},\n"
            f"      \"page\": {int(chunk.page)},\n"
            f"      \"embedding\": [{values}]\n"
            "    }"
        )
    return '{\n  "chunks": [\n' + ",\n".join(blocks) + "\n  ]\n}"


class CacheStore:
    """Persist embedded chunk sets under a cache directory."""

    def __init__(self, cache_dir: Path = None, precision: int = None):
        self.cache_dir = Path(cache_dir or settings.cache_dir)
        self.precision = settings.embedding_precision if precision is None else precision

    def ensure_dir(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, document_path: str) -> Path:
        return self.cache_dir / cache_key(document_path)

    def exists(self, document_path: str) -> bool:
        return self.path_for(document_path).exists()

    def read(self, document_path: str) -> Optional[List[DocumentChunk]]:
        """
        Return cached chunks, or None on a cache miss.

        Raises CacheCorruptedError when the file cannot be parsed or validated.
        """
        path = self.path_for(document_path)
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
            record = DocumentCacheRecord.model_validate_json(raw)
        except (OSError, ValueError, ValidationError) as exc:
            raise CacheCorruptedError(f"Unreadable cache file {path}: {exc}") from exc
        return record.chunks

    def write(self, document_path: str, chunks: List[DocumentChunk]) -> Path:
        """Round embeddings to the configured precision and write the record."""
        self.ensure_dir()
        path = self.path_for(document_path)
        rounded = round_embeddings(chunks, self.precision)
        path.write_text(format_record(rounded), encoding="utf-8")
        logger.info("Cached %d chunks for %s at %s", len(rounded), document_path, path)
        return path
