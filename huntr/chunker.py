"""Splitting CV text into overlapping chunks, and the processing lock file."""

from __future__ import annotations

import logging
from pathlib import Path

from huntr.models import CVChunk

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 600
DEFAULT_CHUNK_OVERLAP = 120

_BOUNDARY_WINDOW = 50
_BREAK_MARGIN = 100


class LockFileExistsError(FileExistsError):
    """Raised when the processing lock file is already present."""


def _boundary_end(text: str, start: int, end: int, chunk_size: int) -> int:
    """Move ``end`` back to just after a space or newline near the end of the segment."""
    segment = text[start:end]
    search_start = max(len(segment) - _BOUNDARY_WINDOW, 0)
    tail = segment[search_start:]
    last_break = max(tail.rfind(" "), tail.rfind("\n"))
    if last_break >= 0:
        break_pos = search_start + last_break + 1
        if break_pos > chunk_size - _BREAK_MARGIN:
            return start + break_pos
    return end


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[CVChunk]:
    """Split text into overlapping chunks, preferring to break at word boundaries."""
    if not text:
        return []
    if chunk_size <= 0:
        chunk_size = DEFAULT_CHUNK_SIZE
    if overlap <= 0:
        overlap = DEFAULT_CHUNK_OVERLAP

    chunks: list[CVChunk] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        if end < length and chunk_size > _BREAK_MARGIN:
            end = _boundary_end(text, start, end, chunk_size)

        chunks.append(
            CVChunk(
                text=text[start:end].strip(),
                index=len(chunks),
                start_char=start,
                end_char=end,
            )
        )

        start = max(end - overlap, start + 1)

    log.info("chunked text", extra={"chunks": len(chunks), "size": chunk_size, "overlap": overlap})
    return chunks


def create_lock_file(path: str | Path) -> None:
    """Create an empty lock file; raise LockFileExistsError if it already exists."""
    try:
        with open(path, "x", encoding="utf-8"):
            pass
    except FileExistsError as exc:
        raise LockFileExistsError(f"lock file exists: {path}") from exc


def remove_lock_file(path: str | Path) -> None:
    """Remove the lock file; a missing file is not an error."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as exc:
        log.warning("error removing lock file", extra={"error": str(exc)})