"""Split extracted PDF text into chunks sized for one model call."""

from __future__ import annotations

import math
import re

from deckforge.core.config import settings
from deckforge.modules.decks.models import Chunk, ChunkPlan

MIN_CHUNK_LENGTH = 100

# (max text length, chunk size, concurrency); last band is open-ended
SIZE_BANDS: tuple[tuple[int | None, int, int], ...] = (
    (50_000, 10_000, 3),
    (100_000, 12_000, 4),
    (None, 15_000, 5),
)

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"[.!?]\s+")


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _terminate(piece: str, max_chunk_size: int) -> str:
    return piece + "." if len(piece) < max_chunk_size else piece


def chunk_text(text: str, max_chunk_size: int = 10_000) -> list[Chunk]:
    """Greedy sentence packing; a sentence longer than the limit stays whole
    and unpunctuated, every other chunk fits within ``max_chunk_size``.

    Text that already fits is returned as one chunk without the noise floor;
    the floor only drops leftovers of a split.
    """
    clean = normalize_whitespace(text)
    if len(clean) <= max_chunk_size:
        return [Chunk(index=0, text=clean)] if clean else []

    pieces: list[str] = []
    current = ""
    for sentence in _SENTENCE_END.split(clean):
        candidate = f"{current}. {sentence}" if current else sentence
        # the flushed chunk gets a trailing period, so it must stay under the limit
        if len(candidate) >= max_chunk_size and current:
            pieces.append(_terminate(current, max_chunk_size))
            current = sentence
        else:
            current = candidate
    if current:
        pieces.append(current)

    kept = [p for p in pieces if len(p) > MIN_CHUNK_LENGTH]
    return [Chunk(index=i, text=p) for i, p in enumerate(kept)]


def plan_chunks(text_length: int, *, max_concurrency: int | None = None) -> ChunkPlan:
    cap = max_concurrency or settings.generation.max_concurrent_calls
    for upper, size, concurrency in SIZE_BANDS:
        if upper is None or text_length <= upper:
            return ChunkPlan(chunk_size=size, concurrency=max(1, min(concurrency, cap)))
    raise AssertionError("unreachable: last size band is open-ended")


def cap_chunks(chunks: list[Chunk], max_chunks: int | None = None) -> list[Chunk]:
    limit = max_chunks or settings.generation.max_chunks
    return chunks[:limit]


def cards_per_chunk(target: int, n_chunks: int) -> int:
    if n_chunks > 10:
        return max(8, math.ceil((target * 1.5) / n_chunks))
    return max(5, math.ceil(target / max(1, n_chunks)))
