"""Runs the generation client over all chunks in fixed-width batches."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from deckforge.core.errors import NoCardsGenerated
from deckforge.core.logging import get_logger
from deckforge.modules.decks.generator import GenerationClient
from deckforge.modules.decks.models import CandidateCard, Chunk, Density


@dataclass
class ChunkOutcome:
    chunk: Chunk
    cards: list[CandidateCard] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChunkOrchestrator:
    """Batch fan-out: a batch must fully settle before the next one starts.

    A failing chunk contributes zero cards and never affects its siblings.
    """

    def __init__(
        self,
        client: GenerationClient,
        *,
        logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
    ) -> None:
        self.client = client
        self.log = logger or get_logger(__name__)
        self.outcomes: list[ChunkOutcome] = []

    async def _run_one(
        self, chunk: Chunk, total: int, density: Density, per_chunk_target: int
    ) -> ChunkOutcome:
        label = f"[{chunk.index + 1}/{total}]"
        self.log.info("%s Generating flashcards...", label)
        try:
            cards = await self.client.generate(chunk.text, density, per_chunk_target)
        except Exception as e:  # noqa: BLE001
            self.log.warning("%s ✗ %s: %s", label, type(e).__name__, e)
            return ChunkOutcome(chunk=chunk, error=e)
        self.log.info("%s ✓ %d cards generated", label, len(cards))
        return ChunkOutcome(chunk=chunk, cards=cards)

    async def run_all(
        self,
        chunks: list[Chunk],
        concurrency: int,
        per_chunk_target: int,
        density: Density = Density.LOW,
        *,
        on_batch: Optional[Callable[[int, int], None]] = None,
    ) -> list[CandidateCard]:
        width = max(1, concurrency)
        total = len(chunks)
        self.outcomes = []

        for start in range(0, total, width):
            batch = chunks[start : start + width]
            # gather keeps argument order, so results line up with chunk order
            results = await asyncio.gather(
                *(self._run_one(c, total, density, per_chunk_target) for c in batch)
            )
            self.outcomes.extend(results)
            if on_batch is not None:
                on_batch(len(self.outcomes), total)

        cards = [card for outcome in self.outcomes for card in outcome.cards]
        self.log.info("Total of %d cards generated from %d chunks", len(cards), total)
        if not cards:
            raise NoCardsGenerated([o.error for o in self.outcomes if o.error is not None])
        return cards
