"""Pydantic models for chunks, cards and decks.

Candidate cards come straight from the model and are not trusted;
``ValidatedCard`` is only produced by ``validation.validate_cards``.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Density(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


DENSITY_TARGETS: dict[Density, int] = {
    Density.LOW: 20,
    Density.MEDIUM: 35,
    Density.HIGH: 60,
}


class Chunk(BaseModel):
    index: int
    text: str


class ChunkPlan(BaseModel):
    chunk_size: int
    concurrency: int


class CandidateCard(BaseModel):
    front: str
    back: str
    tags: list[str] = Field(default_factory=list)


class ValidatedCard(BaseModel):
    front: str
    back: str
    tags: list[str] = Field(default_factory=list)


class DeckMetadata(BaseModel):
    chunks: int
    model: str
    total_generated: int
    after_deduplication: int
    final_count: int
    density_target: int
    language: str = "pt-BR"


class DeckRecord(BaseModel):
    """A persisted deck as handed back by a repository."""

    id: int
    owner_id: int
    name: str
    pdf_file_name: str
    density: Density
    cards: list[ValidatedCard] = Field(default_factory=list)
    metadata: Optional[DeckMetadata] = None
    created_at: Optional[datetime] = None


class GenerateDeckResult(BaseModel):
    deck: DeckRecord
    cards: list[ValidatedCard]
    meta: DeckMetadata
