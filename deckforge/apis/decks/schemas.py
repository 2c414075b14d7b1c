from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from deckforge.modules.decks.models import DeckMetadata, DeckRecord, ValidatedCard


class GenerateDeckResponse(BaseModel):
    message: str = "Flashcards generated successfully"
    deck_id: int
    cards: list[ValidatedCard]
    meta: DeckMetadata


class DeckSummary(BaseModel):
    id: int
    name: str
    pdf_file_name: str
    density: str
    card_count: int
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, deck: DeckRecord) -> "DeckSummary":
        return cls(
            id=deck.id,
            name=deck.name,
            pdf_file_name=deck.pdf_file_name,
            density=deck.density.value,
            card_count=len(deck.cards),
            created_at=deck.created_at,
        )


class DeckListResponse(BaseModel):
    decks: list[DeckSummary] = Field(default_factory=list)
    total: int
    limit: int
    skip: int


class DeckRead(BaseModel):
    deck: DeckRecord


class RenameDeckRequest(BaseModel):
    name: str = Field(..., description="New display name for the deck")
