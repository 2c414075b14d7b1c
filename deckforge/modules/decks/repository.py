"""Deck persistence contract and an in-process implementation."""

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Optional, Protocol

from deckforge.modules.decks.models import DeckMetadata, DeckRecord, Density, ValidatedCard


class DeckRepository(Protocol):
    async def create_deck(
        self,
        owner_id: int,
        name: str,
        cards: list[ValidatedCard],
        density: Density,
        metadata: DeckMetadata,
        *,
        pdf_file_name: str,
    ) -> DeckRecord: ...

    async def list_decks(
        self, owner_id: int, *, limit: int = 50, skip: int = 0
    ) -> tuple[list[DeckRecord], int]: ...

    async def get_deck(self, deck_id: int, owner_id: int) -> Optional[DeckRecord]: ...

    async def rename_deck(
        self, deck_id: int, owner_id: int, name: str
    ) -> Optional[DeckRecord]: ...

    async def delete_deck(self, deck_id: int, owner_id: int) -> bool: ...


class InMemoryDeckRepository:
    """Used by the CLI and tests; decks live for the life of the process."""

    def __init__(self) -> None:
        self._decks: dict[int, DeckRecord] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def create_deck(
        self,
        owner_id: int,
        name: str,
        cards: list[ValidatedCard],
        density: Density,
        metadata: DeckMetadata,
        *,
        pdf_file_name: str,
    ) -> DeckRecord:
        async with self._lock:
            deck = DeckRecord(
                id=next(self._ids),
                owner_id=owner_id,
                name=name,
                pdf_file_name=pdf_file_name,
                density=density,
                cards=list(cards),
                metadata=metadata,
                created_at=datetime.now(timezone.utc),
            )
            self._decks[deck.id] = deck
        return deck

    async def list_decks(
        self, owner_id: int, *, limit: int = 50, skip: int = 0
    ) -> tuple[list[DeckRecord], int]:
        owned = [d for d in self._decks.values() if d.owner_id == owner_id]
        owned.sort(key=lambda d: (d.created_at, d.id), reverse=True)
        return owned[skip : skip + limit], len(owned)

    async def get_deck(self, deck_id: int, owner_id: int) -> Optional[DeckRecord]:
        deck = self._decks.get(deck_id)
        if deck is None or deck.owner_id != owner_id:
            return None
        return deck

    async def rename_deck(
        self, deck_id: int, owner_id: int, name: str
    ) -> Optional[DeckRecord]:
        deck = await self.get_deck(deck_id, owner_id)
        if deck is None:
            return None
        renamed = deck.model_copy(update={"name": name})
        self._decks[deck_id] = renamed
        return renamed

    async def delete_deck(self, deck_id: int, owner_id: int) -> bool:
        if await self.get_deck(deck_id, owner_id) is None:
            return False
        del self._decks[deck_id]
        return True
