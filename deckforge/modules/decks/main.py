"""Deck service class and wiring helpers.

``DeckService`` is the high-level entry point used by the API handlers and
the CLI: it runs the generation pipeline and exposes the deck management
operations (list, get, rename, delete, export). The ``build_*`` helpers wire
the pipeline either against the database or fully in memory.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deckforge.core.admission import AdmissionGate
from deckforge.core.config import settings
from deckforge.core.db_services import SqlDeckRepository
from deckforge.core.errors import DeckNotFound, InvalidDeckName
from deckforge.core.ledger import (
    InMemoryCreditStore,
    InMemoryQuotaStore,
    Ledger,
    SqlCreditStore,
    SqlQuotaStore,
)
from deckforge.modules.decks.export import export_apkg
from deckforge.modules.decks.extraction import PyMuPDFExtractor, TextExtractor
from deckforge.modules.decks.generator import GenerationClient
from deckforge.modules.decks.models import DeckRecord, Density, GenerateDeckResult
from deckforge.modules.decks.pipeline import DeckGenerationPipeline, EventCallback
from deckforge.modules.decks.repository import DeckRepository, InMemoryDeckRepository

MAX_DECK_NAME_LENGTH = 200


class DeckService:
    """High-level service for generating and managing decks.

    Example (async):
        svc = build_memory_service(balances={1: 10})
        result = await svc.generate(1, pdf_bytes, "notes.pdf", Density.LOW)

    Example (sync):
        result = svc.generate_sync(1, pdf_bytes, "notes.pdf", Density.LOW)
    """

    def __init__(self, pipeline: DeckGenerationPipeline, repository: DeckRepository) -> None:
        self.pipeline = pipeline
        self.repository = repository

    async def generate(
        self,
        user_id: int,
        pdf_bytes: bytes,
        filename: str,
        density: Density,
        *,
        plan: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
    ) -> GenerateDeckResult:
        return await self.pipeline.generate(
            user_id=user_id,
            pdf_bytes=pdf_bytes,
            filename=filename,
            density=density,
            plan=plan,
            on_event=on_event,
        )

    def generate_sync(
        self,
        user_id: int,
        pdf_bytes: bytes,
        filename: str,
        density: Density,
        *,
        plan: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
    ) -> GenerateDeckResult:
        """Synchronous wrapper for environments without an event loop."""
        return asyncio.run(
            self.generate(
                user_id, pdf_bytes, filename, density, plan=plan, on_event=on_event
            )
        )

    async def list_decks(
        self, user_id: int, *, limit: int = 50, skip: int = 0
    ) -> tuple[list[DeckRecord], int]:
        return await self.repository.list_decks(user_id, limit=limit, skip=skip)

    async def get_deck(self, deck_id: int, user_id: int) -> DeckRecord:
        deck = await self.repository.get_deck(deck_id, user_id)
        if deck is None:
            raise DeckNotFound()
        return deck

    async def rename_deck(self, deck_id: int, user_id: int, name: str) -> DeckRecord:
        trimmed = (name or "").strip()
        if not trimmed:
            raise InvalidDeckName("Deck name cannot be empty")
        if len(trimmed) > MAX_DECK_NAME_LENGTH:
            raise InvalidDeckName(
                f"Deck name cannot exceed {MAX_DECK_NAME_LENGTH} characters"
            )
        deck = await self.repository.rename_deck(deck_id, user_id, trimmed)
        if deck is None:
            raise DeckNotFound()
        return deck

    async def delete_deck(self, deck_id: int, user_id: int) -> None:
        if not await self.repository.delete_deck(deck_id, user_id):
            raise DeckNotFound()

    async def export_deck(self, deck_id: int, user_id: int) -> tuple[DeckRecord, bytes]:
        deck = await self.get_deck(deck_id, user_id)
        return deck, export_apkg(deck)


def build_ledger(
    session_maker: async_sessionmaker[AsyncSession], *, mode: Optional[str] = None
) -> Ledger:
    if (mode or settings.billing.mode) == "quota":
        return Ledger(SqlQuotaStore(session_maker), unit="PDFs")
    return Ledger(SqlCreditStore(session_maker), unit="credits")


def build_db_service(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    gate: Optional[AdmissionGate] = None,
    client: Optional[GenerationClient] = None,
    extractor: Optional[TextExtractor] = None,
) -> DeckService:
    """Production wiring: SQL ledger and repository, process-wide gate."""
    repository = SqlDeckRepository(session_maker)
    pipeline = DeckGenerationPipeline(
        gate=gate or AdmissionGate(),
        ledger=build_ledger(session_maker),
        extractor=extractor or PyMuPDFExtractor(),
        client=client or GenerationClient(),
        repository=repository,
    )
    return DeckService(pipeline, repository)


def build_memory_service(
    *,
    balances: Optional[dict[int, int]] = None,
    plans: Optional[dict[int, str]] = None,
    mode: Optional[str] = None,
    client: Optional[GenerationClient] = None,
    extractor: Optional[TextExtractor] = None,
) -> DeckService:
    """DB-less wiring for the CLI and tests."""
    resolved_mode = mode or settings.billing.mode
    if resolved_mode == "quota":
        ledger = Ledger(InMemoryQuotaStore(plans), unit="PDFs")
    else:
        ledger = Ledger(
            InMemoryCreditStore(balances, default=settings.billing.default_credits),
            unit="credits",
        )
    repository = InMemoryDeckRepository()
    pipeline = DeckGenerationPipeline(
        gate=AdmissionGate(),
        ledger=ledger,
        extractor=extractor or PyMuPDFExtractor(),
        client=client or GenerationClient(),
        repository=repository,
        billing_mode=resolved_mode,
    )
    return DeckService(pipeline, repository)
