"""End-to-end deck generation: admission, reservation, generation, persistence.

The pipeline owns the exactly-once discipline around the two pieces of
shared state. The user's admission slot is released on every exit path
after it was acquired. A credit reservation is either finalized after the
deck is persisted or reverted on any failure that happens after it was
taken.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from deckforge.core.admission import AdmissionGate
from deckforge.core.config import settings
from deckforge.core.errors import (
    DeckforgeError,
    DensityNotAllowed,
    InputTooLarge,
    InsufficientCredits,
    NoCardsGenerated,
    PersistenceFailure,
)
from deckforge.core.ledger import Ledger, credits_for_pages
from deckforge.core.logging import run_logger
from deckforge.modules.decks.chunking import (
    cap_chunks,
    cards_per_chunk,
    chunk_text,
    plan_chunks,
)
from deckforge.modules.decks.extraction import TextExtractor
from deckforge.modules.decks.generator import GenerationClient
from deckforge.modules.decks.models import (
    DENSITY_TARGETS,
    DeckMetadata,
    Density,
    GenerateDeckResult,
)
from deckforge.modules.decks.orchestrator import ChunkOrchestrator
from deckforge.modules.decks.repository import DeckRepository
from deckforge.modules.decks.validation import (
    dedupe_cards,
    validate_cards,
    validate_pdf_text,
)

FINAL_CAP_FACTOR = 1.2


class PipelineStage(str, enum.Enum):
    IDLE = "idle"
    SLOT_ACQUIRED = "slot_acquired"
    CREDITS_RESERVED = "credits_reserved"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    GENERATING = "generating"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class PipelineEvent:
    stage: PipelineStage
    message: str
    data: dict[str, Any] = field(default_factory=dict)


EventCallback = Callable[[PipelineEvent], None]


def final_card_cap(density: Density) -> int:
    return math.ceil(DENSITY_TARGETS[density] * FINAL_CAP_FACTOR)


def deck_name_from_filename(filename: str) -> str:
    name = filename.rsplit("/", 1)[-1]
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return name.strip()[:200] or "Deck"


class _Run:
    """Per-request state: current stage plus event fan-out."""

    def __init__(self, user_id: int, on_event: Optional[EventCallback]) -> None:
        self.stage = PipelineStage.IDLE
        self.on_event = on_event
        self.log = run_logger(__name__, user_id=user_id)

    def advance(self, stage: PipelineStage, message: str, **data: Any) -> None:
        self.stage = stage
        self.log.info("%s: %s", stage.value, message)
        if self.on_event is None:
            return
        try:
            self.on_event(PipelineEvent(stage=stage, message=message, data=data))
        except Exception:  # noqa: BLE001
            self.log.exception("Progress observer failed at %s", stage.value)


class DeckGenerationPipeline:
    """Compose gate, ledger, chunker, orchestrator, validator and repository.

    Example:
        pipeline = DeckGenerationPipeline(
            gate=AdmissionGate(),
            ledger=Ledger(InMemoryCreditStore({1: 10})),
            extractor=PyMuPDFExtractor(),
            client=GenerationClient(),
            repository=InMemoryDeckRepository(),
        )
        result = await pipeline.generate(
            user_id=1, pdf_bytes=data, filename="notes.pdf", density=Density.LOW
        )
    """

    def __init__(
        self,
        *,
        gate: AdmissionGate,
        ledger: Ledger,
        extractor: TextExtractor,
        client: GenerationClient,
        repository: DeckRepository,
        billing_mode: Optional[str] = None,
        max_pdf_pages: Optional[int] = None,
        max_text_length: Optional[int] = None,
        max_chunks: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.gate = gate
        self.ledger = ledger
        self.extractor = extractor
        self.client = client
        self.repository = repository
        self.billing_mode = billing_mode or settings.billing.mode
        self.max_pdf_pages = max_pdf_pages or settings.billing.max_pdf_pages
        self.max_text_length = max_text_length or settings.generation.max_text_length
        self.max_chunks = max_chunks or settings.generation.max_chunks
        self.max_concurrency = max_concurrency or settings.generation.max_concurrent_calls

    def _check_density(self, density: Density, plan: Optional[str]) -> None:
        if plan is None:
            return
        allowed = settings.billing.plan_densities.get(plan, ["low"])
        if density.value not in allowed:
            raise DensityNotAllowed(density.value, plan)

    def _cost(self, pdf_bytes: bytes) -> tuple[int, int]:
        """Return (pages, amount to reserve); runs before any ledger call."""
        pages = self.extractor.page_count(pdf_bytes)
        if pages > self.max_pdf_pages:
            raise InputTooLarge(f"PDF must have at most {self.max_pdf_pages} pages")
        if self.billing_mode == "quota":
            return pages, 1
        return pages, credits_for_pages(pages)

    async def generate(
        self,
        *,
        user_id: int,
        pdf_bytes: bytes,
        filename: str,
        density: Density,
        plan: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
    ) -> GenerateDeckResult:
        run = _Run(user_id, on_event)

        async with self.gate.slot(user_id):
            try:
                run.advance(PipelineStage.SLOT_ACQUIRED, "Generation slot acquired")
                self._check_density(density, plan)
                pages, amount = self._cost(pdf_bytes)

                reserved = await self.ledger.try_reserve(user_id, amount)
                if not reserved.granted or reserved.reservation is None:
                    available = await self.ledger.balance(user_id)
                    raise InsufficientCredits(
                        amount,
                        available,
                        f"This generation requires {amount} {self.ledger.unit} "
                        f"({pages} page{'s' if pages != 1 else ''}, density: {density.value}). "
                        f"You have {available} {self.ledger.unit}.",
                    )
                reservation = reserved.reservation
                run.advance(
                    PipelineStage.CREDITS_RESERVED,
                    f"Reserved {amount} {self.ledger.unit}",
                    amount=amount,
                    pages=pages,
                )

                try:
                    result = await self._generate_reserved(
                        run, user_id, pdf_bytes, filename, density
                    )
                except BaseException as e:
                    await reservation.revert()
                    run.advance(
                        PipelineStage.ABORTED,
                        f"Aborted after reservation; refunded {amount} {self.ledger.unit}",
                        error=type(e).__name__,
                    )
                    if isinstance(e, DeckforgeError):
                        run.log.warning("Generation aborted: %s", e.user_message)
                    else:
                        run.log.exception("Generation aborted by unexpected error")
                    raise

                reservation.finalize()
                run.advance(
                    PipelineStage.DONE,
                    f"Deck {result.deck.id} created with {len(result.cards)} cards",
                    deck_id=result.deck.id,
                )
                return result
            except BaseException:
                if run.stage not in (PipelineStage.ABORTED, PipelineStage.DONE):
                    run.advance(PipelineStage.ABORTED, "Aborted before reservation")
                raise

    async def _generate_reserved(
        self,
        run: _Run,
        user_id: int,
        pdf_bytes: bytes,
        filename: str,
        density: Density,
    ) -> GenerateDeckResult:
        run.advance(PipelineStage.EXTRACTING, "Extracting text")
        text = self.extractor.extract(pdf_bytes).strip()
        if len(text) > self.max_text_length:
            run.log.warning(
                "Text truncated from %d to %d characters", len(text), self.max_text_length
            )
            text = text[: self.max_text_length]
        validate_pdf_text(text)

        run.advance(PipelineStage.CHUNKING, "Chunking text", characters=len(text))
        plan = plan_chunks(len(text), max_concurrency=self.max_concurrency)
        all_chunks = chunk_text(text, plan.chunk_size)
        chunks = cap_chunks(all_chunks, self.max_chunks)
        if len(chunks) < len(all_chunks):
            run.log.warning(
                "Discarding %d chunks over the limit of %d",
                len(all_chunks) - len(chunks),
                self.max_chunks,
            )
        target = DENSITY_TARGETS[density]
        per_chunk = cards_per_chunk(target, len(chunks))
        run.log.info(
            "PDF: %.1fk characters | %d chunks (%d chars/chunk) | target %d cards | "
            "%d cards/chunk | concurrency %d",
            len(text) / 1000,
            len(chunks),
            plan.chunk_size,
            target,
            per_chunk,
            plan.concurrency,
        )

        run.advance(
            PipelineStage.GENERATING,
            f"Generating flashcards from {len(chunks)} chunks",
            chunks=len(chunks),
            concurrency=plan.concurrency,
        )
        orchestrator = ChunkOrchestrator(self.client, logger=run.log)
        raw_cards = await orchestrator.run_all(
            chunks,
            plan.concurrency,
            per_chunk,
            density,
            on_batch=lambda done, total: run.advance(
                PipelineStage.GENERATING,
                f"{done}/{total} chunks processed",
                done=done,
                total=total,
            ),
        )

        run.advance(PipelineStage.VALIDATING, "Validating and deduplicating cards")
        validated = validate_cards(raw_cards)
        unique = dedupe_cards(validated)
        final = unique[: final_card_cap(density)]
        if not final:
            raise NoCardsGenerated()

        meta = DeckMetadata(
            chunks=len(chunks),
            model=self.client.model_name,
            total_generated=len(raw_cards),
            after_deduplication=len(unique),
            final_count=len(final),
            density_target=target,
            language=self.client.language,
        )

        run.advance(PipelineStage.PERSISTING, "Saving deck", final_count=len(final))
        try:
            deck = await self.repository.create_deck(
                user_id,
                deck_name_from_filename(filename),
                final,
                density,
                meta,
                pdf_file_name=filename,
            )
        except DeckforgeError:
            raise
        except Exception as e:  # noqa: BLE001
            raise PersistenceFailure() from e

        return GenerateDeckResult(deck=deck, cards=final, meta=meta)
