"""Error taxonomy for deck generation.

Every error carries a ``user_message`` that is safe to show to the person who
uploaded the PDF. The API layer maps classes to HTTP status codes; nothing
below it knows about HTTP.
"""

from __future__ import annotations

from typing import Optional, Sequence


class DeckforgeError(Exception):
    default_message = "Deck generation failed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


# Input ---------------------------------------------------------------------


class InputTooShort(DeckforgeError):
    default_message = (
        "Scanned PDF or not enough text. Minimum: 800 characters of readable text."
    )


class InputUnreadable(DeckforgeError):
    default_message = "The PDF has too little readable text. It may be a scanned PDF."


class InputTooLarge(DeckforgeError):
    default_message = "The PDF is too large."


# Admission -----------------------------------------------------------------


class SlotBusy(DeckforgeError):
    default_message = (
        "You already have a PDF generation in progress. "
        "Wait for it to complete before starting a new one."
    )


class InsufficientCredits(DeckforgeError):
    def __init__(self, required: int, available: int, message: Optional[str] = None) -> None:
        self.required = required
        self.available = available
        super().__init__(
            message
            or f"This generation requires {required} credits. You have {available}."
        )


class DensityNotAllowed(DeckforgeError):
    def __init__(self, density: str, plan: str) -> None:
        self.density = density
        self.plan = plan
        super().__init__(f"Density '{density}' is not available on the '{plan}' plan.")


class ReservationAlreadySettled(RuntimeError):
    """A credit reservation was finalized or reverted twice."""


# Generation ----------------------------------------------------------------


class GenerationError(DeckforgeError):
    """Failure of a single model call for one chunk."""

    default_message = "Flashcard generation failed for part of the document."
    provider_classified = False


class MalformedResponse(GenerationError):
    default_message = "Could not recover any flashcards from the model response."


class InvalidCredentials(GenerationError):
    default_message = (
        "Invalid API key. Check that you copied it correctly from "
        "https://aistudio.google.com/app/apikey"
    )
    provider_classified = True


class QuotaExceeded(GenerationError):
    default_message = (
        "API usage limit reached. Wait a few minutes or check your quota at Google AI Studio."
    )
    provider_classified = True


class PermissionDenied(GenerationError):
    default_message = (
        "Permission denied. Check that the API key has access to the Gemini API."
    )
    provider_classified = True


class UnknownProviderError(GenerationError):
    default_message = "Unknown error generating flashcards."


class GenerationTimeout(GenerationError):
    default_message = "The model did not answer in time."


class NoCardsGenerated(DeckforgeError):
    default_message = "Failed to generate any flashcards. Check your API key."

    def __init__(self, chunk_errors: Sequence[BaseException] = ()) -> None:
        self.chunk_errors = list(chunk_errors)
        self.provider_error: Optional[GenerationError] = next(
            (
                e
                for e in self.chunk_errors
                if isinstance(e, GenerationError) and e.provider_classified
            ),
            None,
        )
        super().__init__(
            self.provider_error.user_message if self.provider_error else None
        )


# Persistence ---------------------------------------------------------------


class PersistenceFailure(DeckforgeError):
    default_message = "Could not save the generated deck."


class DeckNotFound(DeckforgeError):
    default_message = "Deck not found"


class InvalidDeckName(DeckforgeError):
    default_message = "Deck name cannot be empty"
