"""Maps the generation error taxonomy to HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from deckforge.core.errors import (
    DeckforgeError,
    DeckNotFound,
    DensityNotAllowed,
    InputTooLarge,
    InputTooShort,
    InputUnreadable,
    InsufficientCredits,
    InvalidCredentials,
    InvalidDeckName,
    NoCardsGenerated,
    PermissionDenied,
    PersistenceFailure,
    QuotaExceeded,
    SlotBusy,
)

# Order matters: first isinstance match wins
STATUS_BY_ERROR: tuple[tuple[type[DeckforgeError], int], ...] = (
    (SlotBusy, status.HTTP_409_CONFLICT),
    (InsufficientCredits, status.HTTP_402_PAYMENT_REQUIRED),
    (DensityNotAllowed, status.HTTP_403_FORBIDDEN),
    (InputTooShort, status.HTTP_400_BAD_REQUEST),
    (InputUnreadable, status.HTTP_400_BAD_REQUEST),
    (InputTooLarge, status.HTTP_400_BAD_REQUEST),
    (InvalidDeckName, status.HTTP_400_BAD_REQUEST),
    (DeckNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED),
    (QuotaExceeded, status.HTTP_429_TOO_MANY_REQUESTS),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (PersistenceFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(error: DeckforgeError) -> int:
    if isinstance(error, NoCardsGenerated):
        if error.provider_error is not None:
            return status_for(error.provider_error)
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    for cls, code in STATUS_BY_ERROR:
        if isinstance(error, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http(error: DeckforgeError) -> HTTPException:
    detail: dict = {"error": type(error).__name__, "message": error.user_message}
    if isinstance(error, InsufficientCredits):
        detail.update(required=error.required, available=error.available)
    return HTTPException(status_code=status_for(error), detail=detail)
