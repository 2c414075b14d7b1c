"""Sanity checks for extracted text and for model-produced cards."""

from __future__ import annotations

import re
from typing import Iterable

from deckforge.core.errors import InputTooShort, InputUnreadable
from deckforge.modules.decks.models import CandidateCard, ValidatedCard

MIN_TEXT_LENGTH = 800
MIN_ALNUM_RATIO = 0.5
MAX_FRONT_LENGTH = 150
MAX_BACK_LENGTH = 400

_ALNUM = re.compile(r"[a-zA-Z0-9]")


def validate_pdf_text(text: str) -> None:
    """Raise if the extracted text is too short or mostly unreadable."""
    clean = text.strip()
    if len(clean) < MIN_TEXT_LENGTH:
        raise InputTooShort()
    ratio = len(_ALNUM.findall(clean)) / len(clean)
    if ratio < MIN_ALNUM_RATIO:
        raise InputUnreadable()


def validate_cards(cards: Iterable[CandidateCard | ValidatedCard]) -> list[ValidatedCard]:
    out: list[ValidatedCard] = []
    for card in cards:
        front = (card.front or "").strip()
        back = (card.back or "").strip()
        if not front or not back:
            continue
        if len(front) > MAX_FRONT_LENGTH or len(back) > MAX_BACK_LENGTH:
            continue
        tags = [t.strip() for t in card.tags or [] if t and t.strip()]
        out.append(ValidatedCard(front=front, back=back, tags=tags))
    return out


def dedupe_cards(cards: Iterable[ValidatedCard]) -> list[ValidatedCard]:
    """Keep the first card per case-insensitive front, preserving order."""
    seen: set[str] = set()
    unique: list[ValidatedCard] = []
    for card in cards:
        key = card.front.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(card)
    return unique
