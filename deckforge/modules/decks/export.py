"""Anki package (.apkg) export with genanki."""

from __future__ import annotations

import hashlib
import os
import re
import tempfile

import genanki

from deckforge.modules.decks.models import DeckRecord


def _stable_id(*parts: object) -> int:
    digest = hashlib.sha1("|".join(str(p) for p in parts).encode("utf-8")).hexdigest()
    return int(digest, 16) % (1 << 31)


_BASIC_MODEL = genanki.Model(
    _stable_id("deckforge", "basic"),
    "Basic (deckforge)",
    fields=[{"name": "Front"}, {"name": "Back"}],
    templates=[
        {
            "name": "Card 1",
            "qfmt": "{{Front}}",
            "afmt": '{{FrontSide}}<hr id="answer">{{Back}}',
        }
    ],
)


def _anki_tag(tag: str) -> str:
    # Anki tags cannot contain spaces
    return re.sub(r"\s+", "_", tag.strip())


def export_filename(deck: DeckRecord) -> str:
    return f"{re.sub(r'[^A-Za-z0-9_-]+', '_', deck.name).strip('_') or 'deck'}.apkg"


def export_apkg(deck: DeckRecord) -> bytes:
    anki_deck = genanki.Deck(_stable_id("deck", deck.owner_id, deck.id), deck.name)
    for card in deck.cards:
        anki_deck.add_note(
            genanki.Note(
                model=_BASIC_MODEL,
                fields=[card.front, card.back],
                tags=[t for t in (_anki_tag(t) for t in card.tags) if t],
            )
        )

    fd, temp_path = tempfile.mkstemp(suffix=".apkg")
    os.close(fd)
    try:
        genanki.Package(anki_deck).write_to_file(temp_path)
        with open(temp_path, "rb") as fh:
            return fh.read()
    finally:
        os.remove(temp_path)
