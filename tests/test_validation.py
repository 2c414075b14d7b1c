"""
Unit tests for extracted-text checks, card validation and deduplication
"""
import pytest

from deckforge.core.errors import InputTooShort, InputUnreadable
from deckforge.modules.decks.models import CandidateCard, ValidatedCard
from deckforge.modules.decks.validation import (
    MAX_BACK_LENGTH,
    MAX_FRONT_LENGTH,
    dedupe_cards,
    validate_cards,
    validate_pdf_text,
)


class TestValidatePdfText:
    def test_accepts_readable_text(self):
        validate_pdf_text("Photosynthesis converts light into chemical energy. " * 20)

    def test_rejects_short_text(self):
        with pytest.raises(InputTooShort):
            validate_pdf_text("Too short to be useful. " * 10)

    def test_rejects_mostly_symbols(self):
        with pytest.raises(InputUnreadable):
            validate_pdf_text("ab #$%^&*()_+ ~~ ||| " * 60)

    def test_ratio_is_measured_on_trimmed_text(self):
        with pytest.raises(InputTooShort):
            validate_pdf_text(" " * 2000 + "word")


class TestValidateCards:
    def test_trims_fields_and_tags(self):
        cards = validate_cards(
            [CandidateCard(front="  What is ATP? ", back=" Energy currency. ", tags=[" bio ", " ", ""])]
        )
        assert cards == [ValidatedCard(front="What is ATP?", back="Energy currency.", tags=["bio"])]

    def test_drops_blank_fields(self):
        cards = validate_cards(
            [
                CandidateCard(front="   ", back="Answer"),
                CandidateCard(front="Question?", back="\n\t"),
                CandidateCard(front="Kept?", back="Yes."),
            ]
        )
        assert [c.front for c in cards] == ["Kept?"]

    def test_length_limits_are_inclusive(self):
        at_limit = CandidateCard(front="q" * MAX_FRONT_LENGTH, back="a" * MAX_BACK_LENGTH)
        long_front = CandidateCard(front="q" * (MAX_FRONT_LENGTH + 1), back="a")
        long_back = CandidateCard(front="q", back="a" * (MAX_BACK_LENGTH + 1))

        cards = validate_cards([at_limit, long_front, long_back])
        assert len(cards) == 1
        assert len(cards[0].front) == MAX_FRONT_LENGTH

    def test_preserves_order(self):
        cards = validate_cards([CandidateCard(front=f"Q{i}?", back="A") for i in range(5)])
        assert [c.front for c in cards] == ["Q0?", "Q1?", "Q2?", "Q3?", "Q4?"]


class TestDedupeCards:
    def test_first_occurrence_wins_case_insensitive(self):
        cards = [
            ValidatedCard(front="What is X?", back="first"),
            ValidatedCard(front="Other?", back="other"),
            ValidatedCard(front="what is x?", back="second"),
            ValidatedCard(front="WHAT IS X?", back="third"),
        ]
        unique = dedupe_cards(cards)
        assert [(c.front, c.back) for c in unique] == [("What is X?", "first"), ("Other?", "other")]

    def test_is_idempotent(self):
        cards = [ValidatedCard(front=f"Q{i % 3}?", back=str(i)) for i in range(9)]
        once = dedupe_cards(cards)
        assert dedupe_cards(once) == once
        assert len(once) == 3
