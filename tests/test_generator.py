"""
Unit tests for response parsing, provider error classification and the
per-chunk generation client
"""
import asyncio

import pytest

from deckforge.core.errors import (
    GenerationTimeout,
    InvalidCredentials,
    MalformedResponse,
    PermissionDenied,
    QuotaExceeded,
    UnknownProviderError,
)
from deckforge.modules.decks.generator import (
    Malformed,
    ParsedCards,
    build_prompt,
    classify_provider_error,
    clean_string,
    parse_cards,
)
from deckforge.modules.decks.models import Density
from tests.fakes import FakeHTTPError, ScriptedComplete, cards_json, make_client


class TestParseCards:
    def test_plain_json(self):
        result = parse_cards(cards_json("Cell", 3))
        assert isinstance(result, ParsedCards)
        assert result.strategy == "direct"
        assert [c.front for c in result.cards] == [
            "Cell question 0?",
            "Cell question 1?",
            "Cell question 2?",
        ]
        assert result.cards[0].tags == ["cell"]

    def test_code_fences_and_chatter(self):
        raw = "Here you go:\n```json\n" + cards_json("Cell", 2) + "\n```\nEnjoy!"
        result = parse_cards(raw)
        assert isinstance(result, ParsedCards)
        assert result.strategy == "direct"
        assert len(result.cards) == 2

    def test_trailing_commas_are_repaired(self):
        raw = '{"cards": [{"front": "What is ATP?", "back": "Energy.", "tags": ["bio",],},]}'
        result = parse_cards(raw)
        assert isinstance(result, ParsedCards)
        assert result.strategy == "largest_object"
        assert result.cards[0].front == "What is ATP?"
        assert result.cards[0].tags == ["bio"]

    def test_truncated_response_recovers_complete_cards(self):
        raw = (
            '{"cards": [{"front": "Q1?", "back": "A1.", "tags": ["t1", "t2"]}, '
            '{"front": "Q2?", "back": "A2."}, {"front": "Q3?", "ba'
        )
        result = parse_cards(raw)
        assert isinstance(result, ParsedCards)
        assert result.strategy == "regex_recovery"
        assert [(c.front, c.back) for c in result.cards] == [("Q1?", "A1."), ("Q2?", "A2.")]
        assert result.cards[0].tags == ["t1", "t2"]
        assert result.cards[1].tags == []

    def test_empty_card_list_is_not_malformed(self):
        result = parse_cards('{"cards": []}')
        assert isinstance(result, ParsedCards)
        assert result.cards == []

    def test_garbage_is_malformed(self):
        result = parse_cards("I cannot help with that.")
        assert isinstance(result, Malformed)
        assert result.snippet == "I cannot help with that."

    def test_object_without_cards_is_malformed(self):
        assert isinstance(parse_cards('{"flashcards": []}'), Malformed)

    def test_items_missing_fields_are_skipped(self):
        raw = '{"cards": [{"front": "Q?"}, "junk", {"front": "Kept?", "back": "Yes."}]}'
        result = parse_cards(raw)
        assert [c.front for c in result.cards] == ["Kept?"]

    def test_clean_string(self):
        assert clean_string('Say \\"hi\\"\n\n  now ') == 'Say "hi" now'


class TestBuildPrompt:
    def test_prompt_carries_text_and_target(self):
        prompt = build_prompt("Mitochondria make ATP.", Density.MEDIUM, 12)
        assert "Mitochondria make ATP." in prompt
        assert "approximately 12 flashcards" in prompt
        assert "Density: medium" in prompt

    def test_prompt_defaults_to_deck_language(self):
        prompt = build_prompt("Mitochondria make ATP.", Density.LOW, 5)
        assert "Write every card in pt-BR" in prompt

    def test_prompt_uses_given_language(self):
        prompt = build_prompt("Mitochondria make ATP.", Density.LOW, 5, language="en-US")
        assert "Write every card in en-US" in prompt
        assert "pt-BR" not in prompt


class TestClassifyProviderError:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (FakeHTTPError("API key not valid. Please pass a valid API key."), InvalidCredentials),
            (FakeHTTPError("reason: API_KEY_INVALID"), InvalidCredentials),
            (FakeHTTPError("bad request", status_code=400), InvalidCredentials),
            (FakeHTTPError("You exceeded your current quota"), QuotaExceeded),
            (FakeHTTPError("RESOURCE_EXHAUSTED"), QuotaExceeded),
            (FakeHTTPError("slow down", status_code=429), QuotaExceeded),
            (FakeHTTPError("forbidden", status_code=403), PermissionDenied),
            (FakeHTTPError("boom", status_code=500), UnknownProviderError),
            (RuntimeError("connection reset"), UnknownProviderError),
        ],
    )
    def test_classification(self, error, expected):
        classified = classify_provider_error(error)
        assert type(classified) is expected

    def test_only_named_provider_failures_are_classified(self):
        assert classify_provider_error(FakeHTTPError(status_code=429)).provider_classified
        assert not classify_provider_error(RuntimeError("x")).provider_classified

    def test_unknown_error_keeps_message(self):
        classified = classify_provider_error(RuntimeError("connection reset"))
        assert "connection reset" in classified.user_message


class TestGenerationClient:
    def test_returns_parsed_cards(self):
        complete = ScriptedComplete(default=cards_json("Cell", 4))
        client = make_client(complete)

        cards = asyncio.run(client.generate("Some text.", Density.LOW, 4))

        assert len(cards) == 4
        assert len(complete.prompts) == 1
        assert "Some text." in complete.prompts[0]

    def test_client_language_reaches_prompt(self):
        complete = ScriptedComplete(default=cards_json("Cell", 4))
        client = make_client(complete, language="en-US")

        asyncio.run(client.generate("Some text.", Density.LOW, 4))

        assert client.language == "en-US"
        assert "Write every card in en-US" in complete.prompts[0]

    def test_malformed_response_is_retried(self):
        complete = ScriptedComplete(default=["nope", "still nope", cards_json("Cell", 2)])
        client = make_client(complete, malformed_retries=2)

        cards = asyncio.run(client.generate("Some text.", Density.LOW, 2))

        assert len(cards) == 2
        assert len(complete.prompts) == 3

    def test_gives_up_after_retries(self):
        complete = ScriptedComplete(default=["nope", "nope", "nope", cards_json("Cell", 2)])
        client = make_client(complete, malformed_retries=2)

        with pytest.raises(MalformedResponse):
            asyncio.run(client.generate("Some text.", Density.LOW, 2))
        assert len(complete.prompts) == 3

    def test_provider_errors_are_not_retried(self):
        complete = ScriptedComplete(default=FakeHTTPError("quota", status_code=429))
        client = make_client(complete, malformed_retries=2)

        with pytest.raises(QuotaExceeded):
            asyncio.run(client.generate("Some text.", Density.LOW, 2))
        assert len(complete.prompts) == 1

    def test_timeout(self):
        async def hang(prompt):
            await asyncio.sleep(5)
            return cards_json("Cell", 1)

        client = make_client(hang, timeout=0.01)
        with pytest.raises(GenerationTimeout):
            asyncio.run(client.generate("Some text.", Density.LOW, 1))
