"""Flashcard generation for a single chunk using pydantic-ai and Gemini.

One ``GenerationClient.generate`` call sends one prompt, parses the answer and
returns candidate cards. Model output is parsed as plain text so that
malformed JSON can be recovered card by card instead of failing the chunk.
Imports for the LLM provider are kept lazy to avoid import-time errors when
credentials are missing.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from deckforge.core.config import settings
from deckforge.core.errors import (
    GenerationError,
    GenerationTimeout,
    InvalidCredentials,
    MalformedResponse,
    PermissionDenied,
    QuotaExceeded,
    UnknownProviderError,
)
from deckforge.core.logging import get_logger
from deckforge.modules.decks.models import CandidateCard, Density

logger = get_logger(__name__)

CompleteFn = Callable[[str], Awaitable[str]]


def _build_google_model(model_name: str, api_key: Optional[str]):
    """Build the Google Gemini model provider (lazy import)."""
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    provider = GoogleProvider(api_key=api_key)
    return GoogleModel(model_name, provider=provider)


SYSTEM_PROMPT = (
    "You are an expert at creating flashcards for Anki. "
    "Return ONLY a single JSON object, no markdown, no code fences, no extra text. "
    'Shape: {"cards": [{"front": "...", "back": "...", "tags": ["..."]}]}. '
    "Escape quotes inside strings, no line breaks inside strings, no trailing commas."
)


def build_prompt(
    text: str, density: Density, target_count: int, language: Optional[str] = None
) -> str:
    language = language or settings.generation.deck_language
    return (
        f"Generate approximately {target_count} flashcards "
        f"({target_count} ± 2 is acceptable) from the text below.\n"
        f"Write every card in {language}, whatever the language of the text.\n"
        f"Density: {density.value}.\n"
        "Rules:\n"
        "- One concept per card; quality over quantity.\n"
        "- Direct, specific questions (no 'Explain...' or 'Describe...').\n"
        "- Short answers (1-2 sentences).\n"
        "- front: max 120 characters; back: max 250 characters.\n"
        "- 2-4 short tags per card.\n\n"
        'TEXT TO ANALYZE:\n"""\n'
        f"{text}\n"
        '"""\n'
    )


def build_gemini_complete(
    model_name: Optional[str] = None, api_key: Optional[str] = None
) -> CompleteFn:
    """Return a ``complete(prompt) -> str`` backed by a plain-text Gemini agent.

    The agent is built on first use, so constructing a client never needs
    credentials.
    """
    agent = None

    async def complete(prompt: str) -> str:
        nonlocal agent
        if agent is None:
            from pydantic_ai import Agent
            from pydantic_ai.settings import ModelSettings

            model = _build_google_model(
                model_name or settings.generation.model_name,
                api_key or settings.generation.api_key,
            )
            agent = Agent(
                model=model,
                system_prompt=SYSTEM_PROMPT,
                model_settings=ModelSettings(
                    temperature=settings.generation.temperature,
                    max_tokens=settings.generation.max_output_tokens,
                ),
            )
        res = await agent.run(prompt)
        return res.output

    return complete


# Parsing -------------------------------------------------------------------


@dataclass
class ParsedCards:
    cards: list[CandidateCard]
    strategy: str


@dataclass
class Malformed:
    snippet: str


ParseResult = Union[ParsedCards, Malformed]

_FENCE = re.compile(r"```(?:json)?\s*")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_CARD_PATTERN = re.compile(
    r'\{\s*"front"\s*:\s*"([^"]+)"\s*,\s*"back"\s*:\s*"([^"]+)"'
    r'(?:\s*,\s*"tags"\s*:\s*\[((?:"[^"]*"\s*,?\s*)*)\])?\s*\}'
)
_TAG = re.compile(r'"([^"]+)"')


def clean_string(value: str) -> str:
    value = re.sub(r"\n+", " ", value)
    value = re.sub(r"\s+", " ", value)
    return value.replace('\\"', '"').strip()


def _to_cards(items: list[Any]) -> list[CandidateCard]:
    cards: list[CandidateCard] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        front = clean_string(str(item.get("front") or ""))
        back = clean_string(str(item.get("back") or ""))
        if not front or not back:
            continue
        raw_tags = item.get("tags")
        tags = [clean_string(str(t)) for t in raw_tags] if isinstance(raw_tags, list) else []
        cards.append(CandidateCard(front=front, back=back, tags=[t for t in tags if t]))
    return cards


def _loads_cards(text: str) -> Optional[list[CandidateCard]]:
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("cards"), list):
        return None
    return _to_cards(payload["cards"])


def _strip_fences(raw: str) -> str:
    return _FENCE.sub("", raw).strip()


def _direct(raw: str) -> Optional[list[CandidateCard]]:
    text = _strip_fences(raw)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads_cards(text[start : end + 1])


def _largest_object(raw: str) -> Optional[list[CandidateCard]]:
    match = re.search(r"\{[\s\S]*\}", _strip_fences(raw))
    if not match:
        return None
    text = _TRAILING_COMMA.sub(r"\1", match.group(0))
    text = text.replace("\\n", " ").replace("\n", " ")
    return _loads_cards(text)


def _regex_recovery(raw: str) -> Optional[list[CandidateCard]]:
    items = []
    for m in _CARD_PATTERN.finditer(raw):
        tags = _TAG.findall(m.group(3) or "")
        items.append({"front": m.group(1), "back": m.group(2), "tags": tags})
    cards = _to_cards(items)
    return cards or None


PARSE_STRATEGIES: tuple[tuple[str, Callable[[str], Optional[list[CandidateCard]]]], ...] = (
    ("direct", _direct),
    ("largest_object", _largest_object),
    ("regex_recovery", _regex_recovery),
)


def parse_cards(raw: str) -> ParseResult:
    """Try each strategy in order; the first that yields a card list wins."""
    for name, strategy in PARSE_STRATEGIES:
        cards = strategy(raw)
        if cards is not None:
            if name != "direct":
                logger.info("Recovered %d cards via %s", len(cards), name)
            return ParsedCards(cards=cards, strategy=name)
    return Malformed(snippet=raw[:500])


# Errors --------------------------------------------------------------------


def classify_provider_error(exc: BaseException) -> GenerationError:
    status = None
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            status = value
            break
    message = str(exc)

    if "API key not valid" in message or "API_KEY_INVALID" in message or status == 400:
        return InvalidCredentials()
    if "quota" in message or "RESOURCE_EXHAUSTED" in message or status == 429:
        return QuotaExceeded()
    if status == 403:
        return PermissionDenied()
    return UnknownProviderError(f"Gemini API error: {message}" if message else None)


# Client --------------------------------------------------------------------


class GenerationClient:
    """Wraps one model call per chunk with parsing and bounded retries."""

    def __init__(
        self,
        complete: Optional[CompleteFn] = None,
        *,
        model_name: Optional[str] = None,
        language: Optional[str] = None,
        timeout: Optional[float] = None,
        malformed_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ) -> None:
        gen = settings.generation
        self.model_name = model_name or gen.model_name
        self.language = language or gen.deck_language
        self._complete = complete or build_gemini_complete(self.model_name)
        self.timeout = gen.call_timeout_seconds if timeout is None else timeout
        self.malformed_retries = (
            gen.malformed_retries if malformed_retries is None else malformed_retries
        )
        self.retry_backoff = gen.retry_backoff_seconds if retry_backoff is None else retry_backoff

    async def _call(self, prompt: str) -> str:
        try:
            return await asyncio.wait_for(self._complete(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise GenerationTimeout() from e
        except GenerationError:
            raise
        except Exception as e:  # noqa: BLE001
            raise classify_provider_error(e) from e

    async def generate(
        self, chunk_text: str, density: Density, target_count: int
    ) -> list[CandidateCard]:
        prompt = build_prompt(chunk_text, density, target_count, self.language)
        attempts = 1 + max(0, self.malformed_retries)
        for attempt in range(1, attempts + 1):
            raw = await self._call(prompt)
            result = parse_cards(raw)
            if isinstance(result, ParsedCards):
                return result.cards
            logger.warning(
                "Malformed model response (attempt %d/%d): %r",
                attempt,
                attempts,
                result.snippet[:200],
            )
            if attempt < attempts:
                await asyncio.sleep(self.retry_backoff)
        raise MalformedResponse()
