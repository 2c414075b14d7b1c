"""Decks module exports."""

from .models import (
    DENSITY_TARGETS,
    CandidateCard,
    Chunk,
    DeckMetadata,
    DeckRecord,
    Density,
    GenerateDeckResult,
    ValidatedCard,
)
from .generator import GenerationClient
from .pipeline import DeckGenerationPipeline, PipelineEvent, PipelineStage

__all__ = [
    "DENSITY_TARGETS",
    "CandidateCard",
    "Chunk",
    "DeckMetadata",
    "DeckRecord",
    "Density",
    "GenerateDeckResult",
    "ValidatedCard",
    "GenerationClient",
    "DeckGenerationPipeline",
    "PipelineEvent",
    "PipelineStage",
]
