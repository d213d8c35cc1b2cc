"""Shared fixtures for the loresuggest test suite.

This module provides:
- In-memory collaborators (key-value store, record store)
- A fixed clock so session dates and retention sweeps are deterministic
- Fake AI extractors that return a canned result or raise
- A factory for hand-built candidates with explicit mention offsets
"""

from datetime import datetime, timezone
from typing import Callable, Sequence

import pytest

from loresuggest.ai import AiExtractorInterface
from loresuggest.models import (
    AiEntity,
    AiExtractionResult,
    AiRelationship,
    CandidateEntity,
    Confidence,
    EntityKind,
    EntityMention,
    RecordSummary,
)
from loresuggest.pipeline.normalize import candidate_id, normalize_key
from loresuggest.storage.memory import InMemoryKeyValueStore, InMemoryRecordStore

EXAMPLE_TEXT = "Lord Blackwood entered the Silverwood Forest. They must find the artifact."

FIXED_NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


class FakeAiExtractor(AiExtractorInterface):
    """Returns a canned result and records what it was asked."""

    def __init__(self, result: AiExtractionResult):
        self.result = result
        self.calls: list[tuple[str, str, int]] = []

    async def extract(
        self,
        team_id: str,
        content: str,
        records: Sequence[RecordSummary] = (),
    ) -> AiExtractionResult:
        self.calls.append((team_id, content, len(records)))
        return self.result


class FailingAiExtractor(AiExtractorInterface):
    """Raises the given error on every call."""

    def __init__(self, error: Exception):
        self.error = error

    async def extract(
        self,
        team_id: str,
        content: str,
        records: Sequence[RecordSummary] = (),
    ) -> AiExtractionResult:
        raise self.error


@pytest.fixture
def example_text() -> str:
    return EXAMPLE_TEXT


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def ai_result() -> AiExtractionResult:
    return AiExtractionResult(
        entities=(
            AiEntity(name="Lord Blackwood", type="npc", confidence=0.9, mentions=1),
            AiEntity(name="Silver Crown", type="item", confidence=0.65, mentions=2),
        ),
        relationships=(
            AiRelationship(
                entity1="Lord Blackwood",
                entity2="Silverwood Forest",
                relationship="rules",
                confidence=0.85,
            ),
        ),
    )


@pytest.fixture
def make_candidate() -> Callable[..., CandidateEntity]:
    """Build a candidate from (start, end) spans, optionally per block.

    spans entries are (start, end) or (block_id, start, end).
    """

    def _make(
        text: str,
        kind: EntityKind = EntityKind.PERSON,
        confidence: Confidence = Confidence.HIGH,
        spans: Sequence[tuple] = ((0, None),),
        sources: tuple[str, ...] = ("heuristic",),
    ) -> CandidateEntity:
        mentions = []
        for span in spans:
            block_id, start, end = span if len(span) == 3 else (None, *span)
            if end is None:
                end = start + len(text)
            mentions.append(
                EntityMention(block_id=block_id, start_offset=start, end_offset=end, surface_text=text)
            )
        key = normalize_key(text)
        return CandidateEntity(
            id=candidate_id(kind, key),
            kind=kind,
            display_text=text,
            normalized_key=key,
            confidence=confidence,
            mentions=tuple(mentions),
            frequency=len(mentions),
            sources=sources,
        )

    return _make


@pytest.fixture
def fake_ai_extractor(ai_result) -> FakeAiExtractor:
    return FakeAiExtractor(ai_result)


@pytest.fixture
def failing_ai_extractor() -> Callable[[Exception], FailingAiExtractor]:
    """Factory: failing_ai_extractor(AiUnavailableError("...")) raises that on every call."""
    return FailingAiExtractor
