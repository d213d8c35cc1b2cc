"""Everything the review panel needs from one detection pass, in one call.

analyze_candidates() is pure so the review workflow can run it in the
detection worker's background context alongside detection itself.
"""

from typing import Any, Mapping, Sequence

from pydantic import BaseModel, Field

from loresuggest.config import LoreSuggestConfig
from loresuggest.models import (
    AiExtractionResult,
    CandidateEntity,
    ContentBlock,
    InferredRelationship,
    ProximitySuggestion,
    RecordSummary,
)
from loresuggest.pipeline.ai_merge import infer_relationships, merge_candidates
from loresuggest.pipeline.matcher import match_candidates
from loresuggest.pipeline.proximity import suggest_proximity


class CandidateAnalysis(BaseModel):
    """Merged candidates with their record matches and relationship hints."""

    model_config = {"frozen": True}

    candidates: tuple[CandidateEntity, ...] = ()
    matches: dict[str, list[str]] = Field(default_factory=dict)
    proximity: tuple[ProximitySuggestion, ...] = ()
    relationships: tuple[InferredRelationship, ...] = ()


def block_content_map(content: str | Sequence[ContentBlock | Mapping[str, Any]]) -> dict[str | None, str]:
    """Block id -> text, with plain text under the None block."""
    if isinstance(content, str):
        return {None: content}
    blocks = [b if isinstance(b, ContentBlock) else ContentBlock.model_validate(b) for b in content]
    return {block.id: block.content for block in blocks}


def analyze_candidates(
    candidates: Sequence[CandidateEntity],
    content: str | Sequence[ContentBlock | Mapping[str, Any]],
    records: Sequence[RecordSummary],
    ai_result: AiExtractionResult | None = None,
    config: LoreSuggestConfig | None = None,
) -> CandidateAnalysis:
    config = config or LoreSuggestConfig()
    merged = list(candidates)
    relationships: list[InferredRelationship] = []
    if ai_result is not None:
        merged = merge_candidates(
            candidates,
            ai_result.entities,
            high=config.ai.high_score,
            medium=config.ai.medium_score,
        )
        relationships = infer_relationships(
            merged,
            ai_result.relationships,
            high=config.ai.high_score,
            medium=config.ai.medium_score,
        )
    return CandidateAnalysis(
        candidates=tuple(merged),
        matches=match_candidates(merged, records, config.matcher),
        proximity=tuple(suggest_proximity(merged, block_content_map(content), config.proximity)),
        relationships=tuple(relationships),
    )
