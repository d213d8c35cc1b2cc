"""Value types shared by the detection pipeline, worker and review workflow.

Everything here is a pydantic model. Values that cross the worker message
boundary (mentions, candidates, requests, responses, proximity suggestions)
serialize with camelCase aliases so the JSON matches the client contract, but
can be constructed with either snake_case or camelCase field names.
"""

from enum import Enum
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class EntityKind(str, Enum):
    """Kind of a candidate entity.

    The review layer maps these onto the record store's richer record types
    (see ReviewConfig.record_types).
    """

    PERSON = "person"
    PLACE = "place"
    QUEST = "quest"

    @property
    def sort_priority(self) -> int:
        """Lower sorts first: quest, then person, then place."""
        return _KIND_PRIORITY[self]


_KIND_PRIORITY = {EntityKind.QUEST: 0, EntityKind.PERSON: 1, EntityKind.PLACE: 2}


class Confidence(str, Enum):
    """Ordinal quality tier. Not a calibrated probability."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def at_least(self, other: "Confidence") -> bool:
        return self.rank >= other.rank

    @classmethod
    def strongest(cls, *tiers: "Confidence") -> "Confidence":
        return max(tiers, key=lambda tier: tier.rank)

    @classmethod
    def from_score(cls, score: float, high: float = 0.8, medium: float = 0.6) -> "Confidence":
        """Bucket a 0-1 score into a tier."""
        if score >= high:
            return cls.HIGH
        if score >= medium:
            return cls.MEDIUM
        return cls.LOW


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}

SOURCE_HEURISTIC = "heuristic"
SOURCE_AI = "ai"


class ContentBlock(BaseModel):
    """One block of a block-structured session note."""

    model_config = {"frozen": True}

    id: str = Field(description="Block identifier, unique within a note.")
    content: str = Field(description="Plain text of the block.")


class EntityMention(BaseModel):
    """One occurrence of a candidate in the source text.

    Offsets are relative to the block named by block_id, or to the whole
    string when detection ran on plain text (block_id is None).
    """

    model_config = _WIRE_CONFIG

    block_id: str | None = Field(default=None, description="Block the mention was found in.")
    start_offset: int = Field(ge=0, description="Start character offset within the block.")
    end_offset: int = Field(ge=0, description="End character offset (exclusive) within the block.")
    surface_text: str = Field(description="Exact text of the mention.")

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "EntityMention":
        if self.end_offset < self.start_offset:
            raise ValueError("end_offset must not precede start_offset")
        return self


class CandidateEntity(BaseModel):
    """A detected mention cluster proposed as a potential record."""

    model_config = _WIRE_CONFIG

    id: str = Field(description="Deterministic id derived from kind and normalized key.")
    kind: EntityKind
    display_text: str = Field(description="Most frequent surface form.")
    normalized_key: str = Field(description="Lower-cased, whitespace-collapsed identity key.")
    confidence: Confidence
    mentions: tuple[EntityMention, ...] = Field(min_length=1)
    frequency: int = Field(ge=1, description="Consolidated mention count.")
    sources: tuple[str, ...] = Field(
        default=(SOURCE_HEURISTIC,),
        description="Detectors that proposed this candidate, sorted.",
    )

    @model_validator(mode="after")
    def _frequency_matches_mentions(self) -> "CandidateEntity":
        if self.frequency != len(self.mentions):
            raise ValueError(
                f"frequency {self.frequency} does not match {len(self.mentions)} mentions"
            )
        return self

    @property
    def has_heuristic_mentions(self) -> bool:
        return SOURCE_HEURISTIC in self.sources


class ProximitySuggestion(BaseModel):
    """Hypothesis that two candidates are related because they co-occur closely."""

    model_config = _WIRE_CONFIG

    anchor_entity_id: str
    related_entity_id: str
    distance: int = Field(ge=0, description="Character gap between the closest mention pair.")
    confidence: Confidence
    context_excerpt: str
    block_id: str | None = None

    def reversed(self) -> "ProximitySuggestion":
        return self.model_copy(
            update={
                "anchor_entity_id": self.related_entity_id,
                "related_entity_id": self.anchor_entity_id,
            }
        )


class RecordSummary(BaseModel):
    """The slice of an existing record the matcher needs."""

    model_config = {"frozen": True}

    id: str
    title: str
    record_type: str = ""


class RecordMatch(BaseModel):
    """Association between a candidate and pre-existing records, best first."""

    model_config = {"frozen": True}

    candidate_id: str
    matched_record_ids: tuple[str, ...] = Field(min_length=1)


class NewRecord(BaseModel):
    """Payload for the record-store collaborator's create call."""

    model_config = {"frozen": True}

    title: str
    record_type: str
    linked_record_ids: tuple[str, ...] = ()


class Backlink(BaseModel):
    """Payload for the record-store collaborator's backlink call."""

    model_config = {"frozen": True}

    source_id: str
    target_id: str
    excerpt: str


class AiEntity(BaseModel):
    """Entity as reported by the AI extraction collaborator."""

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    type: str
    confidence: float = Field(ge=0.0, le=1.0)
    mentions: int = Field(default=1, ge=0)
    context: str | None = None


class AiRelationship(BaseModel):
    """Relationship inferred by the AI extraction collaborator."""

    model_config = {"frozen": True}

    entity1: str
    entity2: str
    relationship: str
    confidence: float = Field(ge=0.0, le=1.0)


class AiExtractionResult(BaseModel):
    model_config = {"frozen": True}

    entities: tuple[AiEntity, ...] = ()
    relationships: tuple[AiRelationship, ...] = ()


class InferredRelationship(BaseModel):
    """An AI relationship resolved onto candidate ids."""

    model_config = {"frozen": True}

    anchor_entity_id: str
    related_entity_id: str
    relationship: str
    confidence: Confidence


class DetectionRequest(BaseModel):
    """Message sent to the detection worker."""

    model_config = _WIRE_CONFIG

    id: str
    content: str | list[ContentBlock]
    min_confidence: Confidence = Confidence.LOW


class DetectionResponse(BaseModel):
    """Message returned by the detection worker.

    On failure entities is empty and error carries the detector's message.
    """

    model_config = _WIRE_CONFIG

    id: str
    entities: list[CandidateEntity] = Field(default_factory=list)
    error: str | None = None


def sort_candidates(candidates: Sequence[CandidateEntity]) -> list[CandidateEntity]:
    """Frequency desc, then kind priority, then confidence, then key."""
    return sorted(
        candidates,
        key=lambda c: (-c.frequency, c.kind.sort_priority, -c.confidence.rank, c.normalized_key),
    )
