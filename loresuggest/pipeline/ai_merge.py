"""Merge AI-extracted entities into the heuristic candidate set.

The AI collaborator reports free-form kinds, a 0-1 score and a mention count
instead of offsets. Those entities are normalized into CandidateEntity first
and then merged by normalized key:

- key found by both sources: heuristic mentions, kind and id are kept (the
  offsets drive text highlighting); confidence becomes the stronger tier.
- key found only by the AI: admitted with one synthesized mention at offset 0.

The merge is idempotent and commutative on (key set, confidence).
"""

import logging
from typing import Iterable, Sequence

from loresuggest.models import (
    SOURCE_AI,
    AiEntity,
    AiRelationship,
    CandidateEntity,
    Confidence,
    EntityKind,
    EntityMention,
    InferredRelationship,
    sort_candidates,
)
from loresuggest.pipeline.normalize import candidate_id, normalize_key

logger = logging.getLogger(__name__)

AI_KIND_ALIASES: dict[str, EntityKind] = {
    "npc": EntityKind.PERSON,
    "person": EntityKind.PERSON,
    "character": EntityKind.PERSON,
    "pc": EntityKind.PERSON,
    "villain": EntityKind.PERSON,
    "ally": EntityKind.PERSON,
    "place": EntityKind.PLACE,
    "location": EntityKind.PLACE,
    "area": EntityKind.PLACE,
    "region": EntityKind.PLACE,
    "city": EntityKind.PLACE,
    "dungeon": EntityKind.PLACE,
    "quest": EntityKind.QUEST,
    "mission": EntityKind.QUEST,
    "task": EntityKind.QUEST,
    "objective": EntityKind.QUEST,
    "goal": EntityKind.QUEST,
}

# Items, factions and anything else the AI invents land here.
AI_KIND_FALLBACK = EntityKind.PERSON


def resolve_ai_kind(raw_kind: str) -> EntityKind:
    """Map an AI-reported kind string onto a supported kind."""
    kind = AI_KIND_ALIASES.get(raw_kind.strip().lower())
    if kind is None:
        logger.debug("Unrecognized AI entity type %r, using %s", raw_kind, AI_KIND_FALLBACK.value)
        return AI_KIND_FALLBACK
    return kind


def _from_ai_entity(entity: AiEntity, high: float, medium: float) -> CandidateEntity | None:
    key = normalize_key(entity.name)
    if not key:
        return None
    kind = resolve_ai_kind(entity.type)
    name = entity.name.strip()
    return CandidateEntity(
        id=candidate_id(kind, key),
        kind=kind,
        display_text=name,
        normalized_key=key,
        confidence=Confidence.from_score(entity.confidence, high=high, medium=medium),
        mentions=(EntityMention(block_id=None, start_offset=0, end_offset=len(name), surface_text=name),),
        frequency=1,
        sources=(SOURCE_AI,),
    )


def _combine(first: CandidateEntity, second: CandidateEntity) -> CandidateEntity:
    """Fold two candidates sharing a key; the one with real offsets wins."""
    primary, secondary = first, second
    if secondary.has_heuristic_mentions and not primary.has_heuristic_mentions:
        primary, secondary = secondary, primary
    return primary.model_copy(
        update={
            "confidence": Confidence.strongest(primary.confidence, secondary.confidence),
            "sources": tuple(sorted(set(primary.sources) | set(secondary.sources))),
        }
    )


def normalize_ai_entities(
    ai_entities: Iterable[AiEntity | CandidateEntity],
    high: float = 0.8,
    medium: float = 0.6,
) -> list[CandidateEntity]:
    """Convert AI entities to candidates, one per normalized key."""
    by_key: dict[str, CandidateEntity] = {}
    for entity in ai_entities:
        candidate = entity if isinstance(entity, CandidateEntity) else _from_ai_entity(entity, high, medium)
        if candidate is None:
            continue
        existing = by_key.get(candidate.normalized_key)
        by_key[candidate.normalized_key] = candidate if existing is None else _combine(existing, candidate)
    return list(by_key.values())


def merge_candidates(
    heuristic: Sequence[CandidateEntity],
    ai: Iterable[AiEntity | CandidateEntity],
    high: float = 0.8,
    medium: float = 0.6,
) -> list[CandidateEntity]:
    """Union heuristic and AI candidates by normalized key.

    Either side may be empty; with no AI entities the heuristic set comes back
    unchanged apart from ordering.
    """
    merged: dict[str, CandidateEntity] = {}
    for candidate in [*heuristic, *normalize_ai_entities(ai, high=high, medium=medium)]:
        existing = merged.get(candidate.normalized_key)
        merged[candidate.normalized_key] = candidate if existing is None else _combine(existing, candidate)
    return sort_candidates(list(merged.values()))


def infer_relationships(
    candidates: Sequence[CandidateEntity],
    relationships: Iterable[AiRelationship],
    high: float = 0.8,
    medium: float = 0.6,
) -> list[InferredRelationship]:
    """Resolve AI relationships onto candidate ids by normalized name.

    Relationships naming an unknown entity, or the same entity twice, are
    skipped.
    """
    ids = {candidate.normalized_key: candidate.id for candidate in candidates}
    inferred: list[InferredRelationship] = []
    for relationship in relationships:
        anchor = ids.get(normalize_key(relationship.entity1))
        related = ids.get(normalize_key(relationship.entity2))
        if anchor is None or related is None or anchor == related:
            logger.debug("Skipping AI relationship %s -> %s", relationship.entity1, relationship.entity2)
            continue
        inferred.append(
            InferredRelationship(
                anchor_entity_id=anchor,
                related_entity_id=related,
                relationship=relationship.relationship,
                confidence=Confidence.from_score(relationship.confidence, high=high, medium=medium),
            )
        )
    return inferred
