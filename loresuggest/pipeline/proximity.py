"""Co-occurrence suggestions between candidates.

Two candidates mentioned close together in the same block are probably
related ("Captain Garner, the harbourmaster of Port Vell"). For every pair of
candidates that share a block we find the closest pair of mentions, bucket the
character gap into a confidence tier, and keep a short excerpt for the
reviewer.

Pairs are compared exhaustively. Per-session candidate counts are in the tens,
so the quadratic cost is fine; a sliding window over mention offsets is the
fix if that ever changes.
"""

from __future__ import annotations

import itertools
from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from loresuggest.config import ProximityConfig
from loresuggest.models import CandidateEntity, Confidence, EntityMention, ProximitySuggestion

BlockContent = Mapping[str | None, str] | str

# Gap beyond which a mention pair adds nothing to relationship_strength.
STRENGTH_FAR_LIMIT = 600

_ELLIPSIS = "…"


def mention_gap(a: EntityMention, b: EntityMention) -> int:
    """Characters between two mentions of the same block; 0 if they overlap."""
    if a.start_offset <= b.end_offset and b.start_offset <= a.end_offset:
        return 0
    if a.end_offset < b.start_offset:
        return b.start_offset - a.end_offset
    return a.start_offset - b.end_offset


def tier_for_distance(distance: int, config: ProximityConfig) -> Confidence:
    if distance <= config.high_threshold:
        return Confidence.HIGH
    if distance <= config.medium_threshold:
        return Confidence.MEDIUM
    return Confidence.LOW


def clip_excerpt(text: str, max_length: int) -> str:
    """Clip from the middle so both ends (the two names) survive."""
    text = " ".join(text.split())
    if len(text) <= max_length:
        return text
    keep = max_length - len(_ELLIPSIS) - 2
    head = (keep + 1) // 2
    tail = keep - head
    return f"{text[:head].rstrip()} {_ELLIPSIS} {text[len(text) - tail:].lstrip()}"


def _as_block_map(block_content: BlockContent) -> Mapping[str | None, str]:
    if isinstance(block_content, str):
        return {None: block_content}
    return block_content


def _mentions_by_block(candidate: CandidateEntity) -> dict[str | None, list[EntityMention]]:
    by_block: dict[str | None, list[EntityMention]] = defaultdict(list)
    for mention in candidate.mentions:
        by_block[mention.block_id].append(mention)
    return by_block


def _closest_pair(
    first: dict[str | None, list[EntityMention]],
    second: dict[str | None, list[EntityMention]],
) -> tuple[int, EntityMention, EntityMention] | None:
    best: tuple[int, EntityMention, EntityMention] | None = None
    # plain text (block None) sorts before named blocks
    shared = sorted(set(first) & set(second), key=lambda b: (b is not None, b or ""))
    for block_id in shared:
        for a, b in itertools.product(first[block_id], second[block_id]):
            gap = mention_gap(a, b)
            if best is None or gap < best[0]:
                best = (gap, a, b)
    return best


def suggest_proximity(
    candidates: Sequence[CandidateEntity],
    block_content: BlockContent,
    config: ProximityConfig | None = None,
) -> list[ProximitySuggestion]:
    """One suggestion per related pair, closest first.

    The anchor is the pair's lexicographically smaller candidate id; use
    ProximityIndex to look a pair up from either side. Candidates with only
    synthesized AI mentions have no real offsets and are skipped.
    """
    config = config or ProximityConfig()
    blocks = _as_block_map(block_content)
    located = sorted(
        ((c.id, _mentions_by_block(c)) for c in candidates if c.has_heuristic_mentions),
        key=lambda item: item[0],
    )

    suggestions: list[ProximitySuggestion] = []
    for (first_id, first), (second_id, second) in itertools.combinations(located, 2):
        if first_id == second_id:
            continue
        closest = _closest_pair(first, second)
        if closest is None:
            continue
        distance, a, b = closest
        if config.max_distance is not None and distance > config.max_distance:
            continue
        earlier, later = sorted((a, b), key=lambda m: m.start_offset)
        text = blocks.get(a.block_id, "")
        span = text[earlier.start_offset : max(earlier.end_offset, later.end_offset)]
        if not span:
            span = f"{earlier.surface_text} … {later.surface_text}"
        suggestions.append(
            ProximitySuggestion(
                anchor_entity_id=first_id,
                related_entity_id=second_id,
                distance=distance,
                confidence=tier_for_distance(distance, config),
                context_excerpt=clip_excerpt(span, config.excerpt_max_length),
                block_id=a.block_id,
            )
        )
    suggestions.sort(key=lambda s: (s.distance, s.anchor_entity_id, s.related_entity_id))
    return suggestions


class ProximityIndex:
    """Symmetric lookup over proximity suggestions.

    A pair stored once as A -> B is returned from related(A) as A -> B and
    from related(B) as B -> A with the same confidence and excerpt.
    """

    def __init__(self, suggestions: Iterable[ProximitySuggestion] = ()):
        self._by_entity: dict[str, list[ProximitySuggestion]] = defaultdict(list)
        for suggestion in suggestions:
            self.add(suggestion)

    def add(self, suggestion: ProximitySuggestion) -> None:
        self._by_entity[suggestion.anchor_entity_id].append(suggestion)
        self._by_entity[suggestion.related_entity_id].append(suggestion.reversed())

    def related(self, entity_id: str, min_confidence: Confidence = Confidence.LOW) -> list[ProximitySuggestion]:
        found = [s for s in self._by_entity.get(entity_id, []) if s.confidence.at_least(min_confidence)]
        return sorted(found, key=lambda s: (s.distance, s.related_entity_id))

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._by_entity

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_entity.values()) // 2


def relationship_strength(
    first: CandidateEntity,
    second: CandidateEntity,
    config: ProximityConfig | None = None,
) -> int:
    """Rough ordering score for a pair of candidates.

    Ten points per shared block, 5/3/1 points for every mention pair that is
    close/near/far, plus the smaller of the two frequencies.
    """
    config = config or ProximityConfig()
    first_blocks = {m.block_id for m in first.mentions}
    second_blocks = {m.block_id for m in second.mentions}
    score = 10 * len(first_blocks & second_blocks)
    for a, b in itertools.product(first.mentions, second.mentions):
        if a.block_id != b.block_id:
            continue
        gap = mention_gap(a, b)
        if gap <= config.high_threshold:
            score += 5
        elif gap <= config.medium_threshold:
            score += 3
        elif gap <= STRENGTH_FAR_LIMIT:
            score += 1
    return score + min(first.frequency, second.frequency)
