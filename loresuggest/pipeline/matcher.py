"""Match candidates against existing record titles.

Matching is advisory: a candidate with matches goes to the "existing" review
lane, one without to the "new" lane. Callers test map membership, never list
emptiness; a candidate with no matches is simply absent.
"""

from typing import Sequence

from loresuggest.config import MatcherConfig
from loresuggest.models import CandidateEntity, RecordMatch, RecordSummary
from loresuggest.pipeline.normalize import normalize_key, words

# Match tiers, strongest first.
TIER_EXACT = 0
TIER_CONTAINMENT = 1
TIER_WORD_OVERLAP = 2


def _kind_compatible(candidate: CandidateEntity, record: RecordSummary, config: MatcherConfig) -> bool:
    record_type = record.record_type.strip().lower()
    if not record_type:
        return True
    known_types = set().union(*config.kind_record_types.values())
    if record_type not in known_types:
        return True
    return record_type in config.kind_record_types.get(candidate.kind, frozenset())


def _match_tier(key: str, title: str, min_word_length: int) -> int | None:
    if key == title:
        return TIER_EXACT
    if key in title or title in key:
        return TIER_CONTAINMENT
    significant = {w for w in words(key) if len(w) >= min_word_length}
    if significant & {w for w in words(title) if len(w) >= min_word_length}:
        return TIER_WORD_OVERLAP
    return None


def match_candidates(
    candidates: Sequence[CandidateEntity],
    records: Sequence[RecordSummary],
    config: MatcherConfig | None = None,
) -> dict[str, list[str]]:
    """Map candidate id to matching record ids, best match first.

    Exact normalized-title matches are accepted regardless of record type.
    Containment and word-overlap matches skip records whose type is known to
    belong to a different kind.
    """
    config = config or MatcherConfig()
    titled = [(record, normalize_key(record.title)) for record in records]
    titled = [(record, title) for record, title in titled if title]

    result: dict[str, list[str]] = {}
    for candidate in candidates:
        scored: list[tuple[int, int, str]] = []
        for position, (record, title) in enumerate(titled):
            tier = _match_tier(candidate.normalized_key, title, config.min_word_overlap_length)
            if tier is None:
                continue
            if tier != TIER_EXACT and not _kind_compatible(candidate, record, config):
                continue
            scored.append((tier, position, record.id))
        if scored:
            scored.sort()
            ids: list[str] = []
            for _, _, record_id in scored:
                if record_id not in ids:
                    ids.append(record_id)
            result[candidate.id] = ids
    return result


def record_matches(
    candidates: Sequence[CandidateEntity],
    records: Sequence[RecordSummary],
    config: MatcherConfig | None = None,
) -> list[RecordMatch]:
    """Same as match_candidates, as RecordMatch models in candidate order."""
    matches = match_candidates(candidates, records, config)
    return [
        RecordMatch(candidate_id=candidate.id, matched_record_ids=tuple(matches[candidate.id]))
        for candidate in candidates
        if candidate.id in matches
    ]
