"""Pure detection pipeline: detect, merge, match, relate."""

from loresuggest.pipeline.ai_merge import (
    infer_relationships,
    merge_candidates,
    normalize_ai_entities,
    resolve_ai_kind,
)
from loresuggest.pipeline.analysis import CandidateAnalysis, analyze_candidates, block_content_map
from loresuggest.pipeline.detector import (
    PatternDetector,
    detect,
    filter_by_confidence,
    filter_by_kind,
    group_by_kind,
)
from loresuggest.pipeline.matcher import match_candidates, record_matches
from loresuggest.pipeline.normalize import candidate_id, normalize_key
from loresuggest.pipeline.proximity import ProximityIndex, relationship_strength, suggest_proximity

__all__ = [
    # Detection
    "PatternDetector",
    "detect",
    "filter_by_confidence",
    "filter_by_kind",
    "group_by_kind",
    "normalize_key",
    "candidate_id",
    # Matching
    "match_candidates",
    "record_matches",
    # Proximity
    "suggest_proximity",
    "ProximityIndex",
    "relationship_strength",
    # AI merge
    "resolve_ai_kind",
    "normalize_ai_entities",
    "merge_candidates",
    "infer_relationships",
    # Combined
    "CandidateAnalysis",
    "analyze_candidates",
    "block_content_map",
]
