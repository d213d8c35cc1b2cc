"""
loresuggest - entity suggestions for tabletop session logs.

Scans free-text session notes for people, places and quests, merges in
optional AI-extracted entities, matches candidates against existing records,
suggests relationships from textual proximity, and remembers the reviewer's
decisions per team and day.

    from loresuggest import detect
    candidates = detect("Lord Blackwood entered the Silverwood Forest.")
"""

from loresuggest.config import LoreSuggestConfig, load_config
from loresuggest.errors import (
    AiExtractionError,
    AiUnavailableError,
    DetectionFailed,
    LoreSuggestError,
    MalformedInputError,
    PersistenceCorruptError,
)
from loresuggest.models import (
    CandidateEntity,
    Confidence,
    ContentBlock,
    DetectionRequest,
    DetectionResponse,
    EntityKind,
    EntityMention,
    ProximitySuggestion,
    RecordMatch,
    RecordSummary,
)
from loresuggest.pipeline import (
    PatternDetector,
    ProximityIndex,
    analyze_candidates,
    detect,
    match_candidates,
    merge_candidates,
    suggest_proximity,
)
from loresuggest.review import SuggestionReviewer
from loresuggest.session import SuggestionSessionStore
from loresuggest.worker import DetectionWorker, LiveDetection

__version__ = "0.1.0"

__all__ = [
    # Models
    "CandidateEntity",
    "Confidence",
    "ContentBlock",
    "DetectionRequest",
    "DetectionResponse",
    "EntityKind",
    "EntityMention",
    "ProximitySuggestion",
    "RecordMatch",
    "RecordSummary",
    # Pipeline
    "PatternDetector",
    "ProximityIndex",
    "analyze_candidates",
    "detect",
    "match_candidates",
    "merge_candidates",
    "suggest_proximity",
    # Runtime
    "DetectionWorker",
    "LiveDetection",
    "SuggestionSessionStore",
    "SuggestionReviewer",
    # Config
    "LoreSuggestConfig",
    "load_config",
    # Errors
    "LoreSuggestError",
    "MalformedInputError",
    "DetectionFailed",
    "PersistenceCorruptError",
    "AiExtractionError",
    "AiUnavailableError",
]
