"""Engine configuration.

Each component takes its own frozen config model; LoreSuggestConfig bundles
them for applications. load_config() reads a TOML file, looked up in order:

  1. The path passed explicitly
  2. Path in the LORESUGGEST_CONFIG env var (if set)
  3. loresuggest.toml in the current working directory

If no file is found, built-in defaults are used. Example file:

    log_level = "DEBUG"

    [detection]
    min_text_length = 20
    extra_stopwords = ["tavern", "gold"]

    [worker]
    debounce_seconds = 0.5

`stoplist` replaces DEFAULT_STOPLIST outright; `extra_stopwords` is added to it.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from loresuggest.models import Confidence, EntityKind

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LORESUGGEST_CONFIG"
DEFAULT_CONFIG_NAME = "loresuggest.toml"

# Common words never proposed as entities on their own.
DEFAULT_STOPLIST: frozenset[str] = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
        "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare", "ought",
        "used", "i", "you", "he", "she", "it", "we", "they", "what", "which",
        "who", "whom", "this", "that", "these", "those", "am", "your", "his",
        "her", "its", "our", "their", "if", "then", "else", "when", "where",
        "why", "how", "all", "each", "every", "both", "few", "more", "most",
        "other", "some", "such", "no", "nor", "not", "only", "own", "same",
        "so", "than", "too", "very", "just", "also", "now", "here", "there",
        "about", "after", "before", "during", "into", "through", "between",
        "while", "until", "unless", "because", "although", "though", "since",
        "later", "meanwhile", "suddenly", "finally", "today", "tonight",
        "yesterday", "tomorrow", "session", "monday", "tuesday", "wednesday",
        "thursday", "friday", "saturday", "sunday",
    }
)


class DetectionConfig(BaseModel):
    """Pattern detector settings."""

    model_config = {"frozen": True}

    min_text_length: int = Field(10, ge=0, description="Inputs shorter than this yield no candidates.")
    max_name_words: int = Field(5, ge=1, description="Longer capitalized runs are treated as fragments.")
    max_quest_words: int = Field(6, ge=1, description="Maximum words captured after a quest trigger.")
    stoplist: frozenset[str] = Field(
        DEFAULT_STOPLIST,
        description="Normalized keys suppressed entirely. Setting this replaces DEFAULT_STOPLIST.",
    )
    extra_stopwords: frozenset[str] = Field(
        frozenset(),
        description="Added to stoplist; use this to extend the defaults.",
    )


class MatcherConfig(BaseModel):
    """Entity-to-record matcher settings."""

    model_config = {"frozen": True}

    min_word_overlap_length: int = Field(
        4,
        ge=1,
        description="Shortest word that counts for word-overlap matches.",
    )
    kind_record_types: dict[EntityKind, frozenset[str]] = Field(
        default_factory=lambda: {
            EntityKind.PERSON: frozenset({"npc", "person", "character", "pc"}),
            EntityKind.PLACE: frozenset({"area", "place", "location", "region"}),
            EntityKind.QUEST: frozenset({"quest"}),
        },
        description="Record types compatible with each candidate kind.",
    )


class ProximityConfig(BaseModel):
    """Proximity suggester thresholds, in characters."""

    model_config = {"frozen": True}

    high_threshold: int = Field(100, ge=0)
    medium_threshold: int = Field(300, ge=0)
    max_distance: int | None = Field(
        None,
        ge=0,
        description="Pairs further apart are dropped; None keeps every same-block pair.",
    )
    excerpt_max_length: int = Field(160, ge=20)


class WorkerConfig(BaseModel):
    """Detection worker and live-detection settings."""

    model_config = {"frozen": True}

    debounce_seconds: float = Field(0.75, ge=0.0, description="Quiet period before dispatching.")
    min_confidence: Confidence = Field(Confidence.LOW, description="Candidates below this tier are dropped.")


class SessionConfig(BaseModel):
    """Suggestion session store settings."""

    model_config = {"frozen": True}

    key_prefix: str = "suggestions"
    schema_version: int = Field(1, ge=1)
    retention_days: int = Field(7, ge=0)


class AiConfig(BaseModel):
    """AI extraction client settings."""

    model_config = {"frozen": True}

    base_url: str = "http://localhost:5000"
    timeout: float = Field(30.0, gt=0.0)
    high_score: float = Field(0.8, ge=0.0, le=1.0)
    medium_score: float = Field(0.6, ge=0.0, le=1.0)


class ReviewConfig(BaseModel):
    """Review workflow settings."""

    model_config = {"frozen": True}

    record_types: dict[EntityKind, str] = Field(
        default_factory=lambda: {
            EntityKind.PERSON: "npc",
            EntityKind.PLACE: "area",
            EntityKind.QUEST: "quest",
        },
        description="Record type created when a candidate of each kind is accepted.",
    )


class LoreSuggestConfig(BaseModel):
    model_config = {"frozen": True}

    log_level: str = "INFO"
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    matcher: MatcherConfig = Field(default_factory=MatcherConfig)
    proximity: ProximityConfig = Field(default_factory=ProximityConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    ai: AiConfig = Field(default_factory=AiConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)


def _default_config_paths(path: Path | None) -> list[Path]:
    """Return paths to check for a config file (first existing wins)."""
    paths: list[Path] = []
    if path is not None:
        paths.append(Path(path))
    if os.environ.get(CONFIG_ENV_VAR):
        paths.append(Path(os.environ[CONFIG_ENV_VAR]))
    paths.append(Path.cwd() / DEFAULT_CONFIG_NAME)
    return paths


def load_config(path: Path | None = None) -> LoreSuggestConfig:
    """Load configuration from the first TOML file found, else defaults.

    Unknown keys are ignored. A file that cannot be read or does not validate
    is skipped with a warning.
    """
    for candidate in _default_config_paths(path):
        if not candidate.is_file():
            continue
        try:
            with open(candidate, "rb") as f:
                data = tomllib.load(f)
            config = LoreSuggestConfig.model_validate(data)
        except (OSError, tomllib.TOMLDecodeError, ValidationError) as e:
            logger.warning("Ignoring config file %s: %s", candidate, e)
            continue
        logger.debug("Loaded config from %s", candidate)
        return config
    return LoreSuggestConfig()
