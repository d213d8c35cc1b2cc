"""Heuristic pattern detector for session-log text.

Scans plain text or block-structured notes and proposes person, place and
quest candidates. Detection is pure: the same input always yields the same
candidates, ids included, which is what lets reviewer decisions survive a
reload.

Pipeline per call:
    1. Run every pattern family and the proper-noun scan over each block.
    2. Resolve overlapping matches inside a block (longest wins).
    3. Group mentions by normalized key, vote on kind.
    4. Fold shorter names into longer names that start or end with them.
    5. Drop stoplisted keys and sort.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from loresuggest.config import DetectionConfig
from loresuggest.errors import MalformedInputError
from loresuggest.models import (
    CandidateEntity,
    Confidence,
    ContentBlock,
    EntityKind,
    EntityMention,
    sort_candidates,
)
from loresuggest.pipeline.normalize import candidate_id, normalize_key
from loresuggest.pipeline.patterns import (
    ACTION_WORDS,
    CLAUSE_BREAK_WORDS,
    CLAUSE_TRAILING_WORDS,
    FRAGMENT_WORDS,
    PERSON_TITLES,
    SPECIFICITY_MULTI,
    SPECIFICITY_SENTENCE_START,
    SPECIFICITY_SINGLE,
    PatternFamily,
    build_pattern_families,
    guess_kind,
)

logger = logging.getLogger(__name__)

DetectionInput = str | Sequence[ContentBlock | Mapping[str, Any]]

_TOKEN = re.compile(r"\S+")
_CAPITALIZED = re.compile(r"[A-Z][a-z]+")
_LEADING_PUNCT = "\"'“‘([{*_"
_TRAILING_PUNCT = ".,!?;:\"'”’)]}*_"
_CLOSING_QUOTES = "\"'”’)]}*_"
_NAME_KINDS = (EntityKind.PERSON, EntityKind.PLACE)


@dataclass(frozen=True)
class _RawMatch:
    text: str
    kind: EntityKind
    confidence: Confidence
    specificity: int
    block_index: int
    block_id: str | None
    start: int
    end: int

    @property
    def is_quest(self) -> bool:
        return self.kind is EntityKind.QUEST

    def overlaps(self, other: "_RawMatch") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass
class _Group:
    """Mutable accumulator for one normalized key."""

    key: str
    mentions: list[_RawMatch] = field(default_factory=list)
    pinned_kind: EntityKind | None = None

    @property
    def word_count(self) -> int:
        return len(self.key.split(" "))

    @property
    def confidence(self) -> Confidence:
        return Confidence.strongest(*(m.confidence for m in self.mentions))

    def kind(self) -> EntityKind:
        if self.pinned_kind is not None:
            return self.pinned_kind
        votes: dict[EntityKind, list[int]] = {}
        for mention in self.mentions:
            count_spec = votes.setdefault(mention.kind, [0, -1])
            count_spec[0] += 1
            count_spec[1] = max(count_spec[1], mention.specificity)
        return max(votes, key=lambda k: (votes[k][0], votes[k][1], -k.sort_priority))

    def display_text(self) -> str:
        own = [m.text for m in self.mentions if normalize_key(m.text) == self.key]
        forms = own or [m.text for m in self.mentions]
        counts = Counter(forms)
        best = max(counts.values())
        return next(form for form in forms if counts[form] == best)


def _coerce_blocks(content: Any) -> list[tuple[str | None, str]]:
    """Turn detector input into (block_id, text) pairs or raise MalformedInputError."""
    if isinstance(content, str):
        return [(None, content)]
    if not isinstance(content, (list, tuple)):
        raise MalformedInputError(
            f"detection input must be a string or a sequence of blocks, got {type(content).__name__}"
        )
    blocks: list[tuple[str | None, str]] = []
    for item in content:
        if isinstance(item, ContentBlock):
            block = item
        elif isinstance(item, Mapping):
            try:
                block = ContentBlock.model_validate(item)
            except ValidationError as e:
                raise MalformedInputError(f"invalid content block: {e}") from e
        else:
            raise MalformedInputError(f"content block must be a mapping, got {type(item).__name__}")
        blocks.append((block.id, block.content))
    return blocks


def _clean_token(token: re.Match) -> tuple[str, int, int, bool]:
    """Strip surrounding punctuation and a possessive from a whitespace token.

    Returns (clean_text, start, end, had_possessive).
    """
    raw = token.group()
    lead = len(raw) - len(raw.lstrip(_LEADING_PUNCT))
    body = raw[lead:].rstrip(_TRAILING_PUNCT)
    possessive = body.endswith(("'s", "’s"))
    if possessive:
        body = body[:-2]
    start = token.start() + lead
    return body, start, start + len(body), possessive


def _ends_sentence(raw: str) -> bool:
    return raw.rstrip(_CLOSING_QUOTES).endswith((".", "!", "?"))


def _ends_clause(raw: str) -> bool:
    return raw.rstrip(_CLOSING_QUOTES).endswith((".", "!", "?", ",", ";", ":"))


def _is_bullet(raw: str) -> bool:
    return not any(ch.isalnum() for ch in raw)


class PatternDetector:
    """Detect candidate entities with surface patterns.

    Instances are immutable after construction and safe to share between
    threads; detect() keeps all state on the stack.
    """

    def __init__(self, config: DetectionConfig | None = None):
        self.config = config or DetectionConfig()
        self._families: list[PatternFamily] = build_pattern_families(self.config.max_quest_words)
        self._stoplist = frozenset(word.lower() for word in self.config.stoplist | self.config.extra_stopwords)

    def detect(self, content: DetectionInput) -> list[CandidateEntity]:
        """Return ranked candidates for a string or a sequence of blocks.

        Raises:
            MalformedInputError: content is neither a string nor a sequence
                of {id, content} blocks.
        """
        blocks = _coerce_blocks(content)
        if sum(len(text.strip()) for _, text in blocks) < self.config.min_text_length:
            return []

        raw: list[_RawMatch] = []
        for index, (block_id, text) in enumerate(blocks):
            matches = self._family_matches(text, index, block_id)
            matches.extend(self._proper_nouns(text, index, block_id))
            raw.extend(self._resolve_overlaps(matches))

        groups: dict[str, _Group] = {}
        for match in raw:
            key = normalize_key(match.text)
            if not key:
                continue
            groups.setdefault(key, _Group(key)).mentions.append(match)

        merged = self._fold_contained(list(groups.values()))
        candidates = [self._to_candidate(group) for group in merged if group.key not in self._stoplist]
        logger.debug("Detected %d candidates from %d raw matches", len(candidates), len(raw))
        return sort_candidates(candidates)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    def _family_matches(self, text: str, block_index: int, block_id: str | None) -> list[_RawMatch]:
        matches: list[_RawMatch] = []
        for family in self._families:
            for m in family.pattern.finditer(text):
                start, end = m.span(family.group)
                if family.kind is EntityKind.QUEST and family.group:
                    span = self._trim_clause(text, start, end)
                elif family.kind is EntityKind.PLACE and family.group:
                    span = self._trim_place(text, start, end, family)
                else:
                    span = (start, end)
                if span is None:
                    continue
                start, end = span
                surface = text[start:end]
                if family.kind is not EntityKind.QUEST and not self._valid_name_head(surface):
                    continue
                matches.append(
                    _RawMatch(
                        text=surface,
                        kind=family.kind,
                        confidence=family.confidence,
                        specificity=family.specificity,
                        block_index=block_index,
                        block_id=block_id,
                        start=start,
                        end=end,
                    )
                )
        return matches

    def _valid_name_head(self, surface: str) -> bool:
        first = surface.split()[0].lower()
        return first not in self._stoplist and first not in ACTION_WORDS

    def _trim_place(self, text: str, start: int, end: int, family: PatternFamily) -> tuple[int, int] | None:
        """Drop capitalized stopwords ("In", "Then") from the front of a place name.

        A landmark needs a name word besides the landmark noun; an article
        place must not start with a title ("to the Captain").
        """
        tokens = list(_TOKEN.finditer(text, start, end))
        while tokens and tokens[0].group().lower() in self._stoplist:
            tokens.pop(0)
        if not tokens:
            return None
        if family.name == "landmark" and len(tokens) < 2:
            return None
        if family.name == "article_place" and tokens[0].group().lower() in PERSON_TITLES:
            return None
        return tokens[0].start(), end

    def _trim_clause(self, text: str, start: int, end: int) -> tuple[int, int] | None:
        """Cut a quest clause at a conjunction and drop dangling function words."""
        kept: list[re.Match] = []
        clause_tokens = _TOKEN.finditer(text, start, end)
        for index, token in enumerate(clause_tokens):
            if index > 0 and token.group().lower() in CLAUSE_BREAK_WORDS:
                break
            kept.append(token)
            if len(kept) >= self.config.max_quest_words:
                break
        while kept and kept[-1].group().lower() in CLAUSE_TRAILING_WORDS:
            kept.pop()
        if len(kept) < 2 or kept[0].group().lower() in self._stoplist:
            return None
        return kept[0].start(), kept[-1].end()

    def _proper_nouns(self, text: str, block_index: int, block_id: str | None) -> list[_RawMatch]:
        """Capitalized runs that no pattern family claimed.

        Sentence-initial words are ambiguous ("Kira ran." vs "Rain fell."), so
        a lone sentence-initial word only counts if it opens two or more
        sentences in the block, and then at low confidence.
        """
        tokens = list(_TOKEN.finditer(text))
        cleaned = [_clean_token(token) for token in tokens]
        matches: list[_RawMatch] = []
        sentence_starts: dict[str, list[tuple[str, int, int]]] = {}

        def is_name_word(index: int) -> bool:
            word = cleaned[index][0]
            return (
                bool(_CAPITALIZED.fullmatch(word))
                and word.lower() not in self._stoplist
                and word.lower() not in ACTION_WORDS
            )

        i = 0
        while i < len(tokens):
            word, start, end, possessive = cleaned[i]
            if not is_name_word(i):
                i += 1
                continue

            at_sentence_start = (
                i == 0
                or _ends_sentence(tokens[i - 1].group())
                or _is_bullet(tokens[i - 1].group())
                or "\n" in text[tokens[i - 1].end() : tokens[i].start()]
            )

            j = i
            while (
                j + 1 < len(tokens)
                and not _ends_clause(tokens[j].group())
                and not cleaned[j][3]
                and "\n" not in text[tokens[j].end() : tokens[j + 1].start()]
                and is_name_word(j + 1)
            ):
                j += 1

            run_end = cleaned[j][2]
            surface = text[start:run_end]
            word_count = j - i + 1

            if at_sentence_start and word_count == 1:
                sentence_starts.setdefault(word.lower(), []).append((word, start, end))
            elif self._valid_run(surface, word_count):
                matches.append(
                    _RawMatch(
                        text=surface,
                        kind=guess_kind(surface),
                        confidence=Confidence.HIGH if word_count > 1 else Confidence.MEDIUM,
                        specificity=SPECIFICITY_MULTI if word_count > 1 else SPECIFICITY_SINGLE,
                        block_index=block_index,
                        block_id=block_id,
                        start=start,
                        end=run_end,
                    )
                )
            i = j + 1

        for occurrences in sentence_starts.values():
            if len(occurrences) < 2:
                continue
            for word, start, end in occurrences:
                matches.append(
                    _RawMatch(
                        text=word,
                        kind=guess_kind(word),
                        confidence=Confidence.LOW,
                        specificity=SPECIFICITY_SENTENCE_START,
                        block_index=block_index,
                        block_id=block_id,
                        start=start,
                        end=end,
                    )
                )
        return matches

    def _valid_run(self, surface: str, word_count: int) -> bool:
        if word_count > self.config.max_name_words:
            return False
        inner = surface.lower().split()[1:-1]
        return not any(word in FRAGMENT_WORDS for word in inner)

    @staticmethod
    def _resolve_overlaps(matches: list[_RawMatch]) -> list[_RawMatch]:
        """Keep the longest of overlapping matches; names and quests resolve separately."""
        ordered = sorted(matches, key=lambda m: (-(m.end - m.start), -m.specificity, m.start))
        kept: list[_RawMatch] = []
        for match in ordered:
            if any(match.is_quest == other.is_quest and match.overlaps(other) for other in kept):
                continue
            kept.append(match)
        kept.sort(key=lambda m: (m.start, m.end))
        return kept

    # ------------------------------------------------------------------
    # Consolidation
    # ------------------------------------------------------------------
    @staticmethod
    def _fold_contained(groups: list[_Group]) -> list[_Group]:
        """Merge "Garner" into "Captain Garner" and "Captain" into "Captain Garner".

        Only person/place groups take part; a shorter name is folded into the
        longest group whose words it prefixes or suffixes. The longer group keeps
        its own kind, so folded mentions only add to frequency and confidence.
        """
        by_length = sorted(groups, key=lambda g: (-g.word_count, -len(g.key), g.key))
        removed: set[str] = set()
        for i, longer in enumerate(by_length):
            if longer.key in removed or longer.kind() not in _NAME_KINDS:
                continue
            longer_words = longer.key.split(" ")
            for shorter in by_length[i + 1 :]:
                if shorter.key in removed or shorter.kind() not in _NAME_KINDS:
                    continue
                shorter_words = shorter.key.split(" ")
                if len(shorter_words) >= len(longer_words):
                    continue
                n = len(shorter_words)
                if longer_words[:n] == shorter_words or longer_words[-n:] == shorter_words:
                    longer.pinned_kind = longer.kind()
                    longer.mentions.extend(shorter.mentions)
                    removed.add(shorter.key)
        return [group for group in groups if group.key not in removed]

    @staticmethod
    def _to_candidate(group: _Group) -> CandidateEntity:
        kind = group.kind()
        mentions = sorted(group.mentions, key=lambda m: (m.block_index, m.start, m.end))
        return CandidateEntity(
            id=candidate_id(kind, group.key),
            kind=kind,
            display_text=group.display_text(),
            normalized_key=group.key,
            confidence=group.confidence,
            mentions=tuple(
                EntityMention(
                    block_id=m.block_id,
                    start_offset=m.start,
                    end_offset=m.end,
                    surface_text=m.text,
                )
                for m in mentions
            ),
            frequency=len(mentions),
        )


def detect(content: DetectionInput, config: DetectionConfig | None = None) -> list[CandidateEntity]:
    """Detect candidates with a fresh PatternDetector."""
    return PatternDetector(config).detect(content)


def filter_by_confidence(candidates: Sequence[CandidateEntity], min_confidence: Confidence) -> list[CandidateEntity]:
    return [c for c in candidates if c.confidence.at_least(min_confidence)]


def filter_by_kind(candidates: Sequence[CandidateEntity], kind: EntityKind) -> list[CandidateEntity]:
    return [c for c in candidates if c.kind is kind]


def group_by_kind(candidates: Sequence[CandidateEntity]) -> dict[EntityKind, list[CandidateEntity]]:
    """Group candidates by kind, preserving input order inside each group."""
    groups: dict[EntityKind, list[CandidateEntity]] = {}
    for candidate in candidates:
        groups.setdefault(candidate.kind, []).append(candidate)
    return groups
