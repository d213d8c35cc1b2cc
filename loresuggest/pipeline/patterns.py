"""Surface-pattern vocabulary and regex families for the pattern detector.

The word lists are tuned for tabletop session logs: titles and landmark nouns
that show up in fantasy settings, plus the verbs players use when they take on
a job.
"""

import re
from dataclasses import dataclass

from loresuggest.models import Confidence, EntityKind

PERSON_TITLES: tuple[str, ...] = (
    "lord", "lady", "sir", "dame", "king", "queen", "prince", "princess",
    "duke", "duchess", "count", "countess", "baron", "baroness", "captain",
    "commander", "general", "master", "mistress", "father", "mother",
    "brother", "sister", "elder", "high", "grand", "chief", "lieutenant",
    "sergeant", "corporal", "admiral", "colonel", "major", "archmage",
    "emperor", "empress", "warden", "magistrate", "mayor",
)

PLACE_INDICATORS: tuple[str, ...] = (
    "city", "town", "village", "kingdom", "realm", "forest", "woods",
    "mountain", "mountains", "peak", "river", "lake", "sea", "ocean", "island",
    "cave", "caverns", "dungeon", "castle", "tower", "temple", "shrine",
    "tavern", "inn", "market", "bridge", "gate", "ruins", "vale", "valley",
    "landing", "harbor", "port", "keep", "stronghold", "fortress", "camp",
    "barony", "duchy", "county", "province", "region", "swamp", "marsh",
    "desert", "hills", "pass", "crypt", "citadel", "abbey", "manor", "mine",
    "mines", "library", "academy", "district", "quarter",
)

# Places that read naturally as "<indicator> of <Name>".
PLACE_OF_INDICATORS: tuple[str, ...] = (
    "city", "town", "village", "kingdom", "realm", "forest", "mountain",
    "vale", "valley", "barony", "duchy", "county", "province", "region",
    "temple", "tower", "isle", "isles", "halls", "tomb",
)

# Verbs that start a sentence in the log but never name an entity.
ACTION_WORDS: frozenset[str] = frozenset(
    {
        "attack", "cast", "roll", "move", "jump", "run", "walk", "fight",
        "kill", "defeat", "escape", "search", "find", "discover", "explore",
        "enter", "leave", "return", "travel", "arrive", "depart", "meet",
        "speak", "talk", "ask", "answer", "say", "tell", "hear", "see",
        "look", "watch", "wait", "rest", "sleep", "wake", "eat", "drink",
        "buy", "sell", "trade", "give", "take", "steal", "hide", "sneak",
    }
)

# Lower-case words that may not sit inside a multi-word name.
FRAGMENT_WORDS: frozenset[str] = frozenset({"and", "or", "the", "is", "are", "was", "were", "of", "to", "in"})

# Words after which a quest clause is cut.
CLAUSE_BREAK_WORDS: frozenset[str] = frozenset(
    {
        "before", "after", "while", "and", "but", "or", "so", "because", "until",
        "when", "if", "then", "unless", "though", "although", "since", "where",
    }
)

# Words dropped from the end of a quest clause.
CLAUSE_TRAILING_WORDS: frozenset[str] = frozenset(
    {
        "the", "a", "an", "to", "of", "for", "with", "in", "on", "at", "from",
        "by", "his", "her", "their", "its", "our", "my", "your",
    }
)

# Pattern specificity, used to break ties between overlapping matches and
# between kinds competing for the same normalized key.
SPECIFICITY_SENTENCE_START = 0
SPECIFICITY_SINGLE = 1
SPECIFICITY_MULTI = 2
SPECIFICITY_STRONG = 3

NAME = r"[A-Z][a-z]+"
_LANDMARKS = "|".join(word.capitalize() for word in PLACE_INDICATORS)
_LANDMARKS_OF = "|".join(word.capitalize() for word in PLACE_OF_INDICATORS)
_TITLES = "|".join(word.capitalize() for word in PERSON_TITLES)

_CLAUSE_WORD = r"[A-Za-z][A-Za-z'’-]*"


@dataclass(frozen=True)
class PatternFamily:
    """One regex family. `group` selects the span that becomes the mention."""

    name: str
    kind: EntityKind
    pattern: re.Pattern
    confidence: Confidence
    specificity: int
    group: int = 0


def _clause(max_words: int) -> str:
    return rf"({_CLAUSE_WORD}(?:[ \t]+{_CLAUSE_WORD}){{1,{max(max_words - 1, 1)}}})"


def build_pattern_families(max_quest_words: int = 6) -> list[PatternFamily]:
    """Compile the ordered pattern families."""
    clause = _clause(max_quest_words)
    return [
        PatternFamily(
            name="honorific",
            kind=EntityKind.PERSON,
            pattern=re.compile(rf"\b(?:{_TITLES})[ \t]+{NAME}(?:[ \t]+{NAME})?\b"),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
        ),
        PatternFamily(
            name="epithet",
            kind=EntityKind.PERSON,
            pattern=re.compile(rf"\b{NAME}[ \t]+the[ \t]+{NAME}\b"),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
        ),
        PatternFamily(
            name="landmark",
            kind=EntityKind.PLACE,
            pattern=re.compile(
                rf"\b(?:[Tt]he[ \t]+)?((?:{NAME}(?:['’]s)?[ \t]+){{1,3}}(?:{_LANDMARKS}))\b"
            ),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
            group=1,
        ),
        PatternFamily(
            name="landmark_of",
            kind=EntityKind.PLACE,
            pattern=re.compile(rf"\b(?:{_LANDMARKS_OF})[ \t]+of[ \t]+(?:the[ \t]+)?{NAME}(?:[ \t]+{NAME})?\b"),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
        ),
        PatternFamily(
            name="article_place",
            kind=EntityKind.PLACE,
            pattern=re.compile(
                r"\b(?:to|in|at|from|into|near|toward|towards|through|across|reached|"
                r"entered|visited|left|beyond|inside|outside)[ \t]+the[ \t]+"
                rf"({NAME}(?:[ \t]+{NAME}){{0,2}})\b"
            ),
            confidence=Confidence.MEDIUM,
            specificity=SPECIFICITY_MULTI,
            group=1,
        ),
        PatternFamily(
            name="named_quest",
            kind=EntityKind.QUEST,
            pattern=re.compile(
                rf"\b(?:Quest|Mission|Task|Hunt|Search|Journey)[ \t]+(?:for|to|of)[ \t]+"
                rf"(?:the[ \t]+)?{NAME}(?:[ \t]+{NAME})*"
            ),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
        ),
        PatternFamily(
            name="imperative",
            kind=EntityKind.QUEST,
            pattern=re.compile(
                rf"\b(?:Find|Defeat|Retrieve|Rescue|Discover|Destroy|Recover|Protect|Escort|Deliver)"
                rf"[ \t]+the[ \t]+{NAME}(?:[ \t]+{NAME})*"
            ),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
        ),
        PatternFamily(
            name="obligation",
            kind=EntityKind.QUEST,
            pattern=re.compile(
                r"\b(?:must|has to|have to|had to|tasked with|ordered to|sworn to|"
                rf"charged with|vowed to|promised to)[ \t]+{clause}"
            ),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
            group=1,
        ),
        PatternFamily(
            name="asked_to",
            kind=EntityKind.QUEST,
            pattern=re.compile(
                r"\b(?:asked|begged|hired|commissioned|paid|bribed|told)[ \t]+"
                rf"(?:{_CLAUSE_WORD}[ \t]+){{0,3}}?to[ \t]+{clause}"
            ),
            confidence=Confidence.HIGH,
            specificity=SPECIFICITY_STRONG,
            group=1,
        ),
        PatternFamily(
            name="modal",
            kind=EntityKind.QUEST,
            pattern=re.compile(
                r"\b(?:need to|needs to|needed to|should|plan to|plans to|want to|wants to|"
                rf"hope to|hopes to|intend to|intends to|agreed to|decided to)[ \t]+{clause}"
            ),
            confidence=Confidence.MEDIUM,
            specificity=SPECIFICITY_MULTI,
            group=1,
        ),
    ]


def guess_kind(name: str) -> EntityKind:
    """Kind for a bare capitalized run: landmark-suffixed runs are places."""
    parts = name.lower().split()
    if parts and parts[-1] in PLACE_INDICATORS and parts[0] not in PERSON_TITLES:
        return EntityKind.PLACE
    return EntityKind.PERSON
