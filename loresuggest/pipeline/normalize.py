"""Normalization and identity helpers."""

import hashlib
import re

from loresuggest.models import EntityKind

_WHITESPACE = re.compile(r"\s+")
_POSSESSIVE = re.compile(r"['’]s$")
_PLURAL_POSSESSIVE = re.compile(r"s['’]$")


def normalize_key(text: str) -> str:
    """Lower-case, collapse whitespace and strip a trailing possessive.

    >>> normalize_key("  Lord   Blackwood's ")
    'lord blackwood'
    """
    key = _WHITESPACE.sub(" ", text).strip().lower()
    key = _POSSESSIVE.sub("", key)
    return _PLURAL_POSSESSIVE.sub("s", key)


def candidate_id(kind: EntityKind, normalized_key: str) -> str:
    """Stable id for a candidate, so re-detection of the same text reuses it."""
    digest = hashlib.sha1(f"{kind.value}:{normalized_key}".encode("utf-8")).hexdigest()
    return f"ent-{digest[:16]}"


def words(normalized: str) -> list[str]:
    return normalized.split(" ") if normalized else []
