"""Per-(team, day) record of reviewer decisions.

A session remembers which candidates were dismissed, reclassified or already
turned into records, so re-running detection on the same log doesn't
resurface them. State lives in an injected key-value store under
``suggestions:{team_id}:{YYYY-MM-DD}`` as JSON:

    {"version": 1, "dismissed": [...], "reclassified": [[id, type], ...],
     "created": [...], "timestamp": 1714550400000}

Every mutation rewrites the whole record. Anything unreadable on load
(version mismatch, bad JSON, failed validation, an id both dismissed and
created) resets the session to empty; it is never partially parsed.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Iterable, TypeVar

from pydantic import BaseModel, Field, ValidationError, model_validator

from loresuggest.config import SessionConfig
from loresuggest.errors import PersistenceCorruptError
from loresuggest.logging import setup_logging
from loresuggest.models import CandidateEntity, EntityKind
from loresuggest.storage.interfaces import KeyValueStoreInterface


Clock = Callable[[], datetime]
_C = TypeVar("_C", bound=CandidateEntity)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class StoredSuggestionState(BaseModel):
    """On-disk shape of one session."""

    model_config = {"frozen": True}

    version: int
    dismissed: list[str] = Field(default_factory=list)
    reclassified: list[tuple[str, str]] = Field(default_factory=list)
    created: list[str] = Field(default_factory=list)
    timestamp: int = Field(0, description="Last write, milliseconds since the epoch.")

    @model_validator(mode="after")
    def _dismissed_and_created_disjoint(self) -> "StoredSuggestionState":
        both = set(self.dismissed) & set(self.created)
        if both:
            raise ValueError(f"ids both dismissed and created: {sorted(both)}")
        return self


def session_key(team_id: str, session_date: date, prefix: str = "suggestions") -> str:
    return f"{prefix}:{team_id}:{session_date.isoformat()}"


class SuggestionSessionStore:
    """Decision log for one team on one calendar day.

    Mutated only from the interactive side, so there is no locking; each
    write replaces the stored record in one set() call.

    Example:
        ```python
        store = SuggestionSessionStore(kv, "team-1")
        store.dismiss(candidate.id)
        visible = store.visible(candidates)
        ```
    """

    def __init__(
        self,
        kv: KeyValueStoreInterface,
        team_id: str,
        session_date: date | None = None,
        config: SessionConfig | None = None,
        clock: Clock | None = None,
    ):
        self.logger = setup_logging()
        self.kv = kv
        self.team_id = team_id
        self.config = config or SessionConfig()
        self._clock = clock or _local_now
        self.session_date = session_date or self._clock().date()
        self.key = session_key(team_id, self.session_date, self.config.key_prefix)

        self._dismissed: set[str] = set()
        self._reclassified: dict[str, str] = {}
        self._created: set[str] = set()

        self.sweep_expired()
        self._load()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def is_dismissed(self, candidate_id: str) -> bool:
        return candidate_id in self._dismissed

    def is_created(self, candidate_id: str) -> bool:
        return candidate_id in self._created

    def get_reclassified_type(self, candidate_id: str) -> str | None:
        return self._reclassified.get(candidate_id)

    def is_visible(self, candidate_id: str) -> bool:
        """A candidate is shown unless it was dismissed or already created."""
        return candidate_id not in self._dismissed and candidate_id not in self._created

    def visible(self, candidates: Iterable[_C]) -> list[_C]:
        return [c for c in candidates if self.is_visible(c.id)]

    @property
    def dismissed(self) -> frozenset[str]:
        return frozenset(self._dismissed)

    @property
    def created(self) -> frozenset[str]:
        return frozenset(self._created)

    @property
    def reclassified(self) -> dict[str, str]:
        return dict(self._reclassified)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def dismiss(self, candidate_id: str) -> None:
        if candidate_id in self._created:
            self.logger.debug("Ignoring dismiss of already-created candidate %s", candidate_id)
            return
        self._dismissed.add(candidate_id)
        self._persist()

    def reclassify(self, candidate_id: str, record_type: str | EntityKind) -> None:
        """Override the type a candidate will be created as. Last write wins."""
        value = record_type.value if isinstance(record_type, EntityKind) else record_type
        self._reclassified[candidate_id] = value
        self._persist()

    def mark_created(self, candidate_id: str) -> None:
        self._dismissed.discard(candidate_id)
        self._created.add(candidate_id)
        self._persist()

    def clear(self) -> None:
        """Forget every decision for this session and delete the stored record."""
        self._dismissed.clear()
        self._reclassified.clear()
        self._created.clear()
        try:
            self.kv.delete(self.key)
        except OSError as e:
            self.logger.warning({"message": "Could not delete session state", "key": self.key, "error": str(e)})

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def snapshot(self) -> StoredSuggestionState:
        return StoredSuggestionState(
            version=self.config.schema_version,
            dismissed=sorted(self._dismissed),
            reclassified=list(self._reclassified.items()),
            created=sorted(self._created),
            timestamp=int(self._clock().timestamp() * 1000),
        )

    def _persist(self) -> None:
        state = self.snapshot()
        try:
            self.kv.set(self.key, state.model_dump_json().encode("utf-8"))
        except OSError as e:
            # Keep the in-memory decisions; the next mutation retries the write.
            self.logger.warning({"message": "Could not persist session state", "key": self.key, "error": str(e)})

    def _load(self) -> None:
        raw = self.kv.get(self.key)
        if raw is None:
            return
        try:
            state = self._parse(raw)
        except PersistenceCorruptError as e:
            self.logger.warning({"message": "Resetting unreadable session state", "key": self.key, "error": str(e)})
            return
        self._dismissed = set(state.dismissed)
        self._reclassified = dict(state.reclassified)
        self._created = set(state.created)

    def _parse(self, raw: bytes) -> StoredSuggestionState:
        try:
            state = StoredSuggestionState.model_validate_json(raw)
        except ValidationError as e:
            raise PersistenceCorruptError(f"invalid session state: {e.error_count()} error(s)") from e
        if state.version != self.config.schema_version:
            raise PersistenceCorruptError(
                f"schema version {state.version} != {self.config.schema_version}"
            )
        return state

    def sweep_expired(self) -> list[str]:
        """Delete this team's sessions older than the retention window.

        Keys with an unparseable date are deleted too. Keys whose remainder
        contains ':' belong to a team whose id merely starts with ours and
        are left alone. Returns the deleted keys.
        """
        prefix = f"{self.config.key_prefix}:{self.team_id}:"
        today = self._clock().date()
        removed: list[str] = []
        for key in list(self.kv.keys()):
            if not key.startswith(prefix) or key == self.key:
                continue
            date_part = key[len(prefix) :]
            if ":" in date_part:
                continue
            try:
                age = (today - date.fromisoformat(date_part)).days
            except ValueError:
                age = None
            if age is None or age > self.config.retention_days:
                try:
                    self.kv.delete(key)
                except OSError as e:
                    self.logger.warning({"message": "Could not delete expired session", "key": key, "error": str(e)})
                    continue
                removed.append(key)
        if removed:
            self.logger.info({"message": "Removed expired suggestion sessions", "team_id": self.team_id, "keys": removed})
        return removed
