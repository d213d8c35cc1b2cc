"""Collaborator interfaces: the key-value surface and the record store."""

from abc import ABC, abstractmethod
from typing import Iterator, Sequence

from loresuggest.models import Backlink, NewRecord, RecordSummary


class KeyValueStoreInterface(ABC):
    """Byte-valued key-value surface the session store persists to.

    Implementations must make set() atomic per key: a reader sees either the
    previous value or the new one, never a partial write.
    """

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""

    @abstractmethod
    def keys(self) -> Iterator[str]:
        """Iterate over all stored keys."""


class RecordStoreInterface(ABC):
    """The application's note/record store, as seen by the review workflow."""

    @abstractmethod
    async def list_records(self, team_id: str) -> Sequence[RecordSummary]:
        """Return summaries of every record the team can link to."""

    @abstractmethod
    async def create_record(self, team_id: str, record: NewRecord) -> RecordSummary:
        """Create a record and return its summary (with the new id)."""

    @abstractmethod
    async def create_backlink(self, team_id: str, backlink: Backlink) -> None:
        """Record that source_id mentions target_id."""
