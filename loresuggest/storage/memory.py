"""In-memory collaborator implementations for tests and local runs.

Nothing here persists across processes. Not thread-safe; the session store
only touches its key-value store from the event loop thread.
"""

import itertools
from typing import Iterator, Sequence

from loresuggest.models import Backlink, NewRecord, RecordSummary
from loresuggest.storage.interfaces import KeyValueStoreInterface, RecordStoreInterface


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Dictionary-backed key-value store.

    Example:
        ```python
        kv = InMemoryKeyValueStore()
        kv.set("suggestions:team-1:2024-05-01", b"{}")
        ```
    """

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        # Snapshot so callers may delete while iterating.
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class InMemoryRecordStore(RecordStoreInterface):
    """Record store keeping records and backlinks per team in dictionaries.

    Ids are assigned sequentially ("rec-1", "rec-2", ...) across teams.
    """

    def __init__(self) -> None:
        self._records: dict[str, list[RecordSummary]] = {}
        self._links: dict[str, tuple[str, ...]] = {}
        self._backlinks: dict[str, list[Backlink]] = {}
        self._ids = itertools.count(1)

    def add(self, team_id: str, title: str, record_type: str = "") -> RecordSummary:
        """Seed an existing record."""
        record = RecordSummary(id=f"rec-{next(self._ids)}", title=title, record_type=record_type)
        self._records.setdefault(team_id, []).append(record)
        return record

    async def list_records(self, team_id: str) -> Sequence[RecordSummary]:
        return list(self._records.get(team_id, []))

    async def create_record(self, team_id: str, record: NewRecord) -> RecordSummary:
        created = self.add(team_id, record.title, record.record_type)
        self._links[created.id] = record.linked_record_ids
        return created

    async def create_backlink(self, team_id: str, backlink: Backlink) -> None:
        self._backlinks.setdefault(team_id, []).append(backlink)

    def linked_record_ids(self, record_id: str) -> tuple[str, ...]:
        return self._links.get(record_id, ())

    def backlinks(self, team_id: str) -> list[Backlink]:
        return list(self._backlinks.get(team_id, []))
