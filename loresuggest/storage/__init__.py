"""Collaborator interfaces and local implementations."""

from loresuggest.storage.file import FileKeyValueStore
from loresuggest.storage.interfaces import KeyValueStoreInterface, RecordStoreInterface
from loresuggest.storage.memory import InMemoryKeyValueStore, InMemoryRecordStore

__all__ = [
    "KeyValueStoreInterface",
    "RecordStoreInterface",
    "InMemoryKeyValueStore",
    "InMemoryRecordStore",
    "FileKeyValueStore",
]
