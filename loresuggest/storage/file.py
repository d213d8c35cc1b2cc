"""Directory-backed key-value store.

One file per key. Keys are percent-encoded into file names since session keys
contain ':'. Writes go to a temp file which is then renamed over the target,
so a reader never sees a half-written value.
"""

import os
import tempfile
from pathlib import Path
from typing import Iterator
from urllib.parse import quote, unquote

from loresuggest.storage.interfaces import KeyValueStoreInterface

_SUFFIX = ".json"


class FileKeyValueStore(KeyValueStoreInterface):
    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / (quote(key, safe="") + _SUFFIX)

    def get(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes) -> None:
        fd, temp_name = tempfile.mkstemp(dir=self.root, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(temp_name, self._path(key))
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> Iterator[str]:
        names = sorted(p.name for p in self.root.iterdir() if p.name.endswith(_SUFFIX))
        return iter([unquote(name[: -len(_SUFFIX)]) for name in names])
