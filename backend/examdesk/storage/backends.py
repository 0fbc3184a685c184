"""Raw string key-value backends behind :class:`~examdesk.storage.store.Store`."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol
from urllib.parse import quote, unquote


class KeyValueBackend(Protocol):
    kind: str

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, raw: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


class MemoryBackend:
    kind = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, raw: str) -> None:
        self._data[key] = raw

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))


class JsonFileBackend:
    """One ``<key>.json`` file per key.

    Keys are percent-encoded so inbox keys containing ``@`` or ``/`` map to
    safe file names. Each write goes to a temp file in the same directory and
    is renamed into place.
    """

    kind = "file"
    suffix = ".json"

    def __init__(self, directory: str | os.PathLike) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.suffix}"

    def get(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, raw: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(raw)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> Iterator[str]:
        for path in sorted(self.directory.glob(f"*{self.suffix}")):
            yield unquote(path.name[: -len(self.suffix)])


def backend_from_settings(app_settings) -> KeyValueBackend:
    if app_settings.STORAGE_BACKEND == "file":
        return JsonFileBackend(app_settings.DATA_DIR)
    return MemoryBackend()
