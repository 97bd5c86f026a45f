"""PersistenceLayer 的两种实现。

- FileKeyValueStore: 每个 key 一个文件，写入时先写临时文件再 os.replace。
- MemoryKeyValueStore: 纯内存实现，用于测试或无需落盘的场景。
"""

import os
import re
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import StoreError, ValidationError

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_key(key: str) -> str:
    if not key or not _KEY_RE.match(key) or key in {".", ".."}:
        raise ValidationError(code="INVALID_STORE_KEY", message=f"invalid storage key: {key!r}")
    return key


class FileKeyValueStore:
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def load(self, key: str) -> Optional[bytes]:
        path = self._root / f"{_check_key(key)}.blob"
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e), key=key)

    def save(self, key: str, data: bytes) -> None:
        path = self._root / f"{_check_key(key)}.blob"
        tmp_path = self._root / f"{key}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e), key=key)


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})

    def load(self, key: str) -> Optional[bytes]:
        return self._data.get(_check_key(key))

    def save(self, key: str, data: bytes) -> None:
        self._data[_check_key(key)] = bytes(data)
