import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from uuid import uuid4

from qimen_core.config.settings import settings
from qimen_core.domain.exceptions import StoreError


class StateStorage(Protocol):
    """按命名空间保存状态快照的键值存储。

    每个命名空间一份 blob：{"state": {...}, "version": n}。
    """

    def read(self, namespace: str) -> Optional[Dict[str, Any]]:
        ...

    def write(self, namespace: str, state: Dict[str, Any], version: int) -> None:
        ...

    def remove(self, namespace: str) -> None:
        ...


class JsonStateStorage:
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._state_root = self._root / "state"
        self._state_root.mkdir(parents=True, exist_ok=True)

    def read(self, namespace: str) -> Optional[Dict[str, Any]]:
        path = self._path(namespace)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e), namespace=namespace)
        if not isinstance(data, dict):
            raise StoreError(code="STORE_READ_ERROR", message="state blob is not an object", namespace=namespace)
        return data

    def write(self, namespace: str, state: Dict[str, Any], version: int) -> None:
        path = self._path(namespace)
        tmp_path = self._state_root / f"{namespace}.{uuid4().hex}.json.tmp"
        blob = {"state": state, "version": version}
        try:
            tmp_path.write_text(json.dumps(blob, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e), namespace=namespace)

    def remove(self, namespace: str) -> None:
        path = self._path(namespace)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(code="STORE_DELETE_ERROR", message=str(e), namespace=namespace)

    def _path(self, namespace: str) -> Path:
        return self._state_root / f"{namespace}.json"


class MemoryStateStorage:
    """进程内存储，用于不需要落盘的会话。"""

    def __init__(self):
        self._blobs: Dict[str, str] = {}

    def read(self, namespace: str) -> Optional[Dict[str, Any]]:
        raw = self._blobs.get(namespace)
        return json.loads(raw) if raw is not None else None

    def write(self, namespace: str, state: Dict[str, Any], version: int) -> None:
        self._blobs[namespace] = json.dumps({"state": state, "version": version}, ensure_ascii=False)

    def remove(self, namespace: str) -> None:
        self._blobs.pop(namespace, None)
