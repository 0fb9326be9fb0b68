"""带版本的持久化状态基类。

每个 store 对应一个命名空间，加载时若存储版本与当前版本不同，
先调用 migrate() 再恢复状态；之后每次修改都整体写回。
"""

from typing import Any, Dict, Optional

from qimen_core.domain.exceptions import StoreError
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.infrastructure.storage.json_store import MemoryStateStorage, StateStorage


class PersistedStore:
    namespace: str = ""
    version: int = 1

    def __init__(self, storage: Optional[StateStorage] = None):
        self._storage = storage if storage is not None else MemoryStateStorage()
        self._reset()
        self._load()

    def migrate(self, state: Dict[str, Any], from_version: int) -> Dict[str, Any]:
        """把旧版本状态升级到当前版本，默认原样返回。"""
        return state

    def to_state(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _rehydrate(self, state: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _load(self) -> None:
        try:
            blob = self._storage.read(self.namespace)
        except StoreError as e:
            logger.warning(
                "Unreadable state blob, starting from defaults",
                extra={"extra": {"namespace": self.namespace, "error": e.message}},
            )
            return
        if not blob:
            return

        state = blob.get("state")
        if not isinstance(state, dict):
            logger.warning("State blob has no state object", extra={"extra": {"namespace": self.namespace}})
            return
        stored_version = blob.get("version", 0)
        if not isinstance(stored_version, int):
            stored_version = 0
        try:
            if stored_version != self.version:
                logger.info(
                    "Migrating persisted state",
                    extra={"extra": {"namespace": self.namespace, "from": stored_version, "to": self.version}},
                )
                state = self.migrate(state, stored_version)
            self._rehydrate(state)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Failed to restore persisted state, starting from defaults",
                extra={"extra": {"namespace": self.namespace, "error": str(e)}},
            )
            self._reset()

    def _reset(self) -> None:
        """设置默认状态；初始化和恢复失败时调用。"""
        raise NotImplementedError

    def _persist(self) -> None:
        self._storage.write(self.namespace, self.to_state(), self.version)
