"""对外 API 服务模块。

build_session() 是客户端侧的组装入口：创建存储、各个 store、
排盘流程与 AI 服务，并交给 QimenSession 统一持有。
"""

from typing import Optional

from qimen_core.config.settings import settings
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.infrastructure.storage.json_store import JsonStateStorage, StateStorage
from qimen_core.providers import create_provider, create_qimen_client
from qimen_core.qimen.calculator import QimenCalculator
from qimen_core.services.ai_service import AIService
from qimen_core.services.session import QimenSession
from qimen_core.stores import ChatStore, ConversationStore, QimenStore, ThemeStore, UserStore


def build_session(cfg=settings, storage: Optional[StateStorage] = None) -> QimenSession:
    """按配置组装一个 QimenSession。

    Args:
        cfg: 配置对象，默认使用全局 settings
        storage: 状态存储（可选，不提供则写入 cfg.storage_root 下的 JSON 文件）
    """
    storage = storage if storage is not None else JsonStateStorage(root=cfg.storage_root)
    calculator = QimenCalculator(create_qimen_client(cfg))
    session = QimenSession(
        conversations=ConversationStore(storage),
        chat=ChatStore(),
        charts=QimenStore(calculator, storage, history_limit=cfg.report_history_limit),
        users=UserStore(calculator, storage),
        theme=ThemeStore(storage),
        ai=AIService(create_provider(cfg), cfg),
    )
    logger.info(
        "Session ready",
        extra={"extra": {"conversations": len(session.conversations.conversations), "reports": len(session.charts.reports)}},
    )
    return session
