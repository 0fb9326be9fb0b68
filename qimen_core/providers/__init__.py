"""上游服务集成层。

该包下的模块负责：
- 定义对话客户端抽象接口与取消句柄 (base)。
- 维护对话模型与固定采样参数 (registry)。
- 提供对话代理客户端 (chat_client) 与排盘 API 客户端 (qimen_client)。
"""

from qimen_core.config.settings import settings
from qimen_core.providers.base import ProviderClient, StreamHandle
from qimen_core.providers.chat_client import ChatProxyClient
from qimen_core.providers.qimen_client import QimenApiClient


def create_provider(cfg=None) -> ProviderClient:
    """创建对话客户端，默认使用全局配置。"""

    return ChatProxyClient(cfg or settings)


def create_qimen_client(cfg=None) -> QimenApiClient:
    return QimenApiClient(cfg or settings)


__all__ = [
    "ChatProxyClient",
    "ProviderClient",
    "QimenApiClient",
    "StreamHandle",
    "create_provider",
    "create_qimen_client",
]
