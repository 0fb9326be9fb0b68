"""Qimen Core 顶层包。

该包提供奇门遁甲排盘助手的核心实现，
包括配置加载、领域模型、上游客户端、排盘结果归一化、
本地状态存储、AI 对话服务以及持有上游密钥的 HTTP 代理。
"""

from qimen_core.api.service import build_session
from qimen_core.services.session import QimenSession

__all__ = ["QimenSession", "build_session"]
