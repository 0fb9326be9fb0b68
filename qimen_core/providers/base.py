"""Provider 抽象接口。

上层 AIService 不直接依赖 HTTP 细节，而是依赖此协议：

- ChatProxyClient 通过本项目的对话代理访问 OpenAI 兼容接口。
- 测试中可以替换为任意实现了 chat/chat_stream 的假客户端。
"""

import threading
from typing import Protocol, Iterable, Optional
from qimen_core.domain.models import ChatRequest, ChatResult, ChatStreamChunk


class StreamHandle:
    """流式读取的取消句柄。

    调用方在页面离开、请求结束等时机调用 cancel()，读取循环会在
    下一帧到达前退出并关闭上游连接。
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ProviderClient(Protocol):
    """对话客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - chat(req): 执行一次非流式对话调用，返回统一的 ChatResult。
    - chat_stream(req, handle): 执行流式调用，逐帧产出增量。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...

    def chat_stream(self, req: ChatRequest, handle: Optional[StreamHandle] = None) -> Iterable[ChatStreamChunk]:
        """执行一次流式对话调用，逐步产出增量；handle 被取消时提前结束。"""

        ...
