"""对话代理客户端。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为对话代理（POST /api/ai/chat）的 JSON 请求。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 将响应 JSON 或 SSE 帧解析为统一的 ChatResult / ChatStreamChunk。

代理只做字节级透传，所以这里解析的就是 OpenAI 兼容接口的原始格式：
非流式读 choices[0].message.content，流式读每帧的 choices[0].delta.content。
"""

import httpx
import json
from typing import Any, Dict, Iterable, Optional

from qimen_core.config.settings import settings
from qimen_core.domain.models import (
    ChatRequest,
    ChatResult,
    LLMMessage,
    ChatChoice,
    ChatUsage,
    ChatStreamChunk,
    ChatStreamChoice,
)
from qimen_core.domain.exceptions import NetworkError, ApiError, RateLimitError
from qimen_core.providers.base import StreamHandle

CHAT_ENDPOINT = "/api/ai/chat"


class ChatProxyClient:
    """对话代理客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - chat / chat_stream: 对外统一调用入口。
    """

    name = "chat-proxy"

    def __init__(self, cfg=settings):
        # cfg 里包含 proxy_base_url、超时等配置
        self._settings = cfg

    @property
    def endpoint(self) -> str:
        return f"{self._settings.proxy_base_url.rstrip('/')}{CHAT_ENDPOINT}"

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。"""

        payload = req.to_payload()
        payload["stream"] = False
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    self.endpoint,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        self._raise_for_status(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="INVALID_JSON", message=str(e), http_status=resp.status_code)
        return self._parse_response(data, req)

    def chat_stream(self, req: ChatRequest, handle: Optional[StreamHandle] = None) -> Iterable[ChatStreamChunk]:
        """执行一次流式对话调用，逐步 yield ChatStreamChunk。

        handle 被取消后不再读取后续帧，退出 with 块时关闭上游连接。
        """

        payload = req.to_payload()
        payload["stream"] = True
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    self.endpoint,
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "Accept": "text/event-stream",
                    },
                ) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                        self._raise_for_status(resp.status_code, resp.text)
                    for line in resp.iter_lines():
                        if handle is not None and handle.cancelled:
                            return
                        data_str = parse_sse_line(line)
                        if data_str is None:
                            continue
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        yield self._parse_stream_chunk(payload_chunk, req)
        except (httpx.RequestError, httpx.StreamError) as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    @staticmethod
    def _raise_for_status(status_code: int, body: str) -> None:
        if status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=body or "rate limited", http_status=429)
        if status_code >= 400:
            # 代理返回 {"error": "..."}，优先取出其中的可读信息
            message = body
            try:
                data = json.loads(body)
                if isinstance(data, dict) and data.get("error"):
                    message = str(data["error"])
            except ValueError:
                pass
            raise ApiError(code="API_ERROR", message=message, http_status=status_code)

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        """将非流式响应 JSON 解析为统一的 ChatResult。"""

        choices: list[ChatChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            msg = ch.get("message") or {}
            choices.append(
                ChatChoice(index=i, message=self._build_message(msg), finish_reason=ch.get("finish_reason"))
            )
        return ChatResult(model=data.get("model") or req.model, choices=choices, usage=_usage(data), raw=data)

    def _parse_stream_chunk(self, data: dict, req: ChatRequest) -> ChatStreamChunk:
        """解析流式响应中的单条增量。"""

        choices: list[ChatStreamChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            delta_payload = ch.get("delta") or {}
            choices.append(
                ChatStreamChoice(
                    index=ch.get("index", i),
                    delta=self._build_message(delta_payload),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return ChatStreamChunk(model=data.get("model") or req.model, choices=choices, usage=_usage(data), raw=data)

    @staticmethod
    def _build_message(payload: Dict[str, Any]) -> LLMMessage:
        return LLMMessage(role=payload.get("role") or "assistant", content=payload.get("content") or "")


def parse_sse_line(line: str) -> Optional[str]:
    """取出一行 SSE 的 data 内容；空行、注释行和 [DONE] 返回 None。"""

    if not line:
        return None
    data_str = line
    if data_str.startswith(":"):
        return None
    if data_str.startswith("data:"):
        data_str = data_str[5:].strip()
    else:
        data_str = data_str.strip()
    if not data_str or data_str == "[DONE]":
        return None
    return data_str


def _usage(data: dict) -> Optional[ChatUsage]:
    usage_raw = data.get("usage") or {}
    if not usage_raw:
        return None
    return ChatUsage(
        prompt_tokens=usage_raw.get("prompt_tokens", 0),
        completion_tokens=usage_raw.get("completion_tokens", 0),
        total_tokens=usage_raw.get("total_tokens", 0),
    )
