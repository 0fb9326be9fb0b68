"""对话 API 的请求与结果数据模型。

本模块定义了客户端与 OpenAI 兼容对话接口之间共享的标准数据结构：

- LLMMessage: 一条发给模型的消息（system/user/assistant）。
- ChatRequest: 发给对话代理的完整请求。
- ChatResult / ChatStreamChunk: 解析后的非流式结果与流式增量。

ChatProxyClient 只依赖这些模型，并负责在代理 JSON / SSE 帧与这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Dict, Any, List


# 消息角色（与 OpenAI 兼容接口的 role 字段对应）
Role = Literal["system", "user", "assistant"]


@dataclass
class LLMMessage:
    """一条对话消息，既可用于请求，也可用于响应增量。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """一次完整的对话请求。

    采样参数（temperature/max_tokens/top_p）由服务端代理统一注入，
    客户端只决定模型名与是否流式。
    """

    model: str
    messages: List[LLMMessage]
    stream: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_payload() for m in self.messages],
            "stream": self.stream,
        }


@dataclass
class ChatUsage:
    """上游返回的 token 统计信息。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（通常只用 index=0 的一条）。"""

    index: int
    message: LLMMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次非流式对话调用的结果。

    - choices: 一个或多个候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def text(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.content


@dataclass
class ChatStreamChoice:
    """流式返回中的单个候选增量。"""

    index: int
    delta: LLMMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatStreamChunk:
    """流式对话的一帧增量，对应一条 `data: {...}` SSE 帧。"""

    model: str
    choices: List[ChatStreamChoice]
    usage: Optional[ChatUsage] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].delta.content
