"""对话模型配置。

本模块将“逻辑模型名”与“厂商模型名”及其固定采样参数集中在一起：

- 逻辑名（logical_name）：代码里使用的统一名称，例如 "qimen-chat"。
- provider_model：OpenAI 兼容接口实际使用的模型 ID，例如 "deepseek-chat"。

代理路由转发请求时从这里取采样参数，客户端无法覆盖。"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float
    top_p: float


QIMEN_CHAT_MODEL = ModelConfig(
    logical_name="qimen-chat",
    provider_model="deepseek-chat",
    max_tokens=8000,
    default_temperature=0.7,
    top_p=0.9,
)


def build_completion_payload(messages: list, model: Optional[str], stream: bool) -> dict:
    """组装转发给上游的 chat/completions 请求体，采样参数固定。"""

    cfg = QIMEN_CHAT_MODEL
    return {
        "model": model or cfg.provider_model,
        "messages": messages,
        "temperature": cfg.default_temperature,
        "max_tokens": cfg.max_tokens,
        "top_p": cfg.top_p,
        "stream": stream,
    }
