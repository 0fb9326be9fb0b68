"""AI 对话服务。

负责把会话历史与排盘报告组装成 OpenAI 兼容的消息列表，
通过 ProviderClient 发送，并把失败转换为可见的回复文本。
"""

from typing import Callable, Dict, Iterable, List, Optional

from qimen_core.config.settings import settings
from qimen_core.domain.conversation import ChatMessage
from qimen_core.domain.exceptions import BusinessError
from qimen_core.domain.models import ChatRequest, LLMMessage
from qimen_core.domain.qimen import QimenReport
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.prompts import load_system_prompt
from qimen_core.providers.base import ProviderClient, StreamHandle
from qimen_core.qimen.normalizer import MAJOR_RULE, MINOR_RULE

EMPTY_REPLY = "抱歉，我无法生成回复。"


def request_failed_text(reason: str) -> str:
    return f"请求失败：{reason}。请检查后端服务配置。"


def format_report_context(report: QimenReport) -> str:
    """把排盘报告整理成附加在系统提示词后的上下文文本。"""

    result = report.result
    info = result.basic_info
    if result.detailed_info.startswith(f"{MAJOR_RULE} 基础信息"):
        lines = [result.detailed_info]
    else:
        lines = [
            f"{MAJOR_RULE} 基础信息 {MAJOR_RULE}",
            f"公历时间：{info.gongli}",
            f"农历时间：{info.nongli}",
            "",
            f"{MINOR_RULE} 四柱信息 {MINOR_RULE}",
            f"四柱：{info.sizhu}",
            "",
            f"{MINOR_RULE} 奇门遁甲信息 {MINOR_RULE}",
            f"值符：{info.zhifu}",
            f"值使：{info.zhishi}",
            f"遁局：{info.dunju}",
        ]
        if result.detailed_info:
            lines += ["", result.detailed_info]

    lines += ["", f"{MAJOR_RULE} 问卜信息 {MAJOR_RULE}", f"问题类型：{report.input.question_type}"]
    if report.input.question:
        lines.append(f"具体问题：{report.input.question}")

    if result.analysis:
        lines += ["", f"{MAJOR_RULE} 排盘分析 {MAJOR_RULE}", result.analysis]

    if result.suggestions:
        lines += ["", f"{MAJOR_RULE} 初步建议 {MAJOR_RULE}"]
        lines += [f"{i}. {s}" for i, s in enumerate(result.suggestions, start=1)]

    return "\n".join(lines)


class AIService:
    def __init__(self, provider: ProviderClient, cfg=settings, system_prompt: Optional[str] = None):
        self._provider = provider
        self._settings = cfg
        self.system_prompt = system_prompt if system_prompt is not None else load_system_prompt()

    @property
    def model(self) -> str:
        return self._settings.default_model

    def build_messages(
        self,
        history: Iterable[ChatMessage],
        text: str,
        report: Optional[QimenReport] = None,
    ) -> List[LLMMessage]:
        """系统提示词（附报告上下文）+ 最近的历史消息 + 本轮用户消息。

        报告卡片消息不进入历史，报告内容已在系统提示词中。
        """
        system_content = self.system_prompt
        if report is not None:
            system_content += "\n\n" + format_report_context(report)

        messages = [LLMMessage(role="system", content=system_content)]
        recent = list(history)[-self._settings.max_history_messages :]
        for m in recent:
            if m.role == "system" or m.kind == "report":
                continue
            messages.append(LLMMessage(role=m.role, content=m.content))
        messages.append(LLMMessage(role="user", content=text))
        return messages

    def send_message(
        self,
        text: str,
        history: Iterable[ChatMessage] = (),
        report: Optional[QimenReport] = None,
    ) -> ChatMessage:
        """非流式发送；失败时返回内容为错误说明的助手消息。"""
        req = ChatRequest(model=self.model, messages=self.build_messages(history, text, report))
        try:
            result = self._provider.chat(req)
            content = result.text or EMPTY_REPLY
        except BusinessError as e:
            logger.error(
                "AI service error",
                extra={"extra": {"provider": self._provider.name, "code": e.code, "error": e.message}},
            )
            content = request_failed_text(e.message)
        return ChatMessage(role="assistant", content=content)

    def stream_message(
        self,
        text: str,
        history: Iterable[ChatMessage] = (),
        report: Optional[QimenReport] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[BusinessError], None]] = None,
        handle: Optional[StreamHandle] = None,
    ) -> str:
        """流式发送，每个非空增量回调一次 on_chunk，返回完整文本。

        出错时停止读取并回调 on_error；未提供 on_error 则继续上抛。
        """
        req = ChatRequest(model=self.model, messages=self.build_messages(history, text, report), stream=True)
        parts: List[str] = []
        try:
            for chunk in self._provider.chat_stream(req, handle=handle):
                delta = chunk.text
                if not delta:
                    continue
                parts.append(delta)
                if on_chunk is not None:
                    on_chunk(delta)
        except BusinessError as e:
            logger.error(
                "AI stream error",
                extra={"extra": {"provider": self._provider.name, "code": e.code, "error": e.message}},
            )
            if on_error is None:
                raise
            on_error(e)
        return "".join(parts)

    def api_status(self) -> Dict[str, object]:
        endpoint = getattr(self._provider, "endpoint", self._provider.name)
        return {"configured": bool(endpoint), "model": self.model, "endpoint": endpoint}
