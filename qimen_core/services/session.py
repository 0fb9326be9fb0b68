"""会话协调服务。

QimenSession 持有全部 store 与 AI 服务，负责跨 store 的同步：

- 有当前会话时，会话内的消息是唯一权威来源，全局消息列表保持为空；
- 没有当前会话时，消息写入全局消息列表（ChatStore）；
- 切换当前会话时，把该会话的报告推送给排盘 store。
"""

from typing import Callable, List, Optional

from qimen_core.domain.conversation import DEFAULT_CONVERSATION_TITLE, ChatMessage, Conversation
from qimen_core.domain.exceptions import BusinessError, ValidationError
from qimen_core.domain.models import Role
from qimen_core.domain.qimen import QimenInput
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.providers.base import StreamHandle
from qimen_core.services.ai_service import AIService
from qimen_core.stores import ChatStore, ConversationStore, QimenStore, ThemeStore, UserStore

STREAM_ERROR_MARKER = "[错误]"


class QimenSession:
    def __init__(
        self,
        conversations: ConversationStore,
        chat: ChatStore,
        charts: QimenStore,
        users: UserStore,
        theme: ThemeStore,
        ai: AIService,
    ):
        self.conversations = conversations
        self.chat = chat
        self.charts = charts
        self.users = users
        self.theme = theme
        self.ai = ai

    @property
    def current_conversation(self) -> Optional[Conversation]:
        return self.conversations.get_current()

    # ---- 会话切换 ----

    def select_conversation(self, conversation_id: str) -> bool:
        if not self.conversations.set_current(conversation_id):
            return False
        self._activate(self.conversations.get(conversation_id))
        return True

    def new_conversation(self, title: str = DEFAULT_CONVERSATION_TITLE) -> Conversation:
        conv = self.conversations.create_conversation(title=title)
        self._activate(conv)
        return conv

    def delete_conversation(self, conversation_id: str) -> None:
        self.conversations.delete_conversation(conversation_id)
        current = self.current_conversation
        if current is not None:
            self._activate(current)
        else:
            self.charts.set_current_report(None)

    def active_messages(self) -> List[ChatMessage]:
        conv = self.current_conversation
        if conv is not None:
            return list(conv.messages)
        return list(self.chat.messages)

    def _activate(self, conv: Conversation) -> None:
        self.charts.set_current_report(conv.report)
        self.chat.clear()

    # ---- 排盘 ----

    def generate_chart(self, qimen_input: QimenInput) -> Optional[Conversation]:
        """排盘并以报告开启一个新会话；排盘失败时返回 None，原因见 charts.error。"""
        report = self.charts.generate_report(qimen_input)
        if report is None:
            return None
        conv = self.conversations.create_conversation(report=report)
        self._activate(conv)
        logger.info("Chart conversation created", extra={"extra": {"conversation_id": conv.id, "report_id": report.id}})
        return conv

    # ---- 对话 ----

    def send_message(self, text: str) -> ChatMessage:
        text = self._clean(text)
        conv = self.current_conversation
        conv_id = conv.id if conv else None
        history = self.active_messages()
        report = conv.report if conv else self.charts.current_report

        self._record(conv_id, "user", text)
        reply = self.ai.send_message(text, history, report)
        message = self._record(conv_id, "assistant", reply.content)
        self._maybe_title(conv)
        return message

    def stream_message(
        self,
        text: str,
        on_chunk: Optional[Callable[[str], None]] = None,
        handle: Optional[StreamHandle] = None,
    ) -> str:
        """流式对话：先插入空的助手消息，再逐块追加内容，返回最终内容。

        流中断时不回滚，而是在消息末尾追加错误标记。
        """
        text = self._clean(text)
        conv = self.current_conversation
        conv_id = conv.id if conv else None
        history = self.active_messages()
        report = conv.report if conv else self.charts.current_report

        self._record(conv_id, "user", text)
        assistant = self._record(conv_id, "assistant", "")

        def grow(delta: str) -> None:
            self._append(conv_id, assistant.id, delta)
            if on_chunk is not None:
                on_chunk(delta)

        def fail(error: BusinessError) -> None:
            separator = "\n" if assistant.content else ""
            self._append(conv_id, assistant.id, f"{separator}{STREAM_ERROR_MARKER} {error.message}")

        self.ai.stream_message(text, history, report, on_chunk=grow, on_error=fail, handle=handle)
        self._maybe_title(conv)
        return assistant.content

    @staticmethod
    def _clean(text: str) -> str:
        text = (text or "").strip()
        if not text:
            raise ValidationError(code="EMPTY_MESSAGE", message="消息内容不能为空")
        return text

    def _record(self, conv_id: Optional[str], role: Role, content: str) -> ChatMessage:
        if conv_id is None:
            return self.chat.add_message(role, content)
        message = ChatMessage(role=role, content=content)
        self.conversations.add_message(conv_id, message)
        return message

    def _append(self, conv_id: Optional[str], message_id: str, delta: str) -> None:
        if conv_id is None:
            self.chat.update_message(message_id, delta)
        else:
            self.conversations.append_to_message(conv_id, message_id, delta)

    def _maybe_title(self, conv: Optional[Conversation]) -> None:
        if conv is not None and conv.title == DEFAULT_CONVERSATION_TITLE:
            self.conversations.generate_title(conv.id)
