"""全局消息列表（无当前会话时使用），只保存在内存中。"""

from typing import List, Optional

from qimen_core.domain.conversation import ChatMessage, MessageKind
from qimen_core.domain.models import Role


class ChatStore:
    def __init__(self):
        self.messages: List[ChatMessage] = []

    def add_message(
        self, role: Role, content: str, kind: MessageKind = "text", report_id: Optional[str] = None
    ) -> ChatMessage:
        message = ChatMessage(role=role, content=content, kind=kind, report_id=report_id)
        self.messages.append(message)
        return message

    def update_message(self, message_id: str, text: str) -> bool:
        """把 text 追加到消息末尾。"""
        for message in self.messages:
            if message.id == message_id:
                message.content += text
                return True
        return False

    def clear(self) -> None:
        self.messages = []
