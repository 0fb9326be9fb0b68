"""会话状态。

只持久化会话列表；当前会话 id 属于运行期状态，每次加载后都为空。
updated_at 在每次修改时刷新且单调不减。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from qimen_core.domain.conversation import DEFAULT_CONVERSATION_TITLE, ChatMessage, Conversation
from qimen_core.domain.qimen import QimenReport
from qimen_core.domain.timeutil import bump, utcnow
from qimen_core.stores.base import PersistedStore

TITLE_MAX_CHARS = 20

_UPDATABLE_FIELDS = ("title", "report", "messages")


class ConversationStore(PersistedStore):
    namespace = "conversation-storage"
    version = 1

    def _reset(self) -> None:
        self.conversations: List[Conversation] = []
        self.current_id: Optional[str] = None

    def migrate(self, state: Dict[str, Any], from_version: int) -> Dict[str, Any]:
        if from_version == 0:
            state = {k: v for k, v in state.items() if k not in ("currentConversationId", "current_id")}
        return state

    def to_state(self) -> Dict[str, Any]:
        return {"conversations": [c.to_dict() for c in self.conversations]}

    def _rehydrate(self, state: Dict[str, Any]) -> None:
        self.conversations = [Conversation.from_dict(c) for c in state.get("conversations") or []]
        self.current_id = None

    # ---- 查询 ----

    def get(self, conversation_id: str) -> Optional[Conversation]:
        for conv in self.conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def get_current(self) -> Optional[Conversation]:
        if self.current_id is None:
            return None
        return self.get(self.current_id)

    def list_conversations(self) -> List[Conversation]:
        """按 updated_at 倒序返回，不改变内部顺序。"""
        return sorted(self.conversations, key=lambda c: c.updated_at, reverse=True)

    # ---- 修改 ----

    def create_conversation(
        self, title: str = DEFAULT_CONVERSATION_TITLE, report: Optional[QimenReport] = None
    ) -> Conversation:
        """新建会话并设为当前会话；带报告时标题取自报告。"""
        now = utcnow()
        conv = Conversation(
            id=f"c-{uuid4().hex}",
            title=report.title if report is not None else title,
            created_at=now,
            updated_at=now,
            report=report,
        )
        self.conversations.insert(0, conv)
        self.current_id = conv.id
        self._persist()
        return conv

    def delete_conversation(self, conversation_id: str) -> None:
        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        if self.current_id == conversation_id:
            self.current_id = self.conversations[0].id if self.conversations else None
        self._persist()

    def update_conversation(self, conversation_id: str, **changes: Any) -> Optional[Conversation]:
        conv = self.get(conversation_id)
        if conv is None:
            return None
        for key, value in changes.items():
            if key not in _UPDATABLE_FIELDS:
                raise ValueError(f"Unknown conversation field: {key}")
            setattr(conv, key, value)
        self._touch(conv)
        return conv

    def rename_conversation(self, conversation_id: str, title: str) -> Optional[Conversation]:
        return self.update_conversation(conversation_id, title=title)

    def set_current(self, conversation_id: Optional[str]) -> bool:
        """只切换本 store 的当前会话；跨 store 的同步由 QimenSession 负责。"""
        if conversation_id is None:
            self.current_id = None
            return True
        if self.get(conversation_id) is None:
            return False
        self.current_id = conversation_id
        return True

    def add_message(self, conversation_id: str, message: ChatMessage) -> bool:
        conv = self.get(conversation_id)
        if conv is None:
            return False
        if conv.find_message(message.id) is not None:
            raise ValueError(f"Duplicate message id: {message.id}")
        conv.messages.append(message)
        self._touch(conv)
        return True

    def append_to_message(self, conversation_id: str, message_id: str, text: str) -> bool:
        """把 text 追加到已有消息末尾，用于流式输出。"""
        conv = self.get(conversation_id)
        if conv is None:
            return False
        message = conv.find_message(message_id)
        if message is None:
            return False
        message.content += text
        self._touch(conv)
        return True

    def generate_title(self, conversation_id: str) -> Optional[str]:
        """用第一条用户消息生成标题，超出 20 字截断并加省略号。"""
        conv = self.get(conversation_id)
        if conv is None or not conv.messages:
            return None
        first = next((m for m in conv.messages if m.role == "user"), None)
        if first is None:
            return None
        title = first.content[:TITLE_MAX_CHARS] + ("..." if len(first.content) > TITLE_MAX_CHARS else "")
        self.update_conversation(conversation_id, title=title)
        return title

    def clear_all(self) -> None:
        self.conversations = []
        self.current_id = None
        self._persist()

    def _touch(self, conv: Conversation) -> None:
        conv.updated_at = bump(conv.updated_at)
        self._persist()


def conversation_summary(conv: Conversation) -> Dict[str, Any]:
    return {
        "id": conv.id,
        "title": conv.title,
        "message_count": len(conv.messages),
        "last_message": conv.messages[-1] if conv.messages else None,
        "has_report": conv.report is not None,
        "updated_at": conv.updated_at,
    }


def format_conversation_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """相对时间：刚刚 / N分钟前 / N小时前 / N天前，一周以上显示日期。"""
    now = now or utcnow()
    seconds = (now - timestamp).total_seconds()
    if seconds < 60:
        return "刚刚"
    if seconds < 3600:
        return f"{int(seconds // 60)}分钟前"
    if seconds < 86400:
        return f"{int(seconds // 3600)}小时前"
    if seconds < 7 * 86400:
        return f"{int(seconds // 86400)}天前"
    return f"{timestamp.year}年{timestamp.month}月{timestamp.day}日"
