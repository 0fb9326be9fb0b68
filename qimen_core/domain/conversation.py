"""会话与消息的领域模型。"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from .models import Role
from .qimen import QimenReport
from .timeutil import from_iso, to_iso, utcnow


MessageKind = Literal["text", "report"]

DEFAULT_CONVERSATION_TITLE = "新对话"


@dataclass
class ChatMessage:
    """会话中的一条消息。

    id 在所属列表内唯一，流式追加内容时保持不变；
    kind="report" 表示这是一张排盘卡片，report_id 指向对应报告。
    """

    role: Role
    content: str
    id: str = field(default_factory=lambda: f"m-{uuid4().hex}")
    timestamp: datetime = field(default_factory=utcnow)
    kind: MessageKind = "text"
    report_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": to_iso(self.timestamp),
            "kind": self.kind,
            "report_id": self.report_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data["id"],
            role=data["role"],
            content=data.get("content") or "",
            timestamp=from_iso(data.get("timestamp")) or utcnow(),
            kind=data.get("kind") or "text",
            report_id=data.get("report_id"),
        )


@dataclass
class Conversation:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    report: Optional[QimenReport] = None
    messages: List[ChatMessage] = field(default_factory=list)

    def find_message(self, message_id: str) -> Optional[ChatMessage]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "report": self.report.to_dict() if self.report else None,
            "messages": [m.to_dict() for m in self.messages],
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        created = from_iso(data.get("created_at")) or utcnow()
        report = data.get("report")
        return cls(
            id=data["id"],
            title=data.get("title") or DEFAULT_CONVERSATION_TITLE,
            created_at=created,
            updated_at=from_iso(data.get("updated_at")) or created,
            report=QimenReport.from_dict(report) if report else None,
            messages=[ChatMessage.from_dict(m) for m in data.get("messages") or []],
        )
