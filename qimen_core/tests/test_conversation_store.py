import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from qimen_core.domain.conversation import ChatMessage
from qimen_core.domain.qimen import QimenInput, QimenReport
from qimen_core.infrastructure.storage.json_store import JsonStateStorage, MemoryStateStorage
from qimen_core.qimen.normalizer import mock_result
from qimen_core.stores.conversation_store import (
    ConversationStore,
    conversation_summary,
    format_conversation_time,
)


def _report(question_type="career"):
    qimen_input = QimenInput(gender="female", question_type=question_type, year=2024, month=3, day=5, hours=9, minute=30)
    return QimenReport(input=qimen_input, result=mock_result(qimen_input))


def test_create_with_report_round_trip():
    store = ConversationStore(MemoryStateStorage())
    report = _report()
    conv = store.create_conversation(report=report)
    current = store.get_current()
    assert current is conv
    assert current.report is report
    assert "2024-03-05 09:30" in current.title
    assert "career" in current.title


def test_new_conversation_goes_first_and_becomes_current():
    store = ConversationStore(MemoryStateStorage())
    first = store.create_conversation("一")
    second = store.create_conversation()
    assert [c.id for c in store.conversations] == [second.id, first.id]
    assert store.current_id == second.id
    assert second.title == "新对话"


def test_append_to_message_concatenates():
    store = ConversationStore(MemoryStateStorage())
    conv = store.create_conversation()
    message = ChatMessage(role="assistant", content="x")
    store.add_message(conv.id, message)

    store.append_to_message(conv.id, message.id, "")
    assert conv.messages[0].content == "x"

    store.append_to_message(conv.id, message.id, "A")
    store.append_to_message(conv.id, message.id, "B")
    assert conv.messages[0].content.endswith("AB")
    assert conv.messages[0].id == message.id
    assert not store.append_to_message(conv.id, "missing", "C")


def test_duplicate_message_id_rejected():
    store = ConversationStore(MemoryStateStorage())
    conv = store.create_conversation()
    message = ChatMessage(role="user", content="hi")
    store.add_message(conv.id, message)
    with pytest.raises(ValueError):
        store.add_message(conv.id, message)


def test_delete_reassigns_active():
    store = ConversationStore(MemoryStateStorage())
    a = store.create_conversation("a")
    b = store.create_conversation("b")
    c = store.create_conversation("c")

    store.delete_conversation(a.id)
    assert store.current_id == c.id

    store.delete_conversation(c.id)
    assert store.current_id == b.id

    store.delete_conversation(b.id)
    assert store.current_id is None
    assert store.conversations == []


def test_reload_restores_list_and_resets_current():
    with tempfile.TemporaryDirectory() as d:
        storage = JsonStateStorage(root=Path(d) / ".storage")
        store = ConversationStore(storage)
        conv = store.create_conversation(report=_report())
        store.add_message(conv.id, ChatMessage(role="user", content="问财运"))

        reloaded = ConversationStore(JsonStateStorage(root=Path(d) / ".storage"))
        assert reloaded.current_id is None
        restored = reloaded.get(conv.id)
        assert restored.title == conv.title
        assert restored.messages[0].content == "问财运"
        assert restored.report.result.basic_info.gongli == "2024-03-05 09:30"


def test_updated_at_is_monotonic():
    store = ConversationStore(MemoryStateStorage())
    conv = store.create_conversation()
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    conv.updated_at = future
    store.rename_conversation(conv.id, "改名")
    assert conv.updated_at == future

    conv.updated_at = datetime.now(timezone.utc) - timedelta(hours=1)
    before = conv.updated_at
    store.add_message(conv.id, ChatMessage(role="user", content="hi"))
    assert conv.updated_at >= before


def test_generate_title_from_first_user_message():
    store = ConversationStore(MemoryStateStorage())
    conv = store.create_conversation()
    store.add_message(conv.id, ChatMessage(role="assistant", content="你好"))
    store.add_message(conv.id, ChatMessage(role="user", content="请帮我看看今年下半年的事业运势如何发展以及财运"))
    title = store.generate_title(conv.id)
    assert title == "请帮我看看今年下半年的事业运势如何发展以..."
    assert conv.title == title


def test_generate_title_keeps_twenty_chars_whole():
    store = ConversationStore(MemoryStateStorage())
    conv = store.create_conversation()
    store.add_message(conv.id, ChatMessage(role="user", content="请帮我看看今年下半年的事业运势如何发展呢"))
    assert store.generate_title(conv.id) == "请帮我看看今年下半年的事业运势如何发展呢"


def test_list_sorted_by_updated_at():
    store = ConversationStore(MemoryStateStorage())
    old = store.create_conversation("old")
    new = store.create_conversation("new")
    old.updated_at = new.updated_at + timedelta(seconds=5)
    assert [c.id for c in store.list_conversations()] == [old.id, new.id]


def test_migrate_from_version_zero():
    storage = MemoryStateStorage()
    storage.write("conversation-storage", {"conversations": [], "currentConversationId": "c-1"}, 0)
    store = ConversationStore(storage)
    assert store.current_id is None
    assert store.conversations == []


def test_unreadable_blob_starts_empty():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        storage = JsonStateStorage(root=root)
        (root / "state" / "conversation-storage.json").write_text("{not json", encoding="utf-8")
        store = ConversationStore(storage)
        assert store.conversations == []


def test_malformed_entries_start_empty():
    storage = MemoryStateStorage()
    storage.write("conversation-storage", {"conversations": ["garbage"]}, 1)
    store = ConversationStore(storage)
    assert store.conversations == []
    assert store.create_conversation("新的").title == "新的"


def test_clear_all():
    store = ConversationStore(MemoryStateStorage())
    store.create_conversation()
    store.clear_all()
    assert store.conversations == []
    assert store.get_current() is None


def test_summary_and_relative_time():
    store = ConversationStore(MemoryStateStorage())
    conv = store.create_conversation(report=_report())
    store.add_message(conv.id, ChatMessage(role="user", content="hi"))
    summary = conversation_summary(conv)
    assert summary["message_count"] == 1
    assert summary["has_report"] is True
    assert summary["last_message"].content == "hi"

    now = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)
    assert format_conversation_time(now - timedelta(seconds=30), now) == "刚刚"
    assert format_conversation_time(now - timedelta(minutes=5), now) == "5分钟前"
    assert format_conversation_time(now - timedelta(hours=3), now) == "3小时前"
    assert format_conversation_time(now - timedelta(days=2), now) == "2天前"
    assert format_conversation_time(datetime(2024, 5, 1, tzinfo=timezone.utc), now) == "2024年5月1日"
