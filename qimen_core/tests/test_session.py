import pytest

from qimen_core.api.service import build_session
from qimen_core.domain.exceptions import NetworkError, ValidationError
from qimen_core.domain.models import ChatChoice, ChatResult, ChatStreamChoice, ChatStreamChunk, LLMMessage
from qimen_core.domain.qimen import QimenInput, QimenReport
from qimen_core.infrastructure.storage.json_store import MemoryStateStorage
from qimen_core.qimen.normalizer import mock_result
from qimen_core.services.ai_service import AIService
from qimen_core.services.session import QimenSession
from qimen_core.stores import ChatStore, ConversationStore, QimenStore, ThemeStore, UserStore


class SettingsStub:
    proxy_base_url = "http://proxy.local"
    http_timeout = 1.0
    default_model = "deepseek-chat"
    max_history_messages = 10
    report_history_limit = 50
    storage_root = ".storage"


class FakeCalculator:
    def calculate(self, qimen_input):
        return QimenReport(input=qimen_input, result=mock_result(qimen_input))


class FakeProvider:
    name = "fake"

    def __init__(self, deltas=("你", "好"), fail_after=None):
        self.deltas = deltas
        self.fail_after = fail_after
        self.requests = []

    def chat(self, req):
        self.requests.append(req)
        msg = LLMMessage(role="assistant", content="".join(self.deltas))
        return ChatResult(model=req.model, choices=[ChatChoice(index=0, message=msg)])

    def chat_stream(self, req, handle=None):
        self.requests.append(req)
        for i, delta in enumerate(self.deltas):
            if self.fail_after is not None and i == self.fail_after:
                raise NetworkError(code="NETWORK_ERROR", message="连接中断")
            yield ChatStreamChunk(
                model=req.model,
                choices=[ChatStreamChoice(index=0, delta=LLMMessage(role="assistant", content=delta))],
            )


def _session(provider=None):
    storage = MemoryStateStorage()
    calculator = FakeCalculator()
    return QimenSession(
        conversations=ConversationStore(storage),
        chat=ChatStore(),
        charts=QimenStore(calculator, storage),
        users=UserStore(calculator, storage),
        theme=ThemeStore(storage),
        ai=AIService(provider or FakeProvider(), SettingsStub(), system_prompt="sys"),
    )


def _input():
    return QimenInput(gender="male", question_type="general", year=2024, month=1, day=1, hours=12, minute=0)


def test_generate_chart_opens_conversation():
    session = _session()
    session.chat.add_message("user", "遗留消息")
    conv = session.generate_chart(_input())
    assert session.current_conversation is conv
    assert session.charts.current_report is conv.report
    assert conv.title == "2024-01-01 12:00 - general"
    assert session.chat.messages == []


def test_messages_without_conversation_use_global_list():
    session = _session()
    reply = session.send_message("你好")
    assert reply.content == "你好"
    assert [m.role for m in session.chat.messages] == ["user", "assistant"]
    assert session.active_messages() == session.chat.messages
    assert session.conversations.conversations == []


def test_conversation_messages_are_authoritative():
    session = _session()
    conv = session.generate_chart(_input())
    session.send_message("问事业")
    assert [m.content for m in conv.messages] == ["问事业", "你好"]
    assert session.chat.messages == []
    assert session.active_messages() == conv.messages

    request = session.ai._provider.requests[-1]
    assert "问卜信息" in request.messages[0].content


def test_select_conversation_syncs_chart_store():
    session = _session()
    charted = session.generate_chart(_input())
    plain = session.new_conversation()
    assert session.charts.current_report is None

    session.chat.add_message("user", "遗留消息")
    assert session.select_conversation(charted.id)
    assert session.charts.current_report is charted.report
    assert session.chat.messages == []

    assert not session.select_conversation("missing")
    assert session.current_conversation is charted

    session.delete_conversation(charted.id)
    assert session.current_conversation is plain
    assert session.charts.current_report is None


def test_stream_message_grows_assistant_message():
    session = _session(FakeProvider(deltas=("He", "llo")))
    conv = session.new_conversation()
    chunks = []
    final = session.stream_message("hi", on_chunk=chunks.append)
    assert chunks == ["He", "llo"]
    assert final == "Hello"
    assert conv.messages[-1].content == "Hello"
    assert conv.title == "hi"


def test_stream_error_appends_marker():
    session = _session(FakeProvider(deltas=("Hel", "lo"), fail_after=1))
    conv = session.new_conversation()
    final = session.stream_message("hi")
    assert final == "Hel\n[错误] 连接中断"
    assert conv.messages[-1].content == final


def test_stream_without_conversation_uses_global_list():
    session = _session(FakeProvider(deltas=("A", "B")))
    assert session.stream_message("hi") == "AB"
    assert session.chat.messages[-1].content == "AB"


def test_empty_message_rejected():
    with pytest.raises(ValidationError):
        _session().send_message("   ")


def test_build_session_wires_stores():
    session = build_session(SettingsStub(), storage=MemoryStateStorage())
    assert isinstance(session, QimenSession)
    assert session.charts.history_limit == 50
    assert session.theme.theme == "system"
    assert session.ai.api_status()["endpoint"] == "http://proxy.local/api/ai/chat"


class DownProvider(FakeProvider):
    def chat(self, req):
        raise NetworkError(code="NETWORK_ERROR", message="连接超时")


def test_send_failure_is_recorded_as_reply():
    session = _session(DownProvider())
    conv = session.new_conversation()
    reply = session.send_message("你好")
    assert reply.content == "请求失败：连接超时。请检查后端服务配置。"
    assert [m.role for m in conv.messages] == ["user", "assistant"]
    assert conv.messages[-1].content == reply.content


def test_build_session_survives_malformed_state():
    storage = MemoryStateStorage()
    storage.write("conversation-storage", {"conversations": ["garbage"]}, 1)
    storage.write("user-storage", {"profile": "garbage"}, 1)
    session = build_session(SettingsStub(), storage=storage)
    assert session.conversations.conversations == []
    assert session.users.profile.name == "用户"
