import tempfile
from pathlib import Path

from qimen_core.domain.exceptions import ValidationError
from qimen_core.domain.qimen import QimenInput, QimenReport
from qimen_core.infrastructure.storage.json_store import JsonStateStorage, MemoryStateStorage
from qimen_core.qimen.normalizer import mock_result
from qimen_core.stores.qimen_store import QimenStore, report_summary


class FakeCalculator:
    def __init__(self):
        self.calls = 0

    def calculate(self, qimen_input):
        self.calls += 1
        return QimenReport(input=qimen_input, result=mock_result(qimen_input), id=f"r-{self.calls}")


class FailingCalculator:
    def calculate(self, qimen_input):
        raise ValidationError(code="INVALID_INPUT", message="问题类型不能为空")


def _input(minute=0):
    return QimenInput(gender="male", question_type="general", year=2024, month=1, day=1, hours=12, minute=minute)


def test_generate_sets_current_and_history():
    store = QimenStore(FakeCalculator(), MemoryStateStorage())
    report = store.generate_report(_input())
    assert store.current_report is report
    assert store.reports == [report]
    assert store.is_generating is False
    assert store.error is None


def test_history_keeps_latest_fifty():
    store = QimenStore(FakeCalculator(), MemoryStateStorage(), history_limit=50)
    for i in range(51):
        store.generate_report(_input(minute=i % 60))
    assert len(store.reports) == 50
    assert store.reports[0].id == "r-51"
    assert store.reports[-1].id == "r-2"
    assert store.get_report_by_id("r-1") is None


def test_generate_failure_sets_error():
    store = QimenStore(FailingCalculator(), MemoryStateStorage())
    assert store.generate_report(_input()) is None
    assert store.error == "问题类型不能为空"
    assert store.is_generating is False
    assert store.reports == []
    store.clear_error()
    assert store.error is None


def test_delete_report_clears_current():
    store = QimenStore(FakeCalculator(), MemoryStateStorage())
    first = store.generate_report(_input())
    second = store.generate_report(_input(minute=1))
    store.delete_report(first.id)
    assert store.current_report is second
    store.delete_report(second.id)
    assert store.current_report is None
    assert store.reports == []


def test_reports_persist_but_current_does_not():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = QimenStore(FakeCalculator(), JsonStateStorage(root=root))
        report = store.generate_report(_input())

        reloaded = QimenStore(FakeCalculator(), JsonStateStorage(root=root))
        assert reloaded.current_report is None
        assert [r.id for r in reloaded.reports] == [report.id]
        assert reloaded.get_report_by_id(report.id).result.tianpan == report.result.tianpan


def test_set_and_clear_current():
    store = QimenStore(FakeCalculator(), MemoryStateStorage())
    report = FakeCalculator().calculate(_input())
    store.set_current_report(report)
    assert store.current_report is report
    store.clear_current_report()
    assert store.current_report is None


def test_report_summary():
    report = FakeCalculator().calculate(_input())
    summary = report_summary(report)
    assert summary["title"] == "2024-01-01 12:00 - general"
    assert summary["preview"].endswith("...")
