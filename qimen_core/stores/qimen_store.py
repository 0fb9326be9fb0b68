"""排盘报告状态：当前报告与最近的历史报告。

current_report、is_generating、error 属于运行期状态；
只持久化 reports（新的在前，最多保留 report_history_limit 份）。
"""

from typing import Any, Dict, List, Optional

from qimen_core.config.settings import settings
from qimen_core.domain.exceptions import BusinessError
from qimen_core.domain.qimen import QimenInput, QimenReport, reports_from_list
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.infrastructure.storage.json_store import StateStorage
from qimen_core.qimen.calculator import QimenCalculator
from qimen_core.stores.base import PersistedStore

UNKNOWN_ERROR = "生成报告时发生未知错误"
PREVIEW_CHARS = 100


class QimenStore(PersistedStore):
    namespace = "qimen-storage"
    version = 1

    def __init__(
        self,
        calculator: QimenCalculator,
        storage: Optional[StateStorage] = None,
        history_limit: Optional[int] = None,
    ):
        self._calculator = calculator
        self.history_limit = history_limit or settings.report_history_limit
        super().__init__(storage)

    def _reset(self) -> None:
        self.current_report: Optional[QimenReport] = None
        self.reports: List[QimenReport] = []
        self.is_generating = False
        self.error: Optional[str] = None

    def migrate(self, state: Dict[str, Any], from_version: int) -> Dict[str, Any]:
        if from_version == 0:
            state = {**state, "error": None}
        return state

    def to_state(self) -> Dict[str, Any]:
        return {"reports": [r.to_dict() for r in self.reports]}

    def _rehydrate(self, state: Dict[str, Any]) -> None:
        self.reports = reports_from_list(state.get("reports"))[: self.history_limit]
        self.current_report = None

    def generate_report(self, qimen_input: QimenInput) -> Optional[QimenReport]:
        """生成报告并设为当前报告；失败时写入 error 并返回 None。"""
        self.is_generating = True
        self.error = None
        try:
            report = self._calculator.calculate(qimen_input)
        except BusinessError as e:
            logger.error("Generate report failed", extra={"extra": {"code": e.code, "error": e.message}})
            self.error = e.message or UNKNOWN_ERROR
            return None
        finally:
            self.is_generating = False

        self.current_report = report
        self.reports = [report] + self.reports[: self.history_limit - 1]
        self._persist()
        return report

    def set_current_report(self, report: Optional[QimenReport]) -> None:
        self.current_report = report

    def clear_current_report(self) -> None:
        self.current_report = None

    def get_report_by_id(self, report_id: str) -> Optional[QimenReport]:
        return next((r for r in self.reports if r.id == report_id), None)

    def delete_report(self, report_id: str) -> None:
        self.reports = [r for r in self.reports if r.id != report_id]
        if self.current_report is not None and self.current_report.id == report_id:
            self.current_report = None
        self._persist()

    def clear_error(self) -> None:
        self.error = None


def report_summary(report: QimenReport) -> Dict[str, Any]:
    return {
        "id": report.id,
        "title": report.title,
        "preview": report.result.analysis[:PREVIEW_CHARS] + "...",
        "timestamp": report.timestamp,
    }
