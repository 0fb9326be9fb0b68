"""排盘流程：校验输入 -> 调用排盘接口 -> 归一化 -> 生成报告。

上游任何一步失败都会记录日志并回退到模拟结果，
因此对合法输入 calculate() 总能返回一份 QimenReport。
"""

from datetime import datetime
from typing import List, Optional

from qimen_core.domain.exceptions import BusinessError, ValidationError
from qimen_core.domain.qimen import QUESTION_TYPES, Gender, QimenInput, QimenReport
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.providers.qimen_client import QimenApiClient
from qimen_core.qimen.normalizer import mock_result, normalize_response

MIN_YEAR = 1900
FUTURE_YEARS = 10


class QimenCalculator:
    def __init__(self, client: Optional[QimenApiClient] = None):
        self._client = client or QimenApiClient()

    @staticmethod
    def validate_input(qimen_input: QimenInput) -> List[str]:
        """返回错误列表，空列表表示输入合法。"""
        errors: List[str] = []
        if qimen_input.gender not in ("male", "female"):
            errors.append("性别必须为 male 或 female")
        if not qimen_input.question_type or not str(qimen_input.question_type).strip():
            errors.append("问题类型不能为空")
        try:
            datetime(qimen_input.year, qimen_input.month, qimen_input.day, qimen_input.hours, qimen_input.minute)
        except (TypeError, ValueError):
            errors.append("日期时间无效")
        return errors

    @staticmethod
    def prepare_input(qimen_input: QimenInput) -> QimenInput:
        return qimen_input.with_moment_fields()

    def calculate(self, qimen_input: QimenInput) -> QimenReport:
        """排盘并生成报告；输入不合法时抛出 ValidationError。"""

        prepared = self.prepare_input(qimen_input)
        errors = self.validate_input(prepared)
        if errors:
            raise ValidationError(code="INVALID_INPUT", message="；".join(errors), errors=errors)

        try:
            response = self._client.fetch(prepared)
            result = normalize_response(response)
        except BusinessError as e:
            logger.warning(
                "Chart calculation failed, using mock result",
                extra={"extra": {"code": e.code, "error": e.message}},
            )
            result = mock_result(prepared)
        return QimenReport(input=prepared, result=result)

    @staticmethod
    def current_time_input(question_type: str = "general", gender: Gender = "male") -> QimenInput:
        return QimenInput.from_datetime(datetime.now(), gender=gender, question_type=question_type)

    @staticmethod
    def validate_datetime(moment: datetime) -> bool:
        """起局时间须在 1900-01-01 到十年后的年末之间。"""
        lower = datetime(MIN_YEAR, 1, 1)
        upper = datetime(datetime.now().year + FUTURE_YEARS, 12, 31, 23, 59, 59)
        naive = moment.replace(tzinfo=None)
        return lower <= naive <= upper

    @staticmethod
    def format_datetime(moment: datetime) -> str:
        return moment.strftime("%Y-%m-%d %H:%M")

    @staticmethod
    def question_type_label(question_type: str) -> str:
        return QUESTION_TYPES.get(question_type, question_type)
