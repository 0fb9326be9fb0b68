"""奇门遁甲排盘：结果归一化与排盘流程。"""

from qimen_core.qimen.calculator import QimenCalculator
from qimen_core.qimen.normalizer import mock_result, normalize_response

__all__ = ["QimenCalculator", "mock_result", "normalize_response"]
