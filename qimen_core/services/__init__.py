"""应用服务层：AI 对话服务与跨 store 的会话协调。"""

from qimen_core.services.ai_service import AIService, format_report_context
from qimen_core.services.session import QimenSession

__all__ = ["AIService", "QimenSession", "format_report_context"]
