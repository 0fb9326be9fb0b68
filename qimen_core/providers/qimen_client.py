"""奇门遁甲排盘 API 客户端。

请求以 application/x-www-form-urlencoded 提交给排盘代理（POST /api/qimen），
api_key 由代理在服务端注入。响应格式为 {errcode, errmsg, notice, data}，
errcode == 0 表示成功。
"""

from typing import Any, Dict

import httpx

from qimen_core.config.settings import settings
from qimen_core.domain.exceptions import ApiError, DataShapeError, NetworkError, ValidationError
from qimen_core.domain.qimen import QimenInput
from qimen_core.infrastructure.logging.logger import logger

QIMEN_ENDPOINT = "/api/qimen"
BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
DEFAULT_NAME = "用户"


class QimenApiClient:
    name = "qimen"

    def __init__(self, cfg=settings):
        self._settings = cfg

    @property
    def endpoint(self) -> str:
        return f"{self._settings.proxy_base_url.rstrip('/')}{QIMEN_ENDPOINT}"

    @staticmethod
    def build_form(qimen_input: QimenInput) -> Dict[str, str]:
        """构建表单字段。

        fei_pan_model 仅在飞盘（pan_model=0）时发送；
        使用真太阳时（zhen=1）必须同时提供省市。
        """
        form = {
            "name": DEFAULT_NAME,
            "sex": "0" if qimen_input.gender == "male" else "1",
            "type": "1",  # 公历
            "year": str(qimen_input.year),
            "month": str(qimen_input.month),
            "day": str(qimen_input.day),
            "hours": str(qimen_input.hours),
            "minute": str(qimen_input.minute),
            "ju_model": str(qimen_input.ju_model),
            "pan_model": str(qimen_input.pan_model),
            "zhen": str(qimen_input.zhen),
        }
        if qimen_input.fei_pan_model is not None and qimen_input.pan_model == 0:
            form["fei_pan_model"] = str(qimen_input.fei_pan_model)
        if qimen_input.zhen == 1:
            if not qimen_input.province or not qimen_input.city:
                raise ValidationError(code="MISSING_LOCATION", message="使用真太阳时必须提供省市信息")
            form["province"] = qimen_input.province
            form["city"] = qimen_input.city
        return form

    def fetch(self, qimen_input: QimenInput) -> Dict[str, Any]:
        """调用排盘接口，返回 errcode == 0 的完整响应。"""

        form = self.build_form(qimen_input)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    self.endpoint,
                    data=form,
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "User-Agent": BROWSER_USER_AGENT,
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            result = resp.json()
        except ValueError:
            raise DataShapeError(code="INVALID_JSON", message=f"Invalid JSON response: {resp.text[:200]}")
        if not isinstance(result, dict):
            raise DataShapeError(code="INVALID_JSON", message="response is not an object")

        if result.get("errcode") != 0:
            logger.warning(
                "Qimen API business error",
                extra={"extra": {"errcode": result.get("errcode"), "errmsg": result.get("errmsg")}},
            )
            raise ApiError(code="QIMEN_API_ERROR", message=f"API error: {result.get('errmsg')}")
        return result
