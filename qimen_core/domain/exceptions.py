"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或状态层做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 details、namespace 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、流读取中断等。"""


class ApiError(BusinessError):
    """上游 API 返回非 2xx 或业务错误码（errcode != 0）时抛出。"""


class RateLimitError(BusinessError):
    """上游限流错误。当前不做重试，直接上抛。"""


class ValidationError(BusinessError):
    """参数校验失败。"""


class ConfigurationError(BusinessError):
    """服务端缺少必要配置（例如上游 API 密钥）。"""


class DataShapeError(BusinessError):
    """上游返回的 JSON 缺少预期结构（例如九宫数据）。"""


class StoreError(BusinessError):
    """本地状态持久化读写失败。"""
