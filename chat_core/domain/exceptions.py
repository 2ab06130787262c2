"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在控制器层做统一捕获与用户提示。

StreamCancelled 例外：取消不是错误，它只是一个可区分的信号，
因此不继承 BusinessError，避免被当作失败处理。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 session_id、url 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、读超时、连接中途断开等。"""


class ApiError(BusinessError):
    """后端返回非 2xx 状态码，或业务包 success=false 时抛出。"""


class AuthError(ApiError):
    """401 未授权，令牌缺失或已失效。"""


class RateLimitError(ApiError):
    """后端限流（429）。本模块不做重试，由用户重新发送。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class SessionCreationError(BusinessError):
    """创建会话失败，提交在追加任何消息之前被中止。"""


class StreamCancelled(Exception):
    """流在挂起点被协作式取消。"""

    def __init__(self, session_id: str = ""):
        self.session_id = session_id
        super().__init__(f"stream cancelled (session={session_id or '-'})")
