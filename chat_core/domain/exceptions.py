"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层或 UI 层做统一捕获与用户提示。

ProviderError 及其子类是"可恢复的远端调用失败"：RequestOrchestrator
会把它们统一转成会话中的一条 system 消息，而不是继续向上抛出。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、conversation_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class InvalidEndpointError(ValidationError):
    """endpoint 为空或不是合法的 http(s) URL。"""


class StoreError(BusinessError):
    """持久化层读写失败。"""


class ProviderError(BusinessError):
    """远端补全调用失败的基类（网络、HTTP 状态、解码、请求构造）。"""


class NetworkError(ProviderError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(ProviderError):
    """远端返回非 2xx 状态码时抛出。"""


class RateLimitError(ApiError):
    """远端返回 429。"""


class ResponseDecodeError(ProviderError):
    """响应不是合法 JSON，或不符合 {choices:[{message:{content}}]} 结构。"""


class RequestBuildError(ProviderError):
    """请求体序列化失败，此时尚未发起任何网络调用。"""
