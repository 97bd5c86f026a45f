"""OpenAI 风格 chat/completions 端点的异步客户端。

与厂商无关：endpoint 由用户直接填写完整 URL（不再拼接 /chat/completions），
认证方式为可选的 Authorization: Bearer <api_key>。

步骤：
1. 校验 endpoint（空串或非 http(s) 绝对 URL 直接判为 InvalidEndpointError）。
2. 在发起网络调用之前序列化请求体并构造请求头，失败即 RequestBuildError。
3. POST 请求并把网络错误 / 非 2xx 状态包装为 NetworkError / ApiError。
4. 用 schema.decode_completion 把响应解析为强类型结构。
"""

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import (
    ApiError,
    InvalidEndpointError,
    NetworkError,
    RateLimitError,
    RequestBuildError,
)
from chat_core.providers.schema import CompletionRequest, CompletionResponse, decode_completion


def is_valid_endpoint(endpoint: str) -> bool:
    if not endpoint or not endpoint.strip():
        return False
    try:
        url = httpx.URL(endpoint.strip())
    except (httpx.InvalidURL, TypeError, ValueError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)


def build_headers(api_key: str) -> dict:
    """构造请求头；HTTP 头只能是 ASCII，非法 api_key 在发请求前即报 RequestBuildError。"""
    headers = {"Content-Type": "application/json"}
    if api_key:
        value = f"Bearer {api_key}"
        try:
            value.encode("ascii")
        except UnicodeEncodeError:
            raise RequestBuildError(code="REQUEST_BUILD_ERROR", message="api key contains non-ASCII characters")
        if any(ch in value for ch in "\r\n\0"):
            raise RequestBuildError(code="REQUEST_BUILD_ERROR", message="api key contains control characters")
        headers["Authorization"] = value
    return headers


class OpenAICompatClient:
    """通用的 OpenAI 兼容补全客户端。"""

    name = "openai-compat"

    def __init__(self, cfg=settings):
        self._settings = cfg

    async def complete(self, endpoint: str, api_key: str, request: CompletionRequest) -> CompletionResponse:
        if not is_valid_endpoint(endpoint):
            raise InvalidEndpointError(code="INVALID_ENDPOINT", message=f"invalid endpoint: {endpoint!r}")
        body = request.to_body()
        headers = build_headers(api_key)
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(endpoint.strip(), content=body, headers=headers)
        except httpx.HTTPError as e:
            # 网络错误：DNS 失败、连接超时、协议错误等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="rate limited", http_status=429)
        if resp.status_code < 200 or resp.status_code >= 300:
            raise ApiError(code="API_ERROR", message=resp.text[:500], http_status=resp.status_code)
        return decode_completion(resp.content)
