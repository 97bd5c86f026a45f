"""补全客户端抽象接口。

会话层（RequestOrchestrator / TitleSummarizer）不直接依赖 HTTP 库，而是依赖此协议：

- complete(endpoint, api_key, request): 发送一次非流式补全请求，返回解析后的
  CompletionResponse；所有可恢复的失败都以 ProviderError 子类抛出。

测试中可以用任意实现了该协议的假对象替换真实客户端。
"""

from typing import Protocol

from chat_core.providers.schema import CompletionRequest, CompletionResponse


class CompletionClient(Protocol):
    name: str

    async def complete(self, endpoint: str, api_key: str, request: CompletionRequest) -> CompletionResponse:
        ...
