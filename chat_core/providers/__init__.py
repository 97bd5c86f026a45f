"""远端补全服务集成层。

该包下的模块负责：
- 定义补全客户端抽象接口 (base)。
- 定义请求 / 响应的强类型结构 (schema)。
- 提供 OpenAI 兼容端点的 httpx 实现 (openai_client)。
"""

from chat_core.config.settings import settings
from chat_core.providers.base import CompletionClient
from chat_core.providers.openai_client import OpenAICompatClient


def create_client() -> CompletionClient:
    """根据应用配置创建默认补全客户端。"""

    return OpenAICompatClient(settings)
