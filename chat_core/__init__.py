"""Chat Core 顶层包。

该包提供多会话聊天客户端的核心实现，包括配置加载、会话领域模型、
键值持久化、OpenAI 兼容补全客户端、请求编排与自动标题摘要。
"""

from chat_core.session import ChatSession, SendOutcome

__all__ = ["ChatSession", "SendOutcome"]
