"""会话编排层：请求编排、标题摘要与会话管理器。"""

from chat_core.session.manager import ChatSession
from chat_core.session.orchestrator import ConnectionNotice, RequestOrchestrator, SendOutcome
from chat_core.session.summarizer import TitleSummarizer

__all__ = ["ChatSession", "ConnectionNotice", "RequestOrchestrator", "SendOutcome", "TitleSummarizer"]
