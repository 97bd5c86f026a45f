"""请求编排模块。

把用户提交的一条消息变成一次补全请求，并把结果写回会话：

- 发送前先把用户消息落盘，网络失败也不会丢失用户输入。
- 同一会话同一时刻最多只有一个请求在途（in-flight 标记按 conversation_id 记录）。
- 结果按 id 回写；若会话在请求期间被删除，回写自然变成 no-op。
- 所有 ProviderError 都转成会话里的一条 system "Connection Error"，并通过
  on_notice 回调向用户提示一次；不会向调用方抛出。
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set
from uuid import uuid4

from chat_core.config.chat_config import ChatConfig
from chat_core.domain.conversation import Conversation
from chat_core.domain.exceptions import ProviderError
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonConversationStore
from chat_core.providers.base import CompletionClient
from chat_core.providers.openai_client import is_valid_endpoint
from chat_core.providers.schema import CompletionRequest, WireMessage
from chat_core.session.summarizer import TitleSummarizer

CONNECTION_ERROR_TEXT = "Connection Error"
CONNECTION_NOTICE_TEXT = "Failed to reach server, check and make sure your API configuration is correct."

# 每次请求都会前置的空系统提示
SYSTEM_PROMPT = WireMessage(role="system", content="")


class SendOutcome(str, enum.Enum):
    IGNORED = "ignored"  # 文本为空
    BUSY = "busy"  # 该会话已有请求在途
    NOT_FOUND = "not_found"
    REPLIED = "replied"
    FAILED = "failed"
    DROPPED = "dropped"  # 请求成功但会话已被删除


@dataclass(frozen=True)
class ConnectionNotice:
    """面向用户的一次性连接错误提示。"""

    conversation_id: str
    message: str
    code: str


NoticeHandler = Callable[[ConnectionNotice], None]


def build_completion_request(conversation: Conversation, config: ChatConfig) -> CompletionRequest:
    return CompletionRequest(
        model=config.model_request_name,
        messages=[SYSTEM_PROMPT] + [WireMessage.from_message(m) for m in conversation.messages],
        max_tokens=config.context_size,
    )


class RequestOrchestrator:
    def __init__(
        self,
        store: JsonConversationStore,
        client: CompletionClient,
        summarizer: Optional[TitleSummarizer] = None,
        on_notice: Optional[NoticeHandler] = None,
    ):
        self._store = store
        self._client = client
        self._summarizer = summarizer
        self._on_notice = on_notice
        self._in_flight: Set[str] = set()

    def is_in_flight(self, conversation_id: str) -> bool:
        return conversation_id in self._in_flight

    async def send_message(self, conversation_id: str, text: str, config: ChatConfig) -> SendOutcome:
        """发送一条用户消息并应用结果。

        Args:
            conversation_id: 目标会话 id
            text: 用户输入，前后空白会被去掉
            config: 本次调用使用的配置快照

        Returns:
            SendOutcome，描述本次调用的最终结果；本方法不抛出 ProviderError。
        """
        content = (text or "").strip()
        if not content:
            return SendOutcome.IGNORED
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "conversation_id": conversation_id}
        if conversation_id in self._in_flight:
            self._log(logging.INFO, "Rejected send while request in flight", log_ctx)
            return SendOutcome.BUSY
        if conversation_id not in self._store:
            self._log(logging.INFO, "Send for missing conversation ignored", log_ctx)
            return SendOutcome.NOT_FOUND

        self._in_flight.add(conversation_id)
        try:
            self._store.append_message(conversation_id, "user", content)
            self._log(logging.INFO, "Stored user message", log_ctx, length=len(content))

            if not is_valid_endpoint(config.endpoint):
                return self._fail(conversation_id, "INVALID_ENDPOINT", log_ctx)

            self._summarize(conversation_id, config)

            conversation = self._store.snapshot(conversation_id)
            if conversation is None:
                return SendOutcome.DROPPED
            request = build_completion_request(conversation, config)
            self._log(
                logging.INFO,
                "Calling completion endpoint",
                log_ctx,
                model=config.model_request_name,
                message_count=len(request.messages),
                max_tokens=request.max_tokens,
            )
            try:
                response = await self._client.complete(config.endpoint, config.api_key, request)
            except ProviderError as e:
                return self._fail(conversation_id, e.code, log_ctx, error=e.message)

            reply = response.content.strip()
            if not self._store.append_message(conversation_id, "assistant", reply):
                self._log(logging.INFO, "Conversation deleted before reply arrived", log_ctx)
                return SendOutcome.DROPPED
            self._log(logging.INFO, "Stored assistant message", log_ctx, length=len(reply))
            self._summarize(conversation_id, config)
            return SendOutcome.REPLIED
        finally:
            self._in_flight.discard(conversation_id)

    def _summarize(self, conversation_id: str, config: ChatConfig) -> None:
        if self._summarizer is not None:
            self._summarizer.maybe_summarize(conversation_id, config)

    def _fail(self, conversation_id: str, code: str, log_ctx: Dict[str, Any], **fields: Any) -> SendOutcome:
        self._log(logging.WARNING, "Completion failed", log_ctx, code=code, **fields)
        if not self._store.append_message(conversation_id, "system", CONNECTION_ERROR_TEXT):
            # 会话已删除：结果静默丢弃，不再提示
            return SendOutcome.DROPPED
        if self._on_notice is not None:
            self._on_notice(ConnectionNotice(conversation_id=conversation_id, message=CONNECTION_NOTICE_TEXT, code=code))
        return SendOutcome.FAILED

    @staticmethod
    def _log(level: int, message: str, ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
