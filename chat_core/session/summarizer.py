"""会话标题自动生成。

尽力而为的旁路请求：取会话前若干条消息，附加一条固定指令，请模型给出一个
简短的主题短语，成功后按 id 调用 rename_conversation。

- 每次调用返回一个独立的 asyncio.Task，调用方可以 await 也可以忽略。
- 同一会话可以同时有多个摘要请求在途，按完成顺序生效（后完成者覆盖）。
- 任何失败都只记日志，绝不向用户提示，也不写入会话。
"""

import asyncio
from typing import Optional, Set

from chat_core.config.chat_config import ChatConfig
from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonConversationStore
from chat_core.providers.base import CompletionClient
from chat_core.providers.openai_client import is_valid_endpoint
from chat_core.providers.schema import CompletionRequest, WireMessage

SUMMARY_INSTRUCTION = (
    "Summarize the topic of this conversation as a short phrase of at most five words. "
    "Reply with the phrase only, without quotes or punctuation at the end."
)

_QUOTES = "\"'`“”‘’「」"


def clean_title(raw: str) -> str:
    lines = [line.strip() for line in (raw or "").strip().splitlines() if line.strip()]
    if not lines:
        return ""
    title = lines[0].rstrip("。.").strip(_QUOTES)
    return title.rstrip("。.").strip()


class TitleSummarizer:
    def __init__(self, store: JsonConversationStore, client: CompletionClient, cfg=settings):
        self._store = store
        self._client = client
        self._settings = cfg
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def maybe_summarize(self, conversation_id: str, config: ChatConfig) -> Optional[asyncio.Task]:
        """条件满足时调度一次摘要请求，否则返回 None。

        必须在运行中的事件循环里调用。
        """
        if not config.auto_summarize_titles or not is_valid_endpoint(config.endpoint):
            return None
        conversation = self._store.snapshot(conversation_id)
        if conversation is None or not conversation.messages:
            return None
        limit = self._settings.summary_message_limit
        request = CompletionRequest(
            model=config.model_request_name,
            messages=[WireMessage.from_message(m) for m in conversation.messages[:limit]]
            + [WireMessage(role="user", content=SUMMARY_INSTRUCTION)],
            max_tokens=self._settings.summary_max_tokens,
        )
        task = asyncio.get_running_loop().create_task(self._run(conversation_id, config, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """等待所有在途摘要请求结束。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, conversation_id: str, config: ChatConfig, request: CompletionRequest) -> Optional[str]:
        try:
            response = await self._client.complete(config.endpoint, config.api_key, request)
            title = clean_title(response.content)
            renamed = self._store.rename_conversation(conversation_id, title)
        except BusinessError as e:
            logger.warning(
                "Title summary failed",
                extra={"extra": {"conversation_id": conversation_id, "code": e.code}},
            )
            return None
        except Exception:
            logger.exception("Title summary crashed", extra={"extra": {"conversation_id": conversation_id}})
            return None
        if not renamed:
            logger.info(
                "Title summary discarded",
                extra={"extra": {"conversation_id": conversation_id, "empty": not title}},
            )
            return None
        logger.info("Applied title summary", extra={"extra": {"conversation_id": conversation_id}})
        return title
