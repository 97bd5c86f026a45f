"""会话管理器的便捷包装。

把 ConversationStore、RequestOrchestrator、TitleSummarizer 和 SettingsProvider
组装在一起，给表现层提供一个窄接口。表现层通过 subscribe 订阅变更通知，
通过 on_notice 接收连接错误提示，而不是直接修改共享集合。
"""

from typing import Callable, List, Optional

from chat_core.config.chat_config import SettingsProvider
from chat_core.domain.conversation import Conversation, StoreListener
from chat_core.infrastructure.storage.json_store import JsonConversationStore
from chat_core.providers.base import CompletionClient
from chat_core.session.orchestrator import NoticeHandler, RequestOrchestrator, SendOutcome
from chat_core.session.summarizer import TitleSummarizer


class ChatSession:
    def __init__(
        self,
        store: JsonConversationStore,
        settings_provider: SettingsProvider,
        client: CompletionClient,
        on_notice: Optional[NoticeHandler] = None,
    ):
        """初始化会话管理器。

        Args:
            store: 会话存储实例
            settings_provider: 提供远端调用配置，每次发送时读取一次
            client: 补全客户端实例
            on_notice: 连接错误提示回调（可选）
        """
        self._store = store
        self._settings_provider = settings_provider
        self.summarizer = TitleSummarizer(store, client)
        self.orchestrator = RequestOrchestrator(store, client, summarizer=self.summarizer, on_notice=on_notice)

    @property
    def store(self) -> JsonConversationStore:
        return self._store

    @property
    def selected_id(self) -> Optional[str]:
        return self._store.selected_id

    def new_conversation(self, select: bool = True) -> str:
        conversation_id = self._store.create_conversation()
        if select:
            self._store.select(conversation_id)
        return conversation_id

    def delete(self, conversation_id: str) -> None:
        self._store.delete_conversation(conversation_id)

    def rename(self, conversation_id: str, title: str) -> bool:
        return self._store.rename_conversation(conversation_id, title)

    def select(self, conversation_id: Optional[str]) -> None:
        self._store.select(conversation_id)

    def conversations(self) -> List[Conversation]:
        return self._store.list_conversations()

    def conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self._store.snapshot(conversation_id)

    def is_waiting(self, conversation_id: str) -> bool:
        return self.orchestrator.is_in_flight(conversation_id)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    async def send(self, conversation_id: str, text: str) -> SendOutcome:
        config = self._settings_provider.current()
        return await self.orchestrator.send_message(conversation_id, text, config)

    async def close(self) -> None:
        await self.summarizer.drain()
