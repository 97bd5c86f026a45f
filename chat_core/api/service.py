"""对外 API 服务模块。

提供简化的同步函数接口供脚本或上层应用调用。
"""

import asyncio
from typing import Any, Dict, List, Optional

from chat_core.config.chat_config import PersistentSettingsProvider
from chat_core.config.settings import settings
from chat_core.domain.conversation import Conversation
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonConversationStore
from chat_core.infrastructure.storage.kv_store import FileKeyValueStore
from chat_core.providers import create_client
from chat_core.session.manager import ChatSession
from chat_core.session.orchestrator import ConnectionNotice

_settings_provider: Optional[PersistentSettingsProvider] = None
_session: Optional[ChatSession] = None


def _log_notice(notice: ConnectionNotice) -> None:
    logger.warning(notice.message, extra={"extra": {"conversation_id": notice.conversation_id, "code": notice.code}})


def get_settings_provider() -> PersistentSettingsProvider:
    global _settings_provider
    if _settings_provider is None:
        _settings_provider = PersistentSettingsProvider(FileKeyValueStore(settings.storage_root))
    return _settings_provider


def get_default_session() -> ChatSession:
    """获取默认的 ChatSession 实例（单例），数据保存在 settings.storage_root 下。"""
    global _session
    if _session is None:
        store = JsonConversationStore(FileKeyValueStore(settings.storage_root))
        _session = ChatSession(
            store=store,
            settings_provider=get_settings_provider(),
            client=create_client(),
            on_notice=_log_notice,
        )
    return _session


def conversation_to_dict(conv: Conversation) -> Dict[str, Any]:
    return {
        "id": conv.id,
        "title": conv.title,
        "label": conv.label,
        "display_number": conv.display_number,
        "messages": [{"role": m.role, "content": m.content} for m in conv.messages],
    }


def send_message(conversation_id: Optional[str], text: str) -> Dict[str, Any]:
    """发送一条消息并等待回复与标题摘要完成。

    Args:
        conversation_id: 会话ID（可选，不提供则创建新会话）
        text: 用户输入内容

    Returns:
        包含发送结果与会话内容的字典
    """
    session = get_default_session()
    if not conversation_id:
        conversation_id = session.new_conversation()

    async def _run():
        try:
            return await session.send(conversation_id, text)
        finally:
            await session.close()

    outcome = asyncio.run(_run())
    conv = session.conversation(conversation_id)
    return {
        "conversation_id": conversation_id,
        "outcome": outcome.value,
        "conversation": conversation_to_dict(conv) if conv else None,
    }


def list_conversations() -> List[Dict[str, Any]]:
    """列出所有会话（按创建顺序）。"""
    session = get_default_session()
    return [
        {"id": c.id, "label": c.label, "display_number": c.display_number, "message_count": len(c.messages)}
        for c in session.conversations()
    ]


def delete_conversation(conversation_id: str) -> None:
    get_default_session().delete(conversation_id)


def rename_conversation(conversation_id: str, title: str) -> bool:
    return get_default_session().rename(conversation_id, title)


def export_settings() -> str:
    return get_settings_provider().export_json()


def import_settings(text: str) -> Dict[str, Any]:
    return get_settings_provider().import_json(text).model_dump(by_alias=True)
