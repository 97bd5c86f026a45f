import json
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from chat_core.domain.conversation import (
    ROLES,
    Conversation,
    EventKind,
    Message,
    PersistenceLayer,
    Role,
    StoreEvent,
    StoreListener,
)
from chat_core.domain.exceptions import BusinessError, StoreError
from chat_core.infrastructure.logging.logger import logger

CONVERSATIONS_KEY = "savedConversations"
LEGACY_CHATS_KEY = "savedChats"
LEGACY_TITLES_KEY = "chatTitlesData"
LEGACY_WATCH_KEY = "messages"
FORMAT_VERSION = 1


def _watch_messages(items: Any) -> List[Dict[str, Any]]:
    """手表端消息是 {id, content, isUser}，转换成 {role, content}。"""
    if not isinstance(items, list):
        raise TypeError("legacy watch messages is not a list")
    return [
        {"role": "user" if m.get("isUser") else "assistant", "content": m.get("content") or ""}
        for m in items
        if isinstance(m, dict)
    ]


class JsonConversationStore:
    """会话集合的唯一所有者。

    内存中的有序列表是权威数据源，每次变更后整体序列化为一个 JSON 聚合，
    写入 PersistenceLayer 的单个 key。所有操作都按 id 解析；id 不存在时
    直接返回（no-op），不会抛错。
    """

    def __init__(self, persistence: PersistenceLayer, key: str = CONVERSATIONS_KEY):
        self._persistence = persistence
        self._key = key
        self._conversations: List[Conversation] = []
        self._next_number = 1
        self._selected_id: Optional[str] = None
        self._listeners: List[StoreListener] = []
        self._load()

    # ---- 查询 ----

    def __contains__(self, conversation_id: object) -> bool:
        return self._find(conversation_id) is not None

    def __len__(self) -> int:
        return len(self._conversations)

    def snapshot(self, conversation_id: str) -> Optional[Conversation]:
        conv = self._find(conversation_id)
        return conv.copy() if conv else None

    def list_conversations(self) -> List[Conversation]:
        return [c.copy() for c in self._conversations]

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    # ---- 变更 ----

    def create_conversation(self) -> str:
        highest = max((c.display_number for c in self._conversations), default=0)
        number = max(self._next_number, highest + 1)
        conv = Conversation(id=f"c-{uuid4().hex}", display_number=number)
        self._conversations.append(conv)
        self._next_number = number + 1
        self._commit("created", conv.id)
        return conv.id

    def delete_conversation(self, conversation_id: str) -> None:
        conv = self._find(conversation_id)
        if conv is None:
            return
        self._conversations.remove(conv)
        if self._selected_id == conversation_id:
            self._selected_id = None
        self._commit("deleted", conversation_id)

    def append_message(self, conversation_id: str, role: Role, content: str) -> bool:
        """追加一条消息；会话不存在时返回 False。"""
        if role not in ROLES:
            raise BusinessError(code="INVALID_ROLE", message=f"unknown role: {role!r}")
        conv = self._find(conversation_id)
        if conv is None:
            logger.info(
                "Dropped message for missing conversation",
                extra={"extra": {"conversation_id": conversation_id, "role": role}},
            )
            return False
        conv.messages.append(Message(role=role, content=content))
        self._commit("message_appended", conversation_id)
        return True

    def rename_conversation(self, conversation_id: str, new_title: Optional[str]) -> bool:
        title = (new_title or "").strip()
        conv = self._find(conversation_id)
        if conv is None or not title:
            return False
        conv.title = title
        self._commit("renamed", conversation_id)
        return True

    def select(self, conversation_id: Optional[str]) -> None:
        if conversation_id is not None and self._find(conversation_id) is None:
            return
        self._selected_id = conversation_id
        self._notify(StoreEvent(kind="selected", conversation_id=conversation_id))

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- 序列化 ----

    def to_payload(self) -> Dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "next_display_number": self._next_number,
            "conversations": [
                {
                    "id": c.id,
                    "title": c.title,
                    "display_number": c.display_number,
                    "messages": [{"role": m.role, "content": m.content} for m in c.messages],
                }
                for c in self._conversations
            ],
        }

    @staticmethod
    def conversations_from_payload(data: Dict[str, Any]) -> List[Conversation]:
        items: List[Conversation] = []
        seen: set[str] = set()
        for raw in data.get("conversations") or []:
            cid = raw["id"]
            if cid in seen:
                continue
            seen.add(cid)
            items.append(
                Conversation(
                    id=cid,
                    display_number=int(raw["display_number"]),
                    title=raw.get("title"),
                    messages=[
                        Message(role=m["role"], content=m.get("content") or "")
                        for m in raw.get("messages") or []
                        if m.get("role") in ROLES
                    ],
                )
            )
        return items

    # ---- 内部 ----

    def _find(self, conversation_id: object) -> Optional[Conversation]:
        for conv in self._conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def _load(self) -> None:
        raw = self._persistence.load(self._key)
        if raw is None:
            if self._migrate_legacy():
                self._persist()
            return
        try:
            data = json.loads(raw.decode("utf-8"))
            conversations = self.conversations_from_payload(data)
            next_number = int(data.get("next_display_number") or 1)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            # 与原始客户端一致：无法解码时从空集合开始
            logger.error(
                "Failed to decode stored conversations, starting empty",
                extra={"extra": {"key": self._key, "error": str(e)}},
            )
            return
        self._conversations = conversations
        highest = max((c.display_number for c in conversations), default=0)
        self._next_number = max(next_number, highest + 1)

    def _migrate_legacy(self) -> bool:
        """迁移旧版数据。

        手机端按位置索引分别保存 chats / titles 两个 blob；手表端只有一个会话，
        保存在 messages 下，迁移为 1 号会话。两者同时存在时以手机端为准。
        """
        chats_raw = self._persistence.load(LEGACY_CHATS_KEY)
        watch_raw = self._persistence.load(LEGACY_WATCH_KEY) if chats_raw is None else None
        if chats_raw is None and watch_raw is None:
            return False
        try:
            if chats_raw is not None:
                chats = json.loads(chats_raw.decode("utf-8"))
                titles_raw = self._persistence.load(LEGACY_TITLES_KEY)
                titles = json.loads(titles_raw.decode("utf-8")) if titles_raw else []
            else:
                chats = [_watch_messages(json.loads(watch_raw.decode("utf-8")))]
                titles = []
            if not isinstance(chats, list) or not isinstance(titles, list):
                raise TypeError("legacy data is not a list")
            migrated: List[Conversation] = []
            for index, chat in enumerate(chats):
                if not isinstance(chat, list):
                    raise TypeError("legacy chat is not a list")
                number = index + 1
                title = titles[index] if index < len(titles) else None
                if not title or title == f"Chat {number}":
                    title = None
                migrated.append(
                    Conversation(
                        id=f"c-{uuid4().hex}",
                        display_number=number,
                        title=title,
                        messages=[
                            Message(role=m["role"], content=m.get("content") or "")
                            for m in chat
                            if isinstance(m, dict) and m.get("role") in ROLES
                        ],
                    )
                )
        except (ValueError, TypeError, KeyError) as e:
            logger.error("Failed to migrate legacy chats", extra={"extra": {"error": str(e)}})
            return False
        self._conversations = migrated
        self._next_number = len(migrated) + 1
        logger.info("Migrated legacy chats", extra={"extra": {"count": len(migrated)}})
        return True

    def _persist(self) -> None:
        try:
            data = json.dumps(self.to_payload(), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e))
        self._persistence.save(self._key, data)

    def _commit(self, kind: EventKind, conversation_id: str) -> None:
        self._persist()
        self._notify(StoreEvent(kind=kind, conversation_id=conversation_id))

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Store listener failed",
                    extra={"extra": {"event": event.kind, "conversation_id": event.conversation_id}},
                )
