from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Protocol


# 与 OpenAI 风格接口的 role 字段对应；system 同时用于空系统提示与错误提示
Role = Literal["user", "assistant", "system"]
ROLES = ("user", "assistant", "system")

EventKind = Literal["created", "deleted", "message_appended", "renamed", "selected"]


@dataclass(frozen=True)
class Message:
    role: Role
    content: str


@dataclass
class Conversation:
    """一个独立的对话线程。

    - id: 创建时分配的稳定标识，永不复用。
    - display_number: 创建时分配的编号，用于 title 为空时显示 "Chat N"，
      删除其他会话后也不会改变。
    - title: 可选标题；None 或空串表示未命名。
    - messages: 只追加的消息列表。
    """

    id: str
    display_number: int
    title: Optional[str] = None
    messages: List[Message] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.title or f"Chat {self.display_number}"

    def copy(self) -> "Conversation":
        # Message 不可变，浅拷贝列表即可得到独立快照
        return Conversation(
            id=self.id,
            display_number=self.display_number,
            title=self.title,
            messages=list(self.messages),
        )


@dataclass(frozen=True)
class StoreEvent:
    """ConversationStore 在每次提交变更后发出的通知。"""

    kind: EventKind
    conversation_id: Optional[str]


StoreListener = Callable[[StoreEvent], None]


class PersistenceLayer(Protocol):
    """键值 blob 存储；对调用方而言是同步且持久的。"""

    def load(self, key: str) -> Optional[bytes]:
        ...

    def save(self, key: str, data: bytes) -> None:
        ...
