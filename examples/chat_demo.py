"""Minimal demonstration of the chat session core.

Usage: python examples/chat_demo.py http://localhost:8080/v1/chat/completions
"""

import asyncio
import sys

from chat_core.config.chat_config import ChatConfig, StaticSettingsProvider
from chat_core.infrastructure.storage.json_store import JsonConversationStore
from chat_core.infrastructure.storage.kv_store import FileKeyValueStore
from chat_core.providers import create_client
from chat_core.session import ChatSession


async def main(endpoint: str) -> None:
    config = ChatConfig(endpoint=endpoint, auto_summarize_titles=True)
    session = ChatSession(
        JsonConversationStore(FileKeyValueStore(".storage")),
        StaticSettingsProvider(config),
        create_client(),
        on_notice=lambda n: print("!", n.message),
    )
    cid = session.new_conversation()
    question = "请用一句话介绍一下你自己"
    await session.send(cid, question)
    await session.close()
    conv = session.conversation(cid)
    print(f"[{conv.label}]")
    for m in conv.messages:
        print(f"{m.role}: {m.content}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else ""))
