import json
import tempfile
from pathlib import Path

import pytest

from chat_core.domain.conversation import Message
from chat_core.domain.exceptions import BusinessError
from chat_core.infrastructure.storage.json_store import (
    CONVERSATIONS_KEY,
    LEGACY_CHATS_KEY,
    LEGACY_TITLES_KEY,
    LEGACY_WATCH_KEY,
    JsonConversationStore,
)
from chat_core.infrastructure.storage.kv_store import FileKeyValueStore, MemoryKeyValueStore


def test_display_numbers_are_monotonic():
    store = JsonConversationStore(MemoryKeyValueStore())
    a = store.create_conversation()
    b = store.create_conversation()
    assert store.snapshot(a).display_number == 1
    assert store.snapshot(b).display_number == 2
    store.delete_conversation(a)
    c = store.create_conversation()
    assert store.snapshot(c).display_number == 3
    assert store.snapshot(b).display_number == 2
    assert len({a, b, c}) == 3


def test_numbers_not_reused_after_deleting_everything():
    kv = MemoryKeyValueStore()
    store = JsonConversationStore(kv)
    for cid in [store.create_conversation(), store.create_conversation()]:
        store.delete_conversation(cid)
    reloaded = JsonConversationStore(kv)
    cid = reloaded.create_conversation()
    assert reloaded.snapshot(cid).display_number == 3


def test_delete_is_idempotent_and_irreversible():
    store = JsonConversationStore(MemoryKeyValueStore())
    a = store.create_conversation()
    b = store.create_conversation()
    store.delete_conversation(a)
    store.delete_conversation(a)
    store.delete_conversation("c-missing")
    assert store.snapshot(a) is None
    assert a not in store
    assert [c.id for c in store.list_conversations()] == [b]


def test_operations_on_unknown_id_are_noops():
    store = JsonConversationStore(MemoryKeyValueStore())
    keep = store.create_conversation()
    assert store.append_message("c-gone", "user", "hi") is False
    assert store.rename_conversation("c-gone", "title") is False
    assert store.snapshot("c-gone") is None
    assert store.snapshot(keep).messages == []


def test_append_preserves_call_order():
    store = JsonConversationStore(MemoryKeyValueStore())
    cid = store.create_conversation()
    store.append_message(cid, "user", "one")
    store.append_message(cid, "assistant", "two")
    store.append_message(cid, "system", "three")
    assert store.snapshot(cid).messages == [
        Message("user", "one"),
        Message("assistant", "two"),
        Message("system", "three"),
    ]


def test_append_rejects_unknown_role():
    store = JsonConversationStore(MemoryKeyValueStore())
    cid = store.create_conversation()
    with pytest.raises(BusinessError):
        store.append_message(cid, "tool", "x")


def test_rename_ignores_empty_titles():
    store = JsonConversationStore(MemoryKeyValueStore())
    cid = store.create_conversation()
    assert store.snapshot(cid).label == "Chat 1"
    assert store.rename_conversation(cid, "") is False
    assert store.rename_conversation(cid, "   ") is False
    assert store.snapshot(cid).title is None
    assert store.rename_conversation(cid, "  Trip plans ") is True
    assert store.snapshot(cid).title == "Trip plans"
    assert store.snapshot(cid).label == "Trip plans"


def test_snapshot_is_detached():
    store = JsonConversationStore(MemoryKeyValueStore())
    cid = store.create_conversation()
    snap = store.snapshot(cid)
    snap.messages.append(Message("user", "sneaky"))
    snap.title = "changed"
    assert store.snapshot(cid).messages == []
    assert store.snapshot(cid).title is None


def test_persist_reload_round_trip():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(Path(d) / ".storage")
        store = JsonConversationStore(kv)
        a = store.create_conversation()
        b = store.create_conversation()
        c = store.create_conversation()
        store.append_message(a, "user", "hello")
        store.append_message(a, "assistant", "hi there")
        store.rename_conversation(b, "Named")
        store.delete_conversation(c)

        reloaded = JsonConversationStore(FileKeyValueStore(Path(d) / ".storage"))
        assert reloaded.list_conversations() == store.list_conversations()
        assert reloaded.to_payload() == store.to_payload()
        first, second = reloaded.list_conversations()
        assert first.title is None
        assert (first.display_number, second.display_number) == (1, 2)


def test_payload_decode_encode_is_identity():
    payload = {
        "version": 1,
        "next_display_number": 5,
        "conversations": [
            {"id": "c-1", "title": None, "display_number": 2, "messages": []},
            {
                "id": "c-2",
                "title": "Recipes",
                "display_number": 4,
                "messages": [{"role": "user", "content": "soup?"}, {"role": "system", "content": "Connection Error"}],
            },
        ],
    }
    kv = MemoryKeyValueStore({CONVERSATIONS_KEY: json.dumps(payload).encode("utf-8")})
    assert JsonConversationStore(kv).to_payload() == payload


def test_corrupt_aggregate_starts_empty():
    kv = MemoryKeyValueStore({CONVERSATIONS_KEY: b"{not json"})
    store = JsonConversationStore(kv)
    assert len(store) == 0
    cid = store.create_conversation()
    assert store.snapshot(cid).display_number == 1


def test_legacy_position_indexed_data_is_migrated():
    chats = [
        [{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}],
        [],
        [{"role": "system", "content": "Connection Error"}, {"role": "bogus", "content": "x"}],
    ]
    titles = ["Chat 1", "Groceries", "Chat 3"]
    kv = MemoryKeyValueStore(
        {
            LEGACY_CHATS_KEY: json.dumps(chats).encode("utf-8"),
            LEGACY_TITLES_KEY: json.dumps(titles).encode("utf-8"),
        }
    )
    store = JsonConversationStore(kv)
    convs = store.list_conversations()
    assert [c.display_number for c in convs] == [1, 2, 3]
    assert [c.title for c in convs] == [None, "Groceries", None]
    assert convs[0].messages == [Message("user", "a"), Message("assistant", "b")]
    assert convs[2].messages == [Message("system", "Connection Error")]
    assert kv.load(CONVERSATIONS_KEY) is not None
    new_id = store.create_conversation()
    assert store.snapshot(new_id).display_number == 4


def test_legacy_watch_conversation_is_migrated_as_first():
    watch = [
        {"id": "A1", "content": "hello", "isUser": True},
        {"id": "B2", "content": "hi", "isUser": False},
        "garbage",
    ]
    kv = MemoryKeyValueStore({LEGACY_WATCH_KEY: json.dumps(watch).encode("utf-8")})
    store = JsonConversationStore(kv)
    convs = store.list_conversations()
    assert len(convs) == 1
    assert convs[0].display_number == 1
    assert convs[0].title is None
    assert convs[0].messages == [Message("user", "hello"), Message("assistant", "hi")]
    assert kv.load(CONVERSATIONS_KEY) is not None
    assert store.snapshot(store.create_conversation()).display_number == 2


def test_phone_data_wins_over_watch_data():
    kv = MemoryKeyValueStore(
        {
            LEGACY_CHATS_KEY: json.dumps([[{"role": "user", "content": "phone"}]]).encode("utf-8"),
            LEGACY_WATCH_KEY: json.dumps([{"content": "watch", "isUser": True}]).encode("utf-8"),
        }
    )
    convs = JsonConversationStore(kv).list_conversations()
    assert [m.content for c in convs for m in c.messages] == ["phone"]


def test_corrupt_watch_data_starts_empty():
    kv = MemoryKeyValueStore({LEGACY_WATCH_KEY: b'{"not": "a list"}'})
    store = JsonConversationStore(kv)
    assert len(store) == 0
    assert kv.load(CONVERSATIONS_KEY) is None


def test_selection_cleared_when_selected_conversation_deleted():
    store = JsonConversationStore(MemoryKeyValueStore())
    a = store.create_conversation()
    b = store.create_conversation()
    store.select(a)
    store.delete_conversation(b)
    assert store.selected_id == a
    store.delete_conversation(a)
    assert store.selected_id is None
    store.select("c-unknown")
    assert store.selected_id is None


def test_listeners_receive_events_and_failures_are_isolated():
    store = JsonConversationStore(MemoryKeyValueStore())
    events = []

    def broken(event):
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    unsubscribe = store.subscribe(lambda e: events.append((e.kind, e.conversation_id)))
    cid = store.create_conversation()
    store.append_message(cid, "user", "x")
    store.rename_conversation(cid, "T")
    store.select(cid)
    store.delete_conversation(cid)
    unsubscribe()
    store.create_conversation()
    assert [k for k, _ in events] == ["created", "message_appended", "renamed", "selected", "deleted"]
    assert all(c == cid for _, c in events)
