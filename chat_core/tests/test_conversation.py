import pytest

from chat_core.domain.conversation import Conversation, Message
from chat_core.domain.exceptions import BusinessError, NetworkError, ProviderError, RateLimitError


def test_models_exist():
    m = Message(role="user", content="hi")
    assert m.role == "user"
    conv = Conversation(id="c1", display_number=3)
    assert conv.title is None
    assert conv.messages == []
    assert conv.label == "Chat 3"
    conv.title = "Named"
    assert conv.label == "Named"


def test_message_is_immutable():
    m = Message(role="assistant", content="x")
    with pytest.raises(AttributeError):
        m.content = "y"


def test_copy_is_independent():
    conv = Conversation(id="c1", display_number=1, messages=[Message("user", "a")])
    dup = conv.copy()
    dup.messages.append(Message("assistant", "b"))
    assert conv.messages == [Message("user", "a")]
    assert dup == Conversation(id="c1", display_number=1, messages=[Message("user", "a"), Message("assistant", "b")])


def test_error_hierarchy():
    err = RateLimitError(code="RATE_LIMIT", message="slow down", http_status=429, conversation_id="c1")
    assert isinstance(err, ProviderError)
    assert isinstance(NetworkError(code="NETWORK_ERROR", message="x"), BusinessError)
    assert err.extra == {"conversation_id": "c1"}
    assert str(err) == "slow down"
