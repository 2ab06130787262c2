from dataclasses import FrozenInstanceError, replace

import pytest

from chat_core.domain.conversation import MessageList
from chat_core.domain.models import ChatRequest, KnowledgeBase, Message, MessageStatus, ModelSelection
from chat_core.infrastructure.events.bus import MESSAGES, EventBus


def test_models_exist():
    msg = Message(id="m1", role="user", content="hi", display_content="hi", status=MessageStatus.SUCCESS)
    assert msg.role == "user"
    assert msg.tool_names == ()
    assert msg.thinking is None
    with pytest.raises(FrozenInstanceError):
        msg.content = "x"
    assert MessageStatus.ERROR.is_terminal
    assert not MessageStatus.STREAMING.is_terminal


def test_message_list_replaces_by_id():
    store = MessageList()
    store.append(Message(id="a", role="user"), Message(id="b", role="assistant"))
    before = store.snapshot()
    store.update("b", lambda m: replace(m, content="x"))
    after = store.snapshot()
    assert before[1].content == ""
    assert after[1].content == "x"
    assert [m.id for m in after] == ["a", "b"]
    assert len(store) == 2
    assert "b" in store and "c" not in store


def test_message_list_rejects_duplicate_ids():
    store = MessageList([Message(id="a", role="user")])
    with pytest.raises(KeyError):
        store.append(Message(id="a", role="user"))
    store.replace_all([Message(id="z", role="assistant")])
    assert [m.id for m in store.snapshot()] == ["z"]


def test_chat_request_payload_for_search_modes():
    model = ModelSelection(provider_id="p", model_name="m")
    kb = KnowledgeBase(id=3, name="Docs")

    web = ChatRequest.build("s", "q", model, "web", kb)
    assert web.to_payload() == {
        "sessionId": "s",
        "prompt": "q",
        "providerId": "p",
        "modelName": "m",
        "searchEnabled": True,
        "ragEnabled": False,
    }

    think = ChatRequest.build("s", "q", search_mode="think").to_payload()
    assert think["thinkingEnabled"] is True
    assert "providerId" not in think and "kbId" not in think

    plain = ChatRequest.build("s", "q").to_payload()
    assert plain == {"sessionId": "s", "prompt": "q", "searchEnabled": False, "ragEnabled": False}


def test_event_bus_isolates_failing_subscribers():
    bus = EventBus()
    received = []

    def broken(_):
        raise RuntimeError("boom")

    bus.subscribe(MESSAGES, broken)
    unsubscribe = bus.subscribe(MESSAGES, received.append)
    bus.publish(MESSAGES, ("snap",))
    assert received == [("snap",)]

    unsubscribe()
    unsubscribe()
    bus.publish(MESSAGES, ("again",))
    assert received == [("snap",)]
