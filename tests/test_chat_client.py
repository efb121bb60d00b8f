import asyncio

import httpx
import pytest
import pytest_asyncio
from socketio import exceptions as socketio_exceptions

from chat_relay.client import ChatClient
from chat_relay.core.gateways import MessageGateway

from conftest import signup


class FakeSocketClient:
    """Stands in for socketio.AsyncClient: records emits, answers calls."""

    def __init__(self, ack=None):
        self.handlers = {}
        self.emitted = []
        self.calls = []
        self.ack = ack
        self.connected = True

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def emit(self, event, data=None, **kwargs):
        self.emitted.append((event, data))

    async def call(self, event, data=None, **kwargs):
        self.calls.append((event, data))
        if isinstance(self.ack, Exception):
            raise self.ack
        return self.ack

    async def disconnect(self):
        self.connected = False


def make_message(message_id, sender, receiver, content="hi", seen=False):
    return {
        "id": message_id,
        "content": content,
        "sender": sender,
        "receiver": receiver,
        "timestamp": "2024-01-01T00:00:00Z",
        "seen": seen,
    }


@pytest_asyncio.fixture
async def users(client):
    alice = await signup(client, "alice")
    bob = await signup(client, "bob")
    carol = await signup(client, "carol")
    return alice, bob, carol


@pytest_asyncio.fixture
async def chat(app, users):
    alice = users[0]
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    chat_client = ChatClient(
        "http://test",
        token=alice["token"],
        user_id=alice["user"]["id"],
        http=http,
        sio=FakeSocketClient(),
    )
    yield chat_client
    await chat_client.close()


@pytest.mark.asyncio
async def test_handlers_are_registered(chat):
    assert set(chat.sio.handlers) == {"message", "typing", "messageSeenUpdate"}


@pytest.mark.asyncio
async def test_fetch_users_and_search(chat):
    users = await chat.fetch_users()

    assert [u["username"] for u in users] == ["bob", "carol"]
    assert chat.search("CAR") == [users[1]]
    assert chat.search("") == users


@pytest.mark.asyncio
async def test_select_user_loads_history(chat, app, users):
    alice, bob, _ = users
    gateway = await app.state.dishka_container.get(MessageGateway)
    sent = await gateway.create_message(bob["user"]["id"], alice["user"]["id"], "earlier")

    chat.is_typing = True
    await chat.select_user(bob["user"]["id"])

    assert [m["id"] for m in chat.messages] == [sent.id]
    assert chat.is_typing is False


@pytest.mark.asyncio
async def test_messages_outside_open_conversation_are_ignored(chat, users):
    alice, bob, carol = users
    me, partner, other = alice["user"]["id"], bob["user"]["id"], carol["user"]["id"]

    chat.on_message(make_message("m0", partner, me))
    assert chat.messages == []

    await chat.select_user(partner)
    chat.on_message(make_message("m1", partner, me))
    chat.on_message(make_message("m2", other, me))
    chat.on_message(make_message("m3", me, partner))
    chat.on_message(make_message("m1", partner, me))

    assert [m["id"] for m in chat.messages] == ["m1", "m3"]


@pytest.mark.asyncio
async def test_typing_only_from_partner(chat, users):
    _, bob, carol = users
    await chat.select_user(bob["user"]["id"])

    chat.on_typing({"userId": carol["user"]["id"], "isTyping": True})
    assert chat.is_typing is False

    chat.on_typing({"userId": bob["user"]["id"], "isTyping": True})
    assert chat.is_typing is True

    chat.on_typing({"userId": bob["user"]["id"], "isTyping": False})
    assert chat.is_typing is False


@pytest.mark.asyncio
async def test_seen_update_marks_local_message(chat, users):
    alice, bob, _ = users
    await chat.select_user(bob["user"]["id"])
    chat.on_message(make_message("m1", alice["user"]["id"], bob["user"]["id"]))

    chat.on_seen_update({"messageId": "m1", "seen": True})
    chat.on_seen_update({"messageId": "unknown", "seen": True})

    assert chat.messages[0]["seen"] is True


@pytest.mark.asyncio
async def test_send_message_uses_ack(chat, users):
    alice, bob, _ = users
    await chat.select_user(bob["user"]["id"])
    ack = make_message("m1", alice["user"]["id"], bob["user"]["id"], content="hello")
    chat.sio.ack = ack
    chat.draft = "hello"

    assert await chat.send_message() == ack

    assert chat.sio.calls == [("sendMessage", {"content": "hello", "receiver": bob["user"]["id"]})]
    assert chat.draft == ""
    assert chat.messages == [ack]

    # the same record echoed through the "message" event is not duplicated
    chat.on_message(dict(ack))
    assert len(chat.messages) == 1


@pytest.mark.asyncio
async def test_send_message_skips_blank_text_and_closed_chat(chat, users):
    assert await chat.send_message("hello") is None

    await chat.select_user(users[1]["user"]["id"])
    assert await chat.send_message("   ") is None
    assert chat.sio.calls == []


@pytest.mark.asyncio
async def test_send_message_failure(chat, users):
    await chat.select_user(users[1]["user"]["id"])

    chat.sio.ack = None
    assert await chat.send_message("dropped") is None

    chat.sio.ack = socketio_exceptions.TimeoutError()
    assert await chat.send_message("timed out") is None
    assert chat.messages == []


@pytest.mark.asyncio
async def test_draft_emits_typing_then_idle(chat, users):
    bob_id = users[1]["user"]["id"]
    chat.TYPING_IDLE_SECONDS = 0.05
    await chat.select_user(bob_id)

    await chat.update_draft("h")
    await chat.update_draft("he")
    await asyncio.sleep(0.2)

    assert chat.draft == "he"
    assert chat.sio.emitted == [
        ("typing", {"receiverId": bob_id, "isTyping": True}),
        ("typing", {"receiverId": bob_id, "isTyping": True}),
        ("typing", {"receiverId": bob_id, "isTyping": False}),
    ]


@pytest.mark.asyncio
async def test_mark_seen_emits_event(chat):
    await chat.mark_seen("m1")

    assert chat.sio.emitted == [("messageSeen", {"messageId": "m1"})]


@pytest.mark.asyncio
async def test_profile_roundtrip(chat):
    profile = await chat.fetch_profile()
    assert profile["username"] == "alice"

    updated = await chat.update_profile(bio="hello there", theme="dark")
    assert updated["bio"] == "hello there"
    assert chat.error == ""


@pytest.mark.asyncio
async def test_rejected_profile_update_sets_error(chat):
    assert await chat.update_profile(role="admin") is None
    assert chat.error == "Failed to update profile. Please try again."

    assert (await chat.fetch_profile())["username"] == "alice"
    assert chat.error == ""
