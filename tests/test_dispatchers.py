"""Tests for the realtime and composite dispatchers and the text cleaner."""

from __future__ import annotations

import asyncio
import logging

from mailroom.domain.entities import Message, Notification, participant_ref
from mailroom.infrastructure.cleaner import TextCleaner
from mailroom.infrastructure.notifications import (
    CompositeDispatcher,
    MailboxSockets,
    RealtimeDispatcher,
    serialize_notification,
)


class FakeWebSocket:
    def __init__(self) -> None:
        self.accepted = False
        self.sent: list[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, payload: dict) -> None:
        self.sent.append(payload)


def test_serialize_message_includes_conversation():
    message = Message(id=3, subject="Hi", body="Body", conversation_id=9)

    payload = serialize_notification(message)

    assert payload["kind"] == "message"
    assert payload["conversation_id"] == 9
    assert payload["created_at"] is None


def test_realtime_dispatcher_pushes_to_connected_participants(alice, bob):
    sockets = MailboxSockets()
    socket = FakeWebSocket()
    dispatcher = RealtimeDispatcher(sockets)
    notification = Notification(id=4, subject="Hello", body="World")

    async def scenario() -> None:
        await sockets.connect(participant_ref(alice), socket)
        dispatcher.deliver(notification, [alice, bob, alice])
        assert len(dispatcher._pending) == 1
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert socket.accepted
    assert len(socket.sent) == 1
    assert socket.sent[0]["type"] == "notification"
    assert socket.sent[0]["data"]["id"] == 4
    assert sockets.watching(participant_ref(bob), notification) == []
    assert dispatcher._pending == set()


def test_conversation_sockets_only_see_their_conversation(alice):
    sockets = MailboxSockets()
    mailbox, lunch, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    ref = participant_ref(alice)
    dispatcher = RealtimeDispatcher(sockets)

    async def scenario() -> None:
        await sockets.connect(ref, mailbox)
        await sockets.connect(ref, lunch, conversation_id=9)
        await sockets.connect(ref, other, conversation_id=10)
        dispatcher.deliver(Message(id=3, subject="Hi", body="Body", conversation_id=9), [alice])
        dispatcher.deliver(Notification(id=4, subject="Hello", body="World"), [alice])
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert [payload["data"]["id"] for payload in mailbox.sent] == [3, 4]
    assert [payload["data"]["id"] for payload in lunch.sent] == [3]
    assert other.sent == []


def test_disconnect_forgets_participant(alice):
    sockets = MailboxSockets()
    socket = FakeWebSocket()
    ref = participant_ref(alice)
    notification = Notification(id=1, subject="Subject", body="Body")

    asyncio.run(sockets.connect(ref, socket))
    assert sockets.watching(ref, notification) == [socket]
    sockets.disconnect(ref, socket)
    sockets.disconnect(ref, socket)

    assert sockets.watching(ref, notification) == []


def test_composite_dispatcher_isolates_failures(dispatcher, alice, caplog):
    class Broken:
        def deliver(self, notification, recipients):
            raise RuntimeError("boom")

    composite = CompositeDispatcher(Broken(), None, dispatcher)
    notification = Notification(id=1, subject="Subject", body="Body")

    with caplog.at_level(logging.ERROR):
        composite.deliver(notification, [alice])

    assert dispatcher.calls == [(notification, [alice])]
    assert "Broken failed to deliver notification 1" in caplog.text


def test_text_cleaner_strips_markup_and_control_characters():
    cleaner = TextCleaner()

    assert cleaner.clean("<style>p {}</style><i>Hi</i>\x07 there &lt;3 ") == "Hi there <3"
    assert cleaner.clean("") == ""
    assert cleaner.clean("2 < 3 and 4 > 1") == "2 < 3 and 4 > 1"
