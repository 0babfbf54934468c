"""Push delivered notifications to connected websocket clients."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any, DefaultDict

from anyio import from_thread
from fastapi import WebSocket

from mailroom.domain.entities import (
    Message,
    Notification,
    ParticipantRef,
    participant_ref,
)

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "kind": notification.kind,
        "subject": notification.subject,
        "body": notification.body,
        "sender": str(notification.sender) if notification.sender else None,
        "conversation_id": _conversation_of(notification),
        "notification_code": notification.notification_code,
        "created_at": notification.created_at.isoformat()
        if notification.created_at
        else None,
        "expires": notification.expires.isoformat() if notification.expires else None,
    }


def _conversation_of(notification: Notification) -> int | None:
    if isinstance(notification, Message):
        return notification.conversation_id
    return None


class MailboxSockets:
    """Open websockets per participant, each watching a mailbox or one conversation.

    A socket registered without ``conversation_id`` receives every delivery
    addressed to its participant. A socket registered for a conversation only
    receives messages posted in it.
    """

    def __init__(self) -> None:
        self._sockets: DefaultDict[ParticipantRef, dict[WebSocket, int | None]] = defaultdict(
            dict
        )

    async def connect(
        self,
        participant: ParticipantRef,
        websocket: WebSocket,
        conversation_id: int | None = None,
    ) -> None:
        await websocket.accept()
        self._sockets[participant][websocket] = conversation_id

    def disconnect(self, participant: ParticipantRef, websocket: WebSocket) -> None:
        sockets = self._sockets.get(participant)
        if sockets is None:
            return
        sockets.pop(websocket, None)
        if not sockets:
            self._sockets.pop(participant, None)

    def watching(self, participant: ParticipantRef, notification: Notification) -> list[WebSocket]:
        """Sockets of ``participant`` that should see ``notification``."""

        conversation_id = _conversation_of(notification)
        return [
            socket
            for socket, scope in self._sockets.get(participant, {}).items()
            if scope is None or scope == conversation_id
        ]

    async def push(
        self,
        participant: ParticipantRef,
        sockets: Iterable[WebSocket],
        payload: dict[str, Any],
    ) -> None:
        for socket in sockets:
            try:
                await socket.send_json(payload)
            except Exception:  # pragma: no cover - stale socket cleanup
                logger.debug("Dropping stale websocket of %s", participant)
                self.disconnect(participant, socket)


mailbox_sockets = MailboxSockets()


class RealtimeDispatcher:
    """Schedule websocket pushes for every recipient of a delivery."""

    def __init__(self, sockets: MailboxSockets | None = None) -> None:
        self._sockets = sockets or mailbox_sockets
        self._pending: set[asyncio.Task] = set()

    def deliver(self, notification: Notification, recipients: Iterable[Any]) -> None:
        payload = {"type": notification.kind, "data": serialize_notification(notification)}
        seen = set()
        for recipient in recipients:
            ref = participant_ref(recipient)
            if ref is None or ref in seen:
                continue
            seen.add(ref)
            sockets = self._sockets.watching(ref, notification)
            if sockets:
                self._schedule_push(ref, sockets, payload)

    def _schedule_push(
        self, ref: ParticipantRef, sockets: list[WebSocket], payload: dict[str, Any]
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                from_thread.run(self._sockets.push, ref, sockets, payload)
            except RuntimeError:
                logger.debug("No event loop available to push %s to %s", payload["type"], ref)
        else:
            task = loop.create_task(self._sockets.push(ref, sockets, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)


__all__ = [
    "MailboxSockets",
    "RealtimeDispatcher",
    "mailbox_sockets",
    "serialize_notification",
]
