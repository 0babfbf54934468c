"""Construction helpers computing default fields for new entities."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from mailroom.domain.entities import (
    MAILBOX_INBOX,
    Conversation,
    Message,
    Notification,
    Receipt,
    object_ref,
    participant_ref,
)


def unique_recipients(recipients: Iterable[Any]) -> list[Any]:
    """Drop repeated participants from ``recipients``, keeping first-seen order.

    Entries without a reference are kept so validation can reject them.
    """

    seen: set = set()
    unique: list[Any] = []
    for recipient in recipients:
        ref = participant_ref(recipient)
        if ref is not None:
            if ref in seen:
                continue
            seen.add(ref)
        unique.append(recipient)
    return unique


def build_notification(
    *,
    subject: str,
    body: str,
    recipients: Iterable[Any] = (),
    sender: Any = None,
    notified_object: Any = None,
    notification_code: str | None = None,
    global_: bool = False,
    expires: datetime | None = None,
) -> Notification:
    return Notification(
        id=None,
        subject=subject,
        body=body,
        sender=participant_ref(sender),
        notified_object=object_ref(notified_object),
        notification_code=notification_code,
        global_=global_,
        expires=expires,
        recipients=unique_recipients(recipients),
    )


def build_message(
    *,
    sender: Any,
    subject: str,
    body: str,
    recipients: Iterable[Any] = (),
    conversation_id: int | None = None,
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=None,
        subject=subject,
        body=body,
        sender=participant_ref(sender),
        conversation_id=conversation_id,
        created_at=created_at,
        updated_at=created_at,
        recipients=unique_recipients(recipients),
    )


def build_conversation(subject: str) -> Conversation:
    return Conversation(id=None, subject=subject)


def build_receipt(
    notification: Notification,
    receiver: Any,
    *,
    mailbox_type: str | None = MAILBOX_INBOX,
    is_read: bool = False,
    conversation_id: int | None = None,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
) -> Receipt:
    """Return an unsaved receipt of ``notification`` for ``receiver``.

    Messages carry their conversation onto the receipt unless one is given.
    """

    if conversation_id is None and isinstance(notification, Message):
        conversation_id = notification.conversation_id
    return Receipt(
        id=None,
        notification_id=notification.id,
        receiver=participant_ref(receiver),
        conversation_id=conversation_id,
        mailbox_type=mailbox_type,
        is_read=is_read,
        created_at=created_at,
        updated_at=updated_at,
    )


__all__ = [
    "build_conversation",
    "build_message",
    "build_notification",
    "build_receipt",
    "unique_recipients",
]
