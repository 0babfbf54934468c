"""Outbound delivery adapters for delivered notifications."""

from .composite import CompositeDispatcher
from .mail import MailDispatcher
from .realtime import (
    MailboxSockets,
    RealtimeDispatcher,
    mailbox_sockets,
    serialize_notification,
)

__all__ = [
    "CompositeDispatcher",
    "MailDispatcher",
    "MailboxSockets",
    "RealtimeDispatcher",
    "mailbox_sockets",
    "serialize_notification",
]
