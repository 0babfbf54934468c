"""Domain entities exposed by the application."""

from .conversation import Conversation
from .notification import MESSAGE_KIND, NOTIFICATION_KIND, Message, Notification
from .opt_out import OptOut
from .participant import (
    Messageable,
    ObjectRef,
    ParticipantRef,
    object_ref,
    participant_ref,
)
from .receipt import MAILBOX_INBOX, MAILBOX_SENTBOX, MAILBOX_TYPES, Receipt

__all__ = [
    "Conversation",
    "MAILBOX_INBOX",
    "MAILBOX_SENTBOX",
    "MAILBOX_TYPES",
    "MESSAGE_KIND",
    "Message",
    "Messageable",
    "NOTIFICATION_KIND",
    "Notification",
    "ObjectRef",
    "OptOut",
    "ParticipantRef",
    "Receipt",
    "object_ref",
    "participant_ref",
]
